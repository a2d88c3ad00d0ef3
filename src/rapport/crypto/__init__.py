"""Encryption at rest for messages and memories."""

from .codec import EncryptionCodec

__all__ = ["EncryptionCodec"]
