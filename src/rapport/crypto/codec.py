"""Per-user AES-256-GCM encryption for conversation data at rest.

Ciphertext envelope: base64(iv[12] + tag[16] + ciphertext).
"""

import base64
import binascii
import hashlib
import hmac
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..errors import DecryptionError, EncryptionConfigError

IV_LENGTH = 12
TAG_LENGTH = 16
KEY_LENGTH = 32


class EncryptionCodec:
    """Encrypts and decrypts sensitive fields keyed to their owning user.

    Keys are derived with HMAC-SHA256(master_key, user_id), so each user
    has a distinct key without storing any key material.
    """

    def __init__(self, master_key: str | None, enabled: bool = True) -> None:
        """Initialize the codec.

        Args:
            master_key: Process-wide secret. None disables encryption for
                new writes; existing ciphertext then reads back unchanged.
            enabled: Switch for new writes. Reads ignore it.
        """
        self._master_key = master_key.encode("utf-8") if master_key else None
        self._enabled = enabled and self._master_key is not None

    def is_encryption_enabled(self) -> bool:
        """Whether new writes should be encrypted."""
        return self._enabled

    def _derive_key(self, user_id: str) -> bytes:
        if self._master_key is None:
            raise EncryptionConfigError("ENCRYPTION_MASTER_KEY is not set")
        digest = hmac.new(self._master_key, user_id.encode("utf-8"), hashlib.sha256)
        return digest.digest()[:KEY_LENGTH]

    def encrypt(self, plaintext: str, user_id: str) -> str:
        """Encrypt plaintext for a user.

        Raises:
            EncryptionConfigError: If no master key is configured.
        """
        key = self._derive_key(user_id)
        iv = os.urandom(IV_LENGTH)
        # AESGCM appends the tag; the envelope stores it before the ciphertext
        sealed = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        return base64.b64encode(iv + tag + ciphertext).decode("ascii")

    def decrypt(self, value: str, user_id: str) -> str:
        """Decrypt an envelope produced by encrypt().

        Raises:
            DecryptionError: If value is not a valid envelope for this user.
            EncryptionConfigError: If no master key is configured.
        """
        key = self._derive_key(user_id)
        try:
            packed = base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecryptionError(f"Not a ciphertext envelope: {e}") from e

        if len(packed) < IV_LENGTH + TAG_LENGTH:
            raise DecryptionError("Envelope too short")

        iv = packed[:IV_LENGTH]
        tag = packed[IV_LENGTH : IV_LENGTH + TAG_LENGTH]
        ciphertext = packed[IV_LENGTH + TAG_LENGTH :]

        try:
            plaintext = AESGCM(key).decrypt(iv, ciphertext + tag, None)
            return plaintext.decode("utf-8")
        except InvalidTag as e:
            raise DecryptionError("Authentication tag mismatch") from e
        except UnicodeDecodeError as e:
            raise DecryptionError(f"Decrypted bytes are not UTF-8: {e}") from e

    def try_decrypt(self, value: str, user_id: str) -> str:
        """Decrypt value, or return it unchanged if it is not ciphertext.

        Never raises: legacy plaintext, foreign ciphertext and a missing
        master key all fall through to the input.
        """
        if not isinstance(value, str) or not isinstance(user_id, str):
            return value
        try:
            return self.decrypt(value, user_id)
        except (DecryptionError, EncryptionConfigError, ValueError, TypeError):
            return value

    def read_field(self, value: str, encrypted: bool, user_id: str | None) -> str:
        """Read a stored field according to its row's encrypted flag."""
        if not encrypted or not user_id:
            return value
        return self.try_decrypt(value, user_id)
