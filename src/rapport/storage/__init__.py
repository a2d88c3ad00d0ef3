"""Durable storage backing the persistence and memory layers."""

from .sqlite import FactRow, MessageRow, SQLiteStore

__all__ = ["FactRow", "MessageRow", "SQLiteStore"]
