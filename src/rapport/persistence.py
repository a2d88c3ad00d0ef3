"""Encrypted persistence of completed exchanges."""

import logging
from dataclasses import dataclass, field
from typing import Any

from .crypto import EncryptionCodec
from .logging import JSONLLogger, get_logger
from .storage import MessageRow, SQLiteStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MessagePair:
    """One completed exchange: the user's message and the full reply."""

    conversation_id: str | None
    user_text: str
    assistant_text: str
    metadata: dict[str, Any] = field(default_factory=dict)
    user_id: str | None = None


@dataclass(frozen=True)
class StoredMessage:
    """A message read back from history, decrypted."""

    role: str
    content: str
    created_at: str | None = None
    metadata: dict[str, Any] | None = None


class PersistenceWriter:
    """Writes message pairs to durable storage, encrypted when enabled.

    A failed write is logged and dropped. The user already has the reply,
    so the write is never retried and never reported back.
    """

    def __init__(
        self,
        store: SQLiteStore,
        codec: EncryptionCodec,
        json_logger: JSONLLogger | None = None,
    ) -> None:
        self.store = store
        self.codec = codec
        self.json_logger = json_logger or get_logger()

    async def save(
        self,
        conversation_id: str,
        user_text: str,
        assistant_text: str,
        metadata: dict[str, Any] | None = None,
        user_id: str | None = None,
    ) -> bool:
        """Save both halves of an exchange in one write.

        Anonymous exchanges (no user_id) have no key subject and are
        stored in plaintext.

        Returns:
            True if the pair was written.
        """
        should_encrypt = False

        try:
            if self.codec.is_encryption_enabled() and user_id:
                should_encrypt = True
                user_text = self.codec.encrypt(user_text, user_id)
                assistant_text = self.codec.encrypt(assistant_text, user_id)

            self.store.insert_message_pair(
                MessageRow(
                    conversation_id=conversation_id,
                    role="user",
                    content=user_text,
                    encrypted=should_encrypt,
                ),
                MessageRow(
                    conversation_id=conversation_id,
                    role="assistant",
                    content=assistant_text,
                    encrypted=should_encrypt,
                    metadata=metadata or None,
                ),
                user_id=user_id,
                coach_id=(metadata or {}).get("persona_id"),
            )
        except Exception as e:
            logger.warning(f"Failed to save message pair for {conversation_id}: {e}")
            self.json_logger.log_persistence(
                False, conversation_id=conversation_id, error=str(e)
            )
            return False

        self.json_logger.log_persistence(
            True, conversation_id=conversation_id, encrypted=should_encrypt
        )
        return True

    async def save_pair(self, pair: MessagePair) -> bool:
        """Save a MessagePair; pairs without a conversation are skipped."""
        if not pair.conversation_id:
            return False
        return await self.save(
            pair.conversation_id,
            pair.user_text,
            pair.assistant_text,
            pair.metadata,
            pair.user_id,
        )

    def load_messages(
        self,
        conversation_id: str,
        user_id: str | None = None,
        limit: int = 100,
    ) -> list[StoredMessage]:
        """Load a conversation's recent messages, oldest first, decrypted."""
        return [
            StoredMessage(
                role=row.role,
                content=self.codec.read_field(row.content, row.encrypted, user_id),
                created_at=row.created_at,
                metadata=row.metadata,
            )
            for row in self.store.list_messages(conversation_id, limit)
        ]
