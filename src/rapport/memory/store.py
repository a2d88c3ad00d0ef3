"""Deduplicating, encryption-aware storage of memory facts."""

from ..crypto import EncryptionCodec
from ..storage import FactRow, SQLiteStore
from .models import Fact, FactCategory, MemoryFact


class FactStore:
    """Stores facts per (user, persona) and loads them ranked.

    Deduplication compares decrypted fact text case-insensitively against
    what is already stored. It is a read-then-insert check, not a storage
    constraint: two saves for the same user and persona that overlap can
    both insert the same new fact.
    """

    def __init__(self, store: SQLiteStore, codec: EncryptionCodec) -> None:
        """Initialize with a backing store and encryption codec.

        Args:
            store: The SQLiteStore for persistence.
            codec: Codec used to encrypt new facts and read stored ones.
        """
        self.store = store
        self.codec = codec

    def save(self, user_id: str, persona_id: str, facts: list[Fact]) -> int:
        """Save facts not already known for this user and persona.

        Returns:
            Number of facts inserted.
        """
        if not facts:
            return 0

        known = {
            self.codec.read_field(row.fact, row.encrypted, user_id).lower()
            for row in self.store.list_facts(user_id, persona_id)
        }

        new_facts = []
        for fact in facts:
            key = fact.fact.lower()
            if key in known:
                continue
            known.add(key)
            new_facts.append(fact)

        if not new_facts:
            return 0

        should_encrypt = self.codec.is_encryption_enabled()
        rows = [
            FactRow(
                user_id=user_id,
                coach_id=persona_id,
                fact=self.codec.encrypt(f.fact, user_id) if should_encrypt else f.fact,
                category=f.category.value,
                importance=f.importance,
                source="conversation",
                encrypted=should_encrypt,
            )
            for f in new_facts
        ]
        return self.store.insert_facts(rows)

    def load(self, user_id: str, persona_id: str, limit: int = 50) -> list[MemoryFact]:
        """Load facts, most important and then most recent first, decrypted."""
        return [
            self._to_memory_fact(row, user_id)
            for row in self.store.load_facts(user_id, persona_id, limit)
        ]

    def _to_memory_fact(self, row: FactRow, user_id: str) -> MemoryFact:
        try:
            category = FactCategory(row.category) if row.category else None
        except ValueError:
            category = None
        return MemoryFact(
            id=row.id,
            user_id=row.user_id,
            persona_id=row.coach_id,
            fact=self.codec.read_field(row.fact, row.encrypted, user_id),
            category=category,
            importance=row.importance,
            source=row.source,
            encrypted=row.encrypted,
            created_at=row.created_at,
        )
