"""Data models for the memory system."""

from dataclasses import dataclass
from enum import Enum


class FactCategory(str, Enum):
    """What kind of thing a fact says about the user."""

    PERSONAL = "personal"
    GOAL = "goal"
    PREFERENCE = "preference"
    ACHIEVEMENT = "achievement"
    CHALLENGE = "challenge"


MIN_IMPORTANCE = 1
MAX_IMPORTANCE = 10


def clamp_importance(value: float) -> int:
    """Round and clamp an importance score into [1, 10]."""
    return max(MIN_IMPORTANCE, min(MAX_IMPORTANCE, int(round(value))))


@dataclass(frozen=True)
class Fact:
    """A fact extracted from one exchange, not yet stored.

    Attributes:
        fact: Concise statement about the user, e.g. 'Runs 3x per week'.
        category: What kind of fact it is.
        importance: 1 (trivial detail) to 10 (critical goal or identity fact).
    """

    fact: str
    category: FactCategory
    importance: int


@dataclass(frozen=True)
class MemoryFact:
    """A stored fact about a user, scoped to one persona.

    Attributes:
        id: Database ID.
        user_id: Owning user.
        persona_id: Persona the fact was learned by.
        fact: Plaintext fact, decrypted if the row is encrypted.
        category: Fact category, None for rows written without one.
        importance: 1 to 10.
        source: 'conversation', 'intake' or 'wearable'.
        encrypted: Whether the stored row holds ciphertext.
        created_at: ISO timestamp when created.
    """

    id: int | None
    user_id: str
    persona_id: str
    fact: str
    category: FactCategory | None
    importance: int
    source: str = "conversation"
    encrypted: bool = False
    created_at: str | None = None
