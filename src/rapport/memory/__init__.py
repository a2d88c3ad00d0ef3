"""Memory module for extracting and storing facts about the user."""

from .extractor import FactExtractor
from .models import Fact, FactCategory, MemoryFact, clamp_importance
from .store import FactStore

__all__ = [
    "Fact",
    "FactCategory",
    "FactExtractor",
    "FactStore",
    "MemoryFact",
    "clamp_importance",
]
