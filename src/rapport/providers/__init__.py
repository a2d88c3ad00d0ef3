"""Upstream model providers normalized to one canonical event stream."""

from .anthropic_adapter import (
    AnthropicAdapter,
    anthropic_text_deltas,
    create_anthropic_client,
)
from .base import (
    CanonicalEvent,
    ChatTurn,
    DoneEvent,
    ErrorEvent,
    ProviderAdapter,
    TextEvent,
    is_terminal,
)
from .openai_compat import (
    OpenAICompatibleAdapter,
    create_groq_client,
    create_openai_client,
    openai_text_deltas,
)
from .registry import ProviderRegistry, default_registry

__all__ = [
    "AnthropicAdapter",
    "CanonicalEvent",
    "ChatTurn",
    "DoneEvent",
    "ErrorEvent",
    "OpenAICompatibleAdapter",
    "ProviderAdapter",
    "ProviderRegistry",
    "TextEvent",
    "anthropic_text_deltas",
    "create_anthropic_client",
    "create_groq_client",
    "create_openai_client",
    "default_registry",
    "is_terminal",
    "openai_text_deltas",
]
