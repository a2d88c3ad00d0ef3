"""Provider registry with deferred adapter construction."""

from collections.abc import Callable

from ..config import ProviderSettings
from ..errors import ProviderConfigError
from .anthropic_adapter import AnthropicAdapter, create_anthropic_client
from .base import ProviderAdapter
from .openai_compat import (
    OpenAICompatibleAdapter,
    create_groq_client,
    create_openai_client,
)

AdapterFactory = Callable[[], ProviderAdapter]


class ProviderRegistry:
    """Registry of upstream providers, resolved by provider id.

    Factories run on first use and the adapter is cached afterwards, so a
    provider whose credentials are missing only fails when it is needed.
    """

    def __init__(self) -> None:
        self._factories: dict[str, AdapterFactory] = {}
        self._adapters: dict[str, ProviderAdapter] = {}

    def register(self, provider_id: str, factory: AdapterFactory) -> None:
        """Register a factory for a provider."""
        if provider_id in self._factories:
            raise ValueError(f"Provider '{provider_id}' already registered")
        self._factories[provider_id] = factory

    def list_providers(self) -> list[str]:
        """List all registered provider ids."""
        return list(self._factories.keys())

    def get(self, provider_id: str) -> ProviderAdapter:
        """Return the adapter for provider_id, constructing it if needed.

        Raises:
            ProviderConfigError: If the provider is unknown or cannot be
                constructed from the current configuration.
        """
        adapter = self._adapters.get(provider_id)
        if adapter is not None:
            return adapter

        factory = self._factories.get(provider_id)
        if factory is None:
            raise ProviderConfigError(f"Unknown provider: {provider_id}")

        adapter = factory()
        self._adapters[provider_id] = adapter
        return adapter


def default_registry(settings: ProviderSettings) -> ProviderRegistry:
    """Registry with the OpenAI, Anthropic and Groq providers."""
    registry = ProviderRegistry()
    registry.register(
        "openai",
        lambda: OpenAICompatibleAdapter(
            create_openai_client(settings),
            provider_id="openai",
            max_tokens=settings.max_tokens,
        ),
    )
    registry.register(
        "anthropic",
        lambda: AnthropicAdapter(
            create_anthropic_client(settings),
            max_tokens=settings.max_tokens,
        ),
    )
    registry.register(
        "groq",
        lambda: OpenAICompatibleAdapter(
            create_groq_client(settings),
            provider_id="groq",
            max_tokens=settings.max_tokens,
        ),
    )
    return registry
