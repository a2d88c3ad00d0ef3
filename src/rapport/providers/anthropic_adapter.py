"""Adapter for the Anthropic Messages streaming API."""

from collections.abc import AsyncIterable, AsyncIterator
from typing import Any

from anthropic import AsyncAnthropic

from ..config import ProviderSettings
from ..errors import ProviderConfigError, UpstreamProviderError
from .base import ChatTurn, ProviderAdapter


async def anthropic_text_deltas(events: AsyncIterable[Any]) -> AsyncIterator[str]:
    """Translate Messages stream events into text deltas.

    Only raw `content_block_delta` events with a `text_delta` carry text;
    the SDK's derived `text` events duplicate them and are ignored.
    """
    async for event in events:
        event_type = getattr(event, "type", None)
        if event_type is None:
            raise UpstreamProviderError("Malformed stream event: missing type")

        if event_type == "error":
            error = getattr(event, "error", None)
            message = getattr(error, "message", None) or "Upstream stream error"
            raise UpstreamProviderError(message)

        if event_type != "content_block_delta":
            continue

        delta = getattr(event, "delta", None)
        if getattr(delta, "type", None) == "text_delta":
            yield delta.text


class AnthropicAdapter(ProviderAdapter):
    """Streams from Anthropic's `messages.stream` helper."""

    def __init__(self, client: AsyncAnthropic, max_tokens: int = 2048) -> None:
        self.client = client
        self.max_tokens = max_tokens

    @property
    def provider_id(self) -> str:
        return "anthropic"

    async def _text_deltas(
        self,
        model_id: str,
        system_prompt: str,
        turns: list[ChatTurn],
    ) -> AsyncIterator[str]:
        async with self.client.messages.stream(
            model=model_id,
            max_tokens=self.max_tokens,
            system=system_prompt,
            messages=[turn.to_message() for turn in turns],
        ) as stream:
            async for text in anthropic_text_deltas(stream):
                yield text


def create_anthropic_client(settings: ProviderSettings) -> AsyncAnthropic:
    """Build an AsyncAnthropic client, failing if no key is configured."""
    if not settings.anthropic_api_key:
        raise ProviderConfigError("ANTHROPIC_API_KEY is not set")
    return AsyncAnthropic(
        api_key=settings.anthropic_api_key,
        timeout=settings.timeout,
        max_retries=settings.max_retries,
    )
