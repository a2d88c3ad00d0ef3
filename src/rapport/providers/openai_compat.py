"""Adapters for providers speaking the OpenAI chat-completions stream shape.

OpenAI and Groq both stream `chat.completion.chunk` objects whose text
lives in `choices[0].delta.content`.
"""

from collections.abc import AsyncIterable, AsyncIterator
from typing import Any

from groq import AsyncGroq
from openai import AsyncOpenAI

from ..config import ProviderSettings
from ..errors import ProviderConfigError, UpstreamProviderError
from .base import ChatTurn, ProviderAdapter


async def openai_text_deltas(chunks: AsyncIterable[Any]) -> AsyncIterator[str]:
    """Translate chat-completion chunks into text deltas.

    Chunks without choices (usage trailers) are skipped. A chunk with no
    `choices` attribute at all is malformed.
    """
    async for chunk in chunks:
        choices = getattr(chunk, "choices", None)
        if choices is None:
            raise UpstreamProviderError("Malformed stream chunk: missing choices")
        if not choices:
            continue
        delta = getattr(choices[0], "delta", None)
        content = getattr(delta, "content", None) if delta is not None else None
        if content:
            yield content


class OpenAICompatibleAdapter(ProviderAdapter):
    """Streams from any client exposing `chat.completions.create(stream=True)`."""

    def __init__(
        self,
        client: AsyncOpenAI | AsyncGroq,
        provider_id: str = "openai",
        max_tokens: int = 2048,
    ) -> None:
        """Initialize the adapter.

        Args:
            client: An AsyncOpenAI or AsyncGroq client.
            provider_id: Id this adapter is registered under.
            max_tokens: Upper bound on generated tokens.
        """
        self.client = client
        self._provider_id = provider_id
        self.max_tokens = max_tokens

    @property
    def provider_id(self) -> str:
        return self._provider_id

    def _build_messages(
        self, system_prompt: str, turns: list[ChatTurn]
    ) -> list[dict[str, str]]:
        messages = [{"role": "system", "content": system_prompt}]
        messages.extend(turn.to_message() for turn in turns)
        return messages

    async def _text_deltas(
        self,
        model_id: str,
        system_prompt: str,
        turns: list[ChatTurn],
    ) -> AsyncIterator[str]:
        stream = await self.client.chat.completions.create(
            model=model_id,
            messages=self._build_messages(system_prompt, turns),
            max_tokens=self.max_tokens,
            stream=True,
        )
        try:
            async for text in openai_text_deltas(stream):
                yield text
        finally:
            await stream.close()


def create_openai_client(settings: ProviderSettings) -> AsyncOpenAI:
    """Build an AsyncOpenAI client, failing if no key is configured."""
    if not settings.openai_api_key:
        raise ProviderConfigError("OPENAI_API_KEY is not set")
    return AsyncOpenAI(
        api_key=settings.openai_api_key,
        timeout=settings.timeout,
        max_retries=settings.max_retries,
    )


def create_groq_client(settings: ProviderSettings) -> AsyncGroq:
    """Build an AsyncGroq client, failing if no key is configured."""
    if not settings.groq_api_key:
        raise ProviderConfigError("GROQ_API_KEY is not set")
    return AsyncGroq(
        api_key=settings.groq_api_key,
        timeout=settings.timeout,
        max_retries=settings.max_retries,
    )
