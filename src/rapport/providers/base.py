"""Canonical stream events and the provider adapter interface."""

import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Literal, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TextEvent:
    """A text delta from the model."""

    text: str


@dataclass(frozen=True)
class DoneEvent:
    """The model finished normally."""


@dataclass(frozen=True)
class ErrorEvent:
    """The upstream stream failed; no further events follow."""

    message: str


CanonicalEvent = Union[TextEvent, DoneEvent, ErrorEvent]


@dataclass(frozen=True)
class ChatTurn:
    """One prior turn of the conversation."""

    role: Literal["user", "assistant"]
    content: str

    def to_message(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


def is_terminal(event: CanonicalEvent) -> bool:
    """Whether event ends a stream."""
    return isinstance(event, (DoneEvent, ErrorEvent))


class ProviderAdapter(ABC):
    """Base interface for upstream model providers.

    Subclasses only translate their SDK's native stream into text deltas;
    this class turns those into the canonical event sequence.
    """

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Unique provider id, e.g. 'openai'."""
        ...

    @abstractmethod
    def _text_deltas(
        self,
        model_id: str,
        system_prompt: str,
        turns: list[ChatTurn],
    ) -> AsyncIterator[str]:
        """Open the upstream stream and yield its text deltas.

        Implementations must release the upstream connection when the
        iterator is closed early.
        """
        ...

    async def stream_chat(
        self,
        model_id: str,
        system_prompt: str,
        turns: list[ChatTurn],
    ) -> AsyncIterator[CanonicalEvent]:
        """Stream a chat completion as canonical events.

        Yields TextEvent for each non-empty delta, then exactly one
        DoneEvent or ErrorEvent.
        """
        deltas = self._text_deltas(model_id, system_prompt, turns)
        try:
            async for text in deltas:
                if text:
                    yield TextEvent(text)
        except Exception as e:
            logger.warning(f"{self.provider_id} stream failed: {e}")
            yield ErrorEvent(_error_message(e))
            return
        finally:
            await deltas.aclose()

        yield DoneEvent()


def _error_message(error: Exception) -> str:
    return str(error) or type(error).__name__
