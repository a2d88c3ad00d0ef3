"""Relay canonical events to the client while capturing the reply text."""

import json
import logging
import time
from collections.abc import AsyncIterator, Callable
from typing import Any

from .logging import JSONLLogger, get_logger
from .providers import CanonicalEvent, DoneEvent, ErrorEvent, TextEvent

logger = logging.getLogger(__name__)

CompletionHook = Callable[[str], Any]

UNEXPECTED_END = "Upstream stream ended unexpectedly"


class Accumulator:
    """Collects the text deltas of one exchange."""

    def __init__(self) -> None:
        self._parts: list[str] = []
        self._length = 0

    def append(self, text: str) -> None:
        self._parts.append(text)
        self._length += len(text)

    @property
    def text(self) -> str:
        return "".join(self._parts)

    def __len__(self) -> int:
        return self._length

    def __bool__(self) -> bool:
        return self._length > 0


def encode_frame(event: CanonicalEvent) -> bytes:
    """Encode an event as a `data: <json>` stream frame."""
    if isinstance(event, TextEvent):
        payload: dict[str, str] = {"type": "text", "text": event.text}
    elif isinstance(event, DoneEvent):
        payload = {"type": "done"}
    else:
        payload = {"type": "error", "error": event.message}
    return f"data: {json.dumps(payload)}\n\n".encode("utf-8")


def decode_frame(frame: bytes) -> dict[str, Any]:
    """Decode one frame produced by encode_frame()."""
    line = frame.decode("utf-8").strip()
    if not line.startswith("data: "):
        raise ValueError(f"Not a data frame: {line[:40]!r}")
    return json.loads(line[len("data: "):])


class StreamRelay:
    """Forwards one exchange's events to the client as frames.

    The client transport pulls frames from relay(). Every text delta is
    appended to the accumulator and yielded straight away. When the stream
    ends with Done, or the client goes away after some text arrived, the
    completion hook receives the full text. Errors never reach the hook.
    """

    def __init__(
        self,
        on_complete: CompletionHook | None = None,
        json_logger: JSONLLogger | None = None,
        conversation_id: str | None = None,
    ) -> None:
        """Initialize the relay.

        Args:
            on_complete: Called with the reply text after a successful or
                client-cancelled stream. Must not block; it should only
                schedule work.
            json_logger: Structured logger for stream lifecycle events.
            conversation_id: Attached to log entries.
        """
        self.on_complete = on_complete
        self.json_logger = json_logger or get_logger()
        self.conversation_id = conversation_id

    async def relay(
        self,
        events: AsyncIterator[CanonicalEvent],
        accumulator: Accumulator,
    ) -> AsyncIterator[bytes]:
        """Yield client frames for events, ending after one terminal frame."""
        started = time.monotonic()
        reason = "cancelled"
        error: str | None = None

        try:
            async for event in events:
                if isinstance(event, TextEvent):
                    accumulator.append(event.text)
                    yield encode_frame(event)
                    continue

                if isinstance(event, ErrorEvent):
                    reason, error = "error", event.message
                else:
                    reason = "done"
                yield encode_frame(event)
                break
            else:
                reason, error = "error", UNEXPECTED_END
                yield encode_frame(ErrorEvent(UNEXPECTED_END))
        except Exception as e:
            logger.exception("Relay failed while reading upstream events")
            reason, error = "error", str(e) or type(e).__name__
            yield encode_frame(ErrorEvent(error))
        finally:
            self._finish(reason, accumulator, started, error)
            aclose = getattr(events, "aclose", None)
            if aclose is not None:
                await aclose()

    def _finish(
        self,
        reason: str,
        accumulator: Accumulator,
        started: float,
        error: str | None,
    ) -> None:
        """Log the outcome and hand completed text to the hook."""
        self.json_logger.log_stream_end(
            reason,
            conversation_id=self.conversation_id,
            duration_ms=round((time.monotonic() - started) * 1000, 1),
            chars=len(accumulator),
            error=error,
        )

        if reason == "error" or not accumulator or self.on_complete is None:
            return

        try:
            self.on_complete(accumulator.text)
        except Exception:
            logger.exception("Failed to schedule post-processing")
