"""JSONL logging for observability.

Entries describe what happened to an exchange (stream lifecycle,
persistence, extraction). They never carry message text or facts.
"""

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


@dataclass
class LogEntry:
    """A single log entry."""

    timestamp: str
    event: str
    conversation_id: str | None = None
    persona_id: str | None = None
    provider: str | None = None
    model: str | None = None
    duration_ms: float | None = None
    stopped_reason: str | None = None
    error: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict, excluding None values."""
        data = asdict(self)
        return {k: v for k, v in data.items() if v is not None and v != {} and v != []}


class JSONLLogger:
    """Logger that writes structured logs in JSONL format."""

    def __init__(
        self,
        log_dir: str | Path | None = None,
        filename: str = "events.jsonl",
        max_size_mb: float = 10.0,
    ) -> None:
        if log_dir is None:
            log_dir = Path.home() / ".rapport" / "logs"
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.filename = filename
        self.max_size_bytes = int(max_size_mb * 1024 * 1024)

    @property
    def log_path(self) -> Path:
        """Current log file path."""
        return self.log_dir / self.filename

    def _rotate_if_needed(self) -> None:
        """Rotate log file if it exceeds max size."""
        if not self.log_path.exists():
            return

        if self.log_path.stat().st_size >= self.max_size_bytes:
            timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")
            rotated_name = f"{self.log_path.stem}_{timestamp}.jsonl"
            self.log_path.rename(self.log_dir / rotated_name)

    def _write(self, entry: LogEntry) -> None:
        """Write a log entry to the file."""
        self._rotate_if_needed()

        with open(self.log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry.to_dict()) + "\n")

    def log(
        self,
        event: str,
        *,
        conversation_id: str | None = None,
        persona_id: str | None = None,
        provider: str | None = None,
        model: str | None = None,
        duration_ms: float | None = None,
        stopped_reason: str | None = None,
        error: str | None = None,
        **extra: Any,
    ) -> None:
        """Log an event."""
        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            event=event,
            conversation_id=conversation_id,
            persona_id=persona_id,
            provider=provider,
            model=model,
            duration_ms=duration_ms,
            stopped_reason=stopped_reason,
            error=error,
            extra=extra if extra else {},
        )
        self._write(entry)

    def log_stream_start(
        self,
        *,
        conversation_id: str | None,
        persona_id: str,
        provider: str,
        model: str,
    ) -> None:
        """Log when an upstream stream is opened."""
        self.log(
            "stream_start",
            conversation_id=conversation_id,
            persona_id=persona_id,
            provider=provider,
            model=model,
        )

    def log_stream_end(
        self,
        reason: str,
        *,
        conversation_id: str | None = None,
        duration_ms: float | None = None,
        chars: int = 0,
        error: str | None = None,
    ) -> None:
        """Log when a relayed stream stops, and why."""
        self.log(
            "stream_end",
            conversation_id=conversation_id,
            stopped_reason=reason,
            duration_ms=duration_ms,
            error=error,
            chars=chars,
        )

    def log_persistence(
        self,
        success: bool,
        *,
        conversation_id: str | None = None,
        encrypted: bool = False,
        error: str | None = None,
    ) -> None:
        """Log the outcome of a message pair write."""
        self.log(
            "persist_pair",
            conversation_id=conversation_id,
            error=error if not success else None,
            success=success,
            encrypted=encrypted,
        )

    def log_extraction(
        self,
        *,
        persona_id: str,
        extracted: int,
        stored: int,
        conversation_id: str | None = None,
    ) -> None:
        """Log how many facts were extracted and how many were new."""
        self.log(
            "extract_facts",
            conversation_id=conversation_id,
            persona_id=persona_id,
            extracted=extracted,
            stored=stored,
        )


# Global logger instance
_logger: JSONLLogger | None = None


def get_logger() -> JSONLLogger:
    """Get the global logger instance."""
    global _logger
    if _logger is None:
        _logger = JSONLLogger()
    return _logger


def configure_logger(log_dir: str | Path | None = None, max_size_mb: float = 10.0) -> JSONLLogger:
    """Configure and return the global logger."""
    global _logger
    _logger = JSONLLogger(log_dir=log_dir, max_size_mb=max_size_mb)
    return _logger
