"""SQLite storage for conversations, messages and memory facts.

Rows are stored exactly as given: encryption and decryption happen in the
layers above, and the `encrypted` column records which form a row holds.
"""

import json
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from ..errors import PersistenceError


@dataclass(frozen=True)
class MessageRow:
    """A stored message as it sits in the database."""

    conversation_id: str
    role: str
    content: str
    encrypted: bool
    metadata: dict[str, Any] | None = None
    id: int | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class FactRow:
    """A stored memory fact as it sits in the database."""

    user_id: str
    coach_id: str
    fact: str
    category: str | None
    importance: int
    source: str
    encrypted: bool
    id: int | None = None
    created_at: str | None = None


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SQLiteStore:
    """Persistent storage using SQLite.

    One connection is shared by all coroutines on the event loop; each
    method runs to completion without yielding to other tasks.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the store with a database path.

        Args:
            db_path: Path to the SQLite database file.
        """
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def init_db(self) -> None:
        """Create tables if they don't exist."""
        conn = self._get_connection()
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS conversations (
                id               TEXT PRIMARY KEY,
                user_id          TEXT,
                coach_id         TEXT,
                started_at       TEXT NOT NULL,
                last_message_at  TEXT,
                message_count    INTEGER NOT NULL DEFAULT 0
            );

            CREATE TABLE IF NOT EXISTS messages (
                id               INTEGER PRIMARY KEY AUTOINCREMENT,
                conversation_id  TEXT NOT NULL,
                role             TEXT NOT NULL,
                content          TEXT NOT NULL,
                metadata         TEXT,
                encrypted        INTEGER NOT NULL DEFAULT 0,
                created_at       TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_messages_conversation
                ON messages(conversation_id, created_at);

            CREATE TABLE IF NOT EXISTS coach_memory (
                id          INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id     TEXT NOT NULL,
                coach_id    TEXT NOT NULL,
                fact        TEXT NOT NULL,
                category    TEXT,
                importance  INTEGER NOT NULL DEFAULT 5,
                source      TEXT NOT NULL DEFAULT 'conversation',
                encrypted   INTEGER NOT NULL DEFAULT 0,
                created_at  TEXT NOT NULL,
                updated_at  TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_coach_memory_owner
                ON coach_memory(user_id, coach_id);
        """)
        conn.commit()

    def insert_message_pair(
        self,
        user_row: MessageRow,
        assistant_row: MessageRow,
        *,
        user_id: str | None = None,
        coach_id: str | None = None,
    ) -> None:
        """Insert a user/assistant pair and update conversation metadata.

        Everything happens in one transaction: either both messages are
        stored or neither is.

        Raises:
            PersistenceError: If the transaction fails.
        """
        conversation_id = user_row.conversation_id
        now = _now()
        # +1ms keeps the assistant reply ordered after the user message
        stamps = [now.isoformat(), (now + timedelta(milliseconds=1)).isoformat()]

        conn = self._get_connection()
        try:
            with conn:
                conn.executemany(
                    """
                    INSERT INTO messages
                        (conversation_id, role, content, metadata, encrypted, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (
                            row.conversation_id,
                            row.role,
                            row.content,
                            json.dumps(row.metadata) if row.metadata else None,
                            int(row.encrypted),
                            stamp,
                        )
                        for row, stamp in zip((user_row, assistant_row), stamps)
                    ],
                )
                conn.execute(
                    """
                    INSERT INTO conversations
                        (id, user_id, coach_id, started_at, last_message_at, message_count)
                    VALUES (?, ?, ?, ?, ?,
                        (SELECT COUNT(*) FROM messages WHERE conversation_id = ?))
                    ON CONFLICT(id) DO UPDATE SET
                        last_message_at = excluded.last_message_at,
                        message_count = excluded.message_count
                    """,
                    (
                        conversation_id,
                        user_id,
                        coach_id,
                        stamps[0],
                        stamps[1],
                        conversation_id,
                    ),
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to save message pair: {e}") from e

    def list_messages(self, conversation_id: str, limit: int = 100) -> list[MessageRow]:
        """Get the most recent messages of a conversation, oldest first."""
        if limit <= 0:
            return []

        conn = self._get_connection()
        cursor = conn.execute(
            """
            SELECT * FROM (
                SELECT id, conversation_id, role, content, metadata, encrypted, created_at
                FROM messages
                WHERE conversation_id = ?
                ORDER BY id DESC
                LIMIT ?
            ) ORDER BY id ASC
            """,
            (conversation_id, limit),
        )
        return [self._row_to_message(row) for row in cursor.fetchall()]

    def get_conversation(self, conversation_id: str) -> dict[str, Any] | None:
        """Get conversation metadata, or None if it has no messages yet."""
        conn = self._get_connection()
        row = conn.execute(
            "SELECT * FROM conversations WHERE id = ?", (conversation_id,)
        ).fetchone()
        return dict(row) if row else None

    def list_facts(self, user_id: str, coach_id: str) -> list[FactRow]:
        """Get every fact stored for a user and coach, unordered."""
        conn = self._get_connection()
        cursor = conn.execute(
            """
            SELECT id, user_id, coach_id, fact, category, importance, source,
                   encrypted, created_at
            FROM coach_memory
            WHERE user_id = ? AND coach_id = ?
            """,
            (user_id, coach_id),
        )
        return [self._row_to_fact(row) for row in cursor.fetchall()]

    def load_facts(self, user_id: str, coach_id: str, limit: int = 50) -> list[FactRow]:
        """Get facts ranked by importance, then most recent first."""
        conn = self._get_connection()
        cursor = conn.execute(
            """
            SELECT id, user_id, coach_id, fact, category, importance, source,
                   encrypted, created_at
            FROM coach_memory
            WHERE user_id = ? AND coach_id = ?
            ORDER BY importance DESC, created_at DESC, id DESC
            LIMIT ?
            """,
            (user_id, coach_id, limit),
        )
        return [self._row_to_fact(row) for row in cursor.fetchall()]

    def insert_facts(self, rows: list[FactRow]) -> int:
        """Insert fact rows in one transaction.

        Returns:
            Number of rows inserted.

        Raises:
            PersistenceError: If the transaction fails.
        """
        if not rows:
            return 0

        now = _now().isoformat()
        conn = self._get_connection()
        try:
            with conn:
                conn.executemany(
                    """
                    INSERT INTO coach_memory
                        (user_id, coach_id, fact, category, importance, source,
                         encrypted, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (
                            row.user_id,
                            row.coach_id,
                            row.fact,
                            row.category,
                            row.importance,
                            row.source,
                            int(row.encrypted),
                            now,
                            now,
                        )
                        for row in rows
                    ],
                )
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to save memory facts: {e}") from e
        return len(rows)

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _row_to_message(self, row: sqlite3.Row) -> MessageRow:
        """Convert a database row to a MessageRow."""
        return MessageRow(
            id=row["id"],
            conversation_id=row["conversation_id"],
            role=row["role"],
            content=row["content"],
            metadata=json.loads(row["metadata"]) if row["metadata"] else None,
            encrypted=bool(row["encrypted"]),
            created_at=row["created_at"],
        )

    def _row_to_fact(self, row: sqlite3.Row) -> FactRow:
        """Convert a database row to a FactRow."""
        return FactRow(
            id=row["id"],
            user_id=row["user_id"],
            coach_id=row["coach_id"],
            fact=row["fact"],
            category=row["category"],
            importance=row["importance"],
            source=row["source"],
            encrypted=bool(row["encrypted"]),
            created_at=row["created_at"],
        )
