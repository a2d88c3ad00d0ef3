"""Tests for SQLiteStore."""

import sqlite3
from pathlib import Path

import pytest

from rapport.errors import PersistenceError
from rapport.storage import FactRow, MessageRow, SQLiteStore


def message(conversation_id: str, role: str, content: str, **kwargs) -> MessageRow:
    return MessageRow(
        conversation_id=conversation_id,
        role=role,
        content=content,
        encrypted=kwargs.pop("encrypted", False),
        **kwargs,
    )


def fact(text: str, importance: int = 5, **kwargs) -> FactRow:
    return FactRow(
        user_id=kwargs.pop("user_id", "u1"),
        coach_id=kwargs.pop("coach_id", "P1"),
        fact=text,
        category=kwargs.pop("category", "goal"),
        importance=importance,
        source="conversation",
        encrypted=kwargs.pop("encrypted", False),
    )


class TestInit:
    def test_creates_parent_directory(self, tmp_path: Path):
        store = SQLiteStore(tmp_path / "nested" / "dir" / "rapport.db")
        store.init_db()
        assert (tmp_path / "nested" / "dir" / "rapport.db").exists()
        store.close()

    def test_init_is_idempotent(self, store: SQLiteStore):
        store.init_db()
        store.init_db()


class TestMessagePairs:
    """Tests for insert_message_pair and list_messages."""

    def test_pair_round_trip(self, store: SQLiteStore):
        store.insert_message_pair(
            message("c1", "user", "hi"),
            message("c1", "assistant", "hello!", metadata={"model_id": "gpt-4o"}),
            user_id="u1",
            coach_id="P1",
        )

        rows = store.list_messages("c1")

        assert [(r.role, r.content) for r in rows] == [("user", "hi"), ("assistant", "hello!")]
        assert rows[0].metadata is None
        assert rows[1].metadata == {"model_id": "gpt-4o"}
        assert rows[0].created_at < rows[1].created_at

    def test_encrypted_flag_stored(self, store: SQLiteStore):
        store.insert_message_pair(
            message("c1", "user", "cipher-u", encrypted=True),
            message("c1", "assistant", "cipher-a", encrypted=True),
        )
        assert all(r.encrypted for r in store.list_messages("c1"))

    def test_conversation_metadata(self, store: SQLiteStore):
        for i in range(2):
            store.insert_message_pair(
                message("c1", "user", f"q{i}"),
                message("c1", "assistant", f"a{i}"),
                user_id="u1",
                coach_id="P1",
            )

        conversation = store.get_conversation("c1")

        assert conversation["message_count"] == 4
        assert conversation["user_id"] == "u1"
        assert conversation["coach_id"] == "P1"
        assert conversation["last_message_at"] >= conversation["started_at"]

    def test_unknown_conversation(self, store: SQLiteStore):
        assert store.get_conversation("nope") is None
        assert store.list_messages("nope") == []

    def test_limit_keeps_most_recent_oldest_first(self, store: SQLiteStore):
        for i in range(3):
            store.insert_message_pair(
                message("c1", "user", f"q{i}"),
                message("c1", "assistant", f"a{i}"),
            )

        rows = store.list_messages("c1", limit=3)

        assert [r.content for r in rows] == ["a1", "q2", "a2"]
        assert store.list_messages("c1", limit=0) == []

    def test_conversations_isolated(self, store: SQLiteStore):
        store.insert_message_pair(message("c1", "user", "x"), message("c1", "assistant", "y"))
        store.insert_message_pair(message("c2", "user", "z"), message("c2", "assistant", "w"))

        assert [r.content for r in store.list_messages("c2")] == ["z", "w"]

    def test_failed_pair_writes_nothing(self, store: SQLiteStore):
        """A failure part-way leaves neither message behind."""
        conn = store._get_connection()
        conn.execute("""
            CREATE TRIGGER reject_assistant BEFORE INSERT ON messages
            WHEN NEW.role = 'assistant'
            BEGIN SELECT RAISE(ABORT, 'rejected'); END
        """)

        with pytest.raises(PersistenceError):
            store.insert_message_pair(
                message("c1", "user", "hi"), message("c1", "assistant", "hello")
            )

        assert store.list_messages("c1") == []
        assert store.get_conversation("c1") is None

    def test_missing_table_raises_persistence_error(self, tmp_path: Path):
        store = SQLiteStore(tmp_path / "x.db")
        store.init_db()
        store._get_connection().execute("DROP TABLE messages")

        with pytest.raises(PersistenceError):
            store.insert_message_pair(message("c", "user", "a"), message("c", "assistant", "b"))
        store.close()


class TestFacts:
    """Tests for the coach_memory table."""

    def test_insert_and_list(self, store: SQLiteStore):
        assert store.insert_facts([fact("Runs 3x per week"), fact("Has two kids")]) == 2

        rows = store.list_facts("u1", "P1")

        assert {r.fact for r in rows} == {"Runs 3x per week", "Has two kids"}
        assert all(r.source == "conversation" for r in rows)
        assert all(r.created_at for r in rows)

    def test_insert_nothing(self, store: SQLiteStore):
        assert store.insert_facts([]) == 0

    def test_scoped_by_user_and_persona(self, store: SQLiteStore):
        store.insert_facts([
            fact("a"),
            fact("b", user_id="u2"),
            fact("c", coach_id="P2"),
        ])

        assert [r.fact for r in store.list_facts("u1", "P1")] == ["a"]
        assert [r.fact for r in store.load_facts("u2", "P1")] == ["b"]

    def test_load_ranked_by_importance_then_recency(self, store: SQLiteStore):
        store.insert_facts([fact("low", 2)])
        store.insert_facts([fact("high", 9)])
        store.insert_facts([fact("mid-old", 5)])
        store.insert_facts([fact("mid-new", 5)])

        rows = store.load_facts("u1", "P1")

        assert [r.fact for r in rows] == ["high", "mid-new", "mid-old", "low"]

    def test_load_limit(self, store: SQLiteStore):
        store.insert_facts([fact(f"f{i}", i + 1) for i in range(5)])

        rows = store.load_facts("u1", "P1", limit=2)

        assert [r.importance for r in rows] == [5, 4]

    def test_null_category_round_trip(self, store: SQLiteStore):
        conn = store._get_connection()
        conn.execute(
            "INSERT INTO coach_memory (user_id, coach_id, fact, created_at, updated_at) "
            "VALUES ('u1', 'P1', 'legacy', '2024-01-01', '2024-01-01')"
        )
        conn.commit()

        row = store.load_facts("u1", "P1")[0]

        assert row.category is None
        assert row.importance == 5
        assert not row.encrypted


def test_connection_is_shared(store: SQLiteStore):
    assert store._get_connection() is store._get_connection()
    assert isinstance(store._get_connection(), sqlite3.Connection)
