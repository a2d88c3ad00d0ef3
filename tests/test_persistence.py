"""Tests for PersistenceWriter."""

import json
from unittest.mock import Mock

import pytest

from rapport.crypto import EncryptionCodec
from rapport.errors import PersistenceError
from rapport.logging import JSONLLogger
from rapport.persistence import MessagePair, PersistenceWriter
from rapport.storage import SQLiteStore


def last_log(json_logger: JSONLLogger) -> dict:
    with open(json_logger.log_path) as f:
        return json.loads(f.readlines()[-1])


class TestSave:
    """Tests for PersistenceWriter.save."""

    @pytest.mark.asyncio
    async def test_encrypted_pair(self, writer: PersistenceWriter, store: SQLiteStore):
        saved = await writer.save(
            "c1", "I want to lose 10 lbs", "Great goal!", {"persona_id": "P1"}, "u1"
        )

        rows = store.list_messages("c1")

        assert saved
        assert [r.role for r in rows] == ["user", "assistant"]
        assert all(r.encrypted for r in rows)
        assert "lose 10 lbs" not in rows[0].content
        assert rows[1].metadata == {"persona_id": "P1"}
        assert store.get_conversation("c1")["coach_id"] == "P1"

    @pytest.mark.asyncio
    async def test_read_back_decrypted(self, writer: PersistenceWriter):
        await writer.save("c1", "hello", "hi there", user_id="u1")

        messages = writer.load_messages("c1", user_id="u1")

        assert [(m.role, m.content) for m in messages] == [
            ("user", "hello"),
            ("assistant", "hi there"),
        ]

    @pytest.mark.asyncio
    async def test_anonymous_pair_is_plaintext(
        self, writer: PersistenceWriter, store: SQLiteStore
    ):
        await writer.save("c1", "hello", "hi there")

        rows = store.list_messages("c1")

        assert not any(r.encrypted for r in rows)
        assert rows[0].content == "hello"

    @pytest.mark.asyncio
    async def test_plaintext_when_disabled(
        self, store: SQLiteStore, plain_codec: EncryptionCodec
    ):
        writer = PersistenceWriter(store, plain_codec)

        await writer.save("c1", "hello", "hi", user_id="u1")

        assert store.list_messages("c1")[0].content == "hello"

    @pytest.mark.asyncio
    async def test_store_failure_returns_false(
        self, codec: EncryptionCodec, json_logger: JSONLLogger
    ):
        store = Mock(spec=SQLiteStore)
        store.insert_message_pair.side_effect = PersistenceError("disk full")
        writer = PersistenceWriter(store, codec, json_logger=json_logger)

        assert await writer.save("c1", "a", "b", user_id="u1") is False

        entry = last_log(json_logger)
        assert entry["event"] == "persist_pair"
        assert entry["extra"]["success"] is False
        assert entry["error"] == "disk full"

    @pytest.mark.asyncio
    async def test_success_logged_without_content(
        self, writer: PersistenceWriter, json_logger: JSONLLogger
    ):
        await writer.save("c1", "my secret goal", "ok", user_id="u1")

        entry = last_log(json_logger)
        assert entry["extra"] == {"success": True, "encrypted": True}
        assert "my secret goal" not in json_logger.log_path.read_text()


class TestSavePair:
    @pytest.mark.asyncio
    async def test_saves_pair(self, writer: PersistenceWriter, store: SQLiteStore):
        pair = MessagePair("c1", "hi", "hello", {"persona_id": "P2"}, "u1")

        assert await writer.save_pair(pair)
        assert len(store.list_messages("c1")) == 2

    @pytest.mark.asyncio
    async def test_skips_without_conversation(
        self, writer: PersistenceWriter, store: SQLiteStore
    ):
        pair = MessagePair(None, "hi", "hello")

        assert await writer.save_pair(pair) is False
        assert store.list_messages("") == []


class TestLoadMessages:
    @pytest.mark.asyncio
    async def test_other_user_sees_ciphertext(self, writer: PersistenceWriter):
        await writer.save("c1", "hello", "hi", user_id="u1")

        messages = writer.load_messages("c1", user_id="u2")

        assert messages[0].content != "hello"

    @pytest.mark.asyncio
    async def test_limit(self, writer: PersistenceWriter):
        for i in range(3):
            await writer.save("c1", f"q{i}", f"a{i}", user_id="u1")

        messages = writer.load_messages("c1", user_id="u1", limit=2)

        assert [m.content for m in messages] == ["q2", "a2"]
