"""Shared fixtures."""

from pathlib import Path

import pytest

from rapport.crypto import EncryptionCodec
from rapport.logging import JSONLLogger, configure_logger
from rapport.memory import FactStore
from rapport.persistence import PersistenceWriter
from rapport.personas import Persona, PersonaCatalog
from rapport.storage import SQLiteStore

MASTER_KEY = "test-master-key"


@pytest.fixture(autouse=True)
def json_logger(tmp_path: Path) -> JSONLLogger:
    """Route the global JSONL logger into the test's temp directory."""
    return configure_logger(tmp_path / "logs")


@pytest.fixture
def codec() -> EncryptionCodec:
    return EncryptionCodec(MASTER_KEY)


@pytest.fixture
def plain_codec() -> EncryptionCodec:
    """Codec with encryption disabled."""
    return EncryptionCodec(None)


@pytest.fixture
def store(tmp_path: Path) -> SQLiteStore:
    """Create a SQLiteStore with a temporary database."""
    store = SQLiteStore(tmp_path / "test.db")
    store.init_db()
    yield store
    store.close()


@pytest.fixture
def fact_store(store: SQLiteStore, codec: EncryptionCodec) -> FactStore:
    return FactStore(store, codec)


@pytest.fixture
def writer(
    store: SQLiteStore, codec: EncryptionCodec, json_logger: JSONLLogger
) -> PersistenceWriter:
    return PersistenceWriter(store, codec, json_logger=json_logger)


@pytest.fixture
def persona() -> Persona:
    return Persona(
        id="P1",
        name="Coach Maya",
        domain="fitness",
        provider_id="stub",
        model_id="stub-model",
        system_prompt="You are Maya.\n\nKnown about the user:\n{{user_context}}",
    )


@pytest.fixture
def catalog(persona: Persona) -> PersonaCatalog:
    return PersonaCatalog([persona])


