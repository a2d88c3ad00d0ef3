"""Chat service: one exchange from request to background memory work."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass, field

from .config import RapportConfig
from .crypto import EncryptionCodec
from .errors import (
    InvalidRequestError,
    PersonaNotFoundError,
    ProviderConfigError,
)
from .logging import JSONLLogger, get_logger
from .memory import FactExtractor, FactStore, MemoryFact
from .persistence import MessagePair, PersistenceWriter
from .personas import Persona, PersonaCatalog, load_personas
from .prompt import build_system_prompt
from .providers import (
    ChatTurn,
    ProviderRegistry,
    create_groq_client,
    create_openai_client,
    default_registry,
)
from .relay import Accumulator, StreamRelay
from .storage import SQLiteStore
from .tasks import TaskSupervisor

logger = logging.getLogger(__name__)


@dataclass
class ChatRequest:
    """An inbound chat message for a persona."""

    persona_id: str
    message: str
    history: list[ChatTurn] = field(default_factory=list)
    conversation_id: str | None = None

    def validate(self) -> None:
        """Reject requests missing a persona or a message.

        Raises:
            InvalidRequestError: If persona_id or message is blank.
        """
        if not (self.persona_id or "").strip() or not (self.message or "").strip():
            raise InvalidRequestError("Missing personaId or message")


class ChatService:
    """Streams persona replies and records each exchange afterwards.

    Post-processing (persisting the pair, extracting facts) runs as a
    detached task once the reply is complete. Its failures are logged and
    never reach the client.
    """

    def __init__(
        self,
        catalog: PersonaCatalog,
        registry: ProviderRegistry,
        persistence: PersistenceWriter,
        fact_store: FactStore,
        extractor: FactExtractor | None = None,
        supervisor: TaskSupervisor | None = None,
        json_logger: JSONLLogger | None = None,
        memory_limit: int = 50,
    ) -> None:
        self.catalog = catalog
        self.registry = registry
        self.persistence = persistence
        self.fact_store = fact_store
        self.extractor = extractor
        self.json_logger = json_logger or get_logger()
        self.supervisor = supervisor or TaskSupervisor(self.json_logger)
        self.memory_limit = memory_limit

    def get_persona(self, persona_id: str) -> Persona:
        """Look up a persona.

        Raises:
            PersonaNotFoundError: If the catalog has no such persona.
        """
        persona = self.catalog.get(persona_id)
        if persona is None:
            raise PersonaNotFoundError(f"Persona not found: {persona_id}")
        return persona

    def load_memories(self, user_id: str | None, persona_id: str) -> list[MemoryFact]:
        """Load what is known about the user; failures mean no memories."""
        if not user_id:
            return []
        try:
            return self.fact_store.load(user_id, persona_id, self.memory_limit)
        except Exception as e:
            logger.warning(f"Failed to load memories for persona {persona_id}: {e}")
            return []

    async def open_stream(
        self,
        request: ChatRequest,
        user_id: str | None = None,
    ) -> AsyncIterator[bytes]:
        """Prepare an exchange and return its client frame stream.

        Validation, persona lookup and provider resolution all happen
        here, before any upstream connection is opened.

        Raises:
            InvalidRequestError: If the request is missing fields.
            PersonaNotFoundError: If the persona does not exist.
            ProviderConfigError: If the persona's provider is unusable.
        """
        request.validate()
        persona = self.get_persona(request.persona_id)
        adapter = self.registry.get(persona.provider_id)

        memories = self.load_memories(user_id, persona.id)
        system_prompt = build_system_prompt(persona, memories)
        turns = [*request.history, ChatTurn(role="user", content=request.message)]

        def on_complete(reply: str) -> None:
            pair = MessagePair(
                conversation_id=request.conversation_id,
                user_text=request.message,
                assistant_text=reply,
                metadata={
                    "persona_id": persona.id,
                    "provider_id": persona.provider_id,
                    "model_id": persona.model_id,
                },
                user_id=user_id,
            )
            self.supervisor.spawn(
                self.post_process(pair, persona),
                name=f"post-process-{request.conversation_id or 'anonymous'}",
            )

        self.json_logger.log_stream_start(
            conversation_id=request.conversation_id,
            persona_id=persona.id,
            provider=persona.provider_id,
            model=persona.model_id,
        )
        relay = StreamRelay(
            on_complete=on_complete,
            json_logger=self.json_logger,
            conversation_id=request.conversation_id,
        )
        events = adapter.stream_chat(persona.model_id, system_prompt, turns)
        return relay.relay(events, Accumulator())

    async def post_process(self, pair: MessagePair, persona: Persona) -> None:
        """Persist the pair and extract facts concurrently."""
        await asyncio.gather(
            self._persist(pair),
            self._remember(pair, persona),
        )

    async def _persist(self, pair: MessagePair) -> bool:
        if not pair.conversation_id:
            return False
        try:
            return await self.persistence.save_pair(pair)
        except Exception:
            logger.exception("Message persistence failed")
            return False

    async def _remember(self, pair: MessagePair, persona: Persona) -> int:
        if not pair.user_id or self.extractor is None:
            return 0
        try:
            facts = await self.extractor.extract(
                pair.user_text, pair.assistant_text, persona.domain
            )
            stored = self.fact_store.save(pair.user_id, persona.id, facts) if facts else 0
        except Exception:
            logger.exception("Memory processing failed")
            return 0

        self.json_logger.log_extraction(
            conversation_id=pair.conversation_id,
            persona_id=persona.id,
            extracted=len(facts),
            stored=stored,
        )
        return stored

    async def shutdown(self, timeout: float | None = 10.0) -> None:
        """Let in-flight post-processing finish, then close storage."""
        await self.supervisor.drain(timeout)
        self.persistence.store.close()


def _build_extractor(config: RapportConfig) -> FactExtractor | None:
    """Create the fact extractor, or None if its provider has no key."""
    factories = {"openai": create_openai_client, "groq": create_groq_client}
    factory = factories.get(config.extraction.provider)
    if factory is None:
        logger.warning(f"Unsupported extraction provider: {config.extraction.provider}")
        return None
    try:
        client = factory(config.providers)
    except ProviderConfigError as e:
        logger.warning(f"Fact extraction disabled: {e}")
        return None
    return FactExtractor(
        client,
        model=config.extraction.model,
        max_tokens=config.extraction.max_tokens,
    )


def create_service(
    config: RapportConfig,
    json_logger: JSONLLogger | None = None,
) -> ChatService:
    """Wire a ChatService from configuration."""
    json_logger = json_logger or get_logger()

    store = SQLiteStore(config.storage.db_path)
    store.init_db()
    codec = EncryptionCodec(config.encryption.master_key, enabled=config.encryption.enabled)
    if not codec.is_encryption_enabled():
        logger.warning("Encryption at rest is disabled; new records are stored in plaintext")

    if config.storage.personas_path is not None:
        catalog = load_personas(config.storage.personas_path)
    else:
        logger.warning("RAPPORT_PERSONAS not set; no personas available")
        catalog = PersonaCatalog()

    return ChatService(
        catalog=catalog,
        registry=default_registry(config.providers),
        persistence=PersistenceWriter(store, codec, json_logger=json_logger),
        fact_store=FactStore(store, codec),
        extractor=_build_extractor(config),
        supervisor=TaskSupervisor(json_logger),
        json_logger=json_logger,
        memory_limit=config.storage.memory_limit,
    )
