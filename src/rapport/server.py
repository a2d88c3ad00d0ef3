"""HTTP streaming endpoint for persona chat."""

import logging
from contextlib import asynccontextmanager
from typing import Literal

from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import AliasChoices, BaseModel, Field

from .errors import InvalidRequestError, PersonaNotFoundError, ProviderConfigError
from .providers import ChatTurn
from .service import ChatRequest, ChatService

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class HistoryTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatBody(BaseModel):
    """Inbound chat request body."""

    persona_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("personaId", "persona_id", "coachId"),
    )
    message: str | None = None
    history: list[HistoryTurn] = Field(default_factory=list)
    conversation_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("conversationId", "conversation_id"),
    )

    def to_request(self) -> ChatRequest:
        return ChatRequest(
            persona_id=self.persona_id or "",
            message=self.message or "",
            history=[ChatTurn(role=t.role, content=t.content) for t in self.history],
            conversation_id=self.conversation_id,
        )


async def get_user_id() -> str | None:
    """Identify the caller.

    Authentication lives outside this service; deployments override this
    dependency. The default treats every caller as anonymous.
    """
    return None


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def create_app(service: ChatService) -> FastAPI:
    """Build the FastAPI application around a chat service."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        logger.info("Draining background tasks before shutdown...")
        await service.shutdown()

    app = FastAPI(title="rapport", lifespan=lifespan)
    app.state.service = service

    @app.get("/api/health")
    async def health() -> dict:
        return {
            "status": "ok",
            "personas": len(service.catalog),
            "background_tasks": service.supervisor.pending,
        }

    @app.post("/api/chat")
    async def chat(body: ChatBody, user_id: str | None = Depends(get_user_id)):
        try:
            frames = await service.open_stream(body.to_request(), user_id=user_id)
        except InvalidRequestError as e:
            return _error(400, str(e))
        except PersonaNotFoundError:
            return _error(404, "Persona not found")
        except ProviderConfigError as e:
            logger.error(f"Provider configuration error: {e}")
            return _error(500, str(e))

        return StreamingResponse(
            frames,
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )

    return app
