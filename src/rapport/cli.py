"""Interactive terminal chat with a persona."""

import uuid

from .errors import RapportError
from .logging import get_logger
from .providers import ChatTurn
from .relay import decode_frame
from .service import ChatRequest, ChatService

BANNER = """
╔══════════════════════════════════════════╗
║              rapport v0.1.0              ║
║       Persona chat with memory           ║
╚══════════════════════════════════════════╝

Commands:
  /exit, /quit  - Exit the CLI
  /reset        - Start a new conversation
  /help         - Show this help

Type your message and press Enter.
"""


class CLI:
    """Streams persona replies to the terminal."""

    def __init__(
        self,
        service: ChatService,
        persona_id: str,
        user_id: str | None = None,
        conversation_id: str | None = None,
        history_limit: int = 20,
    ) -> None:
        self.service = service
        self.persona_id = persona_id
        self.user_id = user_id
        self.history_limit = history_limit
        self.logger = get_logger()
        self.conversation_id = conversation_id or self._new_conversation_id()
        self.history: list[ChatTurn] = self._load_history()

    def _new_conversation_id(self) -> str:
        """Generate a new conversation ID."""
        return f"cli-{uuid.uuid4().hex[:8]}"

    def _load_history(self) -> list[ChatTurn]:
        """Seed history from stored messages of this conversation."""
        messages = self.service.persistence.load_messages(
            self.conversation_id, user_id=self.user_id, limit=self.history_limit
        )
        return [
            ChatTurn(role=m.role, content=m.content)
            for m in messages
            if m.role in ("user", "assistant")
        ]

    def _reset(self) -> None:
        """Start a fresh conversation."""
        old_id = self.conversation_id
        self.conversation_id = self._new_conversation_id()
        self.history = []
        self.logger.log("session_reset", conversation_id=self.conversation_id, old=old_id)
        print(f"\n✓ New conversation: {self.conversation_id}")

    async def _process_message(self, message: str) -> str | None:
        """Stream one reply to stdout.

        Returns:
            The reply text, or None if the stream ended with an error.
        """
        request = ChatRequest(
            persona_id=self.persona_id,
            message=message,
            history=self.history[-self.history_limit:],
            conversation_id=self.conversation_id,
        )

        try:
            frames = await self.service.open_stream(request, user_id=self.user_id)
        except RapportError as e:
            print(f"\n❌ {e}\n")
            self.logger.log("error", conversation_id=self.conversation_id, error=str(e))
            return None

        parts: list[str] = []
        error: str | None = None
        print()
        async for frame in frames:
            data = decode_frame(frame)
            if data["type"] == "text":
                parts.append(data["text"])
                print(data["text"], end="", flush=True)
            elif data["type"] == "error":
                error = data["error"]

        if error is not None:
            print(f"\n❌ {error}\n")
            return None
        print("\n")

        reply = "".join(parts)
        self.history.append(ChatTurn(role="user", content=message))
        self.history.append(ChatTurn(role="assistant", content=reply))
        return reply

    async def _handle_command(self, command: str) -> bool:
        """Handle a special command. Returns True if should continue, False to exit."""
        cmd = command.lower().strip()

        if cmd in ("/exit", "/quit", "exit", "quit"):
            print("\n👋 Goodbye!")
            return False

        if cmd == "/reset":
            self._reset()
            return True

        if cmd == "/help":
            print(BANNER)
            return True

        return True  # Unknown command, continue

    async def run(self) -> None:
        """Run the interactive CLI."""
        persona = self.service.get_persona(self.persona_id)
        print(BANNER)
        print(f"Talking to {persona.name} · conversation {self.conversation_id}\n")

        try:
            while True:
                try:
                    user_input = input("you> ").strip()

                    if not user_input:
                        continue

                    if user_input.startswith("/") or user_input.lower() in ("exit", "quit"):
                        if not await self._handle_command(user_input):
                            break
                        continue

                    await self._process_message(user_input)

                except KeyboardInterrupt:
                    print("\n\n⚡ Interrupted")
                    try:
                        confirm = input("Exit? (y/n): ").strip().lower()
                        if confirm in ("y", "yes"):
                            print("👋 Goodbye!")
                            self.logger.log(
                                "session_interrupt", conversation_id=self.conversation_id
                            )
                            break
                    except (KeyboardInterrupt, EOFError):
                        print("\n👋 Goodbye!")
                        break

                except EOFError:
                    print("\n👋 Goodbye!")
                    break
        finally:
            if self.service.supervisor.pending:
                print("📝 Saving conversation...")
            await self.service.shutdown()
