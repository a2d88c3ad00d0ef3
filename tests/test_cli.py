"""Tests for CLI."""

import pytest

from rapport.cli import CLI
from rapport.errors import ProviderConfigError
from rapport.persistence import PersistenceWriter
from rapport.providers import ProviderRegistry
from rapport.service import ChatService

from tests.fakes import ScriptedAdapter, registry_with


def make_cli(adapter, catalog, writer, fact_store, **kwargs) -> CLI:
    service = ChatService(
        catalog=catalog,
        registry=registry_with(adapter),
        persistence=writer,
        fact_store=fact_store,
    )
    return CLI(service, persona_id="P1", **kwargs)


@pytest.fixture
def cli(catalog, writer, fact_store) -> CLI:
    return make_cli(ScriptedAdapter(["Hello", "!"]), catalog, writer, fact_store, user_id="U1")


def test_new_conversation_id(cli: CLI) -> None:
    """Test conversation ID generation."""
    assert cli.conversation_id.startswith("cli-")
    assert len(cli.conversation_id) == 12  # "cli-" + 8 hex chars


def test_reset_changes_conversation_id(cli: CLI) -> None:
    """Test that reset generates a new conversation_id."""
    old_id = cli.conversation_id
    cli.history = ["stale"]
    cli._reset()
    assert cli.conversation_id != old_id
    assert cli.conversation_id.startswith("cli-")
    assert cli.history == []


@pytest.mark.asyncio
async def test_handle_command_exit(cli: CLI) -> None:
    """Test exit commands return False."""
    assert await cli._handle_command("/exit") is False
    assert await cli._handle_command("quit") is False


@pytest.mark.asyncio
async def test_handle_command_help(cli: CLI) -> None:
    """Test help command returns True."""
    assert await cli._handle_command("/help") is True


@pytest.mark.asyncio
async def test_handle_command_reset(cli: CLI) -> None:
    """Test reset command returns True."""
    old_id = cli.conversation_id
    assert await cli._handle_command("/reset") is True
    assert cli.conversation_id != old_id


@pytest.mark.asyncio
async def test_process_message_streams_reply(cli: CLI, capsys) -> None:
    reply = await cli._process_message("hi")
    await cli.service.supervisor.drain()

    assert reply == "Hello!"
    assert "Hello!" in capsys.readouterr().out
    assert [t.content for t in cli.history] == ["hi", "Hello!"]


@pytest.mark.asyncio
async def test_process_message_error(catalog, writer, fact_store, capsys) -> None:
    cli = make_cli(
        ScriptedAdapter([], error=RuntimeError("rate limited")), catalog, writer, fact_store
    )

    reply = await cli._process_message("hi")

    assert reply is None
    assert "rate limited" in capsys.readouterr().out
    assert cli.history == []


@pytest.mark.asyncio
async def test_resume_loads_history(
    catalog, writer: PersistenceWriter, fact_store
) -> None:
    await writer.save("C1", "hi", "hello", user_id="U1")

    cli = make_cli(
        ScriptedAdapter([]), catalog, writer, fact_store, user_id="U1", conversation_id="C1"
    )

    assert cli.conversation_id == "C1"
    assert [(t.role, t.content) for t in cli.history] == [
        ("user", "hi"),
        ("assistant", "hello"),
    ]


def scripted_input(monkeypatch, *answers) -> None:
    """Feed input() from answers; exceptions in answers are raised."""
    replies = iter(answers)

    def fake_input(prompt: str = "") -> str:
        reply = next(replies)
        if isinstance(reply, BaseException):
            raise reply
        return reply

    monkeypatch.setattr("builtins.input", fake_input)


@pytest.mark.asyncio
async def test_run_reports_provider_config_error(
    catalog, writer, fact_store, monkeypatch, capsys
) -> None:
    """A provider without credentials is reported and the session continues."""
    registry = ProviderRegistry()

    def missing_key():
        raise ProviderConfigError("ANTHROPIC_API_KEY is not set")

    registry.register("stub", missing_key)
    service = ChatService(
        catalog=catalog, registry=registry, persistence=writer, fact_store=fact_store
    )
    cli = CLI(service, persona_id="P1", user_id="U1")
    scripted_input(monkeypatch, "hello", "/exit")

    await cli.run()

    out = capsys.readouterr().out
    assert "❌ ANTHROPIC_API_KEY is not set" in out
    assert "Goodbye" in out
    assert cli.history == []


@pytest.mark.asyncio
async def test_run_interrupt_then_exit(cli: CLI, monkeypatch, capsys) -> None:
    scripted_input(monkeypatch, KeyboardInterrupt(), "y")

    await cli.run()

    out = capsys.readouterr().out
    assert "Interrupted" in out
    assert "Goodbye" in out


@pytest.mark.asyncio
async def test_run_interrupt_declined_keeps_session(cli: CLI, monkeypatch, capsys) -> None:
    scripted_input(monkeypatch, KeyboardInterrupt(), "n", "hi", EOFError())

    await cli.run()

    assert "Hello!" in capsys.readouterr().out
    assert [t.content for t in cli.history] == ["hi", "Hello!"]
