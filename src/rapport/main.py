"""rapport entry point."""

import argparse
import asyncio
import logging
import sys

from dotenv import find_dotenv, load_dotenv

from .config import config_from_env
from .errors import ConfigError, RapportError
from .logging import configure_logger


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="rapport",
        description="Streaming persona chat with encrypted memory",
    )
    subparsers = parser.add_subparsers(dest="command")

    serve = subparsers.add_parser("serve", help="Run the HTTP streaming server")
    serve.add_argument("--host", default=None, help="Bind address")
    serve.add_argument("--port", type=int, default=None, help="Bind port")

    chat = subparsers.add_parser("chat", help="Chat with a persona in the terminal")
    chat.add_argument("--persona", required=True, help="Persona id")
    chat.add_argument("--user", default=None, help="User id (enables memory)")
    chat.add_argument("--conversation", default=None, help="Resume a conversation")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    load_dotenv(find_dotenv(usecwd=True))
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 1

    config = config_from_env()
    json_logger = configure_logger(config.server.log_dir)

    from .service import create_service

    try:
        service = create_service(config, json_logger=json_logger)
    except (ConfigError, ValueError, OSError) as e:
        print(f"❌ Error: {e}")
        return 1

    if args.command == "serve":
        import uvicorn

        from .server import create_app

        uvicorn.run(
            create_app(service),
            host=args.host or config.server.host,
            port=args.port or config.server.port,
        )
        return 0

    from .cli import CLI

    cli = CLI(
        service,
        persona_id=args.persona,
        user_id=args.user,
        conversation_id=args.conversation,
    )
    try:
        asyncio.run(cli.run())
    except RapportError as e:
        print(f"❌ Error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
