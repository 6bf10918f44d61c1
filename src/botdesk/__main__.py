"""CLI entry point for botdesk."""

from __future__ import annotations

import argparse
import asyncio
import sys

from botdesk.config import AppConfig, load_config
from botdesk.log import setup_logging


def _add_config_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-c", "--config", default="config.yaml", help="Path to config file")
    parser.add_argument("-e", "--env", default=".env", help="Path to .env file")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="botdesk",
        description="Multi-channel chatbot operations console",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    start_parser = subparsers.add_parser("start", help="Start the HTTP server")
    _add_config_args(start_parser)

    check_parser = subparsers.add_parser("config-check", help="Validate configuration")
    _add_config_args(check_parser)

    train_parser = subparsers.add_parser("train", help="Retrain the intent model from stored conversations")
    _add_config_args(train_parser)

    args = parser.parse_args(argv)

    if args.command is None:
        args.command = "start"
        args.config = "config.yaml"
        args.env = ".env"

    if args.command == "config-check":
        _check_config(args.config, args.env)
    elif args.command == "train":
        _train(args.config, args.env)
    elif args.command == "start":
        _run(args.config, args.env)


def _load_or_exit(config_path: str, env_path: str) -> AppConfig:
    try:
        return load_config(config_path, env_path)
    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        print("Copy config.example.yaml to config.yaml and fill in the channel credentials")
        sys.exit(1)
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)


def _check_config(config_path: str, env_path: str) -> None:
    """Validate configuration and print summary."""
    config = _load_or_exit(config_path, env_path)
    channels = config.channels
    print(f"Configuration valid: {config_path}")
    print(f"  Server: {config.server.host}:{config.server.port}")
    print(f"  Storage: {config.storage.backend} ({config.storage.db_path})")
    print(f"  Bot: {config.bot.name} (threshold={config.bot.confidence_threshold})")
    print("  Channels:")
    print(f"    - whatsapp  [{'configured' if channels.whatsapp.access_token else 'no credentials'}]")
    print(f"    - telegram  [{'configured' if channels.telegram.bot_token else 'no credentials'}]")
    print(f"    - messenger [{'configured' if channels.messenger.access_token else 'no credentials'}]")


def _train(config_path: str, env_path: str) -> None:
    from botdesk.app import BotDeskApp
    from botdesk.storage.factory import seed_defaults

    config = _load_or_exit(config_path, env_path)
    setup_logging(config.log_level, config.log_format)

    async def _async_train() -> None:
        app = BotDeskApp(config)
        await app.store.initialize()
        try:
            await seed_defaults(app.store, config.bot)
            result = await app.trainer.train_from_conversations()
            print(f"Trained on {result.samples} samples, accuracy {result.accuracy}% ({result.holdout} held out)")
        finally:
            await app.http_client.aclose()
            await app.store.close()

    try:
        asyncio.run(_async_train())
    except Exception as e:
        print(f"Training failed: {e}", file=sys.stderr)
        sys.exit(1)


def _run(config_path: str, env_path: str) -> None:
    """Load config and serve the application until interrupted."""
    import uvicorn

    from botdesk.api.server import create_app
    from botdesk.app import BotDeskApp

    config = _load_or_exit(config_path, env_path)
    setup_logging(config.log_level, config.log_format)

    api = create_app(BotDeskApp(config))
    uvicorn.run(
        api,
        host=config.server.host,
        port=config.server.port,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
