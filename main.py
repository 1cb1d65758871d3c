#!/usr/bin/env python3
"""
Trivia Quiz Bot entry point.

Reads config.json (or the file named by TRIVIA_BOT_CONFIG), sets up logging
and runs the Discord bot until it is stopped.

Environment Variables:
    DISCORD_BOT_TOKEN: Discord bot token, takes precedence over bot.token
    TRIVIA_BOT_CONFIG: Path of the configuration file
"""

import asyncio
import json
import logging
import os
import sys
from pathlib import Path

TOKEN_PLACEHOLDER = "YOUR_DISCORD_BOT_TOKEN_HERE"
DEFAULT_CONFIG_PATH = "config.json"


class StartupError(Exception):
    """Raised when the bot cannot be started with the given configuration."""
    pass


def get_config_path() -> Path:
    return Path(os.getenv('TRIVIA_BOT_CONFIG', DEFAULT_CONFIG_PATH))


def load_config(config_path: Path) -> dict:
    """Read and parse the JSON configuration file."""
    if not config_path.exists():
        raise StartupError(f"{config_path} not found. Copy config.json and set your Discord bot token.")

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config = json.load(f)
    except json.JSONDecodeError as e:
        raise StartupError(f"Invalid JSON in {config_path}: {e}") from e
    except OSError as e:
        raise StartupError(f"Could not read {config_path}: {e}") from e

    if not isinstance(config, dict):
        raise StartupError(f"{config_path} must contain a JSON object")
    return config


def get_bot_token(config: dict) -> str:
    """Token from DISCORD_BOT_TOKEN, falling back to bot.token in the config."""
    token = os.getenv('DISCORD_BOT_TOKEN') or config.get('bot', {}).get('token')
    if not token or token == TOKEN_PLACEHOLDER:
        raise StartupError(
            "Discord bot token not configured. Set DISCORD_BOT_TOKEN "
            "or the 'token' field in the 'bot' section."
        )
    return token


def setup_logging_from_config(config: dict) -> None:
    """Log to stderr and <log_directory>/bot.log at the configured level."""
    log_config = config.get('logging', {})
    log_level = getattr(logging, str(log_config.get('level', 'INFO')).upper(), logging.INFO)
    log_directory = Path(log_config.get('log_directory', './logs/'))
    log_directory.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_directory / "bot.log", encoding='utf-8')
        ]
    )

    # discord.py is chatty at INFO
    logging.getLogger('discord').setLevel(logging.WARNING)
    logging.getLogger('discord.http').setLevel(logging.WARNING)


async def start(config: dict, token: str) -> None:
    from trivia_quiz.bot import run_bot
    await run_bot(token, config)


def main() -> int:
    print("🤖 Starting Trivia Quiz Bot...")
    try:
        config = load_config(get_config_path())
        token = get_bot_token(config)
    except StartupError as e:
        print(f"❌ Error: {e}")
        return 1

    setup_logging_from_config(config)

    try:
        asyncio.run(start(config, token))
    except KeyboardInterrupt:
        print("\n👋 Bot stopped by user")
    except Exception as e:
        logging.getLogger(__name__).error(f"Bot stopped with an error: {e}", exc_info=True)
        print(f"❌ Failed to run bot: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
