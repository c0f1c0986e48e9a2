from __future__ import annotations

import asyncio

from .adapters.discord import DiscordAdapter
from .bot import PotluckBot
from .commands import register_commands
from .config import load_settings
from .data.factory import create_store
from .logging_config import setup_logging
from .services import build_context


def main() -> int:
    settings = load_settings()
    log = setup_logging(settings.log_level)
    if not settings.token:
        log.error(
            "DISCORD_BOT_TOKEN is not set. "
            "Export it in your environment before running."
        )
        return 2
    store = create_store(settings)

    async def runner() -> int:
        adapter = DiscordAdapter(settings.token)
        ctx = build_context(settings, store, adapter, adapter)
        bot = PotluckBot(ctx)
        register_commands(bot, ctx)
        try:
            async with bot:
                await bot.start(settings.token)
        finally:
            await adapter.close()
        return 0

    try:
        return asyncio.run(runner())
    except KeyboardInterrupt:
        log.info("Shutting down...")
        return 0
    finally:
        store.close()


if __name__ == "__main__":
    raise SystemExit(main())
