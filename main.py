from __future__ import annotations

import asyncio

import uvloop
from aiogram.types import BotCommand, BotCommandScopeDefault
from loguru import logger

from amigo.bot import bot, dp, settings
from amigo.core.logging import setup_logging
from amigo.db import init_engine


USERS_COMMANDS: dict[str, str] = {
    "start": "open a Secret Santa / show your groups",
    "confirm": "confirm your participation",
    "exclude": "never draw this participant",
    "include": "clear your exclusions",
    "list": "list participants",
    "draw": "run the draw",
    "status": "show the draw status",
    "mygift": "reveal who you give to",
}


async def set_default_commands() -> None:
    await bot.set_my_commands(
        [
            BotCommand(command=command, description=description)
            for command, description in USERS_COMMANDS.items()
        ],
        scope=BotCommandScopeDefault(),
    )


async def on_startup() -> None:
    logger.info("bot starting...")

    await set_default_commands()

    bot_info = await bot.get_me()
    logger.info("Name     - {name}", name=bot_info.full_name)
    logger.info("Username - @{username}", username=bot_info.username)
    logger.info("Draw attempt budget - {attempts}", attempts=settings.draw_max_attempts)

    logger.info("bot started")


async def on_shutdown() -> None:
    logger.info("bot stopping...")

    await dp.storage.close()
    await bot.session.close()

    logger.info("bot stopped")


async def main() -> None:
    setup_logging(settings.log_level, settings.log_path)
    init_engine(settings.database_url)

    dp.startup.register(on_startup)
    dp.shutdown.register(on_shutdown)

    await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())


if __name__ == "__main__":
    uvloop.install()
    asyncio.run(main())
