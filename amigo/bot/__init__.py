from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode

from amigo.bot.handlers import router as handlers_router
from amigo.core.config import load_settings

settings = load_settings()

bot = Bot(token=settings.bot_token, default=DefaultBotProperties(parse_mode=ParseMode.HTML))

# handlers receive ``settings`` through the dispatcher's workflow data
dp = Dispatcher(settings=settings)
dp.include_router(handlers_router)
