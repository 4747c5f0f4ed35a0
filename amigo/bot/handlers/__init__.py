from aiogram import Router

from amigo.bot.handlers import draw, participants, start

router = Router()
router.include_router(start.router)
router.include_router(participants.router)
router.include_router(draw.router)
