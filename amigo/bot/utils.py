from __future__ import annotations

from aiogram import types
from aiogram.enums import ChatMemberStatus
from loguru import logger

from amigo.db import Group, User, repo
from amigo.services import groups

GROUP_CHAT_TYPES = {"group", "supergroup"}

NOT_ACTIVE = "This group has no Secret Santa yet. Send /start to open one."


async def is_admin(bot, chat_id: int, user_id: int) -> bool:
    try:
        member = await bot.get_chat_member(chat_id, user_id)
    except Exception as exc:  # pragma: no cover - network dependent
        logger.bind(chat_id=chat_id, user_id=user_id).warning(
            "Failed to check admin status: {error}", error=str(exc)
        )
        return False
    return member.status in {ChatMemberStatus.ADMINISTRATOR, ChatMemberStatus.CREATOR}


def current_user(session, sender: types.User) -> User:
    return groups.ensure_user(
        session, sender.id, sender.username, sender.first_name, sender.last_name
    )


def current_group(session, chat: types.Chat) -> Group | None:
    return repo.get_group_by_telegram_id(session, chat.id)


def log_handler_exception(action: str, user_id: int | None, chat_id: int | None, error: Exception) -> None:
    logger.bind(action=action, user_id=user_id, chat_id=chat_id).exception(
        "Handler error: {error}", error=str(error)
    )
