from __future__ import annotations

from aiogram import F, Router, types
from aiogram.filters import Command

from amigo.bot.keyboards import JOIN_CALLBACK
from amigo.bot.utils import NOT_ACTIVE, current_group, current_user, log_handler_exception
from amigo.db import get_session, repo
from amigo.services import groups
from amigo.services.groups import GroupError

router = Router()


@router.callback_query(F.data == JOIN_CALLBACK)
async def join_callback_handler(query: types.CallbackQuery) -> None:
    try:
        with get_session() as session:
            group = current_group(session, query.message.chat)
            if not group:
                await query.answer(NOT_ACTIVE, show_alert=True)
                return
            user = current_user(session, query.from_user)
            result = groups.join_group(session, group, user)
            user_label = groups.format_user_label(result.user)

        await query.answer(result.message, show_alert=True)
        if result.added:
            await query.message.bot.send_message(
                query.message.chat.id,
                f"{user_label} joined the Secret Santa game!",
            )
    except Exception as exc:
        log_handler_exception("join", query.from_user.id, query.message.chat.id, exc)
        await query.answer("Error joining the Secret Santa game.", show_alert=True)


@router.message(Command("confirm"))
async def confirm_command_handler(message: types.Message) -> None:
    try:
        with get_session() as session:
            group = current_group(session, message.chat)
            if not group:
                await message.answer(NOT_ACTIVE)
                return
            user = current_user(session, message.from_user)
            confirmed = groups.confirm_participation(session, group, user)
            user_label = groups.format_user_label(user)

        if confirmed:
            await message.answer(f"{user_label} confirmed their participation.")
        else:
            await message.answer("Your participation is already confirmed.")
    except GroupError as exc:
        await message.answer(str(exc))
    except Exception as exc:
        log_handler_exception("confirm", message.from_user.id, message.chat.id, exc)
        await message.answer("Something went wrong. Please try again later.")


@router.message(Command("exclude"))
async def exclude_command_handler(message: types.Message) -> None:
    parts = (message.text or "").split(maxsplit=1)
    if len(parts) < 2 or not parts[1].strip().lstrip("@"):
        await message.answer("Usage: /exclude @username")
        return
    username = parts[1].strip().lstrip("@")

    try:
        with get_session() as session:
            group = current_group(session, message.chat)
            if not group:
                await message.answer(NOT_ACTIVE)
                return
            giver = current_user(session, message.from_user)
            target = repo.find_participant_by_username(session, group.id, username)
            if target is None:
                await message.answer(f"@{username} is not part of this Secret Santa.")
                return
            groups.add_restriction(session, group, giver, target.user)
            target_label = groups.format_user_label(target.user)

        await message.answer(f"Got it, you will not draw {target_label}.")
    except GroupError as exc:
        await message.answer(str(exc))
    except Exception as exc:
        log_handler_exception("exclude", message.from_user.id, message.chat.id, exc)
        await message.answer("Something went wrong. Please try again later.")


@router.message(Command("include"))
async def include_command_handler(message: types.Message) -> None:
    try:
        with get_session() as session:
            group = current_group(session, message.chat)
            if not group:
                await message.answer(NOT_ACTIVE)
                return
            user = current_user(session, message.from_user)
            groups.clear_restrictions(session, group, user)

        await message.answer("Your exclusions have been cleared.")
    except GroupError as exc:
        await message.answer(str(exc))
    except Exception as exc:
        log_handler_exception("include", message.from_user.id, message.chat.id, exc)
        await message.answer("Something went wrong. Please try again later.")


@router.message(Command("list"))
async def list_command_handler(message: types.Message) -> None:
    try:
        with get_session() as session:
            group = current_group(session, message.chat)
            if not group:
                await message.answer(NOT_ACTIVE)
                return

            participants = groups.list_participants(session, group)
            if not participants:
                await message.answer("No participants found in this Secret Santa game.")
                return

            lines = []
            for participant in participants:
                label = groups.format_user_label(participant.user)
                suffix = " ✓" if participant.is_confirmed else ""
                lines.append(f"{label}{suffix}")

        message_text = "Participants in Secret Santa:\n" + "\n".join(lines)
        if any(not participant.is_confirmed for participant in participants):
            message_text += "\n\nNote: only participants with a ✓ take part in the draw. Send /confirm."
        await message.answer(message_text)
    except Exception as exc:
        log_handler_exception("list", message.from_user.id, message.chat.id, exc)
        await message.answer("Something went wrong. Please try again later.")
