from __future__ import annotations

import html

from aiogram import F, Router, types
from aiogram.filters import Command
from loguru import logger

from amigo.bot.keyboards import CONFIRM_DRAW_CALLBACK, confirm_draw_keyboard
from amigo.bot.utils import (
    GROUP_CHAT_TYPES,
    NOT_ACTIVE,
    current_group,
    current_user,
    is_admin,
    log_handler_exception,
)
from amigo.core.config import Settings
from amigo.db import DrawStatus, get_session, repo
from amigo.services import groups
from amigo.services.draw import DrawFailure

router = Router()

FAILURE_MESSAGES = {
    DrawFailure.INSUFFICIENT_PARTICIPANTS: "At least 2 confirmed participants are required for the draw.",
    DrawFailure.ALREADY_DRAWN: "The draw has already been performed for this group.",
    DrawFailure.UNSATISFIABLE_CONSTRAINTS: "No valid draw found. Please review the exclusions with /include.",
    DrawFailure.PERSISTENCE_ERROR: "The draw could not be saved. Check /status before trying again.",
}


@router.message(Command("draw"))
async def draw_command_handler(message: types.Message) -> None:
    if message.chat.type not in GROUP_CHAT_TYPES:
        await message.answer("This command can only be used in a group chat.")
        return

    if not await is_admin(message.bot, message.chat.id, message.from_user.id):
        await message.answer("Only group admins can run the draw.")
        return

    try:
        with get_session() as session:
            group = current_group(session, message.chat)
            if not group:
                await message.answer(NOT_ACTIVE)
                return
            if groups.get_draw_status(session, group) == DrawStatus.DRAWN:
                await message.answer(FAILURE_MESSAGES[DrawFailure.ALREADY_DRAWN])
                return

        await message.answer(
            "Are you sure you want to draw now? Unconfirmed participants will be left out.",
            reply_markup=confirm_draw_keyboard(),
        )
    except Exception as exc:
        log_handler_exception("draw", message.from_user.id, message.chat.id, exc)
        await message.answer("Something went wrong. Please try again later.")


@router.callback_query(F.data == CONFIRM_DRAW_CALLBACK)
async def confirm_draw_callback_handler(query: types.CallbackQuery, settings: Settings) -> None:
    if not await is_admin(query.message.bot, query.message.chat.id, query.from_user.id):
        await query.answer("Only group admins can run the draw.", show_alert=True)
        return

    try:
        with get_session() as session:
            group = current_group(session, query.message.chat)
            if not group:
                await query.answer(NOT_ACTIVE, show_alert=True)
                return

            outcome = groups.draw_group(session, group, max_attempts=settings.draw_max_attempts)
            if not outcome.ok:
                await query.answer(FAILURE_MESSAGES[outcome.reason], show_alert=True)
                return

            givers = {
                pairing.giver_id: repo.get_user_by_id(session, pairing.giver_id)
                for pairing in outcome.pairings
            }

        for giver in givers.values():
            try:
                await query.message.bot.send_message(
                    giver.telegram_id,
                    "The Amigo Invisible draw is done! Send /mygift in the group to see who you give to.",
                )
            except Exception as exc:  # pragma: no cover - network dependent
                logger.bind(user_id=giver.telegram_id).warning(
                    "Failed to send draw notification: {error}", error=str(exc)
                )

        await query.answer("Draw completed!", show_alert=True)
        await query.message.bot.send_message(
            query.message.chat.id,
            "The draw is done! Each participant can send /mygift to find out who they give to.",
        )
    except Exception as exc:
        log_handler_exception("confirm_draw", query.from_user.id, query.message.chat.id, exc)
        await query.answer("Something went wrong. Check /status before trying again.", show_alert=True)


@router.message(Command("status"))
async def status_command_handler(message: types.Message) -> None:
    try:
        with get_session() as session:
            group = current_group(session, message.chat)
            if not group:
                await message.answer(NOT_ACTIVE)
                return
            status = groups.get_draw_status(session, group)
            participants = groups.list_participants(session, group)
            confirmed = sum(1 for participant in participants if participant.is_confirmed)

        state = "drawn" if status == DrawStatus.DRAWN else "not drawn yet"
        await message.answer(
            f"Draw status: {state}\nParticipants: {len(participants)} ({confirmed} confirmed)"
        )
    except Exception as exc:
        log_handler_exception("status", message.from_user.id, message.chat.id, exc)
        await message.answer("Something went wrong. Please try again later.")


@router.message(Command("mygift"))
async def mygift_command_handler(message: types.Message) -> None:
    try:
        with get_session() as session:
            group = current_group(session, message.chat)
            if not group:
                await message.answer(NOT_ACTIVE)
                return
            user = current_user(session, message.from_user)
            receiver = groups.find_receiver(session, group, user)
            if receiver is None:
                await message.answer("You have no assignment in this group yet.")
                return
            receiver_label = groups.format_user_label(receiver)
            group_title = html.escape(group.title) if group.title else "your group"

        try:
            await message.bot.send_message(
                message.from_user.id,
                f"Amigo Invisible in {group_title}: you're giving a gift to {receiver_label}!",
            )
        except Exception as exc:  # pragma: no cover - network dependent
            logger.bind(user_id=message.from_user.id).warning(
                "Failed to send assignment DM: {error}", error=str(exc)
            )
            await message.answer("I can't message you privately. Send me /start in a private chat first.")
            return

        # only a delivered message counts as a reveal
        with get_session() as session:
            group = current_group(session, message.chat)
            user = current_user(session, message.from_user)
            groups.reveal_assignment(session, group, user)
        await message.answer("Check your private messages!")
    except Exception as exc:
        log_handler_exception("mygift", message.from_user.id, message.chat.id, exc)
        await message.answer("Something went wrong. Please try again later.")
