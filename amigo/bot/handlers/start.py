import html

from aiogram import Router, types
from aiogram.filters import CommandStart

from amigo.bot.keyboards import join_keyboard
from amigo.bot.utils import current_user, log_handler_exception
from amigo.db import get_session
from amigo.services import groups

router = Router()


@router.message(CommandStart())
async def command_start_handler(message: types.Message) -> None:
    try:
        if message.chat.type == "private":
            with get_session() as session:
                user = groups.register_private_chat(
                    session,
                    message.from_user.id,
                    message.from_user.username,
                    message.from_user.first_name,
                    message.from_user.last_name,
                )
                summaries = groups.list_groups_for_user(session, user)

            lines = [
                "Hello! I'm your Amigo Invisible bot!",
                "",
                "Add me to a group and send /start there to open a Secret Santa. "
                "Join with the button, then send /confirm to take part in the draw.",
            ]
            if summaries:
                lines.append("")
                lines.append("Your groups:")
                for summary in summaries:
                    state = "drawn" if summary.is_drawn else "open"
                    lines.append(
                        f"- {html.escape(summary.title or str(summary.id))}: {summary.participant_count} participants, {state}"
                    )
            await message.answer("\n".join(lines))
            return

        with get_session() as session:
            creator = current_user(session, message.from_user)
            groups.create_group(session, message.chat.id, message.chat.title, creator)

        await message.answer(
            "Hello! Please start a private chat with me first (send /start), "
            "then click the button below to join the Secret Santa game.",
            reply_markup=join_keyboard(),
        )
    except Exception as exc:
        log_handler_exception("start", message.from_user.id, message.chat.id, exc)
        await message.answer("Something went wrong. Please try again later.")
