from aiogram.utils.keyboard import InlineKeyboardBuilder

JOIN_CALLBACK = "join"
CONFIRM_DRAW_CALLBACK = "confirm_draw"


def join_keyboard():
    keyboard = InlineKeyboardBuilder()
    keyboard.button(text="Join Amigo Invisible!", callback_data=JOIN_CALLBACK)
    return keyboard.as_markup()


def confirm_draw_keyboard():
    keyboard = InlineKeyboardBuilder()
    keyboard.button(text="Yes, draw now!", callback_data=CONFIRM_DRAW_CALLBACK)
    return keyboard.as_markup()
