from telegram import ReplyKeyboardMarkup

from bot.config import BTN_MY_QR, BTN_REGISTER, BTN_SCAN


def main_keyboard() -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup(
        [[BTN_REGISTER, BTN_MY_QR, BTN_SCAN]],
        resize_keyboard=True,
    )
