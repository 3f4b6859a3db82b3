# -*- coding: utf-8 -*-

import os
import re
import asyncio
from pathlib import Path

import structlog
from dotenv import load_dotenv

from telegram import Update
from telegram.ext import (
    Application,
    CommandHandler,
    MessageHandler,
    ContextTypes,
    filters,
)

from app.core.logging_config import setup_logging
from bot.api import LedgerApiError, fetch_profile, record_scan, register_profile
from bot.config import (
    BOT_SCAN_TYPE,
    BTN_MY_QR,
    BTN_REGISTER,
    BTN_SCAN,
    COMMANDS,
    ERROR_MESSAGES,
    LABEL_PROFILE,
    LABEL_REGISTERED,
    LABEL_SCANNED,
    MSG_ASK_EMPLOYEE_ID,
    MSG_USE_BUTTONS,
    MSG_WELCOME,
)
from bot.keyboards import main_keyboard
from bot.profile_view import send_profile

# .env
load_dotenv(Path(__file__).resolve().parents[1] / ".env", override=True)
TOKEN = os.getenv("TELEGRAM_BOT_TOKEN", "")

logger = structlog.get_logger("loyalty.bot")


async def _reply_error(update: Update, exc: LedgerApiError):
    logger.warning("ledger_api_error", code=exc.code, status_code=exc.status_code, error=exc.message)
    text = ERROR_MESSAGES.get(exc.code, exc.message)
    await update.message.reply_text(text, reply_markup=main_keyboard())


async def _call_api(fn, *args):
    # requests is blocking; keep the event loop free for other chats.
    return await asyncio.to_thread(fn, *args)


async def start(update: Update, context: ContextTypes.DEFAULT_TYPE):
    context.user_data["awaiting_employee_id"] = True
    await update.message.reply_text(MSG_WELCOME, reply_markup=main_keyboard())


async def ask_employee_id(update: Update, context: ContextTypes.DEFAULT_TYPE):
    context.user_data["awaiting_employee_id"] = True
    await update.message.reply_text(MSG_ASK_EMPLOYEE_ID, reply_markup=main_keyboard())


async def handle_registration(update: Update, context: ContextTypes.DEFAULT_TYPE, employee_id_raw: str):
    employee_id = (employee_id_raw or "").strip()
    if not employee_id:
        await update.message.reply_text(MSG_ASK_EMPLOYEE_ID, reply_markup=main_keyboard())
        return

    chat_user_id = str(update.effective_user.id)
    try:
        profile = await _call_api(register_profile, employee_id, chat_user_id)
    except LedgerApiError as exc:
        await _reply_error(update, exc)
        return

    context.user_data["awaiting_employee_id"] = False
    await send_profile(update.message, profile, LABEL_REGISTERED)


async def show_profile(update: Update, context: ContextTypes.DEFAULT_TYPE):
    chat_user_id = str(update.effective_user.id)
    try:
        profile = await _call_api(fetch_profile, chat_user_id)
    except LedgerApiError as exc:
        await _reply_error(update, exc)
        return
    await send_profile(update.message, profile, LABEL_PROFILE)


async def scan(update: Update, context: ContextTypes.DEFAULT_TYPE):
    chat_user_id = str(update.effective_user.id)
    try:
        profile = await _call_api(record_scan, chat_user_id, BOT_SCAN_TYPE)
    except LedgerApiError as exc:
        await _reply_error(update, exc)
        return
    await send_profile(update.message, profile, LABEL_SCANNED)


async def on_text(update: Update, context: ContextTypes.DEFAULT_TYPE):
    if context.user_data.get("awaiting_employee_id"):
        await handle_registration(update, context, update.message.text)
        return
    await update.message.reply_text(MSG_USE_BUTTONS, reply_markup=main_keyboard())


def _button(label: str):
    return filters.Regex(re.compile(re.escape(label), re.IGNORECASE))


def build_application(token: str) -> Application:
    async def _post_init(application: Application):
        try:
            await application.bot.set_my_commands(COMMANDS)
        except Exception as exc:
            logger.warning("set_my_commands_failed", error=str(exc))

    app = Application.builder().token(token).post_init(_post_init).build()
    app.add_handler(CommandHandler("start", start))
    app.add_handler(CommandHandler("me", show_profile))
    app.add_handler(CommandHandler("scan", scan))
    app.add_handler(MessageHandler(_button(BTN_REGISTER) & ~filters.COMMAND, ask_employee_id))
    app.add_handler(MessageHandler(_button(BTN_MY_QR) & ~filters.COMMAND, show_profile))
    app.add_handler(MessageHandler(_button(BTN_SCAN) & ~filters.COMMAND, scan))
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, on_text))
    return app


def run():
    setup_logging()
    if not TOKEN:
        raise RuntimeError("TELEGRAM_BOT_TOKEN is required")

    app = build_application(TOKEN)
    logger.info("bot_started")
    app.run_polling(allowed_updates=Update.ALL_TYPES)


if __name__ == "__main__":
    run()
