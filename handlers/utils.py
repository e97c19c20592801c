"""
Utility functions for the prediction bot handlers
"""
import asyncio
import logging
from functools import wraps
from typing import List

from telegram import Update
from telegram.ext import ContextTypes

from errors import GameError, StorageUnavailable

# Auto-delete delay for ephemeral messages (in seconds)
EPHEMERAL_DELAY = 60
# Auto-delete delay for admin actions (in seconds)
ADMIN_EPHEMERAL_DELAY = 300
# Telegram rejects longer messages (4096); keep headroom for emoji counted twice
MAX_MESSAGE_LENGTH = 4000


def get_game(context: ContextTypes.DEFAULT_TYPE):
    """The PredictionGame registered in bot_data by main.py"""
    return context.bot_data["game"]


def command_text(context: ContextTypes.DEFAULT_TYPE) -> str:
    """Everything typed after the command, as one string"""
    return " ".join(context.args or []).strip()


def display_name(user) -> str:
    return user.username or user.full_name or str(user.id)


async def delete_message_later(message, delay: int = EPHEMERAL_DELAY):
    """Delete a message after a delay"""
    try:
        await asyncio.sleep(delay)
        await message.delete()
    except Exception:
        pass  # Message may already be deleted or bot lacks permissions


def split_message(text: str, limit: int = MAX_MESSAGE_LENGTH) -> List[str]:
    """Split on line breaks into pieces no longer than ``limit``; an overlong line is cut hard"""
    chunks = []
    current = ""
    for line in text.split("\n"):
        while len(line) > limit:
            if current:
                chunks.append(current)
                current = ""
            chunks.append(line[:limit])
            line = line[limit:]
        candidate = f"{current}\n{line}" if current else line
        if len(candidate) > limit:
            chunks.append(current)
            current = line
        else:
            current = candidate
    if current or not chunks:
        chunks.append(current)
    return chunks


async def _send(update: Update, context: ContextTypes.DEFAULT_TYPE, text: str, **kwargs):
    if update.message:
        return await update.message.reply_text(text, **kwargs)
    return await context.bot.send_message(chat_id=update.effective_chat.id, text=text, **kwargs)


async def send_ephemeral_reply(update: Update, context: ContextTypes.DEFAULT_TYPE, text: str, delay: int = EPHEMERAL_DELAY, delete_in_private: bool = True, **kwargs):
    """Reply (or send) and auto-delete to keep chat clean."""
    try:
        msg = None
        for chunk in split_message(text):
            msg = await _send(update, context, chunk, **kwargs)
            if update.effective_chat and (update.effective_chat.type in ["group", "supergroup"] or delete_in_private):
                asyncio.create_task(delete_message_later(msg, delay))
        return msg
    except Exception as exc:
        logging.warning(f"Failed to send ephemeral reply: {exc}")
        return None


async def send_public_reply(update: Update, context: ContextTypes.DEFAULT_TYPE, text: str, **kwargs):
    """Reply that stays in the chat (announcements, results). Long text goes out in several messages."""
    msg = None
    for chunk in split_message(text):
        msg = await _send(update, context, chunk, **kwargs)
    return msg


def reports_game_errors(func):
    """
    Decorator for command handlers: a GameError becomes an ephemeral reply
    with its message instead of bubbling up to the application error handler.
    """
    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE, *args, **kwargs):
        try:
            return await func(update, context, *args, **kwargs)
        except GameError as exc:
            if isinstance(exc, StorageUnavailable):
                logging.error(f"/{func.__name__}: storage unavailable", exc_info=exc.__cause__)
            await send_ephemeral_reply(update, context, f"⚠️ {exc}")
    return wrapper
