from functools import wraps

from telegram import Update
from telegram.ext import ContextTypes

import config
from errors import Unauthorized


def is_admin(user_id: int) -> bool:
    """
    Check if a user may run admin commands. Returns True if:
    - User is the bot OWNER (from config)
    - User is listed in ADMINS (from config)
    """
    if config.OWNER_ID and user_id == config.OWNER_ID:
        return True
    return user_id in config.ADMIN_IDS


def require_admin(user_id: int, action: str = "do that"):
    if not is_admin(user_id):
        raise Unauthorized(f"Only admins can {action}.")


def admin_only(action: str):
    """
    Decorator restricting a command handler to the admin allow-list.
    Raises Unauthorized, so stack it under @reports_game_errors.
    """
    def decorator(func):
        @wraps(func)
        async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE, *args, **kwargs):
            require_admin(update.effective_user.id, action)
            return await func(update, context, *args, **kwargs)
        return wrapper
    return decorator
