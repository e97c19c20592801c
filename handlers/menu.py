import asyncio
import logging

from telegram import Update, InlineKeyboardButton, InlineKeyboardMarkup
from telegram.error import BadRequest
from telegram.ext import ContextTypes

import config
from errors import GameError
from handlers import formatting
from handlers.roles import is_admin
from handlers.utils import get_game, send_ephemeral_reply, split_message, EPHEMERAL_DELAY, delete_message_later

HELP_TEXT = """
🏏 <b>Cricket Prediction Bot</b>

Guess the final score of the current match. Closest prediction wins!

<b>🎯 Predictions:</b>
/predict <code>runs/wickets [comment]</code> - Submit your prediction
/edit <code>runs/wickets [comment]</code> - Update your prediction
/mypick - Show your prediction
/list - All predictions for the current match

<b>📜 History &amp; Stats:</b>
/past - Past matches
/details <code>match_id</code> - Details of a past match
/mystats - Your average error
/leaderboard - Who predicts best (lower is better)
/menu - Quick buttons
"""

ADMIN_HELP_TEXT = """
<b>⚡ Admin Commands:</b>
/setup <code>Team | Toss | Venue | Date</code> - Open a new match
/editmatch <code>field=value | ...</code> - Edit the open match (team, toss, venue, date)
/close - Close the poll (no further predictions)
/end <code>runs/wickets</code> - Record the actual score and announce the winner
/cancelmatch - Delete the current match and its predictions (irreversible, use for NR/washed out matches)
/export - Download past matches and predictions as JSON
"""

SCORING_TEXT = {
    "simple": "Distance = |runs difference|.",
    "advanced": "Distance = |runs difference| + 5 × |wickets difference|.",
}

PRIVACY_TEXT = "Note: predictions are stored with your user ID and username. Nothing else is collected."


def build_help_text(user_id: int, scoring_method: str) -> str:
    text = HELP_TEXT
    if is_admin(user_id):
        text += ADMIN_HELP_TEXT
    text += f"\n<b>🧮 Scoring:</b> {SCORING_TEXT.get(scoring_method, scoring_method)}\n\n{PRIVACY_TEXT}"
    return text


def main_menu_keyboard():
    keyboard = [
        [
            InlineKeyboardButton("📋 Predictions", callback_data="menu_list"),
            InlineKeyboardButton("🎯 My Pick", callback_data="menu_mypick")
        ],
        [
            InlineKeyboardButton("🏆 Leaderboard", callback_data="menu_leaderboard"),
            InlineKeyboardButton("📈 My Stats", callback_data="menu_mystats")
        ],
        [InlineKeyboardButton("❌ Close", callback_data="menu_close")]
    ]
    return InlineKeyboardMarkup(keyboard)


async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    await help_command(update, context)


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Shows comprehensive help"""
    game = get_game(context)
    await send_ephemeral_reply(
        update, context, build_help_text(update.effective_user.id, game.scoring_method), parse_mode="HTML"
    )


async def menu_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Shows the main interactive menu with buttons"""
    await send_ephemeral_reply(
        update,
        context,
        "🏏 <b>Prediction Menu</b>\n\nSelect an option below:",
        reply_markup=main_menu_keyboard(),
        parse_mode="HTML"
    )


async def menu_text(game, data: str, user_id: int) -> str:
    if data == "menu_list":
        predictions = await game.list_predictions()
        return f"📋 <b>Current predictions ({len(predictions)}):</b>\n{formatting.predictions_block(predictions)}"
    if data == "menu_mypick":
        prediction = await game.get_prediction(user_id)
        if prediction is None:
            return "🤷 You haven't predicted this match yet. Use /predict."
        return f"🎯 Your prediction:\n{formatting.prediction_line(prediction)}"
    if data == "menu_leaderboard":
        entries = await game.leaderboard(limit=config.LEADERBOARD_SIZE)
        if not entries:
            return "📭 No prediction data available for leaderboard."
        return formatting.leaderboard(entries, game.scoring_method)
    if data == "menu_mystats":
        stats = await game.user_stats(user_id)
        if stats is None:
            return "📭 You have no past predictions."
        return formatting.user_stats(stats, game.scoring_method)
    return "Unknown option."


async def menu_callback_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Handles menu button clicks"""
    query = update.callback_query
    await query.answer()

    if query.data == "menu_close":
        await query.message.delete()
        return

    try:
        text = await menu_text(get_game(context), query.data, query.from_user.id)
    except GameError as exc:
        text = f"⚠️ {exc}"
    try:
        # one message to edit; the full list is still available via /list
        await query.message.edit_text(split_message(text)[0], reply_markup=main_menu_keyboard(), parse_mode="HTML")
    except BadRequest as exc:
        # "Message is not modified" when the same button is pressed twice
        logging.debug(f"Menu edit skipped: {exc}")
        return
    asyncio.create_task(delete_message_later(query.message, EPHEMERAL_DELAY))
