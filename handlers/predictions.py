import re
from html import escape

from telegram import Update
from telegram.ext import ContextTypes

from handlers import formatting
from handlers.utils import get_game, command_text, display_name, reports_game_errors, send_ephemeral_reply, send_public_reply

PREDICT_USAGE = (
    "📝 <b>Usage:</b>\n"
    "<code>/predict runs/wickets [comment]</code>\n\n"
    "Example: <code>/predict 185/6 dew will help the chase</code>"
)


# "185/6 rest", also with spaces around the slash: "185 / 6 rest"
SCORE_AND_COMMENT = re.compile(r"^\s*([^/\s]+\s*/\s*\S+)\s*(.*)$", re.DOTALL)


def split_prediction_args(text: str):
    """Split "185 / 6 dew helps" into ("185 / 6", "dew helps"); comment is None when absent"""
    text = (text or "").strip()
    if not text:
        return None, None
    match = SCORE_AND_COMMENT.match(text)
    if match:
        score_text, comment = match.groups()
    else:
        # no slash up front; let the parser reject the first word
        score_text, _, comment = text.partition(" ")
    return score_text, comment.strip() or None


async def _submit(update: Update, context: ContextTypes.DEFAULT_TYPE, verb: str):
    score_text, comment = split_prediction_args(command_text(context))
    if score_text is None:
        await send_ephemeral_reply(update, context, PREDICT_USAGE, parse_mode="HTML")
        return

    user = update.effective_user
    prediction = await get_game(context).submit_prediction(user.id, display_name(user), score_text, comment)
    text = f"✅ Prediction {verb}: <b>{prediction.score}</b>"
    if prediction.comment:
        text += f" <i>(Comment: {escape(prediction.comment)})</i>"
    await send_ephemeral_reply(update, context, text, parse_mode="HTML")


@reports_game_errors
async def predict_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Submit a prediction for the current match
    Usage: /predict 200/4 [comment]
    """
    await _submit(update, context, "saved")


@reports_game_errors
async def edit_prediction_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Same as /predict; the latest submission replaces the earlier one"""
    await _submit(update, context, "updated")


@reports_game_errors
async def my_prediction_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    prediction = await get_game(context).get_prediction(update.effective_user.id)
    if prediction is None:
        await send_ephemeral_reply(update, context, "🤷 You haven't predicted this match yet. Use /predict.")
        return
    await send_ephemeral_reply(
        update, context, f"🎯 Your prediction:\n{formatting.prediction_line(prediction)}", parse_mode="HTML"
    )


@reports_game_errors
async def list_predictions_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    predictions = await get_game(context).list_predictions()
    await send_public_reply(
        update,
        context,
        f"📋 <b>Current predictions ({len(predictions)}):</b>\n{formatting.predictions_block(predictions)}",
        parse_mode="HTML"
    )
