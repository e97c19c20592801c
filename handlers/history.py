from telegram import Update
from telegram.ext import ContextTypes

import config
from handlers import formatting
from handlers.utils import get_game, command_text, reports_game_errors, send_ephemeral_reply, send_public_reply


@reports_game_errors
async def past_matches_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    matches = await get_game(context).past_matches()
    if not matches:
        await send_ephemeral_reply(update, context, "📭 No past matches recorded.")
        return
    await send_public_reply(update, context, formatting.past_matches(matches), parse_mode="HTML")


@reports_game_errors
async def match_details_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Usage: /details <match id>"""
    match_id = command_text(context)
    if not match_id:
        await send_ephemeral_reply(
            update, context, "📝 <b>Usage:</b> <code>/details match_id</code> (see /past)", parse_mode="HTML"
        )
        return
    match, predictions = await get_game(context).match_details(match_id)
    await send_public_reply(update, context, formatting.match_details(match, predictions), parse_mode="HTML")


@reports_game_errors
async def my_stats_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    game = get_game(context)
    stats = await game.user_stats(update.effective_user.id)
    if stats is None:
        await send_ephemeral_reply(update, context, "📭 You have no past predictions.")
        return
    await send_ephemeral_reply(update, context, formatting.user_stats(stats, game.scoring_method), parse_mode="HTML")


@reports_game_errors
async def leaderboard_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    game = get_game(context)
    entries = await game.leaderboard(limit=config.LEADERBOARD_SIZE)
    if not entries:
        await send_ephemeral_reply(update, context, "📭 No prediction data available for leaderboard.")
        return
    await send_public_reply(update, context, formatting.leaderboard(entries, game.scoring_method), parse_mode="HTML")
