import io
import json
import logging
from datetime import datetime, timezone
from html import escape

from telegram import Update
from telegram.ext import ContextTypes

from handlers import formatting
from handlers.roles import admin_only
from handlers.utils import (
    get_game, command_text, reports_game_errors, send_ephemeral_reply, send_public_reply,
    ADMIN_EPHEMERAL_DELAY,
)
from models import MatchPatch

SETUP_USAGE = (
    "📝 <b>Usage:</b>\n"
    "<code>/setup Team | Toss | Venue | Date</code>\n\n"
    "Example:\n"
    "<code>/setup India vs Australia | India batting first | Wankhede | 2025-03-21</code>"
)

EDIT_USAGE = (
    "📝 <b>Usage:</b>\n"
    "<code>/editmatch field=value | field=value</code>\n\n"
    "Fields: <code>team</code>, <code>toss</code>, <code>venue</code>, <code>date</code>\n"
    "Example: <code>/editmatch venue=Eden Gardens | date=2025-03-22</code>"
)

PATCH_FIELDS = {
    "team": "team_name",
    "toss": "toss",
    "venue": "venue",
    "date": "match_date",
}


def parse_setup_args(text: str):
    """Split "Team | Toss | Venue | Date" into a 4-tuple, None if any part is missing"""
    parts = [part.strip() for part in text.split("|")]
    if len(parts) != 4 or not all(parts):
        return None
    return tuple(parts)


def parse_match_patch(text: str):
    """Turn "venue=Eden Gardens | date=2025-03-22" into a MatchPatch, None on unknown or blank fields"""
    changes = {}
    for chunk in text.split("|"):
        if not chunk.strip():
            continue
        key, sep, value = chunk.partition("=")
        field = PATCH_FIELDS.get(key.strip().lower())
        value = value.strip()
        if not sep or field is None or not value:
            return None
        changes[field] = value
    return MatchPatch(**changes)


@reports_game_errors
@admin_only("setup a match")
async def setup_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Admin: open a new match for predictions
    Usage: /setup Team | Toss | Venue | Date
    """
    args = parse_setup_args(command_text(context))
    if args is None:
        await send_ephemeral_reply(update, context, SETUP_USAGE, parse_mode="HTML", delay=ADMIN_EPHEMERAL_DELAY)
        return

    match = await get_game(context).setup_match(*args)
    await send_public_reply(
        update,
        context,
        f"✅ <b>Match setup complete!</b>\n\n{formatting.match_card(match)}\n\n"
        f"👇 Send your prediction with <code>/predict runs/wickets [comment]</code>",
        parse_mode="HTML"
    )


@reports_game_errors
@admin_only("edit match details")
async def edit_match_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    patch = parse_match_patch(command_text(context))
    if patch is None or patch.is_empty():
        await send_ephemeral_reply(update, context, EDIT_USAGE, parse_mode="HTML", delay=ADMIN_EPHEMERAL_DELAY)
        return

    match = await get_game(context).edit_match(patch)
    await send_ephemeral_reply(
        update,
        context,
        f"✏️ Match details updated.\n\n{formatting.match_card(match)}",
        parse_mode="HTML",
        delay=ADMIN_EPHEMERAL_DELAY
    )


@reports_game_errors
@admin_only("close the poll")
async def close_poll_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    match = await get_game(context).close_poll()
    await send_public_reply(
        update,
        context,
        f"🔒 Poll closed for <b>{escape(match.team_name)}</b>. No further predictions will be accepted.",
        parse_mode="HTML"
    )


@reports_game_errors
@admin_only("end the match")
async def end_match_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Admin: record the actual score and announce the winner
    Usage: /end 240/5
    """
    score_text = command_text(context)
    if not score_text:
        await send_ephemeral_reply(
            update, context, "📝 <b>Usage:</b> <code>/end runs/wickets</code> (e.g., 240/5)",
            parse_mode="HTML", delay=ADMIN_EPHEMERAL_DELAY
        )
        return

    report = await get_game(context).end_match(score_text)
    await send_public_reply(update, context, formatting.winner_report(report), parse_mode="HTML")


@reports_game_errors
@admin_only("cancel a match")
async def cancel_match_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    match = await get_game(context).cancel_match()
    await send_public_reply(
        update,
        context,
        f"🗑️ The current match (<b>{escape(match.team_name)}</b>) has been cancelled and removed.",
        parse_mode="HTML"
    )


@reports_game_errors
@admin_only("export data")
async def export_command(update: Update, context: ContextTypes.DEFAULT_TYPE):
    """Admin: past matches and their predictions as a JSON document"""
    data = await get_game(context).export_all()
    if not data["matches"]:
        await send_ephemeral_reply(update, context, "📭 No past matches to export.", delay=ADMIN_EPHEMERAL_DELAY)
        return

    payload = io.BytesIO(json.dumps(data, indent=2).encode("utf-8"))
    filename = f"cricket_predictions_{datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')}.json"
    await update.message.reply_document(
        document=payload,
        filename=filename,
        caption=f"📦 Exported {len(data['matches'])} past matches."
    )
    logging.info(f"Exported {len(data['matches'])} matches for user {update.effective_user.id}")
