"""HTML message bodies for the bot's replies."""
from html import escape
from typing import List

from models import LeaderboardEntry, Match, Prediction, UserStats, WinnerReport

MEDALS = ["🥇", "🥈", "🥉"]


def prediction_line(pred: Prediction) -> str:
    line = f"• {escape(pred.username)}: <b>{pred.score}</b>"
    if pred.comment:
        line += f" <i>({escape(pred.comment)})</i>"
    return line


def predictions_block(predictions: List[Prediction], empty: str = "No predictions yet.") -> str:
    if not predictions:
        return empty
    return "\n".join(prediction_line(p) for p in predictions)


def match_card(match: Match) -> str:
    status = "🟢 Open" if match.is_open else "🔒 Closed"
    actual = f"<b>{match.actual}</b>" if match.actual else "N/A"
    return (
        f"🏏 <b>{escape(match.team_name)}</b>\n"
        f"🆔 Match ID: <code>{match.id}</code>\n"
        f"🪙 Toss: {escape(match.toss)}\n"
        f"🏟️ Venue: {escape(match.venue)}\n"
        f"📅 Date: {escape(match.match_date)}\n"
        f"📊 Status: {status}\n"
        f"🎯 Actual: {actual}"
    )


def winner_report(report: WinnerReport, top: int = 3) -> str:
    text = (
        f"🏁 <b>Match Result!</b>\n\n"
        f"🏏 {escape(report.match.team_name)} (ID <code>{report.match.id}</code>)\n"
        f"📊 Actual score: <b>{report.actual}</b>\n\n"
    )
    if report.winner is None:
        return text + "No predictions were made."
    text += (
        f"🏆 <b>{escape(report.winner.username)}</b> wins with a prediction of "
        f"<b>{report.winner.score}</b> (off by {report.distance})"
    )
    if len(report.standings) > 1:
        rows = []
        for idx, (pred, diff) in enumerate(report.standings[:top]):
            rows.append(f"{MEDALS[idx]} {escape(pred.username)}: {pred.score} ({diff})")
        text += "\n\n<b>Closest predictions:</b>\n" + "\n".join(rows)
    return text


def past_matches(matches: List[Match]) -> str:
    lines = []
    for m in matches:
        actual = str(m.actual) if m.actual else "no result"
        lines.append(
            f"• <code>{m.id}</code> | {escape(m.team_name)} | {escape(m.match_date)} | {actual}"
        )
    return "📜 <b>Past Matches:</b>\n" + "\n".join(lines)


def match_details(match: Match, predictions: List[Prediction]) -> str:
    return (
        f"{match_card(match)}\n\n"
        f"<b>Predictions:</b>\n{predictions_block(predictions, empty='No predictions.')}"
    )


def user_stats(stats: UserStats, method: str) -> str:
    return (
        f"📈 <b>Your Prediction Stats</b>\n\n"
        f"You made <b>{stats.predictions}</b> predictions with an average error of "
        f"<b>{stats.average_distance:.2f}</b> ({method} scoring)."
    )


def leaderboard(entries: List[LeaderboardEntry], method: str) -> str:
    lines = []
    for idx, entry in enumerate(entries, start=1):
        badge = MEDALS[idx - 1] if idx <= len(MEDALS) else f"{idx}."
        lines.append(
            f"{badge} {escape(entry.username)}: <b>{entry.average_distance:.2f}</b> "
            f"({entry.predictions} played)"
        )
    return f"🏆 <b>Leaderboard</b> (lower is better, {method} scoring)\n\n" + "\n".join(lines)
