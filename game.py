"""
Match lifecycle, prediction registry and statistics.

One PredictionGame per process. It owns the "current match" state and a
lock; every transition builds a new LifecycleState and swaps it in only after
the store accepted the write.

    NoActiveMatch --setup--> Open --close--> Closed
    Open|Closed --end--> NoActiveMatch (match finalized)
    Open|Closed --cancel--> NoActiveMatch (match deleted)
"""
import asyncio
import logging
import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from async_database import MatchStore
from errors import AlreadyActive, InvalidScoreFormat, MatchNotFound, NoActiveMatch, PollClosed
from models import LeaderboardEntry, Match, MatchPatch, Prediction, UserStats, WinnerReport
from scoring import Score, distance_advanced, parse_score, rank_predictions, resolve_winner, SCORING_METHODS


@dataclass(frozen=True)
class LifecycleState:
    match_id: Optional[str] = None
    is_open: bool = False

    @property
    def has_match(self) -> bool:
        return self.match_id is not None


NO_ACTIVE_MATCH = LifecycleState()

# SQLite INTEGER is a signed 64-bit value
SQLITE_INT_RANGE = range(-2 ** 63, 2 ** 63)


def _parse_storable(text: str, message: Optional[str] = None) -> Score:
    """parse_score, but also rejects numbers the database cannot hold"""
    score = parse_score(text)
    if score is None or score.runs not in SQLITE_INT_RANGE or score.wickets not in SQLITE_INT_RANGE:
        raise InvalidScoreFormat(message)
    return score


class PredictionGame:
    def __init__(self, store: MatchStore, distance=distance_advanced):
        self.store = store
        self.distance = distance
        self.state = NO_ACTIVE_MATCH
        self._lock = asyncio.Lock()
        self._last_match_id = 0

    @property
    def scoring_method(self) -> str:
        for name, func in SCORING_METHODS.items():
            if func is self.distance:
                return name
        return getattr(self.distance, "__name__", "custom")

    def _new_match_id(self) -> str:
        # Millisecond timestamp, bumped when two matches land in the same millisecond
        candidate = int(time.time() * 1000)
        if candidate <= self._last_match_id:
            candidate = self._last_match_id + 1
        self._last_match_id = candidate
        return str(candidate)

    def _require_match(self) -> LifecycleState:
        if not self.state.has_match:
            raise NoActiveMatch()
        return self.state

    async def _load_current(self) -> Match:
        state = self._require_match()
        match = await self.store.get_match(state.match_id)
        if match is None:
            # Row vanished underneath us; nothing sensible to keep pointing at
            logging.warning(f"Current match {state.match_id} is missing from the database, clearing it")
            self.state = NO_ACTIVE_MATCH
            raise NoActiveMatch()
        return match

    async def restore(self) -> Optional[Match]:
        """Pick up a match that was still running when the bot last stopped"""
        async with self._lock:
            match = await self.store.get_unfinished_match()
            if match is None:
                self.state = NO_ACTIVE_MATCH
                return None
            self.state = LifecycleState(match.id, match.is_open)
            if match.id.isdigit():
                self._last_match_id = max(self._last_match_id, int(match.id))
            logging.info(f"Restored current match {match.id} (open={match.is_open})")
            return match

    async def current_match(self) -> Optional[Match]:
        if not self.state.has_match:
            return None
        return await self.store.get_match(self.state.match_id)

    # ============ LIFECYCLE ============

    async def setup_match(self, team_name: str, toss: str, venue: str, match_date: str) -> Match:
        async with self._lock:
            if self.state.has_match:
                raise AlreadyActive()
            match = Match(
                id=self._new_match_id(),
                team_name=team_name,
                toss=toss,
                venue=venue,
                match_date=match_date,
            )
            await self.store.insert_match(match)
            self.state = LifecycleState(match.id, True)
            logging.info(f"Match {match.id} set up: {team_name} at {venue} on {match_date}")
            return match

    async def edit_match(self, patch: MatchPatch) -> Match:
        async with self._lock:
            match = await self._load_current()
            if not match.is_open:
                raise PollClosed("The poll is closed, match details can no longer be edited.")
            if patch.is_empty():
                return match
            await self.store.update_match(match.id, **patch.changes())
            logging.info(f"Match {match.id} edited: {patch.changes()}")
            return patch.apply_to(match)

    async def close_poll(self) -> Match:
        async with self._lock:
            match = await self._load_current()
            if match.is_open:
                await self.store.update_match(match.id, is_open=False)
                logging.info(f"Predictions closed for match {match.id}")
            self.state = LifecycleState(match.id, False)
            return replace(match, is_open=False)

    async def end_match(self, actual_text: str) -> WinnerReport:
        async with self._lock:
            self._require_match()
            actual = _parse_storable(actual_text, "Invalid score format. Use runs/wickets (e.g., 240/5).")
            match = await self._load_current()
            await self.store.update_match(match.id, is_open=False, actual=actual)
            predictions = await self.store.get_predictions_for_match(match.id)
            winner, best = resolve_winner(predictions, actual, self.distance)
            report = WinnerReport(
                match=replace(match, is_open=False, actual=actual),
                actual=actual,
                winner=winner,
                distance=best,
                standings=rank_predictions(predictions, actual, self.distance),
            )
            self.state = NO_ACTIVE_MATCH
            if winner:
                logging.info(f"Match {match.id} ended at {actual}: {winner.username} wins ({best} off)")
            else:
                logging.info(f"Match {match.id} ended at {actual} with no predictions")
            return report

    async def cancel_match(self) -> Match:
        async with self._lock:
            match = await self._load_current()
            await self.store.delete_match(match.id)
            self.state = NO_ACTIVE_MATCH
            logging.info(f"Match {match.id} cancelled and removed")
            return match

    # ============ PREDICTIONS ============

    async def submit_prediction(self, user_id: int, username: str, score_text: str,
                                comment: Optional[str] = None) -> Prediction:
        async with self._lock:
            state = self._require_match()
            if not state.is_open:
                raise PollClosed()
            score = _parse_storable(score_text)
            prediction = Prediction(
                match_id=state.match_id,
                user_id=user_id,
                username=username,
                score=score,
                comment=(comment or "").strip() or None,
            )
            await self.store.upsert_prediction(prediction)
            return prediction

    async def get_prediction(self, user_id: int) -> Optional[Prediction]:
        state = self._require_match()
        return await self.store.get_prediction(state.match_id, user_id)

    async def list_predictions(self, match_id: Optional[str] = None) -> List[Prediction]:
        if match_id is None:
            match_id = self._require_match().match_id
        return await self.store.get_predictions_for_match(match_id)

    # ============ HISTORY & STATS ============

    async def past_matches(self) -> List[Match]:
        return await self.store.get_past_matches()

    async def match_details(self, match_id: str) -> Tuple[Match, List[Prediction]]:
        match = await self.store.get_match(match_id)
        if match is None:
            raise MatchNotFound()
        predictions = await self.store.get_predictions_for_match(match_id)
        return match, predictions

    async def user_stats(self, user_id: int) -> Optional[UserStats]:
        """Average distance over the user's finalized predictions, None if there are none"""
        rows = await self.store.get_finalized_predictions(user_id)
        if not rows:
            return None
        total = sum(self.distance(pred.score, actual) for pred, actual in rows)
        return UserStats(
            user_id=user_id,
            username=rows[-1][0].username,
            predictions=len(rows),
            average_distance=total / len(rows),
        )

    async def leaderboard(self, limit: Optional[int] = None) -> List[LeaderboardEntry]:
        """Lowest average distance first; ties keep first-appearance order"""
        totals = {}
        for pred, actual in await self.store.get_finalized_predictions():
            entry = totals.setdefault(pred.user_id, {"username": pred.username, "total": 0, "count": 0})
            entry["username"] = pred.username
            entry["total"] += self.distance(pred.score, actual)
            entry["count"] += 1
        board = [
            LeaderboardEntry(
                user_id=user_id,
                username=entry["username"],
                predictions=entry["count"],
                average_distance=entry["total"] / entry["count"],
            )
            for user_id, entry in totals.items()
        ]
        board.sort(key=lambda e: e.average_distance)
        return board[:limit] if limit is not None else board

    async def export_all(self) -> dict:
        """Closed matches with their predictions, JSON-ready"""
        past = await self.store.get_past_matches()
        details = []
        for match in past:
            predictions = await self.store.get_predictions_for_match(match.id)
            details.append({
                "match": match.to_dict(),
                "predictions": [pred.to_dict() for pred in predictions],
            })
        return {
            "exported_at": datetime.now(timezone.utc).isoformat(),
            "scoring_method": self.scoring_method,
            "matches": [match.to_dict() for match in past],
            "details": details,
        }
