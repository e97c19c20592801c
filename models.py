from dataclasses import dataclass, field, replace
from typing import List, Optional

from scoring import Score


@dataclass(frozen=True)
class Match:
    id: str
    team_name: str
    toss: str
    venue: str
    match_date: str
    is_open: bool = True
    actual: Optional[Score] = None

    @property
    def is_finalized(self) -> bool:
        return not self.is_open and self.actual is not None

    @classmethod
    def from_row(cls, row) -> "Match":
        actual = None
        if row["actual_runs"] is not None and row["actual_wickets"] is not None:
            actual = Score(row["actual_runs"], row["actual_wickets"])
        return cls(
            id=row["id"],
            team_name=row["team_name"],
            toss=row["toss"],
            venue=row["venue"],
            match_date=row["match_date"],
            is_open=bool(row["is_open"]),
            actual=actual,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "team_name": self.team_name,
            "toss": self.toss,
            "venue": self.venue,
            "match_date": self.match_date,
            "is_open": self.is_open,
            "actual_runs": self.actual.runs if self.actual else None,
            "actual_wickets": self.actual.wickets if self.actual else None,
        }


@dataclass(frozen=True)
class Prediction:
    match_id: str
    user_id: int
    username: str
    score: Score
    comment: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> "Prediction":
        return cls(
            match_id=row["match_id"],
            user_id=row["user_id"],
            username=row["username"],
            score=Score(row["runs"], row["wickets"]),
            comment=row["comment"] or None,
        )

    def to_dict(self) -> dict:
        return {
            "match_id": self.match_id,
            "user_id": self.user_id,
            "username": self.username,
            "runs": self.score.runs,
            "wickets": self.score.wickets,
            "comment": self.comment,
        }


@dataclass(frozen=True)
class MatchPatch:
    """Partial edit of a match's descriptive fields. None means "leave as is"."""

    team_name: Optional[str] = None
    toss: Optional[str] = None
    venue: Optional[str] = None
    match_date: Optional[str] = None

    def is_empty(self) -> bool:
        return not self.changes()

    def changes(self) -> dict:
        values = {
            "team_name": self.team_name,
            "toss": self.toss,
            "venue": self.venue,
            "match_date": self.match_date,
        }
        return {key: value for key, value in values.items() if value is not None}

    def apply_to(self, match: Match) -> Match:
        return replace(match, **self.changes())


@dataclass(frozen=True)
class WinnerReport:
    match: Match
    actual: Score
    winner: Optional[Prediction] = None
    distance: Optional[int] = None
    # (prediction, distance), closest first
    standings: List[tuple] = field(default_factory=list)


@dataclass(frozen=True)
class UserStats:
    user_id: int
    username: str
    predictions: int
    average_distance: float


@dataclass(frozen=True)
class LeaderboardEntry:
    user_id: int
    username: str
    predictions: int
    average_distance: float
