from typing import List, Optional

from pydantic import BaseModel


class MatchOut(BaseModel):
    id: str
    team_name: str
    toss: str
    venue: str
    match_date: str
    is_open: bool
    actual_runs: Optional[int] = None
    actual_wickets: Optional[int] = None


class PredictionOut(BaseModel):
    match_id: str
    user_id: int
    username: str
    runs: int
    wickets: int
    comment: Optional[str] = None


class MatchDetailsOut(BaseModel):
    match: MatchOut
    predictions: List[PredictionOut]


class UserStatsOut(BaseModel):
    user_id: int
    username: str
    predictions: int
    average_distance: float
    scoring_method: str


class LeaderboardEntryOut(BaseModel):
    rank: int
    user_id: int
    username: str
    predictions: int
    average_distance: float


class LeaderboardOut(BaseModel):
    scoring_method: str
    items: List[LeaderboardEntryOut]


def match_out(match) -> MatchOut:
    return MatchOut(**match.to_dict())


def details_out(match, predictions) -> MatchDetailsOut:
    return MatchDetailsOut(
        match=match_out(match),
        predictions=[PredictionOut(**pred.to_dict()) for pred in predictions],
    )
