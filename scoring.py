"""
Score parsing and prediction scoring.

- ``parse_score`` turns "200/4" into a Score (or None when malformed)
- two distance metrics, lower is better
- winner resolution with first-seen tie-break
"""
import re
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Tuple

# One wicket of error costs as much as five runs of error.
WICKET_WEIGHT = 5

_INT_PATTERN = re.compile(r"[+-]?[0-9]+")


@dataclass(frozen=True)
class Score:
    runs: int
    wickets: int

    def __str__(self):
        return f"{self.runs}/{self.wickets}"


def _parse_int(segment: str) -> Optional[int]:
    segment = segment.strip()
    if not _INT_PATTERN.fullmatch(segment):
        return None
    return int(segment)


def parse_score(text: Optional[str]) -> Optional[Score]:
    """Parse "runs/wickets". Returns None for anything else, never raises.

    No range checks: "-5/12" is structurally a score.
    """
    if not isinstance(text, str):
        return None
    parts = text.split("/")
    if len(parts) != 2:
        return None
    runs = _parse_int(parts[0])
    wickets = _parse_int(parts[1])
    if runs is None or wickets is None:
        return None
    return Score(runs, wickets)


def distance_simple(predicted: Score, actual: Score) -> int:
    return abs(predicted.runs - actual.runs)


def distance_advanced(predicted: Score, actual: Score) -> int:
    return abs(predicted.runs - actual.runs) + WICKET_WEIGHT * abs(predicted.wickets - actual.wickets)


DistanceFunction = Callable[[Score, Score], int]

SCORING_METHODS = {
    "simple": distance_simple,
    "advanced": distance_advanced,
}


def get_distance_function(name: str) -> DistanceFunction:
    try:
        return SCORING_METHODS[name]
    except KeyError:
        raise ValueError(f"Unknown scoring method {name!r}, expected one of: {', '.join(SCORING_METHODS)}")


def rank_predictions(predictions: Iterable, actual: Score, distance: DistanceFunction) -> List[Tuple[object, int]]:
    """(prediction, distance) pairs, closest first. Equal distances keep input order."""
    scored = [(pred, distance(pred.score, actual)) for pred in predictions]
    return sorted(scored, key=lambda item: item[1])


def resolve_winner(predictions: Iterable, actual: Score, distance: DistanceFunction):
    """Pick the prediction closest to ``actual``.

    Anything with a ``.score`` attribute works. Ties go to whichever came
    first. Returns ``(None, None)`` when there are no predictions.
    """
    winner = None
    best = None
    for pred in predictions:
        diff = distance(pred.score, actual)
        if best is None or diff < best:
            best = diff
            winner = pred
    return winner, best
