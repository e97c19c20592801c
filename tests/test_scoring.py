"""Unit tests for score parsing, distance metrics and winner resolution."""

from collections import namedtuple

import pytest

from scoring import (
    Score,
    WICKET_WEIGHT,
    distance_advanced,
    distance_simple,
    get_distance_function,
    parse_score,
    rank_predictions,
    resolve_winner,
)

Pick = namedtuple("Pick", ["username", "score"])


class TestParseScore:
    def test_runs_and_wickets(self):
        assert parse_score("200/4") == Score(200, 4)

    def test_whitespace_around_segments(self):
        assert parse_score(" 200 / 4 ") == Score(200, 4)

    def test_no_range_limits(self):
        assert parse_score("-5/12") == Score(-5, 12)
        assert parse_score("+7/0") == Score(7, 0)

    @pytest.mark.parametrize(
        "text",
        ["200", "a/4", "200/", "/4", "200/4/1", "", "/", "12.5/3", "1_000/2", "2 00/4", "200/x"],
    )
    def test_malformed(self, text):
        assert parse_score(text) is None

    def test_non_string(self):
        assert parse_score(None) is None

    def test_str_round_trip(self):
        assert str(parse_score("178/5")) == "178/5"


class TestDistance:
    def test_simple_exact(self):
        assert distance_simple(Score(200, 4), Score(200, 4)) == 0

    def test_simple_runs_only(self):
        assert distance_simple(Score(195, 4), Score(200, 4)) == 5
        assert distance_simple(Score(200, 0), Score(200, 10)) == 0

    def test_advanced_weights_wickets(self):
        assert distance_advanced(Score(195, 3), Score(200, 4)) == 10
        assert distance_advanced(Score(200, 6), Score(200, 4)) == 2 * WICKET_WEIGHT

    def test_advanced_exact(self):
        assert distance_advanced(Score(178, 5), Score(178, 5)) == 0

    def test_lookup(self):
        assert get_distance_function("simple") is distance_simple
        assert get_distance_function("advanced") is distance_advanced

    def test_lookup_unknown(self):
        with pytest.raises(ValueError):
            get_distance_function("fancy")


class TestResolveWinner:
    def test_closest_wins(self):
        picks = [Pick("a", Score(180, 5)), Pick("b", Score(175, 6))]
        winner, best = resolve_winner(picks, Score(178, 5), distance_simple)
        assert winner.username == "a"
        assert best == 2

    def test_advanced_metric_same_winner(self):
        picks = [Pick("a", Score(180, 5)), Pick("b", Score(175, 6))]
        winner, best = resolve_winner(picks, Score(178, 5), distance_advanced)
        assert winner.username == "a"
        assert best == 2

    def test_metric_changes_outcome(self):
        # b is closer on runs, a is closer once wickets count
        picks = [Pick("a", Score(170, 5)), Pick("b", Score(176, 9))]
        assert resolve_winner(picks, Score(178, 5), distance_simple)[0].username == "b"
        assert resolve_winner(picks, Score(178, 5), distance_advanced)[0].username == "a"

    def test_tie_goes_to_first(self):
        picks = [Pick("first", Score(175, 5)), Pick("second", Score(181, 5))]
        winner, best = resolve_winner(picks, Score(178, 5), distance_simple)
        assert winner.username == "first"
        assert best == 3

    def test_empty(self):
        assert resolve_winner([], Score(178, 5), distance_simple) == (None, None)

    def test_winner_is_never_beaten(self):
        actual = Score(164, 7)
        picks = [Pick(str(i), Score(150 + i * 3, i % 11)) for i in range(12)]
        winner, best = resolve_winner(picks, actual, distance_advanced)
        assert all(best <= distance_advanced(p.score, actual) for p in picks)
        assert distance_advanced(winner.score, actual) == best


class TestRankPredictions:
    def test_sorted_and_stable(self):
        picks = [
            Pick("far", Score(120, 2)),
            Pick("tie1", Score(175, 5)),
            Pick("exact", Score(178, 5)),
            Pick("tie2", Score(181, 5)),
        ]
        ranked = rank_predictions(picks, Score(178, 5), distance_simple)
        assert [p.username for p, _ in ranked] == ["exact", "tie1", "tie2", "far"]
        assert [d for _, d in ranked] == [0, 3, 3, 58]
