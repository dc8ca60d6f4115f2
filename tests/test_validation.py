"""Tests for padel score validation rules."""

import pytest

from padelbracket.errors import InvalidInput
from padelbracket.models import Invalid, MatchFormat, ScoringFormat, SetScore, TiebreakScore, Valid
from padelbracket.validation import (
    get_valid_winning_scores,
    is_tiebreak_set,
    is_valid_set_score,
    validate_classic_score,
    validate_express_score,
    validate_express_set,
    validate_score,
    validate_set_score,
)


def tb(team1, team2, tb1, tb2):
    return SetScore(team1, team2, TiebreakScore(tb1, tb2))


class TestValidateSetScore:
    """Test cases for validate_set_score function."""

    def test_valid_standard_scores(self):
        assert validate_set_score(6, 0) == (True, "")
        assert validate_set_score(6, 4) == (True, "")
        assert validate_set_score(4, 6) == (True, "")
        assert validate_set_score(7, 5) == (True, "")
        assert validate_set_score(7, 6) == (True, "")
        assert validate_set_score(6, 7) == (True, "")

    def test_invalid_scores(self):
        for team1, team2 in [(6, 5), (8, 6), (5, 3), (7, 4), (7, 7)]:
            is_valid, msg = validate_set_score(team1, team2)
            assert is_valid is False, (team1, team2)
            assert msg

    def test_tied_set(self):
        is_valid, msg = validate_set_score(6, 6)
        assert is_valid is False
        assert "cannot be tied" in msg

    def test_negative_scores(self):
        is_valid, msg = validate_set_score(-1, 6)
        assert is_valid is False
        assert "negative" in msg

    def test_message_lists_valid_scores(self):
        _, msg = validate_set_score(6, 5)
        assert "Invalid set score 6-5" in msg
        assert "7-6" in msg

    def test_custom_games_per_set(self):
        assert get_valid_winning_scores(4) == [(4, 0), (4, 1), (4, 2), (5, 3), (5, 4)]
        assert is_valid_set_score(4, 2, games_per_set=4)
        assert is_valid_set_score(5, 4, games_per_set=4)
        assert not is_valid_set_score(6, 4, games_per_set=4)

    def test_no_tiebreak_disallows_extended_sets(self):
        assert not is_valid_set_score(7, 6, allow_tiebreak=False)
        assert not is_valid_set_score(7, 5, allow_tiebreak=False)
        assert is_valid_set_score(6, 4, allow_tiebreak=False)

    def test_is_tiebreak_set(self):
        assert is_tiebreak_set(7, 6)
        assert is_tiebreak_set(6, 7)
        assert not is_tiebreak_set(7, 5)


class TestValidateClassicScore:
    """Test cases for whole classic matches."""

    def test_straight_sets_win(self):
        assert validate_classic_score([SetScore(6, 4), SetScore(6, 3)]) == Valid(winner=1, sets_won=(2, 0))

    def test_three_set_win_for_team2(self):
        result = validate_classic_score([SetScore(6, 4), SetScore(3, 6), SetScore(5, 7)])
        assert result == Valid(winner=2, sets_won=(1, 2))

    def test_tiebreak_set_with_valid_tiebreak(self):
        result = validate_classic_score([tb(7, 6, 7, 5), SetScore(6, 4)])
        assert result == Valid(winner=1, sets_won=(2, 0))

    def test_extended_tiebreak(self):
        result = validate_classic_score([tb(6, 7, 10, 12), SetScore(4, 6)])
        assert result.is_valid
        assert result.winner == 2

    def test_tiebreak_set_without_tiebreak_score(self):
        result = validate_classic_score([SetScore(7, 6), SetScore(6, 4)])
        assert isinstance(result, Invalid)
        assert result.reason.startswith("Set 1:")
        assert "tiebreak score required" in result.reason

    def test_tiebreak_needs_two_point_lead(self):
        result = validate_classic_score([tb(7, 6, 7, 6), SetScore(6, 4)])
        assert isinstance(result, Invalid)
        assert "2-point lead" in result.reason

    def test_tiebreak_must_reach_seven(self):
        result = validate_classic_score([tb(7, 6, 6, 4), SetScore(6, 4)])
        assert isinstance(result, Invalid)
        assert "first to 7" in result.reason

    def test_tiebreak_winner_must_match_set_winner(self):
        result = validate_classic_score([tb(7, 6, 5, 7), SetScore(6, 4)])
        assert isinstance(result, Invalid)
        assert "tiebreak winner" in result.reason

    def test_invalid_set_reports_set_number(self):
        result = validate_classic_score([SetScore(6, 4), SetScore(6, 5)])
        assert isinstance(result, Invalid)
        assert result.reason.startswith("Set 2:")

    def test_no_sets(self):
        assert validate_classic_score([]) == Invalid("At least one set required")

    def test_too_many_sets(self):
        sets = [SetScore(6, 4), SetScore(4, 6), SetScore(6, 4), SetScore(6, 4)]
        result = validate_classic_score(sets)
        assert result == Invalid("Maximum 3 set(s) allowed")

    def test_set_after_match_decided(self):
        result = validate_classic_score([SetScore(6, 4), SetScore(6, 4), SetScore(4, 6)])
        assert isinstance(result, Invalid)
        assert "already decided after set 2" in result.reason

    def test_incomplete_match(self):
        result = validate_classic_score([SetScore(6, 4), SetScore(4, 6)])
        assert result == Invalid("Match incomplete: need 2 set(s) to win (current: 1-1)")

    def test_best_of_five(self):
        sets = [SetScore(6, 4), SetScore(4, 6), SetScore(6, 4), SetScore(6, 4)]
        assert validate_classic_score(sets, total_sets=5) == Valid(winner=1, sets_won=(3, 1))

    def test_single_set_match(self):
        assert validate_classic_score([SetScore(6, 2)], total_sets=1) == Valid(winner=1, sets_won=(1, 0))


class TestValidateExpress:
    """Test cases for express (points-based) scoring."""

    def test_valid_express_sets(self):
        assert validate_express_set(8, 0, 8) == (True, "")
        assert validate_express_set(7, 8, 8) == (True, "")

    def test_express_over_maximum(self):
        is_valid, msg = validate_express_set(9, 7, 8)
        assert is_valid is False
        assert msg == "Maximum score is 8 points"

    def test_express_both_on_maximum(self):
        assert validate_express_set(8, 8, 8) == (False, "Both teams cannot have 8 points")

    def test_express_nobody_reached_maximum(self):
        assert validate_express_set(5, 7, 8) == (False, "One team must reach 8 points to win")

    def test_express_match(self):
        assert validate_express_score([SetScore(5, 8)], max_points=8) == Valid(winner=2, sets_won=(0, 1))

    def test_express_match_reports_set(self):
        result = validate_express_score([SetScore(8, 9)], max_points=8)
        assert result == Invalid("Set 1: Maximum score is 8 points")


class TestValidateScoreWithFormat:
    """Dispatch on MatchFormat."""

    def test_classic_format(self):
        result = validate_score([SetScore(6, 1), SetScore(6, 2)], MatchFormat())
        assert result.is_valid

    def test_express_format(self):
        fmt = MatchFormat(ScoringFormat.EXPRESS, total_sets=1, points_per_set=9)
        assert validate_score([SetScore(9, 4)], fmt).is_valid
        assert not validate_score([SetScore(8, 4)], fmt).is_valid

    def test_format_rejects_even_total_sets(self):
        with pytest.raises(InvalidInput):
            MatchFormat(total_sets=2)

    def test_express_requires_points(self):
        with pytest.raises(InvalidInput):
            MatchFormat(ScoringFormat.EXPRESS, total_sets=1)

    def test_from_dict_casts_numeric_strings(self):
        fmt = MatchFormat.from_dict({"scoring": "express", "points_per_set": "8"})
        assert fmt.points_per_set == 8
        assert validate_score([SetScore(8, 3)], fmt).is_valid

    @pytest.mark.parametrize(
        "data",
        [
            {"games_per_set": "six"},
            {"total_sets": None},
            {"total_sets": [3]},
            {"scoring": "express", "points_per_set": "eight"},
            {"games_per_set": True},
            {"allow_tiebreak": "false"},
            {"allow_tiebreak": 0},
        ],
    )
    def test_from_dict_rejects_bad_values(self, data):
        with pytest.raises(InvalidInput):
            MatchFormat.from_dict(data)

    def test_set_score_parse(self):

        assert SetScore.parse("6-4") == SetScore(6, 4)
        assert SetScore.parse("7-6:7-5") == tb(7, 6, 7, 5)
        with pytest.raises(InvalidInput):
            SetScore.parse("six-four")


@pytest.mark.parametrize(
    "sets",
    [
        [SetScore(6, 4), SetScore(6, 3)],
        [SetScore(4, 6), SetScore(7, 5), SetScore(6, 0)],
        [tb(7, 6, 8, 6), SetScore(2, 6), SetScore(6, 7, TiebreakScore(4, 7))],
    ],
)
def test_swapping_sides_swaps_winner(sets):
    result = validate_classic_score(sets)
    swapped = validate_classic_score([s.swapped() for s in sets])
    assert result.is_valid and swapped.is_valid
    assert swapped.winner == 3 - result.winner
    assert swapped.sets_won == result.sets_won[::-1]
