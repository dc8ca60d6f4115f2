"""Validation rules for padel match scores.

Two scoring formats are supported:

Classic (games-based, FIP rules with G games per set, default 6):
- G-0 .. G-(G-2) (standard win)
- (G+1)-(G-1) (win from G-1 all), e.g. 7-5
- (G+1)-G (tiebreak at G all), e.g. 7-6, requires a tiebreak score

Express (points-based):
- First to N points wins the set (e.g. 8-0 through 8-7 for 8 points)

All functions are pure. A rejected score is reported as Invalid(reason)
naming the first violated rule; nothing is raised for a bad score.
"""

from padelbracket.models import (
    Invalid,
    MatchFormat,
    ScoreValidationResult,
    ScoringFormat,
    SetScore,
    Valid,
)

TIEBREAK_POINTS = 7


def get_valid_winning_scores(games_per_set: int = 6, allow_tiebreak: bool = True) -> list[tuple[int, int]]:
    """List valid (winner, loser) game counts for a set.

    Examples:
        >>> get_valid_winning_scores(4)
        [(4, 0), (4, 1), (4, 2), (5, 3), (5, 4)]
        >>> get_valid_winning_scores(4, allow_tiebreak=False)
        [(4, 0), (4, 1), (4, 2)]
    """
    scores = [(games_per_set, loser) for loser in range(0, games_per_set - 1)]
    if allow_tiebreak:
        scores.append((games_per_set + 1, games_per_set - 1))
        scores.append((games_per_set + 1, games_per_set))
    return scores


def validate_set_score(
    team1_games: int, team2_games: int, games_per_set: int = 6, allow_tiebreak: bool = True
) -> tuple[bool, str]:
    """Validate the bare game count of a single classic set.

    The tiebreak sub-score of a (G+1)-G set is checked separately at
    match level.

    Args:
        team1_games: Games won by team 1
        team2_games: Games won by team 2
        games_per_set: Games needed to win a set (G)
        allow_tiebreak: Whether (G+1)-(G-1) and (G+1)-G sets exist

    Returns:
        Tuple of (is_valid, error_message)

    Examples:
        >>> validate_set_score(6, 4)
        (True, '')
        >>> validate_set_score(6, 6)
        (False, 'A set cannot be tied (there must be a winner)')
    """
    if team1_games < 0 or team2_games < 0:
        return False, "Scores cannot be negative"

    if team1_games == team2_games:
        return False, "A set cannot be tied (there must be a winner)"

    winner = max(team1_games, team2_games)
    loser = min(team1_games, team2_games)

    if (winner, loser) in get_valid_winning_scores(games_per_set, allow_tiebreak):
        return True, ""

    valid_scores = ", ".join(f"{w}-{l}" for w, l in get_valid_winning_scores(games_per_set, allow_tiebreak))
    return False, f"Invalid set score {team1_games}-{team2_games}. Valid scores: {valid_scores}"


def is_valid_set_score(team1_games: int, team2_games: int, games_per_set: int = 6, allow_tiebreak: bool = True) -> bool:
    """Check a classic set score without the reason.

    Examples:
        >>> is_valid_set_score(7, 5)
        True
        >>> is_valid_set_score(8, 6)
        False
    """
    is_valid, _ = validate_set_score(team1_games, team2_games, games_per_set, allow_tiebreak)
    return is_valid


def is_tiebreak_set(team1_games: int, team2_games: int, games_per_set: int = 6) -> bool:
    """Check if a set score is (G+1)-G either way round."""
    return {team1_games, team2_games} == {games_per_set, games_per_set + 1}


def _validate_tiebreak(set_score: SetScore, games_per_set: int) -> tuple[bool, str]:
    tiebreak = set_score.tiebreak
    if tiebreak is None:
        return (
            False,
            f"is a tiebreak set ({games_per_set + 1}-{games_per_set}), tiebreak score required",
        )

    winner = max(tiebreak.team1, tiebreak.team2)
    loser = min(tiebreak.team1, tiebreak.team2)
    if loser < 0 or winner < TIEBREAK_POINTS or winner - loser < 2:
        return (
            False,
            f"invalid tiebreak score {tiebreak.team1}-{tiebreak.team2}. "
            f"Must be first to {TIEBREAK_POINTS} with 2-point lead",
        )

    tiebreak_winner = 1 if tiebreak.team1 > tiebreak.team2 else 2
    if tiebreak_winner != set_score.winner_team:
        return False, "tiebreak winner must be the set winner"

    return True, ""


def validate_express_set(team1_points: int, team2_points: int, max_points: int) -> tuple[bool, str]:
    """Validate a single express set: exactly one side on max_points.

    Examples:
        >>> validate_express_set(8, 5, 8)
        (True, '')
        >>> validate_express_set(8, 8, 8)
        (False, 'Both teams cannot have 8 points')
    """
    if team1_points < 0 or team2_points < 0:
        return False, "Scores cannot be negative"

    team1_wins = team1_points == max_points and team2_points < max_points
    team2_wins = team2_points == max_points and team1_points < max_points
    if team1_wins or team2_wins:
        return True, ""

    if team1_points > max_points or team2_points > max_points:
        return False, f"Maximum score is {max_points} points"
    if team1_points == max_points and team2_points == max_points:
        return False, f"Both teams cannot have {max_points} points"
    return False, f"One team must reach {max_points} points to win"


def _validate_sets(sets: list[SetScore], total_sets: int, set_check) -> ScoreValidationResult:
    """Shared majority-of-sets rule for both formats.

    set_check(set_score) returns (is_valid, message); the message is
    prefixed with the 1-based set number.
    """
    if not sets:
        return Invalid("At least one set required")
    if len(sets) > total_sets:
        return Invalid(f"Maximum {total_sets} set(s) allowed")

    sets_to_win = (total_sets + 1) // 2
    team1_sets = 0
    team2_sets = 0

    for idx, set_score in enumerate(sets, start=1):
        is_valid, error_msg = set_check(set_score)
        if not is_valid:
            return Invalid(f"Set {idx}: {error_msg}")

        if set_score.winner_team == 1:
            team1_sets += 1
        else:
            team2_sets += 1

        if (team1_sets >= sets_to_win or team2_sets >= sets_to_win) and idx < len(sets):
            return Invalid(f"Match already decided after set {idx}, but {len(sets)} sets provided")

    if team1_sets >= sets_to_win:
        return Valid(winner=1, sets_won=(team1_sets, team2_sets))
    if team2_sets >= sets_to_win:
        return Valid(winner=2, sets_won=(team1_sets, team2_sets))
    return Invalid(f"Match incomplete: need {sets_to_win} set(s) to win (current: {team1_sets}-{team2_sets})")


def validate_classic_score(
    sets: list[SetScore],
    games_per_set: int = 6,
    total_sets: int = 3,
    allow_tiebreak: bool = True,
) -> ScoreValidationResult:
    """Validate a classic (games-based) match score.

    Args:
        sets: Set scores in playing order
        games_per_set: Games needed to win a set
        total_sets: Best-of-N sets (odd)
        allow_tiebreak: Whether extended and tiebreak sets are allowed

    Returns:
        Valid(winner, sets_won) or Invalid(reason)

    Examples:
        >>> validate_classic_score([SetScore(6, 4), SetScore(6, 3)])
        Valid(winner=1, sets_won=(2, 0))
        >>> validate_classic_score([SetScore(6, 4)])
        Invalid(reason='Match incomplete: need 2 set(s) to win (current: 1-0)')
    """

    def check(set_score: SetScore) -> tuple[bool, str]:
        is_valid, error_msg = validate_set_score(set_score.team1, set_score.team2, games_per_set, allow_tiebreak)
        if not is_valid:
            return False, error_msg
        if is_tiebreak_set(set_score.team1, set_score.team2, games_per_set):
            return _validate_tiebreak(set_score, games_per_set)
        return True, ""

    return _validate_sets(sets, total_sets, check)


def validate_express_score(sets: list[SetScore], max_points: int, total_sets: int = 1) -> ScoreValidationResult:
    """Validate an express (points-based) match score.

    Examples:
        >>> validate_express_score([SetScore(8, 5)], max_points=8)
        Valid(winner=1, sets_won=(1, 0))
        >>> validate_express_score([SetScore(7, 5)], max_points=8)
        Invalid(reason='Set 1: One team must reach 8 points to win')
    """
    return _validate_sets(
        sets,
        total_sets,
        lambda s: validate_express_set(s.team1, s.team2, max_points),
    )


def validate_score(sets: list[SetScore], match_format: MatchFormat) -> ScoreValidationResult:
    """Validate a match score against the bracket's scoring format."""
    if match_format.scoring == ScoringFormat.EXPRESS:
        return validate_express_score(sets, match_format.points_per_set, match_format.total_sets)
    return validate_classic_score(
        sets,
        games_per_set=match_format.games_per_set,
        total_sets=match_format.total_sets,
        allow_tiebreak=match_format.allow_tiebreak,
    )
