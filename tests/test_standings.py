"""Tests for standings calculation and tie-breaking."""

from padelbracket.bracket import build_knockout_matches
from padelbracket.models import (
    KnockoutPointsConfig,
    Match,
    MatchFormat,
    MatchStatus,
    SetScore,
    StandingsConfig,
)
from padelbracket.progression import record_score
from padelbracket.standings import compute_group_standings, compute_knockout_standings, compute_standings


def played(number, team1, team2, *sets, group_number=None):
    """Completed match from (team1, team2) game counts per set."""
    set_scores = [SetScore(g1, g2) for g1, g2 in sets]
    winner = 1 if sum(1 for s in set_scores if s.winner_team == 1) > len(set_scores) / 2 else 2
    return Match(
        id=f"m{number}",
        bracket_id="b1",
        round_number=1,
        match_number=number,
        team1_id=team1,
        team2_id=team2,
        sets=set_scores,
        winner_team=winner,
        status=MatchStatus.COMPLETED,
        group_number=group_number,
    )


def play(matches, match_id, *sets):
    result = record_score(matches, match_id, [SetScore(g1, g2) for g1, g2 in sets], MatchFormat())
    for match in result.all:
        matches[match.id] = match
    return result


class TestRoundRobinStandings:
    """Round robin ranking and tie-breaks."""

    def test_points_and_counters(self):
        matches = [
            played(1, "a", "b", (6, 4), (6, 4)),
            played(2, "a", "c", (6, 1), (3, 6), (6, 2)),
            played(3, "b", "c", (6, 3), (6, 3)),
        ]
        standings = compute_standings("b1", matches)

        assert [s.team_id for s in standings] == ["a", "b", "c"]
        assert [s.position for s in standings] == [1, 2, 3]
        a = standings[0]
        assert a.total_points == 6
        assert (a.matches_played, a.matches_won, a.matches_lost) == (2, 2, 0)
        assert (a.games_won, a.games_lost) == (27, 17)
        assert a.point_difference == 10
        assert standings[2].total_points == 0

    def test_head_to_head_breaks_two_way_tie(self):
        matches = [
            played(1, "a", "c", (6, 0), (6, 0)),
            played(2, "a", "d", (6, 0), (6, 0)),
            played(3, "b", "a", (7, 5), (7, 5)),
            played(4, "c", "b", (6, 4), (6, 4)),
            played(5, "b", "d", (6, 4), (6, 4)),
            played(6, "d", "c", (6, 4), (6, 4)),
        ]
        standings = compute_standings("b1", matches)
        # a has the better game difference but lost to b
        assert [s.team_id for s in standings] == ["b", "a", "d", "c"]

    def test_three_way_tie_falls_through_to_games(self):
        matches = [
            played(1, "a", "b", (6, 4), (6, 4)),
            played(2, "b", "c", (6, 3), (6, 3)),
            played(3, "c", "a", (6, 2), (6, 2)),
        ]
        standings = compute_standings("b1", matches)
        # Each team has one win; b and c are level on difference (+2), b won more games
        assert [s.team_id for s in standings] == ["b", "c", "a"]

    def test_unplayed_matches_do_not_count(self):
        matches = [
            played(1, "a", "b", (6, 4), (6, 4)),
            Match(id="m2", bracket_id="b1", round_number=1, match_number=2, team1_id="a", team2_id="c"),
        ]
        standings = compute_standings("b1", matches)
        assert {s.team_id for s in standings} == {"a", "b", "c"}
        c = next(s for s in standings if s.team_id == "c")
        assert c.matches_played == 0

    def test_forfeit_counts_as_win_without_games(self):
        forfeit = Match(
            id="m1", bracket_id="b1", round_number=1, match_number=1,
            team1_id="a", team2_id="b", winner_team=2, status=MatchStatus.FORFEITED,
        )
        config = StandingsConfig(win_points=3, loss_points=1, forfeit_loss_points=0)
        standings = compute_standings("b1", [forfeit], config)
        assert standings[0].team_id == "b"
        assert standings[0].total_points == 3
        assert standings[1].total_points == 0
        assert standings[1].games_won == 0

    def test_custom_points(self):
        config = StandingsConfig(win_points=2, loss_points=1)
        standings = compute_standings("b1", [played(1, "a", "b", (6, 4), (6, 4))], config)
        assert [s.total_points for s in standings] == [2, 1]

    def test_standings_per_group(self):
        matches = [
            played(1, "a1", "a2", (6, 4), (6, 4), group_number=1),
            played(2, "b1", "b2", (2, 6), (2, 6), group_number=2),
        ]
        by_group = compute_group_standings("b1", matches)
        assert sorted(by_group) == [1, 2]
        assert [s.team_id for s in by_group[1]] == ["a1", "a2"]
        assert [s.team_id for s in by_group[2]] == ["b2", "b1"]
        assert all(s.group_number == 2 for s in by_group[2])
        assert by_group[2][0].position == 1


class TestKnockoutStandings:
    """Elimination depth ranking."""

    def test_ranking_with_third_place(self):
        matches = {m.id: m for m in build_knockout_matches("b1", ["a", "b", "c", "d"], third_place_match=True)}
        by_number = {m.match_number: m.id for m in matches.values()}

        play(matches, by_number[1], (6, 2), (6, 2))  # a beats d
        play(matches, by_number[2], (4, 6), (4, 6))  # c beats b
        play(matches, by_number[3], (3, 6), (3, 6))  # c beats a in the final
        play(matches, by_number[4], (4, 6), (4, 6))  # b beats d for third

        standings = compute_knockout_standings("b1", list(matches.values()))
        assert [s.team_id for s in standings] == ["c", "a", "b", "d"]
        assert [s.round_reached for s in standings] == ["Champion", "Finalist", "Semifinalist", "Semifinalist"]
        assert [s.total_points for s in standings] == [100, 70, 50, 50]

    def test_teams_still_in_play_have_no_round(self):
        matches = build_knockout_matches("b1", ["a", "b", "c", "d"])
        standings = compute_knockout_standings("b1", matches)
        assert len(standings) == 4
        assert all(s.round_reached is None and s.total_points == 0 for s in standings)

    def test_semifinal_loser_ahead_of_unplayed_first_round(self):
        teams = [f"t{i}" for i in range(1, 9)]
        matches = {m.id: m for m in build_knockout_matches("b1", teams)}
        by_number = {m.match_number: m.id for m in matches.values()}

        play(matches, by_number[1], (6, 1), (6, 1))  # t1 beats t8
        play(matches, by_number[2], (6, 1), (6, 1))
        play(matches, by_number[5], (6, 1), (6, 1))  # t1 wins the semifinal

        standings = compute_knockout_standings("b1", list(matches.values()))
        order = [s.team_id for s in standings]
        semifinal_loser = matches[by_number[5]].loser_id
        # t1 is still in play one round deeper than anyone else
        assert order[0] == "t1"
        # Teams waiting for their first match rank below the semifinal loser
        waiting = [matches[by_number[n]].team1_id for n in (3, 4)]
        assert all(order.index(semifinal_loser) < order.index(t) for t in waiting)
        # ...but above teams knocked out in the first round
        assert all(order.index(t) < order.index("t8") for t in waiting)

    def test_early_round_points(self):
        teams = [f"t{i}" for i in range(1, 17)]
        matches = {m.id: m for m in build_knockout_matches("b1", teams)}
        first = min(matches.values(), key=lambda m: m.match_number)
        play(matches, first.id, (6, 1), (6, 1))

        standings = compute_knockout_standings("b1", list(matches.values()), KnockoutPointsConfig())
        loser = next(s for s in standings if s.team_id == "t16")
        assert loser.round_reached == "Round 1"
        assert loser.total_points == 15
        assert standings[-1].team_id == "t16"

    def test_group_matches_are_ignored(self):
        matches = [played(1, "x", "y", (6, 0), (6, 0), group_number=1)]
        assert compute_knockout_standings("b1", matches) == []


def test_positions_are_stable_under_recompute():
    matches = [
        played(1, "a", "b", (6, 4), (6, 4)),
        played(2, "c", "d", (6, 4), (6, 4)),
        played(3, "a", "c", (4, 6), (4, 6)),
        played(4, "b", "d", (6, 4), (6, 4)),
    ]
    first = compute_standings("b1", matches)
    second = compute_standings("b1", matches)
    assert [s.position for s in first] == [1, 2, 3, 4]
    assert [s.team_id for s in first] == [s.team_id for s in second]
