"""Standings calculator with tie-breaking rules."""

import logging
from itertools import groupby
from typing import Optional

from padelbracket.bracket import THIRD_PLACE_ROUND_NAME
from padelbracket.models import (
    KnockoutPointsConfig,
    Match,
    MatchStatus,
    StandingEntry,
    StandingsConfig,
)

logger = logging.getLogger(__name__)

SCORED_STATUSES = (MatchStatus.COMPLETED, MatchStatus.FORFEITED)


def _is_scored(match: Match) -> bool:
    return match.status in SCORED_STATUSES and match.winner_team is not None


def _teams_in_order(matches: list[Match]) -> list[str]:
    """Team ids in order of first appearance by match number."""
    seen = {}
    for match in sorted(matches, key=lambda m: m.match_number):
        for team_id in (match.team1_id, match.team2_id):
            if team_id is not None and team_id not in seen:
                seen[team_id] = True
    return list(seen)


def head_to_head_wins(team_ids: set[str], matches: list[Match]) -> dict[str, int]:
    """Count wins of each team in matches played only among the given teams."""
    wins = {team_id: 0 for team_id in team_ids}
    for match in matches:
        if not _is_scored(match):
            continue
        if match.team1_id in team_ids and match.team2_id in team_ids:
            wins[match.winner_id] += 1
    return wins


def _criterion_values(name: str, entries: list[StandingEntry], matches: list[Match]) -> dict[str, int]:
    if name == "head_to_head":
        return head_to_head_wins({e.team_id for e in entries}, matches)
    return {e.team_id: getattr(e, name) for e in entries}


def rank_entries(entries: list[StandingEntry], tie_breakers: tuple[str, ...], matches: list[Match]) -> list[StandingEntry]:
    """Order entries by a chain of descending criteria.

    Each criterion only separates entries still tied on every earlier
    criterion; head_to_head is recomputed among exactly those entries.
    Ties left after the chain keep input order.

    Args:
        entries: Standing entries in insertion order
        tie_breakers: Criterion names, most important first
        matches: Matches of the scope (for head_to_head)

    Returns:
        Entries sorted best first
    """
    if len(entries) <= 1 or not tie_breakers:
        return list(entries)

    name, rest = tie_breakers[0], tie_breakers[1:]
    values = _criterion_values(name, entries, matches)
    ordered = sorted(entries, key=lambda e: -values[e.team_id])

    ranked = []
    for value, tied in groupby(ordered, key=lambda e: values[e.team_id]):
        tied = list(tied)
        if len(tied) > 1:
            logger.debug(
                "[TIE-BREAK] %s=%s shared by %s, next: %s",
                name,
                value,
                ", ".join(e.team_id for e in tied),
                rest[0] if rest else "input order",
            )
        ranked.extend(rank_entries(tied, rest, matches))
    return ranked


def compute_standings(
    bracket_id: str,
    matches: list[Match],
    config: Optional[StandingsConfig] = None,
    group_number: Optional[int] = None,
) -> list[StandingEntry]:
    """Calculate round robin standings for a bracket or one group.

    Scoring (defaults, see StandingsConfig):
    - Win: 3 points
    - Loss: 0 points
    - Forfeit loss: 0 points

    Forfeits count as a full win/loss; games only count when sets were
    recorded for the forfeited match.

    Args:
        bracket_id: Owning bracket
        matches: Matches of the bracket
        config: Points and tie-break chain
        group_number: Restrict to one group's matches

    Returns:
        StandingEntry list with positions 1..N (1 = best)
    """
    config = config or StandingsConfig()
    if group_number is not None:
        matches = [m for m in matches if m.group_number == group_number]

    entries = {
        team_id: StandingEntry(bracket_id=bracket_id, team_id=team_id, group_number=group_number)
        for team_id in _teams_in_order(matches)
    }

    for match in matches:
        if not _is_scored(match) or not match.has_both_teams:
            continue

        winner = entries[match.winner_id]
        loser = entries[match.loser_id]

        winner.total_points += config.win_points
        winner.matches_won += 1
        if match.status == MatchStatus.FORFEITED:
            loser.total_points += config.forfeit_loss_points
        else:
            loser.total_points += config.loss_points
        loser.matches_lost += 1

        for side, entry in ((1, entries[match.team1_id]), (2, entries[match.team2_id])):
            entry.matches_played += 1
            own, other = (match.team1_games, match.team2_games) if side == 1 else (match.team2_games, match.team1_games)
            entry.games_won += own
            entry.games_lost += other

    ranked = rank_entries(list(entries.values()), config.tie_breakers, matches)
    for position, entry in enumerate(ranked, start=1):
        entry.position = position
    return ranked


def compute_group_standings(
    bracket_id: str,
    matches: list[Match],
    config: Optional[StandingsConfig] = None,
) -> dict[int, list[StandingEntry]]:
    """Rank every group separately; positions restart at 1 per group."""
    group_numbers = sorted({m.group_number for m in matches if m.group_number is not None})
    return {g: compute_standings(bracket_id, matches, config, group_number=g) for g in group_numbers}


def _round_reached(lost_round_name: Optional[str], lost_round: int) -> str:
    if lost_round_name == "Final":
        return "Finalist"
    elif lost_round_name == "Semifinal":
        return "Semifinalist"
    elif lost_round_name == "Quarterfinal":
        return "Quarterfinalist"
    return f"Round {lost_round}"


def compute_knockout_standings(
    bracket_id: str,
    matches: list[Match],
    points: Optional[KnockoutPointsConfig] = None,
) -> list[StandingEntry]:
    """Rank knockout teams by how far they progressed.

    Order: champion first, then every other team by the deepest round it
    reached. A team still in play counts the latest round it is drawn in
    and ranks ahead of teams eliminated in that same round. Among
    eliminated teams the third-place winner goes ahead of the other
    semifinal loser, then point difference, then insertion order.

    Points (defaults, see KnockoutPointsConfig):
    - Champion: 100
    - Finalist: 70
    - Semifinalist: 50
    - Quarterfinalist: 30
    - Earlier rounds: 10 + 5 x round lost

    Group-stage matches are ignored.
    """
    points = points or KnockoutPointsConfig()
    matches = [m for m in matches if m.group_number is None]

    entries = {
        team_id: StandingEntry(bracket_id=bracket_id, team_id=team_id)
        for team_id in _teams_in_order(matches)
    }
    lost_in: dict[str, Match] = {}
    third_place_winner: Optional[str] = None
    champion: Optional[str] = None

    for match in matches:
        if not _is_scored(match):
            continue

        for side in (1, 2):
            team_id = match.team_at(side)
            if team_id is None:
                continue
            entry = entries[team_id]
            entry.matches_played += 1
            own, other = (match.team1_games, match.team2_games) if side == 1 else (match.team2_games, match.team1_games)
            entry.games_won += own
            entry.games_lost += other
            if match.winner_team == side:
                entry.matches_won += 1
            else:
                entry.matches_lost += 1

        if match.round_name == THIRD_PLACE_ROUND_NAME:
            third_place_winner = match.winner_id
            continue

        if match.loser_id is not None:
            lost_in[match.loser_id] = match
        if match.next_match_id is None and match.winner_id is not None:
            champion = match.winner_id

    # Deepest round each team is drawn in, third place match excluded
    drawn_in: dict[str, int] = {}
    for match in matches:
        if match.round_name == THIRD_PLACE_ROUND_NAME:
            continue
        for team_id in (match.team1_id, match.team2_id):
            if team_id is not None:
                drawn_in[team_id] = max(drawn_in.get(team_id, 0), match.round_number)

    def sort_key(entry: StandingEntry):
        lost = lost_in.get(entry.team_id)
        return (
            entry.team_id != champion,
            -(lost.round_number if lost else drawn_in.get(entry.team_id, 0)),
            lost is not None,
            entry.team_id != third_place_winner,
            -entry.point_difference,
        )

    # sorted() is stable: equal keys keep insertion order
    ranked = sorted(entries.values(), key=sort_key)

    for position, entry in enumerate(ranked, start=1):
        entry.position = position
        lost = lost_in.get(entry.team_id)
        if entry.team_id == champion:
            entry.round_reached = "Champion"
            entry.total_points = points.champion
        elif lost is not None:
            entry.round_reached = _round_reached(lost.round_name, lost.round_number)
            entry.total_points = {
                "Finalist": points.finalist,
                "Semifinalist": points.semifinalist,
                "Quarterfinalist": points.quarterfinalist,
            }.get(entry.round_reached, points.base_points + lost.round_number * points.per_round_bonus)

    return ranked
