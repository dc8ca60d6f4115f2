"""Knockout bracket generator."""

import logging
import math
import uuid
from collections import defaultdict
from typing import Optional

from padelbracket.errors import IllegalTransition, InsufficientTeams, InvalidGroupConfig
from padelbracket.models import (
    FINISHED_STATUSES,
    GroupsKnockoutConfig,
    Match,
    MatchStatus,
    StandingEntry,
)
from padelbracket.progression import MatchArena, propagate_result

logger = logging.getLogger(__name__)

THIRD_PLACE_ROUND_NAME = "Third Place"


def next_power_of_2(n: int) -> int:
    """Return the next power of 2 >= n.

    Examples:
        >>> next_power_of_2(5)
        8
        >>> next_power_of_2(8)
        8
        >>> next_power_of_2(15)
        16
    """
    if n <= 1:
        return 1
    return 2 ** math.ceil(math.log2(n))


def generate_seed_positions(bracket_size: int) -> list[int]:
    """Seed number at each slot of the first round, top to bottom.

    Built recursively so seeds 1 and 2 can only meet in the final and
    every first-round pair adds up to bracket_size + 1.

    Examples:
        >>> generate_seed_positions(4)
        [1, 4, 2, 3]
        >>> generate_seed_positions(8)
        [1, 8, 4, 5, 2, 7, 3, 6]
    """
    if bracket_size <= 2:
        return [1, 2][:bracket_size]

    top_half = generate_seed_positions(bracket_size // 2)
    positions = []
    for seed in top_half:
        positions.append(seed)
        positions.append(bracket_size + 1 - seed)
    return positions


def get_round_name(round_number: int, total_rounds: int, matches_in_round: int) -> str:
    """Human label for a knockout round.

    Examples:
        >>> get_round_name(3, 3, 1)
        'Final'
        >>> get_round_name(1, 5, 16)
        'Round of 32'
    """
    remaining = total_rounds - round_number + 1
    if remaining == 1:
        return "Final"
    elif remaining == 2:
        return "Semifinal"
    elif remaining == 3:
        return "Quarterfinal"
    elif remaining == 4:
        return "Round of 16"
    return f"Round of {2 * matches_in_round}"


def new_match_id() -> str:
    return str(uuid.uuid4())


def build_knockout_matches(
    bracket_id: str,
    team_ids: list[str],
    start_match_number: int = 1,
    third_place_match: bool = False,
) -> list[Match]:
    """Build a single-elimination match tree for teams in seed order.

    team_ids[0] is seed 1. With N teams the bracket has P = next power of
    two slots; the P - N missing seeds are byes, so the top seeds get them.
    Bye matches are resolved here and their winners already sit in the
    next round.

    Args:
        bracket_id: Owning bracket
        team_ids: Teams ordered by seed (1 = best)
        start_match_number: Number given to the first match
        third_place_match: Add a match between the semifinal losers
                           (only with 4 or more teams)

    Returns:
        Matches ordered by match number (round 1 first, final last,
        then the third-place match if any)

    Raises:
        InsufficientTeams: If fewer than 2 teams are given
    """
    if len(team_ids) < 2:
        raise InsufficientTeams(f"A knockout bracket needs at least 2 teams, got {len(team_ids)}")

    bracket_size = next_power_of_2(len(team_ids))
    total_rounds = int(math.log2(bracket_size))
    seed_positions = generate_seed_positions(bracket_size)

    # Slot -> team (None = bye)
    slots: list[Optional[str]] = [
        team_ids[seed - 1] if seed <= len(team_ids) else None for seed in seed_positions
    ]

    rounds: list[list[Match]] = []
    match_number = start_match_number
    matches_in_round = bracket_size // 2

    for round_number in range(1, total_rounds + 1):
        round_name = get_round_name(round_number, total_rounds, matches_in_round)
        current = []
        for i in range(matches_in_round):
            match = Match(
                id=new_match_id(),
                bracket_id=bracket_id,
                round_number=round_number,
                match_number=match_number,
                round_name=round_name,
            )
            if round_number == 1:
                match.team1_id = slots[2 * i]
                match.team2_id = slots[2 * i + 1]
                if match.team1_id is None or match.team2_id is None:
                    match.is_bye = True
                    match.status = MatchStatus.BYE
                    match.winner_team = 1 if match.team1_id is not None else 2
            current.append(match)
            match_number += 1

        # Wire previous round: index i feeds index i // 2 at position (i mod 2) + 1
        if rounds:
            for i, feeder in enumerate(rounds[-1]):
                feeder.next_match_id = current[i // 2].id
                feeder.next_match_position = (i % 2) + 1

        rounds.append(current)
        matches_in_round //= 2

    all_matches = [m for round_matches in rounds for m in round_matches]

    if third_place_match:
        if len(team_ids) >= 4:
            final = rounds[-1][0]
            third_place = Match(
                id=new_match_id(),
                bracket_id=bracket_id,
                round_number=final.round_number,
                match_number=match_number,
                round_name=THIRD_PLACE_ROUND_NAME,
            )
            for i, semifinal in enumerate(rounds[-2]):
                semifinal.loser_next_match_id = third_place.id
                semifinal.loser_next_match_position = i + 1
            all_matches.append(third_place)
        else:
            logger.warning("Third place match skipped: %d teams (needs at least 4)", len(team_ids))

    return resolve_byes(all_matches)


def resolve_byes(matches: list[Match]) -> list[Match]:
    """Propagate bye winners into the next round."""
    arena = MatchArena({m.id: m for m in matches})
    for match in matches:
        if match.status == MatchStatus.BYE:
            propagate_result(arena, arena.get(match.id))
    return [arena.get(m.id) for m in matches]


# ============================================================================
# Knockout from groups
# ============================================================================


def _tier_sort_key(entry: StandingEntry):
    return (-entry.total_points, -entry.point_difference, -entry.games_won)


def select_advancing_teams(
    group_standings: dict[int, list[StandingEntry]],
    config: GroupsKnockoutConfig,
) -> list[tuple[str, int]]:
    """Pick the knockout qualifiers in seed order.

    Qualifiers are taken tier by tier (all group winners, then all
    runners-up, ...). Within a tier the order is total points, point
    difference, games won. Wildcards are the best teams at the next
    position after the advancing ones.

    Args:
        group_standings: Ranked standings per group number
        config: Groups configuration

    Returns:
        List of (team_id, group_number) in seed order

    Raises:
        InvalidGroupConfig: If a group has no team at an advancing position
    """
    advancing: list[tuple[str, int]] = []
    for position in range(1, config.advancing_per_group + 1):
        tier = []
        for group_number in sorted(group_standings):
            ranked = sorted(group_standings[group_number], key=lambda s: s.position)
            if len(ranked) < position:
                raise InvalidGroupConfig(f"No team at position {position} in group {group_number}")
            tier.append(ranked[position - 1])
        for entry in sorted(tier, key=_tier_sort_key):
            advancing.append((entry.team_id, entry.group_number))

    if config.wildcard_count > 0:
        wildcard_position = config.advancing_per_group + 1
        candidates = []
        for group_number in sorted(group_standings):
            ranked = sorted(group_standings[group_number], key=lambda s: s.position)
            if len(ranked) >= wildcard_position:
                candidates.append(ranked[wildcard_position - 1])
        for entry in sorted(candidates, key=_tier_sort_key)[: config.wildcard_count]:
            advancing.append((entry.team_id, entry.group_number))

    return advancing


def _first_round_pairs(bracket_size: int) -> list[tuple[int, int]]:
    """Seed-order indexes (0-based) that meet in the first round."""
    positions = generate_seed_positions(bracket_size)
    return [(positions[i] - 1, positions[i + 1] - 1) for i in range(0, bracket_size, 2)]


def place_teams_cross_group(team_ids: list[str], team_groups: dict[str, int]) -> list[str]:
    """Reorder seeded teams so teams from the same group meet late.

    1. Two teams of one group sharing a bracket half: the lower seed is
       swapped with the closest seed of another group in the other half.
    2. Any first-round pair from the same group is split by swapping
       with a team from another pair, if a swap exists that creates no
       new same-group pair.

    Args:
        team_ids: Teams in seed order
        team_groups: Group number of each team

    Returns:
        Teams in their final seed order
    """
    order = list(team_ids)
    if len(order) <= 2:
        return order

    bracket_size = next_power_of_2(len(order))
    positions = generate_seed_positions(bracket_size)
    slot_of_index = {seed - 1: slot for slot, seed in enumerate(positions)}
    half_size = bracket_size // 2

    def half_of(index: int) -> int:
        return slot_of_index[index] // half_size

    def group_of(index: int) -> Optional[int]:
        if index >= len(order):
            return None
        return team_groups.get(order[index])

    by_group = defaultdict(list)
    for index, team_id in enumerate(order):
        by_group[team_groups.get(team_id)].append(index)

    # Most constrained groups first
    for group, indexes in sorted(by_group.items(), key=lambda item: -len(item[1])):
        if group is None or len(indexes) != 2:
            continue
        first, second = sorted(indexes)
        if half_of(first) != half_of(second):
            continue
        target_half = 1 - half_of(second)
        candidates = [
            i for i in range(len(order))
            if half_of(i) == target_half and group_of(i) != group
        ]
        if candidates:
            swap_with = min(candidates, key=lambda i: abs(i - second))
            order[second], order[swap_with] = order[swap_with], order[second]

    pairs = [(a, b) for a, b in _first_round_pairs(bracket_size)]

    def conflicted(a: int, b: int) -> bool:
        group_a, group_b = group_of(a), group_of(b)
        return group_a is not None and group_a == group_b

    for a, b in pairs:
        if not conflicted(a, b):
            continue
        for other_a, other_b in pairs:
            if (other_a, other_b) == (a, b):
                continue
            for candidate, partner in ((other_b, other_a), (other_a, other_b)):
                if candidate >= len(order):
                    continue
                order[b], order[candidate] = order[candidate], order[b]
                if not conflicted(a, b) and not conflicted(partner, candidate):
                    break
                order[b], order[candidate] = order[candidate], order[b]
            else:
                continue
            break

    return order


def build_knockout_from_groups(
    bracket_id: str,
    group_matches: list[Match],
    group_standings: dict[int, list[StandingEntry]],
    config: GroupsKnockoutConfig,
) -> list[Match]:
    """Generate the knockout phase once group play is over.

    Raises:
        IllegalTransition: If a group match is still unfinished
    """
    unfinished = [m for m in group_matches if m.status not in FINISHED_STATUSES]
    if unfinished:
        raise IllegalTransition(f"Cannot generate knockout: {len(unfinished)} group matches still incomplete")

    advancing = select_advancing_teams(group_standings, config)
    team_groups = dict(advancing)
    seeded = place_teams_cross_group([team_id for team_id, _ in advancing], team_groups)

    start = max((m.match_number for m in group_matches), default=0) + 1
    matches = build_knockout_matches(bracket_id, seeded, start, config.third_place_match)
    logger.info("Knockout generated for bracket %s: %d teams, %d matches", bracket_id, len(seeded), len(matches))
    return matches
