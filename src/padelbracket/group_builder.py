"""Group builder with snake seeding and circle method fixtures."""

from typing import Optional

from padelbracket.bracket import new_match_id
from padelbracket.errors import InsufficientTeams, InvalidGroupConfig
from padelbracket.models import (
    AssignGroupsRequest,
    GroupAssignment,
    GroupsKnockoutConfig,
    Match,
    MatchStatus,
    Seed,
)

MAX_GROUPS = 16


def group_name(group_number: int) -> str:
    """Letter name of a group.

    Examples:
        >>> group_name(1)
        'Group A'
        >>> group_name(3)
        'Group C'
    """
    return f"Group {chr(ord('A') + group_number - 1)}"


def distribute_seeds_snake(team_ids: list[str], num_groups: int) -> list[list[str]]:
    """Distribute seeded teams into groups using snake/serpentine method.

    Seeds flow in a snake pattern:
    - Group A: 1, 8, 9, 16
    - Group B: 2, 7, 10, 15
    - Group C: 3, 6, 11, 14
    - Group D: 4, 5, 12, 13

    Args:
        team_ids: Teams sorted by seed (1 = best)
        num_groups: Number of groups to create

    Returns:
        List of lists, each containing the teams of one group
    """
    if not team_ids:
        raise InvalidGroupConfig("Cannot distribute an empty team list")

    if num_groups < 1:
        raise InvalidGroupConfig(f"Number of groups must be at least 1, got {num_groups}")

    groups: list[list[str]] = [[] for _ in range(num_groups)]

    for idx, team_id in enumerate(team_ids):
        row = idx // num_groups
        col = idx % num_groups

        # Even rows left-to-right, odd rows right-to-left
        if row % 2 == 0:
            group_idx = col
        else:
            group_idx = num_groups - 1 - col

        groups[group_idx].append(team_id)

    return groups


def compute_group_sizes(team_count: int) -> list[int]:
    """Split a team count into groups of 3 and 4.

    4 and 5 teams make a single group. Otherwise groups of 3 are used and
    one or two groups of 4 absorb the remainder.

    Examples:
        >>> compute_group_sizes(6)
        [3, 3]
        >>> compute_group_sizes(7)
        [3, 4]
        >>> compute_group_sizes(11)
        [3, 4, 4]
    """
    if team_count < 4:
        raise InsufficientTeams(f"Cannot form groups from {team_count} teams (minimum 4)")
    if team_count in (4, 5):
        return [team_count]

    groups_of_4 = {0: 0, 1: 1, 2: 2}[team_count % 3]
    groups_of_3 = (team_count - groups_of_4 * 4) // 3
    return [3] * groups_of_3 + [4] * groups_of_4


def distribute_seeds_snake_sized(team_ids: list[str], sizes: list[int]) -> list[list[str]]:
    """Snake distribution into groups of given (possibly uneven) sizes.

    Rows alternate direction as in distribute_seeds_snake; a group that is
    already full is skipped.

    Args:
        team_ids: Teams sorted by seed (1 = best)
        sizes: Size of each group, summing to the number of teams

    Returns:
        List of lists, each containing the teams of one group
    """
    if not sizes or any(size < 1 for size in sizes):
        raise InvalidGroupConfig(f"Invalid group sizes: {sizes}")
    if sum(sizes) != len(team_ids):
        raise InvalidGroupConfig(f"Group sizes {sizes} do not add up to {len(team_ids)} teams")

    groups: list[list[str]] = [[] for _ in sizes]
    remaining = list(team_ids)
    row = 0
    while remaining:
        order = range(len(sizes)) if row % 2 == 0 else reversed(range(len(sizes)))
        for group_idx in order:
            if remaining and len(groups[group_idx]) < sizes[group_idx]:
                groups[group_idx].append(remaining.pop(0))
        row += 1

    return groups


def generate_round_robin_fixtures(team_count: int, use_matchdays: bool = False) -> list[tuple[int, int, int]]:
    """Generate every pairing of a round robin exactly once.

    Without matchdays all pairs are listed in seed order at round 1.
    With matchdays the circle method is used: one team stays fixed while
    the others rotate, giving N-1 rounds (N even) or N rounds (N odd,
    one team rests each round) where nobody plays twice in a round.

    Args:
        team_count: Number of teams
        use_matchdays: Split fixtures into circle-method rounds

    Returns:
        List of (round_number, team_index1, team_index2), indexes 0-based

    Examples:
        >>> generate_round_robin_fixtures(3)
        [(1, 0, 1), (1, 0, 2), (1, 1, 2)]
        >>> generate_round_robin_fixtures(4, use_matchdays=True)
        [(1, 0, 3), (1, 1, 2), (2, 0, 2), (2, 3, 1), (3, 0, 1), (3, 2, 3)]
    """
    if team_count < 2:
        raise InsufficientTeams(f"A round robin needs at least 2 teams, got {team_count}")

    if not use_matchdays:
        return [(1, i, j) for i in range(team_count) for j in range(i + 1, team_count)]

    # None is the rest slot for an odd team count
    rotation: list[Optional[int]] = list(range(team_count))
    if team_count % 2 == 1:
        rotation.append(None)
    size = len(rotation)

    fixtures = []
    for round_number in range(1, size):
        for i in range(size // 2):
            home, away = rotation[i], rotation[size - 1 - i]
            if home is not None and away is not None:
                fixtures.append((round_number, home, away))
        rotation = [rotation[0], rotation[-1]] + rotation[1:-1]

    return fixtures


def build_round_robin_matches(
    bracket_id: str,
    team_ids: list[str],
    start_match_number: int = 1,
    group_number: Optional[int] = None,
    use_matchdays: bool = False,
) -> list[Match]:
    """Create the matches of one round robin (a whole bracket or one group).

    Both teams are known from the start; no match has a successor.
    """
    fixtures = generate_round_robin_fixtures(len(team_ids), use_matchdays)
    matches = []
    for offset, (round_number, i, j) in enumerate(fixtures):
        if group_number is not None:
            round_name = group_name(group_number)
        elif use_matchdays:
            round_name = f"Matchday {round_number}"
        else:
            round_name = "Round Robin"
        matches.append(
            Match(
                id=new_match_id(),
                bracket_id=bracket_id,
                round_number=round_number,
                match_number=start_match_number + offset,
                round_name=round_name,
                team1_id=team_ids[i],
                team2_id=team_ids[j],
                status=MatchStatus.PENDING,
                group_number=group_number,
            )
        )
    return matches


def _validate_assignment(request: AssignGroupsRequest, team_ids: list[str], config: GroupsKnockoutConfig) -> list[list[str]]:
    """Check an explicit group composition against the bracket's teams."""
    group_count = len(request.groups) if config.auto_groups else config.group_count
    if len(request.groups) != group_count:
        raise InvalidGroupConfig(
            f"Expected {group_count} groups, got {len(request.groups)}"
        )

    numbers = sorted(g.group_number for g in request.groups)
    if numbers != list(range(1, group_count + 1)):
        raise InvalidGroupConfig(f"Group numbers must be 1..{group_count}, got {numbers}")

    assigned = [team_id for g in request.groups for team_id in g.team_ids]
    if len(assigned) != len(set(assigned)):
        raise InvalidGroupConfig("A team is assigned to more than one group")
    if set(assigned) != set(team_ids):
        missing = set(team_ids) - set(assigned)
        unknown = set(assigned) - set(team_ids)
        raise InvalidGroupConfig(
            f"Group assignment does not match the bracket's teams "
            f"(missing: {sorted(missing)}, unknown: {sorted(unknown)})"
        )

    for g in request.groups:
        if len(g.team_ids) < 2:
            raise InvalidGroupConfig(f"{group_name(g.group_number)} needs at least 2 teams")

    return [list(g.team_ids) for g in sorted(request.groups, key=lambda g: g.group_number)]


def create_group_stage(
    bracket_id: str,
    seeds: list[Seed],
    config: GroupsKnockoutConfig,
    assignment: Optional[AssignGroupsRequest] = None,
) -> tuple[list[GroupAssignment], list[Match]]:
    """Create groups with snake seeding (or an explicit assignment) and fixtures.

    Without group_count/teams_per_group the sizes come from
    compute_group_sizes and teams are snake-seeded into groups of uneven
    size.

    Args:
        bracket_id: Owning bracket
        seeds: Seeded teams
        config: Groups configuration
        assignment: Optional explicit group composition

    Returns:
        Tuple of (groups, matches). Match numbers run on across groups.

    Raises:
        InvalidGroupConfig: If groups do not fit the teams
        InsufficientTeams: Too few teams to form groups automatically
    """
    team_ids = [s.team_id for s in sorted(seeds, key=lambda s: s.seed_rank)]

    if assignment is not None:
        group_lists = _validate_assignment(assignment, team_ids, config)
    elif config.auto_groups:
        group_lists = distribute_seeds_snake_sized(team_ids, compute_group_sizes(len(team_ids)))
    else:
        if config.group_count * config.teams_per_group != len(team_ids):
            raise InvalidGroupConfig(
                f"{config.group_count} groups of {config.teams_per_group} need "
                f"{config.group_count * config.teams_per_group} teams, got {len(team_ids)}"
            )
        group_lists = distribute_seeds_snake(team_ids, config.group_count)

    if len(group_lists) > MAX_GROUPS:
        raise InvalidGroupConfig(f"Maximum {MAX_GROUPS} groups allowed, got {len(group_lists)}")
    smallest = min(len(g) for g in group_lists)
    if config.advancing_per_group >= smallest:
        raise InvalidGroupConfig(
            f"advancing_per_group ({config.advancing_per_group}) must be lower than "
            f"the smallest group size ({smallest})"
        )
    if config.wildcard_count > len(group_lists):
        raise InvalidGroupConfig(f"wildcard_count must be between 0 and {len(group_lists)}")

    groups = []
    matches: list[Match] = []
    for group_number, group_teams in enumerate(group_lists, start=1):
        groups.append(GroupAssignment(group_number=group_number, team_ids=group_teams))
        matches.extend(
            build_round_robin_matches(
                bracket_id,
                group_teams,
                start_match_number=len(matches) + 1,
                group_number=group_number,
                use_matchdays=config.use_matchdays,
            )
        )

    return groups, matches
