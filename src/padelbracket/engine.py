"""Engine entry points: bracket generation, score validation, standings.

Everything here is pure. The caller loads the bracket and its matches,
calls the engine and persists what comes back.
"""

import logging
import uuid
from dataclasses import replace
from typing import Optional, Union

from padelbracket.bracket import build_knockout_from_groups, build_knockout_matches
from padelbracket.errors import IllegalTransition, InsufficientTeams, InvalidInput, NotFound
from padelbracket.group_builder import build_round_robin_matches, create_group_stage, group_name
from padelbracket.models import (
    AssignGroupsRequest,
    Bracket,
    BracketConfig,
    BracketFormat,
    GroupsKnockoutConfig,
    GroupState,
    KnockoutConfig,
    KnockoutPointsConfig,
    Match,
    MatchFormat,
    MatchStatus,
    RoundRobinConfig,
    ScoreValidationResult,
    SeedingMethod,
    SetScore,
    StandingEntry,
    StandingsConfig,
    parse_bracket_config,
)
from padelbracket.seeding import RankingLookup, seed_teams
from padelbracket.standings import compute_group_standings, compute_knockout_standings, compute_standings
from padelbracket.validation import validate_score as _validate_score

logger = logging.getLogger(__name__)

MAX_TEAMS_PER_BRACKET = 128

_CONFIG_TYPES = {
    BracketFormat.KNOCKOUT: KnockoutConfig,
    BracketFormat.ROUND_ROBIN: RoundRobinConfig,
    BracketFormat.GROUPS_KNOCKOUT: GroupsKnockoutConfig,
}


def resolve_config(bracket_format: BracketFormat, config: Union[BracketConfig, dict, None]) -> BracketConfig:
    """Return the typed config for a format, parsing a raw dict if needed.

    Raises:
        InvalidInput: If the format has no generator or the config type
                      does not match the format
    """
    if bracket_format not in _CONFIG_TYPES:
        raise InvalidInput(f"Bracket format '{bracket_format.value}' has no generator")

    if config is None or isinstance(config, dict):
        return parse_bracket_config(bracket_format, config)

    if not isinstance(config, _CONFIG_TYPES[bracket_format]):
        raise InvalidInput(f"{type(config).__name__} does not fit format '{bracket_format.value}'")
    return config


def generate_bracket(
    team_ids: list[str],
    bracket_format: BracketFormat,
    seeding_method: SeedingMethod,
    config: Union[BracketConfig, dict, None] = None,
    tournament_id: str = "",
    category_id: int = 0,
    bracket_id: Optional[str] = None,
    rankings: Optional[RankingLookup] = None,
    random_seed: Optional[int] = None,
    assignment: Optional[AssignGroupsRequest] = None,
) -> tuple[Bracket, list[Match]]:
    """Seed teams and build the initial match graph.

    Args:
        team_ids: Teams of the category
        bracket_format: knockout, round_robin or groups_knockout
        seeding_method: random, manual or ranking
        config: Typed config or raw dict for the format
        tournament_id: Owning tournament
        category_id: Owning category
        bracket_id: Id to use (a new one is generated if None)
        rankings: Ranking lookup for ranking seeding
        random_seed: Seed for a reproducible random draw
        assignment: Explicit groups (groups_knockout only)

    Returns:
        Tuple of (bracket, matches). Byes are already resolved.

    Raises:
        InsufficientTeams: Fewer than 2 teams
        InvalidInput: Duplicates, too many teams, unknown format/config
        InvalidGroupConfig: Groups do not fit the teams
    """
    if len(team_ids) < 2:
        raise InsufficientTeams(f"A bracket needs at least 2 teams, got {len(team_ids)}")
    if len(team_ids) > MAX_TEAMS_PER_BRACKET:
        raise InvalidInput(f"Maximum {MAX_TEAMS_PER_BRACKET} teams per bracket")

    typed_config = resolve_config(bracket_format, config)
    if assignment is not None and bracket_format != BracketFormat.GROUPS_KNOCKOUT:
        raise InvalidInput("Group assignment is only accepted for groups_knockout brackets")

    seeds = seed_teams(team_ids, seeding_method, rankings=rankings, random_seed=random_seed)
    seeded_ids = [s.team_id for s in seeds]

    bracket = Bracket(
        id=bracket_id or str(uuid.uuid4()),
        tournament_id=tournament_id,
        category_id=category_id,
        format=bracket_format,
        seeding_method=seeding_method,
        config=typed_config,
    )

    if bracket_format == BracketFormat.KNOCKOUT:
        matches = build_knockout_matches(bracket.id, seeded_ids, third_place_match=typed_config.third_place_match)
    elif bracket_format == BracketFormat.ROUND_ROBIN:
        matches = build_round_robin_matches(bracket.id, seeded_ids, use_matchdays=typed_config.use_matchdays)
    else:
        groups, matches = create_group_stage(bracket.id, seeds, typed_config, assignment)
        if typed_config.auto_groups:
            # Store the layout that was actually formed
            bracket.config = replace(
                typed_config,
                group_count=len(groups),
                teams_per_group=max(len(g.team_ids) for g in groups),
            )

    logger.info(
        "Generated %s bracket %s: %d teams, %d matches",
        bracket_format.value,
        bracket.id,
        len(team_ids),
        len(matches),
    )
    return bracket, matches


def validate_score(sets: list[SetScore], match_format: Optional[MatchFormat] = None) -> ScoreValidationResult:
    """Validate set scores against a scoring format (classic defaults)."""
    return _validate_score(sets, match_format or MatchFormat())


def _require_groups_knockout(bracket: Bracket) -> GroupsKnockoutConfig:
    if bracket.format != BracketFormat.GROUPS_KNOCKOUT or not isinstance(bracket.config, GroupsKnockoutConfig):
        raise InvalidInput(f"Bracket {bracket.id} is not a groups_knockout bracket")
    return bracket.config


def generate_knockout_phase(
    bracket: Bracket,
    matches: list[Match],
    standings_config: Optional[StandingsConfig] = None,
) -> list[Match]:
    """Build the knockout matches of a groups_knockout bracket.

    Raises:
        InvalidInput: If the bracket is not groups_knockout
        IllegalTransition: Knockout already generated or groups unfinished
    """
    config = _require_groups_knockout(bracket)
    if bracket.knockout_generated or any(m.group_number is None for m in matches):
        raise IllegalTransition("Knockout phase already generated")

    group_matches = [m for m in matches if m.group_number is not None]
    group_standings = compute_group_standings(bracket.id, group_matches, standings_config)
    return build_knockout_from_groups(bracket.id, group_matches, group_standings, config)


def knockout_matches_to_delete(bracket: Bracket, matches: list[Match]) -> list[Match]:
    """Knockout matches of a groups_knockout bracket that may be removed.

    Raises:
        IllegalTransition: If there is no knockout phase or a knockout
                           match already started or finished
    """
    _require_groups_knockout(bracket)
    knockout = [m for m in matches if m.group_number is None]
    if not knockout:
        raise IllegalTransition("No knockout phase found to delete")

    played = [m for m in knockout if m.status in (MatchStatus.IN_PROGRESS, MatchStatus.COMPLETED, MatchStatus.FORFEITED)]
    if played:
        raise IllegalTransition(
            f"Cannot delete knockout phase: {len(played)} match(es) already started or completed"
        )
    return knockout


def compute_bracket_standings(
    bracket: Bracket,
    matches: list[Match],
    standings_config: Optional[StandingsConfig] = None,
    knockout_points: Optional[KnockoutPointsConfig] = None,
    group_number: Optional[int] = None,
) -> list[StandingEntry]:
    """Standings for the natural scope of a bracket's format.

    - knockout: elimination depth
    - round_robin: whole bracket
    - groups_knockout: the given group, or every group in its own scope
    """
    if bracket.format == BracketFormat.KNOCKOUT:
        return compute_knockout_standings(bracket.id, matches, knockout_points)

    if bracket.format == BracketFormat.ROUND_ROBIN:
        return compute_standings(bracket.id, matches, standings_config)

    if bracket.format == BracketFormat.GROUPS_KNOCKOUT:
        if group_number is not None:
            return compute_standings(bracket.id, matches, standings_config, group_number=group_number)
        by_group = compute_group_standings(bracket.id, matches, standings_config)
        return [entry for g in sorted(by_group) for entry in by_group[g]]

    raise InvalidInput(f"Bracket format '{bracket.format.value}' has no standings")


def get_groups_state(
    bracket: Bracket,
    matches: list[Match],
    standings_config: Optional[StandingsConfig] = None,
) -> list[GroupState]:
    """Snapshot of every group: teams, matches and current standings."""
    _require_groups_knockout(bracket)
    by_group = compute_group_standings(bracket.id, matches, standings_config)
    groups = []
    for number in sorted(by_group):
        group_matches = sorted((m for m in matches if m.group_number == number), key=lambda m: m.match_number)
        groups.append(
            GroupState(
                group_number=number,
                group_name=group_name(number),
                team_ids=list(dict.fromkeys(t for m in group_matches for t in (m.team1_id, m.team2_id) if t)),
                matches=group_matches,
                standings=by_group[number],
            )
        )
    return groups


def swap_teams_in_groups(bracket: Bracket, matches: list[Match], team1_id: str, team2_id: str) -> list[Match]:
    """Exchange two teams between groups before their group matches start.

    Every group match of either team is rewritten with the other team in
    its place, so each team takes over the other's fixtures.

    Args:
        bracket: A groups_knockout bracket still in its group phase
        matches: All matches of the bracket
        team1_id: Team to move into team2's group
        team2_id: Team to move into team1's group

    Returns:
        The rewritten matches (copies)

    Raises:
        InvalidInput: Not a groups bracket, or both teams in the same group
        NotFound: A team plays no group match in this bracket
        IllegalTransition: Knockout generated, or an affected match has
                           already started or finished
    """
    _require_groups_knockout(bracket)
    if bracket.knockout_generated or any(m.group_number is None for m in matches):
        raise IllegalTransition("Groups cannot change once the knockout phase is generated")

    group_matches = [m for m in matches if m.group_number is not None]
    group_of = {}
    for match in group_matches:
        for team_id in (match.team1_id, match.team2_id):
            if team_id is not None:
                group_of[team_id] = match.group_number
    for team_id in (team1_id, team2_id):
        if team_id not in group_of:
            raise NotFound(f"Team {team_id} is not in any group of bracket {bracket.id}")
    if group_of[team1_id] == group_of[team2_id]:
        raise InvalidInput(f"Teams {team1_id} and {team2_id} are already in the same group")

    swap = {team1_id: team2_id, team2_id: team1_id}
    affected = [m for m in group_matches if m.team1_id in swap or m.team2_id in swap]
    started = [m for m in affected if m.is_finished or m.status == MatchStatus.IN_PROGRESS]
    if started:
        numbers = ", ".join(str(m.match_number) for m in sorted(started, key=lambda m: m.match_number))
        raise IllegalTransition(f"Cannot swap teams: match(es) {numbers} already started or finished")

    swapped = [
        m.copy(team1_id=swap.get(m.team1_id, m.team1_id), team2_id=swap.get(m.team2_id, m.team2_id))
        for m in affected
    ]
    logger.info(
        "Swapped %s (%s) and %s (%s) in bracket %s: %d matches rewritten",
        team1_id,
        group_name(group_of[team1_id]),
        team2_id,
        group_name(group_of[team2_id]),
        bracket.id,
        len(swapped),
    )
    return swapped
