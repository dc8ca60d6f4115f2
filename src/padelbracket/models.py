"""Data models for padelbracket.

Domain model hierarchy:
- Bracket belongs to one tournament category and owns its Matches
- Match references other matches only by id (next / loser edges)
- Match contains Sets
- StandingEntry is a derived ranking row, recomputed from matches
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Union

from padelbracket.errors import InvalidGroupConfig, InvalidInput

MAX_SETS_PER_MATCH = 5


class BracketFormat(str, Enum):
    """Competition format of a bracket."""

    KNOCKOUT = "knockout"
    ROUND_ROBIN = "round_robin"
    GROUPS_KNOCKOUT = "groups_knockout"
    AMERICANO = "americano"
    MEXICANO = "mexicano"


class BracketStatus(str, Enum):
    """Bracket visibility. draft -> published is one-way."""

    DRAFT = "draft"
    PUBLISHED = "published"


class SeedingMethod(str, Enum):
    """How teams are ordered into seeds."""

    RANDOM = "random"
    MANUAL = "manual"
    RANKING = "ranking"


class MatchStatus(str, Enum):
    """Match status."""

    PENDING = "pending"  # Waiting for teams or not yet eligible
    SCHEDULED = "scheduled"  # Both teams known, eligible for play
    IN_PROGRESS = "in_progress"  # Currently being played
    COMPLETED = "completed"  # Finished with a validated score
    FORFEITED = "forfeited"  # Resolved without play (withdrawal)
    BYE = "bye"  # Automatic advance, generation time only


FINISHED_STATUSES = (MatchStatus.COMPLETED, MatchStatus.FORFEITED, MatchStatus.BYE)
OPEN_STATUSES = (MatchStatus.PENDING, MatchStatus.SCHEDULED, MatchStatus.IN_PROGRESS)


class ScoringFormat(str, Enum):
    """Scoring format used to validate set scores."""

    CLASSIC = "classic"  # Games-based (6-4, 7-5, 7-6)
    EXPRESS = "express"  # Points-based (first to N points)


# ============================================================================
# Scores
# ============================================================================


@dataclass(frozen=True)
class TiebreakScore:
    """Tiebreak sub-score of a 7-6 set."""

    team1: int
    team2: int


@dataclass(frozen=True)
class SetScore:
    """A single set within a match.

    Games (classic) or points (express) won by each team.
    """

    team1: int
    team2: int
    tiebreak: Optional[TiebreakScore] = None

    @property
    def winner_team(self) -> Optional[int]:
        """Return 1 or 2 for winner, None if tied."""
        if self.team1 > self.team2:
            return 1
        elif self.team2 > self.team1:
            return 2
        return None

    def swapped(self) -> "SetScore":
        """Same set seen from the other side."""
        tiebreak = None
        if self.tiebreak is not None:
            tiebreak = TiebreakScore(self.tiebreak.team2, self.tiebreak.team1)
        return SetScore(self.team2, self.team1, tiebreak)

    def to_dict(self) -> dict:
        data = {"team1": self.team1, "team2": self.team2}
        if self.tiebreak is not None:
            data["tiebreak"] = {"team1": self.tiebreak.team1, "team2": self.tiebreak.team2}
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "SetScore":
        tiebreak = data.get("tiebreak")
        return cls(
            team1=int(data["team1"]),
            team2=int(data["team2"]),
            tiebreak=TiebreakScore(int(tiebreak["team1"]), int(tiebreak["team2"])) if tiebreak else None,
        )

    @classmethod
    def parse(cls, text: str) -> "SetScore":
        """Parse "6-4" or "7-6:7-5" (set score, then tiebreak score).

        Examples:
            >>> SetScore.parse("6-4")
            SetScore(team1=6, team2=4, tiebreak=None)
        """
        set_part, _, tiebreak_part = text.strip().partition(":")
        try:
            team1, team2 = (int(v) for v in set_part.split("-"))
            tiebreak = None
            if tiebreak_part:
                tb1, tb2 = (int(v) for v in tiebreak_part.split("-"))
                tiebreak = TiebreakScore(tb1, tb2)
        except ValueError:
            raise InvalidInput(f"Cannot parse set score '{text}' (expected e.g. 6-4 or 7-6:7-5)")
        return cls(team1, team2, tiebreak)

    def __str__(self) -> str:
        if self.tiebreak is not None:
            return f"{self.team1}-{self.team2}({self.tiebreak.team1}-{self.tiebreak.team2})"
        return f"{self.team1}-{self.team2}"


@dataclass(frozen=True)
class Valid:
    """Score accepted: which side won and the (team1, team2) set split."""

    winner: int
    sets_won: tuple[int, int]

    @property
    def is_valid(self) -> bool:
        return True


@dataclass(frozen=True)
class Invalid:
    """Score rejected with the first violated rule."""

    reason: str

    @property
    def is_valid(self) -> bool:
        return False


ScoreValidationResult = Union[Valid, Invalid]


def _flag(data: dict, key: str, default: bool) -> bool:
    """Read a boolean option; strings such as "false" are rejected."""
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise InvalidInput(f"{key} must be true or false, got {value!r}")
    return value


def _number(data: dict, key: str, default: Optional[int]) -> Optional[int]:
    """Read an integer option (numeric strings accepted)."""
    value = data.get(key, default)
    if value is None and default is None:
        return None
    if value is None or isinstance(value, bool):
        raise InvalidInput(f"{key} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidInput(f"{key} must be an integer, got {value!r}")


@dataclass(frozen=True)
class MatchFormat:
    """Scoring parameters for the matches of a bracket.

    Classic uses games_per_set/allow_tiebreak, express uses points_per_set.
    total_sets is best-of-N and must be odd.
    """

    scoring: ScoringFormat = ScoringFormat.CLASSIC
    games_per_set: int = 6
    total_sets: int = 3
    allow_tiebreak: bool = True
    points_per_set: Optional[int] = None

    def __post_init__(self):
        if self.total_sets < 1 or self.total_sets > MAX_SETS_PER_MATCH:
            raise InvalidInput(f"total_sets must be between 1 and {MAX_SETS_PER_MATCH}, got {self.total_sets}")
        if self.total_sets % 2 == 0:
            raise InvalidInput(f"total_sets must be odd, got {self.total_sets}")
        if self.scoring == ScoringFormat.CLASSIC and self.games_per_set < 1:
            raise InvalidInput(f"games_per_set must be greater than 0, got {self.games_per_set}")
        if self.scoring == ScoringFormat.EXPRESS and (self.points_per_set is None or self.points_per_set < 1):
            raise InvalidInput("Express format requires points_per_set greater than 0")

    @property
    def sets_to_win(self) -> int:
        return (self.total_sets + 1) // 2

    def to_dict(self) -> dict:
        return {
            "scoring": self.scoring.value,
            "games_per_set": self.games_per_set,
            "total_sets": self.total_sets,
            "allow_tiebreak": self.allow_tiebreak,
            "points_per_set": self.points_per_set,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "MatchFormat":
        if not data:
            return cls()
        if not isinstance(data, dict):
            raise InvalidInput(f"match_format must be a mapping, got {data!r}")
        try:
            scoring = ScoringFormat(data.get("scoring", "classic"))
        except ValueError:
            raise InvalidInput(f"Unknown scoring format: {data.get('scoring')}")
        return cls(
            scoring=scoring,
            games_per_set=_number(data, "games_per_set", 6),
            total_sets=_number(data, "total_sets", 1 if scoring == ScoringFormat.EXPRESS else 3),
            allow_tiebreak=_flag(data, "allow_tiebreak", True),
            points_per_set=_number(data, "points_per_set", None),
        )


# ============================================================================
# Per-format bracket configuration (closed variant selected by format)
# ============================================================================


@dataclass(frozen=True)
class KnockoutConfig:
    """Configuration for a single-elimination bracket."""

    third_place_match: bool = False
    match_format: MatchFormat = field(default_factory=MatchFormat)


@dataclass(frozen=True)
class RoundRobinConfig:
    """Configuration for an all-play-all bracket.

    use_matchdays splits the fixtures into circle-method rounds.
    """

    use_matchdays: bool = False
    match_format: MatchFormat = field(default_factory=MatchFormat)


@dataclass(frozen=True)
class GroupsKnockoutConfig:
    """Configuration for groups followed by a knockout phase.

    group_count and teams_per_group are given together or not at all.
    Without them the groups are formed automatically from the team count
    (groups of 3 and 4, see group_builder.compute_group_sizes).
    """

    advancing_per_group: int
    group_count: Optional[int] = None
    teams_per_group: Optional[int] = None
    third_place_match: bool = False
    wildcard_count: int = 0
    use_matchdays: bool = False
    match_format: MatchFormat = field(default_factory=MatchFormat)

    def __post_init__(self):
        if (self.group_count is None) != (self.teams_per_group is None):
            raise InvalidGroupConfig("group_count and teams_per_group must be given together")
        if self.advancing_per_group < 1:
            raise InvalidGroupConfig(f"advancing_per_group must be at least 1, got {self.advancing_per_group}")
        if self.wildcard_count < 0:
            raise InvalidGroupConfig(f"wildcard_count must be at least 0, got {self.wildcard_count}")
        if self.auto_groups:
            return
        if self.group_count < 1:
            raise InvalidGroupConfig(f"group_count must be at least 1, got {self.group_count}")
        if self.teams_per_group < 2:
            raise InvalidGroupConfig(f"teams_per_group must be at least 2, got {self.teams_per_group}")
        if self.advancing_per_group >= self.teams_per_group:
            raise InvalidGroupConfig(
                f"advancing_per_group ({self.advancing_per_group}) must be lower than "
                f"teams_per_group ({self.teams_per_group})"
            )
        if self.wildcard_count > self.group_count:
            raise InvalidGroupConfig(f"wildcard_count must be between 0 and {self.group_count}")

    @property
    def auto_groups(self) -> bool:
        """True when the group layout is computed from the team count."""
        return self.group_count is None


BracketConfig = Union[KnockoutConfig, RoundRobinConfig, GroupsKnockoutConfig]

TIE_BREAKERS = ("total_points", "point_difference", "games_won", "matches_won", "head_to_head")
DEFAULT_TIE_BREAKERS = ("total_points", "head_to_head", "point_difference", "games_won")


@dataclass(frozen=True)
class StandingsConfig:
    """Points per result and the ordered tie-break chain."""

    win_points: int = 3
    loss_points: int = 0
    forfeit_loss_points: int = 0
    tie_breakers: tuple[str, ...] = DEFAULT_TIE_BREAKERS

    def __post_init__(self):
        unknown = [name for name in self.tie_breakers if name not in TIE_BREAKERS]
        if unknown:
            raise InvalidInput(f"Unknown tie-breakers: {', '.join(unknown)} (valid: {', '.join(TIE_BREAKERS)})")


@dataclass(frozen=True)
class KnockoutPointsConfig:
    """Ranking points awarded by elimination depth."""

    champion: int = 100
    finalist: int = 70
    semifinalist: int = 50
    quarterfinalist: int = 30
    base_points: int = 10
    per_round_bonus: int = 5


def parse_bracket_config(bracket_format: BracketFormat, raw: Optional[dict]) -> Optional[BracketConfig]:
    """Turn an untyped config blob into the variant for the given format.

    Args:
        bracket_format: Format tag of the bracket
        raw: Dictionary as received from the caller or the store (may be None)

    Returns:
        KnockoutConfig, RoundRobinConfig or GroupsKnockoutConfig.
        None for formats without a generator (americano, mexicano).

    Raises:
        InvalidInput / InvalidGroupConfig: If the blob does not fit the format
    """
    raw = dict(raw or {})
    match_format = MatchFormat.from_dict(raw.pop("match_format", None))

    if bracket_format == BracketFormat.KNOCKOUT:
        return KnockoutConfig(
            third_place_match=_flag(raw, "third_place_match", False),
            match_format=match_format,
        )
    if bracket_format == BracketFormat.ROUND_ROBIN:
        return RoundRobinConfig(
            use_matchdays=_flag(raw, "use_matchdays", False),
            match_format=match_format,
        )
    if bracket_format == BracketFormat.GROUPS_KNOCKOUT:
        if raw.get("advancing_per_group") is None:
            raise InvalidGroupConfig("Missing groups_knockout config field: advancing_per_group")
        return GroupsKnockoutConfig(
            advancing_per_group=_number(raw, "advancing_per_group", None),
            group_count=_number(raw, "group_count", None),
            teams_per_group=_number(raw, "teams_per_group", None),
            third_place_match=_flag(raw, "third_place_match", False),
            wildcard_count=_number(raw, "wildcard_count", 0),
            use_matchdays=_flag(raw, "use_matchdays", False),
            match_format=match_format,
        )
    return None


def config_to_dict(config: Optional[BracketConfig]) -> dict:
    """Serialize a config variant back to a plain dictionary."""
    if config is None:
        return {}
    data = {k: v for k, v in config.__dict__.items() if k != "match_format"}
    data["match_format"] = config.match_format.to_dict()
    return data


# ============================================================================
# Core Domain Models
# ============================================================================


@dataclass(frozen=True)
class Seed:
    """A team's seed rank (1 = top seed)."""

    team_id: str
    seed_rank: int


@dataclass
class Bracket:
    """The full match structure for one tournament category under one format."""

    id: str
    tournament_id: str
    category_id: int
    format: BracketFormat
    seeding_method: SeedingMethod
    status: BracketStatus = BracketStatus.DRAFT
    config: Optional[BracketConfig] = None
    knockout_generated: bool = False

    @property
    def match_format(self) -> MatchFormat:
        """Scoring format for the bracket's matches (classic defaults if unset)."""
        if self.config is None:
            return MatchFormat()
        return self.config.match_format

    @property
    def phase(self) -> str:
        """Current phase: "groups" until the knockout is generated."""
        if self.format == BracketFormat.GROUPS_KNOCKOUT and not self.knockout_generated:
            return "groups"
        return "knockout" if self.format != BracketFormat.ROUND_ROBIN else "round_robin"

    def __str__(self) -> str:
        return f"Bracket {self.id} ({self.format.value}, {self.status.value})"


@dataclass
class Match:
    """A match between two teams.

    team1_id/team2_id are None for a bye or a slot still waiting for the
    winner of a previous match. Edges to other matches are ids.
    """

    id: str
    bracket_id: str
    round_number: int
    match_number: int
    round_name: Optional[str] = None
    team1_id: Optional[str] = None
    team2_id: Optional[str] = None
    sets: list[SetScore] = field(default_factory=list)
    winner_team: Optional[int] = None
    status: MatchStatus = MatchStatus.PENDING
    next_match_id: Optional[str] = None
    next_match_position: Optional[int] = None
    loser_next_match_id: Optional[str] = None
    loser_next_match_position: Optional[int] = None
    group_number: Optional[int] = None
    is_bye: bool = False
    version: int = 0

    @property
    def score_team1(self) -> int:
        """Sets won by team 1."""
        return sum(1 for s in self.sets if s.winner_team == 1)

    @property
    def score_team2(self) -> int:
        """Sets won by team 2."""
        return sum(1 for s in self.sets if s.winner_team == 2)

    @property
    def team1_games(self) -> int:
        return sum(s.team1 for s in self.sets)

    @property
    def team2_games(self) -> int:
        return sum(s.team2 for s in self.sets)

    @property
    def is_finished(self) -> bool:
        """Check if match is resolved (played, forfeited or bye)."""
        return self.status in FINISHED_STATUSES

    @property
    def has_both_teams(self) -> bool:
        return self.team1_id is not None and self.team2_id is not None

    def team_at(self, position: int) -> Optional[str]:
        return self.team1_id if position == 1 else self.team2_id

    def side_of(self, team_id: str) -> Optional[int]:
        """Return 1 or 2 for the side the team plays on, None if absent."""
        if self.team1_id == team_id:
            return 1
        if self.team2_id == team_id:
            return 2
        return None

    @property
    def winner_id(self) -> Optional[str]:
        if self.winner_team is None:
            return None
        return self.team_at(self.winner_team)

    @property
    def loser_id(self) -> Optional[str]:
        if self.winner_team is None:
            return None
        return self.team_at(3 - self.winner_team)

    def copy(self, **changes) -> "Match":
        """Return a modified copy; the original is left untouched."""
        return replace(self, **changes)

    def __str__(self) -> str:
        score = f"{self.score_team1}-{self.score_team2}" if self.sets else "vs"
        return f"Match {self.match_number}: {self.team1_id or 'TBD'} {score} {self.team2_id or 'TBD'}"


@dataclass
class StandingEntry:
    """Ranking row for a team within a bracket or group.

    Tracks all metrics needed for tie-breaking.
    """

    bracket_id: str
    team_id: str
    position: int = 0
    total_points: int = 0
    matches_played: int = 0
    matches_won: int = 0
    matches_lost: int = 0
    games_won: int = 0
    games_lost: int = 0
    round_reached: Optional[str] = None
    group_number: Optional[int] = None

    @property
    def point_difference(self) -> int:
        return self.games_won - self.games_lost

    def __str__(self) -> str:
        return f"#{self.position} {self.team_id}: {self.total_points}pts {self.matches_won}W-{self.matches_lost}L"


# ============================================================================
# Operation Inputs / Results
# ============================================================================


@dataclass(frozen=True)
class GroupAssignment:
    """Teams of one group, in seed order."""

    group_number: int
    team_ids: list[str]


@dataclass(frozen=True)
class AssignGroupsRequest:
    """Explicit group composition overriding the snake distribution."""

    groups: list[GroupAssignment]


@dataclass
class UpdatedMatches:
    """A match plus the successor matches an operation touched."""

    match: Match
    successors: list[Match] = field(default_factory=list)
    changed: bool = True

    @property
    def all(self) -> list[Match]:
        return [self.match] + self.successors


@dataclass
class WithdrawalResult:
    """Outcome of withdrawing a team."""

    forfeited_match_ids: list[str] = field(default_factory=list)
    updated: list[Match] = field(default_factory=list)


@dataclass
class GroupState:
    """Snapshot of one group in a groups_knockout bracket."""

    group_number: int
    group_name: str
    team_ids: list[str]
    matches: list[Match]
    standings: list[StandingEntry]
