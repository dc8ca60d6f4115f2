"""Request/response models of the HTTP API."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from padelbracket.models import (
    AssignGroupsRequest,
    Bracket,
    BracketFormat,
    BracketStatus,
    GroupAssignment,
    GroupState,
    MatchStatus,
    ScoreValidationResult,
    SeedingMethod,
    SetScore,
    TiebreakScore,
    UpdatedMatches,
    Valid,
    config_to_dict,
)


# ============================================================================
# Scores
# ============================================================================


class TiebreakSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    team1: int
    team2: int


class SetScoreSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    team1: int
    team2: int
    tiebreak: Optional[TiebreakSchema] = None

    def to_domain(self) -> SetScore:
        tiebreak = TiebreakScore(self.tiebreak.team1, self.tiebreak.team2) if self.tiebreak else None
        return SetScore(self.team1, self.team2, tiebreak)


def sets_to_domain(sets: list[SetScoreSchema]) -> list[SetScore]:
    return [s.to_domain() for s in sets]


# ============================================================================
# Requests
# ============================================================================


class GroupAssignmentSchema(BaseModel):
    group_number: int
    team_ids: list[str]


class GenerateBracketRequest(BaseModel):
    tournament_id: str
    category_id: int
    format: BracketFormat
    seeding_method: SeedingMethod = SeedingMethod.MANUAL
    team_ids: list[str]
    rankings: Optional[dict[str, float]] = None
    random_seed: Optional[int] = None
    config: Optional[dict[str, Any]] = None
    groups: Optional[list[GroupAssignmentSchema]] = None

    def assignment(self) -> Optional[AssignGroupsRequest]:
        """Explicit group assignment, if the request carries one."""
        if self.groups is None:
            return None
        return AssignGroupsRequest(
            groups=[GroupAssignment(group_number=g.group_number, team_ids=list(g.team_ids)) for g in self.groups]
        )


class WithdrawRequest(BaseModel):
    team_id: str


class SwapTeamsRequest(BaseModel):
    team1_id: str
    team2_id: str


class RecordScoreRequest(BaseModel):
    sets: list[SetScoreSchema]
    expected_version: Optional[int] = None


class AdvanceRequest(BaseModel):
    winner_team: int


class StatusRequest(BaseModel):
    status: MatchStatus


class ValidateScoreRequest(BaseModel):
    sets: list[SetScoreSchema]
    match_format: Optional[dict[str, Any]] = None


# ============================================================================
# Responses
# ============================================================================


class MatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    bracket_id: str
    round_number: int
    match_number: int
    round_name: Optional[str] = None
    team1_id: Optional[str] = None
    team2_id: Optional[str] = None
    sets: list[SetScoreSchema] = []
    winner_team: Optional[int] = None
    winner_id: Optional[str] = None
    status: MatchStatus
    next_match_id: Optional[str] = None
    next_match_position: Optional[int] = None
    loser_next_match_id: Optional[str] = None
    loser_next_match_position: Optional[int] = None
    group_number: Optional[int] = None
    is_bye: bool = False
    version: int = 0


class StandingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    team_id: str
    position: int
    total_points: int
    matches_played: int
    matches_won: int
    matches_lost: int
    games_won: int
    games_lost: int
    point_difference: int
    round_reached: Optional[str] = None
    group_number: Optional[int] = None


class BracketResponse(BaseModel):
    id: str
    tournament_id: str
    category_id: int
    format: BracketFormat
    seeding_method: SeedingMethod
    status: BracketStatus
    phase: str
    knockout_generated: bool
    config: dict[str, Any]

    @classmethod
    def from_bracket(cls, bracket: Bracket) -> "BracketResponse":
        return cls(
            id=bracket.id,
            tournament_id=bracket.tournament_id,
            category_id=bracket.category_id,
            format=bracket.format,
            seeding_method=bracket.seeding_method,
            status=bracket.status,
            phase=bracket.phase,
            knockout_generated=bracket.knockout_generated,
            config=config_to_dict(bracket.config),
        )


class BracketDetailResponse(BaseModel):
    bracket: BracketResponse
    matches: list[MatchResponse]


class UpdatedMatchesResponse(BaseModel):
    match: MatchResponse
    successors: list[MatchResponse]
    changed: bool

    @classmethod
    def from_result(cls, result: UpdatedMatches) -> "UpdatedMatchesResponse":
        return cls(
            match=MatchResponse.model_validate(result.match),
            successors=[MatchResponse.model_validate(m) for m in result.successors],
            changed=result.changed,
        )


class WithdrawalResponse(BaseModel):
    forfeited_match_ids: list[str]
    updated: list[MatchResponse]


class GroupResponse(BaseModel):
    group_number: int
    group_name: str
    team_ids: list[str]
    matches: list[MatchResponse]
    standings: list[StandingResponse]

    @classmethod
    def from_state(cls, state: GroupState) -> "GroupResponse":
        return cls(
            group_number=state.group_number,
            group_name=state.group_name,
            team_ids=state.team_ids,
            matches=[MatchResponse.model_validate(m) for m in state.matches],
            standings=[StandingResponse.model_validate(s) for s in state.standings],
        )


class GroupsResponse(BaseModel):
    bracket_id: str
    phase: str
    groups: list[GroupResponse]


class KnockoutResponse(BaseModel):
    matches: list[MatchResponse]


class DeleteKnockoutResponse(BaseModel):
    deleted: int


class ScoreValidationResponse(BaseModel):
    valid: bool
    winner: Optional[int] = None
    sets_won: Optional[tuple[int, int]] = None
    reason: Optional[str] = None

    @classmethod
    def from_result(cls, result: ScoreValidationResult) -> "ScoreValidationResponse":
        if isinstance(result, Valid):
            return cls(valid=True, winner=result.winner, sets_won=result.sets_won)
        return cls(valid=False, reason=result.reason)


class ErrorResponse(BaseModel):
    error: str
    detail: str
