"""FastAPI web application for the padel bracket engine."""

import logging
import os
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from padelbracket.config_loader import configure_logging, load_and_validate_config
from padelbracket.errors import BracketError, IllegalTransition, InvalidInput, NotFound, ValidationFailed
from padelbracket.models import MatchFormat
from padelbracket.service import BracketService
from padelbracket.storage import DatabaseManager
from padelbracket.webapp.schemas import (
    AdvanceRequest,
    BracketDetailResponse,
    BracketResponse,
    DeleteKnockoutResponse,
    GenerateBracketRequest,
    GroupResponse,
    GroupsResponse,
    KnockoutResponse,
    MatchResponse,
    RecordScoreRequest,
    ScoreValidationResponse,
    StandingResponse,
    StatusRequest,
    SwapTeamsRequest,
    UpdatedMatchesResponse,
    ValidateScoreRequest,
    WithdrawalResponse,
    WithdrawRequest,
    sets_to_domain,
)

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "PADELBRACKET_CONFIG"

# Initialize FastAPI app
app = FastAPI(title="Padel Bracket Engine")

# Shared service, built on first request
_service: Optional[BracketService] = None


def get_service() -> BracketService:
    """Return the shared service, configured from $PADELBRACKET_CONFIG."""
    global _service
    if _service is None:
        config = load_and_validate_config(os.environ.get(CONFIG_ENV_VAR))
        configure_logging(config["log_level"])
        db = DatabaseManager(config["database_path"])
        db.create_tables()
        _service = BracketService(db, config)
        logger.info("API using database %s", config["database_path"])
    return _service


def status_for(error: BracketError) -> int:
    """HTTP status code of an engine error."""
    if isinstance(error, NotFound):
        return 404
    if isinstance(error, IllegalTransition):
        return 409
    if isinstance(error, ValidationFailed):
        return 422
    if isinstance(error, InvalidInput):
        return 400
    return 500


@app.exception_handler(BracketError)
async def bracket_error_handler(request: Request, exc: BracketError):
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error("Unhandled engine error on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"error": type(exc).__name__, "detail": str(exc)})


# ============================================================================
# Brackets
# ============================================================================


@app.post("/brackets", response_model=BracketDetailResponse, status_code=201)
async def create_bracket(body: GenerateBracketRequest, service: BracketService = Depends(get_service)):
    """Generate (or regenerate a draft) bracket for a tournament category."""
    bracket, matches = service.generate_bracket(
        body.team_ids,
        body.format,
        body.seeding_method,
        body.config,
        tournament_id=body.tournament_id,
        category_id=body.category_id,
        rankings=body.rankings,
        random_seed=body.random_seed,
        assignment=body.assignment(),
    )
    return BracketDetailResponse(
        bracket=BracketResponse.from_bracket(bracket),
        matches=[MatchResponse.model_validate(m) for m in matches],
    )


@app.get("/brackets/{bracket_id}", response_model=BracketDetailResponse)
async def get_bracket(bracket_id: str, service: BracketService = Depends(get_service)):
    bracket, matches = service.get_bracket(bracket_id)
    return BracketDetailResponse(
        bracket=BracketResponse.from_bracket(bracket),
        matches=[MatchResponse.model_validate(m) for m in matches],
    )


@app.post("/brackets/{bracket_id}/publish", response_model=BracketResponse)
async def publish_bracket(bracket_id: str, service: BracketService = Depends(get_service)):
    return BracketResponse.from_bracket(service.publish_bracket(bracket_id))


@app.post("/brackets/{bracket_id}/withdraw", response_model=WithdrawalResponse)
async def withdraw_team(bracket_id: str, body: WithdrawRequest, service: BracketService = Depends(get_service)):
    """Withdraw a team: its unfinished matches are forfeited."""
    result = service.withdraw_team(bracket_id, body.team_id)
    return WithdrawalResponse(
        forfeited_match_ids=result.forfeited_match_ids,
        updated=[MatchResponse.model_validate(m) for m in result.updated],
    )


@app.get("/brackets/{bracket_id}/standings", response_model=list[StandingResponse])
async def get_standings(
    bracket_id: str, group: Optional[int] = None, service: BracketService = Depends(get_service)
):
    """Recompute standings (optionally for one group)."""
    return [StandingResponse.model_validate(s) for s in service.compute_standings(bracket_id, group)]


@app.get("/brackets/{bracket_id}/groups", response_model=GroupsResponse)
async def get_groups(bracket_id: str, service: BracketService = Depends(get_service)):
    bracket, groups = service.get_groups_state(bracket_id)
    return GroupsResponse(
        bracket_id=bracket.id,
        phase=bracket.phase,
        groups=[GroupResponse.from_state(g) for g in groups],
    )


@app.post("/brackets/{bracket_id}/groups/swap", response_model=GroupsResponse)
async def swap_teams(bracket_id: str, body: SwapTeamsRequest, service: BracketService = Depends(get_service)):
    """Exchange two teams between groups before their matches start."""
    bracket, groups = service.swap_teams_in_groups(bracket_id, body.team1_id, body.team2_id)
    return GroupsResponse(
        bracket_id=bracket.id,
        phase=bracket.phase,
        groups=[GroupResponse.from_state(g) for g in groups],
    )


@app.post("/brackets/{bracket_id}/knockout", response_model=KnockoutResponse, status_code=201)
async def generate_knockout(bracket_id: str, service: BracketService = Depends(get_service)):
    matches = service.generate_knockout_from_groups(bracket_id)
    return KnockoutResponse(matches=[MatchResponse.model_validate(m) for m in matches])


@app.delete("/brackets/{bracket_id}/knockout", response_model=DeleteKnockoutResponse)
async def delete_knockout(bracket_id: str, service: BracketService = Depends(get_service)):
    return DeleteKnockoutResponse(deleted=service.delete_knockout_phase(bracket_id))


# ============================================================================
# Matches
# ============================================================================


@app.post("/matches/{match_id}/score", response_model=UpdatedMatchesResponse)
async def record_score(match_id: str, body: RecordScoreRequest, service: BracketService = Depends(get_service)):
    """Record a validated score and advance the winner."""
    result = service.record_score(match_id, sets_to_domain(body.sets), expected_version=body.expected_version)
    return UpdatedMatchesResponse.from_result(result)


@app.post("/matches/{match_id}/advance", response_model=UpdatedMatchesResponse)
async def advance_winner(match_id: str, body: AdvanceRequest, service: BracketService = Depends(get_service)):
    return UpdatedMatchesResponse.from_result(service.advance_winner(match_id, body.winner_team))


@app.post("/matches/{match_id}/reset", response_model=UpdatedMatchesResponse)
async def reset_match(match_id: str, service: BracketService = Depends(get_service)):
    return UpdatedMatchesResponse.from_result(service.reset_match_score(match_id))


@app.post("/matches/{match_id}/status", response_model=UpdatedMatchesResponse)
async def update_status(match_id: str, body: StatusRequest, service: BracketService = Depends(get_service)):
    return UpdatedMatchesResponse.from_result(service.update_match_status(match_id, body.status))


# ============================================================================
# Scores
# ============================================================================


@app.post("/scores/validate", response_model=ScoreValidationResponse)
async def validate_score(body: ValidateScoreRequest, service: BracketService = Depends(get_service)):
    """Check a score against a scoring format without storing it."""
    match_format = MatchFormat.from_dict(body.match_format) if body.match_format is not None else None
    return ScoreValidationResponse.from_result(service.validate_score(sets_to_domain(body.sets), match_format))
