"""Bracket service: load from the store, run the engine, persist.

Every write runs under the bracket's single-writer lock and inside one
database transaction, so an operation's match and successor updates are
stored together or not at all.
"""

import logging
from typing import Any, Optional, Union

from sqlalchemy.orm import Session

from padelbracket import engine, progression
from padelbracket.config_loader import default_config
from padelbracket.errors import ConcurrencyConflict, IllegalTransition
from padelbracket.models import (
    AssignGroupsRequest,
    Bracket,
    BracketConfig,
    BracketFormat,
    BracketStatus,
    GroupState,
    Match,
    MatchFormat,
    MatchStatus,
    ScoreValidationResult,
    SeedingMethod,
    SetScore,
    StandingEntry,
    UpdatedMatches,
    WithdrawalResult,
)
from padelbracket.seeding import RankingLookup
from padelbracket.storage import BracketRepository, DatabaseManager, MatchRepository, StandingRepository

logger = logging.getLogger(__name__)

STANDINGS_FORMATS = (BracketFormat.ROUND_ROBIN, BracketFormat.GROUPS_KNOCKOUT)


class BracketService:
    """Store-backed bracket operations."""

    def __init__(self, db: DatabaseManager, config: Optional[dict[str, Any]] = None):
        """Initialize the service.

        Args:
            db: Database manager (tables must exist)
            config: Validated configuration (see config_loader); defaults if None
        """
        self.db = db
        self.config = config or default_config()

    @property
    def match_format(self) -> MatchFormat:
        return self.config["match_format"]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _load(self, session: Session, bracket_id: str) -> tuple[Bracket, dict[str, Match]]:
        bracket = BracketRepository(session).get_by_id(bracket_id)
        matches = MatchRepository(session).get_by_bracket(bracket_id)
        return bracket, {m.id: m for m in matches}

    def _bracket_id_of(self, match_id: str) -> str:
        with self.db.session_scope() as session:
            return MatchRepository(session).get_by_id(match_id).bracket_id

    def _standings(self, bracket: Bracket, matches: list[Match], group_number: Optional[int] = None) -> list[StandingEntry]:
        return engine.compute_bracket_standings(
            bracket,
            matches,
            standings_config=self.config["standings"],
            knockout_points=self.config["knockout_points"],
            group_number=group_number,
        )

    def _refresh_standings(self, session: Session, bracket: Bracket) -> None:
        """Recompute and store standings after group / round robin results."""
        if bracket.format not in STANDINGS_FORMATS:
            return
        matches = MatchRepository(session).get_by_bracket(bracket.id)
        StandingRepository(session).replace_for_bracket(bracket.id, self._standings(bracket, matches))

    def _persist(self, session: Session, bracket: Bracket, changed: list[Match]) -> dict[str, Match]:
        stored = MatchRepository(session).update_many(changed)
        if any(m.group_number is not None or bracket.format == BracketFormat.ROUND_ROBIN for m in stored):
            self._refresh_standings(session, bracket)
        return {m.id: m for m in stored}

    def _apply_to_match(self, match_id: str, operation) -> UpdatedMatches:
        """Run a progression operation on one match and store the result."""
        bracket_id = self._bracket_id_of(match_id)
        with self.db.bracket_lock(bracket_id), self.db.session_scope() as session:
            bracket, matches = self._load(session, bracket_id)
            result = operation(bracket, matches)
            if not result.changed:
                return result
            stored = self._persist(session, bracket, result.all)
            return UpdatedMatches(
                match=stored[result.match.id],
                successors=[stored[m.id] for m in result.successors],
                changed=True,
            )

    # ------------------------------------------------------------------
    # Brackets
    # ------------------------------------------------------------------

    def generate_bracket(
        self,
        team_ids: list[str],
        bracket_format: BracketFormat,
        seeding_method: SeedingMethod,
        config: Union[BracketConfig, dict, None] = None,
        tournament_id: str = "",
        category_id: int = 0,
        rankings: Optional[RankingLookup] = None,
        random_seed: Optional[int] = None,
        assignment: Optional[AssignGroupsRequest] = None,
    ) -> tuple[Bracket, list[Match]]:
        """Generate and store a bracket for a tournament category.

        A draft bracket already stored for the category is replaced
        (same id, new matches).

        Raises:
            IllegalTransition: If the category's bracket is already published
        """
        if config is None or isinstance(config, dict):
            config = dict(config or {})
            config.setdefault("match_format", self.match_format.to_dict())
        if random_seed is None:
            random_seed = self.config["random_seed"]

        with self.db.session_scope() as session:
            existing = BracketRepository(session).find_by_category(tournament_id, category_id)
        bracket_id = existing.id if existing else None

        bracket, matches = engine.generate_bracket(
            team_ids,
            bracket_format,
            seeding_method,
            config,
            tournament_id=tournament_id,
            category_id=category_id,
            bracket_id=bracket_id,
            rankings=rankings,
            random_seed=random_seed,
            assignment=assignment,
        )

        with self.db.bracket_lock(bracket.id), self.db.session_scope() as session:
            brackets = BracketRepository(session)
            match_repo = MatchRepository(session)
            current = brackets.find_by_category(tournament_id, category_id)
            if current is not None:
                if current.status == BracketStatus.PUBLISHED:
                    raise IllegalTransition(f"Bracket {current.id} is published and cannot be regenerated")
                match_repo.delete_by_bracket(current.id)
                StandingRepository(session).replace_for_bracket(current.id, [])
                bracket = brackets.update(bracket)
                logger.info("Regenerating draft bracket %s", bracket.id)
            else:
                bracket = brackets.create(bracket)
            stored = match_repo.create_many(matches)
            self._refresh_standings(session, bracket)
            return bracket, stored

    def get_bracket(self, bracket_id: str) -> tuple[Bracket, list[Match]]:
        """Get a bracket and its matches ordered by match number."""
        with self.db.session_scope() as session:
            bracket, matches = self._load(session, bracket_id)
            return bracket, sorted(matches.values(), key=lambda m: m.match_number)

    def publish_bracket(self, bracket_id: str) -> Bracket:
        """Expose a draft bracket to players (one-way).

        Raises:
            IllegalTransition: If the bracket is already published
        """
        with self.db.bracket_lock(bracket_id), self.db.session_scope() as session:
            brackets = BracketRepository(session)
            bracket = brackets.get_by_id(bracket_id)
            if bracket.status == BracketStatus.PUBLISHED:
                raise IllegalTransition(f"Bracket {bracket_id} is already published")
            bracket.status = BracketStatus.PUBLISHED
            logger.info("Bracket %s published", bracket_id)
            return brackets.update(bracket)

    # ------------------------------------------------------------------
    # Scores and progression
    # ------------------------------------------------------------------

    def validate_score(self, sets: list[SetScore], match_format: Optional[MatchFormat] = None) -> ScoreValidationResult:
        """Validate a score without storing anything."""
        return engine.validate_score(sets, match_format or self.match_format)

    def record_score(self, match_id: str, sets: list[SetScore], expected_version: Optional[int] = None) -> UpdatedMatches:
        """Validate and store a match score, propagating the winner.

        Args:
            match_id: Match to score
            sets: Set scores in playing order
            expected_version: Match version the caller last saw (optional)

        Raises:
            NotFound: Unknown match
            ValidationFailed: Score breaks the bracket's scoring rules
            IllegalTransition: Match cannot take a score now
            ConcurrencyConflict: expected_version is stale
        """

        def operation(bracket: Bracket, matches: dict[str, Match]) -> UpdatedMatches:
            match = matches[match_id]
            if expected_version is not None and match.version != expected_version:
                raise ConcurrencyConflict(
                    f"Match {match.match_number} is at version {match.version}, expected {expected_version}"
                )
            return progression.record_score(matches, match_id, sets, bracket.match_format)

        return self._apply_to_match(match_id, operation)

    def advance_winner(self, match_id: str, winner_team: int) -> UpdatedMatches:
        """Declare a winner without a score (no validation)."""
        return self._apply_to_match(
            match_id, lambda bracket, matches: progression.advance_winner(matches, match_id, winner_team)
        )

    def reset_match_score(self, match_id: str) -> UpdatedMatches:
        """Clear a completed match and undo its advancement."""
        return self._apply_to_match(match_id, lambda bracket, matches: progression.reset_match_score(matches, match_id))

    def update_match_status(self, match_id: str, status: MatchStatus) -> UpdatedMatches:
        """Start, schedule or pause a match."""
        return self._apply_to_match(
            match_id, lambda bracket, matches: progression.update_match_status(matches, match_id, status)
        )

    def withdraw_team(self, bracket_id: str, team_id: str) -> WithdrawalResult:
        """Forfeit every unfinished match of a team.

        Returns:
            WithdrawalResult with forfeited match ids and stored matches
        """
        with self.db.bracket_lock(bracket_id), self.db.session_scope() as session:
            bracket, matches = self._load(session, bracket_id)
            result = progression.withdraw_team(matches, team_id)
            stored = self._persist(session, bracket, result.updated)
            return WithdrawalResult(
                forfeited_match_ids=result.forfeited_match_ids,
                updated=list(stored.values()),
            )

    # ------------------------------------------------------------------
    # Standings and groups
    # ------------------------------------------------------------------

    def compute_standings(self, bracket_id: str, group_number: Optional[int] = None) -> list[StandingEntry]:
        """Recompute standings from the bracket's matches and store them.

        Args:
            bracket_id: Bracket to rank
            group_number: Only return this group (groups_knockout)
        """
        with self.db.bracket_lock(bracket_id), self.db.session_scope() as session:
            bracket, matches = self._load(session, bracket_id)
            standings = self._standings(bracket, list(matches.values()))
            StandingRepository(session).replace_for_bracket(bracket_id, standings)
            if group_number is not None:
                return [entry for entry in standings if entry.group_number == group_number]
            return standings

    def get_groups_state(self, bracket_id: str) -> tuple[Bracket, list[GroupState]]:
        """Groups of a groups_knockout bracket with their current standings."""
        with self.db.session_scope() as session:
            bracket, matches = self._load(session, bracket_id)
            return bracket, engine.get_groups_state(bracket, list(matches.values()), self.config["standings"])

    def swap_teams_in_groups(self, bracket_id: str, team1_id: str, team2_id: str) -> tuple[Bracket, list[GroupState]]:
        """Exchange two teams between groups and return the new group state.

        Group standings are recomputed with the swapped matches in the same
        transaction.
        """
        with self.db.bracket_lock(bracket_id), self.db.session_scope() as session:
            bracket, matches = self._load(session, bracket_id)
            swapped = engine.swap_teams_in_groups(bracket, list(matches.values()), team1_id, team2_id)
            matches.update(self._persist(session, bracket, swapped))
            return bracket, engine.get_groups_state(bracket, list(matches.values()), self.config["standings"])

    def generate_knockout_from_groups(self, bracket_id: str) -> list[Match]:

        """Create the knockout phase once every group match is finished.

        Raises:
            IllegalTransition: Groups unfinished or knockout already generated
        """
        with self.db.bracket_lock(bracket_id), self.db.session_scope() as session:
            brackets = BracketRepository(session)
            bracket, matches = self._load(session, bracket_id)
            knockout = engine.generate_knockout_phase(bracket, list(matches.values()), self.config["standings"])
            stored = MatchRepository(session).create_many(knockout)
            bracket.knockout_generated = True
            brackets.update(bracket)
            return stored

    def delete_knockout_phase(self, bracket_id: str) -> int:
        """Remove an unplayed knockout phase so it can be regenerated.

        Returns:
            Number of deleted matches
        """
        with self.db.bracket_lock(bracket_id), self.db.session_scope() as session:
            brackets = BracketRepository(session)
            bracket, matches = self._load(session, bracket_id)
            knockout = engine.knockout_matches_to_delete(bracket, list(matches.values()))
            deleted = MatchRepository(session).delete_many([m.id for m in knockout])
            bracket.knockout_generated = False
            brackets.update(bracket)
            logger.info("Knockout phase of bracket %s deleted (%d matches)", bracket_id, deleted)
            return deleted
