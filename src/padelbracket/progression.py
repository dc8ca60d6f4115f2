"""Match progression: scores, forfeits, withdrawal and winner propagation.

All functions work on an arena of matches keyed by match id and never
mutate it. Changed matches are returned as copies; the caller persists
them together or not at all.

Match status flow:
    pending -> scheduled -> in_progress -> completed
    pending/scheduled/in_progress -> forfeited   (withdrawal)
    bye                                           (generation time only)
"""

import logging
from collections.abc import Mapping
from typing import Optional

from padelbracket.errors import IllegalTransition, InvalidInput, NotFound, ValidationFailed
from padelbracket.models import (
    OPEN_STATUSES,
    Invalid,
    Match,
    MatchFormat,
    MatchStatus,
    SetScore,
    UpdatedMatches,
    WithdrawalResult,
)
from padelbracket.validation import validate_score

logger = logging.getLogger(__name__)

# Manual status changes; terminal statuses are reached by scoring, forfeit or advance only
ALLOWED_STATUS_CHANGES = {
    MatchStatus.PENDING: (MatchStatus.SCHEDULED, MatchStatus.IN_PROGRESS),
    MatchStatus.SCHEDULED: (MatchStatus.IN_PROGRESS,),
    MatchStatus.IN_PROGRESS: (MatchStatus.SCHEDULED,),
}


class MatchArena:
    """Copy-on-write view over a bracket's matches.

    Reads fall through to the original mapping; writes are kept in
    `changed` in the order they happened.
    """

    def __init__(self, matches: Mapping[str, Match]):
        self._matches = matches
        self.changed: dict[str, Match] = {}

    def get(self, match_id: str) -> Match:
        if match_id in self.changed:
            return self.changed[match_id]
        if match_id not in self._matches:
            raise NotFound(f"Match {match_id} not found")
        return self._matches[match_id]

    def put(self, match: Match) -> Match:
        self.changed[match.id] = match
        return match

    def all(self) -> list[Match]:
        """Current state of every match, by match number."""
        merged = {**self._matches, **self.changed}
        return sorted(merged.values(), key=lambda m: m.match_number)

    def result(self, match_id: str) -> UpdatedMatches:
        successors = [m for mid, m in self.changed.items() if mid != match_id]
        return UpdatedMatches(match=self.get(match_id), successors=successors, changed=bool(self.changed))


def place_team(arena: MatchArena, match_id: str, position: int, team_id: str) -> None:
    """Write a team into a slot of a successor match.

    A successor with both slots filled becomes eligible (pending ->
    scheduled). A team arriving into a match its opponent already
    forfeited wins it and keeps moving forward.

    Raises:
        IllegalTransition: If the slot holds another team and the match
                           already started or finished
    """
    target = arena.get(match_id)
    current = target.team_at(position)
    if current == team_id:
        return

    if target.status == MatchStatus.FORFEITED and target.winner_team == position and current is None:
        target = arena.put(target.copy(**{f"team{position}_id": team_id}))
        logger.info("Team %s advances through forfeited match %s", team_id, target.match_number)
        propagate_result(arena, target)
        return

    if target.status not in (MatchStatus.PENDING, MatchStatus.SCHEDULED):
        raise IllegalTransition(
            f"Cannot place team {team_id} into match {target.match_number}: match is {target.status.value}"
        )

    target = target.copy(**{f"team{position}_id": team_id})
    if target.has_both_teams and target.status == MatchStatus.PENDING:
        target.status = MatchStatus.SCHEDULED
    arena.put(target)


def propagate_result(arena: MatchArena, match: Match) -> None:
    """Send the winner (and loser, for a third-place edge) forward."""
    winner_id = match.winner_id
    if match.next_match_id and winner_id is not None:
        place_team(arena, match.next_match_id, match.next_match_position or 1, winner_id)

    loser_id = match.loser_id
    if match.loser_next_match_id and loser_id is not None:
        place_team(arena, match.loser_next_match_id, match.loser_next_match_position or 1, loser_id)


def record_score(
    matches: Mapping[str, Match],
    match_id: str,
    sets: list[SetScore],
    match_format: MatchFormat,
) -> UpdatedMatches:
    """Validate a score, complete the match and propagate the winner.

    Re-submitting the exact score of an already completed match is a
    no-op (changed=False).

    Args:
        matches: Arena of the bracket's matches keyed by id
        match_id: Match to score
        sets: Set scores in playing order
        match_format: Scoring format of the bracket

    Returns:
        UpdatedMatches with the scored match and touched successors

    Raises:
        NotFound: If the match is not in the arena
        IllegalTransition: Bye match, finished match, or unassigned teams
        ValidationFailed: If the score breaks the scoring rules
    """
    arena = MatchArena(matches)
    match = arena.get(match_id)

    if match.status == MatchStatus.BYE or match.is_bye:
        raise IllegalTransition(f"Cannot record a score on bye match {match.match_number}")

    if match.is_finished:
        if match.status == MatchStatus.COMPLETED and list(match.sets) == list(sets):
            return UpdatedMatches(match=match, successors=[], changed=False)
        raise IllegalTransition(f"Match {match.match_number} is already {match.status.value}")

    if not match.has_both_teams:
        raise IllegalTransition(f"Cannot record a score: match {match.match_number} has unassigned teams")

    result = validate_score(sets, match_format)
    if isinstance(result, Invalid):
        raise ValidationFailed(result.reason)

    completed = arena.put(match.copy(sets=list(sets), winner_team=result.winner, status=MatchStatus.COMPLETED))
    logger.info(
        "Match %s completed: %s (winner team %s)",
        completed.match_number,
        " ".join(str(s) for s in sets),
        result.winner,
    )
    propagate_result(arena, completed)
    return arena.result(match_id)


def advance_winner(matches: Mapping[str, Match], match_id: str, winner_team: int) -> UpdatedMatches:
    """Declare a winner without a score and propagate it.

    No score validation is done; the caller is responsible for consistency.

    Raises:
        InvalidInput: If winner_team is not 1 or 2
        IllegalTransition: If the match is finished or the winning side is empty
    """
    if winner_team not in (1, 2):
        raise InvalidInput(f"winner_team must be 1 or 2, got {winner_team}")

    arena = MatchArena(matches)
    match = arena.get(match_id)

    if match.is_finished:
        if match.status == MatchStatus.COMPLETED and match.winner_team == winner_team:
            return UpdatedMatches(match=match, successors=[], changed=False)
        raise IllegalTransition(f"Match {match.match_number} is already {match.status.value}")

    if match.team_at(winner_team) is None:
        raise IllegalTransition(f"Cannot advance team {winner_team} of match {match.match_number}: slot is empty")

    completed = arena.put(match.copy(winner_team=winner_team, status=MatchStatus.COMPLETED))
    logger.info("Match %s winner set manually to team %s", completed.match_number, winner_team)
    propagate_result(arena, completed)
    return arena.result(match_id)


def forfeit_match(arena: MatchArena, match: Match, withdrawn_team_id: str) -> Match:
    """Resolve a match against the withdrawn team and propagate."""
    side = match.side_of(withdrawn_team_id)
    if side is None:
        raise InvalidInput(f"Team {withdrawn_team_id} does not play match {match.match_number}")

    forfeited = arena.put(match.copy(winner_team=3 - side, status=MatchStatus.FORFEITED))
    propagate_result(arena, forfeited)
    return arena.get(forfeited.id)


def withdraw_team(matches: Mapping[str, Match], team_id: str) -> WithdrawalResult:
    """Forfeit every unfinished match of a team.

    Completed matches are left untouched. The opponent of each forfeited
    match is recorded as winner and moves forward as after a played win.
    When the opponent is still unknown, the match is resolved for the
    empty side and the team that later arrives there goes straight on.

    Raises:
        NotFound: If the team plays no match in the arena
    """
    arena = MatchArena(matches)
    if not any(m.side_of(team_id) for m in arena.all()):
        raise NotFound(f"Team {team_id} has no matches in this bracket")

    forfeited_ids: list[str] = []
    # Forfeits can place the team into a further match (third place), so rescan
    while True:
        pending = [m for m in arena.all() if m.side_of(team_id) and m.status in OPEN_STATUSES]
        if not pending:
            break
        match = pending[0]
        forfeit_match(arena, match, team_id)
        forfeited_ids.append(match.id)

    logger.info("Team %s withdrawn, %d match(es) forfeited", team_id, len(forfeited_ids))
    return WithdrawalResult(forfeited_match_ids=forfeited_ids, updated=list(arena.changed.values()))


def _clear_slot(arena: MatchArena, match_id: Optional[str], position: Optional[int], team_id: Optional[str]) -> None:
    if not match_id or team_id is None:
        return
    target = arena.get(match_id)
    if target.status not in (MatchStatus.PENDING, MatchStatus.SCHEDULED):
        raise IllegalTransition(
            f"Cannot reset: next match {target.match_number} is already {target.status.value}"
        )
    position = position or 1
    if target.team_at(position) != team_id:
        return
    arena.put(target.copy(status=MatchStatus.PENDING, **{f"team{position}_id": None}))


def reset_match_score(matches: Mapping[str, Match], match_id: str) -> UpdatedMatches:
    """Clear the score of a completed match and undo its advancement.

    Raises:
        IllegalTransition: If the match is not completed, or a successor
                           it fed has already started or finished
    """
    arena = MatchArena(matches)
    match = arena.get(match_id)

    if match.status != MatchStatus.COMPLETED:
        raise IllegalTransition(f"Only completed matches can be reset (match {match.match_number} is {match.status.value})")

    _clear_slot(arena, match.next_match_id, match.next_match_position, match.winner_id)
    _clear_slot(arena, match.loser_next_match_id, match.loser_next_match_position, match.loser_id)

    status = MatchStatus.SCHEDULED if match.has_both_teams else MatchStatus.PENDING
    arena.put(match.copy(sets=[], winner_team=None, status=status))
    logger.info("Match %s score reset", match.match_number)
    return arena.result(match_id)


def update_match_status(matches: Mapping[str, Match], match_id: str, status: MatchStatus) -> UpdatedMatches:
    """Move a match between pending, scheduled and in_progress.

    Raises:
        IllegalTransition: If the change is not allowed from the current
                           status or a team is still missing
    """
    arena = MatchArena(matches)
    match = arena.get(match_id)

    if match.status == status:
        return UpdatedMatches(match=match, successors=[], changed=False)

    if status not in ALLOWED_STATUS_CHANGES.get(match.status, ()):
        raise IllegalTransition(f"Cannot change match {match.match_number} from {match.status.value} to {status.value}")

    if not match.has_both_teams:
        raise IllegalTransition(f"Match {match.match_number} has unassigned teams")

    arena.put(match.copy(status=status))
    return arena.result(match_id)
