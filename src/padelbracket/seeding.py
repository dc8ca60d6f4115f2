"""Seeding: order teams into seed ranks."""

import random
from collections.abc import Callable, Mapping
from typing import Optional, Union

from padelbracket.errors import InvalidInput
from padelbracket.models import Seed, SeedingMethod

RankingLookup = Union[Mapping[str, float], Callable[[str], Optional[float]]]


def _ranking_score(rankings: Optional[RankingLookup], team_id: str) -> float:
    if rankings is None:
        return 0.0
    if callable(rankings):
        score = rankings(team_id)
    else:
        score = rankings.get(team_id)
    return float(score) if score is not None else 0.0


def seed_teams(
    team_ids: list[str],
    method: SeedingMethod,
    rankings: Optional[RankingLookup] = None,
    random_seed: Optional[int] = None,
) -> list[Seed]:
    """Order teams into seeds 1..N.

    Methods:
    - random: uniform shuffle (Fisher-Yates)
    - manual: the given order is the seed order
    - ranking: ranking score descending, ties keep input order

    Args:
        team_ids: Team ids (order matters for manual and ranking ties)
        method: Seeding method
        rankings: Mapping or callable giving a team's ranking score.
                  Teams without a score count as 0.0.
        random_seed: Optional seed for a reproducible random draw

    Returns:
        List of Seed objects, seed_rank 1..N without gaps

    Raises:
        InvalidInput: If the list is empty or contains duplicates

    Examples:
        >>> seed_teams(["a", "b"], SeedingMethod.MANUAL)
        [Seed(team_id='a', seed_rank=1), Seed(team_id='b', seed_rank=2)]
    """
    if not team_ids:
        raise InvalidInput("Cannot seed an empty team list")

    seen = set()
    duplicates = []
    for team_id in team_ids:
        if team_id in seen:
            duplicates.append(team_id)
        seen.add(team_id)
    if duplicates:
        raise InvalidInput(f"Duplicate teams in seeding: {', '.join(sorted(set(duplicates)))}")

    ordered = list(team_ids)
    if method == SeedingMethod.RANDOM:
        random.Random(random_seed).shuffle(ordered)
    elif method == SeedingMethod.RANKING:
        # sorted() is stable, so equal scores keep input order
        ordered = sorted(ordered, key=lambda t: -_ranking_score(rankings, t))
    elif method != SeedingMethod.MANUAL:
        raise InvalidInput(f"Unknown seeding method: {method}")

    return [Seed(team_id=team_id, seed_rank=rank) for rank, team_id in enumerate(ordered, start=1)]
