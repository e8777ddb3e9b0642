"""Deterministic scoring and ranking for discovery matches.

Pure functions only: no store access, no shared state. The pipeline in
src/graphs/matching.py feeds them candidates it has already assembled.
"""

from __future__ import annotations

import math

from src.models import Candidate, Location, MatchResult
from src.utils.errors import InvalidInputError
from src.utils.geo import haversine_km
from src.utils.logging_config import logger

SHARED_INTEREST_WEIGHT = 10
PROXIMITY_BONUS_MAX = 100.0


def validate_match_parameters(max_distance_km: float, limit_results: int) -> None:
    """Reject bad ranking parameters before any store call is made.

    Raises:
        InvalidInputError: max_distance_km is not a positive finite number
            or limit_results is not an integer >= 1.
    """

    if isinstance(max_distance_km, bool) or not isinstance(
        max_distance_km, (int, float)
    ):
        raise InvalidInputError("max_distance_km must be a number")
    if not math.isfinite(max_distance_km) or max_distance_km <= 0:
        raise InvalidInputError("max_distance_km must be greater than 0")

    if isinstance(limit_results, bool) or not isinstance(limit_results, int):
        raise InvalidInputError("limit_results must be an integer")
    if limit_results < 1:
        raise InvalidInputError("limit_results must be at least 1")


def calculate_compatibility_score(
    shared_interests_count: int, distance_km: float | None
) -> float:
    """Calculate the compatibility score (higher is better).

    Each shared interest is worth 10 points. When the distance is known a
    proximity bonus of 100 / (1 + distance_km) is added, which is 100 at
    distance 0 and decays towards 0 without reaching it.
    """

    score = float(shared_interests_count * SHARED_INTEREST_WEIGHT)
    if distance_km is None:
        return score
    return score + PROXIMITY_BONUS_MAX / (1.0 + distance_km)


def candidate_distance_km(
    requester_location: Location | None, candidate: Candidate
) -> float | None:
    """Distance between requester and candidate, or None if either is unlocated."""

    if requester_location is None or candidate.location is None:
        return None

    return haversine_km(
        requester_location.latitude,
        requester_location.longitude,
        candidate.location.latitude,
        candidate.location.longitude,
    )


def is_eligible(
    shared_interests_count: int,
    distance_km: float | None,
    max_distance_km: float,
) -> bool:
    """Apply the distance filter and the inclusion rule to one candidate.

    Unknown distance never excludes a candidate by itself. A candidate with
    no shared interests is kept only when its distance is known, so
    proximity alone can surface a match.
    """

    if distance_km is not None and distance_km > max_distance_km:
        return False
    return shared_interests_count > 0 or distance_km is not None


def score_candidate(candidate: Candidate, distance_km: float | None) -> MatchResult:
    """Build the result row for one candidate."""

    profile = candidate.profile
    return MatchResult(
        user_id=profile.user_id,
        username=profile.username,
        display_name=profile.display_name,
        bio=profile.bio,
        avatar_url=profile.avatar_url,
        distance_km=distance_km,
        shared_interests_count=candidate.shared_interests_count,
        compatibility_score=calculate_compatibility_score(
            candidate.shared_interests_count, distance_km
        ),
    )


def match_sort_key(match: MatchResult) -> tuple:
    """Score desc, shared interests desc, distance asc (unknown last), user id."""

    distance_unknown = match.distance_km is None
    return (
        -match.compatibility_score,
        -match.shared_interests_count,
        distance_unknown,
        0.0 if distance_unknown else match.distance_km,
        match.user_id,
    )


def rank_candidates(
    candidates: list[Candidate],
    requester_location: Location | None,
    max_distance_km: float,
    limit_results: int,
) -> list[MatchResult]:
    """Filter, score, sort, then truncate candidates.

    Truncation happens only after the full sort so a close but low-scoring
    candidate is never dropped ahead of better ones.
    """

    validate_match_parameters(max_distance_km, limit_results)

    scored: list[MatchResult] = []
    for candidate in candidates:
        distance_km = candidate_distance_km(requester_location, candidate)
        if not is_eligible(
            candidate.shared_interests_count, distance_km, max_distance_km
        ):
            continue
        scored.append(score_candidate(candidate, distance_km))

    ranked = sorted(scored, key=match_sort_key)

    logger.debug(
        "rank_candidates candidates=%s eligible=%s returned=%s",
        len(candidates),
        len(ranked),
        min(len(ranked), limit_results),
    )
    return ranked[:limit_results]
