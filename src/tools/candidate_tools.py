"""Candidate assembly: join profiles, active locations and shared-interest counts.

Malformed rows are skipped with a warning instead of failing the whole
pass. A bad profile drops that candidate; a bad location only makes that
candidate location-unknown.
"""

from __future__ import annotations

from pydantic import ValidationError

from src.models import Candidate, Location, Profile
from src.tools.repository import Repository
from src.utils.logging_config import logger


def parse_profile(row: dict) -> Profile | None:
    """Validate a profile row, returning None if it is unusable."""

    try:
        return Profile.model_validate(row)
    except ValidationError as exc:
        logger.warning(
            "Skipping malformed profile row user_id=%s: %s",
            row.get("user_id"),
            exc.errors(include_url=False),
        )
        return None


def parse_location(row: dict | None) -> Location | None:
    """Validate an active location row, returning None if absent or unusable."""

    if not row:
        return None

    try:
        location = Location.model_validate(row)
    except ValidationError as exc:
        logger.warning(
            "Ignoring malformed location row user_id=%s: %s",
            row.get("user_id"),
            exc.errors(include_url=False),
        )
        return None

    return location if location.is_active else None


def assemble_candidates(
    requester_id: str,
    profile_rows: list[dict],
    location_rows: dict[str, dict],
    shared_counts: dict[str, int],
) -> list[Candidate]:
    """Build one Candidate per other valid profile.

    Args:
        requester_id: The requesting user; never included in the output.
        profile_rows: Raw profile rows from the store.
        location_rows: Active location rows keyed by user id.
        shared_counts: Shared-interest counts keyed by user id. Users missing
            from the mapping share nothing (count 0).
    """

    candidates: list[Candidate] = []
    seen: set[str] = set()

    for row in profile_rows:
        profile = parse_profile(row)
        if profile is None:
            continue
        if profile.user_id == requester_id or profile.user_id in seen:
            continue

        count = shared_counts.get(profile.user_id, 0)
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            logger.warning(
                "Skipping candidate %s with invalid shared interest count: %r",
                profile.user_id,
                count,
            )
            continue

        seen.add(profile.user_id)
        candidates.append(
            Candidate(
                profile=profile,
                location=parse_location(location_rows.get(profile.user_id)),
                shared_interests_count=count,
            )
        )

    logger.debug(
        "assemble_candidates rows=%s candidates=%s", len(profile_rows), len(candidates)
    )
    return candidates


def load_requester_location(
    repository: Repository, requester_id: str, *, timeout: float | None = None
) -> Location | None:
    """Fetch the requester's active location, if any."""

    return parse_location(
        repository.get_active_location(requester_id, timeout=timeout)
    )


def load_candidates(
    repository: Repository, requester_id: str, *, timeout: float | None = None
) -> list[Candidate]:
    """Read everything needed for ranking from the store and assemble it."""

    profile_rows = repository.list_profiles_excluding(requester_id, timeout=timeout)
    user_ids = [
        row["user_id"]
        for row in profile_rows
        if isinstance(row.get("user_id"), str) and row["user_id"] != requester_id
    ]
    location_rows = repository.list_active_locations(user_ids, timeout=timeout)
    shared_counts = repository.list_shared_interest_counts(requester_id, timeout=timeout)

    return assemble_candidates(requester_id, profile_rows, location_rows, shared_counts)
