"""Profile and location write paths.

The owning user id is always passed explicitly; callers are trusted to
have authenticated it.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import ValidationError

from src.config import config
from src.models import Location, Profile
from src.tools.repository import Repository, get_repository
from src.utils.errors import InvalidInputError, NotFoundError
from src.utils.geo import is_valid_coordinate
from src.utils.logging_config import logger

PROFILE_FIELDS = (
    "username",
    "display_name",
    "bio",
    "avatar_url",
    "first_name",
    "last_name",
    "date_of_birth",
    "phone_number",
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def get_profile(user_id: str, *, repository: Repository | None = None) -> Profile:
    """Fetch a profile or raise NotFoundError."""

    repo = repository or get_repository()
    row = repo.get_profile(user_id, timeout=config.STORE_TIMEOUT)
    if row is None:
        raise NotFoundError(f"Profile not found: {user_id}")
    return Profile.model_validate(row)


def save_profile(
    user_id: str, fields: dict, *, repository: Repository | None = None
) -> Profile:
    """Create the profile on first save, update it afterwards.

    Unknown keys are ignored. username is required when creating.
    """

    repo = repository or get_repository()
    existing = repo.get_profile(user_id, timeout=config.STORE_TIMEOUT)
    updates = {key: fields[key] for key in PROFILE_FIELDS if key in fields}
    now = _now()

    if existing is None:
        row = {"user_id": user_id, **updates, "created_at": now, "updated_at": now}
    else:
        row = {**existing, **updates, "user_id": user_id, "updated_at": now}

    try:
        profile = Profile.model_validate(row)
    except ValidationError as exc:
        raise InvalidInputError(
            f"Invalid profile: {exc.errors(include_url=False)}"
        ) from exc

    repo.save_profile(profile.model_dump(mode="json"), timeout=config.STORE_TIMEOUT)
    logger.info(
        "%s profile for %s", "Created" if existing is None else "Updated", user_id
    )
    return profile


def update_location(
    user_id: str,
    latitude: float,
    longitude: float,
    location_name: str | None = None,
    *,
    repository: Repository | None = None,
) -> Location:
    """Store the user's current coordinate and mark it active."""

    if not is_valid_coordinate(latitude, longitude):
        raise InvalidInputError(
            "latitude must be in [-90, 90] and longitude in [-180, 180]"
        )

    try:
        location = Location(
            user_id=user_id,
            latitude=latitude,
            longitude=longitude,
            location_name=location_name or None,
            is_active=True,
            last_updated=_now(),
        )
    except ValidationError as exc:
        raise InvalidInputError(
            f"Invalid location: {exc.errors(include_url=False)}"
        ) from exc

    repo = repository or get_repository()
    repo.save_location(location.model_dump(mode="json"), timeout=config.STORE_TIMEOUT)
    logger.debug("Saved location for %s", user_id)
    return location


def clear_location(user_id: str, *, repository: Repository | None = None) -> bool:
    """Deactivate the user's location. Returns False if none was active."""

    repo = repository or get_repository()
    cleared = repo.deactivate_location(user_id, timeout=config.STORE_TIMEOUT)
    logger.debug("Cleared location for %s: %s", user_id, cleared)
    return cleared
