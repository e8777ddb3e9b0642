"""Interest catalog, taxonomy tree and per-user interest declarations."""

from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timezone

from pydantic import ValidationError

from src.config import config
from src.models import Interest, InterestNode
from src.tools.repository import Repository, get_repository
from src.utils.errors import InvalidInputError, NotFoundError
from src.utils.logging_config import logger

# Starter taxonomy: top-level categories and a few subcategories.
DEMO_TAXONOMY: dict[tuple[str, str, str], list[tuple[str, str]]] = {
    ("Music", "Entertainment", "🎵"): [
        ("Hip Hop", "🎤"),
        ("Pop", "🌟"),
        ("Rock", "🎸"),
        ("Electronic", "🎧"),
        ("Jazz", "🎺"),
        ("Classical", "🎼"),
    ],
    ("Sports", "Activities", "⚽"): [
        ("Football", "🏈"),
        ("Basketball", "🏀"),
        ("Soccer", "⚽"),
        ("Tennis", "🎾"),
        ("Swimming", "🏊"),
        ("Gym", "💪"),
    ],
    ("Technology", "Learning", "💻"): [
        ("Programming", "👨‍💻"),
        ("AI/ML", "🤖"),
        ("Crypto", "₿"),
        ("Mobile Apps", "📱"),
        ("Web Dev", "🌐"),
        ("Gadgets", "⚙️"),
    ],
    ("Art", "Creativity", "🎨"): [],
    ("Food", "Lifestyle", "🍕"): [],
    ("Travel", "Adventure", "✈️"): [],
    ("Gaming", "Entertainment", "🎮"): [
        ("FPS", "🔫"),
        ("RPG", "🗡️"),
        ("Strategy", "♟️"),
        ("Mobile Gaming", "📱"),
        ("Console", "🎮"),
        ("PC Gaming", "💻"),
    ],
    ("Reading", "Learning", "📚"): [],
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_interests(rows: list[dict]) -> list[Interest]:
    interests: list[Interest] = []
    for row in rows:
        try:
            interests.append(Interest.model_validate(row))
        except ValidationError as exc:
            logger.warning(
                "Skipping malformed interest row id=%s: %s",
                row.get("id"),
                exc.errors(include_url=False),
            )
    return interests


def list_interests(*, repository: Repository | None = None) -> list[Interest]:
    """Every interest, ordered by category then name."""

    repo = repository or get_repository()
    interests = _parse_interests(repo.list_interests(timeout=config.STORE_TIMEOUT))
    return sorted(interests, key=lambda i: (i.category, i.name))


def interests_by_category(interests: list[Interest]) -> dict[str, list[Interest]]:
    grouped: dict[str, list[Interest]] = defaultdict(list)
    for interest in interests:
        grouped[interest.category].append(interest)
    return dict(grouped)


def build_interest_tree(interests: list[Interest]) -> list[InterestNode]:
    """Nest interests under their parents.

    Nodes breaking the level/parent rules (level 0 with a parent, missing
    parent, level != parent level + 1) are dropped with a warning, along
    with anything below them.
    """

    by_id = {interest.id: interest for interest in interests}
    children: dict[str, list[Interest]] = defaultdict(list)
    roots: list[Interest] = []

    for interest in interests:
        if interest.parent_id is None:
            if interest.level != 0:
                logger.warning(
                    "Dropping root interest %s with level %s",
                    interest.id,
                    interest.level,
                )
                continue
            roots.append(interest)
            continue

        parent = by_id.get(interest.parent_id)
        if parent is None or interest.level != parent.level + 1:
            logger.warning("Dropping orphaned interest %s", interest.id)
            continue
        children[parent.id].append(interest)

    def _node(interest: Interest) -> InterestNode:
        kids = sorted(children.get(interest.id, []), key=lambda i: i.name)
        return InterestNode(
            **interest.model_dump(), children=[_node(kid) for kid in kids]
        )

    return [_node(root) for root in sorted(roots, key=lambda i: (i.category, i.name))]


def create_custom_interest(
    created_by: str,
    name: str,
    parent_id: str | None = None,
    category: str | None = None,
    icon: str | None = None,
    description: str | None = None,
    *,
    repository: Repository | None = None,
) -> Interest:
    """Add a user-created interest, at the top level or under parent_id."""

    name = (name or "").strip()
    if not name:
        raise InvalidInputError("Interest name is required")

    repo = repository or get_repository()
    level = 0
    if parent_id is not None:
        parent_row = repo.get_interest(parent_id, timeout=config.STORE_TIMEOUT)
        if parent_row is None:
            raise NotFoundError(f"Parent interest not found: {parent_id}")
        parent = Interest.model_validate(parent_row)
        level = parent.level + 1
        category = category or parent.category

    if not category:
        raise InvalidInputError("category is required for top-level interests")

    interest = Interest(
        id=str(uuid.uuid4()),
        name=name,
        category=category,
        parent_id=parent_id,
        level=level,
        is_custom=True,
        icon=icon,
        description=description,
        created_by=created_by,
        created_at=_now(),
    )
    repo.save_interest(interest.model_dump(mode="json"), timeout=config.STORE_TIMEOUT)
    logger.info("Created custom interest %s (%s) by %s", interest.id, name, created_by)
    return interest


def delete_interest(interest_id: str, *, repository: Repository | None = None) -> list[str]:
    """Delete an interest and all its descendants. Returns the deleted ids."""

    repo = repository or get_repository()
    rows = repo.list_interests(timeout=config.STORE_TIMEOUT)
    if not any(row.get("id") == interest_id for row in rows):
        raise NotFoundError(f"Interest not found: {interest_id}")

    children: dict[str, list[str]] = defaultdict(list)
    for row in rows:
        if row.get("parent_id"):
            children[row["parent_id"]].append(row["id"])

    # Stored rows may be self-parented or cyclic; visit each id once.
    doomed: list[str] = []
    seen: set[str] = set()
    stack = [interest_id]
    while stack:
        current = stack.pop()
        if current in seen:
            continue
        seen.add(current)
        doomed.append(current)
        stack.extend(children.get(current, []))

    repo.delete_interests(doomed, timeout=config.STORE_TIMEOUT)
    logger.info("Deleted interest %s and %s descendants", interest_id, len(doomed) - 1)
    return doomed


def add_user_interest(
    user_id: str, interest_id: str, *, repository: Repository | None = None
) -> bool:
    """Declare an interest for the user. Returns False if already declared."""

    repo = repository or get_repository()
    if repo.get_interest(interest_id, timeout=config.STORE_TIMEOUT) is None:
        raise NotFoundError(f"Interest not found: {interest_id}")
    return repo.add_user_interest(user_id, interest_id, timeout=config.STORE_TIMEOUT)


def remove_user_interest(
    user_id: str, interest_id: str, *, repository: Repository | None = None
) -> bool:
    """Remove a declared interest. Returns False if it was not declared."""

    repo = repository or get_repository()
    return repo.remove_user_interest(user_id, interest_id, timeout=config.STORE_TIMEOUT)


def list_user_interests(
    user_id: str, *, repository: Repository | None = None
) -> list[Interest]:
    """Interests declared by the user, ordered by category then name."""

    repo = repository or get_repository()
    declared = set(repo.list_user_interest_ids(user_id, timeout=config.STORE_TIMEOUT))
    interests = _parse_interests(repo.list_interests(timeout=config.STORE_TIMEOUT))
    return sorted(
        (i for i in interests if i.id in declared),
        key=lambda i: (i.category, i.name),
    )


def seed_interest_taxonomy(*, repository: Repository | None = None) -> int:
    """Load DEMO_TAXONOMY into an empty interest collection. Returns rows written."""

    repo = repository or get_repository()
    if repo.list_interests(timeout=config.STORE_TIMEOUT):
        logger.debug("Interest collection not empty; skipping seed")
        return 0

    written = 0
    now = _now()
    for (name, category, icon), subcategories in DEMO_TAXONOMY.items():
        parent = Interest(
            id=str(uuid.uuid4()),
            name=name,
            category=category,
            icon=icon,
            level=0,
            created_at=now,
        )
        repo.save_interest(parent.model_dump(mode="json"), timeout=config.STORE_TIMEOUT)
        written += 1
        for child_name, child_icon in subcategories:
            child = Interest(
                id=str(uuid.uuid4()),
                name=child_name,
                category=category,
                icon=child_icon,
                parent_id=parent.id,
                level=1,
                created_at=now,
            )
            repo.save_interest(child.model_dump(mode="json"), timeout=config.STORE_TIMEOUT)
            written += 1

    logger.info("Seeded %s interests", written)
    return written
