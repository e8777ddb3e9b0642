"""Presentation-side filters applied to already ranked matches."""

from __future__ import annotations

from src.models import MatchResult


def apply_min_shared_interests(
    matches: list[MatchResult], min_shared_interests: int | None
) -> list[MatchResult]:
    """Drop rows below a shared-interest threshold.

    Runs after ranking and truncation: it never re-ranks or fetches more
    rows, so it can only shrink the list. None or a threshold <= 0 returns
    the list as-is.
    """

    if not min_shared_interests or min_shared_interests <= 0:
        return list(matches)

    return [
        match
        for match in matches
        if match.shared_interests_count >= min_shared_interests
    ]
