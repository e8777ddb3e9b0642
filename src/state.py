"""Shared LangGraph state definitions.

Graph states are TypedDicts so state is explicit and consistent across
graph nodes.
"""

from __future__ import annotations

from typing import TypedDict

from src.models import Candidate, Location, MatchResult

JsonDict = dict[str, object]


class MatchingState(TypedDict, total=False):
    """State for the matching graph.

    Fields are optional at runtime because nodes populate them progressively.
    """

    # Identifies the requesting user (trusted, already authenticated).
    requester_id: str
    # Candidates farther than this are dropped when both locations are known.
    max_distance_km: float
    # Maximum rows returned after ranking.
    limit_results: int
    # False when the requester has no profile; downstream nodes then no-op.
    requester_found: bool
    # Requester's active location, None when unknown.
    requester_location: Location | None
    # Every other user joined with location and shared-interest count.
    candidates: list[Candidate]
    # Candidates after filtering, scoring, sorting and truncation.
    ranked_matches: list[MatchResult]
    # Final matches returned to the caller.
    final_matches: list[MatchResult]
    # Response metadata for observability.
    response_metadata: JsonDict
