"""Matching graph: assemble candidates, then rank them by interests and proximity."""

from __future__ import annotations

from langgraph.graph import StateGraph

from src.config import config
from src.graphs.base_graph import BaseGraph
from src.models import MatchResult
from src.state import MatchingState
from src.tools.candidate_tools import load_candidates, load_requester_location
from src.tools.repository import Repository
from src.tools.scoring_tools import rank_candidates, validate_match_parameters
from src.utils.errors import InvalidInputError, StoreUnavailableError
from src.utils.logging_config import logger


def _with_state(state: MatchingState, **updates) -> MatchingState:
    """Return a new state dict with updates applied."""

    return {**state, **updates}


class MatchingGraph(BaseGraph):
    """Read-only ranking pipeline. Errors propagate to the caller."""

    def build_graph(self) -> StateGraph:
        graph = StateGraph(MatchingState)

        graph.add_node("validate_request", self.node_validate_request)
        graph.add_node("fetch_requester", self.node_fetch_requester)
        graph.add_node("assemble_candidates", self.node_assemble_candidates)
        graph.add_node("rank_matches", self.node_rank_matches)
        graph.add_node("finalize_response", self.node_finalize_response)

        graph.set_entry_point("validate_request")
        graph.add_edge("validate_request", "fetch_requester")
        graph.add_edge("fetch_requester", "assemble_candidates")
        graph.add_edge("assemble_candidates", "rank_matches")
        graph.add_edge("rank_matches", "finalize_response")
        graph.set_finish_point("finalize_response")

        return graph

    def node_validate_request(self, state: MatchingState) -> MatchingState:
        """Reject bad arguments before touching the store."""

        self._log_node_execution("validate_request", state)
        requester_id = state.get("requester_id")
        if not isinstance(requester_id, str) or not requester_id.strip():
            raise InvalidInputError("requester_id is required")

        validate_match_parameters(
            state.get("max_distance_km"), state.get("limit_results")
        )
        return state

    def node_fetch_requester(self, state: MatchingState) -> MatchingState:
        """Confirm the requester exists and load their active location."""

        try:
            self._log_node_execution("fetch_requester", state)
            requester_id = state["requester_id"]
            profile = self.repository.get_profile(requester_id, timeout=self.timeout)
            if profile is None:
                logger.info(
                    "Requester %s has no profile; returning no matches", requester_id
                )
                return _with_state(state, requester_found=False)

            location = load_requester_location(
                self.repository, requester_id, timeout=self.timeout
            )
            if location is None:
                logger.debug(
                    "Requester %s has no active location; ranking by interests only",
                    requester_id,
                )
            return _with_state(
                state, requester_found=True, requester_location=location
            )
        except StoreUnavailableError as exc:
            self._log_node_error("fetch_requester", exc)
            raise

    def node_assemble_candidates(self, state: MatchingState) -> MatchingState:
        """Join every other profile with location and shared-interest count."""

        if not state.get("requester_found"):
            return _with_state(state, candidates=[])

        try:
            self._log_node_execution("assemble_candidates", state)
            candidates = load_candidates(
                self.repository, state["requester_id"], timeout=self.timeout
            )
            return _with_state(state, candidates=candidates)
        except StoreUnavailableError as exc:
            self._log_node_error("assemble_candidates", exc)
            raise

    def node_rank_matches(self, state: MatchingState) -> MatchingState:
        """Filter, score, sort and truncate."""

        if not state.get("requester_found"):
            return _with_state(state, ranked_matches=[])

        self._log_node_execution("rank_matches", state)
        ranked = rank_candidates(
            state.get("candidates", []),
            state.get("requester_location"),
            max_distance_km=state["max_distance_km"],
            limit_results=state["limit_results"],
        )
        return _with_state(state, ranked_matches=ranked)

    def node_finalize_response(self, state: MatchingState) -> MatchingState:
        """Construct final matches and response metadata."""

        self._log_node_execution("finalize_response", state)
        final_matches = list(state.get("ranked_matches", []))
        metadata = {
            "requester_found": bool(state.get("requester_found")),
            "requester_located": state.get("requester_location") is not None,
            "total_candidates": len(state.get("candidates", [])),
            "returned": len(final_matches),
        }
        return _with_state(
            state, final_matches=final_matches, response_metadata=metadata
        )


def create_matching_graph(
    repository: Repository | None = None, timeout: float | None = None
):
    """Build and compile the matching graph."""

    graph_builder = MatchingGraph(
        repository=repository,
        timeout=config.STORE_TIMEOUT if timeout is None else timeout,
    )
    return graph_builder.compile()


def run_matching(
    requester_id: str,
    max_distance_km: float | None = None,
    limit_results: int | None = None,
    *,
    repository: Repository | None = None,
    timeout: float | None = None,
) -> MatchingState:
    """Run the matching graph and return its final state (matches + metadata)."""

    graph = create_matching_graph(repository=repository, timeout=timeout)
    return graph.invoke(
        {
            "requester_id": requester_id,
            "max_distance_km": (
                config.DEFAULT_MAX_DISTANCE_KM
                if max_distance_km is None
                else max_distance_km
            ),
            "limit_results": (
                config.DEFAULT_LIMIT_RESULTS if limit_results is None else limit_results
            ),
        }
    )


def find_matches(
    requester_id: str,
    max_distance_km: float = 50,
    limit_results: int = 20,
    *,
    repository: Repository | None = None,
    timeout: float | None = None,
) -> list[MatchResult]:
    """Rank other users for requester_id by shared interests and proximity.

    Args:
        requester_id: Authenticated requesting user.
        max_distance_km: Radius applied only when both sides have a location.
        limit_results: Maximum rows returned, applied after sorting.
        repository: Store to read from; defaults to the configured one.
        timeout: Seconds allowed per store call; defaults to STORE_TIMEOUT.

    Returns:
        Ordered matches. Empty when the requester has no profile.

    Raises:
        InvalidInputError: Bad arguments, raised before any store call.
        StoreUnavailableError: Store unreachable; StoreTimeoutError on timeout.
    """

    result = run_matching(
        requester_id,
        max_distance_km,
        limit_results,
        repository=repository,
        timeout=timeout,
    )
    return result.get("final_matches", [])
