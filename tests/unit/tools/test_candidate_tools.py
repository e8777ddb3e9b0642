"""
Unit tests for candidate assembly.

Malformed store rows must be skipped (with a warning) rather than failing
the whole matching pass.
"""

import logging

from src.tools.candidate_tools import (
    assemble_candidates,
    load_candidates,
    load_requester_location,
    parse_location,
    parse_profile,
)


def _profile(user_id, **extra):
    return {"user_id": user_id, "username": user_id, **extra}


def _location(user_id, lat=37.0, lon=-122.0, active=True):
    return {"user_id": user_id, "latitude": lat, "longitude": lon, "is_active": active}


class TestParsing:

    def test_parse_valid_profile(self):
        profile = parse_profile(_profile("a", bio="hello"))
        assert profile.user_id == "a"
        assert profile.bio == "hello"

    def test_parse_profile_without_username(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert parse_profile({"user_id": "a"}) is None
        assert "malformed profile" in caplog.text

    def test_parse_missing_location(self):
        assert parse_location(None) is None
        assert parse_location({}) is None

    def test_parse_inactive_location(self):
        assert parse_location(_location("a", active=False)) is None

    def test_parse_out_of_range_location(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert parse_location(_location("a", lat=123.0)) is None
        assert "malformed location" in caplog.text


class TestAssembleCandidates:

    def test_joins_location_and_shared_counts(self):
        candidates = assemble_candidates(
            "me",
            [_profile("a"), _profile("b")],
            {"a": _location("a")},
            {"b": 2},
        )
        by_id = {c.user_id: c for c in candidates}
        assert by_id["a"].location is not None
        assert by_id["a"].shared_interests_count == 0
        assert by_id["b"].location is None
        assert by_id["b"].shared_interests_count == 2

    def test_requester_is_never_a_candidate(self):
        candidates = assemble_candidates("me", [_profile("me"), _profile("a")], {}, {"me": 9})
        assert [c.user_id for c in candidates] == ["a"]

    def test_skips_malformed_profile(self):
        candidates = assemble_candidates(
            "me", [{"user_id": "broken"}, _profile("ok")], {}, {}
        )
        assert [c.user_id for c in candidates] == ["ok"]

    def test_malformed_location_makes_candidate_unlocated(self):
        candidates = assemble_candidates(
            "me", [_profile("a")], {"a": {"user_id": "a", "latitude": "nowhere"}}, {}
        )
        assert len(candidates) == 1
        assert candidates[0].location is None

    def test_skips_invalid_shared_count(self, caplog):
        with caplog.at_level(logging.WARNING):
            candidates = assemble_candidates(
                "me",
                [_profile("neg"), _profile("text"), _profile("ok")],
                {},
                {"neg": -1, "text": "3", "ok": 1},
            )
        assert [c.user_id for c in candidates] == ["ok"]
        assert "invalid shared interest count" in caplog.text

    def test_duplicate_profile_rows_collapse(self):
        candidates = assemble_candidates("me", [_profile("a"), _profile("a")], {}, {})
        assert len(candidates) == 1


class TestLoading:

    def test_load_candidates_from_repository(self, make_user, memory_repo):
        make_user("me", 37.0, -122.0, interests=["music", "chess"])
        make_user("a", 37.1, -122.0, interests=["music"])
        make_user("b", interests=["music", "chess"])

        candidates = load_candidates(memory_repo, "me")

        by_id = {c.user_id: c for c in candidates}
        assert set(by_id) == {"a", "b"}
        assert by_id["a"].shared_interests_count == 1
        assert by_id["a"].location.latitude == 37.1
        assert by_id["b"].shared_interests_count == 2
        assert by_id["b"].location is None

    def test_load_requester_location(self, make_user, memory_repo):
        make_user("me", 10.0, 20.0)
        location = load_requester_location(memory_repo, "me")
        assert (location.latitude, location.longitude) == (10.0, 20.0)

    def test_load_requester_location_inactive(self, make_user, memory_repo):
        make_user("me", 10.0, 20.0)
        memory_repo.deactivate_location("me")
        assert load_requester_location(memory_repo, "me") is None
