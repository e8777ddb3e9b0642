"""
Unit tests for profile and location write paths.
"""

import pytest
from src.tools.profile_tools import clear_location, get_profile, save_profile, update_location
from src.utils.errors import InvalidInputError, NotFoundError


class TestProfiles:

    def test_create_then_update(self, memory_repo):
        created = save_profile("alice", {"username": "alice", "bio": "hi"})
        updated = save_profile("alice", {"display_name": "Alice"})

        assert created.created_at is not None
        assert updated.username == "alice"
        assert updated.bio == "hi"
        assert updated.display_name == "Alice"
        assert updated.created_at == created.created_at
        assert updated.updated_at >= created.updated_at

    def test_username_required_on_create(self):
        with pytest.raises(InvalidInputError):
            save_profile("alice", {"bio": "no username"})

    def test_unknown_fields_ignored(self, memory_repo):
        save_profile("alice", {"username": "alice", "is_admin": True})
        assert "is_admin" not in memory_repo.get_profile("alice")

    def test_user_id_cannot_be_overwritten(self):
        profile = save_profile("alice", {"username": "alice", "user_id": "mallory"})
        assert profile.user_id == "alice"

    def test_get_profile(self):
        save_profile("alice", {"username": "alice"})
        assert get_profile("alice").username == "alice"

    def test_get_missing_profile(self):
        with pytest.raises(NotFoundError):
            get_profile("nobody")


class TestLocations:

    def test_update_location_activates(self, memory_repo):
        location = update_location("alice", 37.77, -122.41, "SF")

        assert location.is_active is True
        assert location.last_updated is not None
        assert memory_repo.get_active_location("alice")["location_name"] == "SF"

    @pytest.mark.parametrize("lat, lon", [(91, 0), (-90.5, 0), (0, 181), (0, -180.01)])
    def test_out_of_range_coordinates(self, lat, lon, memory_repo):
        with pytest.raises(InvalidInputError):
            update_location("alice", lat, lon)
        assert memory_repo.get_active_location("alice") is None

    def test_clear_location(self, memory_repo):
        update_location("alice", 1.0, 2.0)

        assert clear_location("alice") is True
        assert clear_location("alice") is False
        assert memory_repo.get_active_location("alice") is None
