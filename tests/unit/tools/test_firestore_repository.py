"""
Unit tests for the Firestore repository with a mocked client.

No network access: every test hands FirestoreRepository a MagicMock db and
checks the calls made and the errors translated.
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from google.api_core.exceptions import AlreadyExists, DeadlineExceeded, ServiceUnavailable

from src.tools import firestore_tools
from src.tools.firestore_tools import FirestoreRepository, get_db
from src.utils.errors import StoreTimeoutError, StoreUnavailableError


def _doc(doc_id, data, exists=True):
    doc = MagicMock()
    doc.id = doc_id
    doc.exists = exists
    doc.to_dict.return_value = data
    doc.reference = MagicMock(name=f"ref-{doc_id}")
    return doc


@pytest.fixture
def db():
    return MagicMock()


@pytest.fixture
def repo(db):
    return FirestoreRepository(db=db)


class TestProfiles:

    def test_get_profile_returns_row_with_id(self, repo, db):
        db.collection.return_value.document.return_value.get.return_value = _doc(
            "alice", {"username": "alice"}
        )

        row = repo.get_profile("alice", timeout=3)

        assert row == {"username": "alice", "user_id": "alice"}
        db.collection.assert_called_with("profiles")
        db.collection.return_value.document.return_value.get.assert_called_once_with(
            timeout=3
        )

    def test_get_missing_profile(self, repo, db):
        db.collection.return_value.document.return_value.get.return_value = _doc(
            "ghost", None, exists=False
        )
        assert repo.get_profile("ghost") is None

    def test_list_profiles_excluding_skips_requester(self, repo, db):
        db.collection.return_value.stream.return_value = [
            _doc("me", {"username": "me"}),
            _doc("a", {"username": "a"}),
        ]

        rows = repo.list_profiles_excluding("me", timeout=5)

        assert rows == [{"username": "a", "user_id": "a"}]
        db.collection.return_value.stream.assert_called_once_with(timeout=5)

    def test_list_profiles_uses_get_all(self, repo, db):
        db.get_all.return_value = [
            _doc("a", {"username": "a"}),
            _doc("b", None, exists=False),
        ]

        rows = repo.list_profiles(["a", "b"], timeout=2)

        assert rows == {"a": {"username": "a", "user_id": "a"}}
        assert db.get_all.call_args.kwargs == {"timeout": 2}

    def test_list_profiles_empty_ids_skips_store(self, repo, db):
        assert repo.list_profiles([]) == {}
        db.get_all.assert_not_called()


class TestLocations:

    def test_inactive_location_is_hidden(self, repo, db):
        db.collection.return_value.document.return_value.get.return_value = _doc(
            "a", {"latitude": 1.0, "longitude": 2.0, "is_active": False}
        )
        assert repo.get_active_location("a") is None

    def test_list_active_locations_filters(self, repo, db):
        db.get_all.return_value = [
            _doc("a", {"latitude": 1.0, "longitude": 2.0, "is_active": True}),
            _doc("b", {"latitude": 1.0, "longitude": 2.0, "is_active": False}),
            _doc("c", None, exists=False),
        ]

        rows = repo.list_active_locations(["a", "b", "c"])

        assert list(rows) == ["a"]
        assert rows["a"]["user_id"] == "a"

    def test_deactivate_location(self, repo, db):
        ref = db.collection.return_value.document.return_value
        ref.get.return_value = _doc("a", {"is_active": True})

        assert repo.deactivate_location("a", timeout=1) is True
        ref.update.assert_called_once_with({"is_active": False}, timeout=1)

    def test_deactivate_when_already_inactive(self, repo, db):
        ref = db.collection.return_value.document.return_value
        ref.get.return_value = _doc("a", {"is_active": False})

        assert repo.deactivate_location("a") is False
        ref.update.assert_not_called()


class TestInterests:

    def test_shared_counts_chunk_in_queries(self, repo, db):
        own_ids = [f"i{n:02d}" for n in range(45)]
        user_interests = db.collection.return_value
        own_query = MagicMock()
        own_query.stream.return_value = [
            _doc(f"me_{iid}", {"user_id": "me", "interest_id": iid}) for iid in own_ids
        ]
        chunk_one = MagicMock()
        chunk_one.stream.return_value = [
            _doc("me_i00", {"user_id": "me", "interest_id": "i00"}),
            _doc("a_i00", {"user_id": "a", "interest_id": "i00"}),
            _doc("a_i01", {"user_id": "a", "interest_id": "i01"}),
            _doc("b_i02", {"user_id": "b", "interest_id": "i02"}),
        ]
        chunk_two = MagicMock()
        chunk_two.stream.return_value = [
            _doc("a_i40", {"user_id": "a", "interest_id": "i40"}),
        ]
        user_interests.where.side_effect = [own_query, chunk_one, chunk_two]

        counts = repo.list_shared_interest_counts("me", timeout=4)

        assert counts == {"a": 3, "b": 1}
        in_calls = user_interests.where.call_args_list[1:]
        assert [len(call.args[2]) for call in in_calls] == [30, 15]
        assert all(call.args[:2] == ("interest_id", "in") for call in in_calls)

    def test_shared_counts_without_own_interests(self, repo, db):
        own_query = MagicMock()
        own_query.stream.return_value = []
        db.collection.return_value.where.side_effect = [own_query]

        assert repo.list_shared_interest_counts("me") == {}

    def test_add_user_interest_duplicate(self, repo, db):
        ref = db.collection.return_value.document.return_value
        ref.create.side_effect = AlreadyExists("exists")

        assert repo.add_user_interest("me", "music") is False
        db.collection.return_value.document.assert_called_with("me_music")

    def test_add_user_interest_new(self, repo, db):
        assert repo.add_user_interest("me", "music", timeout=2) is True
        ref = db.collection.return_value.document.return_value
        assert ref.create.call_args.kwargs == {"timeout": 2}

    def test_delete_interests_removes_user_interest_rows(self, repo, db):
        query = MagicMock()
        query.stream.return_value = [_doc("u_x", {"user_id": "u", "interest_id": "x"})]
        db.collection.return_value.where.return_value = query
        batch = db.batch.return_value

        repo.delete_interests(["x", "y"], timeout=6)

        # Two interest docs plus one user_interest doc.
        assert batch.delete.call_count == 3
        batch.commit.assert_called_once_with(timeout=6)


class TestMessages:

    def test_mark_messages_read_only_updates_unread(self, repo, db):
        query = db.collection.return_value.where.return_value.where.return_value
        query.stream.return_value = [
            _doc("m1", {"read_at": None}),
            _doc("m2", {"read_at": "2024-01-01T00:00:00Z"}),
            _doc("m3", {}),
        ]
        batch = db.batch.return_value

        read_at = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

        updated = repo.mark_messages_read("me", "a", read_at)

        assert updated == 2
        assert batch.update.call_count == 2
        assert batch.update.call_args.args[1] == {
            "read_at": "2024-05-01T12:00:00+00:00",
            "updated_at": "2024-05-01T12:00:00+00:00",
        }

    def test_list_messages_merges_sent_and_received(self, repo, db):
        sent = MagicMock()
        sent.stream.return_value = [_doc("m1", {"sender_id": "me"})]
        received = MagicMock()
        received.stream.return_value = [
            _doc("m1", {"sender_id": "me"}),
            _doc("m2", {"receiver_id": "me"}),
        ]
        db.collection.return_value.where.side_effect = [sent, received]

        rows = repo.list_messages("me")

        assert sorted(row["id"] for row in rows) == ["m1", "m2"]


class TestErrorTranslation:

    def test_deadline_exceeded_becomes_timeout(self, repo, db):
        db.collection.return_value.document.return_value.get.side_effect = (
            DeadlineExceeded("too slow")
        )

        with pytest.raises(StoreTimeoutError):
            repo.get_profile("a", timeout=0.1)

    def test_builtin_timeout_becomes_timeout(self, repo, db):
        db.collection.return_value.stream.side_effect = TimeoutError()

        with pytest.raises(StoreTimeoutError):
            repo.list_profiles_excluding("a")

    def test_other_failures_become_unavailable(self, repo, db):
        db.get_all.side_effect = ServiceUnavailable("down")

        with pytest.raises(StoreUnavailableError) as exc_info:
            repo.list_active_locations(["a"])
        assert not isinstance(exc_info.value, StoreTimeoutError)
        assert exc_info.value.retryable is True

    def test_client_init_failure_is_unavailable(self, monkeypatch):
        monkeypatch.setattr(firestore_tools, "_db", None)
        monkeypatch.setattr("firebase_admin._apps", {})
        monkeypatch.delenv("GOOGLE_APPLICATION_CREDENTIALS", raising=False)

        with pytest.raises(StoreUnavailableError):
            get_db()


class TestClientInit:

    def test_get_db_uses_existing_app(self, mock_firebase_app):
        assert get_db() is mock_firebase_app["db"]

    def test_repository_is_lazy(self, mock_firebase_app):
        repo = FirestoreRepository()
        mock_firebase_app["db"].collection.return_value.document.return_value.get.return_value = _doc(
            "a", {"username": "a"}
        )
        assert repo.get_profile("a")["username"] == "a"
