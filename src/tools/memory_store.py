"""In-process repository for tests and local development."""

from __future__ import annotations

import threading
from collections import Counter
from datetime import datetime

from src.tools.repository import Repository


class InMemoryRepository(Repository):
    """Dict-backed repository. Every read and write holds the lock.

    Rows are copied in and out so callers never share mutable state with
    the store.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._profiles: dict[str, dict] = {}
        self._locations: dict[str, dict] = {}
        self._interests: dict[str, dict] = {}
        self._user_interests: set[tuple[str, str]] = set()
        self._connections: dict[str, dict] = {}
        self._messages: dict[str, dict] = {}

    # Profiles
    def get_profile(self, user_id, *, timeout=None):
        with self._lock:
            row = self._profiles.get(user_id)
            return dict(row) if row is not None else None

    def list_profiles_excluding(self, user_id, *, timeout=None):
        with self._lock:
            return [
                dict(row)
                for uid, row in self._profiles.items()
                if uid != user_id
            ]

    def list_profiles(self, user_ids, *, timeout=None):
        with self._lock:
            return {
                uid: dict(self._profiles[uid])
                for uid in user_ids
                if uid in self._profiles
            }

    def save_profile(self, profile, *, timeout=None):
        with self._lock:
            self._profiles[profile["user_id"]] = dict(profile)

    # Locations
    def get_active_location(self, user_id, *, timeout=None):
        with self._lock:
            row = self._locations.get(user_id)
            if row is None or not row.get("is_active"):
                return None
            return dict(row)

    def list_active_locations(self, user_ids, *, timeout=None):
        with self._lock:
            return {
                uid: dict(self._locations[uid])
                for uid in user_ids
                if uid in self._locations and self._locations[uid].get("is_active")
            }

    def save_location(self, location, *, timeout=None):
        with self._lock:
            self._locations[location["user_id"]] = dict(location)

    def deactivate_location(self, user_id, *, timeout=None):
        with self._lock:
            row = self._locations.get(user_id)
            if row is None or not row.get("is_active"):
                return False
            row["is_active"] = False
            return True

    # Interests
    def list_interests(self, *, timeout=None):
        with self._lock:
            return [dict(row) for row in self._interests.values()]

    def get_interest(self, interest_id, *, timeout=None):
        with self._lock:
            row = self._interests.get(interest_id)
            return dict(row) if row is not None else None

    def save_interest(self, interest, *, timeout=None):
        with self._lock:
            self._interests[interest["id"]] = dict(interest)

    def delete_interests(self, interest_ids, *, timeout=None):
        doomed = set(interest_ids)
        with self._lock:
            for interest_id in doomed:
                self._interests.pop(interest_id, None)
            self._user_interests = {
                pair for pair in self._user_interests if pair[1] not in doomed
            }

    def list_user_interest_ids(self, user_id, *, timeout=None):
        with self._lock:
            return sorted(iid for uid, iid in self._user_interests if uid == user_id)

    def add_user_interest(self, user_id, interest_id, *, timeout=None):
        with self._lock:
            if (user_id, interest_id) in self._user_interests:
                return False
            self._user_interests.add((user_id, interest_id))
            return True

    def remove_user_interest(self, user_id, interest_id, *, timeout=None):
        with self._lock:
            if (user_id, interest_id) not in self._user_interests:
                return False
            self._user_interests.discard((user_id, interest_id))
            return True

    def list_shared_interest_counts(self, user_id, *, timeout=None):
        with self._lock:
            own = {iid for uid, iid in self._user_interests if uid == user_id}
            counts = Counter(
                uid
                for uid, iid in self._user_interests
                if uid != user_id and iid in own
            )
        return dict(counts)

    # Connections
    def get_connection(self, connection_id, *, timeout=None):
        with self._lock:
            row = self._connections.get(connection_id)
            return dict(row) if row is not None else None

    def find_connection(self, requester_id, receiver_id, *, timeout=None):
        with self._lock:
            for row in self._connections.values():
                if (
                    row["requester_id"] == requester_id
                    and row["receiver_id"] == receiver_id
                ):
                    return dict(row)
        return None

    def save_connection(self, connection, *, timeout=None):
        with self._lock:
            self._connections[connection["id"]] = dict(connection)

    def list_connections(self, user_id, *, timeout=None):
        with self._lock:
            return [
                dict(row)
                for row in self._connections.values()
                if user_id in (row["requester_id"], row["receiver_id"])
            ]

    # Messages
    def save_message(self, message, *, timeout=None):
        with self._lock:
            self._messages[message["id"]] = dict(message)

    def list_messages(self, user_id, *, timeout=None):
        with self._lock:
            return [
                dict(row)
                for row in self._messages.values()
                if user_id in (row["sender_id"], row["receiver_id"])
            ]

    def mark_messages_read(
        self, reader_id: str, sender_id: str, read_at: datetime, *, timeout=None
    ) -> int:
        stamp = read_at.isoformat()
        updated = 0
        with self._lock:
            for row in self._messages.values():
                if (
                    row["receiver_id"] == reader_id
                    and row["sender_id"] == sender_id
                    and row.get("read_at") is None
                ):
                    row["read_at"] = stamp
                    row["updated_at"] = stamp
                    updated += 1
        return updated
