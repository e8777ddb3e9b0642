"""Firestore-backed repository.

Centralizes client initialisation, timeouts, error translation, and
logging so matching and the write-path services only deal in dicts.

Collections:
  profiles/{user_id}
  user_locations/{user_id}
  interests/{interest_id}
  user_interests/{user_id}_{interest_id}
  connections/{connection_id}
  messages/{message_id}
"""

from __future__ import annotations

import os
from collections import Counter
from datetime import datetime

import firebase_admin
from firebase_admin import credentials, firestore
from google.api_core.exceptions import AlreadyExists, DeadlineExceeded

from src.tools.repository import Repository
from src.utils.errors import StoreTimeoutError, StoreUnavailableError
from src.utils.logging_config import logger

# Firestore caps "in" filters at 30 values and batches at 500 writes.
IN_QUERY_LIMIT = 30
BATCH_LIMIT = 500

_db: firestore.Client | None = None


def get_db() -> firestore.Client:
    """Get a Firestore client, initializing Firebase lazily."""
    global _db

    if _db is not None:
        return _db

    try:
        if not firebase_admin._apps:
            cred_path = os.environ.get("GOOGLE_APPLICATION_CREDENTIALS")
            if not cred_path:
                raise RuntimeError(
                    "GOOGLE_APPLICATION_CREDENTIALS is not set"
                )

            cred = credentials.Certificate(cred_path)
            firebase_admin.initialize_app(cred)

        _db = firestore.client()
        return _db

    except Exception as exc:
        logger.error("Failed to initialize Firestore: %s", exc)
        raise StoreUnavailableError(str(exc)) from exc


def _chunks(items: list, size: int):
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _store_error(action: str, exc: Exception) -> StoreUnavailableError:
    """Log a failed store call and wrap it in the retryable error type."""

    if isinstance(exc, (DeadlineExceeded, TimeoutError)):
        logger.error("Timed out trying to %s: %s", action, str(exc))
        return StoreTimeoutError(f"Timed out trying to {action}")

    logger.error("Failed to %s: %s", action, str(exc))
    return StoreUnavailableError(str(exc))


class FirestoreRepository(Repository):
    """Repository over the Firestore collections listed in the module docstring."""

    def __init__(self, db: firestore.Client | None = None):
        self._client = db

    @property
    def db(self) -> firestore.Client:
        if self._client is None:
            self._client = get_db()
        return self._client

    # ------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------
    def get_profile(self, user_id, *, timeout=None):
        try:
            doc = self.db.collection("profiles").document(user_id).get(timeout=timeout)
            if not doc.exists:
                return None
            return {**(doc.to_dict() or {}), "user_id": doc.id}
        except StoreUnavailableError:
            raise
        except Exception as exc:
            raise _store_error("fetch profile", exc) from exc

    def list_profiles_excluding(self, user_id, *, timeout=None):
        try:
            return [
                {**(doc.to_dict() or {}), "user_id": doc.id}
                for doc in self.db.collection("profiles").stream(timeout=timeout)
                if doc.id != user_id
            ]
        except StoreUnavailableError:
            raise
        except Exception as exc:
            raise _store_error("query profiles", exc) from exc

    def list_profiles(self, user_ids, *, timeout=None):
        if not user_ids:
            return {}
        try:
            refs = [self.db.collection("profiles").document(uid) for uid in user_ids]
            return {
                doc.id: {**(doc.to_dict() or {}), "user_id": doc.id}
                for doc in self.db.get_all(refs, timeout=timeout)
                if doc.exists
            }
        except StoreUnavailableError:
            raise
        except Exception as exc:
            raise _store_error("fetch profiles", exc) from exc

    def save_profile(self, profile, *, timeout=None):
        try:
            self.db.collection("profiles").document(profile["user_id"]).set(
                profile, timeout=timeout
            )
        except StoreUnavailableError:
            raise
        except Exception as exc:
            raise _store_error("save profile", exc) from exc

    # ------------------------------------------------------------
    # Locations
    # ------------------------------------------------------------
    def get_active_location(self, user_id, *, timeout=None):
        try:
            doc = (
                self.db.collection("user_locations")
                .document(user_id)
                .get(timeout=timeout)
            )
            if not doc.exists:
                return None
            data = doc.to_dict() or {}
            if not data.get("is_active"):
                return None
            return {**data, "user_id": doc.id}
        except StoreUnavailableError:
            raise
        except Exception as exc:
            raise _store_error("fetch location", exc) from exc

    def list_active_locations(self, user_ids, *, timeout=None):
        if not user_ids:
            return {}
        try:
            refs = [
                self.db.collection("user_locations").document(uid)
                for uid in user_ids
            ]
            locations: dict[str, dict] = {}
            for doc in self.db.get_all(refs, timeout=timeout):
                if not doc.exists:
                    continue
                data = doc.to_dict() or {}
                if data.get("is_active"):
                    locations[doc.id] = {**data, "user_id": doc.id}
            return locations
        except StoreUnavailableError:
            raise
        except Exception as exc:
            raise _store_error("fetch locations", exc) from exc

    def save_location(self, location, *, timeout=None):
        try:
            self.db.collection("user_locations").document(location["user_id"]).set(
                location, timeout=timeout
            )
        except StoreUnavailableError:
            raise
        except Exception as exc:
            raise _store_error("save location", exc) from exc

    def deactivate_location(self, user_id, *, timeout=None):
        try:
            ref = self.db.collection("user_locations").document(user_id)
            doc = ref.get(timeout=timeout)
            if not doc.exists or not (doc.to_dict() or {}).get("is_active"):
                return False
            ref.update({"is_active": False}, timeout=timeout)
            return True
        except StoreUnavailableError:
            raise
        except Exception as exc:
            raise _store_error("clear location", exc) from exc

    # ------------------------------------------------------------
    # Interests
    # ------------------------------------------------------------
    def list_interests(self, *, timeout=None):
        try:
            return [
                {**(doc.to_dict() or {}), "id": doc.id}
                for doc in self.db.collection("interests").stream(timeout=timeout)
            ]
        except StoreUnavailableError:
            raise
        except Exception as exc:
            raise _store_error("query interests", exc) from exc

    def get_interest(self, interest_id, *, timeout=None):
        try:
            doc = self.db.collection("interests").document(interest_id).get(
                timeout=timeout
            )
            if not doc.exists:
                return None
            return {**(doc.to_dict() or {}), "id": doc.id}
        except StoreUnavailableError:
            raise
        except Exception as exc:
            raise _store_error("fetch interest", exc) from exc

    def save_interest(self, interest, *, timeout=None):
        try:
            self.db.collection("interests").document(interest["id"]).set(
                interest, timeout=timeout
            )
        except StoreUnavailableError:
            raise
        except Exception as exc:
            raise _store_error("save interest", exc) from exc

    def delete_interests(self, interest_ids, *, timeout=None):
        if not interest_ids:
            return
        try:
            refs = [
                self.db.collection("interests").document(iid)
                for iid in interest_ids
            ]
            for chunk in _chunks(list(interest_ids), IN_QUERY_LIMIT):
                query = self.db.collection("user_interests").where(
                    "interest_id", "in", chunk
                )
                refs.extend(doc.reference for doc in query.stream(timeout=timeout))

            for chunk in _chunks(refs, BATCH_LIMIT):
                batch = self.db.batch()
                for ref in chunk:
                    batch.delete(ref)
                batch.commit(timeout=timeout)
        except StoreUnavailableError:
            raise
        except Exception as exc:
            raise _store_error("delete interests", exc) from exc

    def list_user_interest_ids(self, user_id, *, timeout=None):
        try:
            query = self.db.collection("user_interests").where("user_id", "==", user_id)
            return sorted(
                (doc.to_dict() or {}).get("interest_id")
                for doc in query.stream(timeout=timeout)
                if (doc.to_dict() or {}).get("interest_id")
            )
        except StoreUnavailableError:
            raise
        except Exception as exc:
            raise _store_error("query user interests", exc) from exc

    def add_user_interest(self, user_id, interest_id, *, timeout=None):
        try:
            self.db.collection("user_interests").document(
                f"{user_id}_{interest_id}"
            ).create(
                {
                    "user_id": user_id,
                    "interest_id": interest_id,
                    "created_at": firestore.SERVER_TIMESTAMP,
                },
                timeout=timeout,
            )
            return True
        except AlreadyExists:
            return False
        except StoreUnavailableError:
            raise
        except Exception as exc:
            raise _store_error("add user interest", exc) from exc

    def remove_user_interest(self, user_id, interest_id, *, timeout=None):
        try:
            ref = self.db.collection("user_interests").document(
                f"{user_id}_{interest_id}"
            )
            if not ref.get(timeout=timeout).exists:
                return False
            ref.delete(timeout=timeout)
            return True
        except StoreUnavailableError:
            raise
        except Exception as exc:
            raise _store_error("remove user interest", exc) from exc

    def list_shared_interest_counts(self, user_id, *, timeout=None):
        """Group the requester's interest set against everyone else's.

        One "in" query per 30 interest ids, counted per user in memory.
        """

        try:
            own_ids = self.list_user_interest_ids(user_id, timeout=timeout)
            counts: Counter[str] = Counter()
            for chunk in _chunks(sorted(set(own_ids)), IN_QUERY_LIMIT):
                query = self.db.collection("user_interests").where(
                    "interest_id", "in", chunk
                )
                for doc in query.stream(timeout=timeout):
                    other_id = (doc.to_dict() or {}).get("user_id")
                    if other_id and other_id != user_id:
                        counts[other_id] += 1
            return dict(counts)
        except StoreUnavailableError:
            raise
        except Exception as exc:
            raise _store_error("count shared interests", exc) from exc

    # ------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------
    def get_connection(self, connection_id, *, timeout=None):
        try:
            doc = self.db.collection("connections").document(connection_id).get(
                timeout=timeout
            )
            if not doc.exists:
                return None
            return {**(doc.to_dict() or {}), "id": doc.id}
        except StoreUnavailableError:
            raise
        except Exception as exc:
            raise _store_error("fetch connection", exc) from exc

    def find_connection(self, requester_id, receiver_id, *, timeout=None):
        try:
            query = (
                self.db.collection("connections")
                .where("requester_id", "==", requester_id)
                .where("receiver_id", "==", receiver_id)
                .limit(1)
            )
            for doc in query.stream(timeout=timeout):
                return {**(doc.to_dict() or {}), "id": doc.id}
            return None
        except StoreUnavailableError:
            raise
        except Exception as exc:
            raise _store_error("find connection", exc) from exc

    def save_connection(self, connection, *, timeout=None):
        try:
            self.db.collection("connections").document(connection["id"]).set(
                connection, timeout=timeout
            )
        except StoreUnavailableError:
            raise
        except Exception as exc:
            raise _store_error("save connection", exc) from exc

    def list_connections(self, user_id, *, timeout=None):
        try:
            rows: dict[str, dict] = {}
            for field in ("requester_id", "receiver_id"):
                query = self.db.collection("connections").where(field, "==", user_id)
                for doc in query.stream(timeout=timeout):
                    rows[doc.id] = {**(doc.to_dict() or {}), "id": doc.id}
            return list(rows.values())
        except StoreUnavailableError:
            raise
        except Exception as exc:
            raise _store_error("query connections", exc) from exc

    # ------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------
    def save_message(self, message, *, timeout=None):
        try:
            self.db.collection("messages").document(message["id"]).set(
                message, timeout=timeout
            )
        except StoreUnavailableError:
            raise
        except Exception as exc:
            raise _store_error("save message", exc) from exc

    def list_messages(self, user_id, *, timeout=None):
        try:
            rows: dict[str, dict] = {}
            for field in ("sender_id", "receiver_id"):
                query = self.db.collection("messages").where(field, "==", user_id)
                for doc in query.stream(timeout=timeout):
                    rows[doc.id] = {**(doc.to_dict() or {}), "id": doc.id}
            return list(rows.values())
        except StoreUnavailableError:
            raise
        except Exception as exc:
            raise _store_error("query messages", exc) from exc

    def mark_messages_read(
        self, reader_id: str, sender_id: str, read_at: datetime, *, timeout=None
    ) -> int:
        # Unread filtering is done in memory to avoid a composite index on read_at.
        try:
            query = (
                self.db.collection("messages")
                .where("receiver_id", "==", reader_id)
                .where("sender_id", "==", sender_id)
            )
            stamp = read_at.isoformat()
            unread = [
                doc.reference
                for doc in query.stream(timeout=timeout)
                if (doc.to_dict() or {}).get("read_at") is None
            ]
            for chunk in _chunks(unread, BATCH_LIMIT):
                batch = self.db.batch()
                for ref in chunk:
                    batch.update(ref, {"read_at": stamp, "updated_at": stamp})
                batch.commit(timeout=timeout)
            return len(unread)
        except StoreUnavailableError:
            raise
        except Exception as exc:
            raise _store_error("mark messages read", exc) from exc
