"""Store interface used by matching and the write-path services.

Rows cross this boundary as plain dicts; callers validate them into models.
Every method takes an optional timeout in seconds and raises
StoreUnavailableError (or StoreTimeoutError) when the store cannot answer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from src.config import config
from src.utils.logging_config import logger


class Repository(ABC):
    """Abstract store for profiles, locations, interests, connections and messages."""

    # ------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------
    @abstractmethod
    def get_profile(self, user_id: str, *, timeout: float | None = None) -> dict | None:
        """Return the profile row for user_id, or None."""

    @abstractmethod
    def list_profiles_excluding(
        self, user_id: str, *, timeout: float | None = None
    ) -> list[dict]:
        """Return every profile row except the one owned by user_id."""

    @abstractmethod
    def list_profiles(
        self, user_ids: list[str], *, timeout: float | None = None
    ) -> dict[str, dict]:
        """Return profile rows for user_ids keyed by user id (missing ids omitted)."""

    @abstractmethod
    def save_profile(self, profile: dict, *, timeout: float | None = None) -> None:
        """Create or replace the profile row keyed by profile['user_id']."""

    # ------------------------------------------------------------
    # Locations
    # ------------------------------------------------------------
    @abstractmethod
    def get_active_location(
        self, user_id: str, *, timeout: float | None = None
    ) -> dict | None:
        """Return the user's location row if it is active, else None."""

    @abstractmethod
    def list_active_locations(
        self, user_ids: list[str], *, timeout: float | None = None
    ) -> dict[str, dict]:
        """Return active location rows for user_ids keyed by user id."""

    @abstractmethod
    def save_location(self, location: dict, *, timeout: float | None = None) -> None:
        """Create or replace the location row keyed by location['user_id']."""

    @abstractmethod
    def deactivate_location(self, user_id: str, *, timeout: float | None = None) -> bool:
        """Mark the user's location inactive. Returns True if it was active."""

    # ------------------------------------------------------------
    # Interests
    # ------------------------------------------------------------
    @abstractmethod
    def list_interests(self, *, timeout: float | None = None) -> list[dict]:
        """Return every interest row (catalog entries and taxonomy nodes)."""

    @abstractmethod
    def get_interest(self, interest_id: str, *, timeout: float | None = None) -> dict | None:
        """Return one interest row, or None."""

    @abstractmethod
    def save_interest(self, interest: dict, *, timeout: float | None = None) -> None:
        """Create or replace the interest row keyed by interest['id']."""

    @abstractmethod
    def delete_interests(
        self, interest_ids: list[str], *, timeout: float | None = None
    ) -> None:
        """Delete interest rows and every user_interest row pointing at them."""

    @abstractmethod
    def list_user_interest_ids(
        self, user_id: str, *, timeout: float | None = None
    ) -> list[str]:
        """Return the interest ids the user has declared."""

    @abstractmethod
    def add_user_interest(
        self, user_id: str, interest_id: str, *, timeout: float | None = None
    ) -> bool:
        """Declare an interest. Returns False if the pair already existed."""

    @abstractmethod
    def remove_user_interest(
        self, user_id: str, interest_id: str, *, timeout: float | None = None
    ) -> bool:
        """Remove a declared interest. Returns False if it was not declared."""

    @abstractmethod
    def list_shared_interest_counts(
        self, user_id: str, *, timeout: float | None = None
    ) -> dict[str, int]:
        """Count, per other user, the interests they share with user_id.

        Users sharing nothing are absent from the mapping.
        """

    # ------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------
    @abstractmethod
    def get_connection(
        self, connection_id: str, *, timeout: float | None = None
    ) -> dict | None:
        """Return one connection row, or None."""

    @abstractmethod
    def find_connection(
        self, requester_id: str, receiver_id: str, *, timeout: float | None = None
    ) -> dict | None:
        """Return the connection for the ordered pair, or None."""

    @abstractmethod
    def save_connection(self, connection: dict, *, timeout: float | None = None) -> None:
        """Create or replace the connection row keyed by connection['id']."""

    @abstractmethod
    def list_connections(self, user_id: str, *, timeout: float | None = None) -> list[dict]:
        """Return connections where user_id is requester or receiver."""

    # ------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------
    @abstractmethod
    def save_message(self, message: dict, *, timeout: float | None = None) -> None:
        """Create the message row keyed by message['id']."""

    @abstractmethod
    def list_messages(self, user_id: str, *, timeout: float | None = None) -> list[dict]:
        """Return messages where user_id is sender or receiver."""

    @abstractmethod
    def mark_messages_read(
        self,
        reader_id: str,
        sender_id: str,
        read_at: datetime,
        *,
        timeout: float | None = None,
    ) -> int:
        """Set read_at on unread messages from sender to reader. Returns the count."""


_repository: Repository | None = None


def get_repository() -> Repository:
    """Return the process-wide repository selected by STORE_BACKEND."""
    global _repository

    if _repository is not None:
        return _repository

    if config.STORE_BACKEND == "memory":
        from src.tools.memory_store import InMemoryRepository

        _repository = InMemoryRepository()
    elif config.STORE_BACKEND == "firestore":
        from src.tools.firestore_tools import FirestoreRepository

        _repository = FirestoreRepository()
    else:
        raise ValueError(f"Unknown STORE_BACKEND: {config.STORE_BACKEND}")

    logger.info("Using %s repository", config.STORE_BACKEND)
    return _repository


def set_repository(repository: Repository | None) -> None:
    """Replace the process-wide repository (None resets to lazy selection)."""
    global _repository

    _repository = repository
