"""Connection requests: pending -> accepted | rejected, decided by the receiver."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from src.config import config
from src.models import Connection, ConnectionStatus
from src.tools.repository import Repository, get_repository
from src.utils.errors import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
    PermissionDeniedError,
)
from src.utils.logging_config import logger


def request_connection(
    requester_id: str, receiver_id: str, *, repository: Repository | None = None
) -> Connection:
    """Create a pending connection from requester to receiver."""

    if requester_id == receiver_id:
        raise InvalidInputError("Cannot send a connection request to yourself")

    repo = repository or get_repository()
    if repo.get_profile(receiver_id, timeout=config.STORE_TIMEOUT) is None:
        raise NotFoundError(f"Profile not found: {receiver_id}")

    if repo.find_connection(requester_id, receiver_id, timeout=config.STORE_TIMEOUT):
        raise ConflictError("Connection request already exists")

    now = datetime.now(timezone.utc)
    connection = Connection(
        id=str(uuid.uuid4()),
        requester_id=requester_id,
        receiver_id=receiver_id,
        status=ConnectionStatus.PENDING,
        created_at=now,
        updated_at=now,
    )
    repo.save_connection(connection.model_dump(mode="json"), timeout=config.STORE_TIMEOUT)
    logger.info("Connection %s requested %s -> %s", connection.id, requester_id, receiver_id)
    return connection


def respond_to_connection(
    connection_id: str,
    actor_id: str,
    accept: bool,
    *,
    repository: Repository | None = None,
) -> Connection:
    """Accept or reject a pending request. Only the receiver may answer."""

    repo = repository or get_repository()
    row = repo.get_connection(connection_id, timeout=config.STORE_TIMEOUT)
    if row is None:
        raise NotFoundError(f"Connection not found: {connection_id}")

    connection = Connection.model_validate(row)
    if connection.receiver_id != actor_id:
        raise PermissionDeniedError("Only the receiver can respond to a request")
    if connection.status != ConnectionStatus.PENDING:
        raise ConflictError(f"Connection is already {connection.status.value}")

    updated = connection.model_copy(
        update={
            "status": ConnectionStatus.ACCEPTED if accept else ConnectionStatus.REJECTED,
            "updated_at": datetime.now(timezone.utc),
        }
    )
    repo.save_connection(updated.model_dump(mode="json"), timeout=config.STORE_TIMEOUT)
    logger.info("Connection %s %s", connection_id, updated.status.value)
    return updated


def list_connections(
    user_id: str,
    status: ConnectionStatus | None = None,
    *,
    repository: Repository | None = None,
) -> list[Connection]:
    """Connections involving the user, newest first."""

    repo = repository or get_repository()
    connections = [
        Connection.model_validate(row)
        for row in repo.list_connections(user_id, timeout=config.STORE_TIMEOUT)
    ]
    if status is not None:
        connections = [c for c in connections if c.status == status]

    return sorted(
        connections,
        key=lambda c: c.created_at or datetime.min.replace(tzinfo=timezone.utc),
        reverse=True,
    )


def pending_requests(
    user_id: str, *, repository: Repository | None = None
) -> list[Connection]:
    """Pending requests the user has received."""

    return [
        c
        for c in list_connections(
            user_id, ConnectionStatus.PENDING, repository=repository
        )
        if c.receiver_id == user_id
    ]


def are_connected(
    user_a: str, user_b: str, *, repository: Repository | None = None
) -> bool:
    """True when an accepted connection exists in either direction."""

    repo = repository or get_repository()
    for requester, receiver in ((user_a, user_b), (user_b, user_a)):
        row = repo.find_connection(requester, receiver, timeout=config.STORE_TIMEOUT)
        if row and row.get("status") == ConnectionStatus.ACCEPTED.value:
            return True
    return False
