"""Direct messages between connected users."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from src.config import config
from src.models import Conversation, Message
from src.tools.connection_tools import are_connected
from src.tools.repository import Repository, get_repository
from src.utils.errors import InvalidInputError, PermissionDeniedError
from src.utils.logging_config import logger

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _sent_at(message: Message) -> datetime:
    return message.created_at or _EPOCH


def send_message(
    sender_id: str,
    receiver_id: str,
    content: str,
    message_type: str = "text",
    *,
    repository: Repository | None = None,
) -> Message:
    """Send a message. Requires an accepted connection between the two users."""

    content = (content or "").strip()
    if not content:
        raise InvalidInputError("Message content is required")
    if sender_id == receiver_id:
        raise InvalidInputError("Cannot message yourself")

    repo = repository or get_repository()
    if not are_connected(sender_id, receiver_id, repository=repo):
        raise PermissionDeniedError("Messages require an accepted connection")

    now = datetime.now(timezone.utc)
    message = Message(
        id=str(uuid.uuid4()),
        sender_id=sender_id,
        receiver_id=receiver_id,
        content=content,
        message_type=message_type,
        created_at=now,
        updated_at=now,
    )
    repo.save_message(message.model_dump(mode="json"), timeout=config.STORE_TIMEOUT)
    logger.debug("Message %s sent %s -> %s", message.id, sender_id, receiver_id)
    return message


def _messages_for(repo: Repository, user_id: str) -> list[Message]:
    return [
        Message.model_validate(row)
        for row in repo.list_messages(user_id, timeout=config.STORE_TIMEOUT)
    ]


def get_thread(
    user_id: str, other_id: str, *, repository: Repository | None = None
) -> list[Message]:
    """Messages exchanged between the two users, oldest first."""

    repo = repository or get_repository()
    thread = [
        m
        for m in _messages_for(repo, user_id)
        if {m.sender_id, m.receiver_id} == {user_id, other_id}
    ]
    return sorted(thread, key=_sent_at)


def mark_thread_read(
    reader_id: str, sender_id: str, *, repository: Repository | None = None
) -> int:
    """Stamp read_at on unread messages from sender to reader. Returns the count."""

    repo = repository or get_repository()
    updated = repo.mark_messages_read(
        reader_id,
        sender_id,
        datetime.now(timezone.utc),
        timeout=config.STORE_TIMEOUT,
    )
    logger.debug("Marked %s messages from %s read for %s", updated, sender_id, reader_id)
    return updated


def list_conversations(
    user_id: str, *, repository: Repository | None = None
) -> list[Conversation]:
    """One entry per partner with last message and unread count, newest first."""

    repo = repository or get_repository()
    threads: dict[str, list[Message]] = {}
    for message in _messages_for(repo, user_id):
        partner = (
            message.receiver_id if message.sender_id == user_id else message.sender_id
        )
        threads.setdefault(partner, []).append(message)

    if not threads:
        return []

    profiles = repo.list_profiles(list(threads), timeout=config.STORE_TIMEOUT)
    conversations: list[Conversation] = []
    for partner, messages in threads.items():
        profile = profiles.get(partner)
        # Partners without a profile are not shown.
        if profile is None:
            continue
        last = max(messages, key=_sent_at)
        conversations.append(
            Conversation(
                user_id=partner,
                username=profile.get("username") or "Anonymous",
                display_name=profile.get("display_name") or "User",
                avatar_url=profile.get("avatar_url"),
                last_message=last.content,
                last_message_at=last.created_at,
                unread_count=sum(
                    1
                    for m in messages
                    if m.receiver_id == user_id and m.read_at is None
                ),
            )
        )

    return sorted(
        conversations,
        key=lambda c: c.last_message_at or _EPOCH,
        reverse=True,
    )
