"""Pydantic models for the entities the service reads and writes.

Store rows are plain dicts; these models validate them on the way in and
define the shapes returned to callers.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class Profile(BaseModel):
    """One profile per user, owned by that user."""

    user_id: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    display_name: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    date_of_birth: Optional[date] = None
    phone_number: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Location(BaseModel):
    """Last known coordinate for a user. Only active rows count for matching."""

    user_id: str = Field(..., min_length=1)
    latitude: float = Field(..., ge=-90, le=90, allow_inf_nan=False)
    longitude: float = Field(..., ge=-180, le=180, allow_inf_nan=False)
    location_name: Optional[str] = None
    is_active: bool = True
    last_updated: Optional[datetime] = None


class Interest(BaseModel):
    """A catalog entry or taxonomy node.

    Flat catalog entries are level-0 nodes without a parent.
    """

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    parent_id: Optional[str] = None
    level: int = Field(default=0, ge=0)
    is_custom: bool = False
    icon: Optional[str] = None
    description: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None


class InterestNode(Interest):
    """Interest with its children attached, used for taxonomy browsing."""

    children: list[InterestNode] = Field(default_factory=list)


InterestNode.model_rebuild()


class ConnectionStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    BLOCKED = "blocked"


class Connection(BaseModel):
    """Connection request between two users, unique per ordered pair."""

    id: str
    requester_id: str
    receiver_id: str
    status: ConnectionStatus = ConnectionStatus.PENDING
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Message(BaseModel):
    """Direct message between two connected users."""

    id: str
    sender_id: str
    receiver_id: str
    content: str
    message_type: str = "text"
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Conversation(BaseModel):
    """Summary of the thread with one partner."""

    user_id: str
    username: str
    display_name: str
    avatar_url: Optional[str] = None
    last_message: str
    last_message_at: Optional[datetime] = None
    unread_count: int = 0


class Candidate(BaseModel):
    """Another user considered for ranking, joined with location and overlap."""

    profile: Profile
    location: Optional[Location] = None
    shared_interests_count: int = Field(default=0, ge=0)

    @property
    def user_id(self) -> str:
        return self.profile.user_id


class MatchResult(BaseModel):
    """One ranked row returned by find_matches.

    distance_km is None when either side has no active location.
    """

    user_id: str
    username: str
    display_name: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    distance_km: Optional[float] = None
    shared_interests_count: int
    compatibility_score: float
