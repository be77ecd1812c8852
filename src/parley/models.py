"""Chat domain records: users, rooms and messages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from parley.user_store import UserStore

if TYPE_CHECKING:
    from parley.room_subscription import RoomSubscription


class PresenceState(str, Enum):
    """Online state of a user as reported by the presence subscription."""

    ONLINE = "online"
    OFFLINE = "offline"
    UNKNOWN = "unknown"


@dataclass
class User:
    """A chat user.

    Stores mutate users in place via update_with; do not replace them.
    """

    id: str
    created_at: str
    updated_at: str
    name: str | None = None
    avatar_url: str | None = None
    custom_data: Any = None
    presence: PresenceState = PresenceState.UNKNOWN
    last_seen_at: str | None = None

    def update_with(self, other: User) -> None:
        """Copy profile fields from another record of the same user.

        Presence is left alone; it is only changed by presence events.
        """
        self.created_at = other.created_at
        self.updated_at = other.updated_at
        self.name = other.name
        self.avatar_url = other.avatar_url
        self.custom_data = other.custom_data


@dataclass
class Room:
    """A chat room and the locally cached subset of its members."""

    id: int
    name: str
    created_by_id: str
    created_at: str
    updated_at: str
    is_private: bool = False
    user_ids: set[str] = field(default_factory=set)
    user_store: UserStore = field(default_factory=UserStore, compare=False, repr=False)
    subscription: RoomSubscription | None = field(
        default=None, compare=False, repr=False
    )

    def update_with(self, other: Room) -> None:
        """Copy the mutable fields of another record of the same room."""
        self.name = other.name
        self.is_private = other.is_private
        self.updated_at = other.updated_at
        self.user_ids = set(other.user_ids)

    @property
    def users(self) -> list[User]:
        """Members whose records have been fetched into the room's store."""
        return self.user_store.users


@dataclass
class BasicMessage:
    """A message as delivered by the server, before its sender is resolved."""

    id: int
    sender_id: str
    room_id: int
    text: str
    created_at: str
    updated_at: str


@dataclass
class Message:
    """A message with its sender resolved to a full User record."""

    id: int
    sender: User
    room: Room
    text: str
    created_at: str
    updated_at: str

    @classmethod
    def from_basic(cls, basic: BasicMessage, sender: User, room: Room) -> Message:
        return cls(
            id=basic.id,
            sender=sender,
            room=room,
            text=basic.text,
            created_at=basic.created_at,
            updated_at=basic.updated_at,
        )
