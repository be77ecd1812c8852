"""The authenticated user's session facade."""

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from typing import Any

from parley.config import DEFAULT_FETCH_DIRECTION, DEFAULT_MESSAGE_LIMIT
from parley.delegates import ChatManagerDelegate, RoomDelegate
from parley.deserializer import (
    parse_basic_messages,
    parse_message_id,
    parse_room,
    parse_rooms,
)
from parley.enricher import MessageEnricher
from parley.errors import ChatError
from parley.global_user_store import GlobalUserStore
from parley.instance import Instance
from parley.models import Message, Room, User
from parley.presence_subscription import PresenceSubscription
from parley.room_store import RoomStore
from parley.room_subscription import RoomSubscription
from parley.utils import path_id, query_string

logger = logging.getLogger(__name__)


@contextmanager
def _log_errors(action: str) -> Iterator[None]:
    try:
        yield
    except ChatError as e:
        logger.debug("Error %s: %s", action, e)
        raise


class CurrentUser:
    """The connected user, their rooms and the REST operations they can perform.

    Every operation awaits the backend, merges the response into the room
    store (so rooms returned here are the same instances held in `rooms`) and
    returns the merged entity. Failures are logged and raised as ChatError
    subclasses: RequestError for transport failures and DeserializationError
    for malformed responses.
    """

    def __init__(
        self,
        *,
        id: str,
        created_at: str,
        updated_at: str,
        instance: Instance,
        user_store: GlobalUserStore,
        name: str | None = None,
        avatar_url: str | None = None,
        custom_data: Any = None,
        rooms: Iterable[Room] = (),
    ) -> None:
        self.id = id
        self.created_at = created_at
        self.updated_at = updated_at
        self.name = name
        self.avatar_url = avatar_url
        self.custom_data = custom_data
        self.user_store = user_store
        self.room_store = RoomStore(rooms)
        self.presence_subscription: PresenceSubscription | None = None
        self._instance = instance
        self._path_id = path_id(id)

    @classmethod
    def from_user(
        cls,
        user: User,
        instance: Instance,
        user_store: GlobalUserStore,
        rooms: Iterable[Room] = (),
    ) -> "CurrentUser":
        return cls(
            id=user.id,
            created_at=user.created_at,
            updated_at=user.updated_at,
            name=user.name,
            avatar_url=user.avatar_url,
            custom_data=user.custom_data,
            instance=instance,
            user_store=user_store,
            rooms=rooms,
        )

    @property
    def rooms(self) -> list[Room]:
        return self.room_store.rooms

    def get_room(self, room_id: int) -> Room | None:
        return self.room_store.get(room_id)

    def update_with(self, user: User) -> None:
        self.updated_at = user.updated_at
        self.name = user.name
        self.avatar_url = user.avatar_url
        self.custom_data = user.custom_data

    # Rooms

    async def create_room(
        self,
        name: str,
        *,
        private: bool = False,
        add_user_ids: Iterable[str] | None = None,
    ) -> Room:
        body: dict[str, Any] = {
            "name": name,
            "created_by_id": self.id,
            "private": private,
        }
        user_ids = list(add_user_ids or ())
        if user_ids:
            body["user_ids"] = user_ids

        with _log_errors(f"creating room {name!r}"):
            room = parse_room(await self._instance.request("POST", "/rooms", body))

        room = self.room_store.add_or_merge(room)
        await self.populate_room_user_store(room)
        return room

    async def update_room(
        self,
        room_id: int,
        *,
        name: str | None = None,
        is_private: bool | None = None,
    ) -> None:
        """Rename a room or change its privacy.

        The local copy is updated when the room_updated event arrives.
        """
        if name is None and is_private is None:
            return

        body: dict[str, Any] = {}
        if name is not None:
            body["name"] = name
        if is_private is not None:
            body["private"] = is_private

        with _log_errors(f"updating room {room_id}"):
            await self._instance.request("PUT", f"/rooms/{room_id}", body)

    async def delete_room(self, room_id: int) -> None:
        with _log_errors(f"deleting room {room_id}"):
            await self._instance.request("DELETE", f"/rooms/{room_id}")

    async def add_user(self, user_id: str, room_id: int) -> None:
        await self.add_users([user_id], room_id)

    async def add_users(self, user_ids: Iterable[str], room_id: int) -> None:
        await self._change_membership(room_id, user_ids, "add")

    async def remove_user(self, user_id: str, room_id: int) -> None:
        await self.remove_users([user_id], room_id)

    async def remove_users(self, user_ids: Iterable[str], room_id: int) -> None:
        await self._change_membership(room_id, user_ids, "remove")

    async def _change_membership(
        self, room_id: int, user_ids: Iterable[str], change: str
    ) -> None:
        body = {"user_ids": list(user_ids)}
        with _log_errors(f"attempting to {change} users in room {room_id}"):
            await self._instance.request(
                "PUT", f"/rooms/{room_id}/users/{change}", body
            )

    async def join_room(self, room_id: int) -> Room:
        path = f"/users/{self._path_id}/rooms/{room_id}/join"
        with _log_errors(f"joining room {room_id}"):
            room = parse_room(await self._instance.request("POST", path))

        room = self.room_store.add_or_merge(room)
        await self.populate_room_user_store(room)
        return room

    async def leave_room(self, room_id: int) -> None:
        """Leave a room.

        The room stays in the store until the removed_from_room event.
        """
        path = f"/users/{self._path_id}/rooms/{room_id}/leave"
        with _log_errors(f"leaving room {room_id}"):
            await self._instance.request("POST", path)

    async def get_joined_rooms(self) -> list[Room]:
        rooms = await self._get_user_rooms(joinable=False)
        return [self.room_store.add_or_merge(room) for room in rooms]

    async def get_joinable_rooms(self) -> list[Room]:
        return self._known_or_new(await self._get_user_rooms(joinable=True))

    async def get_all_rooms(self) -> list[Room]:
        return self._known_or_new(await self._get_rooms("/rooms"))

    async def _get_user_rooms(self, joinable: bool) -> list[Room]:
        query = query_string({"joinable": "true" if joinable else "false"})
        return await self._get_rooms(f"/users/{self._path_id}/rooms{query}")

    async def _get_rooms(self, path: str) -> list[Room]:
        with _log_errors(f"getting rooms from {path}"):
            return parse_rooms(await self._instance.request("GET", path))

    def _known_or_new(self, rooms: list[Room]) -> list[Room]:
        # Rooms the user is in resolve to the stored instance.
        return [
            self.room_store.add_or_merge(room) if room.id in self.room_store else room
            for room in rooms
        ]

    async def populate_room_user_store(self, room: Room) -> None:
        """Fetch the room's members into its user store.

        Members that can't be fetched are skipped.
        """
        users = await self.user_store.fetch_many(room.user_ids)
        for user in users.values():
            room.user_store.add_or_merge(user)

        self._notify_users_updated(room)

    def _notify_users_updated(self, room: Room) -> None:
        if room.subscription is None:
            logger.debug("Room %s has no subscription", room.name)
            return
        room.subscription.delegate.users_updated()
        logger.debug("Users updated in room %s", room.name)

    # Typing

    async def started_typing_in(self, room_id: int) -> None:
        await self._typing_state_change("typing_start", room_id)

    async def stopped_typing_in(self, room_id: int) -> None:
        await self._typing_state_change("typing_stop", room_id)

    async def _typing_state_change(self, event_name: str, room_id: int) -> None:
        body = {"name": event_name, "user_id": self.id}
        with _log_errors(f"sending typing state change in room {room_id}"):
            await self._instance.request("POST", f"/rooms/{room_id}/events", body)

    # Messages

    async def send_message(self, text: str, room: Room) -> int:
        """Send a message and return the id the server assigned to it."""
        body = {"text": text, "user_id": self.id}
        with _log_errors(f"adding message to room {room.name}"):
            raw = await self._instance.request(
                "POST", f"/rooms/{room.id}/messages", body
            )
            return parse_message_id(raw)

    async def fetch_messages_from_room(
        self,
        room: Room,
        *,
        initial_id: int | None = None,
        limit: int | None = None,
        direction: str = DEFAULT_FETCH_DIRECTION,
    ) -> list[Message]:
        """Fetch a page of messages with their senders resolved.

        Messages whose sender can't be fetched are left out. The result is
        sorted by id, oldest first.
        """
        query = query_string(
            {"initial_id": initial_id, "limit": limit, "direction": direction}
        )
        path = f"/rooms/{room.id}/messages{query}"
        with _log_errors(f"fetching messages from room {room.name}"):
            basics = parse_basic_messages(await self._instance.request("GET", path))

        users = await self.user_store.fetch_many({b.sender_id for b in basics})
        for user in users.values():
            room.user_store.add_or_merge(user)

        messages = await MessageEnricher(self.user_store, room).enrich_many(basics)
        self._notify_users_updated(room)
        return messages

    # Subscriptions

    def subscribe_to_room(
        self,
        room: Room,
        delegate: RoomDelegate | None = None,
        message_limit: int = DEFAULT_MESSAGE_LIMIT,
    ) -> RoomSubscription:
        """Start receiving the room's events.

        Replaces any subscription the room already has.
        """
        if room.subscription is not None:
            room.subscription.end()

        subscription = RoomSubscription(
            room,
            MessageEnricher(self.user_store, room),
            delegate,
            room_store=self.room_store,
            user_store=self.user_store,
        )
        room.subscription = subscription
        path = f"/rooms/{room.id}" + query_string({"message_limit": message_limit})
        handle = self._instance.subscribe(
            path, subscription.handle_event, on_end=subscription.transport_ended
        )
        subscription.attach(handle)
        return subscription

    def setup_presence_subscription(
        self, delegate: ChatManagerDelegate | None = None
    ) -> PresenceSubscription:
        if self.presence_subscription is not None:
            self.presence_subscription.end()

        subscription = PresenceSubscription(self.user_store, self.room_store, delegate)
        self.presence_subscription = subscription
        handle = self._instance.subscribe(
            f"/users/{self._path_id}/presence",
            subscription.handle_event,
            on_end=subscription.transport_ended,
        )
        subscription.attach(handle)
        return subscription

    def end_subscriptions(self) -> None:
        """End the presence subscription and every room subscription."""
        if self.presence_subscription is not None:
            self.presence_subscription.end()
        for room in self.rooms:
            if room.subscription is not None:
                room.subscription.end()
