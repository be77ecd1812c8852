"""Event processor for a single room's realtime stream."""

import logging
from typing import Any

from parley.delegates import RoomDelegate
from parley.deserializer import parse_basic_message, parse_room_event, parse_user_id
from parley.enricher import MessageEnricher
from parley.errors import ChatError
from parley.global_user_store import GlobalUserStore
from parley.models import Room, User
from parley.room_store import RoomStore
from parley.subscription import EventSubscription

logger = logging.getLogger(__name__)


class RoomSubscription(EventSubscription):
    """Applies a room's events to the room and notifies its delegate.

    Handles new_message, user_joined, user_left, typing_start, typing_stop,
    room_updated and room_deleted.
    """

    def __init__(
        self,
        room: Room,
        enricher: MessageEnricher,
        delegate: RoomDelegate | None = None,
        room_store: RoomStore | None = None,
        user_store: GlobalUserStore | None = None,
    ) -> None:
        super().__init__(f"room {room.id}", delegate or RoomDelegate())
        self.room = room
        self._enricher = enricher
        self._room_store = room_store
        self._user_store = user_store

        self.on("new_message", self._on_new_message)
        self.on("user_joined", self._on_user_joined)
        self.on("user_left", self._on_user_left)
        self.on("typing_start", self._on_typing_start)
        self.on("typing_stop", self._on_typing_stop)
        self.on("room_updated", self._on_room_updated)
        self.on("room_deleted", self._on_room_deleted)

    async def _resolve_user(self, user_id: str) -> User | None:
        user = self.room.user_store.get_cached(user_id)
        if user is not None:
            return user
        if self._user_store is None:
            logger.debug("User %s not cached in room %s", user_id, self.room.id)
            return None
        try:
            user = await self._user_store.fetch(user_id)
        except ChatError as e:
            logger.debug("Unable to find user %s: %s", user_id, e)
            return None
        return self.room.user_store.add_or_merge(user)

    async def _on_new_message(self, data: Any) -> None:
        basic = parse_basic_message(data)
        if basic.room_id != self.room.id:
            logger.debug(
                "Message %s is for room %s, not %s",
                basic.id,
                basic.room_id,
                self.room.id,
            )
            return
        message = await self._enricher.enrich(basic)
        self.delegate.new_message(message)

    async def _on_user_joined(self, data: Any) -> None:
        user_id = parse_user_id(data)
        self.room.user_ids.add(user_id)
        user = await self._resolve_user(user_id)
        if user is not None:
            self.delegate.user_joined(user)

    async def _on_user_left(self, data: Any) -> None:
        user_id = parse_user_id(data)
        self.room.user_ids.discard(user_id)
        user = self.room.user_store.remove(user_id)
        if user is None and self._user_store is not None:
            user = self._user_store.get_cached(user_id)
        if user is None:
            logger.debug("Unknown user %s left room %s", user_id, self.room.id)
            return
        self.delegate.user_left(user)

    def _cached_user(self, user_id: str) -> User | None:
        """Look a user up without fetching or storing anything."""
        user = self.room.user_store.get_cached(user_id)
        if user is None and self._user_store is not None:
            user = self._user_store.get_cached(user_id)
        if user is None:
            logger.debug("Typing user %s is not cached", user_id)
        return user

    async def _on_typing_start(self, data: Any) -> None:
        user = self._cached_user(parse_user_id(data))
        if user is not None:
            self.delegate.user_started_typing(user)

    async def _on_typing_stop(self, data: Any) -> None:
        user = self._cached_user(parse_user_id(data))
        if user is not None:
            self.delegate.user_stopped_typing(user)

    async def _on_room_updated(self, data: Any) -> None:
        updated = parse_room_event(data)
        if updated.id != self.room.id:
            logger.debug("Ignoring update for room %s", updated.id)
            return
        if self._room_store is not None and updated.id in self._room_store:
            self.room = self._room_store.add_or_merge(updated)
        else:
            self.room.update_with(updated)
        self.delegate.room_updated(self.room)

    async def _on_room_deleted(self, data: Any) -> None:
        if self._room_store is not None:
            self._room_store.remove(self.room.id)
        self.delegate.room_deleted(self.room)
        self.end()
