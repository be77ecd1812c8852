"""Event processor for the current user's own stream."""

import logging
from typing import Any

import anyio

from parley.current_user import CurrentUser
from parley.delegates import ChatManagerDelegate
from parley.deserializer import (
    parse_initial_state,
    parse_room_event,
    parse_room_id,
    parse_room_user,
    parse_user_event,
)
from parley.errors import ChatError
from parley.global_user_store import GlobalUserStore
from parley.instance import Instance
from parley.models import Room, User
from parley.subscription import EventSubscription

logger = logging.getLogger(__name__)

INITIAL_STATE = "initial_state"


class UserSubscription(EventSubscription):
    """Builds the CurrentUser from initial_state and applies later changes.

    The first event on the stream must be initial_state. Until it arrives
    every other event is dropped, and if something else arrives first the
    subscription records an error so that connecting fails.
    """

    def __init__(
        self,
        instance: Instance,
        user_store: GlobalUserStore,
        delegate: ChatManagerDelegate | None = None,
    ) -> None:
        super().__init__("user", delegate or ChatManagerDelegate())
        self._instance = instance
        self._user_store = user_store
        self.current_user: CurrentUser | None = None
        self.error: Exception | None = None
        self.ready = anyio.Event()

        self.on(INITIAL_STATE, self._on_initial_state)
        self.on("added_to_room", self._on_added_to_room)
        self.on("removed_from_room", self._on_removed_from_room)
        self.on("room_updated", self._on_room_updated)
        self.on("room_deleted", self._on_room_deleted)
        self.on("user_joined", self._on_user_joined)
        self.on("user_left", self._on_user_left)
        self.on("typing_start", self._on_typing_start)
        self.on("typing_stop", self._on_typing_stop)
        self.on("user_updated", self._on_user_updated)

    async def handle_event(self, event_name: str, data: Any) -> None:
        if self.current_user is None and event_name != INITIAL_STATE:
            if not self.ready.is_set():
                self._fail(ChatError(f"Expected {INITIAL_STATE}, got {event_name}"))
            logger.debug("Dropping %s received before %s", event_name, INITIAL_STATE)
            return
        await super().handle_event(event_name, data)

    def transport_ended(self, error: Exception | None = None) -> None:
        super().transport_ended(error)
        if not self.ready.is_set():
            self._fail(error or ChatError(f"Subscription ended before {INITIAL_STATE}"))

    def _fail(self, error: Exception) -> None:
        self.error = error
        self.ready.set()

    def _require_user(self) -> CurrentUser:
        if self.current_user is None:
            msg = f"No current user before {INITIAL_STATE}"
            raise ChatError(msg)
        return self.current_user

    def _room(self, room_id: int) -> Room | None:
        room = self._require_user().get_room(room_id)
        if room is None:
            logger.debug("Event references unknown room %s", room_id)
        return room

    async def _fetch_user(self, user_id: str) -> User | None:
        try:
            return await self._user_store.fetch(user_id)
        except ChatError as e:
            logger.debug("Unable to find user %s: %s", user_id, e)
            return None

    async def _on_initial_state(self, data: Any) -> None:
        try:
            user, rooms = parse_initial_state(data)
        except ChatError as e:
            if not self.ready.is_set():
                self._fail(e)
            raise

        self._user_store.merge(user)
        current_user = self.current_user
        if current_user is None:
            current_user = CurrentUser.from_user(
                user, self._instance, self._user_store
            )
            self.current_user = current_user
        else:
            current_user.update_with(user)
            listed = {room.id for room in rooms}
            for room in current_user.rooms:
                if room.id not in listed:
                    self._remove_room(room.id)

        stored = [current_user.room_store.add_or_merge(room) for room in rooms]
        self.ready.set()

        async with anyio.create_task_group() as tg:
            for room in stored:
                tg.start_soon(current_user.populate_room_user_store, room)

    async def _on_added_to_room(self, data: Any) -> None:
        current_user = self._require_user()
        room = current_user.room_store.add_or_merge(parse_room_event(data))
        await current_user.populate_room_user_store(room)
        self.delegate.added_to_room(room)

    def _remove_room(self, room_id: int) -> None:
        room = self._require_user().room_store.remove(room_id)
        if room is None:
            logger.debug("Removed from unknown room %s", room_id)
            return
        if room.subscription is not None:
            room.subscription.end()
        self.delegate.removed_from_room(room)

    async def _on_removed_from_room(self, data: Any) -> None:
        self._remove_room(parse_room_id(data))

    async def _on_room_updated(self, data: Any) -> None:
        updated = parse_room_event(data)
        current_user = self._require_user()
        if updated.id not in current_user.room_store:
            logger.debug("Update for unknown room %s", updated.id)
            return
        room = current_user.room_store.add_or_merge(updated)
        self.delegate.room_updated(room)

    async def _on_room_deleted(self, data: Any) -> None:
        room_id = parse_room_id(data)
        room = self._require_user().room_store.remove(room_id)
        if room is None:
            logger.debug("Unknown room %s deleted", room_id)
            return
        if room.subscription is not None:
            room.subscription.end()
        self.delegate.room_deleted(room)

    async def _on_user_joined(self, data: Any) -> None:
        room_id, user_id = parse_room_user(data)
        room = self._room(room_id)
        if room is None:
            return
        room.user_ids.add(user_id)
        user = await self._fetch_user(user_id)
        if user is None:
            return
        user = room.user_store.add_or_merge(user)
        self.delegate.user_joined_room(room, user)

    async def _on_user_left(self, data: Any) -> None:
        room_id, user_id = parse_room_user(data)
        room = self._room(room_id)
        if room is None:
            return
        room.user_ids.discard(user_id)
        user = room.user_store.remove(user_id) or self._user_store.get_cached(user_id)
        if user is None:
            logger.debug("Unknown user %s left room %s", user_id, room_id)
            return
        self.delegate.user_left_room(room, user)

    def _typing_target(self, data: Any) -> tuple[Room, User] | None:
        """Resolve a typing event from the caches only; nothing is fetched."""
        room_id, user_id = parse_room_user(data)
        room = self._room(room_id)
        if room is None:
            return None
        user = room.user_store.get_cached(user_id) or self._user_store.get_cached(
            user_id
        )
        if user is None:
            logger.debug("Typing user %s is not cached", user_id)
            return None
        return room, user

    async def _on_typing_start(self, data: Any) -> None:
        target = self._typing_target(data)
        if target is not None:
            self.delegate.user_started_typing_in_room(*target)

    async def _on_typing_stop(self, data: Any) -> None:
        target = self._typing_target(data)
        if target is not None:
            self.delegate.user_stopped_typing_in_room(*target)

    async def _on_user_updated(self, data: Any) -> None:
        user = self._user_store.merge(parse_user_event(data))
        current_user = self._require_user()
        if user.id == current_user.id:
            current_user.update_with(user)
        self.delegate.user_updated(user)
