"""Event processor for the current user's presence stream."""

import logging
from typing import Any

from parley.delegates import ChatManagerDelegate
from parley.deserializer import PresencePayload, parse_presence, parse_user_states
from parley.models import PresenceState, User
from parley.room_store import RoomStore
from parley.subscription import EventSubscription
from parley.user_store import UserStore

logger = logging.getLogger(__name__)


class PresenceSubscription(EventSubscription):
    """Keeps the presence field of cached users up to date.

    Presence for users that are not cached is dropped; this subscription
    never creates user records.
    """

    def __init__(
        self,
        user_store: UserStore,
        room_store: RoomStore,
        delegate: ChatManagerDelegate | None = None,
    ) -> None:
        super().__init__("presence", delegate or ChatManagerDelegate())
        self._user_store = user_store
        self._room_store = room_store

        self.on("initial_state", self._on_user_states)
        self.on("join_room_presence_update", self._on_user_states)
        self.on("presence_update", self._on_presence_update)

    async def _on_user_states(self, data: Any) -> None:
        for payload in parse_user_states(data):
            self._apply(payload)

    async def _on_presence_update(self, data: Any) -> None:
        self._apply(parse_presence(data))

    def _find_user(self, user_id: str) -> User | None:
        user = self._user_store.get_cached(user_id)
        if user is not None:
            return user
        for room in self._room_store.rooms:
            user = room.user_store.get_cached(user_id)
            if user is not None:
                return user
        return None

    def _apply(self, payload: PresencePayload) -> None:
        user = self._find_user(payload.user_id)
        if user is None:
            logger.debug("Presence update for unknown user %s", payload.user_id)
            return

        previous = user.presence
        user.presence = payload.state
        if payload.last_seen_at is not None:
            user.last_seen_at = payload.last_seen_at
        if previous == payload.state:
            return

        if payload.state is PresenceState.ONLINE:
            self.delegate.user_came_online(user)
        elif payload.state is PresenceState.OFFLINE:
            self.delegate.user_went_offline(user)
