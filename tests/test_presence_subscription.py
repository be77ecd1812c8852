"""Tests for PresenceSubscription."""

import pytest
from payloads import RecordingChatDelegate, room_payload, user_payload

from parley import GlobalUserStore, PresenceState, PresenceSubscription, RoomStore
from parley.deserializer import parse_room, parse_user

pytestmark = pytest.mark.anyio


@pytest.fixture
def delegate() -> RecordingChatDelegate:
    return RecordingChatDelegate()


@pytest.fixture
def room_store() -> RoomStore:
    return RoomStore()


@pytest.fixture
def subscription(
    user_store: GlobalUserStore,
    room_store: RoomStore,
    delegate: RecordingChatDelegate,
) -> PresenceSubscription:
    return PresenceSubscription(user_store, room_store, delegate)


class TestPresenceUpdate:
    async def test_unknown_user_is_a_noop(
        self,
        user_store: GlobalUserStore,
        subscription: PresenceSubscription,
        delegate: RecordingChatDelegate,
    ) -> None:
        await subscription.handle_event(
            "presence_update", {"user_id": "ghost", "state": "online"}
        )

        assert "ghost" not in user_store
        assert delegate.calls == []
        assert subscription.active

    async def test_online_and_offline(
        self,
        user_store: GlobalUserStore,
        subscription: PresenceSubscription,
        delegate: RecordingChatDelegate,
    ) -> None:
        bob = user_store.merge(parse_user(user_payload("bob")))

        await subscription.handle_event(
            "presence_update", {"user_id": "bob", "state": "online"}
        )
        assert bob.presence is PresenceState.ONLINE

        await subscription.handle_event(
            "presence_update",
            {"user_id": "bob", "state": "offline", "last_seen_at": "2017-05-01"},
        )

        assert bob.presence is PresenceState.OFFLINE
        assert bob.last_seen_at == "2017-05-01"
        assert delegate.names() == ["user_came_online", "user_went_offline"]

    async def test_unchanged_state_is_not_renotified(
        self,
        user_store: GlobalUserStore,
        subscription: PresenceSubscription,
        delegate: RecordingChatDelegate,
    ) -> None:
        user_store.merge(parse_user(user_payload("bob")))
        update = {"user_id": "bob", "state": "online"}

        await subscription.handle_event("presence_update", update)
        await subscription.handle_event("presence_update", update)

        assert delegate.names() == ["user_came_online"]


class TestBulkPresence:
    async def test_initial_state(
        self,
        user_store: GlobalUserStore,
        subscription: PresenceSubscription,
        delegate: RecordingChatDelegate,
    ) -> None:
        alice = user_store.merge(parse_user(user_payload("alice")))
        bob = user_store.merge(parse_user(user_payload("bob")))

        await subscription.handle_event(
            "initial_state",
            {
                "user_states": [
                    {"user_id": "alice", "state": "online"},
                    {"user_id": "bob", "state": "offline"},
                    {"user_id": "ghost", "state": "online"},
                ]
            },
        )

        assert alice.presence is PresenceState.ONLINE
        assert bob.presence is PresenceState.OFFLINE
        assert delegate.calls == [
            ("user_came_online", (alice,)),
            ("user_went_offline", (bob,)),
        ]
        assert "ghost" not in user_store

    async def test_join_room_presence_update_finds_room_members(
        self,
        room_store: RoomStore,
        subscription: PresenceSubscription,
        delegate: RecordingChatDelegate,
    ) -> None:
        room = room_store.add_or_merge(parse_room(room_payload(1, user_ids=("carol",))))
        carol = room.user_store.add_or_merge(parse_user(user_payload("carol")))

        await subscription.handle_event(
            "join_room_presence_update",
            {"user_states": [{"user_id": "carol", "state": "online"}]},
        )

        assert carol.presence is PresenceState.ONLINE
        assert delegate.names() == ["user_came_online"]

    async def test_malformed_payload_is_reported(
        self, subscription: PresenceSubscription, delegate: RecordingChatDelegate
    ) -> None:
        await subscription.handle_event("initial_state", {"user_states": "nope"})

        assert delegate.names() == ["error"]
        assert subscription.active
