"""Tests for ChatManager connection handling."""

from typing import Any

import anyio
import pytest
from payloads import (
    RecordingChatDelegate,
    room_payload,
    route_users,
    user_payload,
    wait_for_subscription,
)

from parley import ChatError, ChatManager, InMemoryInstance, RequestError

pytestmark = pytest.mark.anyio

SHORT_TIMEOUT_S = 0.05

INITIAL_STATE = {
    "current_user": user_payload("alice"),
    "rooms": [room_payload(1, user_ids=("alice", "bob"))],
}


async def connect_while(
    manager: ChatManager,
    instance: InMemoryInstance,
    delegate: RecordingChatDelegate,
    event_name: str | None = None,
    data: Any = None,
    error: Exception | None = None,
) -> dict[str, Any]:
    """Run connect() and drive the user stream once it is subscribed."""
    outcome: dict[str, Any] = {}

    async def run() -> None:
        try:
            outcome["user"] = await manager.connect(delegate)
        except Exception as e:  # noqa: BLE001
            outcome["error"] = e

    async with anyio.create_task_group() as tg:
        tg.start_soon(run)
        await wait_for_subscription(instance, "/users")
        if event_name is not None:
            await instance.emit("/users", event_name, data)
        else:
            instance.finish("/users", error)
    return outcome


@pytest.fixture
def manager(instance: InMemoryInstance) -> ChatManager:
    route_users(instance, "alice", "bob")
    return ChatManager(instance)


@pytest.fixture
def delegate() -> RecordingChatDelegate:
    return RecordingChatDelegate()


class TestConnect:
    async def test_connect_returns_current_user(
        self,
        instance: InMemoryInstance,
        manager: ChatManager,
        delegate: RecordingChatDelegate,
    ) -> None:
        outcome = await connect_while(
            manager, instance, delegate, "initial_state", INITIAL_STATE
        )

        current_user = outcome["user"]
        assert current_user is manager.current_user
        assert current_user.id == "alice"
        assert [room.id for room in current_user.rooms] == [1]
        assert len(instance.subscriptions("/users/alice/presence")) == 1

    async def test_presence_reaches_delegate_after_connect(
        self,
        instance: InMemoryInstance,
        manager: ChatManager,
        delegate: RecordingChatDelegate,
    ) -> None:
        await connect_while(manager, instance, delegate, "initial_state", INITIAL_STATE)

        await instance.emit(
            "/users/alice/presence",
            "presence_update",
            {"user_id": "bob", "state": "online"},
        )

        assert delegate.names() == ["user_came_online"]

    async def test_wrong_first_event_fails(
        self,
        instance: InMemoryInstance,
        manager: ChatManager,
        delegate: RecordingChatDelegate,
    ) -> None:
        outcome = await connect_while(
            manager, instance, delegate, "user_updated", {"user": user_payload("bob")}
        )

        assert isinstance(outcome["error"], ChatError)
        assert manager.current_user is None
        assert instance.subscriptions("/users") == []

    async def test_stream_closing_early_fails(
        self,
        instance: InMemoryInstance,
        manager: ChatManager,
        delegate: RecordingChatDelegate,
    ) -> None:
        outcome = await connect_while(manager, instance, delegate)

        assert isinstance(outcome["error"], ChatError)

    async def test_stream_error_is_raised_and_reported(
        self,
        instance: InMemoryInstance,
        manager: ChatManager,
        delegate: RecordingChatDelegate,
    ) -> None:
        error = RequestError("GET", "/users", 401, "unauthorized")

        outcome = await connect_while(manager, instance, delegate, error=error)

        assert outcome["error"] is error
        assert delegate.calls == [("error", (error,))]

    async def test_timeout(self, instance: InMemoryInstance) -> None:
        manager = ChatManager(instance, connect_timeout_s=SHORT_TIMEOUT_S)

        with pytest.raises(TimeoutError):
            await manager.connect()

        assert instance.subscriptions("/users") == []

    async def test_connect_twice_is_rejected(
        self,
        instance: InMemoryInstance,
        manager: ChatManager,
        delegate: RecordingChatDelegate,
    ) -> None:
        await connect_while(manager, instance, delegate, "initial_state", INITIAL_STATE)

        with pytest.raises(RuntimeError):
            await manager.connect(delegate)


class TestDisconnect:
    async def test_disconnect_ends_every_subscription(
        self,
        instance: InMemoryInstance,
        manager: ChatManager,
        delegate: RecordingChatDelegate,
    ) -> None:
        outcome = await connect_while(
            manager, instance, delegate, "initial_state", INITIAL_STATE
        )
        room = outcome["user"].rooms[0]
        room_subscription = outcome["user"].subscribe_to_room(room)

        manager.disconnect()

        assert instance.subscriptions("/users") == []
        assert instance.subscriptions("/users/alice/presence") == []
        assert instance.subscriptions("/rooms/1") == []
        assert not room_subscription.active

    def test_disconnect_before_connect_is_a_noop(self, manager: ChatManager) -> None:
        manager.disconnect()
        assert manager.current_user is None
