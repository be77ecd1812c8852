"""Tests for payload deserialization."""

import json

import pytest
from payloads import message_payload, room_payload, user_payload

from parley import DeserializationError, PresenceState
from parley.deserializer import (
    parse_basic_message,
    parse_basic_messages,
    parse_initial_state,
    parse_message_id,
    parse_presence,
    parse_room,
    parse_rooms,
    parse_user,
)

MESSAGE_ID = 42


class TestUsers:
    def test_parse_user_from_raw_json(self) -> None:
        raw = json.dumps(user_payload("alice", avatar_url="https://a/b.png"))

        user = parse_user(raw)

        assert user.id == "alice"
        assert user.name == "Alice"
        assert user.avatar_url == "https://a/b.png"
        assert user.presence is PresenceState.UNKNOWN

    def test_unknown_fields_are_ignored(self) -> None:
        user = parse_user(user_payload("bob", favourite_colour="green"))
        assert user.id == "bob"

    def test_custom_data_kept_as_is(self) -> None:
        user = parse_user(user_payload("bob", custom_data={"team": "red"}))
        assert user.custom_data == {"team": "red"}

    def test_missing_field_raises(self) -> None:
        payload = user_payload("alice")
        del payload["created_at"]

        with pytest.raises(DeserializationError, match="user") as exc_info:
            parse_user(payload)

        assert exc_info.value.kind == "user"

    def test_invalid_json_raises(self) -> None:
        with pytest.raises(DeserializationError):
            parse_user("{not json")


class TestRooms:
    def test_parse_room(self) -> None:
        room = parse_room(room_payload(7, "random", ("alice", "bob"), private=True))

        assert room.id == 7
        assert room.name == "random"
        assert room.is_private
        assert room.user_ids == {"alice", "bob"}
        assert len(room.user_store) == 0
        assert room.subscription is None

    def test_member_user_ids_alias(self) -> None:
        payload = room_payload(1)
        del payload["user_ids"]
        payload["member_user_ids"] = ["carol"]

        assert parse_room(payload).user_ids == {"carol"}

    def test_parse_rooms_list(self) -> None:
        rooms = parse_rooms(json.dumps([room_payload(1), room_payload(2)]))
        assert [r.id for r in rooms] == [1, 2]

    def test_rooms_not_a_list_raises(self) -> None:
        with pytest.raises(DeserializationError):
            parse_rooms(room_payload(1))


class TestMessages:
    def test_sender_id_comes_from_user_id(self) -> None:
        message = parse_basic_message(message_payload(10, "alice", room_id=3))

        assert message.id == 10
        assert message.sender_id == "alice"
        assert message.room_id == 3
        assert message.text == "hello"

    def test_parse_messages_list(self) -> None:
        raw = json.dumps([message_payload(2, "a"), message_payload(1, "b")])
        assert [m.id for m in parse_basic_messages(raw)] == [2, 1]

    def test_message_id(self) -> None:
        assert parse_message_id({"message_id": MESSAGE_ID}) == MESSAGE_ID

    def test_missing_message_id_raises(self) -> None:
        with pytest.raises(DeserializationError):
            parse_message_id("{}")


class TestEvents:
    def test_initial_state(self) -> None:
        user, rooms = parse_initial_state(
            {"current_user": user_payload("alice"), "rooms": [room_payload(1)]}
        )

        assert user.id == "alice"
        assert [r.id for r in rooms] == [1]

    def test_presence(self) -> None:
        presence = parse_presence({"user_id": "bob", "state": "online"})

        assert presence.user_id == "bob"
        assert presence.state is PresenceState.ONLINE
        assert presence.last_seen_at is None

    def test_presence_unknown_state_raises(self) -> None:
        with pytest.raises(DeserializationError):
            parse_presence({"user_id": "bob", "state": "napping"})
