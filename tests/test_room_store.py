"""Tests for RoomStore."""

from payloads import room_payload, user_payload

from parley import RoomStore
from parley.deserializer import parse_room, parse_user


class TestRoomStore:
    def test_add_or_merge_keeps_one_instance(self) -> None:
        store = RoomStore()

        first = store.add_or_merge(parse_room(room_payload(1, "general", ("a",))))
        second = store.add_or_merge(
            parse_room(room_payload(1, "lobby", ("a", "b"), private=True))
        )

        assert second is first
        assert len(store) == 1
        assert first.name == "lobby"
        assert first.is_private
        assert first.user_ids == {"a", "b"}

    def test_merge_keeps_cached_members(self) -> None:
        store = RoomStore()
        room = store.add_or_merge(parse_room(room_payload(1, user_ids=("a",))))
        member = room.user_store.add_or_merge(parse_user(user_payload("a")))

        store.add_or_merge(parse_room(room_payload(1, "renamed", ("a",))))

        assert room.user_store.get_cached("a") is member

    def test_rooms_in_insertion_order(self) -> None:
        store = RoomStore(parse_room(room_payload(i)) for i in (3, 1, 2))
        assert [room.id for room in store.rooms] == [3, 1, 2]

    def test_rooms_is_a_snapshot(self) -> None:
        store = RoomStore()
        store.add_or_merge(parse_room(room_payload(1)))

        rooms = store.rooms
        store.add_or_merge(parse_room(room_payload(2)))

        assert len(rooms) == 1

    def test_remove(self) -> None:
        store = RoomStore()
        room = store.add_or_merge(parse_room(room_payload(1)))

        assert store.remove(1) is room
        assert 1 not in store
        assert store.remove(1) is None
        assert store.get(1) is None
