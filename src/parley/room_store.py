"""Keyed cache of the rooms the current user belongs to."""

from collections.abc import Iterable

from parley.models import Room


class RoomStore:
    """In-memory store of rooms keyed by id.

    add_or_merge never replaces a stored room: a room with a known id is
    merged into the existing instance, which is returned.
    """

    def __init__(self, rooms: Iterable[Room] = ()) -> None:
        self._rooms: dict[int, Room] = {}
        for room in rooms:
            self.add_or_merge(room)

    def add_or_merge(self, room: Room) -> Room:
        existing = self._rooms.get(room.id)
        if existing is None:
            self._rooms[room.id] = room
            return room
        if existing is not room:
            existing.update_with(room)
        return existing

    def get(self, room_id: int) -> Room | None:
        return self._rooms.get(room_id)

    def remove(self, room_id: int) -> Room | None:
        return self._rooms.pop(room_id, None)

    @property
    def rooms(self) -> list[Room]:
        return list(self._rooms.values())

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, room_id: object) -> bool:
        return room_id in self._rooms
