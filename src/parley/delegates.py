"""Delegate base classes notified of chat state changes.

Subclass and override the methods you care about; every method defaults to
a no-op. Delegate methods are plain synchronous callbacks invoked after the
stores have been updated.
"""

from parley.models import Message, Room, User


class ChatManagerDelegate:
    """Notifications for the current user's session."""

    def added_to_room(self, room: Room) -> None:
        pass

    def removed_from_room(self, room: Room) -> None:
        pass

    def room_updated(self, room: Room) -> None:
        pass

    def room_deleted(self, room: Room) -> None:
        pass

    def user_joined_room(self, room: Room, user: User) -> None:
        pass

    def user_left_room(self, room: Room, user: User) -> None:
        pass

    def user_started_typing_in_room(self, room: Room, user: User) -> None:
        pass

    def user_stopped_typing_in_room(self, room: Room, user: User) -> None:
        pass

    def user_updated(self, user: User) -> None:
        pass

    def user_came_online(self, user: User) -> None:
        pass

    def user_went_offline(self, user: User) -> None:
        pass

    def error(self, error: Exception) -> None:
        pass


class RoomDelegate:
    """Notifications for one subscribed room.

    Typing notifications are not debounced; delegates that render typing
    indicators should apply their own timeout.
    """

    def new_message(self, message: Message) -> None:
        pass

    def user_joined(self, user: User) -> None:
        pass

    def user_left(self, user: User) -> None:
        pass

    def user_started_typing(self, user: User) -> None:
        pass

    def user_stopped_typing(self, user: User) -> None:
        pass

    def users_updated(self) -> None:
        pass

    def room_updated(self, room: Room) -> None:
        pass

    def room_deleted(self, room: Room) -> None:
        pass

    def error(self, error: Exception) -> None:
        pass
