"""Keyed cache of User records."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from parley.models import User


class UserStore:
    """In-memory store of users keyed by id.

    Holds at most one instance per id. Adding a user whose id is already
    present updates the stored instance in place, so references held
    elsewhere (room member lists, messages) observe the change.
    """

    def __init__(self) -> None:
        self._users: dict[str, User] = {}

    def get_cached(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    def add_or_merge(self, user: User) -> User:
        existing = self._users.get(user.id)
        if existing is None:
            self._users[user.id] = user
            return user
        if existing is not user:
            existing.update_with(user)
        return existing

    def remove(self, user_id: str) -> User | None:
        return self._users.pop(user_id, None)

    @property
    def users(self) -> list[User]:
        return list(self._users.values())

    def __len__(self) -> int:
        return len(self._users)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._users
