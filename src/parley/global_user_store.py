"""Cross-room user cache backed by the chat backend."""

import logging
from collections.abc import Iterable

import anyio

from parley.deserializer import parse_user
from parley.instance import Instance
from parley.models import User
from parley.user_store import UserStore
from parley.utils import path_id, settle_all

logger = logging.getLogger(__name__)


class GlobalUserStore(UserStore):
    """User store that fetches missing users from the backend.

    Concurrent fetches of the same id share a single request, and every
    fetched record is merged into the existing instance if there is one.
    """

    def __init__(self, instance: Instance) -> None:
        super().__init__()
        self._instance = instance
        self._in_flight: dict[str, anyio.Event] = {}

    def merge(self, user: User) -> User:
        """Idempotent upsert; returns the stored instance."""
        return self.add_or_merge(user)

    async def fetch(self, user_id: str) -> User:
        """Return the cached user, fetching it first if needed.

        Raises RequestError or DeserializationError if the fetch fails.
        """
        while True:
            user = self.get_cached(user_id)
            if user is not None:
                return user
            pending = self._in_flight.get(user_id)
            if pending is None:
                break
            # If that fetch failed the loop falls through and retries
            await pending.wait()

        done = anyio.Event()
        self._in_flight[user_id] = done
        try:
            raw = await self._instance.request("GET", f"/users/{path_id(user_id)}")
            return self.merge(parse_user(raw))
        except Exception as e:
            logger.debug("Error fetching user %s: %s", user_id, e)
            raise
        finally:
            del self._in_flight[user_id]
            done.set()

    async def fetch_many(self, user_ids: Iterable[str]) -> dict[str, User]:
        """Fetch several users concurrently.

        Waits for every fetch to finish. Users that could not be fetched are
        left out of the result rather than failing the batch.
        """
        ids = list(dict.fromkeys(user_ids))
        users: dict[str, User] = {}
        missing: list[str] = []
        for user_id in ids:
            user = self.get_cached(user_id)
            if user is None:
                missing.append(user_id)
            else:
                users[user_id] = user

        results = await settle_all(
            (lambda uid=uid: self.fetch(uid)) for uid in missing
        )
        for user_id, result in zip(missing, results, strict=True):
            if result.ok and result.value is not None:
                users[user_id] = result.value
            else:
                logger.debug("Dropping user %s from batch: %s", user_id, result.error)

        return {user_id: users[user_id] for user_id in ids if user_id in users}
