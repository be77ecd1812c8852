"""Resolve message senders into full User records."""

import logging
from collections.abc import Iterable

from parley.errors import ChatError, EnrichmentError
from parley.global_user_store import GlobalUserStore
from parley.models import BasicMessage, Message, Room
from parley.utils import settle_all

logger = logging.getLogger(__name__)


class MessageEnricher:
    """Joins basic messages of one room with their senders.

    Senders are looked up in the room's user store first and fetched through
    the global store otherwise. Resolved senders are added to the room's
    store.
    """

    def __init__(self, user_store: GlobalUserStore, room: Room) -> None:
        self._user_store = user_store
        self._room = room

    async def enrich(self, basic: BasicMessage) -> Message:
        """Resolve the sender of one message.

        Raises EnrichmentError if the sender cannot be fetched.
        """
        sender = self._room.user_store.get_cached(basic.sender_id)
        if sender is None:
            try:
                sender = await self._user_store.fetch(basic.sender_id)
            except ChatError as e:
                raise EnrichmentError(basic.id, e) from e
            sender = self._room.user_store.add_or_merge(sender)
        return Message.from_basic(basic, sender, self._room)

    async def enrich_many(self, basics: Iterable[BasicMessage]) -> list[Message]:
        """Enrich a batch, dropping messages whose sender can't be resolved.

        Returns the enriched messages sorted by id.
        """
        results = await settle_all(
            (lambda basic=basic: self.enrich(basic)) for basic in basics
        )
        messages: list[Message] = []
        for result in results:
            if result.ok and result.value is not None:
                messages.append(result.value)
            else:
                logger.debug("Unable to enrich message: %s", result.error)
        return sorted(messages, key=lambda m: m.id)
