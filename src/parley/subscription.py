"""Base class for realtime event processors."""

import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

from parley.errors import ChatError
from parley.instance import SubscriptionHandle

logger = logging.getLogger(__name__)

EventHandler = Callable[[Any], Awaitable[None]]


class SubscriptionState(str, Enum):
    ACTIVE = "active"
    ENDED = "ended"


class EventSubscription:
    """Dispatches named realtime events to handler coroutines.

    Subclasses register one handler per event name with on(). Events with no
    registered handler are ignored so that new server events don't break
    older clients. A failure while handling one event is logged and reported
    to the delegate's error() hook; the subscription stays active.

    The state only ever moves from ACTIVE to ENDED, either through end() or
    when the transport reports the stream closed.
    """

    def __init__(self, name: str, delegate: Any = None) -> None:
        self.name = name
        self.delegate = delegate
        self.state = SubscriptionState.ACTIVE
        self._handle: SubscriptionHandle | None = None
        self._handlers: dict[str, EventHandler] = {}

    @property
    def active(self) -> bool:
        return self.state is SubscriptionState.ACTIVE

    def on(self, event_name: str, handler: EventHandler) -> None:
        self._handlers[event_name] = handler

    def attach(self, handle: SubscriptionHandle) -> None:
        """Bind the transport handle that end() closes."""
        self._handle = handle
        if not self.active:
            handle.end()

    async def handle_event(self, event_name: str, data: Any) -> None:
        if not self.active:
            logger.debug("%s subscription ended, dropping %s", self.name, event_name)
            return

        handler = self._handlers.get(event_name)
        if handler is None:
            logger.debug("%s subscription ignoring event %s", self.name, event_name)
            return

        try:
            await handler(data)
        except ChatError as e:
            logger.warning(
                "%s subscription failed to handle %s: %s", self.name, event_name, e
            )
            self._report(e)
        except Exception as e:
            logger.exception(
                "%s subscription failed to handle %s", self.name, event_name
            )
            self._report(e)

    def transport_ended(self, error: Exception | None = None) -> None:
        """Called by the transport when the event stream terminates."""
        if error is not None:
            logger.debug("%s subscription ended with error: %s", self.name, error)
            self._report(error)
        self.state = SubscriptionState.ENDED

    def end(self) -> None:
        """Stop dispatching events and close the transport subscription."""
        if not self.active:
            return
        self.state = SubscriptionState.ENDED
        if self._handle is not None:
            self._handle.end()

    def _report(self, error: Exception) -> None:
        if self.delegate is None:
            return
        try:
            self.delegate.error(error)
        except Exception:
            logger.exception("%s delegate failed to handle an error", self.name)
