"""In-memory Instance for tests and offline demos."""

import inspect
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from parley.errors import RequestError
from parley.instance import EndCallback, EventCallback, TokenProvider

logger = logging.getLogger(__name__)

NOT_FOUND = 404

RouteResponse = Any | Exception | Callable[[Any], Any]


@dataclass
class RecordedRequest:
    """A request received by InMemoryInstance."""

    method: str
    path: str
    body: Any


class InMemorySubscription:
    """Subscription handle returned by InMemoryInstance.subscribe."""

    def __init__(
        self,
        path: str,
        on_event: EventCallback,
        on_end: EndCallback | None,
    ) -> None:
        self.path = path
        self._on_event = on_event
        self._on_end = on_end
        self._ended = False

    @property
    def ended(self) -> bool:
        return self._ended

    def end(self) -> None:
        self._ended = True

    async def deliver(self, event_name: str, data: Any) -> None:
        if not self._ended:
            await self._on_event(event_name, data)

    def finish(self, error: Exception | None) -> None:
        if self._ended:
            return
        self._ended = True
        if self._on_end is not None:
            self._on_end(error)


def _route_key(path: str) -> str:
    return path.partition("?")[0]


class InMemoryInstance:
    """Scriptable Instance that never touches the network.

    Responses are registered per (method, path). A route registered with a
    query string only matches that exact path; a route without one matches
    any query. Realtime events are pushed with emit(), which awaits every
    matching subscriber in order.

    Example:
        instance = InMemoryInstance()
        instance.route("GET", "/users/alice", {"id": "alice", ...})
        instance.route("POST", "/rooms", lambda body: {"id": 1, **body, ...})
        user = await GlobalUserStore(instance).fetch("alice")
    """

    def __init__(self) -> None:
        self._routes: dict[tuple[str, str], RouteResponse] = {}
        self._subscriptions: list[InMemorySubscription] = []
        self.requests: list[RecordedRequest] = []

    def route(self, method: str, path: str, response: RouteResponse) -> None:
        """Register the response for a request.

        response may be a JSON-serializable value, a raw string body, an
        exception to raise, or a callable receiving the request body and
        returning any of those.
        """
        self._routes[(method.upper(), path)] = response

    async def request(self, method: str, path: str, body: Any = None) -> str:
        method = method.upper()
        self.requests.append(RecordedRequest(method, path, body))

        response = self._routes.get((method, path))
        if response is None:
            response = self._routes.get((method, _route_key(path)))
        if response is None:
            raise RequestError(method, path, NOT_FOUND, "no route")

        if callable(response) and not isinstance(response, Exception):
            response = response(body)
            if inspect.isawaitable(response):
                response = await response
        if isinstance(response, Exception):
            raise response
        if isinstance(response, str):
            return response
        return json.dumps(response)

    def subscribe(
        self,
        path: str,
        on_event: EventCallback,
        *,
        on_end: EndCallback | None = None,
        token_provider: TokenProvider | None = None,
    ) -> InMemorySubscription:
        subscription = InMemorySubscription(path, on_event, on_end)
        self._prune()
        self._subscriptions.append(subscription)
        return subscription

    def subscriptions(self, path: str) -> list[InMemorySubscription]:
        """Active subscriptions to path (query string ignored).

        Ended subscriptions are dropped as a side effect.
        """
        self._prune()
        key = _route_key(path)
        return [s for s in self._subscriptions if _route_key(s.path) == key]

    def _prune(self) -> None:
        self._subscriptions = [s for s in self._subscriptions if not s.ended]

    async def emit(self, path: str, event_name: str, data: Any = None) -> None:
        """Deliver an event to every active subscription on path."""
        targets = self.subscriptions(path)
        if not targets:
            logger.debug("No subscribers for %s on %s", event_name, path)
        for subscription in targets:
            await subscription.deliver(event_name, data)

    def finish(self, path: str, error: Exception | None = None) -> None:
        """Terminate every subscription on path as the server would."""
        for subscription in self.subscriptions(path):
            subscription.finish(error)
