"""Transport protocols and the HTTP implementation."""

import json
import logging
from collections.abc import Awaitable, Callable
from types import TracebackType
from typing import Any, Protocol, runtime_checkable

import anyio
import httpx
from anyio.abc import TaskGroup

from parley.config import InstanceConfig
from parley.errors import ChatError, RequestError

logger = logging.getLogger(__name__)

EventCallback = Callable[[str, Any], Awaitable[None]]
EndCallback = Callable[[Exception | None], None]


@runtime_checkable
class TokenProvider(Protocol):
    """Supplies access tokens for requests and subscriptions."""

    async def fetch_token(self) -> str: ...


@runtime_checkable
class SubscriptionHandle(Protocol):
    """Handle to an open realtime subscription."""

    def end(self) -> None: ...


@runtime_checkable
class Instance(Protocol):
    """Transport used by every parley component.

    request() returns the raw response body and raises RequestError on
    failure. subscribe() delivers events to on_event in the order they
    arrive, awaiting each callback before delivering the next event, and
    calls on_end once when the stream terminates.
    """

    async def request(self, method: str, path: str, body: Any = None) -> str: ...

    def subscribe(
        self,
        path: str,
        on_event: EventCallback,
        *,
        on_end: EndCallback | None = None,
        token_provider: TokenProvider | None = None,
    ) -> SubscriptionHandle: ...


class HTTPSubscription:
    """A realtime subscription streamed over a long-lived GET request."""

    def __init__(self, path: str) -> None:
        self.path = path
        self._cancel_scope = anyio.CancelScope()
        self._ended = False

    @property
    def ended(self) -> bool:
        return self._ended

    def end(self) -> None:
        self._ended = True
        self._cancel_scope.cancel()


class HTTPInstance:
    """Instance that talks to the chat backend over HTTP using httpx.

    Subscriptions are streaming GET requests whose body is newline-delimited
    JSON, one {"event_name": ..., "data": ...} object per line. Each
    subscription runs in the instance's task group, so the instance must be
    entered before subscribing. A subscription that fails ends on its own,
    passing the error to on_end, and leaves the others running.

    Example:
        config = InstanceConfig(base_url="https://chat.example.com", instance_id="abc")
        async with HTTPInstance(config, token_provider=provider) as instance:
            manager = ChatManager(instance)
            current_user = await manager.connect()
    """

    def __init__(
        self,
        config: InstanceConfig,
        token_provider: TokenProvider | None = None,
    ) -> None:
        self._config = config
        self._token_provider = token_provider
        self._client: httpx.AsyncClient | None = None
        self._task_group: TaskGroup | None = None
        self._closed = False

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._config.base_url.rstrip("/") + self._config.service_path,
                timeout=self._config.timeout_s,
                headers=self._config.headers,
            )
        return self._client

    async def _auth_headers(
        self, token_provider: TokenProvider | None
    ) -> dict[str, str]:
        provider = token_provider or self._token_provider
        if provider is None:
            return {}
        token = await provider.fetch_token()
        return {"Authorization": f"Bearer {token}"}

    async def request(self, method: str, path: str, body: Any = None) -> str:
        """Send a REST request and return the raw response body.

        Raises RequestError on network failures and non-2xx responses.
        """
        if self._closed:
            msg = "Instance is closed"
            raise RuntimeError(msg)

        client = await self._get_client()
        headers = await self._auth_headers(None)
        try:
            response = await client.request(method, path, json=body, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RequestError(
                method, path, e.response.status_code, e.response.text
            ) from e
        except httpx.HTTPError as e:
            raise RequestError(method, path, reason=str(e)) from e
        return response.text

    def subscribe(
        self,
        path: str,
        on_event: EventCallback,
        *,
        on_end: EndCallback | None = None,
        token_provider: TokenProvider | None = None,
    ) -> HTTPSubscription:
        """Open a realtime subscription.

        Returns immediately; events are delivered from a background task.
        """
        if self._closed:
            msg = "Instance is closed"
            raise RuntimeError(msg)
        if self._task_group is None:
            msg = "Instance must be entered before subscribing"
            raise RuntimeError(msg)

        subscription = HTTPSubscription(path)
        self._task_group.start_soon(
            self._run_subscription, subscription, on_event, on_end, token_provider
        )
        return subscription

    async def _run_subscription(
        self,
        subscription: HTTPSubscription,
        on_event: EventCallback,
        on_end: EndCallback | None,
        token_provider: TokenProvider | None,
    ) -> None:
        error: Exception | None = None
        with subscription._cancel_scope:
            try:
                await self._stream(subscription.path, on_event, token_provider)
            except ChatError as e:
                logger.debug("Subscription to %s failed: %s", subscription.path, e)
                error = e
            except Exception as e:
                logger.exception("Subscription to %s crashed", subscription.path)
                error = e
        subscription._ended = True
        if on_end is None:
            return
        try:
            on_end(error)
        except Exception:
            logger.exception("End callback for %s failed", subscription.path)

    async def _stream(
        self,
        path: str,
        on_event: EventCallback,
        token_provider: TokenProvider | None,
    ) -> None:
        client = await self._get_client()
        headers = await self._auth_headers(token_provider)
        try:
            async with client.stream(
                "GET", path, headers=headers, timeout=None
            ) as response:
                if response.is_error:
                    await response.aread()
                    raise RequestError(
                        "GET", path, response.status_code, response.text
                    )
                async for line in response.aiter_lines():
                    if not line.strip():
                        continue
                    event = _parse_event_line(path, line)
                    if event is not None:
                        await on_event(*event)
        except httpx.HTTPError as e:
            raise RequestError("GET", path, reason=str(e)) from e

    async def close(self) -> None:
        """Close all subscriptions and the HTTP client."""
        self._closed = True
        if self._task_group is not None:
            self._task_group.cancel_scope.cancel()
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "HTTPInstance":
        self._task_group = anyio.create_task_group()
        await self._task_group.__aenter__()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        task_group = self._task_group
        if task_group is not None:
            task_group.cancel_scope.cancel()
            await task_group.__aexit__(exc_type, exc_val, exc_tb)
            self._task_group = None
        await self.close()


def _parse_event_line(path: str, line: str) -> tuple[str, Any] | None:
    """Decode one event line; malformed lines are logged and skipped."""
    try:
        event = json.loads(line)
        return event["event_name"], event.get("data")
    except (json.JSONDecodeError, KeyError, TypeError, AttributeError):
        logger.debug("Ignoring malformed event on %s: %r", path, line)
        return None
