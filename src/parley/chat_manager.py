"""Entry point: connect a user session to the chat backend."""

import logging

import anyio

from parley.config import DEFAULT_CONNECT_TIMEOUT_S
from parley.current_user import CurrentUser
from parley.delegates import ChatManagerDelegate
from parley.errors import ChatError
from parley.global_user_store import GlobalUserStore
from parley.instance import Instance, TokenProvider
from parley.user_subscription import UserSubscription

logger = logging.getLogger(__name__)


class ChatManager:
    """Owns the session context shared by every component of one connection.

    Example:
        async with HTTPInstance(config, token_provider=provider) as instance:
            manager = ChatManager(instance)
            current_user = await manager.connect(MyDelegate())
            room = await current_user.create_room("general")
    """

    def __init__(
        self,
        instance: Instance,
        *,
        user_store: GlobalUserStore | None = None,
        token_provider: TokenProvider | None = None,
        connect_timeout_s: float = DEFAULT_CONNECT_TIMEOUT_S,
    ) -> None:
        self.instance = instance
        self.user_store = user_store or GlobalUserStore(instance)
        self._token_provider = token_provider
        self._connect_timeout_s = connect_timeout_s
        self.user_subscription: UserSubscription | None = None

    @property
    def current_user(self) -> CurrentUser | None:
        if self.user_subscription is None:
            return None
        return self.user_subscription.current_user

    async def connect(
        self, delegate: ChatManagerDelegate | None = None
    ) -> CurrentUser:
        """Subscribe to the user's stream and wait for its initial state.

        Also starts the presence subscription. Raises ChatError if the stream
        fails before the initial state arrives and TimeoutError if it takes
        longer than connect_timeout_s.
        """
        if self.user_subscription is not None and self.user_subscription.active:
            msg = "ChatManager is already connected"
            raise RuntimeError(msg)

        subscription = UserSubscription(self.instance, self.user_store, delegate)
        self.user_subscription = subscription
        handle = self.instance.subscribe(
            "/users",
            subscription.handle_event,
            on_end=subscription.transport_ended,
            token_provider=self._token_provider,
        )
        subscription.attach(handle)

        try:
            with anyio.fail_after(self._connect_timeout_s):
                await subscription.ready.wait()
        except TimeoutError:
            logger.debug("Timed out waiting for initial state")
            subscription.end()
            raise

        current_user = subscription.current_user
        if current_user is None:
            subscription.end()
            error = subscription.error or ChatError("Connection failed")
            logger.debug("Error connecting: %s", error)
            raise error

        current_user.setup_presence_subscription(delegate)
        logger.debug("Connected as %s", current_user.id)
        return current_user

    def disconnect(self) -> None:
        """End every subscription opened by this manager."""
        if self.user_subscription is None:
            return
        current_user = self.user_subscription.current_user
        if current_user is not None:
            current_user.end_subscriptions()
        self.user_subscription.end()
