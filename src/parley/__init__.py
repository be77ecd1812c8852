"""parley: client SDK for a hosted chat backend.

Keeps in-memory caches of rooms and users consistent with the backend's
realtime event streams, and wraps its REST API for room and message
management.
"""

from parley.chat_manager import ChatManager
from parley.config import InstanceConfig
from parley.current_user import CurrentUser
from parley.delegates import ChatManagerDelegate, RoomDelegate
from parley.enricher import MessageEnricher
from parley.errors import (
    ChatError,
    DeserializationError,
    EnrichmentError,
    RequestError,
)
from parley.global_user_store import GlobalUserStore
from parley.instance import HTTPInstance, Instance, SubscriptionHandle, TokenProvider
from parley.memory import InMemoryInstance
from parley.models import BasicMessage, Message, PresenceState, Room, User
from parley.presence_subscription import PresenceSubscription
from parley.room_store import RoomStore
from parley.room_subscription import RoomSubscription
from parley.subscription import EventSubscription, SubscriptionState
from parley.user_store import UserStore
from parley.user_subscription import UserSubscription

__version__ = "0.1.0"

__all__ = [
    # session
    "ChatManager",
    "CurrentUser",
    "InstanceConfig",
    # transport
    "HTTPInstance",
    "InMemoryInstance",
    "Instance",
    "SubscriptionHandle",
    "TokenProvider",
    # records
    "BasicMessage",
    "Message",
    "PresenceState",
    "Room",
    "User",
    # stores
    "GlobalUserStore",
    "RoomStore",
    "UserStore",
    "MessageEnricher",
    # subscriptions
    "ChatManagerDelegate",
    "EventSubscription",
    "PresenceSubscription",
    "RoomDelegate",
    "RoomSubscription",
    "SubscriptionState",
    "UserSubscription",
    # errors
    "ChatError",
    "DeserializationError",
    "EnrichmentError",
    "RequestError",
]
