"""Turn raw JSON payloads from the chat backend into domain records.

Every payload passes through a pydantic schema first. Shape errors (invalid
JSON, missing or mistyped fields) surface as DeserializationError instead of
leaking pydantic's ValidationError to callers.
"""

from typing import Any, TypeVar

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
)

from parley.errors import DeserializationError
from parley.models import BasicMessage, PresenceState, Room, User

T = TypeVar("T")


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class UserPayload(_Payload):
    id: str
    created_at: str
    updated_at: str
    name: str | None = None
    avatar_url: str | None = None
    custom_data: Any = None


class RoomPayload(_Payload):
    id: int
    name: str
    created_by_id: str
    created_at: str
    updated_at: str
    private: bool = False
    user_ids: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("user_ids", "member_user_ids"),
    )


class MessagePayload(_Payload):
    id: int
    user_id: str
    room_id: int
    text: str
    created_at: str
    updated_at: str


class PresencePayload(_Payload):
    user_id: str
    state: PresenceState
    last_seen_at: str | None = None


class InitialStatePayload(_Payload):
    current_user: UserPayload
    rooms: list[RoomPayload] = Field(default_factory=list)


class UserStatesPayload(_Payload):
    user_states: list[PresencePayload] = Field(default_factory=list)


class MessageIdPayload(_Payload):
    message_id: int


class UserIdPayload(_Payload):
    user_id: str


class RoomIdPayload(_Payload):
    room_id: int


class RoomUserPayload(_Payload):
    room_id: int
    user_id: str


class RoomEventPayload(_Payload):
    room: RoomPayload


class UserEventPayload(_Payload):
    user: UserPayload


_adapters: dict[Any, TypeAdapter[Any]] = {}


def _adapter(schema: Any) -> TypeAdapter[Any]:
    if schema not in _adapters:
        _adapters[schema] = TypeAdapter(schema)
    return _adapters[schema]


def validate(schema: type[T] | Any, data: Any, kind: str) -> T:
    """Validate raw JSON (str/bytes) or decoded data against a schema."""
    adapter = _adapter(schema)
    try:
        if isinstance(data, (str, bytes, bytearray)):
            return adapter.validate_json(data)
        return adapter.validate_python(data)
    except ValidationError as e:
        raise DeserializationError(kind, str(e)) from e


def user_from_payload(payload: UserPayload) -> User:
    return User(
        id=payload.id,
        created_at=payload.created_at,
        updated_at=payload.updated_at,
        name=payload.name,
        avatar_url=payload.avatar_url,
        custom_data=payload.custom_data,
    )


def room_from_payload(payload: RoomPayload) -> Room:
    return Room(
        id=payload.id,
        name=payload.name,
        created_by_id=payload.created_by_id,
        created_at=payload.created_at,
        updated_at=payload.updated_at,
        is_private=payload.private,
        user_ids=set(payload.user_ids),
    )


def basic_message_from_payload(payload: MessagePayload) -> BasicMessage:
    return BasicMessage(
        id=payload.id,
        sender_id=payload.user_id,
        room_id=payload.room_id,
        text=payload.text,
        created_at=payload.created_at,
        updated_at=payload.updated_at,
    )


def parse_user(data: Any) -> User:
    return user_from_payload(validate(UserPayload, data, "user"))


def parse_room(data: Any) -> Room:
    return room_from_payload(validate(RoomPayload, data, "room"))


def parse_rooms(data: Any) -> list[Room]:
    return [room_from_payload(p) for p in validate(list[RoomPayload], data, "rooms")]


def parse_basic_message(data: Any) -> BasicMessage:
    return basic_message_from_payload(validate(MessagePayload, data, "message"))


def parse_basic_messages(data: Any) -> list[BasicMessage]:
    payloads = validate(list[MessagePayload], data, "messages")
    return [basic_message_from_payload(p) for p in payloads]


def parse_message_id(data: Any) -> int:
    return validate(MessageIdPayload, data, "message id").message_id


def parse_initial_state(data: Any) -> tuple[User, list[Room]]:
    payload = validate(InitialStatePayload, data, "initial state")
    user = user_from_payload(payload.current_user)
    return user, [room_from_payload(p) for p in payload.rooms]


def parse_presence(data: Any) -> PresencePayload:
    return validate(PresencePayload, data, "presence")


def parse_user_states(data: Any) -> list[PresencePayload]:
    return validate(UserStatesPayload, data, "user states").user_states


def parse_user_id(data: Any) -> str:
    return validate(UserIdPayload, data, "user id").user_id


def parse_room_id(data: Any) -> int:
    return validate(RoomIdPayload, data, "room id").room_id


def parse_room_user(data: Any) -> tuple[int, str]:
    payload = validate(RoomUserPayload, data, "room membership")
    return payload.room_id, payload.user_id


def parse_room_event(data: Any) -> Room:
    return room_from_payload(validate(RoomEventPayload, data, "room event").room)


def parse_user_event(data: Any) -> User:
    return user_from_payload(validate(UserEventPayload, data, "user event").user)
