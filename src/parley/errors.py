"""Exceptions raised by parley."""


class ChatError(Exception):
    """Base class for all parley errors."""


class RequestError(ChatError):
    """A REST request or subscription failed at the transport level.

    The underlying transport exception, if any, is chained as ``__cause__``.
    """

    def __init__(
        self,
        method: str,
        path: str,
        status_code: int | None = None,
        reason: str = "",
    ) -> None:
        self.method = method
        self.path = path
        self.status_code = status_code
        detail = f" ({status_code})" if status_code is not None else ""
        suffix = f": {reason}" if reason else ""
        super().__init__(f"{method} {path} failed{detail}{suffix}")


class DeserializationError(ChatError):
    """A payload did not match the expected shape."""

    def __init__(self, kind: str, reason: str) -> None:
        self.kind = kind
        super().__init__(f"Invalid {kind} payload: {reason}")


class EnrichmentError(ChatError):
    """The sender of a message could not be resolved."""

    def __init__(self, message_id: int, cause: Exception) -> None:
        self.message_id = message_id
        self.cause = cause
        super().__init__(f"Unable to enrich message {message_id}: {cause}")
