"""Configuration for parley transports and sessions."""

from dataclasses import dataclass, field

DEFAULT_SERVICE_NAME = "chatkit"
DEFAULT_SERVICE_VERSION = "v1"
DEFAULT_TIMEOUT_S = 30.0
DEFAULT_CONNECT_TIMEOUT_S = 10.0
DEFAULT_MESSAGE_LIMIT = 20
DEFAULT_FETCH_DIRECTION = "older"


@dataclass
class InstanceConfig:
    """Configuration for HTTPInstance.

    Attributes:
        base_url: Base URL of the chat backend (e.g., "https://us1.example.com")
        instance_id: Identifier of the chat instance on the backend
        service_name: Service segment of the URL path
        service_version: Version segment of the URL path
        timeout_s: Request timeout in seconds (not applied to subscriptions)
        headers: Default headers to include in all requests
    """

    base_url: str
    instance_id: str
    service_name: str = DEFAULT_SERVICE_NAME
    service_version: str = DEFAULT_SERVICE_VERSION
    timeout_s: float = DEFAULT_TIMEOUT_S
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def service_path(self) -> str:
        """Path prefix every request and subscription path is appended to."""
        return (
            f"/services/{self.service_name}/{self.service_version}/{self.instance_id}"
        )
