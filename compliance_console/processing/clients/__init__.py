"""Processing-status client implementations."""

from compliance_console.processing.clients.base import (
    BaseStatusClient,
    StatusAPIError,
    StatusAuthenticationError,
    StatusClientError,
    StatusConnectionError,
    StatusNotFoundError,
    StatusParseError,
)
from compliance_console.processing.clients.http_client import HttpStatusClient
from compliance_console.processing.clients.mock_client import MockStatusClient
from compliance_console.processing.config import StatusClientConfig


def create_status_client(config: StatusClientConfig) -> BaseStatusClient:
    """Build the status client selected by configuration."""
    if config.client_type == "mock":
        return MockStatusClient()
    return HttpStatusClient(
        base_url=config.base_url,
        timeout=config.timeout,
        token=config.token,
        retry=config.retry,
    )


__all__ = [
    "BaseStatusClient",
    "HttpStatusClient",
    "MockStatusClient",
    "StatusAPIError",
    "StatusAuthenticationError",
    "StatusClientError",
    "StatusConnectionError",
    "StatusNotFoundError",
    "StatusParseError",
    "create_status_client",
]
