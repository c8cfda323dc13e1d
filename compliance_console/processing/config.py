"""
Processing-status monitor configuration.

Defines settings for polling cadence, attempt budgets, status client
transport and per-session monitoring options.
"""

from typing import Any, Callable, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

from compliance_console.core.config import Settings, get_settings


class RetryConfig(BaseModel):
    """Configuration for transport-level retry with exponential backoff."""

    max_attempts: int = Field(
        default=1, ge=1, description="Attempts per request (1 disables retry)"
    )
    initial_delay: float = Field(
        default=0.5, gt=0, description="Initial delay in seconds"
    )
    max_delay: float = Field(default=5.0, gt=0, description="Maximum delay in seconds")
    exponential_base: float = Field(default=2.0, gt=1, description="Backoff multiplier")
    jitter: bool = Field(
        default=True, description="Add random jitter to prevent thundering herd"
    )


class StatusClientConfig(BaseModel):
    """Configuration for the status query client."""

    client_type: Literal["http", "mock"] = Field(
        default="http", description="Type of status client (http, mock)"
    )
    base_url: str = Field(
        default="http://localhost:8080/api", description="Base URL of the REST API"
    )
    timeout: float = Field(
        default=10.0, gt=0, description="Request timeout in seconds"
    )
    token: Optional[str] = Field(
        default=None, description="Bearer token for the REST API"
    )
    retry: RetryConfig = Field(default_factory=RetryConfig)


class MonitorConfig(BaseModel):
    """Poller-wide defaults applied when a session does not override them."""

    poll_interval_ms: int = Field(
        default=2000, gt=0, description="Milliseconds between status queries"
    )
    max_attempts: int = Field(
        default=150, ge=1, description="Queries allowed before a session times out"
    )
    status_client: StatusClientConfig = Field(default_factory=StatusClientConfig)

    def get_poll_interval_seconds(self) -> float:
        """Get poll interval in seconds."""
        return self.poll_interval_ms / 1000


class MonitorOptions(BaseModel):
    """Per-session options passed to ``start_monitoring``.

    Unset numeric fields fall back to the poller's ``MonitorConfig``.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    poll_interval_ms: Optional[int] = Field(default=None, gt=0)
    max_attempts: Optional[int] = Field(default=None, ge=1)
    on_complete: Optional[Callable[..., Any]] = None
    on_error: Optional[Callable[[str], Any]] = None


def build_monitor_config(settings: Settings) -> MonitorConfig:
    """Build monitor configuration from application settings."""
    return MonitorConfig(
        poll_interval_ms=settings.MONITOR_POLL_INTERVAL_MS,
        max_attempts=settings.MONITOR_MAX_ATTEMPTS,
        status_client=StatusClientConfig(
            client_type=settings.STATUS_CLIENT_TYPE,
            base_url=settings.STATUS_API_BASE_URL,
            timeout=settings.STATUS_API_TIMEOUT,
            token=settings.STATUS_API_TOKEN,
            retry=RetryConfig(max_attempts=settings.STATUS_API_RETRY_ATTEMPTS),
        ),
    )


def get_monitor_config() -> MonitorConfig:
    """Get monitor configuration from the cached application settings."""
    return build_monitor_config(get_settings())
