"""
User-facing notifications raised by the status monitor.

Notifications are fire-and-forget: sinks return nothing and the monitor
never waits on them.
"""

from collections import deque
from datetime import datetime, timezone
from typing import Deque, List, Literal, Optional, Protocol

import structlog
from pydantic import BaseModel, Field

from compliance_console.processing.models import StatusSnapshot

logger = structlog.get_logger()

Severity = Literal["default", "destructive"]

PROCESSING_FAILED_MESSAGE = "Transaction processing failed"
PROCESSING_TIMEOUT_MESSAGE = (
    "Transaction processing timeout - please check status manually"
)
QUERY_ERROR_MESSAGE = "Failed to fetch processing status"
INVALID_TARGET_MESSAGE = (
    "Invalid transaction ID. Please provide a valid transaction ID."
)


class Notification(BaseModel):
    """A short message surfaced to a human observer."""

    title: str
    description: str
    severity: Severity = "default"
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class NotificationSink(Protocol):
    """Receives notifications from the monitor."""

    def notify(self, notification: Notification) -> None:
        ...


class LoggingNotificationSink:
    """Sink that writes notifications to the structured log."""

    def notify(self, notification: Notification) -> None:
        log = logger.warning if notification.severity == "destructive" else logger.info
        log(
            "notification",
            title=notification.title,
            description=notification.description,
            severity=notification.severity,
        )


class NotificationFeed(LoggingNotificationSink):
    """Bounded in-memory feed of recent notifications, also written to the log."""

    def __init__(self, max_size: int = 100):
        self.max_size = max_size
        self._items: Deque[Notification] = deque(maxlen=max_size)

    def notify(self, notification: Notification) -> None:
        self._items.append(notification)
        super().notify(notification)

    def recent(self, limit: Optional[int] = None) -> List[Notification]:
        """Return notifications newest first."""
        items = list(reversed(self._items))
        if limit is not None:
            items = items[:max(limit, 0)]
        return items

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)


def rule_matches_detected(snapshot: StatusSnapshot) -> Notification:
    names = ", ".join(rule.rule_name for rule in snapshot.matched_rules)
    return Notification(
        title="Rule Matches Detected",
        description=f"{snapshot.matched_count} rule(s) matched: {names}",
        severity="destructive",
    )


def processing_complete() -> Notification:
    return Notification(
        title="Processing Complete",
        description="Transaction processing has completed successfully",
    )


def processing_failed() -> Notification:
    return Notification(
        title="Processing Failed",
        description="Transaction processing has failed",
        severity="destructive",
    )


def processing_timeout() -> Notification:
    return Notification(
        title="Processing Timeout",
        description="Transaction processing is taking longer than expected",
        severity="destructive",
    )


def query_error(message: str) -> Notification:
    return Notification(title="Error", description=message, severity="destructive")


def invalid_target() -> Notification:
    return Notification(
        title="Invalid Transaction ID",
        description=INVALID_TARGET_MESSAGE,
        severity="destructive",
    )
