"""Monitoring session state owned by a single poller."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional

from compliance_console.processing.models import StatusSnapshot


class SessionState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    RETIRING = "retiring"


@dataclass
class PollSession:
    """
    One monitoring run for one transaction.

    ``target_id`` is fixed for the lifetime of the session.
    """

    session_id: str
    target_id: str
    poll_interval_ms: int
    max_attempts: int
    on_complete: Optional[Callable[..., Any]] = None
    on_error: Optional[Callable[[str], Any]] = None

    attempts: int = 0
    state: SessionState = SessionState.ACTIVE
    last_snapshot: Optional[StatusSnapshot] = None
    last_error: Optional[str] = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def active(self) -> bool:
        return self.state == SessionState.ACTIVE

    @property
    def budget_exhausted(self) -> bool:
        return self.attempts >= self.max_attempts

    def record_snapshot(self, snapshot: StatusSnapshot) -> None:
        self.attempts += 1
        self.last_snapshot = snapshot
        self.last_error = None

    def record_error(self, message: str) -> None:
        self.attempts += 1
        self.last_error = message
