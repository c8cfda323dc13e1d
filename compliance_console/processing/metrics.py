"""
Status monitor metrics.

Tracks monitoring sessions, their outcomes, query latency and skipped
ticks, and provides aggregate views for the HTTP API and CLI.
"""

from typing import Dict, Any, Optional, List
from datetime import datetime, timedelta, timezone
from dataclasses import dataclass, field, asdict
from enum import Enum


class SessionOutcome(str, Enum):
    """How a monitoring session ended."""

    COMPLETED = "completed"
    FAILED = "failed"  # Remote reported processing failure
    TIMEOUT = "timeout"  # Attempt budget exhausted
    ERROR = "error"  # Status query raised
    CANCELLED = "cancelled"  # Stopped by the host


@dataclass
class SessionRunMetrics:
    """Metrics for a single monitoring session."""

    session_id: str
    target_id: str
    started_at: datetime
    ended_at: Optional[datetime] = None
    outcome: Optional[SessionOutcome] = None

    attempts: int = 0
    queries_failed: int = 0
    ticks_skipped: int = 0
    match_alerts: int = 0

    duration_seconds: float = 0.0
    query_latency_seconds: float = 0.0

    last_error: Optional[str] = None
    source: str = "unknown"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for display."""
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat()
        data["ended_at"] = self.ended_at.isoformat() if self.ended_at else None
        data["outcome"] = self.outcome.value if self.outcome else None
        return data


@dataclass
class AggregateMetrics:
    """Aggregated metrics across monitoring sessions."""

    total_sessions: int = 0
    completed_sessions: int = 0
    failed_sessions: int = 0
    timeout_sessions: int = 0
    error_sessions: int = 0
    cancelled_sessions: int = 0

    total_queries: int = 0
    total_skipped_ticks: int = 0
    total_match_alerts: int = 0

    avg_duration_seconds: float = 0.0
    avg_attempts: float = 0.0
    avg_query_latency_seconds: float = 0.0

    first_session: Optional[datetime] = None
    last_session: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        data = asdict(self)
        for key in ["first_session", "last_session"]:
            if data[key]:
                data[key] = data[key].isoformat()
        return data


class MonitorMetrics:
    """
    In-memory metrics tracker for the status monitor.

    Tracks the live session and keeps a bounded history of finished ones.
    """

    def __init__(self, history_size: int = 100):
        self.history_size = history_size
        self._current: Optional[SessionRunMetrics] = None
        self._history: List[SessionRunMetrics] = []
        self._session_counter = 0

    def start_session(self, target_id: str, source: str) -> str:
        """
        Start tracking a new monitoring session.

        Returns:
            Session ID
        """
        self._session_counter += 1
        session_id = (
            f"monitor-{datetime.now(timezone.utc).strftime('%Y%m%d-%H%M%S')}"
            f"-{self._session_counter}"
        )

        self._current = SessionRunMetrics(
            session_id=session_id,
            target_id=target_id,
            started_at=datetime.now(timezone.utc),
            source=source,
        )
        return session_id

    def end_session(
        self,
        outcome: SessionOutcome,
        attempts: int,
        error: Optional[str] = None,
    ):
        """End the current session and move it to history."""
        if not self._current:
            return

        self._current.ended_at = datetime.now(timezone.utc)
        self._current.outcome = outcome
        self._current.attempts = attempts
        self._current.last_error = error
        self._current.duration_seconds = (
            self._current.ended_at - self._current.started_at
        ).total_seconds()

        self._history.append(self._current)
        if len(self._history) > self.history_size:
            self._history = self._history[-self.history_size :]

        self._current = None

    def record_query(self, latency_seconds: float, failed: bool = False):
        """Record a completed status query."""
        if self._current:
            self._current.attempts += 1
            self._current.query_latency_seconds += latency_seconds
            if failed:
                self._current.queries_failed += 1

    def record_skipped_tick(self):
        if self._current:
            self._current.ticks_skipped += 1

    def record_match_alert(self):
        if self._current:
            self._current.match_alerts += 1

    def get_current_session(self) -> Optional[SessionRunMetrics]:
        return self._current

    def get_last_session(self) -> Optional[SessionRunMetrics]:
        return self._history[-1] if self._history else None

    def get_history(self, limit: Optional[int] = None) -> List[SessionRunMetrics]:
        """Recent sessions, newest first."""
        history = list(reversed(self._history))
        if limit:
            history = history[:limit]
        return history

    def get_aggregate_metrics(self, hours: Optional[int] = None) -> AggregateMetrics:
        """
        Get aggregated metrics across finished sessions.

        Args:
            hours: Only include sessions from the last N hours (None = all history)
        """
        sessions = self._history

        if hours:
            cutoff = datetime.now(timezone.utc) - timedelta(hours=hours)
            sessions = [s for s in sessions if s.started_at >= cutoff]

        if not sessions:
            return AggregateMetrics()

        metrics = AggregateMetrics()
        metrics.total_sessions = len(sessions)

        counters = {
            SessionOutcome.COMPLETED: "completed_sessions",
            SessionOutcome.FAILED: "failed_sessions",
            SessionOutcome.TIMEOUT: "timeout_sessions",
            SessionOutcome.ERROR: "error_sessions",
            SessionOutcome.CANCELLED: "cancelled_sessions",
        }
        for session in sessions:
            if session.outcome in counters:
                name = counters[session.outcome]
                setattr(metrics, name, getattr(metrics, name) + 1)

        metrics.total_queries = sum(s.attempts for s in sessions)
        metrics.total_skipped_ticks = sum(s.ticks_skipped for s in sessions)
        metrics.total_match_alerts = sum(s.match_alerts for s in sessions)

        metrics.avg_duration_seconds = (
            sum(s.duration_seconds for s in sessions) / metrics.total_sessions
        )
        metrics.avg_attempts = metrics.total_queries / metrics.total_sessions
        if metrics.total_queries:
            metrics.avg_query_latency_seconds = (
                sum(s.query_latency_seconds for s in sessions) / metrics.total_queries
            )

        metrics.first_session = sessions[0].started_at
        metrics.last_session = sessions[-1].started_at
        return metrics

    def get_completion_rate(self, hours: Optional[int] = None) -> float:
        """Share of finished sessions that reached Completed (0.0 to 1.0)."""
        agg = self.get_aggregate_metrics(hours)
        if agg.total_sessions == 0:
            return 0.0
        return agg.completed_sessions / agg.total_sessions

    def clear_history(self):
        self._history.clear()
        self._current = None
