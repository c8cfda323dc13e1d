"""
Transaction processing-status poller.

Watches one transaction's rule-evaluation run on a fixed cadence until
it completes, fails, runs out of attempts, or is stopped, and raises
notifications for rule matches and terminal outcomes.
"""

import asyncio
import time
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union
import structlog

from compliance_console.core.config import get_settings
from compliance_console.processing.clients import BaseStatusClient, create_status_client
from compliance_console.processing.config import (
    MonitorConfig,
    MonitorOptions,
    get_monitor_config,
)
from compliance_console.processing.metrics import MonitorMetrics, SessionOutcome
from compliance_console.processing.models import ProcessingState, StatusSnapshot
from compliance_console.processing.notifications import (
    PROCESSING_FAILED_MESSAGE,
    PROCESSING_TIMEOUT_MESSAGE,
    QUERY_ERROR_MESSAGE,
    LoggingNotificationSink,
    Notification,
    NotificationFeed,
    NotificationSink,
    invalid_target,
    processing_complete,
    processing_failed,
    processing_timeout,
    query_error,
    rule_matches_detected,
)
from compliance_console.processing.session import PollSession, SessionState
from compliance_console.processing.timer import (
    AsyncioRepeatingTimer,
    RepeatingTimer,
    TimerHandle,
)

logger = structlog.get_logger()

TargetId = Union[str, int]


class StartResult(str, Enum):
    """Result of a ``start_monitoring`` call."""

    STARTED = "started"
    ALREADY_ACTIVE = "already_active"
    INVALID_TARGET = "invalid_target"


def normalize_target_id(target_id: Optional[TargetId]) -> Optional[str]:
    """Return the trimmed identifier, or None if it is missing or blank."""
    if target_id is None:
        return None
    value = str(target_id).strip()
    return value or None


class ProcessingStatusPoller:
    """
    Status monitor for a single transaction at a time.

    Owns at most one ``PollSession``. The first query of a session runs
    immediately; later queries are driven by a repeating timer. A timer
    firing while the previous query is still outstanding is skipped.
    """

    def __init__(
        self,
        client: Optional[BaseStatusClient] = None,
        config: Optional[MonitorConfig] = None,
        notifier: Optional[NotificationSink] = None,
        timer: Optional[RepeatingTimer] = None,
        default_target_id: Optional[TargetId] = None,
    ):
        """
        Initialize the poller.

        Args:
            client: Status query client (defaults to one built from config)
            config: Monitor configuration (defaults to loaded config)
            notifier: Notification sink (defaults to the structured log)
            timer: Repeating timer facility (defaults to the asyncio loop)
            default_target_id: Transaction watched when start is called without one
        """
        self.config = config or get_monitor_config()
        self._owns_client = client is None
        self.client = client or create_status_client(self.config.status_client)
        self.notifier = notifier or LoggingNotificationSink()
        self.timer = timer or AsyncioRepeatingTimer()
        self.metrics = MonitorMetrics()
        self.default_target_id = default_target_id

        self._session: Optional[PollSession] = None
        self._timer_handle: Optional[TimerHandle] = None
        self._in_flight: Optional[asyncio.Task] = None

        # Kept after retirement so hosts can keep showing the outcome.
        self.last_target_id: Optional[str] = None
        self.last_snapshot: Optional[StatusSnapshot] = None
        self.last_error: Optional[str] = None
        self.last_outcome: Optional[SessionOutcome] = None

        logger.info(
            "monitor.initialized",
            client_type=self.client.get_source_name(),
            poll_interval_ms=self.config.poll_interval_ms,
            max_attempts=self.config.max_attempts,
        )

    @property
    def state(self) -> SessionState:
        if self._session is None:
            return SessionState.IDLE
        return self._session.state

    @property
    def is_polling(self) -> bool:
        return self._session is not None and self._session.active

    @property
    def session(self) -> Optional[PollSession]:
        return self._session

    async def start_monitoring(
        self,
        target_id: Optional[TargetId] = None,
        options: Optional[MonitorOptions] = None,
    ) -> StartResult:
        """
        Start monitoring a transaction.

        The first status query is issued before this returns. Calling this
        while a session is active does nothing.

        Args:
            target_id: Transaction to watch (defaults to ``default_target_id``)
            options: Per-session cadence, budget and callbacks

        Returns:
            Whether a session was started, was already running, or the
            identifier was rejected
        """
        if self.is_polling:
            logger.debug(
                "monitor.already_running",
                target_id=self._session.target_id if self._session else None,
            )
            return StartResult.ALREADY_ACTIVE

        # An empty id means "use the default"; whitespace-only ids are rejected.
        requested = (
            target_id if target_id not in (None, "") else self.default_target_id
        )
        resolved = normalize_target_id(requested)
        if resolved is None:
            logger.warning(
                "monitor.invalid_target",
                target_id=target_id,
                default_target_id=self.default_target_id,
            )
            self._notify(invalid_target())
            return StartResult.INVALID_TARGET

        options = options or MonitorOptions()
        session = PollSession(
            session_id=self.metrics.start_session(
                resolved, self.client.get_source_name()
            ),
            target_id=resolved,
            poll_interval_ms=options.poll_interval_ms or self.config.poll_interval_ms,
            max_attempts=options.max_attempts or self.config.max_attempts,
            on_complete=options.on_complete,
            on_error=options.on_error,
        )
        self._session = session
        self.last_target_id = resolved
        self.last_snapshot = None
        self.last_error = None
        self.last_outcome = None

        self._timer_handle = self.timer.schedule_repeating(
            session.poll_interval_ms / 1000, lambda: self._on_timer(session)
        )

        logger.info(
            "monitor.started",
            session_id=session.session_id,
            target_id=resolved,
            poll_interval_ms=session.poll_interval_ms,
            max_attempts=session.max_attempts,
        )

        first_tick = self._spawn_tick(session)
        await asyncio.wait([first_tick])
        return StartResult.STARTED

    def stop_monitoring(self) -> bool:
        """
        Stop the active session without invoking callbacks.

        Returns:
            True if a session was stopped, False if none was active
        """
        session = self._session
        if session is None or not session.active:
            logger.debug("monitor.not_running")
            return False

        in_flight = self._in_flight
        self._retire(session, SessionOutcome.CANCELLED)
        if in_flight is not None and not in_flight.done():
            if in_flight is not _current_task():
                in_flight.cancel()
        self._discard(session)

        logger.info(
            "monitor.stopped",
            session_id=session.session_id,
            target_id=session.target_id,
            attempts=session.attempts,
        )
        return True

    async def aclose(self) -> None:
        """Stop monitoring, wait for an aborted query to unwind, release the client."""
        in_flight = self._in_flight
        self.stop_monitoring()
        if in_flight is not None and in_flight is not _current_task():
            await asyncio.wait([in_flight])
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> "ProcessingStatusPoller":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def _on_timer(self, session: PollSession) -> None:
        if session is not self._session or not session.active:
            logger.debug("monitor.tick.stale", session_id=session.session_id)
            return

        if self._in_flight is not None and not self._in_flight.done():
            self.metrics.record_skipped_tick()
            logger.debug(
                "monitor.tick.skipped",
                session_id=session.session_id,
                reason="query_in_flight",
            )
            return

        self._spawn_tick(session)

    def _spawn_tick(self, session: PollSession) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self._tick(session))
        self._in_flight = task
        task.add_done_callback(self._on_tick_done)
        return task

    def _on_tick_done(self, task: asyncio.Task) -> None:
        if self._in_flight is task:
            self._in_flight = None
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "monitor.tick.crashed",
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=exc,
            )

    async def _tick(self, session: PollSession) -> None:
        if normalize_target_id(session.target_id) is None:
            logger.warning("monitor.tick.invalid_target", session_id=session.session_id)
            return

        started = time.perf_counter()
        try:
            snapshot = await self.client.get_processing_status(session.target_id)
        except Exception as e:
            latency = time.perf_counter() - started
            if not session.active:
                logger.debug("monitor.tick.discarded", session_id=session.session_id)
                return

            self.metrics.record_query(latency, failed=True)
            message = str(e) or QUERY_ERROR_MESSAGE
            session.record_error(message)
            logger.error(
                "monitor.query_failed",
                session_id=session.session_id,
                target_id=session.target_id,
                attempts=session.attempts,
                error=message,
                error_type=type(e).__name__,
            )
            self._finish(
                session,
                SessionOutcome.ERROR,
                callback=session.on_error,
                argument=message,
                notification=query_error(message),
            )
            return

        if not session.active:
            logger.debug("monitor.tick.discarded", session_id=session.session_id)
            return

        self.metrics.record_query(time.perf_counter() - started)
        session.record_snapshot(snapshot)
        self.last_snapshot = snapshot
        self.last_error = None

        logger.info(
            "monitor.status",
            session_id=session.session_id,
            target_id=session.target_id,
            attempt=session.attempts,
            state=snapshot.processing_state.label,
            matched=snapshot.matched_count,
            evaluated=snapshot.total_evaluated,
        )
        self._evaluate(session, snapshot)

    def _evaluate(self, session: PollSession, snapshot: StatusSnapshot) -> None:
        # Fires on every poll with matches, terminal or not.
        if snapshot.matched_count > 0:
            self.metrics.record_match_alert()
            self._notify(rule_matches_detected(snapshot))

        state = snapshot.processing_state
        if state == ProcessingState.COMPLETED:
            self._finish(
                session,
                SessionOutcome.COMPLETED,
                callback=session.on_complete,
                argument=snapshot,
                notification=processing_complete(),
            )
        elif state == ProcessingState.FAILED:
            session.last_error = PROCESSING_FAILED_MESSAGE
            self._finish(
                session,
                SessionOutcome.FAILED,
                callback=session.on_error,
                argument=PROCESSING_FAILED_MESSAGE,
                notification=processing_failed(),
            )
        elif session.budget_exhausted:
            session.last_error = PROCESSING_TIMEOUT_MESSAGE
            logger.warning(
                "monitor.timeout",
                session_id=session.session_id,
                target_id=session.target_id,
                attempts=session.attempts,
                max_attempts=session.max_attempts,
            )
            self._finish(
                session,
                SessionOutcome.TIMEOUT,
                callback=session.on_error,
                argument=PROCESSING_TIMEOUT_MESSAGE,
                notification=processing_timeout(),
            )

    def _finish(
        self,
        session: PollSession,
        outcome: SessionOutcome,
        callback: Optional[Callable[..., Any]],
        argument: Any,
        notification: Notification,
    ) -> None:
        self._retire(session, outcome)
        self._invoke(callback, argument, outcome)
        self._notify(notification)
        self._discard(session)

        logger.info(
            "monitor.finished",
            session_id=session.session_id,
            target_id=session.target_id,
            outcome=outcome.value,
            attempts=session.attempts,
        )

    def _retire(self, session: PollSession, outcome: SessionOutcome) -> None:
        # Timer, in-flight handle and the active flag go together, before
        # any callback can observe the poller.
        session.state = SessionState.RETIRING
        if self._timer_handle is not None:
            self._timer_handle.cancel()
            self._timer_handle = None
        self._in_flight = None

        self.last_error = session.last_error
        self.last_outcome = outcome
        self.metrics.end_session(outcome, session.attempts, error=session.last_error)

    def _discard(self, session: PollSession) -> None:
        session.state = SessionState.IDLE
        if self._session is session:
            self._session = None

    def _invoke(
        self,
        callback: Optional[Callable[..., Any]],
        argument: Any,
        outcome: SessionOutcome,
    ) -> None:
        if callback is None:
            return
        try:
            callback(argument)
        except Exception as e:
            logger.error(
                "monitor.callback_failed",
                outcome=outcome.value,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )

    def _notify(self, notification: Notification) -> None:
        try:
            self.notifier.notify(notification)
        except Exception as e:
            logger.error(
                "monitor.notify_failed",
                title=notification.title,
                error=str(e),
                exc_info=True,
            )

    def get_status(self) -> Dict[str, Any]:
        """
        Get current monitor status.

        Returns:
            Status dictionary
        """
        session = self._session
        current = self.metrics.get_current_session()
        last = self.metrics.get_last_session()

        if session is not None:
            attempts = session.attempts
            max_attempts = session.max_attempts
            poll_interval_ms = session.poll_interval_ms
        else:
            attempts = last.attempts if last else 0
            max_attempts = self.config.max_attempts
            poll_interval_ms = self.config.poll_interval_ms

        return {
            "state": self.state.value,
            "polling": self.is_polling,
            "loading": self.is_polling and self.last_snapshot is None,
            "target_id": session.target_id if session else self.last_target_id,
            "attempts": attempts,
            "max_attempts": max_attempts,
            "poll_interval_ms": poll_interval_ms,
            "last_error": self.last_error,
            "last_outcome": self.last_outcome.value if self.last_outcome else None,
            "snapshot": (
                self.last_snapshot.model_dump(mode="json")
                if self.last_snapshot
                else None
            ),
            "current_session": current.to_dict() if current else None,
            "last_session": last.to_dict() if last else None,
            "source": self.client.get_source_name(),
        }

    def get_metrics(self, hours: Optional[int] = None) -> Dict[str, Any]:
        """
        Get aggregate metrics.

        Args:
            hours: Limit to last N hours (None = all history)
        """
        aggregate = self.metrics.get_aggregate_metrics(hours)
        return {
            "aggregate": aggregate.to_dict(),
            "completion_rate": self.metrics.get_completion_rate(hours),
            "recent_sessions": [
                s.to_dict() for s in self.metrics.get_history(limit=10)
            ],
        }


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


# Global poller instance used by the HTTP API
_poller_instance: Optional[ProcessingStatusPoller] = None
_feed_instance: Optional[NotificationFeed] = None


def get_notification_feed() -> NotificationFeed:
    """Get or create the global notification feed."""
    global _feed_instance
    if _feed_instance is None:
        _feed_instance = NotificationFeed(get_settings().NOTIFICATION_FEED_SIZE)
    return _feed_instance


def get_poller() -> ProcessingStatusPoller:
    """
    Get or create the global poller instance.

    Returns:
        ProcessingStatusPoller singleton
    """
    global _poller_instance
    if _poller_instance is None:
        _poller_instance = ProcessingStatusPoller(notifier=get_notification_feed())
    return _poller_instance


async def shutdown_poller() -> None:
    """Close the global poller if one was created."""
    global _poller_instance
    if _poller_instance is not None:
        await _poller_instance.aclose()
        _poller_instance = None
