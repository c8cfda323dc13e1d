"""
Transaction processing-status monitoring.

Watches a transaction's server-side rule evaluation until it reaches a
terminal state, surfacing rule matches and outcomes as notifications.
"""

from compliance_console.processing.poller import ProcessingStatusPoller, StartResult
from compliance_console.processing.clients import (
    BaseStatusClient,
    HttpStatusClient,
    MockStatusClient,
)
from compliance_console.processing.models import (
    ProcessingState,
    RuleMatch,
    StatusSnapshot,
)
from compliance_console.processing.metrics import MonitorMetrics, SessionOutcome

__all__ = [
    "ProcessingStatusPoller",
    "StartResult",
    "BaseStatusClient",
    "HttpStatusClient",
    "MockStatusClient",
    "ProcessingState",
    "RuleMatch",
    "StatusSnapshot",
    "MonitorMetrics",
    "SessionOutcome",
]
