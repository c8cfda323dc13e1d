"""
Mock status client for testing and development.

Simulates the back-office rule engine working through a transaction:
Pending, then Processing while rules are evaluated, then a terminal
state. Each transaction id progresses independently.
"""

import asyncio
import random
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Union

from compliance_console.processing.clients.base import (
    BaseStatusClient,
    StatusConnectionError,
)
from compliance_console.processing.models import (
    ProcessingState,
    RuleMatch,
    StatusSnapshot,
)

# Monitoring rules evaluated by the simulated engine, in evaluation order.
MONITORING_RULES = [
    "High Value Transfer",
    "Sanctioned Country Counterparty",
    "Rapid Velocity",
    "Structuring Pattern",
    "PEP Counterparty",
    "Dormant Account Reactivation",
]


class MockStatusClient(BaseStatusClient):
    """
    Mock status client that walks each transaction through processing.

    The n-th query for a transaction returns Pending for the first
    ``pending_polls`` queries, Processing for the next
    ``processing_polls`` queries, and ``final_state`` afterwards.
    """

    def __init__(
        self,
        pending_polls: int = 1,
        processing_polls: int = 2,
        final_state: ProcessingState = ProcessingState.COMPLETED,
        matched_rules: Optional[Sequence[str]] = None,
        rules: Optional[Sequence[str]] = None,
        failure_rate: float = 0.0,
        latency_ms: int = 100,
    ):
        """
        Initialize mock client.

        Args:
            pending_polls: Queries answered with Pending
            processing_polls: Queries answered with Processing
            final_state: Terminal state reported afterwards
            matched_rules: Names of rules that match (defaults to a random pick)
            rules: Rule names evaluated (defaults to MONITORING_RULES)
            failure_rate: Probability of simulated failure (0.0 to 1.0)
            latency_ms: Simulated network latency in milliseconds
        """
        super().__init__(base_url=None, timeout=30.0)
        if not final_state.is_terminal:
            raise ValueError("final_state must be Completed or Failed")

        self.pending_polls = pending_polls
        self.processing_polls = processing_polls
        self.final_state = final_state
        self.rules = list(rules or MONITORING_RULES)
        if matched_rules is None:
            matched_rules = random.sample(self.rules, k=random.randint(0, 2))
        self.matched_rules = set(matched_rules)
        self.failure_rate = failure_rate
        self.latency_ms = latency_ms

        self._query_counts: Dict[str, int] = {}
        self._started_at: Dict[str, datetime] = {}

    def get_source_name(self) -> str:
        """Return source identifier."""
        return "mock"

    def query_count(self, transaction_id: Union[str, int]) -> int:
        """Number of queries answered for a transaction so far."""
        return self._query_counts.get(str(transaction_id).strip(), 0)

    async def get_processing_status(
        self, transaction_id: Union[str, int]
    ) -> StatusSnapshot:
        await self._simulate_latency()

        if random.random() < self.failure_rate:
            raise StatusConnectionError("Simulated status API connection failure")

        key = str(transaction_id).strip()
        count = self._query_counts.get(key, 0) + 1
        self._query_counts[key] = count

        return self._build_snapshot(key, count)

    def _build_snapshot(self, key: str, count: int) -> StatusSnapshot:
        now = datetime.now(timezone.utc)

        if count <= self.pending_polls:
            return StatusSnapshot(
                processing_state=ProcessingState.PENDING,
                transaction_id=_numeric_id(key),
                transaction_reference=f"TXN-{key}",
            )

        started_at = self._started_at.setdefault(key, now)
        processing_index = count - self.pending_polls

        if processing_index <= self.processing_polls:
            state = ProcessingState.PROCESSING
            # Spread rule evaluation across the processing polls.
            evaluated = len(self.rules) * processing_index // (self.processing_polls + 1)
            completed_at = None
        else:
            state = self.final_state
            evaluated = len(self.rules)
            completed_at = now

        matches = self._evaluate(self.rules[:evaluated], started_at)
        matched_count = sum(1 for m in matches if m.is_matched)

        return StatusSnapshot(
            processing_state=state,
            rule_matches=matches,
            matched_count=matched_count,
            total_evaluated=len(matches),
            started_at=started_at,
            completed_at=completed_at,
            transaction_id=_numeric_id(key),
            transaction_reference=f"TXN-{key}",
            has_rule_matches=matched_count > 0,
        )

    def _evaluate(self, rules: List[str], started_at: datetime) -> List[RuleMatch]:
        return [
            RuleMatch(
                rule_id=idx,
                rule_name=name,
                is_matched=name in self.matched_rules,
                executed_at=started_at + timedelta(milliseconds=150 * idx),
            )
            for idx, name in enumerate(rules, 1)
        ]

    async def _simulate_latency(self):
        """Simulate network latency."""
        if self.latency_ms > 0:
            await asyncio.sleep(self.latency_ms / 1000.0)


def _numeric_id(key: str) -> Optional[int]:
    return int(key) if key.isdigit() else None
