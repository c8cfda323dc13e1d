"""
Processing-status data model.

Mirrors the status payload returned by the back-office REST API for a
transaction's rule-evaluation run. Wire names are camelCase; Python
attributes are snake_case and both are accepted on input.
"""

from datetime import datetime
from enum import IntEnum
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ProcessingState(IntEnum):
    """Processing state of a transaction, using the API's integer codes."""

    PENDING = 0
    PROCESSING = 1
    COMPLETED = 2
    FAILED = 3

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingState.COMPLETED, ProcessingState.FAILED)

    @property
    def label(self) -> str:
        return self.name.capitalize()

    @classmethod
    def parse(cls, value: Any) -> "ProcessingState":
        """Accept an integer code or a state name such as ``"Completed"``."""
        if isinstance(value, cls):
            return value
        if isinstance(value, bool) or not isinstance(value, (int, str)):
            raise ValueError(f"Unknown processing state: {value!r}")
        if isinstance(value, str) and not value.strip().lstrip("-").isdigit():
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise ValueError(f"Unknown processing state: {value!r}") from None
        return cls(int(value))


class RuleMatch(BaseModel):
    """Outcome of one rule evaluated against the transaction."""

    model_config = ConfigDict(populate_by_name=True)

    rule_id: Union[int, str] = Field(alias="ruleId")
    rule_name: str = Field(alias="ruleName")
    is_matched: bool = Field(alias="isMatched")
    executed_at: Optional[datetime] = Field(default=None, alias="executedAt")


class StatusSnapshot(BaseModel):
    """One response from the processing-status endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    processing_state: ProcessingState = Field(alias="processingStatus")
    rule_matches: List[RuleMatch] = Field(default_factory=list, alias="ruleMatches")
    matched_count: int = Field(default=0, ge=0, alias="matchedRulesCount")
    total_evaluated: int = Field(default=0, ge=0, alias="totalRulesEvaluated")
    started_at: Optional[datetime] = Field(default=None, alias="processingStartedAt")
    completed_at: Optional[datetime] = Field(
        default=None, alias="processingCompletedAt"
    )

    transaction_id: Optional[int] = Field(default=None, alias="transactionId")
    transaction_reference: Optional[str] = Field(default=None, alias="transactionID")
    has_rule_matches: Optional[bool] = Field(default=None, alias="hasRuleMatches")

    @field_validator("processing_state", mode="before")
    @classmethod
    def _parse_state(cls, value: Any) -> ProcessingState:
        return ProcessingState.parse(value)

    @property
    def is_terminal(self) -> bool:
        return self.processing_state.is_terminal

    @property
    def matched_rules(self) -> List[RuleMatch]:
        return [rule for rule in self.rule_matches if rule.is_matched]

    @property
    def passed_rules(self) -> List[RuleMatch]:
        return [rule for rule in self.rule_matches if not rule.is_matched]

    @property
    def passed_count(self) -> int:
        # Server guarantees matched <= total; not re-checked here.
        return self.total_evaluated - self.matched_count
