"""
Error taxonomy for collaborator-protocol recovery.

Every failed agent step yields a structured `ProtocolError`; the retry policy
decides whether the step is re-issued.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorType(str, Enum):
    """Machine-interpretable error types for step recovery."""

    SCHEMA_VIOLATION = "SCHEMA_VIOLATION"
    """No JSON object, invalid JSON, missing required fields, or type mismatches."""

    GROUNDING_FAILURE = "GROUNDING_FAILURE"
    """An evidence or final pointer does not refer to content the navigator served."""

    CONTEXT_EXHAUSTION = "CONTEXT_EXHAUSTION"
    """Step ceiling or cursor end reached without a conclusive answer."""

    CANCELLED = "CANCELLED"
    """The caller asked the run to stop."""


class ProtocolError(BaseModel):
    """Structured record of one collaborator-protocol failure."""

    error_type: ErrorType
    stage: str = Field(..., description="e.g. 'agent_step', 'finalizer'")
    run_id: Optional[str] = None
    step: Optional[int] = None
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)
    retry_count: int = 0

    def to_log_message(self) -> str:
        loc = f"step:{self.step}" if self.step is not None else f"run:{self.run_id}"
        return f"[{self.error_type.value}] {self.stage} @ {loc}: {self.message}"


class RetryPolicy(BaseModel):
    """Per-error-type retry budget with capped exponential backoff."""

    model_config = ConfigDict(frozen=True)

    max_retries: Dict[ErrorType, int] = Field(
        default={
            ErrorType.SCHEMA_VIOLATION: 2,
            ErrorType.GROUNDING_FAILURE: 0,
            ErrorType.CONTEXT_EXHAUSTION: 0,
            ErrorType.CANCELLED: 0,
        }
    )
    base_backoff_seconds: float = Field(default=0.0, ge=0)
    max_backoff_seconds: float = Field(default=30.0, ge=0)

    @classmethod
    def for_parse_retries(cls, retries: int, *, base_backoff_seconds: float = 0.0) -> "RetryPolicy":
        budget = dict(cls.model_fields["max_retries"].default)
        budget[ErrorType.SCHEMA_VIOLATION] = max(retries, 0)
        return cls(max_retries=budget, base_backoff_seconds=base_backoff_seconds)

    def can_retry(self, error_type: ErrorType, retry_count: int) -> bool:
        return retry_count < self.max_retries.get(error_type, 0)

    def get_backoff_seconds(self, retry_count: int) -> float:
        backoff = self.base_backoff_seconds * (2**retry_count)
        return min(backoff, self.max_backoff_seconds)
