"""Error types and retry policy."""

from folio_navigation.errors.types import ErrorType, ProtocolError, RetryPolicy

__all__ = ["ErrorType", "ProtocolError", "RetryPolicy"]
