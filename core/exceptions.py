"""
Custom exceptions for the flow tracker with structured error context.

Exception Hierarchy:
    FlowTrackerError (base)
    ├── ValidationError
    ├── InvalidStateError
    └── UnserializableValueError

Errors raised by tracked work are never wrapped in these types: they are
recorded on the Flow and re-raised unchanged.
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class FlowTrackerError(Exception):
    """
    Base exception for all flow tracker errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (entity ids, field names, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


class ValidationError(FlowTrackerError):
    """
    A required field is missing or empty, or a value is out of range.

    Context should include:
        - field_name: Name of the field that failed validation
        - field_value: Value that failed validation (when safe to log)
    """
    pass


class InvalidStateError(FlowTrackerError):
    """
    A lifecycle operation was attempted on a Flow that is no longer running,
    or an immutable record was modified.

    Context should include:
        - flow_id: The Flow concerned
        - status: Its current status
        - operation: The rejected operation
    """
    pass


class UnserializableValueError(FlowTrackerError):
    """
    Raised while sanitizing job arguments for metadata when a value cannot
    be represented. Never leaves the truncation helpers.
    """
    pass
