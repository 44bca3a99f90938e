"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines the error taxonomy shared by every verification
component.

- Distinguishes "record absent" from "source absent"
- Rejects malformed input before any I/O happens
- Carries structured context for logging

============================================================
EXCEPTION HIERARCHY
============================================================
VerificationError (base)
├── ValidationError         malformed batch identifier
├── NotFoundError           no record in any source
└── SourceUnavailableError  one upstream source failed

============================================================
RECOVERY POLICY
============================================================
- ValidationError: surfaced to the caller, nothing was read
- NotFoundError: terminal, user-visible as "not found"
- SourceUnavailableError: recovered locally by degrading to
  the remaining sources, never surfaced by the orchestrator

============================================================
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


# ============================================================
# BASE EXCEPTION
# ============================================================

class VerificationError(Exception):
    """
    Base exception for all verification errors.

    All exceptions carry:
    - context: for debugging
    - cause: the underlying exception, if any
    - timestamp: when the error occurred
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.message = message
        self.context = context or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging/storage."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }


# ============================================================
# INPUT ERRORS
# ============================================================

class ValidationError(VerificationError):
    """Input failed validation before any I/O."""

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        value: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if field_name:
            context["field"] = field_name
        if value is not None:
            context["value"] = str(value)[:100]

        super().__init__(message, context=context, **kwargs)
        self.field_name = field_name


# ============================================================
# LOOKUP ERRORS
# ============================================================

class NotFoundError(VerificationError):
    """No record exists for the batch in any source."""

    def __init__(self, batch_id: str, message: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        context["batch_id"] = batch_id

        super().__init__(
            message or f"Batch '{batch_id}' not found",
            context=context,
            **kwargs,
        )
        self.batch_id = batch_id


class SourceUnavailableError(VerificationError):
    """
    An upstream data source could not be reached or answered badly.

    This is about the *source* being absent, never about the
    record being absent.
    """

    def __init__(
        self,
        message: str,
        source_name: str,
        original_error: Optional[Exception] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})
        context["source"] = source_name

        super().__init__(message, context=context, cause=original_error, **kwargs)
        self.source_name = source_name
        self.original_error = original_error

    def __str__(self) -> str:
        parts = [f"[{self.source_name}] {self.message}"]
        if self.original_error:
            parts.append(f"(caused by: {self.original_error!r})")
        return " ".join(parts)


__all__ = [
    "VerificationError",
    "ValidationError",
    "NotFoundError",
    "SourceUnavailableError",
]
