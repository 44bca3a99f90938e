"""
Core Module Package.

This package contains the infrastructure components that
all other modules depend on.

Components:
- clock: Unified time abstraction
- models: Shared domain records
- exceptions: Verification error taxonomy
- race: First-success race over async attempts
"""

from .clock import ClockProtocol, SystemClock, MockClock, ensure_utc, now_utc
from .models import (
    BatchStatus,
    ScanStatus,
    Coordinates,
    BatchRecord,
    ScanEvent,
    AlertRecord,
    effective_status,
    is_expired,
)
from .exceptions import (
    VerificationError,
    ValidationError,
    NotFoundError,
    SourceUnavailableError,
)
from .race import RaceExhaustedError, race_with_timeout

__all__ = [
    "ClockProtocol",
    "SystemClock",
    "MockClock",
    "ensure_utc",
    "now_utc",
    "BatchStatus",
    "ScanStatus",
    "Coordinates",
    "BatchRecord",
    "ScanEvent",
    "AlertRecord",
    "effective_status",
    "is_expired",
    "VerificationError",
    "ValidationError",
    "NotFoundError",
    "SourceUnavailableError",
    "RaceExhaustedError",
    "race_with_timeout",
]
