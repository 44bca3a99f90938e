"""
Verification Package.

============================================================
PURPOSE
============================================================
Turns a presented batch id (plus optional coordinates) into
one verdict: authentic, suspicious, not_found or recalled.

Sources consulted:
- Registry contract: ownership and content hash
- IPFS mirrors: batch metadata
- Relational store: cached batch record and scan history

============================================================
"""

from .types import VerificationStatus, SourceName, SourceReport, VerificationOutcome
from .config import ALERT_SCORE_THRESHOLD, VerificationConfig
from .alerting import (
    build_risk_alert,
    AlertEmitter,
    RepositoryAlertEmitter,
    TelegramAlertSender,
    CompositeAlertEmitter,
)
from .orchestrator import (
    validate_batch_id,
    merge_record,
    VerificationOrchestrator,
    build_orchestrator,
    get_orchestrator,
    set_orchestrator,
    verify_batch,
)


__all__ = [
    # Types
    "VerificationStatus",
    "SourceName",
    "SourceReport",
    "VerificationOutcome",
    # Config
    "ALERT_SCORE_THRESHOLD",
    "VerificationConfig",
    # Alerting
    "build_risk_alert",
    "AlertEmitter",
    "RepositoryAlertEmitter",
    "TelegramAlertSender",
    "CompositeAlertEmitter",
    # Orchestrator
    "validate_batch_id",
    "merge_record",
    "VerificationOrchestrator",
    "build_orchestrator",
    "get_orchestrator",
    "set_orchestrator",
    "verify_batch",
]
