"""
Verification - Type Definitions.

============================================================
PURPOSE
============================================================
Result contract of the verification orchestrator.

The outcome carries the verdict plus everything that fed it:
the merged record, the risk assessment and the raw answers of
the registry and the metadata store. `sources` reports which
upstreams answered, so "no data at all" can be told apart
from "verified with zero risk".

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from core.models import BatchRecord
from risk_scoring.types import RiskAssessment
from source_adapters.models import MetadataDocument, OwnershipRecord


class VerificationStatus(str, Enum):
    """Verdict of one verification attempt."""

    AUTHENTIC = "authentic"
    SUSPICIOUS = "suspicious"
    NOT_FOUND = "not_found"
    RECALLED = "recalled"


class SourceName(str, Enum):
    REGISTRY = "registry"
    METADATA_STORE = "metadata_store"
    RELATIONAL_STORE = "relational_store"


@dataclass(frozen=True)
class SourceReport:
    """
    What one source did during a verification.

    consulted=False means the source was never asked (e.g. no
    content hash to resolve). answered=False with an error means
    it was asked and failed.
    """

    consulted: bool = False
    answered: bool = False
    error: Optional[str] = None

    @classmethod
    def ok(cls) -> "SourceReport":
        return cls(consulted=True, answered=True)

    @classmethod
    def failed(cls, error: Exception) -> "SourceReport":
        return cls(consulted=True, answered=False, error=str(error))

    def to_dict(self) -> Dict[str, Any]:
        return {"consulted": self.consulted, "answered": self.answered, "error": self.error}


@dataclass(frozen=True)
class VerificationOutcome:
    """Consolidated result of verify()."""

    batch_id: str
    status: VerificationStatus
    checked_at: datetime
    record: Optional[BatchRecord] = None
    risk: Optional[RiskAssessment] = None
    ownership: Optional[OwnershipRecord] = None
    metadata: Optional[MetadataDocument] = None
    sources: Dict[SourceName, SourceReport] = field(default_factory=dict)

    @property
    def any_source_answered(self) -> bool:
        return any(report.answered for report in self.sources.values())

    @property
    def degraded_sources(self) -> list[SourceName]:
        return [
            name for name, report in self.sources.items()
            if report.consulted and not report.answered
        ]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "batch_id": self.batch_id,
            "status": self.status.value,
            "checked_at": self.checked_at.isoformat(),
            "record": self.record.to_dict() if self.record else None,
            "risk": self.risk.to_dict() if self.risk else None,
            "ownership": self.ownership.to_dict() if self.ownership else None,
            "metadata": self.metadata.to_dict() if self.metadata else None,
            "sources": {name.value: report.to_dict() for name, report in self.sources.items()},
            "any_source_answered": self.any_source_answered,
        }


__all__ = [
    "VerificationStatus",
    "SourceName",
    "SourceReport",
    "VerificationOutcome",
]
