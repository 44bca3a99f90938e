"""
Core Module - Domain Records.

============================================================
PURPOSE
============================================================
Plain data contracts shared by the storage layer, the risk
engine and the verification orchestrator.

These are NOT ORM rows. The database package maps its rows
onto these dataclasses so the rest of the system never
touches a session-bound object.

============================================================
STATUS SEMANTICS
============================================================
- Stored status is authoritative only for ACTIVE/SOLD/RECALLED
- EXPIRED is derived at read time from expiry_date
- RECALLED is terminal and takes precedence over EXPIRED

============================================================
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID


# ============================================================
# ENUMS
# ============================================================


class BatchStatus(str, Enum):
    """Lifecycle status of a batch."""

    ACTIVE = "active"
    SOLD = "sold"
    RECALLED = "recalled"
    EXPIRED = "expired"


class ScanStatus(str, Enum):
    """Verdict recorded on a scan event."""

    AUTHENTIC = "authentic"
    SUSPICIOUS = "suspicious"
    NOT_FOUND = "not_found"
    RECALLED = "recalled"


# ============================================================
# VALUE OBJECTS
# ============================================================


@dataclass(frozen=True)
class Coordinates:
    """A WGS84 point reported by the scanning device."""

    lat: float
    lng: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.lat <= 90.0:
            raise ValueError(f"Latitude out of range: {self.lat}")
        if not -180.0 <= self.lng <= 180.0:
            raise ValueError(f"Longitude out of range: {self.lng}")


# ============================================================
# RECORDS
# ============================================================


@dataclass(frozen=True)
class BatchRecord:
    """
    A registered batch as known to the relational store.

    Ownership is NOT tracked here; it lives in the registry.
    """

    batch_id: str
    manufacturer_name: Optional[str] = None
    medicine_name: Optional[str] = None
    dosage: Optional[str] = None
    country_of_origin: Optional[str] = None
    manufacturing_date: Optional[date] = None
    expiry_date: Optional[date] = None
    storage_conditions: Optional[str] = None
    status: BatchStatus = BatchStatus.ACTIVE
    recalled_at: Optional[datetime] = None
    recalled_by: Optional[str] = None
    batch_hash: Optional[str] = None
    blockchain_tx_hash: Optional[str] = None
    registered_by: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def is_recalled(self) -> bool:
        return self.status == BatchStatus.RECALLED

    def with_overrides(self, **fields: Any) -> "BatchRecord":
        """Return a copy with the non-None fields replaced."""
        changes = {k: v for k, v in fields.items() if v is not None}
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "manufacturer_name": self.manufacturer_name,
            "medicine_name": self.medicine_name,
            "dosage": self.dosage,
            "country_of_origin": self.country_of_origin,
            "manufacturing_date": self.manufacturing_date.isoformat() if self.manufacturing_date else None,
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
            "storage_conditions": self.storage_conditions,
            "status": self.status.value,
            "recalled_at": self.recalled_at.isoformat() if self.recalled_at else None,
            "recalled_by": self.recalled_by,
            "batch_hash": self.batch_hash,
            "blockchain_tx_hash": self.blockchain_tx_hash,
            "registered_by": self.registered_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class AuditEntry:
    """One audit trail row. Append-only."""

    action: str
    entity_type: str
    entity_id: str
    actor_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    id: Optional[UUID] = None


@dataclass(frozen=True)
class ScanEvent:
    """One verification attempt. Append-only."""

    batch_id: str
    verification_status: ScanStatus
    scanned_at: datetime
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    anomaly_flags: List[str] = field(default_factory=list)
    scanner_user_id: Optional[str] = None

    @property
    def coordinates(self) -> Optional[Coordinates]:
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinates(lat=self.latitude, lng=self.longitude)


@dataclass(frozen=True)
class AlertRecord:
    """A persisted alert. Only `resolved` ever changes, false to true."""

    batch_id: str
    alert_type: str
    severity: str
    message: str
    risk_score: Optional[int] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    resolved: bool = False
    created_at: Optional[datetime] = None
    id: Optional[UUID] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id) if self.id else None,
            "batch_id": self.batch_id,
            "alert_type": self.alert_type,
            "severity": self.severity,
            "risk_score": self.risk_score,
            "message": self.message,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "resolved": self.resolved,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


# ============================================================
# DERIVED STATUS
# ============================================================


def expiry_instant(expiry_date: date) -> datetime:
    """Expiry dates are compared as midnight UTC of that day."""
    return datetime.combine(expiry_date, time.min, tzinfo=timezone.utc)


def is_expired(expiry_date: Optional[date], now: datetime) -> bool:
    if expiry_date is None:
        return False
    return expiry_instant(expiry_date) < now


def effective_status(record: BatchRecord, now: datetime) -> BatchStatus:
    """
    Status a reader must observe for a record at time `now`.

    RECALLED wins over everything. A past expiry date reads as
    EXPIRED regardless of the stored value. Otherwise the stored
    value stands.
    """
    if record.is_recalled:
        return BatchStatus.RECALLED
    if is_expired(record.expiry_date, now):
        return BatchStatus.EXPIRED
    return record.status


__all__ = [
    "BatchStatus",
    "ScanStatus",
    "Coordinates",
    "BatchRecord",
    "ScanEvent",
    "AlertRecord",
    "AuditEntry",
    "expiry_instant",
    "is_expired",
    "effective_status",
]
