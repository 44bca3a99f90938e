"""
Database ORM Models - Relational Store Tables.

============================================================
SCHEMA
============================================================

1. batches      Registered batches (cache/fallback of the registry)
2. scan_logs    Append-only verification attempts (the scan ledger)
3. alerts       Risk and recall alerts, resolvable
4. audit_logs   Who did what, for compliance views

All timestamps are stored as UTC.

============================================================
"""

from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Float,
    Index,
    Integer,
    JSON,
    String,
    Text,
    TypeDecorator,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from core.clock import ensure_utc
from .engine import Base


# =============================================================
# HELPER TYPES
# =============================================================


class UTCDateTime(TypeDecorator):
    """
    DateTime that always round-trips as an aware UTC value.

    SQLite drops tzinfo on write; values are normalised to naive
    UTC on the way in and re-tagged on the way out.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        return ensure_utc(value).replace(tzinfo=None)

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        return ensure_utc(value)


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(timezone.utc)


# =============================================================
# 1. BATCHES TABLE
# =============================================================


class BatchModel(Base):
    """
    Registered batch.

    Mutated only by recall. Never deleted.
    """

    __tablename__ = "batches"

    batch_id: Mapped[str] = mapped_column(String(64), primary_key=True)

    manufacturer_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    medicine_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    dosage: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    country_of_origin: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    manufacturing_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    expiry_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    storage_conditions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="active",
        comment="active, sold, recalled (expired is derived at read time)",
    )
    recalled_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    recalled_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    batch_hash: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    blockchain_tx_hash: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    registered_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)

    def __repr__(self) -> str:
        return f"<BatchModel(batch_id={self.batch_id}, status={self.status})>"


# =============================================================
# 2. SCAN LOGS TABLE
# =============================================================


class ScanLogModel(Base):
    """
    One verification attempt.

    Append-only: rows are never updated or deleted.
    Ordering by scanned_at backs every windowed query.
    """

    __tablename__ = "scan_logs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    batch_id: Mapped[str] = mapped_column(String(64), nullable=False)
    scanner_user_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    verification_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="authentic, suspicious, not_found, recalled",
    )
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    anomaly_flags: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)
    scanned_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)

    __table_args__ = (
        Index("ix_scan_logs_batch_scanned", "batch_id", "scanned_at"),
    )


# =============================================================
# 3. ALERTS TABLE
# =============================================================


class AlertModel(Base):
    """Risk or recall alert. Only `resolved` is mutable."""

    __tablename__ = "alerts"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    batch_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    alert_type: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        comment="suspicious_scan, critical_risk, recall",
    )
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    risk_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)


# =============================================================
# 4. AUDIT LOGS TABLE
# =============================================================


class AuditLogModel(Base):
    """Audit trail entry."""

    __tablename__ = "audit_logs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    entity_type: Mapped[str] = mapped_column(String(30), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    actor_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    details: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)


REQUIRED_TABLES = ["batches", "scan_logs", "alerts", "audit_logs"]


__all__ = [
    "UTCDateTime",
    "BatchModel",
    "ScanLogModel",
    "AlertModel",
    "AuditLogModel",
    "REQUIRED_TABLES",
]
