"""
Relational Store - Repository.

============================================================
PURPOSE
============================================================
Repository pattern implementation over the relational cache.

Provides clean interface for:
- Point lookup of batch records
- Appending scan events (the scan ledger)
- Inserting, listing and resolving alerts
- Recalling batches (terminal, monotonic)
- Writing the audit trail

Rows never leave this module: every read maps onto the
plain records in core.models.

============================================================
FAILURE MAPPING
============================================================
- Read failures (SQLAlchemy, driver OSError, timeouts) raise
  SourceUnavailableError("relational_store") so the orchestrator
  can degrade like any other source
- Write failures raise DatabasePersistenceError; callers log
  them, they never change a verdict

============================================================
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID

from sqlalchemy import and_, desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from core.clock import now_utc
from core.exceptions import NotFoundError, SourceUnavailableError
from core.models import (
    AlertRecord,
    AuditEntry,
    BatchRecord,
    BatchStatus,
    ScanEvent,
    ScanStatus,
)
from .engine import DatabasePersistenceError, get_session_factory, transaction_scope
from .models import AlertModel, AuditLogModel, BatchModel, ScanLogModel


logger = logging.getLogger(__name__)

SOURCE_NAME = "relational_store"

# Driver errors (refused connections, DNS failures) surface as
# OSError subclasses rather than SQLAlchemyError.
READ_ERRORS = (SQLAlchemyError, OSError, asyncio.TimeoutError)


# ============================================================
# ROW MAPPING
# ============================================================


def to_batch_record(row: BatchModel) -> BatchRecord:
    return BatchRecord(
        batch_id=row.batch_id,
        manufacturer_name=row.manufacturer_name,
        medicine_name=row.medicine_name,
        dosage=row.dosage,
        country_of_origin=row.country_of_origin,
        manufacturing_date=row.manufacturing_date,
        expiry_date=row.expiry_date,
        storage_conditions=row.storage_conditions,
        status=BatchStatus(row.status),
        recalled_at=row.recalled_at,
        recalled_by=row.recalled_by,
        batch_hash=row.batch_hash,
        blockchain_tx_hash=row.blockchain_tx_hash,
        registered_by=row.registered_by,
        created_at=row.created_at,
    )


def to_scan_event(row: ScanLogModel) -> ScanEvent:
    return ScanEvent(
        batch_id=row.batch_id,
        verification_status=ScanStatus(row.verification_status),
        scanned_at=row.scanned_at,
        latitude=row.latitude,
        longitude=row.longitude,
        anomaly_flags=list(row.anomaly_flags or []),
        scanner_user_id=row.scanner_user_id,
    )


def to_alert_record(row: AlertModel) -> AlertRecord:
    return AlertRecord(
        id=row.id,
        batch_id=row.batch_id,
        alert_type=row.alert_type,
        severity=row.severity,
        risk_score=row.risk_score,
        message=row.message,
        latitude=row.latitude,
        longitude=row.longitude,
        resolved=row.resolved,
        created_at=row.created_at,
    )


def to_audit_entry(row: AuditLogModel) -> AuditEntry:
    return AuditEntry(
        id=row.id,
        action=row.action,
        entity_type=row.entity_type,
        entity_id=row.entity_id,
        actor_id=row.actor_id,
        details=dict(row.details or {}),
        created_at=row.created_at,
    )


class RelationalStore:
    """
    Repository for the relational cache.

    ============================================================
    METHODS
    ============================================================
    - get_batch: Point lookup by batch id
    - save_batch: Insert or update a batch (registration path)
    - recall_batch: Terminal status transition
    - append_scan / fetch_scans_since / list_scans: scan ledger
    - insert_alert / list_alerts / resolve_alert: alerts
    - record_audit / list_audit_logs: audit trail

    ============================================================
    """

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        """
        Initialize repository.

        Args:
            session_factory: Async session factory. Defaults to the
                             process-wide factory built from DATABASE_URL.
        """
        self._session_factory = session_factory or get_session_factory()

    async def _fetch_all(self, stmt, mapper: Callable[[Any], Any], what: str) -> List[Any]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return [mapper(row) for row in result.scalars().all()]
        except READ_ERRORS as e:
            raise SourceUnavailableError(
                f"{what} failed",
                source_name=SOURCE_NAME,
                original_error=e,
            ) from e

    # --------------------------------------------------------
    # BATCHES
    # --------------------------------------------------------

    async def get_batch(self, batch_id: str) -> Optional[BatchRecord]:
        """
        Get a batch by id.

        Returns:
            BatchRecord or None if the store has no such batch

        Raises:
            SourceUnavailableError: If the store cannot be queried
        """
        try:
            async with self._session_factory() as session:
                row = await session.get(BatchModel, batch_id)
                return to_batch_record(row) if row else None
        except READ_ERRORS as e:
            raise SourceUnavailableError(
                f"Batch lookup failed for {batch_id}",
                source_name=SOURCE_NAME,
                original_error=e,
            ) from e

    async def save_batch(self, record: BatchRecord) -> BatchRecord:
        """
        Insert a batch or update its descriptive fields.

        A recalled batch keeps its recall fields no matter what
        the incoming record says.
        """
        async with transaction_scope(self._session_factory) as session:
            row = await session.get(BatchModel, record.batch_id)
            if row is None:
                row = BatchModel(batch_id=record.batch_id)
                session.add(row)

            row.manufacturer_name = record.manufacturer_name
            row.medicine_name = record.medicine_name
            row.dosage = record.dosage
            row.country_of_origin = record.country_of_origin
            row.manufacturing_date = record.manufacturing_date
            row.expiry_date = record.expiry_date
            row.storage_conditions = record.storage_conditions
            row.batch_hash = record.batch_hash
            row.blockchain_tx_hash = record.blockchain_tx_hash
            row.registered_by = record.registered_by
            if record.created_at:
                row.created_at = record.created_at

            if row.status != BatchStatus.RECALLED.value:
                row.status = record.status.value
                row.recalled_at = record.recalled_at
                row.recalled_by = record.recalled_by

            await session.flush()
            saved = to_batch_record(row)

        logger.info(f"[{SOURCE_NAME}] Saved batch {saved.batch_id} (status={saved.status.value})")
        return saved

    async def recall_batch(
        self,
        batch_id: str,
        actor_id: str,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> BatchRecord:
        """
        Mark a batch as recalled.

        Recall is terminal: recalling an already recalled batch
        returns it unchanged and writes nothing.

        Creates:
        - recall alert (severity critical)
        - audit entry

        Raises:
            NotFoundError: If the batch is not in the store
        """
        now = now or now_utc()

        async with transaction_scope(self._session_factory) as session:
            row = await session.get(BatchModel, batch_id)
            if row is None:
                raise NotFoundError(batch_id)

            if row.status == BatchStatus.RECALLED.value:
                logger.info(f"[{SOURCE_NAME}] Batch {batch_id} already recalled, nothing to do")
                return to_batch_record(row)

            row.status = BatchStatus.RECALLED.value
            row.recalled_at = now
            row.recalled_by = actor_id

            session.add(AlertModel(
                batch_id=batch_id,
                alert_type="recall",
                severity="critical",
                message=f"Batch recalled: {reason or 'No reason specified'}",
                created_at=now,
            ))
            session.add(AuditLogModel(
                action="batch_recalled",
                entity_type="batch",
                entity_id=batch_id,
                actor_id=actor_id,
                details={"reason": reason},
                created_at=now,
            ))

            await session.flush()
            recalled = to_batch_record(row)

        logger.warning(f"[{SOURCE_NAME}] Batch {batch_id} recalled by {actor_id}")
        return recalled

    # --------------------------------------------------------
    # SCAN LEDGER
    # --------------------------------------------------------

    async def append_scan(self, event: ScanEvent) -> None:
        """Append a scan event. Scan rows are never updated."""
        async with transaction_scope(self._session_factory) as session:
            session.add(ScanLogModel(
                batch_id=event.batch_id,
                scanner_user_id=event.scanner_user_id,
                verification_status=event.verification_status.value,
                latitude=event.latitude,
                longitude=event.longitude,
                anomaly_flags=list(event.anomaly_flags),
                scanned_at=event.scanned_at,
            ))

        logger.debug(
            f"[{SOURCE_NAME}] Scan appended for {event.batch_id}: "
            f"{event.verification_status.value}"
        )

    async def fetch_scans_since(
        self,
        batch_id: str,
        since: datetime,
        until: Optional[datetime] = None,
    ) -> List[ScanEvent]:
        """
        Get scans for a batch within a time range.

        Args:
            batch_id: Batch to query
            since: Start of range (inclusive)
            until: End of range (inclusive), unbounded if None

        Returns:
            Scan events ordered most recent first

        Raises:
            SourceUnavailableError: If the store cannot be queried
        """
        conditions = [
            ScanLogModel.batch_id == batch_id,
            ScanLogModel.scanned_at >= since,
        ]
        if until is not None:
            conditions.append(ScanLogModel.scanned_at <= until)

        stmt = (
            select(ScanLogModel)
            .where(and_(*conditions))
            .order_by(desc(ScanLogModel.scanned_at))
        )

        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return [to_scan_event(row) for row in result.scalars().all()]
        except READ_ERRORS as e:
            raise SourceUnavailableError(
                f"Scan window query failed for {batch_id}",
                source_name=SOURCE_NAME,
                original_error=e,
            ) from e

    async def list_scans(self, limit: int = 100) -> List[ScanEvent]:
        """Most recent scans across all batches."""
        stmt = select(ScanLogModel).order_by(desc(ScanLogModel.scanned_at)).limit(limit)
        return await self._fetch_all(stmt, to_scan_event, "Scan listing")

    # --------------------------------------------------------
    # ALERTS
    # --------------------------------------------------------

    async def insert_alert(self, alert: AlertRecord) -> AlertRecord:
        """Persist a new alert and return it with its id."""
        async with transaction_scope(self._session_factory) as session:
            row = AlertModel(
                batch_id=alert.batch_id,
                alert_type=alert.alert_type,
                severity=alert.severity,
                risk_score=alert.risk_score,
                message=alert.message,
                latitude=alert.latitude,
                longitude=alert.longitude,
                resolved=False,
                created_at=alert.created_at or now_utc(),
            )
            session.add(row)
            await session.flush()
            saved = to_alert_record(row)

        logger.info(
            f"[{SOURCE_NAME}] Alert {saved.id} stored for {saved.batch_id} "
            f"(severity={saved.severity}, score={saved.risk_score})"
        )
        return saved

    async def list_alerts(
        self,
        resolved: Optional[bool] = None,
        limit: int = 100,
    ) -> List[AlertRecord]:
        """
        Get alerts, most recent first.

        Args:
            resolved: Filter on resolution state, None for all
            limit: Maximum number of records
        """
        stmt = select(AlertModel)
        if resolved is not None:
            stmt = stmt.where(AlertModel.resolved == resolved)
        stmt = stmt.order_by(desc(AlertModel.created_at)).limit(limit)

        return await self._fetch_all(stmt, to_alert_record, "Alert listing")

    async def resolve_alert(self, alert_id: UUID) -> bool:
        """
        Mark an alert as resolved.

        Returns:
            True if the alert exists (resolved now or already)
        """
        async with transaction_scope(self._session_factory) as session:
            row = await session.get(AlertModel, alert_id)
            if row is None:
                return False
            row.resolved = True

        logger.info(f"[{SOURCE_NAME}] Alert {alert_id} resolved")
        return True

    # --------------------------------------------------------
    # AUDIT
    # --------------------------------------------------------

    async def record_audit(
        self,
        action: str,
        entity_type: str,
        entity_id: str,
        actor_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        created_at: Optional[datetime] = None,
    ) -> None:
        """Append an audit trail entry."""
        async with transaction_scope(self._session_factory) as session:
            session.add(AuditLogModel(
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                actor_id=actor_id,
                details=details or {},
                created_at=created_at or now_utc(),
            ))

    async def list_audit_logs(
        self,
        action: Optional[str] = None,
        limit: int = 200,
    ) -> List[AuditEntry]:
        """
        Get audit trail entries, most recent first.

        Args:
            action: Only entries with this action, None for all
            limit: Maximum number of records

        Raises:
            SourceUnavailableError: If the store cannot be queried
        """
        stmt = select(AuditLogModel)
        if action is not None:
            stmt = stmt.where(AuditLogModel.action == action)
        stmt = stmt.order_by(desc(AuditLogModel.created_at)).limit(limit)

        return await self._fetch_all(stmt, to_audit_entry, "Audit log listing")


__all__ = [
    "RelationalStore",
    "DatabasePersistenceError",
    "to_batch_record",
    "to_scan_event",
    "to_alert_record",
    "to_audit_entry",
]
