"""
Tests for the RelationalStore repository.

Tests cover:
- Batch save and lookup
- Recall (terminal, idempotent, alert + audit side effects)
- Alerts listing and resolution
- Scan ledger ordering and windows
- Audit trail listing
- Read failures mapped to SourceUnavailableError
- Write failures mapped to DatabasePersistenceError
"""

import pytest
from datetime import date, timedelta
from unittest.mock import MagicMock
from uuid import uuid4

from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from core.exceptions import NotFoundError, SourceUnavailableError
from core.models import AlertRecord, BatchRecord, BatchStatus, ScanStatus
from database.engine import DatabasePersistenceError
from database.models import AuditLogModel
from database.repository import RelationalStore
from database.scan_ledger import ScanLedger
from tests.helpers import FIXED_NOW, make_scan


def make_batch(batch_id: str = "BATCH-001", **overrides) -> BatchRecord:
    fields = dict(
        batch_id=batch_id,
        manufacturer_name="Acme Pharma",
        medicine_name="Amoxicillin",
        dosage="250mg",
        country_of_origin="DE",
        manufacturing_date=date(2025, 6, 1),
        expiry_date=date(2027, 6, 1),
    )
    fields.update(overrides)
    return BatchRecord(**fields)


async def count_audit_entries(store: RelationalStore, action: str) -> int:
    async with store._session_factory() as session:
        result = await session.execute(
            select(func.count()).select_from(AuditLogModel).where(AuditLogModel.action == action)
        )
        return result.scalar_one()


# =============================================================
# TEST: Batches
# =============================================================

class TestBatches:
    """Test batch persistence."""

    @pytest.mark.asyncio
    async def test_get_missing_batch_returns_none(self, store):
        assert await store.get_batch("NOPE") is None

    @pytest.mark.asyncio
    async def test_save_and_get(self, store):
        await store.save_batch(make_batch())

        record = await store.get_batch("BATCH-001")

        assert record.medicine_name == "Amoxicillin"
        assert record.expiry_date == date(2027, 6, 1)
        assert record.status == BatchStatus.ACTIVE
        assert record.created_at is not None
        assert record.created_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_save_does_not_revert_recall(self, store):
        await store.save_batch(make_batch())
        await store.recall_batch("BATCH-001", actor_id="regulator-1", now=FIXED_NOW)

        await store.save_batch(make_batch(dosage="500mg", status=BatchStatus.ACTIVE))
        record = await store.get_batch("BATCH-001")

        assert record.dosage == "500mg"
        assert record.status == BatchStatus.RECALLED
        assert record.recalled_by == "regulator-1"


# =============================================================
# TEST: Recall
# =============================================================

class TestRecall:
    """Test batch recall."""

    @pytest.mark.asyncio
    async def test_recall_sets_fields_and_creates_alert(self, store):
        await store.save_batch(make_batch())

        record = await store.recall_batch(
            "BATCH-001", actor_id="regulator-1", reason="Contamination", now=FIXED_NOW
        )

        assert record.status == BatchStatus.RECALLED
        assert record.recalled_at == FIXED_NOW
        assert record.recalled_by == "regulator-1"

        alerts = await store.list_alerts()
        assert len(alerts) == 1
        assert alerts[0].alert_type == "recall"
        assert alerts[0].severity == "critical"
        assert alerts[0].message == "Batch recalled: Contamination"
        assert await count_audit_entries(store, "batch_recalled") == 1

    @pytest.mark.asyncio
    async def test_recall_without_reason(self, store):
        await store.save_batch(make_batch())
        await store.recall_batch("BATCH-001", actor_id="regulator-1")

        alerts = await store.list_alerts()
        assert alerts[0].message == "Batch recalled: No reason specified"

    @pytest.mark.asyncio
    async def test_recall_is_idempotent(self, store):
        await store.save_batch(make_batch())
        first = await store.recall_batch("BATCH-001", actor_id="regulator-1", now=FIXED_NOW)

        second = await store.recall_batch(
            "BATCH-001", actor_id="someone-else", now=FIXED_NOW + timedelta(days=1)
        )

        assert second.recalled_at == first.recalled_at
        assert second.recalled_by == "regulator-1"
        assert len(await store.list_alerts()) == 1
        assert await count_audit_entries(store, "batch_recalled") == 1

    @pytest.mark.asyncio
    async def test_recall_unknown_batch(self, store):
        with pytest.raises(NotFoundError):
            await store.recall_batch("NOPE", actor_id="regulator-1")


# =============================================================
# TEST: Alerts
# =============================================================

class TestAlerts:
    """Test alert persistence."""

    @pytest.mark.asyncio
    async def test_insert_and_resolve(self, store):
        saved = await store.insert_alert(AlertRecord(
            batch_id="BATCH-001",
            alert_type="suspicious_scan",
            severity="high",
            message="Rapid scanning: 12 scans in 10 min",
            risk_score=48,
            created_at=FIXED_NOW,
        ))
        assert saved.id is not None
        assert not saved.resolved

        assert await store.resolve_alert(saved.id)
        assert await store.resolve_alert(saved.id)

        assert await store.list_alerts(resolved=False) == []
        resolved = await store.list_alerts(resolved=True)
        assert [a.id for a in resolved] == [saved.id]

    @pytest.mark.asyncio
    async def test_resolve_unknown_alert(self, store):
        assert not await store.resolve_alert(uuid4())

    @pytest.mark.asyncio
    async def test_alerts_most_recent_first(self, store):
        for minutes_ago in (30, 10, 20):
            await store.insert_alert(AlertRecord(
                batch_id="BATCH-001",
                alert_type="suspicious_scan",
                severity="high",
                message=f"{minutes_ago}",
                created_at=FIXED_NOW - timedelta(minutes=minutes_ago),
            ))

        alerts = await store.list_alerts()
        assert [a.message for a in alerts] == ["10", "20", "30"]


# =============================================================
# TEST: Scan ledger
# =============================================================

class TestScanLedger:
    """Test scan append and windowed reads."""

    @pytest.mark.asyncio
    async def test_fetch_scans_since_is_ordered_and_bounded(self, store):
        for minutes in (5, 50, 2, 60 * 25):
            await store.append_scan(make_scan(minutes, lat=1.0, lng=2.0))

        events = await store.fetch_scans_since(
            "BATCH-001",
            since=FIXED_NOW - timedelta(hours=24),
            until=FIXED_NOW,
        )

        assert [FIXED_NOW - e.scanned_at for e in events] == [
            timedelta(minutes=2),
            timedelta(minutes=5),
            timedelta(minutes=50),
        ]
        assert events[0].latitude == 1.0
        assert events[0].verification_status == ScanStatus.AUTHENTIC

    @pytest.mark.asyncio
    async def test_window_filters_share_one_snapshot(self, store, mock_clock):
        for minutes in (1, 5, 20, 60 * 3):
            await store.append_scan(make_scan(minutes))

        window = await ScanLedger(store, clock=mock_clock).fetch_window("BATCH-001")

        assert len(window) == 4
        assert window.count_since(timedelta(minutes=10)) == 2
        assert window.count_since(timedelta(minutes=30)) == 3
        assert window.count_since(timedelta(hours=24)) == 4

    @pytest.mark.asyncio
    async def test_window_rejects_wider_filter(self, store, mock_clock):
        window = await ScanLedger(store, clock=mock_clock).fetch_window("BATCH-001")

        with pytest.raises(ValueError):
            window.since(timedelta(hours=48))

    @pytest.mark.asyncio
    async def test_ledger_count_and_list(self, store, mock_clock):
        for minutes in (1, 5, 20):
            await store.append_scan(make_scan(minutes))
        ledger = ScanLedger(store, clock=mock_clock)

        assert await ledger.count_since("BATCH-001", timedelta(minutes=10)) == 2
        events = await ledger.list_since("BATCH-001", timedelta(minutes=30))
        assert events[0].scanned_at > events[-1].scanned_at

    @pytest.mark.asyncio
    async def test_list_scans_across_batches(self, store):
        await store.append_scan(make_scan(3, batch_id="A"))
        await store.append_scan(make_scan(1, batch_id="B", status=ScanStatus.NOT_FOUND))

        scans = await store.list_scans(limit=10)

        assert [s.batch_id for s in scans] == ["B", "A"]
        assert scans[0].verification_status == ScanStatus.NOT_FOUND


# =============================================================
# TEST: Failure mapping
# =============================================================

class TestReadFailures:
    """Read failures surface as SourceUnavailableError."""

    @pytest.mark.asyncio
    async def test_get_batch_failure(self):
        factory = MagicMock(side_effect=OperationalError("SELECT", {}, Exception("db down")))
        store = RelationalStore(factory)

        with pytest.raises(SourceUnavailableError) as exc_info:
            await store.get_batch("BATCH-001")
        assert exc_info.value.source_name == "relational_store"

    @pytest.mark.asyncio
    async def test_fetch_scans_failure(self):
        factory = MagicMock(side_effect=OperationalError("SELECT", {}, Exception("db down")))
        store = RelationalStore(factory)

        with pytest.raises(SourceUnavailableError):
            await store.fetch_scans_since("BATCH-001", since=FIXED_NOW - timedelta(hours=1))

    @pytest.mark.asyncio
    async def test_refused_connection_is_unavailable(self):
        store = RelationalStore(MagicMock(side_effect=ConnectionRefusedError(111, "Connection refused")))

        with pytest.raises(SourceUnavailableError) as exc_info:
            await store.get_batch("BATCH-001")
        assert isinstance(exc_info.value.original_error, ConnectionRefusedError)

        with pytest.raises(SourceUnavailableError):
            await store.fetch_scans_since("BATCH-001", since=FIXED_NOW - timedelta(hours=1))

    @pytest.mark.asyncio
    async def test_listings_failure(self):
        factory = MagicMock(side_effect=OperationalError("SELECT", {}, Exception("db down")))
        store = RelationalStore(factory)

        with pytest.raises(SourceUnavailableError):
            await store.list_scans()
        with pytest.raises(SourceUnavailableError):
            await store.list_alerts()
        with pytest.raises(SourceUnavailableError):
            await store.list_audit_logs()


# =============================================================
# TEST: Write failures
# =============================================================

class TestWriteFailures:
    """Write failures surface as DatabasePersistenceError."""

    @pytest.mark.asyncio
    async def test_refused_connection_on_append(self):
        store = RelationalStore(MagicMock(side_effect=ConnectionRefusedError(111, "Connection refused")))

        with pytest.raises(DatabasePersistenceError):
            await store.append_scan(make_scan(1))
        with pytest.raises(DatabasePersistenceError):
            await store.record_audit("batch_verified", "scan", "BATCH-001")


# =============================================================
# TEST: Audit trail
# =============================================================

class TestAuditLogs:
    """Test audit trail listing."""

    @pytest.mark.asyncio
    async def test_list_most_recent_first(self, store):
        await store.record_audit(
            "batch_verified", "scan", "BATCH-001",
            details={"status": "authentic"}, created_at=FIXED_NOW - timedelta(minutes=5),
        )
        await store.save_batch(make_batch())
        await store.recall_batch("BATCH-001", actor_id="regulator-1", reason="Contamination", now=FIXED_NOW)

        entries = await store.list_audit_logs()

        assert [e.action for e in entries] == ["batch_recalled", "batch_verified"]
        assert entries[0].actor_id == "regulator-1"
        assert entries[0].entity_type == "batch"
        assert entries[0].details == {"reason": "Contamination"}
        assert entries[0].created_at == FIXED_NOW
        assert entries[1].details == {"status": "authentic"}

    @pytest.mark.asyncio
    async def test_filter_by_action_and_limit(self, store):
        for minutes in (3, 2, 1):
            await store.record_audit(
                "batch_verified", "scan", f"BATCH-00{minutes}",
                created_at=FIXED_NOW - timedelta(minutes=minutes),
            )
        await store.record_audit("batch_recalled", "batch", "BATCH-009", created_at=FIXED_NOW)

        entries = await store.list_audit_logs(action="batch_verified", limit=2)

        assert [e.entity_id for e in entries] == ["BATCH-001", "BATCH-002"]
