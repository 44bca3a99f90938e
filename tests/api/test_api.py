"""
Tests for the HTTP API.

Requests go through httpx's ASGI transport so the app runs on
the same event loop as the in-memory store.
"""

import pytest
from datetime import date, timedelta
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import httpx

from api.main import create_app
from core.exceptions import SourceUnavailableError, ValidationError
from core.models import AlertRecord, BatchRecord, Coordinates
from database.repository import RelationalStore
from risk_scoring.types import RiskAssessment
from verification.types import SourceName, SourceReport, VerificationOutcome, VerificationStatus
from tests.helpers import FIXED_NOW, make_scan


def authentic_outcome(batch_id: str = "BATCH-001") -> VerificationOutcome:
    return VerificationOutcome(
        batch_id=batch_id,
        status=VerificationStatus.AUTHENTIC,
        checked_at=FIXED_NOW,
        record=BatchRecord(batch_id=batch_id, medicine_name="Amoxicillin", expiry_date=date(2027, 6, 1)),
        risk=RiskAssessment.from_contributions([]),
        sources={
            SourceName.REGISTRY: SourceReport.ok(),
            SourceName.METADATA_STORE: SourceReport(),
            SourceName.RELATIONAL_STORE: SourceReport.ok(),
        },
    )


@pytest.fixture
def orchestrator():
    orchestrator = MagicMock()
    orchestrator.verify = AsyncMock(return_value=authentic_outcome())
    orchestrator.close = AsyncMock()
    return orchestrator


@pytest.fixture
async def client(orchestrator, store):
    app = create_app(orchestrator=orchestrator, store=store)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# =============================================================
# TEST: Verify
# =============================================================

class TestVerifyEndpoint:
    """Test POST /verify."""

    @pytest.mark.asyncio
    async def test_verify(self, client, orchestrator):
        response = await client.post("/verify", json={
            "batch_id": "BATCH-001",
            "latitude": 52.52,
            "longitude": 13.405,
            "actor_id": "pharmacist-7",
        })

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["status"] == "authentic"
        assert body["data"]["risk"]["risk_score"] == 0
        assert body["data"]["sources"]["metadata_store"]["consulted"] is False
        assert body["data"]["any_source_answered"] is True

        orchestrator.verify.assert_awaited_once_with(
            "BATCH-001",
            coords=Coordinates(lat=52.52, lng=13.405),
            persist=True,
            actor_id="pharmacist-7",
        )

    @pytest.mark.asyncio
    async def test_inspection_mode_passed_through(self, client, orchestrator):
        await client.post("/verify", json={"batch_id": "BATCH-001", "persist": False})

        assert orchestrator.verify.await_args.kwargs["persist"] is False
        assert orchestrator.verify.await_args.kwargs["coords"] is None

    @pytest.mark.asyncio
    async def test_malformed_batch_id_is_400(self, client, orchestrator):
        orchestrator.verify.side_effect = ValidationError("bad id", field_name="batch_id", value="a b")

        response = await client.post("/verify", json={"batch_id": "a b"})

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"]["type"] == "ValidationError"

    @pytest.mark.asyncio
    async def test_unavailable_source_is_503(self, client, orchestrator):
        orchestrator.verify.side_effect = SourceUnavailableError("down", source_name="relational_store")

        response = await client.post("/verify", json={"batch_id": "BATCH-001"})

        assert response.status_code == 503

    @pytest.mark.asyncio
    async def test_half_coordinate_pair_rejected(self, client, orchestrator):
        response = await client.post("/verify", json={"batch_id": "BATCH-001", "latitude": 10.0})

        assert response.status_code == 422
        orchestrator.verify.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_out_of_range_latitude_rejected(self, client):
        response = await client.post("/verify", json={"batch_id": "BATCH-001", "latitude": 91, "longitude": 0})
        assert response.status_code == 422


# =============================================================
# TEST: Recall
# =============================================================

class TestRecallEndpoint:
    """Test POST /batches/{batch_id}/recall."""

    @pytest.mark.asyncio
    async def test_recall(self, client, store):
        await store.save_batch(BatchRecord(batch_id="BATCH-001"))

        response = await client.post(
            "/batches/BATCH-001/recall",
            json={"actor_id": "regulator-1", "reason": "Contamination"},
        )

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "recalled"
        assert response.json()["data"]["recalled_by"] == "regulator-1"

    @pytest.mark.asyncio
    async def test_recall_unknown_batch_is_404(self, client):
        response = await client.post("/batches/NOPE/recall", json={"actor_id": "regulator-1"})

        assert response.status_code == 404
        assert response.json()["error"]["type"] == "NotFoundError"

    @pytest.mark.asyncio
    async def test_recall_malformed_id_is_400(self, client):
        response = await client.post("/batches/bad!id/recall", json={"actor_id": "regulator-1"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_recall_requires_actor(self, client):
        response = await client.post("/batches/BATCH-001/recall", json={"actor_id": ""})
        assert response.status_code == 422


# =============================================================
# TEST: Alerts and scans
# =============================================================

class TestReadEndpoints:
    """Test alert and scan listings."""

    @pytest.mark.asyncio
    async def test_list_and_resolve_alerts(self, client, store):
        saved = await store.insert_alert(AlertRecord(
            batch_id="BATCH-001",
            alert_type="suspicious_scan",
            severity="high",
            message="Rapid scanning: 12 scans in 10 min",
            risk_score=48,
            created_at=FIXED_NOW,
        ))

        response = await client.get("/alerts")
        assert response.status_code == 200
        assert [a["id"] for a in response.json()["data"]] == [str(saved.id)]

        response = await client.post(f"/alerts/{saved.id}/resolve")
        assert response.status_code == 200

        response = await client.get("/alerts", params={"resolved": "false"})
        assert response.json()["data"] == []

    @pytest.mark.asyncio
    async def test_resolve_unknown_alert_is_404(self, client):
        response = await client.post(f"/alerts/{uuid4()}/resolve")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_list_scans(self, client, store):
        await store.append_scan(make_scan(5, lat=1.0, lng=2.0))

        response = await client.get("/scans", params={"limit": 10})

        assert response.status_code == 200
        data = response.json()["data"]
        assert len(data) == 1
        assert data[0]["verification_status"] == "authentic"
        assert data[0]["latitude"] == 1.0

    @pytest.mark.asyncio
    async def test_root(self, client):
        response = await client.get("/")
        assert response.json()["status"] == "ok"


# =============================================================
# TEST: Audit trail
# =============================================================

class TestAuditLogEndpoint:
    """Test GET /audit-logs."""

    @pytest.mark.asyncio
    async def test_list_audit_logs(self, client, store):
        await store.record_audit(
            "batch_verified", "scan", "BATCH-001",
            details={"status": "authentic"}, created_at=FIXED_NOW - timedelta(minutes=1),
        )
        await store.save_batch(BatchRecord(batch_id="BATCH-001"))
        await client.post("/batches/BATCH-001/recall", json={"actor_id": "regulator-1", "reason": "Contamination"})

        response = await client.get("/audit-logs")

        assert response.status_code == 200
        data = response.json()["data"]
        assert [entry["action"] for entry in data] == ["batch_recalled", "batch_verified"]
        assert data[0]["actor_id"] == "regulator-1"
        assert data[0]["details"] == {"reason": "Contamination"}

    @pytest.mark.asyncio
    async def test_filter_by_action(self, client, store):
        await store.record_audit("batch_verified", "scan", "BATCH-001", created_at=FIXED_NOW)
        await store.record_audit("batch_recalled", "batch", "BATCH-002", created_at=FIXED_NOW)

        response = await client.get("/audit-logs", params={"action": "batch_recalled", "limit": 5})

        data = response.json()["data"]
        assert [entry["entity_id"] for entry in data] == ["BATCH-002"]

    @pytest.mark.asyncio
    async def test_limit_bounds(self, client):
        response = await client.get("/audit-logs", params={"limit": 0})
        assert response.status_code == 422


# =============================================================
# TEST: Store outage
# =============================================================

class TestStoreOutage:
    """Listings over an unreachable database answer 503 with the error envelope."""

    @pytest.fixture
    async def offline_client(self, orchestrator):
        offline = RelationalStore(MagicMock(side_effect=ConnectionRefusedError(111, "Connection refused")))
        app = create_app(orchestrator=orchestrator, store=offline)
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            yield client

    @pytest.mark.parametrize("path", ["/scans", "/alerts", "/audit-logs"])
    @pytest.mark.asyncio
    async def test_listing_is_503(self, offline_client, path):
        response = await offline_client.get(path)

        assert response.status_code == 503
        body = response.json()
        assert body["success"] is False
        assert body["error"]["type"] == "SourceUnavailableError"

    @pytest.mark.asyncio
    async def test_recall_is_503(self, offline_client):
        response = await offline_client.post("/batches/BATCH-001/recall", json={"actor_id": "regulator-1"})

        assert response.status_code == 503
        assert response.json()["success"] is False
