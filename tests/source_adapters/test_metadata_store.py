"""
Tests for the metadata store and its document model.

Tests cover:
- Parsing camelCase metadata documents
- Mirror racing (first success wins, failures skipped)
- All mirrors failing maps to SourceUnavailableError
"""

import asyncio
import pytest
from datetime import date
from unittest.mock import AsyncMock, patch

from core.exceptions import SourceUnavailableError
from source_adapters.metadata_store import DEFAULT_GATEWAYS, MetadataStore
from source_adapters.models import MetadataDocument


GATEWAYS = (
    "https://slow.example/ipfs/{hash}",
    "https://fast.example/ipfs/{hash}",
    "https://broken.example/ipfs/{hash}",
)

DOCUMENT = {
    "medicineName": "Amoxicillin",
    "manufacturer": "Acme Pharma",
    "expiryDate": "2027-06-01",
    "manufacturingDate": "2025-06-01T08:00:00Z",
    "dosage": "250mg",
    "countryOrigin": "DE",
    "batchId": "BATCH-001",
}


# =============================================================
# TEST: MetadataDocument
# =============================================================

class TestMetadataDocument:
    """Test document parsing."""

    def test_from_json(self):
        doc = MetadataDocument.from_json(DOCUMENT)

        assert doc.medicine_name == "Amoxicillin"
        assert doc.expiry_date == date(2027, 6, 1)
        assert doc.manufacturing_date == date(2025, 6, 1)
        assert doc.country_origin == "DE"

    def test_missing_fields_are_none(self):
        doc = MetadataDocument.from_json({"medicineName": "  "})

        assert doc.medicine_name is None
        assert doc.expiry_date is None

    def test_bad_date_is_ignored(self):
        doc = MetadataDocument.from_json({"expiryDate": "soon"})
        assert doc.expiry_date is None

    @pytest.mark.parametrize("payload", [[], "text", None, 42])
    def test_non_object_rejected(self, payload):
        with pytest.raises(ValueError):
            MetadataDocument.from_json(payload)

    def test_to_dict_uses_wire_names(self):
        data = MetadataDocument.from_json(DOCUMENT).to_dict()

        assert data["medicineName"] == "Amoxicillin"
        assert data["manufacturingDate"] == "2025-06-01"


# =============================================================
# TEST: MetadataStore
# =============================================================

class TestMetadataStore:
    """Test mirror racing."""

    def test_default_gateways(self):
        store = MetadataStore()
        assert store.gateways == DEFAULT_GATEWAYS
        assert store.mirror_urls("QmX")[1] == "https://ipfs.io/ipfs/QmX"

    def test_empty_gateway_list_rejected(self):
        with pytest.raises(ValueError):
            MetadataStore(gateways=())

    @pytest.mark.asyncio
    async def test_fastest_mirror_wins(self):
        store = MetadataStore(gateways=GATEWAYS, timeout=1.0)
        calls = []

        async def fake_request(method, url, json_body=None):
            calls.append(url)
            if "slow" in url:
                await asyncio.sleep(5)
                return {"medicineName": "Slow"}
            if "broken" in url:
                raise SourceUnavailableError("HTTP 502", source_name="metadata_store")
            return DOCUMENT

        with patch.object(store, "_request_json", new=fake_request):
            doc = await store.get("QmHash")

        assert doc.medicine_name == "Amoxicillin"
        assert len(calls) == 3
        assert "https://fast.example/ipfs/QmHash" in calls

    @pytest.mark.asyncio
    async def test_malformed_document_falls_through(self):
        store = MetadataStore(gateways=GATEWAYS[1:], timeout=1.0)

        async def fake_request(method, url, json_body=None):
            if "fast" in url:
                return ["not", "an", "object"]
            await asyncio.sleep(0.01)
            return DOCUMENT

        with patch.object(store, "_request_json", new=fake_request):
            doc = await store.get("QmHash")

        assert doc.batch_id == "BATCH-001"

    @pytest.mark.asyncio
    async def test_all_mirrors_failing_is_unavailable(self):
        store = MetadataStore(gateways=GATEWAYS, timeout=0.05)

        async def fake_request(method, url, json_body=None):
            if "slow" in url:
                await asyncio.sleep(1)
            raise SourceUnavailableError("HTTP 504", source_name="metadata_store")

        with patch.object(store, "_request_json", new=fake_request):
            with pytest.raises(SourceUnavailableError) as exc_info:
                await store.get("QmHash")

        assert exc_info.value.source_name == "metadata_store"

    @pytest.mark.asyncio
    async def test_empty_hash_is_unavailable(self):
        store = MetadataStore()
        store._request_json = AsyncMock()

        with pytest.raises(SourceUnavailableError):
            await store.get("")
        store._request_json.assert_not_awaited()
