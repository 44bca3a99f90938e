"""
Tests for the registry client.

Tests cover:
- ABI calldata encoding
- Return data decoding
- Unconfigured registry
- RPC failures mapped to SourceUnavailableError
"""

import asyncio
import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

from eth_abi import encode
from eth_utils import keccak, to_checksum_address

from core.exceptions import SourceUnavailableError
from source_adapters.registry_client import (
    RegistryClient,
    VERIFY_SELECTOR,
    decode_verify_result,
    encode_verify_call,
)


CONTRACT = "0x" + "ab" * 20
OWNER = "0x" + "12" * 20
CREATED_AT = 1767225600  # 2026-01-01T00:00:00Z


def verify_return(exists=True, owner=OWNER, ipfs_hash="QmMetadataHash", created_at=CREATED_AT) -> str:
    data = encode(["bool", "address", "string", "uint256"], [exists, owner, ipfs_hash, created_at])
    return "0x" + data.hex()


# =============================================================
# TEST: ABI encoding
# =============================================================

class TestEncoding:
    """Test calldata and return data handling."""

    def test_selector(self):
        assert VERIFY_SELECTOR == keccak(text="verifyBatch(string)")[:4]
        assert len(VERIFY_SELECTOR) == 4

    def test_encode_verify_call(self):
        calldata = encode_verify_call("BATCH-001")

        assert calldata.startswith("0x" + VERIFY_SELECTOR.hex())
        assert calldata[10:] == encode(["string"], ["BATCH-001"]).hex()

    def test_decode_existing_batch(self):
        record = decode_verify_result("BATCH-001", verify_return())

        assert record.exists
        assert record.owner == to_checksum_address(OWNER)
        assert record.metadata_hash == "QmMetadataHash"
        assert record.created_at == datetime(2026, 1, 1, tzinfo=timezone.utc)

    def test_decode_missing_batch(self):
        record = decode_verify_result("BATCH-404", verify_return(exists=False, owner="0x" + "00" * 20, ipfs_hash="", created_at=0))

        assert not record.exists
        assert record.owner is None
        assert record.metadata_hash is None

    def test_zero_owner_and_empty_hash(self):
        record = decode_verify_result("BATCH-001", verify_return(owner="0x" + "00" * 20, ipfs_hash="", created_at=0))

        assert record.exists
        assert record.owner is None
        assert record.metadata_hash is None
        assert record.created_at is None

    def test_empty_return_data_rejected(self):
        with pytest.raises(ValueError):
            decode_verify_result("BATCH-001", "0x")

    def test_truncated_return_data_rejected(self):
        with pytest.raises(ValueError):
            decode_verify_result("BATCH-001", verify_return()[:70])


# =============================================================
# TEST: Client
# =============================================================

class TestRegistryClient:
    """Test RegistryClient.verify."""

    @pytest.mark.asyncio
    async def test_unconfigured_registry_is_unavailable(self):
        client = RegistryClient(contract_address=None)

        assert not client.is_configured
        with pytest.raises(SourceUnavailableError) as exc_info:
            await client.verify("BATCH-001")
        assert exc_info.value.source_name == "registry"

    def test_invalid_address_means_unconfigured(self):
        assert not RegistryClient(contract_address="not-an-address").is_configured

    @pytest.mark.asyncio
    async def test_verify_sends_eth_call(self):
        client = RegistryClient(contract_address=CONTRACT, rpc_url="http://rpc.local")

        with patch.object(
            client, "_request_json",
            new=AsyncMock(return_value={"jsonrpc": "2.0", "id": 1, "result": verify_return()}),
        ) as request:
            record = await client.verify("BATCH-001")

        assert record.exists
        method, url = request.await_args.args
        payload = request.await_args.kwargs["json_body"]
        assert (method, url) == ("POST", "http://rpc.local")
        assert payload["method"] == "eth_call"
        assert payload["params"][0]["to"] == to_checksum_address(CONTRACT)
        assert payload["params"][0]["data"] == encode_verify_call("BATCH-001")
        assert payload["params"][1] == "latest"

    @pytest.mark.asyncio
    async def test_rpc_error_is_unavailable(self):
        client = RegistryClient(contract_address=CONTRACT)

        with patch.object(
            client, "_request_json",
            new=AsyncMock(return_value={"jsonrpc": "2.0", "id": 1, "error": {"code": -32000, "message": "execution reverted"}}),
        ):
            with pytest.raises(SourceUnavailableError, match="execution reverted"):
                await client.verify("BATCH-001")

    @pytest.mark.asyncio
    async def test_missing_result_is_unavailable(self):
        client = RegistryClient(contract_address=CONTRACT)

        with patch.object(client, "_request_json", new=AsyncMock(return_value={"jsonrpc": "2.0", "id": 1})):
            with pytest.raises(SourceUnavailableError):
                await client.verify("BATCH-001")

    @pytest.mark.asyncio
    async def test_undecodable_result_is_unavailable(self):
        client = RegistryClient(contract_address=CONTRACT)

        with patch.object(client, "_request_json", new=AsyncMock(return_value={"result": "0x"})):
            with pytest.raises(SourceUnavailableError):
                await client.verify("BATCH-001")

    @pytest.mark.asyncio
    async def test_timeout_is_unavailable(self):
        client = RegistryClient(contract_address=CONTRACT, timeout=0.01)

        async def slow_call(data):
            await asyncio.sleep(1)

        with patch.object(client, "_eth_call", new=slow_call):
            with pytest.raises(SourceUnavailableError, match="timed out"):
                await client.verify("BATCH-001")

    @pytest.mark.asyncio
    async def test_transport_failure_is_unavailable(self):
        client = RegistryClient(contract_address=CONTRACT)
        failure = SourceUnavailableError("Connection error", source_name="registry")

        with patch.object(client, "_request_json", new=AsyncMock(side_effect=failure)):
            with pytest.raises(SourceUnavailableError):
                await client.verify("BATCH-001")
