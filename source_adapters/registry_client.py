"""
Registry Client - Read-only access to the batch registry contract.

Calls `verifyBatch(string)` on the registry contract through a
plain JSON-RPC `eth_call`:

    verifyBatch(string batchId)
        returns (bool exists, address currentOwner,
                 string ipfsHash, uint256 createdAt)

Encoding and decoding follow the Solidity ABI (eth-abi). The
default endpoint is the public Sepolia node.
"""

import asyncio
import logging
from datetime import datetime, timezone
from itertools import count
from typing import Any, Optional

import aiohttp
from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import is_address, keccak, to_checksum_address

from source_adapters.base import BaseSourceAdapter
from source_adapters.models import OwnershipRecord


logger = logging.getLogger(__name__)

DEFAULT_RPC_URL = "https://ethereum-sepolia-rpc.publicnode.com"

VERIFY_SIGNATURE = "verifyBatch(string)"
VERIFY_SELECTOR = keccak(text=VERIFY_SIGNATURE)[:4]
VERIFY_OUTPUT_TYPES = ["bool", "address", "string", "uint256"]

ZERO_ADDRESS = "0x" + "0" * 40


def encode_verify_call(batch_id: str) -> str:
    """Calldata for verifyBatch(batch_id) as a 0x-prefixed hex string."""
    return "0x" + (VERIFY_SELECTOR + encode(["string"], [batch_id])).hex()


def decode_verify_result(batch_id: str, result_hex: str) -> OwnershipRecord:
    """
    Decode the return data of verifyBatch.

    Raises:
        ValueError: If the return data is not valid ABI output
    """
    raw = bytes.fromhex(result_hex[2:] if result_hex.startswith("0x") else result_hex)
    if not raw:
        raise ValueError("Empty return data (no contract at address?)")

    try:
        exists, owner, ipfs_hash, created_at = decode(VERIFY_OUTPUT_TYPES, raw)
    except DecodingError as e:
        raise ValueError(f"Undecodable return data: {e}") from e

    if not exists:
        return OwnershipRecord(batch_id=batch_id, exists=False)

    return OwnershipRecord(
        batch_id=batch_id,
        exists=True,
        owner=None if owner.lower() == ZERO_ADDRESS else to_checksum_address(owner),
        metadata_hash=ipfs_hash or None,
        created_at=datetime.fromtimestamp(created_at, tz=timezone.utc) if created_at else None,
    )


class RegistryClient(BaseSourceAdapter):
    """
    Authoritative ownership ledger.

    A missing or malformed contract address means the registry
    is not configured: every call raises SourceUnavailableError
    so the orchestrator degrades to the remaining sources.
    """

    SOURCE_NAME = "registry"

    def __init__(
        self,
        contract_address: Optional[str],
        rpc_url: str = DEFAULT_RPC_URL,
        timeout: float = BaseSourceAdapter.DEFAULT_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        super().__init__(timeout=timeout, session=session)
        self._rpc_url = rpc_url
        self._contract_address = (
            to_checksum_address(contract_address)
            if contract_address and is_address(contract_address)
            else None
        )
        self._request_ids = count(1)

        if contract_address and self._contract_address is None:
            logger.warning(f"[{self.name}] Ignoring invalid contract address: {contract_address!r}")

    @property
    def name(self) -> str:
        return self.SOURCE_NAME

    @property
    def is_configured(self) -> bool:
        return self._contract_address is not None

    async def verify(self, batch_id: str) -> OwnershipRecord:
        """
        Look up a batch in the registry.

        Returns:
            OwnershipRecord, with exists=False when the registry
            has no such batch

        Raises:
            SourceUnavailableError: On any RPC, transport or decoding failure
        """
        if not self.is_configured:
            raise self._unavailable("Registry contract address not configured")

        try:
            result_hex = await asyncio.wait_for(
                self._eth_call(encode_verify_call(batch_id)),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            raise self._unavailable(f"eth_call timed out after {self._timeout}s", e) from e

        try:
            record = decode_verify_result(batch_id, result_hex)
        except ValueError as e:
            raise self._unavailable(f"Cannot decode verifyBatch result for {batch_id}", e) from e

        logger.debug(
            f"[{self.name}] {batch_id}: exists={record.exists} "
            f"owner={record.owner} hash={record.metadata_hash}"
        )
        return record

    async def _eth_call(self, data: str) -> str:
        """Issue eth_call against the latest block and return the result hex."""
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._request_ids),
            "method": "eth_call",
            "params": [{"to": self._contract_address, "data": data}, "latest"],
        }
        response: Any = await self._request_json("POST", self._rpc_url, json_body=payload)

        if not isinstance(response, dict):
            raise self._unavailable(f"Unexpected RPC response: {response!r}"[:200])
        if "error" in response:
            error = response.get("error") or {}
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            raise self._unavailable(f"RPC error: {message}")

        result = response.get("result")
        if not isinstance(result, str):
            raise self._unavailable(f"RPC response has no result: {response!r}"[:200])
        return result


__all__ = [
    "DEFAULT_RPC_URL",
    "VERIFY_SELECTOR",
    "encode_verify_call",
    "decode_verify_result",
    "RegistryClient",
]
