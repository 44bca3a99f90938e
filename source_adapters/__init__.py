"""
Source Adapters - Upstream verification sources.

Independent, partially trustworthy sources consulted by the
verification orchestrator:

- RegistryClient: authoritative ownership ledger (contract read)
- MetadataStore: content-addressed batch metadata (IPFS mirrors)

Every failure surfaces as SourceUnavailableError. A definitive
"no such batch" answer is a normal return value, never an error.
"""

from source_adapters.base import BaseSourceAdapter
from source_adapters.models import MetadataDocument, OwnershipRecord
from source_adapters.registry_client import DEFAULT_RPC_URL, RegistryClient
from source_adapters.metadata_store import DEFAULT_GATEWAYS, MetadataStore


__all__ = [
    "BaseSourceAdapter",
    "MetadataDocument",
    "OwnershipRecord",
    "DEFAULT_RPC_URL",
    "RegistryClient",
    "DEFAULT_GATEWAYS",
    "MetadataStore",
]
