"""
Metadata Store - Content-addressed batch metadata over IPFS gateways.

The same document is reachable through several public gateways.
All mirrors are raced concurrently, each attempt bounded by its
own timeout; the first well-formed JSON document wins and the
remaining attempts are cancelled.
"""

import logging
from typing import Optional, Sequence

import aiohttp

from core.race import RaceExhaustedError, race_with_timeout
from source_adapters.base import BaseSourceAdapter
from source_adapters.models import MetadataDocument


logger = logging.getLogger(__name__)

DEFAULT_GATEWAYS = (
    "https://gateway.pinata.cloud/ipfs/{hash}",
    "https://ipfs.io/ipfs/{hash}",
    "https://cloudflare-ipfs.com/ipfs/{hash}",
)

DEFAULT_MIRROR_TIMEOUT = 10.0


class MetadataStore(BaseSourceAdapter):
    """
    Resolves a content hash to a MetadataDocument.

    Gateways are URL templates with a `{hash}` placeholder.
    """

    SOURCE_NAME = "metadata_store"

    def __init__(
        self,
        gateways: Sequence[str] = DEFAULT_GATEWAYS,
        timeout: float = DEFAULT_MIRROR_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        super().__init__(timeout=timeout, session=session)
        if not gateways:
            raise ValueError("At least one gateway is required")
        self._gateways = tuple(gateways)

    @property
    def name(self) -> str:
        return self.SOURCE_NAME

    @property
    def gateways(self) -> tuple[str, ...]:
        return self._gateways

    def mirror_urls(self, content_hash: str) -> list[str]:
        return [gateway.format(hash=content_hash) for gateway in self._gateways]

    async def get(self, content_hash: str) -> MetadataDocument:
        """
        Fetch and parse the metadata document.

        Raises:
            SourceUnavailableError: If no mirror returned a well-formed document
        """
        if not content_hash:
            raise self._unavailable("Empty content hash")

        urls = self.mirror_urls(content_hash)
        attempts = [lambda url=url: self._fetch_from(url) for url in urls]

        try:
            document = await race_with_timeout(attempts, per_attempt_timeout=self._timeout)
        except RaceExhaustedError as e:
            logger.warning(f"[{self.name}] All {len(urls)} mirrors failed for {content_hash}")
            raise self._unavailable(
                f"No mirror returned metadata for {content_hash}: {e.context['errors']}",
                e,
            ) from e

        logger.debug(f"[{self.name}] Resolved {content_hash}")
        return document

    async def _fetch_from(self, url: str) -> MetadataDocument:
        payload = await self._request_json("GET", url)
        try:
            return MetadataDocument.from_json(payload)
        except ValueError as e:
            raise self._unavailable(f"Malformed metadata from {url}", e) from e


__all__ = ["DEFAULT_GATEWAYS", "DEFAULT_MIRROR_TIMEOUT", "MetadataStore"]
