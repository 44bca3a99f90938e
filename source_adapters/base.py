"""
Base Source Adapter - Shared HTTP plumbing for upstream sources.

All adapters MUST:
- Raise SourceUnavailableError for every transport, protocol
  or decoding failure
- Never raise "not found" for a source that failed
- Have no side effects on read
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

import aiohttp

from core.exceptions import SourceUnavailableError


logger = logging.getLogger(__name__)


class BaseSourceAdapter(ABC):
    """
    Abstract base class for HTTP-backed verification sources.

    Features:
    - Lazily created, reusable aiohttp session
    - Optional injected session (owned by the caller)
    - Async context manager for cleanup
    """

    DEFAULT_TIMEOUT = 10.0

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._timeout = timeout
        self._session = session
        self._owns_session = session is None

    @property
    @abstractmethod
    def name(self) -> str:
        """Source name used in logs and SourceUnavailableError."""
        pass

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                headers=self._get_default_headers(),
            )
            self._owns_session = True
        return self._session

    def _get_default_headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "User-Agent": "PharmaShield/1.0",
        }

    def _unavailable(
        self,
        message: str,
        original_error: Optional[Exception] = None,
    ) -> SourceUnavailableError:
        return SourceUnavailableError(
            message,
            source_name=self.name,
            original_error=original_error,
        )

    async def _request_json(
        self,
        method: str,
        url: str,
        json_body: Optional[dict[str, Any]] = None,
    ) -> Any:
        """Make HTTP request and decode the JSON body."""
        session = await self._get_session()

        try:
            async with session.request(method, url, json=json_body) as response:
                if response.status >= 400:
                    body = await response.text()
                    raise self._unavailable(f"HTTP {response.status} from {url}: {body[:200]}")
                return await response.json(content_type=None)

        except aiohttp.ClientError as e:
            raise self._unavailable(f"Connection error for {url}: {e}", e) from e
        except ValueError as e:
            raise self._unavailable(f"Malformed JSON from {url}", e) from e

    async def close(self) -> None:
        """Close resources."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "BaseSourceAdapter":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name={self.name})>"
