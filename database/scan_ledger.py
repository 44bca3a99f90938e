"""
Scan Ledger - Windowed Queries.

============================================================
PURPOSE
============================================================
Windowed read layer over the append-only scan_logs table.

The risk engine needs three views of one batch's history:
10 minutes, 30 minutes and 24 hours. They are served by ONE
range fetch spanning the widest window; the narrower views
are in-memory filters over that single result set. One round
trip, and all three views come from the same snapshot.

============================================================
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from core.clock import SystemClock
from core.models import ScanEvent
from .repository import RelationalStore


logger = logging.getLogger(__name__)

WIDEST_WINDOW = timedelta(hours=24)


@dataclass(frozen=True)
class ScanWindow:
    """
    One snapshot of a batch's recent scans.

    `events` are ordered most recent first and all fall within
    [as_of - span, as_of].
    """

    batch_id: str
    as_of: datetime
    span: timedelta
    events: List[ScanEvent] = field(default_factory=list)

    def since(self, duration: timedelta) -> List[ScanEvent]:
        """Events within the trailing `duration`, most recent first."""
        if duration > self.span:
            raise ValueError(
                f"Window of {duration} exceeds fetched span of {self.span}"
            )
        cutoff = self.as_of - duration
        return [e for e in self.events if e.scanned_at >= cutoff]

    def count_since(self, duration: timedelta) -> int:
        return len(self.since(duration))

    def __len__(self) -> int:
        return len(self.events)


class ScanLedger:
    """
    Windowed queries over the scan ledger.

    ============================================================
    METHODS
    ============================================================
    - fetch_window: one range fetch covering the widest window
    - count_since / list_since: single-window convenience reads

    ============================================================
    """

    def __init__(
        self,
        store: RelationalStore,
        clock: Optional[Callable[[], datetime]] = None,
        span: timedelta = WIDEST_WINDOW,
    ):
        self._store = store
        self._clock = clock or SystemClock()
        self._span = span

    @property
    def span(self) -> timedelta:
        return self._span

    async def fetch_window(
        self,
        batch_id: str,
        now: Optional[datetime] = None,
    ) -> ScanWindow:
        """
        Fetch the widest window in one query.

        Raises:
            SourceUnavailableError: If the store cannot be queried
        """
        as_of = now or self._clock()
        events = await self._store.fetch_scans_since(
            batch_id,
            since=as_of - self._span,
            until=as_of,
        )
        logger.debug(f"[scan_ledger] {batch_id}: {len(events)} scans in trailing {self._span}")
        return ScanWindow(batch_id=batch_id, as_of=as_of, span=self._span, events=events)

    async def list_since(
        self,
        batch_id: str,
        duration: timedelta,
        now: Optional[datetime] = None,
    ) -> List[ScanEvent]:
        """Scans in the trailing `duration`, most recent first."""
        as_of = now or self._clock()
        return await self._store.fetch_scans_since(
            batch_id,
            since=as_of - duration,
            until=as_of,
        )

    async def count_since(
        self,
        batch_id: str,
        duration: timedelta,
        now: Optional[datetime] = None,
    ) -> int:
        return len(await self.list_since(batch_id, duration, now))


__all__ = ["ScanLedger", "ScanWindow", "WIDEST_WINDOW"]
