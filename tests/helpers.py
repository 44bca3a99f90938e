"""
Builders shared across test modules.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional

from core.models import ScanEvent, ScanStatus
from database.scan_ledger import ScanWindow, WIDEST_WINDOW


FIXED_NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_scan(
    minutes_ago: float,
    batch_id: str = "BATCH-001",
    lat: Optional[float] = None,
    lng: Optional[float] = None,
    now: datetime = FIXED_NOW,
    status: ScanStatus = ScanStatus.AUTHENTIC,
) -> ScanEvent:
    return ScanEvent(
        batch_id=batch_id,
        verification_status=status,
        scanned_at=now - timedelta(minutes=minutes_ago),
        latitude=lat,
        longitude=lng,
    )


def make_window(
    events: List[ScanEvent],
    batch_id: str = "BATCH-001",
    now: datetime = FIXED_NOW,
) -> ScanWindow:
    ordered = sorted(events, key=lambda e: e.scanned_at, reverse=True)
    return ScanWindow(batch_id=batch_id, as_of=now, span=WIDEST_WINDOW, events=ordered)
