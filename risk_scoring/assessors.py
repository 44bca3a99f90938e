"""
Risk Scoring Engine - Assessors.

============================================================
PURPOSE
============================================================
Individual assessors for each detection rule.

Each assessor:
1. Takes the scan window snapshot (and call context)
2. Applies threshold-based logic
3. Returns a RuleContribution with score + flag

============================================================
DESIGN PRINCIPLES
============================================================
- Pure functions: same input = same output
- No I/O: every windowed view is an in-memory filter
  over one pre-fetched snapshot
- Fail-open: a missing snapshot yields a skipped
  contribution of zero, never an exception

============================================================
"""

import math
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Optional

from core.models import Coordinates, expiry_instant
from database.scan_ledger import ScanWindow

from .types import RiskRule, RuleContribution
from .config import (
    RapidScanConfig,
    GeoVelocityConfig,
    ExcessiveReuseConfig,
    ExpiryConfig,
)


# ============================================================
# HELPERS
# ============================================================


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def haversine_km(
    lat1: float,
    lon1: float,
    lat2: float,
    lon2: float,
    radius_km: float = 6371.0,
) -> float:
    """Great-circle distance between two points in kilometres."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return radius_km * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


# ============================================================
# BASE ASSESSOR
# ============================================================


class BaseRuleAssessor(ABC):
    """Abstract base class for rule assessors."""

    @property
    @abstractmethod
    def rule(self) -> RiskRule:
        """Return the rule this assessor handles."""
        pass

    def _skipped(self, reason: str) -> RuleContribution:
        return RuleContribution.skipped(self.rule, reason)

    def _quiet(self, **details) -> RuleContribution:
        return RuleContribution(rule=self.rule, details=details)


# ============================================================
# RAPID SCANNING
# ============================================================


class RapidScanAssessor(BaseRuleAssessor):
    """
    Flags a batch scanned many times within a few minutes.

    Cloned QR codes tend to be scanned in bursts by people
    checking the same counterfeit label.
    """

    def __init__(self, config: Optional[RapidScanConfig] = None):
        self.config = config or RapidScanConfig()

    @property
    def rule(self) -> RiskRule:
        return RiskRule.RAPID_SCANNING

    def assess(
        self,
        window: Optional[ScanWindow],
        current_attempt: bool = True,
    ) -> RuleContribution:
        """
        Count the window plus the attempt being scored, which the
        ledger does not hold yet.
        """
        if window is None:
            return self._skipped("scan history unavailable")

        n = window.count_since(self.config.window) + int(current_attempt)
        if n < self.config.threshold:
            return self._quiet(count=n)

        severity = min(n / self.config.threshold, self.config.severity_cap)
        minutes = int(self.config.window.total_seconds() // 60)

        return RuleContribution(
            rule=self.rule,
            score=round_half_up(severity * self.config.points_per_unit),
            flag=f"Rapid scanning: {n} scans in {minutes} min",
            details={"count": n},
        )


# ============================================================
# GEOGRAPHIC VELOCITY
# ============================================================


class GeoVelocityAssessor(BaseRuleAssessor):
    """
    Flags scans of one batch from places too far apart to
    travel between in the time elapsed.

    Walks the window most-recent-first over scans that carry
    coordinates and stops at the first one beyond the distance
    threshold. The flag reads
    "Geographic anomaly: {d}km apart in {elapsed} min (~{v} km/h)",
    keeping the elapsed minutes the dashboards already display.
    """

    def __init__(self, config: Optional[GeoVelocityConfig] = None):
        self.config = config or GeoVelocityConfig()

    @property
    def rule(self) -> RiskRule:
        return RiskRule.GEO_VELOCITY

    def assess(
        self,
        window: Optional[ScanWindow],
        coords: Optional[Coordinates],
        now: datetime,
    ) -> RuleContribution:
        if coords is None:
            return self._quiet(reason="no coordinates supplied")
        if window is None:
            return self._skipped("scan history unavailable")

        for scan in window.since(self.config.window):
            prior = scan.coordinates
            if prior is None:
                continue

            distance = haversine_km(
                coords.lat, coords.lng, prior.lat, prior.lng,
                radius_km=self.config.earth_radius_km,
            )
            if distance <= self.config.distance_threshold_km:
                continue

            elapsed_min = (now - scan.scanned_at).total_seconds() / 60
            if elapsed_min > 0:
                velocity = distance / (elapsed_min / 60)
                velocity_text = f"~{round_half_up(velocity)} km/h"
            else:
                velocity = None
                velocity_text = "simultaneous"

            return RuleContribution(
                rule=self.rule,
                score=min(round_half_up(distance / self.config.km_per_point), self.config.max_points),
                flag=(
                    f"Geographic anomaly: {round_half_up(distance)}km apart in "
                    f"{round_half_up(elapsed_min)} min ({velocity_text})"
                ),
                details={
                    "distance_km": distance,
                    "elapsed_minutes": elapsed_min,
                    "velocity_kmh": velocity,
                },
            )

        return self._quiet()


# ============================================================
# EXCESSIVE REUSE
# ============================================================


class ExcessiveReuseAssessor(BaseRuleAssessor):
    """Flags a batch verified too many times in a day."""

    def __init__(self, config: Optional[ExcessiveReuseConfig] = None):
        self.config = config or ExcessiveReuseConfig()

    @property
    def rule(self) -> RiskRule:
        return RiskRule.EXCESSIVE_REUSE

    def assess(
        self,
        window: Optional[ScanWindow],
        current_attempt: bool = True,
    ) -> RuleContribution:
        if window is None:
            return self._skipped("scan history unavailable")

        d = window.count_since(self.config.window) + int(current_attempt)
        if d < self.config.threshold:
            return self._quiet(count=d)

        hours = int(self.config.window.total_seconds() // 3600)

        return RuleContribution(
            rule=self.rule,
            score=self.config.points,
            flag=f"Excessive scans: {d} verifications in {hours} hours",
            details={"count": d},
        )


# ============================================================
# EXPIRY
# ============================================================


class ExpiryAssessor(BaseRuleAssessor):
    """Flags a batch whose expiry date has passed."""

    def __init__(self, config: Optional[ExpiryConfig] = None):
        self.config = config or ExpiryConfig()

    @property
    def rule(self) -> RiskRule:
        return RiskRule.EXPIRY

    def assess(self, expiry_date: Optional[date], now: datetime) -> RuleContribution:
        if expiry_date is None:
            return self._quiet(reason="no expiry date")

        if expiry_instant(expiry_date) >= now:
            return self._quiet(expiry_date=expiry_date.isoformat())

        return RuleContribution(
            rule=self.rule,
            score=self.config.points,
            flag=f"Expired medicine: expired on {expiry_date.isoformat()}",
            details={"expiry_date": expiry_date.isoformat()},
        )


__all__ = [
    "round_half_up",
    "haversine_km",
    "BaseRuleAssessor",
    "RapidScanAssessor",
    "GeoVelocityAssessor",
    "ExcessiveReuseAssessor",
    "ExpiryAssessor",
]
