"""
Risk Scoring Engine - Configuration.

============================================================
PURPOSE
============================================================
Defines the configuration dataclasses and threshold values
for the scan-history risk engine.

============================================================
DESIGN PRINCIPLES
============================================================
- One frozen dataclass per rule
- Windows expressed as timedelta
- Every threshold documented
- Immutable configurations

============================================================
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict


# ============================================================
# RAPID SCANNING
# ============================================================


@dataclass(frozen=True)
class RapidScanConfig:
    """
    Configuration for the rapid scanning rule.

    ============================================================
    SCORING
    ============================================================
    n = scans in the trailing window
    n >= threshold contributes round(min(n / threshold, cap) * points)

    With defaults: 5 scans -> 20, 10 scans -> 40, 15+ scans -> 60.

    ============================================================
    """

    window: timedelta = timedelta(minutes=10)
    threshold: int = 5                 # Fire at 5+ scans
    severity_cap: float = 3.0          # Ratio is capped at 3x threshold
    points_per_unit: int = 20          # Points per threshold multiple

    def to_dict(self) -> Dict[str, Any]:
        return {
            "window_seconds": self.window.total_seconds(),
            "threshold": self.threshold,
            "severity_cap": self.severity_cap,
            "points_per_unit": self.points_per_unit,
        }


# ============================================================
# GEOGRAPHIC VELOCITY
# ============================================================


@dataclass(frozen=True)
class GeoVelocityConfig:
    """
    Configuration for the geographic velocity rule.

    ============================================================
    SCORING
    ============================================================
    The first prior scan in the window whose coordinates lie
    strictly more than `distance_threshold_km` away contributes
    min(round(distance / km_per_point), max_points).

    ============================================================
    """

    window: timedelta = timedelta(minutes=30)
    distance_threshold_km: float = 100.0   # Strictly greater than
    km_per_point: float = 50.0
    max_points: int = 40
    earth_radius_km: float = 6371.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "window_seconds": self.window.total_seconds(),
            "distance_threshold_km": self.distance_threshold_km,
            "km_per_point": self.km_per_point,
            "max_points": self.max_points,
            "earth_radius_km": self.earth_radius_km,
        }


# ============================================================
# EXCESSIVE REUSE
# ============================================================


@dataclass(frozen=True)
class ExcessiveReuseConfig:
    """Configuration for the excessive reuse (duplicate QR) rule."""

    window: timedelta = timedelta(hours=24)
    threshold: int = 15                # Fire at 15+ scans per day
    points: int = 15                   # Flat contribution

    def to_dict(self) -> Dict[str, Any]:
        return {
            "window_seconds": self.window.total_seconds(),
            "threshold": self.threshold,
            "points": self.points,
        }


# ============================================================
# EXPIRY
# ============================================================


@dataclass(frozen=True)
class ExpiryConfig:
    """Configuration for the expired medicine rule."""

    points: int = 25                   # Flat contribution

    def to_dict(self) -> Dict[str, Any]:
        return {"points": self.points}


# ============================================================
# MASTER CONFIGURATION
# ============================================================


@dataclass(frozen=True)
class RiskScoringConfig:
    """
    Master configuration for the Risk Scoring Engine.

    Aggregates all rule configs and engine settings.
    """

    rapid_scanning: RapidScanConfig = field(default_factory=RapidScanConfig)
    geo_velocity: GeoVelocityConfig = field(default_factory=GeoVelocityConfig)
    excessive_reuse: ExcessiveReuseConfig = field(default_factory=ExcessiveReuseConfig)
    expiry: ExpiryConfig = field(default_factory=ExpiryConfig)

    engine_version: str = "1.0.0"

    @property
    def widest_window(self) -> timedelta:
        """Span the ledger must fetch so every rule can filter in memory."""
        return max(
            self.rapid_scanning.window,
            self.geo_velocity.window,
            self.excessive_reuse.window,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rapid_scanning": self.rapid_scanning.to_dict(),
            "geo_velocity": self.geo_velocity.to_dict(),
            "excessive_reuse": self.excessive_reuse.to_dict(),
            "expiry": self.expiry.to_dict(),
            "engine_version": self.engine_version,
        }


__all__ = [
    "RapidScanConfig",
    "GeoVelocityConfig",
    "ExcessiveReuseConfig",
    "ExpiryConfig",
    "RiskScoringConfig",
]
