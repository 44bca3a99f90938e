"""
Risk Scoring Engine - Package.

============================================================
PURPOSE
============================================================
Turns the rolling scan history of a batch into a bounded
risk score, a severity bucket and human-readable flags.

============================================================
FOUR RULES
============================================================
1. RAPID_SCANNING: 5+ scans in 10 minutes
2. GEO_VELOCITY: a prior scan >100 km away within 30 minutes
3. EXCESSIVE_REUSE: 15+ scans in 24 hours
4. EXPIRY: the batch is past its expiry date

============================================================
SCORING
============================================================
Contributions are summed and clamped to 0-100.

Classification:
- LOW (0-19)
- MEDIUM (20-44)
- HIGH (45-69)
- CRITICAL (70-100)

Any flag makes the attempt suspicious, whatever the score.

============================================================
"""

from .types import (
    MIN_SCORE,
    MAX_SCORE,
    RiskRule,
    RiskLevel,
    RuleContribution,
    RiskAssessment,
)
from .config import (
    RapidScanConfig,
    GeoVelocityConfig,
    ExcessiveReuseConfig,
    ExpiryConfig,
    RiskScoringConfig,
)
from .assessors import (
    round_half_up,
    haversine_km,
    RapidScanAssessor,
    GeoVelocityAssessor,
    ExcessiveReuseAssessor,
    ExpiryAssessor,
)
from .engine import RiskAssessmentEngine


__all__ = [
    # Types
    "MIN_SCORE",
    "MAX_SCORE",
    "RiskRule",
    "RiskLevel",
    "RuleContribution",
    "RiskAssessment",
    # Config
    "RapidScanConfig",
    "GeoVelocityConfig",
    "ExcessiveReuseConfig",
    "ExpiryConfig",
    "RiskScoringConfig",
    # Assessors
    "round_half_up",
    "haversine_km",
    "RapidScanAssessor",
    "GeoVelocityAssessor",
    "ExcessiveReuseAssessor",
    "ExpiryAssessor",
    # Engine
    "RiskAssessmentEngine",
]
