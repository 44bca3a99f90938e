"""
Risk Scoring Engine - Type Definitions.

============================================================
PURPOSE
============================================================
Data contracts for the Risk Scoring Engine.

This module defines the enums and dataclasses used by the
scan-history risk engine: the per-rule contribution, the
final bounded assessment and the severity bucket.

============================================================
DESIGN PRINCIPLES
============================================================
- All types are immutable
- Enums for discrete values
- Score is an integer in [0, 100]
- Level is derived from the score, never set independently

============================================================
RISK RULES
============================================================
The engine evaluates exactly four independent rules:

1. RAPID_SCANNING - many scans in a short window
2. GEO_VELOCITY - physically impossible travel between scans
3. EXCESSIVE_REUSE - too many scans in a day
4. EXPIRY - the batch is past its expiry date

Contributions are summed and clamped to [0, 100].

============================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


MIN_SCORE = 0
MAX_SCORE = 100


# ============================================================
# ENUMS
# ============================================================


class RiskRule(str, Enum):
    """The four detection rules evaluated by the engine."""

    RAPID_SCANNING = "rapid_scanning"
    GEO_VELOCITY = "geo_velocity"
    EXCESSIVE_REUSE = "excessive_reuse"
    EXPIRY = "expiry"

    @classmethod
    def all_rules(cls) -> List["RiskRule"]:
        """Return all rules in evaluation order."""
        return [cls.RAPID_SCANNING, cls.GEO_VELOCITY, cls.EXCESSIVE_REUSE, cls.EXPIRY]


class RiskLevel(str, Enum):
    """
    Severity bucket derived from the risk score.

    Score Range:
    - LOW: 0-19
    - MEDIUM: 20-44
    - HIGH: 45-69
    - CRITICAL: 70-100
    """

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @classmethod
    def from_score(cls, score: int) -> "RiskLevel":
        """
        Classify risk level from a score.

        Args:
            score: Risk score (0-100)

        Returns:
            Appropriate RiskLevel classification
        """
        if score >= 70:
            return cls.CRITICAL
        elif score >= 45:
            return cls.HIGH
        elif score >= 20:
            return cls.MEDIUM
        return cls.LOW


# ============================================================
# RULE OUTPUT
# ============================================================


@dataclass(frozen=True)
class RuleContribution:
    """
    Outcome of one rule.

    A rule that did not fire has score 0 and no flag.
    A rule that could not be evaluated (its input failed to
    load) is marked `evaluated=False` and contributes 0.
    """

    rule: RiskRule
    score: int = 0
    flag: Optional[str] = None
    evaluated: bool = True
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def triggered(self) -> bool:
        return self.flag is not None

    @classmethod
    def skipped(cls, rule: RiskRule, reason: str) -> "RuleContribution":
        return cls(rule=rule, evaluated=False, details={"skipped": reason})


# ============================================================
# OUTPUT DATA CONTRACT
# ============================================================


@dataclass(frozen=True)
class RiskAssessment:
    """
    Final bounded risk assessment for one verification attempt.

    ============================================================
    SUSPICION SEMANTICS
    ============================================================
    `is_suspicious` is true whenever ANY rule produced a flag,
    regardless of the numeric score. A single low-weight rule
    is enough to move a verdict away from authentic.

    ============================================================
    """

    risk_score: int
    risk_level: RiskLevel
    flags: List[str] = field(default_factory=list)
    is_suspicious: bool = False
    contributions: List[RuleContribution] = field(default_factory=list)

    @classmethod
    def from_contributions(cls, contributions: List[RuleContribution]) -> "RiskAssessment":
        """Sum, clamp and classify rule contributions."""
        total = sum(c.score for c in contributions)
        score = max(MIN_SCORE, min(MAX_SCORE, total))
        flags = [c.flag for c in contributions if c.flag]

        return cls(
            risk_score=score,
            risk_level=RiskLevel.from_score(score),
            flags=flags,
            is_suspicious=len(flags) > 0,
            contributions=list(contributions),
        )

    @property
    def degraded_rules(self) -> List[RiskRule]:
        """Rules that failed open because their input was unavailable."""
        return [c.rule for c in self.contributions if not c.evaluated]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "risk_score": self.risk_score,
            "risk_level": self.risk_level.value,
            "flags": list(self.flags),
            "is_suspicious": self.is_suspicious,
            "degraded_rules": [r.value for r in self.degraded_rules],
        }


__all__ = [
    "MIN_SCORE",
    "MAX_SCORE",
    "RiskRule",
    "RiskLevel",
    "RuleContribution",
    "RiskAssessment",
]
