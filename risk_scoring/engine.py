"""
Risk Scoring Engine - Main Orchestrator.

============================================================
PURPOSE
============================================================
The RiskAssessmentEngine is the main entry point for scoring
a single verification attempt.

It orchestrates:
1. One windowed fetch of the batch's scan history
2. The four rule assessments
3. Score aggregation and clamping
4. Level classification

============================================================
DESIGN PRINCIPLES
============================================================
- Orchestration only, rules live in assessors
- Deterministic: same ledger snapshot + same clock = same result
- Fail-open: an unavailable ledger zeroes the history rules,
  it never fails the verification

============================================================
USAGE
============================================================
    from risk_scoring import RiskAssessmentEngine

    engine = RiskAssessmentEngine(ledger=ScanLedger(store), store=store)
    assessment = await engine.assess("BATCH-001", coords=Coordinates(52.5, 13.4))

    print(f"Risk: {assessment.risk_score} ({assessment.risk_level.value})")

============================================================
"""

import logging
from datetime import date, datetime
from typing import Callable, List, Optional

from core.clock import SystemClock
from core.exceptions import SourceUnavailableError
from core.models import Coordinates
from database.repository import RelationalStore
from database.scan_ledger import ScanLedger, ScanWindow

from .types import RiskAssessment, RuleContribution
from .config import RiskScoringConfig
from .assessors import (
    RapidScanAssessor,
    GeoVelocityAssessor,
    ExcessiveReuseAssessor,
    ExpiryAssessor,
)


logger = logging.getLogger(__name__)


class RiskAssessmentEngine:
    """
    Main orchestrator for the Risk Scoring Engine.

    ============================================================
    RESPONSIBILITIES
    ============================================================
    1. Initialize and configure assessors
    2. Load the scan window once per call
    3. Resolve the expiry date when the caller has none
    4. Run all assessments
    5. Package output

    ============================================================
    """

    def __init__(
        self,
        ledger: ScanLedger,
        config: Optional[RiskScoringConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
        store: Optional[RelationalStore] = None,
    ):
        """
        Initialize the Risk Assessment Engine.

        Args:
            ledger: Scan ledger used for the windowed history
            config: Rule thresholds. Uses defaults if not provided.
            clock: Time source, injected for deterministic tests
            store: Relational store used to look up expiry dates
        """
        self.config = config or RiskScoringConfig()
        self._ledger = ledger
        self._clock = clock or SystemClock()
        self._store = store

        if ledger.span < self.config.widest_window:
            raise ValueError(
                f"Ledger span {ledger.span} is narrower than the widest rule "
                f"window {self.config.widest_window}"
            )

        self._rapid_assessor = RapidScanAssessor(self.config.rapid_scanning)
        self._geo_assessor = GeoVelocityAssessor(self.config.geo_velocity)
        self._reuse_assessor = ExcessiveReuseAssessor(self.config.excessive_reuse)
        self._expiry_assessor = ExpiryAssessor(self.config.expiry)

    async def assess(
        self,
        batch_id: str,
        coords: Optional[Coordinates] = None,
        expiry_date: Optional[date] = None,
    ) -> RiskAssessment:
        """
        Score one verification attempt against the batch history.

        The current attempt is not part of the ledger yet: the
        orchestrator appends it after the verdict. The rapid and
        daily counts add it on top of the ledger rows.

        Args:
            batch_id: Batch being verified
            coords: Where the attempt happens, if known
            expiry_date: Expiry date if the caller already has it

        Returns:
            RiskAssessment with a score in [0, 100]
        """
        now = self._clock()

        # --------------------------------------------------
        # Step 1: One fetch for every windowed rule
        # --------------------------------------------------
        window = await self._load_window(batch_id, now)

        # --------------------------------------------------
        # Step 2: Expiry date
        # --------------------------------------------------
        if expiry_date is None:
            expiry_date = await self._lookup_expiry(batch_id)

        # --------------------------------------------------
        # Step 3: Rules
        # --------------------------------------------------
        contributions: List[RuleContribution] = [
            self._rapid_assessor.assess(window),
            self._geo_assessor.assess(window, coords, now),
            self._reuse_assessor.assess(window),
            self._expiry_assessor.assess(expiry_date, now),
        ]

        assessment = RiskAssessment.from_contributions(contributions)

        if assessment.flags:
            logger.info(
                f"[risk_engine] {batch_id}: score={assessment.risk_score} "
                f"level={assessment.risk_level.value} flags={assessment.flags}"
            )
        else:
            logger.debug(f"[risk_engine] {batch_id}: no anomalies")

        return assessment

    async def _load_window(self, batch_id: str, now: datetime) -> Optional[ScanWindow]:
        try:
            return await self._ledger.fetch_window(batch_id, now=now)
        except SourceUnavailableError as e:
            logger.warning(
                f"[risk_engine] Scan history unavailable for {batch_id}, "
                f"history rules skipped: {e}"
            )
            return None

    async def _lookup_expiry(self, batch_id: str) -> Optional[date]:
        if self._store is None:
            return None
        try:
            record = await self._store.get_batch(batch_id)
        except SourceUnavailableError as e:
            logger.warning(f"[risk_engine] Expiry lookup failed for {batch_id}: {e}")
            return None
        return record.expiry_date if record else None


__all__ = ["RiskAssessmentEngine"]
