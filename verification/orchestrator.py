"""
Verification Orchestrator.

============================================================
PURPOSE
============================================================
Reconciles the independent batch sources into one verdict:

1. Validate the batch id (before any I/O)
2. Read the registry and the relational store concurrently
3. Resolve metadata through the registry's content hash
4. Merge field by field (metadata over relational)
5. Score the attempt against the scan history
6. Record the scan, then alert if the score warrants it

============================================================
DEGRADATION
============================================================
Every source may fail independently. A failed source is
logged and reported in `outcome.sources`; the verdict is
built from whatever answered. Writes happen after the verdict
and never change it.

============================================================
USAGE
============================================================
    from verification import verify_batch

    outcome = await verify_batch("BATCH-001", coords=Coordinates(52.5, 13.4))
    print(outcome.status.value, outcome.risk.risk_score)

============================================================
"""

import asyncio
import logging
import re
from datetime import datetime
from typing import Callable, Optional, Tuple

from core.clock import SystemClock
from core.exceptions import SourceUnavailableError, ValidationError
from core.models import (
    BatchRecord,
    BatchStatus,
    Coordinates,
    ScanEvent,
    ScanStatus,
    effective_status,
)
from database.engine import (
    DatabasePersistenceError,
    create_database_engine,
    create_session_factory,
)
from database.repository import RelationalStore
from database.scan_ledger import ScanLedger
from risk_scoring.engine import RiskAssessmentEngine
from risk_scoring.types import RiskAssessment
from source_adapters.metadata_store import MetadataStore
from source_adapters.models import MetadataDocument, OwnershipRecord
from source_adapters.registry_client import RegistryClient

from .alerting import (
    AlertEmitter,
    CompositeAlertEmitter,
    RepositoryAlertEmitter,
    TelegramAlertSender,
    build_risk_alert,
)
from .config import ALERT_SCORE_THRESHOLD, VerificationConfig
from .types import SourceName, SourceReport, VerificationOutcome, VerificationStatus


logger = logging.getLogger(__name__)

BATCH_ID_PATTERN = re.compile(r"[A-Za-z0-9._:-]{1,64}")


def validate_batch_id(batch_id: object) -> str:
    """
    Normalize and validate a batch identifier.

    Surrounding whitespace is stripped. What remains must be
    1-64 characters of letters, digits, '.', '_', ':' or '-'.

    Raises:
        ValidationError: If the identifier is malformed
    """
    if not isinstance(batch_id, str):
        raise ValidationError("Batch id must be a string", field_name="batch_id", value=batch_id)

    candidate = batch_id.strip()
    if not BATCH_ID_PATTERN.fullmatch(candidate):
        raise ValidationError(
            "Batch id must be 1-64 characters of letters, digits, '.', '_', ':' or '-'",
            field_name="batch_id",
            value=batch_id,
        )
    return candidate


def merge_record(
    batch_id: str,
    record: Optional[BatchRecord],
    metadata: Optional[MetadataDocument],
) -> BatchRecord:
    """Metadata fields override relational ones; absent fields fall back."""
    base = record or BatchRecord(batch_id=batch_id)
    if metadata is None:
        return base

    return base.with_overrides(
        medicine_name=metadata.medicine_name,
        manufacturer_name=metadata.manufacturer,
        dosage=metadata.dosage,
        country_of_origin=metadata.country_origin,
        manufacturing_date=metadata.manufacturing_date,
        expiry_date=metadata.expiry_date,
    )


class VerificationOrchestrator:
    """
    Main entry point for batch verification.

    ============================================================
    COLLABORATORS
    ============================================================
    - registry: RegistryClient (optional, None = not configured)
    - metadata_store: MetadataStore (optional)
    - store: RelationalStore (batch lookup, scan ledger, audit)
    - risk_engine: RiskAssessmentEngine
    - alert_emitter: AlertEmitter (optional)

    ============================================================
    """

    def __init__(
        self,
        store: RelationalStore,
        risk_engine: RiskAssessmentEngine,
        registry: Optional[RegistryClient] = None,
        metadata_store: Optional[MetadataStore] = None,
        alert_emitter: Optional[AlertEmitter] = None,
        clock: Optional[Callable[[], datetime]] = None,
        alert_score_threshold: int = ALERT_SCORE_THRESHOLD,
    ):
        self._store = store
        self._risk_engine = risk_engine
        self._registry = registry
        self._metadata_store = metadata_store
        self._alert_emitter = alert_emitter
        self._clock = clock or SystemClock()
        self._alert_score_threshold = alert_score_threshold

    async def verify(
        self,
        batch_id: str,
        coords: Optional[Coordinates] = None,
        persist: bool = True,
        actor_id: Optional[str] = None,
    ) -> VerificationOutcome:
        """
        Verify one batch.

        Args:
            batch_id: Identifier presented by the caller
            coords: Where the attempt happens, if known
            persist: Record the scan and emit alerts. False is
                     inspection mode: nothing is written.
            actor_id: Authenticated scanner, if any

        Returns:
            VerificationOutcome

        Raises:
            ValidationError: If batch_id is malformed
        """
        # --------------------------------------------------
        # Step 1: Validate before any I/O
        # --------------------------------------------------
        batch_id = validate_batch_id(batch_id)
        now = self._clock()

        # --------------------------------------------------
        # Step 2: Registry and relational reads, concurrently
        # --------------------------------------------------
        (ownership, registry_report), (record, relational_report) = await asyncio.gather(
            self._read_registry(batch_id),
            self._read_relational(batch_id),
        )

        # --------------------------------------------------
        # Step 3: Metadata, only with a confirmed content hash
        # --------------------------------------------------
        registry_exists = ownership is not None and ownership.exists
        metadata, metadata_report = await self._read_metadata(ownership if registry_exists else None)

        sources = {
            SourceName.REGISTRY: registry_report,
            SourceName.METADATA_STORE: metadata_report,
            SourceName.RELATIONAL_STORE: relational_report,
        }

        # --------------------------------------------------
        # Step 4: Existence
        # --------------------------------------------------
        if not registry_exists and record is None:
            outcome = VerificationOutcome(
                batch_id=batch_id,
                status=VerificationStatus.NOT_FOUND,
                checked_at=now,
                ownership=ownership,
                sources=sources,
            )
            if not outcome.any_source_answered:
                logger.warning(f"[verification] {batch_id}: no source answered, reporting not_found")
            else:
                logger.info(f"[verification] {batch_id}: not found")

            if persist:
                await self._record_scan(outcome, coords, actor_id)
            return outcome

        # --------------------------------------------------
        # Step 5: Merge and score
        # --------------------------------------------------
        merged = merge_record(batch_id, record, metadata)
        risk = await self._risk_engine.assess(batch_id, coords=coords, expiry_date=merged.expiry_date)

        if effective_status(merged, now) == BatchStatus.RECALLED:
            status = VerificationStatus.RECALLED
        elif risk.is_suspicious:
            status = VerificationStatus.SUSPICIOUS
        else:
            status = VerificationStatus.AUTHENTIC

        outcome = VerificationOutcome(
            batch_id=batch_id,
            status=status,
            checked_at=now,
            record=merged,
            risk=risk,
            ownership=ownership,
            metadata=metadata,
            sources=sources,
        )

        logger.info(
            f"[verification] {batch_id}: {status.value} "
            f"(score={risk.risk_score}, level={risk.risk_level.value}, "
            f"degraded={[s.value for s in outcome.degraded_sources]})"
        )

        # --------------------------------------------------
        # Step 6: Side effects, after the verdict
        # --------------------------------------------------
        if persist:
            await self._record_scan(outcome, coords, actor_id)
            if risk.risk_score >= self._alert_score_threshold:
                await self._emit_alert(batch_id, risk, coords, now)

        return outcome

    # --------------------------------------------------------
    # SOURCE READS
    # --------------------------------------------------------

    async def _read_registry(
        self, batch_id: str
    ) -> Tuple[Optional[OwnershipRecord], SourceReport]:
        if self._registry is None:
            return None, SourceReport()
        try:
            return await self._registry.verify(batch_id), SourceReport.ok()
        except SourceUnavailableError as e:
            logger.warning(f"[verification] Registry unavailable for {batch_id}: {e}")
            return None, SourceReport.failed(e)

    async def _read_relational(
        self, batch_id: str
    ) -> Tuple[Optional[BatchRecord], SourceReport]:
        try:
            return await self._store.get_batch(batch_id), SourceReport.ok()
        except SourceUnavailableError as e:
            logger.warning(f"[verification] Relational store unavailable for {batch_id}: {e}")
            return None, SourceReport.failed(e)

    async def _read_metadata(
        self, ownership: Optional[OwnershipRecord]
    ) -> Tuple[Optional[MetadataDocument], SourceReport]:
        if self._metadata_store is None or ownership is None or not ownership.metadata_hash:
            return None, SourceReport()
        try:
            return await self._metadata_store.get(ownership.metadata_hash), SourceReport.ok()
        except SourceUnavailableError as e:
            logger.warning(
                f"[verification] Metadata unavailable for {ownership.batch_id} "
                f"({ownership.metadata_hash}): {e}"
            )
            return None, SourceReport.failed(e)

    # --------------------------------------------------------
    # WRITES
    # --------------------------------------------------------

    async def _record_scan(
        self,
        outcome: VerificationOutcome,
        coords: Optional[Coordinates],
        actor_id: Optional[str],
    ) -> None:
        flags = list(outcome.risk.flags) if outcome.risk else []
        risk_score = outcome.risk.risk_score if outcome.risk else 0

        event = ScanEvent(
            batch_id=outcome.batch_id,
            verification_status=ScanStatus(outcome.status.value),
            scanned_at=outcome.checked_at,
            latitude=coords.lat if coords else None,
            longitude=coords.lng if coords else None,
            anomaly_flags=flags,
            scanner_user_id=actor_id,
        )

        try:
            await self._store.append_scan(event)
        except DatabasePersistenceError as e:
            logger.error(f"[verification] Failed to append scan for {outcome.batch_id}: {e}")

        try:
            await self._store.record_audit(
                action="batch_verified",
                entity_type="scan",
                entity_id=outcome.batch_id,
                actor_id=actor_id,
                details={"status": outcome.status.value, "risk_score": risk_score},
                created_at=outcome.checked_at,
            )
        except DatabasePersistenceError as e:
            logger.error(f"[verification] Failed to write audit entry for {outcome.batch_id}: {e}")

    async def _emit_alert(
        self,
        batch_id: str,
        risk: RiskAssessment,
        coords: Optional[Coordinates],
        now: datetime,
    ) -> None:
        if self._alert_emitter is None:
            return

        alert = build_risk_alert(batch_id, risk, coords=coords, created_at=now)
        try:
            delivered = await self._alert_emitter.emit(alert)
        except Exception as e:
            logger.error(f"[verification] Alert emission failed for {batch_id}: {e}")
            return

        if not delivered:
            logger.warning(f"[verification] Alert for {batch_id} was not delivered")

    async def close(self) -> None:
        """Close HTTP sessions held by the source adapters."""
        if self._registry is not None:
            await self._registry.close()
        if self._metadata_store is not None:
            await self._metadata_store.close()


# ============================================================
# WIRING
# ============================================================


def build_orchestrator(
    config: Optional[VerificationConfig] = None,
    store: Optional[RelationalStore] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> VerificationOrchestrator:
    """Wire every collaborator from one configuration object."""
    config = config or VerificationConfig.from_env()
    clock = clock or SystemClock()

    if store is None:
        engine = create_database_engine(config.database_url)
        store = RelationalStore(create_session_factory(engine))

    ledger = ScanLedger(store, clock=clock, span=config.risk.widest_window)
    risk_engine = RiskAssessmentEngine(ledger, config=config.risk, clock=clock)

    registry = RegistryClient(
        config.registry_contract_address,
        rpc_url=config.registry_rpc_url,
        timeout=config.registry_timeout_seconds,
    )
    metadata_store = MetadataStore(
        gateways=config.ipfs_gateways,
        timeout=config.metadata_timeout_seconds,
    )

    emitter = CompositeAlertEmitter([RepositoryAlertEmitter(store)])
    if config.telegram_enabled:
        emitter.add_emitter(TelegramAlertSender(config.telegram_bot_token, config.telegram_chat_id))

    return VerificationOrchestrator(
        store=store,
        risk_engine=risk_engine,
        registry=registry,
        metadata_store=metadata_store,
        alert_emitter=emitter,
        clock=clock,
        alert_score_threshold=config.alert_score_threshold,
    )


_default_orchestrator: Optional[VerificationOrchestrator] = None


def get_orchestrator() -> VerificationOrchestrator:
    """Get the process-wide orchestrator, creating if necessary."""
    global _default_orchestrator
    if _default_orchestrator is None:
        _default_orchestrator = build_orchestrator()
    return _default_orchestrator


def set_orchestrator(orchestrator: Optional[VerificationOrchestrator]) -> None:
    """Replace the process-wide orchestrator."""
    global _default_orchestrator
    _default_orchestrator = orchestrator


async def verify_batch(
    batch_id: str,
    coords: Optional[Coordinates] = None,
    persist: bool = True,
    actor_id: Optional[str] = None,
) -> VerificationOutcome:
    """Verify a batch with the process-wide orchestrator."""
    return await get_orchestrator().verify(batch_id, coords=coords, persist=persist, actor_id=actor_id)


__all__ = [
    "BATCH_ID_PATTERN",
    "validate_batch_id",
    "merge_record",
    "VerificationOrchestrator",
    "build_orchestrator",
    "get_orchestrator",
    "set_orchestrator",
    "verify_batch",
]
