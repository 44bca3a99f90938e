"""
Verification - Alerting.

============================================================
PURPOSE
============================================================
Alert sinks for high-risk verification attempts.

Provides:
- Alert construction from a risk assessment
- Persistence into the alerts table
- Telegram push notifications
- Fan-out across several sinks

============================================================
ALERT PHILOSOPHY
============================================================
- Alert on HIGH or CRITICAL scores only
- The first flag is the message
- A failing sink never blocks the others
- Alerts never change a verdict

============================================================
"""

import logging
from datetime import datetime
from typing import List, Optional, Protocol, Sequence

import httpx

from core.models import AlertRecord, Coordinates
from database.repository import RelationalStore
from risk_scoring.types import RiskAssessment, RiskLevel


logger = logging.getLogger(__name__)


def build_risk_alert(
    batch_id: str,
    assessment: RiskAssessment,
    coords: Optional[Coordinates] = None,
    created_at: Optional[datetime] = None,
) -> AlertRecord:
    """Build the alert for a high-risk verification attempt."""
    return AlertRecord(
        batch_id=batch_id,
        alert_type="critical_risk" if assessment.risk_level == RiskLevel.CRITICAL else "suspicious_scan",
        severity=assessment.risk_level.value,
        message=assessment.flags[0] if assessment.flags else "Suspicious activity detected",
        risk_score=assessment.risk_score,
        latitude=coords.lat if coords else None,
        longitude=coords.lng if coords else None,
        created_at=created_at,
    )


# ============================================================
# ALERT EMITTER PROTOCOL
# ============================================================


class AlertEmitter(Protocol):
    """
    Protocol for alert sink implementations.

    Allows for different alert destinations:
    - Relational store
    - Telegram
    - Webhook
    """

    async def emit(self, alert: AlertRecord) -> bool:
        """
        Emit an alert.

        Returns:
            True if the sink accepted it
        """
        ...


# ============================================================
# REPOSITORY EMITTER
# ============================================================


class RepositoryAlertEmitter:
    """Persist alerts into the alerts table."""

    def __init__(self, store: RelationalStore):
        self._store = store

    async def emit(self, alert: AlertRecord) -> bool:
        await self._store.insert_alert(alert)
        return True


# ============================================================
# TELEGRAM ALERT SENDER
# ============================================================


def to_telegram_message(alert: AlertRecord) -> str:
    """Format alert for Telegram (Markdown)."""
    emoji = "🔴" if alert.severity == RiskLevel.CRITICAL.value else "🟠"

    lines = [
        f"{emoji} *BATCH ALERT*",
        "",
        f"*Batch:* `{alert.batch_id}`",
        f"*Type:* {alert.alert_type}",
        f"*Severity:* {alert.severity.upper()}",
    ]
    if alert.risk_score is not None:
        lines.append(f"*Score:* {alert.risk_score}/100")
    if alert.latitude is not None and alert.longitude is not None:
        lines.append(f"*Location:* {alert.latitude:.4f}, {alert.longitude:.4f}")
    if alert.created_at:
        lines.append(f"*Time:* {alert.created_at.strftime('%Y-%m-%d %H:%M:%S UTC')}")

    lines.append("")
    lines.append(f"*Reason:* {alert.message}")
    return "\n".join(lines)


class TelegramAlertSender:
    """
    Send alerts via Telegram.

    ============================================================
    USAGE
    ============================================================
    Requires a Telegram bot token and chat ID.
    The bot must be added to the chat.

    ============================================================
    """

    API_BASE = "https://api.telegram.org"

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize Telegram sender.

        Args:
            bot_token: Telegram bot token
            chat_id: Target chat/channel ID
            timeout: Request timeout in seconds
            client: Shared HTTP client, one per call if not given
        """
        self._bot_token = bot_token
        self._chat_id = chat_id
        self._timeout = timeout
        self._client = client

    async def emit(self, alert: AlertRecord) -> bool:
        """
        Send alert via Telegram.

        Returns:
            True if Telegram accepted the message
        """
        url = f"{self.API_BASE}/bot{self._bot_token}/sendMessage"
        payload = {
            "chat_id": self._chat_id,
            "text": to_telegram_message(alert),
            "parse_mode": "Markdown",
        }

        try:
            if self._client is not None:
                response = await self._client.post(url, json=payload, timeout=self._timeout)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(url, json=payload, timeout=self._timeout)
        except httpx.HTTPError as e:
            logger.error(f"[telegram] Failed to send alert for {alert.batch_id}: {e}")
            return False

        if response.status_code != 200:
            logger.error(
                f"[telegram] Alert for {alert.batch_id} rejected: "
                f"HTTP {response.status_code} {response.text[:200]}"
            )
            return False
        return True


# ============================================================
# FAN-OUT
# ============================================================


class CompositeAlertEmitter:
    """
    Emit to several sinks.

    Every sink is tried; one raising or refusing does not stop
    the rest. Returns True if at least one sink accepted.
    """

    def __init__(self, emitters: Optional[Sequence[AlertEmitter]] = None):
        self._emitters: List[AlertEmitter] = list(emitters or [])

    def add_emitter(self, emitter: AlertEmitter) -> None:
        self._emitters.append(emitter)

    async def emit(self, alert: AlertRecord) -> bool:
        delivered = False
        for emitter in self._emitters:
            try:
                if await emitter.emit(alert):
                    delivered = True
            except Exception as e:
                logger.error(
                    f"[alerting] {type(emitter).__name__} failed for {alert.batch_id}: {e}"
                )
        return delivered


__all__ = [
    "build_risk_alert",
    "AlertEmitter",
    "RepositoryAlertEmitter",
    "to_telegram_message",
    "TelegramAlertSender",
    "CompositeAlertEmitter",
]
