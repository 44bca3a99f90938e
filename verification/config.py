"""
Verification Configuration.

============================================================
PURPOSE
============================================================
Single immutable configuration object for the verification
service, built once at startup and passed to constructors.

============================================================
ENVIRONMENT VARIABLES
============================================================
- DATABASE_URL                relational store
- REGISTRY_RPC_URL            JSON-RPC endpoint for the registry
- REGISTRY_CONTRACT_ADDRESS   registry contract (unset = degrade)
- IPFS_GATEWAYS               comma-separated `{hash}` URL templates
- METADATA_TIMEOUT_SECONDS    per-mirror timeout
- TELEGRAM_BOT_TOKEN          optional alert push
- TELEGRAM_CHAT_ID            optional alert push
- LOG_LEVEL                   root log level for the CLI

============================================================
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from dotenv import load_dotenv

from database.engine import DEFAULT_DATABASE_URL
from risk_scoring.config import RiskScoringConfig
from source_adapters.metadata_store import DEFAULT_GATEWAYS, DEFAULT_MIRROR_TIMEOUT
from source_adapters.registry_client import DEFAULT_RPC_URL


logger = logging.getLogger(__name__)


ALERT_SCORE_THRESHOLD = 45


@dataclass(frozen=True)
class VerificationConfig:
    """Service configuration. Never mutated after startup."""

    database_url: str = DEFAULT_DATABASE_URL
    registry_rpc_url: str = DEFAULT_RPC_URL
    registry_contract_address: Optional[str] = None
    ipfs_gateways: Tuple[str, ...] = DEFAULT_GATEWAYS
    metadata_timeout_seconds: float = DEFAULT_MIRROR_TIMEOUT
    registry_timeout_seconds: float = 10.0

    # Alerts at or above this score (HIGH and CRITICAL)
    alert_score_threshold: int = ALERT_SCORE_THRESHOLD
    telegram_bot_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None

    log_level: str = "INFO"

    risk: RiskScoringConfig = field(default_factory=RiskScoringConfig)

    @property
    def telegram_enabled(self) -> bool:
        return bool(self.telegram_bot_token and self.telegram_chat_id)

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "VerificationConfig":
        """
        Load configuration from environment variables.

        Args:
            dotenv: Also read a `.env` file first
        """
        if dotenv:
            load_dotenv()

        kwargs: Dict[str, Any] = {}

        if os.getenv("DATABASE_URL"):
            kwargs["database_url"] = os.getenv("DATABASE_URL")
        if os.getenv("REGISTRY_RPC_URL"):
            kwargs["registry_rpc_url"] = os.getenv("REGISTRY_RPC_URL")
        if os.getenv("REGISTRY_CONTRACT_ADDRESS"):
            kwargs["registry_contract_address"] = os.getenv("REGISTRY_CONTRACT_ADDRESS").strip()
        if os.getenv("IPFS_GATEWAYS"):
            gateways = tuple(
                g.strip() for g in os.getenv("IPFS_GATEWAYS").split(",") if g.strip()
            )
            if gateways:
                kwargs["ipfs_gateways"] = gateways
        if os.getenv("METADATA_TIMEOUT_SECONDS"):
            kwargs["metadata_timeout_seconds"] = float(os.getenv("METADATA_TIMEOUT_SECONDS"))
        if os.getenv("TELEGRAM_BOT_TOKEN"):
            kwargs["telegram_bot_token"] = os.getenv("TELEGRAM_BOT_TOKEN")
        if os.getenv("TELEGRAM_CHAT_ID"):
            kwargs["telegram_chat_id"] = os.getenv("TELEGRAM_CHAT_ID")
        if os.getenv("LOG_LEVEL"):
            kwargs["log_level"] = os.getenv("LOG_LEVEL").upper()

        config = cls(**kwargs)
        if not config.registry_contract_address:
            logger.warning("[config] REGISTRY_CONTRACT_ADDRESS not set, registry checks will degrade")
        return config

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for logging. Secrets are masked."""
        return {
            "database_url": self.database_url.split("@")[-1],
            "registry_rpc_url": self.registry_rpc_url,
            "registry_contract_address": self.registry_contract_address,
            "ipfs_gateways": list(self.ipfs_gateways),
            "metadata_timeout_seconds": self.metadata_timeout_seconds,
            "registry_timeout_seconds": self.registry_timeout_seconds,
            "alert_score_threshold": self.alert_score_threshold,
            "telegram_enabled": self.telegram_enabled,
            "log_level": self.log_level,
            "risk": self.risk.to_dict(),
        }


__all__ = ["ALERT_SCORE_THRESHOLD", "VerificationConfig"]
