"""
Data models for the external verification sources.

Both documents are read-only views of what an upstream source
answered. Nothing here is persisted.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OwnershipRecord:
    """
    Registry answer for one batch.

    `exists=False` is a definitive answer from a reachable
    registry, not a failure.
    """

    batch_id: str
    exists: bool
    owner: Optional[str] = None
    metadata_hash: Optional[str] = None
    created_at: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "exists": self.exists,
            "owner": self.owner,
            "metadata_hash": self.metadata_hash,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


def _parse_date(value: Any, field_name: str) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        logger.warning(f"[metadata] Ignoring unparseable {field_name}: {value!r}")
        return None


def _parse_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class MetadataDocument:
    """
    Batch metadata pinned in the content-addressed store.

    Wire format is camelCase JSON; every field is optional.
    """

    medicine_name: Optional[str] = None
    manufacturer: Optional[str] = None
    expiry_date: Optional[date] = None
    manufacturing_date: Optional[date] = None
    dosage: Optional[str] = None
    country_origin: Optional[str] = None
    batch_id: Optional[str] = None

    @classmethod
    def from_json(cls, payload: Any) -> "MetadataDocument":
        """
        Parse a gateway response body.

        Raises:
            ValueError: If the payload is not a JSON object
        """
        if not isinstance(payload, dict):
            raise ValueError(f"Metadata must be a JSON object, got {type(payload).__name__}")

        return cls(
            medicine_name=_parse_text(payload.get("medicineName")),
            manufacturer=_parse_text(payload.get("manufacturer")),
            expiry_date=_parse_date(payload.get("expiryDate"), "expiryDate"),
            manufacturing_date=_parse_date(payload.get("manufacturingDate"), "manufacturingDate"),
            dosage=_parse_text(payload.get("dosage")),
            country_origin=_parse_text(payload.get("countryOrigin")),
            batch_id=_parse_text(payload.get("batchId")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize back to the camelCase wire format."""
        return {
            "medicineName": self.medicine_name,
            "manufacturer": self.manufacturer,
            "expiryDate": self.expiry_date.isoformat() if self.expiry_date else None,
            "manufacturingDate": self.manufacturing_date.isoformat() if self.manufacturing_date else None,
            "dosage": self.dosage,
            "countryOrigin": self.country_origin,
            "batchId": self.batch_id,
        }
