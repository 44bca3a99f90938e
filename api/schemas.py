"""
Pydantic schemas for the verification API.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from core.clock import now_utc

# =======================
# COMMON
# =======================

class BaseResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    timestamp: datetime = Field(default_factory=now_utc)

# =======================
# 1. VERIFY
# =======================

class VerifyRequest(BaseModel):
    batch_id: str
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    persist: bool = True
    actor_id: Optional[str] = None

    @model_validator(mode="after")
    def check_coordinate_pair(self) -> "VerifyRequest":
        if (self.latitude is None) != (self.longitude is None):
            raise ValueError("latitude and longitude must be given together")
        return self

class RiskOut(BaseModel):
    risk_score: int
    risk_level: str  # low, medium, high, critical
    flags: List[str]
    is_suspicious: bool
    degraded_rules: List[str] = []

class SourceReportOut(BaseModel):
    consulted: bool
    answered: bool
    error: Optional[str] = None

class VerificationData(BaseModel):
    batch_id: str
    status: str  # authentic, suspicious, not_found, recalled
    checked_at: datetime
    record: Optional[Dict[str, Any]] = None
    risk: Optional[RiskOut] = None
    ownership: Optional[Dict[str, Any]] = None
    metadata: Optional[Dict[str, Any]] = None
    sources: Dict[str, SourceReportOut]
    any_source_answered: bool

class VerifyResponse(BaseResponse):
    data: VerificationData

# =======================
# 2. ALERTS
# =======================

class AlertOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[UUID] = None
    batch_id: str
    alert_type: str
    severity: str
    risk_score: Optional[int] = None
    message: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    resolved: bool
    created_at: Optional[datetime] = None

class AlertsResponse(BaseResponse):
    data: List[AlertOut]

# =======================
# 3. BATCHES
# =======================

class RecallRequest(BaseModel):
    actor_id: str = Field(min_length=1)
    reason: Optional[str] = None

class RecallResponse(BaseResponse):
    data: Dict[str, Any]

# =======================
# 4. SCAN LOGS
# =======================

class ScanOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    batch_id: str
    verification_status: str
    scanned_at: datetime
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    anomaly_flags: List[str] = []
    scanner_user_id: Optional[str] = None

class ScansResponse(BaseResponse):
    data: List[ScanOut]

# =======================
# 5. AUDIT LOGS
# =======================

class AuditLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[UUID] = None
    action: str
    entity_type: str
    entity_id: str
    actor_id: Optional[str] = None
    details: Dict[str, Any] = {}
    created_at: Optional[datetime] = None

class AuditLogsResponse(BaseResponse):
    data: List[AuditLogOut]
