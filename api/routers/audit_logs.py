from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_store
from api.schemas import AuditLogOut, AuditLogsResponse
from database.repository import RelationalStore

router = APIRouter(prefix="/audit-logs", tags=["Audit Logs"])


@router.get("", response_model=AuditLogsResponse)
async def list_audit_logs(
    action: Optional[str] = Query(default=None, max_length=50),
    limit: int = Query(default=200, ge=1, le=1000),
    store: RelationalStore = Depends(get_store),
):
    """
    Audit trail, most recent first. Filter with ?action=batch_recalled.
    """
    entries = await store.list_audit_logs(action=action, limit=limit)
    return AuditLogsResponse(
        success=True,
        data=[AuditLogOut.model_validate(entry) for entry in entries],
    )
