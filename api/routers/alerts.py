from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_store
from api.schemas import AlertOut, AlertsResponse, BaseResponse
from database.repository import RelationalStore

router = APIRouter(prefix="/alerts", tags=["Alerts"])


@router.get("", response_model=AlertsResponse)
async def list_alerts(
    resolved: Optional[bool] = None,
    limit: int = Query(default=100, ge=1, le=1000),
    store: RelationalStore = Depends(get_store),
):
    """
    Get alerts, most recent first. Filter on resolution state with ?resolved=.
    """
    alerts = await store.list_alerts(resolved=resolved, limit=limit)
    return AlertsResponse(
        success=True,
        data=[AlertOut.model_validate(alert) for alert in alerts],
    )


@router.post("/{alert_id}/resolve", response_model=BaseResponse)
async def resolve_alert(alert_id: UUID, store: RelationalStore = Depends(get_store)):
    """
    Mark an alert as resolved. Resolving twice is harmless.
    """
    if not await store.resolve_alert(alert_id):
        raise HTTPException(status_code=404, detail=f"Alert {alert_id} not found")
    return BaseResponse(success=True, message=f"Alert {alert_id} resolved")
