from fastapi import APIRouter, Depends, Query

from api.dependencies import get_store
from api.schemas import ScanOut, ScansResponse
from database.repository import RelationalStore

router = APIRouter(prefix="/scans", tags=["Scan Logs"])


@router.get("", response_model=ScansResponse)
async def list_scans(
    limit: int = Query(default=100, ge=1, le=1000),
    store: RelationalStore = Depends(get_store),
):
    """
    Recent verification attempts across all batches.
    """
    scans = await store.list_scans(limit=limit)
    return ScansResponse(
        success=True,
        data=[
            ScanOut(
                batch_id=scan.batch_id,
                verification_status=scan.verification_status.value,
                scanned_at=scan.scanned_at,
                latitude=scan.latitude,
                longitude=scan.longitude,
                anomaly_flags=list(scan.anomaly_flags),
                scanner_user_id=scan.scanner_user_id,
            )
            for scan in scans
        ],
    )
