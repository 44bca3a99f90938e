from fastapi import APIRouter, Depends

from api.dependencies import get_orchestrator
from api.schemas import VerifyRequest, VerifyResponse, VerificationData
from core.models import Coordinates
from verification.orchestrator import VerificationOrchestrator

router = APIRouter(prefix="/verify", tags=["Verification"])


@router.post("", response_model=VerifyResponse)
async def verify(
    body: VerifyRequest,
    orchestrator: VerificationOrchestrator = Depends(get_orchestrator),
):
    """
    Verify a batch and score the attempt.

    persist=false is inspection mode: no scan, audit entry or alert is written.
    """
    coords = None
    if body.latitude is not None and body.longitude is not None:
        coords = Coordinates(lat=body.latitude, lng=body.longitude)

    outcome = await orchestrator.verify(
        body.batch_id,
        coords=coords,
        persist=body.persist,
        actor_id=body.actor_id,
    )
    return VerifyResponse(
        success=True,
        data=VerificationData(**outcome.to_dict()),
    )
