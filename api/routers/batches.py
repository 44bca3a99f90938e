from fastapi import APIRouter, Depends

from api.dependencies import get_store
from api.schemas import RecallRequest, RecallResponse
from database.repository import RelationalStore
from verification.orchestrator import validate_batch_id

router = APIRouter(prefix="/batches", tags=["Batches"])


@router.post("/{batch_id}/recall", response_model=RecallResponse)
async def recall_batch(
    batch_id: str,
    body: RecallRequest,
    store: RelationalStore = Depends(get_store),
):
    """
    Recall a batch. Recall is terminal; recalling again changes nothing.
    """
    batch_id = validate_batch_id(batch_id)
    record = await store.recall_batch(batch_id, actor_id=body.actor_id, reason=body.reason)
    return RecallResponse(
        success=True,
        message=f"Batch {batch_id} recalled",
        data=record.to_dict(),
    )
