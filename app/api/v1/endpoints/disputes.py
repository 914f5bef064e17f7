from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_dispute_service
from app.schemas.common import DisputeStatus
from app.schemas.dispute import DisputeCreate, DisputeOut, DisputeResolve
from app.services.dispute_service import DisputeService

router = APIRouter(prefix="/disputes", tags=["Disputes"])


@router.get("", response_model=List[DisputeOut])
async def list_disputes(
    status: Optional[DisputeStatus] = Query(default=None),
    opportunity_id: Optional[int] = Query(default=None),
    service: DisputeService = Depends(get_dispute_service),
) -> List[DisputeOut]:
    disputes = await service.list_disputes(
        status=status.value if status else None, opportunity_id=opportunity_id
    )
    return [DisputeOut.model_validate(d) for d in disputes]


@router.post("", response_model=DisputeOut, status_code=201)
async def create_dispute(
    data: DisputeCreate,
    service: DisputeService = Depends(get_dispute_service),
) -> DisputeOut:
    return DisputeOut.model_validate(await service.create(data))


@router.put("/{dispute_id}", response_model=DisputeOut)
async def resolve_dispute(
    dispute_id: int,
    data: DisputeResolve,
    service: DisputeService = Depends(get_dispute_service),
) -> DisputeOut:
    """Resolve or reject an open dispute."""
    return DisputeOut.model_validate(await service.resolve(dispute_id, data))
