from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_commission_service
from app.schemas.commission import CommissionSnapshotOut, EvidenceReport
from app.services.commission_service import CommissionService

router = APIRouter(prefix="/commission", tags=["Commission"])


@router.get("/snapshots", response_model=List[CommissionSnapshotOut])
async def list_snapshots(
    owner: Optional[str] = Query(default=None),
    closed_from: Optional[datetime] = Query(default=None),
    closed_to: Optional[datetime] = Query(default=None),
    service: CommissionService = Depends(get_commission_service),
) -> List[CommissionSnapshotOut]:
    snapshots = await service.list_snapshots(
        owner=owner, closed_from=closed_from, closed_to=closed_to
    )
    return [CommissionSnapshotOut.model_validate(s) for s in snapshots]


@router.get("/snapshots/{opportunity_id}", response_model=CommissionSnapshotOut)
async def get_snapshot(
    opportunity_id: int,
    service: CommissionService = Depends(get_commission_service),
) -> CommissionSnapshotOut:
    return CommissionSnapshotOut.model_validate(await service.get_snapshot(opportunity_id))


@router.get("/evidence/{opportunity_id}", response_model=EvidenceReport)
async def get_evidence_report(
    opportunity_id: int,
    service: CommissionService = Depends(get_commission_service),
) -> EvidenceReport:
    """Everything that backs a commission claim for one opportunity."""
    return await service.evidence_report(opportunity_id)
