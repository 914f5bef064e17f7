from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_opportunity_service
from app.schemas.opportunity import (
    AuditTrailEntryOut,
    OpportunityOut,
    StatusChangeResponse,
    StatusUpdateRequest,
)
from app.services.opportunity_service import OpportunityService

router = APIRouter(prefix="/opportunities", tags=["Opportunities"])


@router.put("/{opportunity_id}/status", response_model=StatusChangeResponse)
async def update_status(
    opportunity_id: int,
    update_data: StatusUpdateRequest,
    service: OpportunityService = Depends(get_opportunity_service),
) -> StatusChangeResponse:
    """Move an opportunity to won, lost or reversed.

    Winning locks the commission snapshot in the same transaction.
    """
    change = await service.change_status(
        opportunity_id,
        update_data.status.value,
        changed_by=update_data.changed_by,
        reason=update_data.reason,
        final_value=update_data.final_value,
        commissionable_amount=update_data.commissionable_amount,
        products=update_data.products,
        owner=update_data.owner,
    )
    return StatusChangeResponse(
        opportunity=OpportunityOut.model_validate(change.opportunity),
        commission_snapshot_id=change.snapshot.id if change.snapshot else None,
        audit_entries=[AuditTrailEntryOut.model_validate(e) for e in change.audit_entries],
    )


@router.get("/{opportunity_id}/audit-trail", response_model=List[AuditTrailEntryOut])
async def get_audit_trail(
    opportunity_id: int,
    field: Optional[str] = Query(default=None, max_length=50),
    service: OpportunityService = Depends(get_opportunity_service),
) -> List[AuditTrailEntryOut]:
    entries = await service.audit_trail(opportunity_id, field_name=field)
    return [AuditTrailEntryOut.model_validate(e) for e in entries]
