from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.schemas.common import OpportunityStatus


class OpportunityOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    contact_id: int
    title: str
    source: Optional[str] = None
    sub_source: Optional[str] = None
    stage: str
    status: str
    assigned_to: Optional[str] = None
    value: Optional[float] = None
    currency: Optional[str] = None
    description: Optional[str] = None
    reversed_reason: Optional[str] = None
    closed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class StatusUpdateRequest(BaseModel):
    """Request body for PUT /api/v1/opportunities/{id}/status.

    The optional commission fields override what the snapshot would
    otherwise copy from the opportunity when it is marked won.
    """

    status: OpportunityStatus
    changed_by: str = Field(default="user", min_length=1, max_length=100)
    reason: Optional[str] = None
    final_value: Optional[float] = Field(default=None, ge=0)
    commissionable_amount: Optional[float] = Field(default=None, ge=0)
    products: Optional[str] = None
    owner: Optional[str] = None

    @model_validator(mode="after")
    def reversal_needs_reason(self):
        if self.status == OpportunityStatus.reversed and not (self.reason or "").strip():
            raise ValueError("A reason is required to reverse a won opportunity")
        if self.status == OpportunityStatus.open:
            raise ValueError("Opportunities cannot be moved back to open")
        return self


class AuditTrailEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    opportunity_id: int
    field_name: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    changed_by: Optional[str] = None
    changed_at: Optional[datetime] = None


class StatusChangeResponse(BaseModel):
    opportunity: OpportunityOut
    commission_snapshot_id: Optional[int] = None
    audit_entries: List[AuditTrailEntryOut] = Field(default_factory=list)
