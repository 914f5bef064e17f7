from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.dispute import DisputeOut
from app.schemas.opportunity import AuditTrailEntryOut, OpportunityOut


class CommissionSnapshotOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    opportunity_id: int
    final_value: Optional[float] = None
    commissionable_amount: Optional[float] = None
    currency: Optional[str] = None
    products: Optional[str] = None
    owner: Optional[str] = None
    source: Optional[str] = None
    sub_source: Optional[str] = None
    first_touch_date: Optional[datetime] = None
    first_touch_type: Optional[str] = None
    closed_at: Optional[datetime] = None
    locked_at: Optional[datetime] = None
    locked_by: Optional[str] = None


class ActivityOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    contact_id: int
    opportunity_id: Optional[int] = None
    communication_id: Optional[int] = None
    type: str
    description: Optional[str] = None
    direction: Optional[str] = None
    user: Optional[str] = None
    occurred_at: Optional[datetime] = None


class CommunicationSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    subject: Optional[str] = None
    from_address: Optional[str] = None
    to_address: Optional[str] = None
    direction: Optional[str] = None
    occurred_at: Optional[datetime] = None
    web_link: Optional[str] = None


class OriginSummary(BaseModel):
    source: Optional[str] = None
    sub_source: Optional[str] = None
    first_touch_date: Optional[datetime] = None
    first_touch_type: Optional[str] = None


class EvidenceReport(BaseModel):
    """Everything needed to justify (or dispute) a commission claim."""

    opportunity: OpportunityOut
    snapshot: Optional[CommissionSnapshotOut] = None
    origin: OriginSummary
    activities: List[ActivityOut] = Field(default_factory=list)
    communications: List[CommunicationSummary] = Field(default_factory=list)
    audit_trail: List[AuditTrailEntryOut] = Field(default_factory=list)
    disputes: List[DisputeOut] = Field(default_factory=list)
    generated_at: datetime
