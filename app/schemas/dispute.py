from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.common import DisputeStatus


class DisputeCreate(BaseModel):
    opportunity_id: int
    commission_snapshot_id: Optional[int] = None
    nature: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1)
    supporting_evidence: Optional[str] = None
    created_by: str = Field(default="user", min_length=1, max_length=100)


class DisputeResolve(BaseModel):
    """Request body for PUT /api/v1/disputes/{id}."""

    status: DisputeStatus
    resolution: Optional[str] = None
    resolved_by: str = Field(default="user", min_length=1, max_length=100)


class DisputeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    opportunity_id: int
    commission_snapshot_id: Optional[int] = None
    nature: str
    description: str
    supporting_evidence: Optional[str] = None
    status: str
    resolution: Optional[str] = None
    created_by: Optional[str] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
