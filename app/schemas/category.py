from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.common import CrmFieldType


class CategoryFieldMapping(BaseModel):
    """CRM field value implied by one mail-provider category."""

    model_config = ConfigDict(from_attributes=True)

    category_name: str = Field(..., min_length=1, max_length=200)
    crm_field_type: CrmFieldType
    crm_field_value: str = Field(..., min_length=1, max_length=100)


class CategoryMappingOut(CategoryFieldMapping):
    id: int
    created_at: Optional[datetime] = None
