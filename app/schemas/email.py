from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.schemas.common import Direction


class EmailRecordIn(BaseModel):
    """Normalised email record as delivered by the mail-provider sync.

    ``external_id`` is the provider message id and the idempotence key.
    """

    external_id: str = Field(..., min_length=1, max_length=255)
    subject: Optional[str] = None
    body: Optional[str] = None
    from_address: Optional[str] = Field(default=None, max_length=255)
    from_name: Optional[str] = Field(default=None, max_length=255)
    to_address: Optional[str] = None
    direction: Optional[Direction] = None
    occurred_at: Optional[datetime] = None
    conversation_id: Optional[str] = None
    message_id: Optional[str] = None
    web_link: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    is_flagged: bool = False
    flag_due_date: Optional[datetime] = None
    folder_id: Optional[str] = None

    @field_validator("categories", mode="before")
    @classmethod
    def categories_as_list(cls, value):
        # Provider payloads send null for "no categories"
        return [] if value is None else value


class SampleEmail(EmailRecordIn):
    """Email body for a rule dry run; may name an already-resolved contact."""

    external_id: Optional[str] = Field(default=None, max_length=255)
    contact_id: Optional[int] = None
    opportunity_id: Optional[int] = None


class EmailRecord(BaseModel):
    """A stored communication as seen by the condition evaluator."""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    external_id: Optional[str] = None
    subject: Optional[str] = None
    body: Optional[str] = None
    from_address: Optional[str] = None
    from_name: Optional[str] = None
    to_address: Optional[str] = None
    direction: Direction = Direction.inbound
    occurred_at: Optional[datetime] = None
    conversation_id: Optional[str] = None
    message_id: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    is_flagged: bool = False
    flag_due_date: Optional[datetime] = None
    folder_id: Optional[str] = None
    contact_id: Optional[int] = None
    opportunity_id: Optional[int] = None
    processed_by_rules: bool = False
    processed_at: Optional[datetime] = None

    @field_validator("categories", mode="before")
    @classmethod
    def categories_as_list(cls, value):
        return [] if value is None else list(value)

    @field_validator("direction", mode="before")
    @classmethod
    def default_direction(cls, value):
        return Direction.inbound if value is None else value

    @field_validator("is_flagged", "processed_by_rules", mode="before")
    @classmethod
    def falsy_as_false(cls, value):
        return bool(value)
