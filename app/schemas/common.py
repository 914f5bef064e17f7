from enum import Enum
from typing import Optional

from pydantic import BaseModel


class ContactType(str, Enum):
    AGENT = "Agent"
    DIRECT = "Direct"
    OTHER = "Other"
    SPAM = "Spam"
    INTERNAL = "Internal"


class OpportunitySource(str, Enum):
    WEBFORM = "webform"
    COLD_OUTREACH = "cold_outreach"
    SOCIAL = "social"
    PREVIOUS_ENQUIRY = "previous_enquiry"
    PREVIOUS_CLIENT = "previous_client"
    FORWARDED = "forwarded"
    EMAIL = "email"


class OpportunityStatus(str, Enum):
    open = "open"
    won = "won"
    lost = "lost"
    reversed = "reversed"


class PipelineStage(str, Enum):
    NEW = "new"
    FOLLOW_UP = "follow_up"
    PROPOSAL = "proposal"
    BOOKING = "booking"


class ActivityType(str, Enum):
    email_sent = "email_sent"
    email_received = "email_received"
    call_made = "call_made"
    call_received = "call_received"
    status_changed = "status_changed"
    note_added = "note_added"
    follow_up_scheduled = "follow_up_scheduled"
    social_dm = "social_dm"
    social_comment = "social_comment"
    social_lead_form = "social_lead_form"
    webform_submission = "webform_submission"


class Direction(str, Enum):
    inbound = "inbound"
    outbound = "outbound"


class CrmFieldType(str, Enum):
    SOURCE = "source"
    STAGE = "stage"
    SUB_SOURCE = "sub_source"


class LeadStatus(str, Enum):
    new = "new"
    contacted = "contacted"
    follow_up = "follow_up"
    qualified = "qualified"
    converted = "converted"
    dropped = "dropped"


class DisputeStatus(str, Enum):
    open = "open"
    resolved = "resolved"
    rejected = "rejected"


class SuccessResponse(BaseModel):
    """Generic success response base."""

    success: bool = True
    message: Optional[str] = None
