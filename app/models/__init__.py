from app.models.base import Base
from app.models.contact import Contact
from app.models.opportunity import Opportunity
from app.models.communication import Communication
from app.models.email_rule import EmailRule
from app.models.email_category import EmailCategoryMapping
from app.models.activity import Activity
from app.models.lead import Lead
from app.models.follow_up import FollowUp
from app.models.commission_snapshot import CommissionSnapshot
from app.models.audit_trail import AuditTrailEntry
from app.models.dispute import Dispute

# Import event listeners to register them
from app.models import listeners  # noqa: F401

__all__ = [
    "Base",
    "Contact",
    "Opportunity",
    "Communication",
    "EmailRule",
    "EmailCategoryMapping",
    "Activity",
    "Lead",
    "FollowUp",
    "CommissionSnapshot",
    "AuditTrailEntry",
    "Dispute",
]
