from datetime import datetime, timezone
from sqlalchemy import event

from app.core.exceptions import ConflictError
from app.models.activity import Activity
from app.models.audit_trail import AuditTrailEntry
from app.models.commission_snapshot import CommissionSnapshot
from app.models.communication import Communication
from app.models.contact import Contact
from app.models.dispute import Dispute
from app.models.email_rule import EmailRule
from app.models.follow_up import FollowUp
from app.models.lead import Lead
from app.models.opportunity import Opportunity


# Auto updated_at (ORM flushes only; bulk UPDATE statements set it themselves)
@event.listens_for(Contact, "before_update")
@event.listens_for(Communication, "before_update")
@event.listens_for(EmailRule, "before_update")
@event.listens_for(Opportunity, "before_update")
@event.listens_for(FollowUp, "before_update")
@event.listens_for(Lead, "before_update")
@event.listens_for(Dispute, "before_update")
def update_timestamp(mapper, connection, target):
    target.updated_at = datetime.now(timezone.utc)


# Append-only tables
@event.listens_for(CommissionSnapshot, "before_update")
@event.listens_for(CommissionSnapshot, "before_delete")
@event.listens_for(AuditTrailEntry, "before_update")
@event.listens_for(AuditTrailEntry, "before_delete")
@event.listens_for(Activity, "before_update")
@event.listens_for(Activity, "before_delete")
def reject_mutation(mapper, connection, target):
    raise ConflictError(
        f"{mapper.class_.__name__} rows are immutable once written"
    )
