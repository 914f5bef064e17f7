"""Repository layer – all database access goes through here.

Repositories encapsulate SQLAlchemy queries so that the service layer
only contains business logic.
"""

from app.repositories.contact_repository import ContactRepository
from app.repositories.communication_repository import CommunicationRepository
from app.repositories.email_rule_repository import EmailRuleRepository
from app.repositories.category_mapping_repository import CategoryMappingRepository
from app.repositories.opportunity_repository import OpportunityRepository
from app.repositories.activity_repository import ActivityRepository
from app.repositories.lead_repository import LeadRepository
from app.repositories.follow_up_repository import FollowUpRepository
from app.repositories.commission_snapshot_repository import (
    CommissionSnapshotRepository,
)
from app.repositories.audit_trail_repository import AuditTrailRepository
from app.repositories.dispute_repository import DisputeRepository

__all__ = [
    "ContactRepository",
    "CommunicationRepository",
    "EmailRuleRepository",
    "CategoryMappingRepository",
    "OpportunityRepository",
    "ActivityRepository",
    "LeadRepository",
    "FollowUpRepository",
    "CommissionSnapshotRepository",
    "AuditTrailRepository",
    "DisputeRepository",
]
