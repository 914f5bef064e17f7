"""API-layer dependency functions.

Re-exports all dependency factories from ``app.dependencies`` so that
endpoint modules only need to import from ``app.api.deps``.
"""

from app.core.database import get_db
from app.dependencies import (
    # Repository factories
    get_activity_repo,
    get_audit_repo,
    get_category_mapping_repo,
    get_communication_repo,
    get_contact_repo,
    get_dispute_repo,
    get_email_rule_repo,
    get_follow_up_repo,
    get_lead_repo,
    get_opportunity_repo,
    get_snapshot_repo,
    # Service factories
    get_action_executor,
    get_category_fetcher,
    get_category_mapper,
    get_commission_service,
    get_contact_store,
    get_dispute_service,
    get_email_processor,
    get_email_rule_service,
    get_opportunity_service,
    get_rule_engine,
    # Redis
    get_cache_service,
    get_redis_client,
)

__all__ = [
    "get_db",
    "get_activity_repo",
    "get_audit_repo",
    "get_category_mapping_repo",
    "get_communication_repo",
    "get_contact_repo",
    "get_dispute_repo",
    "get_email_rule_repo",
    "get_follow_up_repo",
    "get_lead_repo",
    "get_opportunity_repo",
    "get_snapshot_repo",
    "get_action_executor",
    "get_category_fetcher",
    "get_category_mapper",
    "get_commission_service",
    "get_contact_store",
    "get_dispute_service",
    "get_email_processor",
    "get_email_rule_service",
    "get_opportunity_service",
    "get_rule_engine",
    "get_cache_service",
    "get_redis_client",
]
