import logging
from typing import Optional

from fastapi import Depends
from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.cache import CacheService
from app.core.config import settings
from app.core.database import get_db
from app.repositories.activity_repository import ActivityRepository
from app.repositories.audit_trail_repository import AuditTrailRepository
from app.repositories.category_mapping_repository import CategoryMappingRepository
from app.repositories.commission_snapshot_repository import (
    CommissionSnapshotRepository,
)
from app.repositories.communication_repository import CommunicationRepository
from app.repositories.contact_repository import ContactRepository
from app.repositories.dispute_repository import DisputeRepository
from app.repositories.email_rule_repository import EmailRuleRepository
from app.repositories.follow_up_repository import FollowUpRepository
from app.repositories.lead_repository import LeadRepository
from app.repositories.opportunity_repository import OpportunityRepository
from app.services.action_executor import ActionExecutor
from app.services.category_mapper import CategoryMapper
from app.services.commission_service import CommissionService
from app.services.contact_store import ContactStore
from app.services.dispute_service import DisputeService
from app.services.email_processor import EmailProcessor, GraphCategoryFetcher
from app.services.email_rule_service import EmailRuleService
from app.services.opportunity_service import OpportunityService
from app.services.rule_engine import RuleEngine

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Redis client factory
# ---------------------------------------------------------------------------


async def get_redis_client() -> Optional[Redis]:
    """Get an async Redis client, or ``None`` when Redis is unreachable."""
    client = Redis.from_url(settings.REDIS_URL, decode_responses=True)
    try:
        await client.ping()
    except (RedisError, OSError):
        logger.warning("Redis unavailable – caching disabled for this request")
        return None
    return client


async def get_cache_service(
    redis_client: Optional[Redis] = Depends(get_redis_client),
) -> CacheService:
    """Build a :class:`CacheService` backed by the shared Redis client."""
    return CacheService(redis_client=redis_client)


# ---------------------------------------------------------------------------
# Repository factory functions (one per repository, each gets the shared db)
# ---------------------------------------------------------------------------


async def get_contact_repo(db: AsyncSession = Depends(get_db)) -> ContactRepository:
    return ContactRepository(db)


async def get_communication_repo(
    db: AsyncSession = Depends(get_db),
) -> CommunicationRepository:
    return CommunicationRepository(db)


async def get_email_rule_repo(db: AsyncSession = Depends(get_db)) -> EmailRuleRepository:
    return EmailRuleRepository(db)


async def get_category_mapping_repo(
    db: AsyncSession = Depends(get_db),
) -> CategoryMappingRepository:
    return CategoryMappingRepository(db)


async def get_opportunity_repo(
    db: AsyncSession = Depends(get_db),
) -> OpportunityRepository:
    return OpportunityRepository(db)


async def get_activity_repo(db: AsyncSession = Depends(get_db)) -> ActivityRepository:
    return ActivityRepository(db)


async def get_follow_up_repo(db: AsyncSession = Depends(get_db)) -> FollowUpRepository:
    return FollowUpRepository(db)


async def get_lead_repo(db: AsyncSession = Depends(get_db)) -> LeadRepository:
    return LeadRepository(db)


async def get_snapshot_repo(
    db: AsyncSession = Depends(get_db),
) -> CommissionSnapshotRepository:
    return CommissionSnapshotRepository(db)


async def get_audit_repo(db: AsyncSession = Depends(get_db)) -> AuditTrailRepository:
    return AuditTrailRepository(db)


async def get_dispute_repo(db: AsyncSession = Depends(get_db)) -> DisputeRepository:
    return DisputeRepository(db)


# ---------------------------------------------------------------------------
# Service factory functions
# ---------------------------------------------------------------------------


async def get_contact_store(
    contact_repo: ContactRepository = Depends(get_contact_repo),
) -> ContactStore:
    return ContactStore(contact_repo)


async def get_category_mapper(
    mapping_repo: CategoryMappingRepository = Depends(get_category_mapping_repo),
    cache: CacheService = Depends(get_cache_service),
) -> CategoryMapper:
    return CategoryMapper(mapping_repo, cache)


async def get_commission_service(
    snapshot_repo: CommissionSnapshotRepository = Depends(get_snapshot_repo),
    opportunity_repo: OpportunityRepository = Depends(get_opportunity_repo),
    activity_repo: ActivityRepository = Depends(get_activity_repo),
    audit_repo: AuditTrailRepository = Depends(get_audit_repo),
    communication_repo: CommunicationRepository = Depends(get_communication_repo),
    dispute_repo: DisputeRepository = Depends(get_dispute_repo),
) -> CommissionService:
    return CommissionService(
        snapshot_repo=snapshot_repo,
        opportunity_repo=opportunity_repo,
        activity_repo=activity_repo,
        audit_repo=audit_repo,
        communication_repo=communication_repo,
        dispute_repo=dispute_repo,
    )


async def get_opportunity_service(
    opportunity_repo: OpportunityRepository = Depends(get_opportunity_repo),
    audit_repo: AuditTrailRepository = Depends(get_audit_repo),
    commission_service: CommissionService = Depends(get_commission_service),
) -> OpportunityService:
    return OpportunityService(opportunity_repo, audit_repo, commission_service)


async def get_dispute_service(
    dispute_repo: DisputeRepository = Depends(get_dispute_repo),
    opportunity_repo: OpportunityRepository = Depends(get_opportunity_repo),
    snapshot_repo: CommissionSnapshotRepository = Depends(get_snapshot_repo),
) -> DisputeService:
    return DisputeService(dispute_repo, opportunity_repo, snapshot_repo)


async def get_email_rule_service(
    rule_repo: EmailRuleRepository = Depends(get_email_rule_repo),
) -> EmailRuleService:
    return EmailRuleService(rule_repo)


async def get_action_executor(
    communication_repo: CommunicationRepository = Depends(get_communication_repo),
    opportunity_repo: OpportunityRepository = Depends(get_opportunity_repo),
    activity_repo: ActivityRepository = Depends(get_activity_repo),
    follow_up_repo: FollowUpRepository = Depends(get_follow_up_repo),
    lead_repo: LeadRepository = Depends(get_lead_repo),
    contact_store: ContactStore = Depends(get_contact_store),
    category_mapper: CategoryMapper = Depends(get_category_mapper),
    opportunity_service: OpportunityService = Depends(get_opportunity_service),
    commission_service: CommissionService = Depends(get_commission_service),
) -> ActionExecutor:
    return ActionExecutor(
        communication_repo=communication_repo,
        opportunity_repo=opportunity_repo,
        activity_repo=activity_repo,
        follow_up_repo=follow_up_repo,
        lead_repo=lead_repo,
        contact_store=contact_store,
        category_mapper=category_mapper,
        opportunity_service=opportunity_service,
        commission_service=commission_service,
    )


async def get_rule_engine(
    rule_repo: EmailRuleRepository = Depends(get_email_rule_repo),
    executor: ActionExecutor = Depends(get_action_executor),
    communication_repo: CommunicationRepository = Depends(get_communication_repo),
) -> RuleEngine:
    return RuleEngine(
        rule_loader=rule_repo,
        executor=executor,
        communication_repo=communication_repo,
    )


async def get_category_fetcher() -> GraphCategoryFetcher:
    return GraphCategoryFetcher()


async def get_email_processor(
    communication_repo: CommunicationRepository = Depends(get_communication_repo),
    contact_store: ContactStore = Depends(get_contact_store),
    rule_engine: RuleEngine = Depends(get_rule_engine),
    category_fetcher: GraphCategoryFetcher = Depends(get_category_fetcher),
) -> EmailProcessor:
    """Build an :class:`EmailProcessor`; every collaborator shares one session."""
    return EmailProcessor(
        communication_repo=communication_repo,
        contact_store=contact_store,
        rule_engine=rule_engine,
        category_fetcher=category_fetcher,
    )
