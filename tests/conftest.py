from types import SimpleNamespace
from typing import TYPE_CHECKING, AsyncGenerator
from unittest.mock import AsyncMock

if TYPE_CHECKING:
    from app.core.cache import CacheService

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.database import enable_sqlite_savepoints, get_db
from app.dependencies import get_redis_client
from app.main import app
from app.models import Base


@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite engine with every table created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False
    )
    async with session_factory() as session:
        yield session


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Return an ``AsyncMock`` that behaves like ``redis.asyncio.Redis``."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock()
    redis.setex = AsyncMock()
    redis.delete = AsyncMock()
    redis.ping = AsyncMock()
    return redis


@pytest.fixture
def mock_cache(mock_redis) -> "CacheService":
    """Return a ``CacheService`` backed by the mock Redis client."""
    from app.core.cache import CacheService

    return CacheService(redis_client=mock_redis)


@pytest.fixture
def stack(db_session):
    """The full processing stack over one session, Redis disabled.

    Mirrors the wiring done by the FastAPI dependency factories.
    """
    from app.core.cache import CacheService
    from app.repositories import (
        ActivityRepository,
        AuditTrailRepository,
        CategoryMappingRepository,
        CommissionSnapshotRepository,
        CommunicationRepository,
        ContactRepository,
        DisputeRepository,
        EmailRuleRepository,
        FollowUpRepository,
        LeadRepository,
        OpportunityRepository,
    )
    from app.services.action_executor import ActionExecutor
    from app.services.category_mapper import CategoryMapper
    from app.services.commission_service import CommissionService
    from app.services.contact_store import ContactStore
    from app.services.dispute_service import DisputeService
    from app.services.email_processor import EmailProcessor
    from app.services.opportunity_service import OpportunityService
    from app.services.rule_engine import RuleEngine

    s = SimpleNamespace()
    s.session = db_session
    s.contacts = ContactRepository(db_session)
    s.communications = CommunicationRepository(db_session)
    s.rules = EmailRuleRepository(db_session)
    s.mappings = CategoryMappingRepository(db_session)
    s.opportunities = OpportunityRepository(db_session)
    s.activities = ActivityRepository(db_session)
    s.follow_ups = FollowUpRepository(db_session)
    s.leads = LeadRepository(db_session)
    s.snapshots = CommissionSnapshotRepository(db_session)
    s.audit = AuditTrailRepository(db_session)
    s.disputes = DisputeRepository(db_session)

    s.contact_store = ContactStore(s.contacts)
    s.category_mapper = CategoryMapper(s.mappings, CacheService(redis_client=None))
    s.commission = CommissionService(
        snapshot_repo=s.snapshots,
        opportunity_repo=s.opportunities,
        activity_repo=s.activities,
        audit_repo=s.audit,
        communication_repo=s.communications,
        dispute_repo=s.disputes,
    )
    s.opportunity_service = OpportunityService(s.opportunities, s.audit, s.commission)
    s.dispute_service = DisputeService(s.disputes, s.opportunities, s.snapshots)
    s.executor = ActionExecutor(
        communication_repo=s.communications,
        opportunity_repo=s.opportunities,
        activity_repo=s.activities,
        follow_up_repo=s.follow_ups,
        lead_repo=s.leads,
        contact_store=s.contact_store,
        category_mapper=s.category_mapper,
        opportunity_service=s.opportunity_service,
        commission_service=s.commission,
    )
    s.engine = RuleEngine(
        rule_loader=s.rules, executor=s.executor, communication_repo=s.communications
    )
    s.processor = EmailProcessor(
        communication_repo=s.communications,
        contact_store=s.contact_store,
        rule_engine=s.engine,
        mailbox_address="me@mybusiness.com",
    )
    return s


@pytest_asyncio.fixture
async def async_client(db_session) -> AsyncGenerator[AsyncClient, None]:
    """Yield an ``httpx.AsyncClient`` wired to the FastAPI app.

    Requests share the test session; Redis is reported unavailable.
    """

    async def override_get_db():
        yield db_session

    async def override_get_redis_client():
        return None

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis_client] = override_get_redis_client

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
