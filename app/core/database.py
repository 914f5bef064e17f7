from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    create_async_engine,
    AsyncSession,
    async_sessionmaker,
)

from app.core.config import settings


def enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """Let SQLAlchemy own transaction demarcation on SQLite connections.

    The sqlite3 driver emits its own ``BEGIN`` lazily, which breaks
    SAVEPOINT handling.  Disabling that and issuing ``BEGIN`` from the
    engine's ``begin`` event is the recipe from the SQLAlchemy SQLite
    dialect documentation.  Every rule action runs in a SAVEPOINT, so
    this is required for SQLite backends.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    future=True,
    pool_pre_ping=True,
)

if engine.dialect.name == "sqlite":
    enable_sqlite_savepoints(engine)

# Async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    future=True,
)


async def init_db(bind: AsyncEngine = engine) -> None:
    """Create every table known to the ORM metadata."""
    from app.models import Base

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db():
    """Dependency for FastAPI routes to get async session."""
    async with AsyncSessionLocal() as session:
        yield session
