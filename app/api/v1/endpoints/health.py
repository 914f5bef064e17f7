import logging
from typing import Dict

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_cache_service, get_db
from app.core.cache import CacheService
from app.core.exceptions import DataStoreUnavailableError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health(
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
) -> Dict[str, str]:
    """Liveness plus a round trip to the database.

    Redis is optional; its state is reported but never fails the check.
    """
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("Health check database query failed: %s", exc)
        raise DataStoreUnavailableError("Database unreachable") from exc
    return {
        "status": "ok",
        "database": "ok",
        "cache": "ok" if cache.is_available else "unavailable",
    }
