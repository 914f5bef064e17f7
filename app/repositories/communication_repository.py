from typing import Any, Dict, List, Optional

from sqlalchemy import select, update

from app.models.base import utcnow
from app.models.communication import Communication
from app.repositories.base import BaseRepository


class CommunicationRepository(BaseRepository):
    """Encapsulates queries against the ``communications`` table.

    Column updates are issued as UPDATE statements by id and the row is
    re-read afterwards, so callers never depend on the state of an
    instance that a SAVEPOINT rollback may have expired.
    """

    async def get(self, communication_id: int) -> Optional[Communication]:
        result = await self._db.execute(
            select(Communication)
            .where(Communication.id == communication_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_by_external_id(self, external_id: str) -> Optional[Communication]:
        result = await self._db.execute(
            select(Communication)
            .where(Communication.external_id == external_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def create(self, **kwargs: Any) -> Communication:
        communication = Communication(**kwargs)
        self._db.add(communication)
        await self._db.flush()
        return communication

    async def update_fields(self, communication_id: int, **values: Any) -> None:
        values.setdefault("updated_at", utcnow())
        await self._db.execute(
            update(Communication)
            .where(Communication.id == communication_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

    async def add_category(self, communication_id: int, category: str) -> List[str]:
        """Append *category* to the email's category set; never removes any.

        Returns the resulting category list.
        """
        result = await self._db.execute(
            select(Communication.categories).where(Communication.id == communication_id)
        )
        categories = list(result.scalar_one_or_none() or [])
        if category not in categories:
            categories.append(category)
            await self.update_fields(communication_id, categories=categories)
        return categories

    async def mark_processed(self, communication_id: int) -> None:
        await self.update_fields(
            communication_id, processed_by_rules=True, processed_at=utcnow()
        )

    async def save_rule_results(
        self, communication_id: int, rule_results: Dict[str, Any]
    ) -> None:
        await self.update_fields(communication_id, rule_results=rule_results)

    async def list_unprocessed(self, limit: int) -> List[Communication]:
        result = await self._db.execute(
            select(Communication)
            .where(Communication.processed_by_rules.is_(False))
            .order_by(Communication.id.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_for_opportunity(self, opportunity_id: int) -> List[Communication]:
        result = await self._db.execute(
            select(Communication)
            .where(Communication.opportunity_id == opportunity_id)
            .order_by(Communication.occurred_at.asc(), Communication.id.asc())
        )
        return list(result.scalars().all())
