from typing import Any, Optional

from sqlalchemy import select, update

from app.models.base import utcnow
from app.models.opportunity import Opportunity
from app.repositories.base import BaseRepository


class OpportunityRepository(BaseRepository):
    """Encapsulates queries against the ``opportunities`` table."""

    async def get(self, opportunity_id: int) -> Optional[Opportunity]:
        """Return the opportunity with freshly loaded column values."""
        result = await self._db.execute(
            select(Opportunity)
            .where(Opportunity.id == opportunity_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def create(self, **kwargs: Any) -> Opportunity:
        opportunity = Opportunity(**kwargs)
        self._db.add(opportunity)
        await self._db.flush()
        return opportunity

    async def latest_open_for_contact(self, contact_id: int) -> Optional[Opportunity]:
        """Return the contact's most recently created open opportunity."""
        result = await self._db.execute(
            select(Opportunity)
            .where(Opportunity.contact_id == contact_id, Opportunity.status == "open")
            .order_by(Opportunity.created_at.desc(), Opportunity.id.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def update_fields(self, opportunity_id: int, **values: Any) -> None:
        values.setdefault("updated_at", utcnow())
        await self._db.execute(
            update(Opportunity)
            .where(Opportunity.id == opportunity_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

    async def update_if_status(
        self, opportunity_id: int, expected_status: str, **values: Any
    ) -> bool:
        """Conditional UPDATE guarded by the current status.

        Returns ``False`` when no row had *expected_status*, i.e. another
        writer got there first or the transition is not legal.
        """
        values.setdefault("updated_at", utcnow())
        result = await self._db.execute(
            update(Opportunity)
            .where(
                Opportunity.id == opportunity_id,
                Opportunity.status == expected_status,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
