from typing import Any, List, Optional

from sqlalchemy import select

from app.models.activity import Activity
from app.repositories.base import BaseRepository


class ActivityRepository(BaseRepository):
    """Encapsulates queries against the ``activities`` table."""

    async def create(self, **kwargs: Any) -> Activity:
        """Insert a new activity record."""
        activity = Activity(**kwargs)
        self._db.add(activity)
        await self._db.flush()
        return activity

    async def find_for_communication(
        self, communication_id: int, activity_type: str
    ) -> Optional[Activity]:
        """Return the activity of *activity_type* already logged for an email."""
        result = await self._db.execute(
            select(Activity)
            .where(
                Activity.communication_id == communication_id,
                Activity.type == activity_type,
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def find_first_touch(self, contact_id: int) -> Optional[Activity]:
        """Return the contact's earliest activity of any type.

        Used to stamp the first-touch date and type on commission
        snapshots.
        """
        result = await self._db.execute(
            select(Activity)
            .where(Activity.contact_id == contact_id)
            .order_by(Activity.occurred_at.asc(), Activity.id.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_for_opportunity(
        self, opportunity_id: int, contact_id: Optional[int] = None
    ) -> List[Activity]:
        """Return the opportunity's activities, plus the contact's unlinked ones."""
        criteria = Activity.opportunity_id == opportunity_id
        if contact_id is not None:
            criteria = criteria | (
                (Activity.contact_id == contact_id) & Activity.opportunity_id.is_(None)
            )
        result = await self._db.execute(
            select(Activity)
            .where(criteria)
            .order_by(Activity.occurred_at.asc(), Activity.id.asc())
        )
        return list(result.scalars().all())
