from typing import Any, Optional

from sqlalchemy import select

from app.models.follow_up import FollowUp
from app.repositories.base import BaseRepository


class FollowUpRepository(BaseRepository):
    """Encapsulates queries against the ``follow_ups`` table."""

    async def create(self, **kwargs: Any) -> FollowUp:
        follow_up = FollowUp(**kwargs)
        self._db.add(follow_up)
        await self._db.flush()
        return follow_up

    async def find_open_for_communication(
        self, communication_id: int
    ) -> Optional[FollowUp]:
        """Return an incomplete follow-up already scheduled for an email."""
        result = await self._db.execute(
            select(FollowUp)
            .where(
                FollowUp.communication_id == communication_id,
                FollowUp.completed.is_(False),
            )
            .limit(1)
        )
        return result.scalar_one_or_none()
