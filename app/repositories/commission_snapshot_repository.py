from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import select

from app.models.commission_snapshot import CommissionSnapshot
from app.repositories.base import BaseRepository


class CommissionSnapshotRepository(BaseRepository):
    """Encapsulates queries against the ``commission_snapshots`` table.

    There is no update or delete here: snapshots are immutable.
    """

    async def create(self, **kwargs: Any) -> CommissionSnapshot:
        """Insert a snapshot; a second one for the same opportunity fails
        with ``IntegrityError`` on the unique ``opportunity_id``."""
        snapshot = CommissionSnapshot(**kwargs)
        self._db.add(snapshot)
        await self._db.flush()
        return snapshot

    async def get_for_opportunity(
        self, opportunity_id: int
    ) -> Optional[CommissionSnapshot]:
        result = await self._db.execute(
            select(CommissionSnapshot).where(
                CommissionSnapshot.opportunity_id == opportunity_id
            )
        )
        return result.scalar_one_or_none()

    async def get(self, snapshot_id: int) -> Optional[CommissionSnapshot]:
        result = await self._db.execute(
            select(CommissionSnapshot).where(CommissionSnapshot.id == snapshot_id)
        )
        return result.scalar_one_or_none()

    async def list_snapshots(
        self,
        owner: Optional[str] = None,
        closed_from: Optional[datetime] = None,
        closed_to: Optional[datetime] = None,
    ) -> List[CommissionSnapshot]:
        query = select(CommissionSnapshot)
        if owner:
            query = query.where(CommissionSnapshot.owner == owner)
        if closed_from:
            query = query.where(CommissionSnapshot.closed_at >= closed_from)
        if closed_to:
            query = query.where(CommissionSnapshot.closed_at <= closed_to)
        result = await self._db.execute(
            query.order_by(CommissionSnapshot.closed_at.desc(), CommissionSnapshot.id.desc())
        )
        return list(result.scalars().all())
