from typing import Any, List, Optional

from sqlalchemy import select

from app.models.dispute import Dispute
from app.repositories.base import BaseRepository


class DisputeRepository(BaseRepository):
    """Encapsulates queries against the ``disputes`` table."""

    async def create(self, **kwargs: Any) -> Dispute:
        dispute = Dispute(**kwargs)
        self._db.add(dispute)
        await self._db.flush()
        return dispute

    async def get(self, dispute_id: int) -> Optional[Dispute]:
        result = await self._db.execute(
            select(Dispute)
            .where(Dispute.id == dispute_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_disputes(
        self, status: Optional[str] = None, opportunity_id: Optional[int] = None
    ) -> List[Dispute]:
        query = select(Dispute)
        if status:
            query = query.where(Dispute.status == status)
        if opportunity_id is not None:
            query = query.where(Dispute.opportunity_id == opportunity_id)
        result = await self._db.execute(
            query.order_by(Dispute.created_at.desc(), Dispute.id.desc())
        )
        return list(result.scalars().all())

    async def update(self, dispute: Dispute, **fields: Any) -> Dispute:
        for key, value in fields.items():
            setattr(dispute, key, value)
        await self._db.flush()
        return dispute
