from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select

from app.models.lead import Lead
from app.repositories.base import BaseRepository


class LeadRepository(BaseRepository):
    """Encapsulates queries against the ``leads`` table."""

    async def get(self, lead_id: int) -> Optional[Lead]:
        result = await self._db.execute(select(Lead).where(Lead.id == lead_id))
        return result.scalar_one_or_none()

    async def create(self, **kwargs: Any) -> Lead:
        lead = Lead(**kwargs)
        self._db.add(lead)
        await self._db.flush()
        return lead

    async def find_for_conversation(
        self, contact_id: int, conversation_id: str
    ) -> Optional[Lead]:
        """Return the contact's lead already raised for a mail thread."""
        result = await self._db.execute(
            select(Lead)
            .where(
                Lead.contact_id == contact_id,
                Lead.conversation_id == conversation_id,
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def find_duplicate(
        self, contact_id: int, source: str, since: datetime
    ) -> Optional[Lead]:
        """Return a lead with the same contact and source created after *since*."""
        result = await self._db.execute(
            select(Lead)
            .where(
                Lead.contact_id == contact_id,
                Lead.source == source,
                Lead.created_at >= since,
            )
            .order_by(Lead.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def latest_for_contact(self, contact_id: int) -> Optional[Lead]:
        result = await self._db.execute(
            select(Lead)
            .where(Lead.contact_id == contact_id)
            .order_by(Lead.created_at.desc(), Lead.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()
