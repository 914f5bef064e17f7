from enum import Enum
from typing import Any, Iterable, List, Optional

from sqlalchemy import select

from app.models.audit_trail import AuditTrailEntry
from app.repositories.base import BaseRepository


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, Enum):
        value = value.value
    return str(value)


class AuditTrailRepository(BaseRepository):
    """Append-only access to the ``audit_trail`` table."""

    async def append(
        self,
        opportunity_id: int,
        field_name: str,
        old_value: Any,
        new_value: Any,
        changed_by: Optional[str],
    ) -> AuditTrailEntry:
        entry = AuditTrailEntry(
            opportunity_id=opportunity_id,
            field_name=field_name,
            old_value=_as_text(old_value),
            new_value=_as_text(new_value),
            changed_by=changed_by,
        )
        self._db.add(entry)
        await self._db.flush()
        return entry

    async def list_for_opportunity(
        self,
        opportunity_id: int,
        field_name: Optional[str] = None,
        field_names: Optional[Iterable[str]] = None,
    ) -> List[AuditTrailEntry]:
        query = select(AuditTrailEntry).where(
            AuditTrailEntry.opportunity_id == opportunity_id
        )
        if field_name:
            query = query.where(AuditTrailEntry.field_name == field_name)
        if field_names is not None:
            query = query.where(AuditTrailEntry.field_name.in_(list(field_names)))
        result = await self._db.execute(
            query.order_by(AuditTrailEntry.changed_at.asc(), AuditTrailEntry.id.asc())
        )
        return list(result.scalars().all())
