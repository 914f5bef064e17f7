from typing import Any, Dict, Optional

from sqlalchemy import func, select

from app.models.contact import Contact
from app.repositories.base import BaseRepository


class ContactRepository(BaseRepository):
    """Encapsulates queries against the ``contacts`` table."""

    async def get(self, contact_id: int) -> Optional[Contact]:
        result = await self._db.execute(
            select(Contact)
            .where(Contact.id == contact_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_by_email(self, normalized_email: str) -> Optional[Contact]:
        """Look up a contact by an already-normalised address.

        Compares against the trimmed, lower-cased stored value so rows
        written before normalisation was enforced are still found.
        """
        result = await self._db.execute(
            select(Contact)
            .where(func.lower(func.trim(Contact.email)) == normalized_email)
            .order_by(Contact.id.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def find_by_phone(self, phone: str) -> Optional[Contact]:
        result = await self._db.execute(
            select(Contact).where(Contact.phone == phone).order_by(Contact.id.asc()).limit(1)
        )
        return result.scalar_one_or_none()

    async def create(self, **kwargs: Any) -> Contact:
        """Insert a new contact and flush so its id is available."""
        contact = Contact(**kwargs)
        self._db.add(contact)
        await self._db.flush()
        return contact

    async def update(self, contact: Contact, fields: Dict[str, Any]) -> Contact:
        for key, value in fields.items():
            setattr(contact, key, value)
        await self._db.flush()
        return contact
