import logging
from typing import List, Optional

from sqlalchemy import func, select

from app.models.email_category import EmailCategoryMapping
from app.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class CategoryMappingRepository(BaseRepository):
    """Encapsulates queries against the ``email_categories`` table."""

    async def list_all(self) -> List[EmailCategoryMapping]:
        result = await self._db.execute(
            select(EmailCategoryMapping).order_by(
                EmailCategoryMapping.crm_field_type, EmailCategoryMapping.category_name
            )
        )
        return list(result.scalars().all())

    async def get(self, mapping_id: int) -> Optional[EmailCategoryMapping]:
        result = await self._db.execute(
            select(EmailCategoryMapping).where(EmailCategoryMapping.id == mapping_id)
        )
        return result.scalar_one_or_none()

    async def get_by_name(self, category_name: str) -> Optional[EmailCategoryMapping]:
        result = await self._db.execute(
            select(EmailCategoryMapping).where(
                EmailCategoryMapping.category_name == category_name
            )
        )
        return result.scalar_one_or_none()

    async def upsert(
        self, category_name: str, crm_field_type: str, crm_field_value: str
    ) -> EmailCategoryMapping:
        """Create the mapping, or repoint an existing one with the same name."""
        mapping = await self.get_by_name(category_name)
        if mapping is None:
            mapping = EmailCategoryMapping(category_name=category_name)
            self._db.add(mapping)
        mapping.crm_field_type = crm_field_type
        mapping.crm_field_value = crm_field_value
        await self._db.flush()
        return mapping

    async def delete(self, mapping: EmailCategoryMapping) -> None:
        await self._db.delete(mapping)
        await self._db.flush()

    async def seed_if_empty(self) -> None:
        """Insert the default category mappings when the table is empty."""
        from app.core.default_category_mappings import DEFAULT_CATEGORY_MAPPINGS

        count_result = await self._db.execute(
            select(func.count()).select_from(EmailCategoryMapping)
        )
        if count_result.scalar():
            return

        logger.info("email_categories table is empty, seeding defaults")
        for mapping_data in DEFAULT_CATEGORY_MAPPINGS:
            self._db.add(EmailCategoryMapping(**mapping_data))
        await self._db.flush()
        logger.info(
            "Seeded %d default category mappings", len(DEFAULT_CATEGORY_MAPPINGS)
        )
