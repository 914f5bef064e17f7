import logging
from typing import Dict, Iterable, List, Optional

from app.core.cache import CacheService
from app.core.config import settings
from app.core.exceptions import CategoryMappingNotFoundError
from app.models.email_category import EmailCategoryMapping
from app.repositories.category_mapping_repository import CategoryMappingRepository
from app.schemas.category import CategoryFieldMapping

logger = logging.getLogger(__name__)

MAPPINGS_CACHE_KEY = "crm:email-category-mappings"


class CategoryMapper:
    """Translates mail-provider categories into CRM field values.

    The mapping table is small and read on every processed email, so it
    is cached in Redis as one JSON document and invalidated whenever a
    mapping is saved or deleted.
    """

    def __init__(
        self, mapping_repo: CategoryMappingRepository, cache: CacheService
    ) -> None:
        self._mappings = mapping_repo
        self._cache = cache

    async def _load(self) -> Dict[str, CategoryFieldMapping]:
        cached = await self._cache.get_json(MAPPINGS_CACHE_KEY)
        if cached is not None:
            return {
                name: CategoryFieldMapping.model_validate(item)
                for name, item in cached.items()
            }

        rows = await self._mappings.list_all()
        mappings = {
            row.category_name: CategoryFieldMapping.model_validate(row) for row in rows
        }
        await self._cache.set_json(
            MAPPINGS_CACHE_KEY,
            {name: m.model_dump(mode="json") for name, m in mappings.items()},
            ttl=settings.REDIS_CACHE_TTL,
        )
        return mappings

    async def map_category_to_field(
        self, category_name: str
    ) -> Optional[CategoryFieldMapping]:
        mappings = await self._load()
        return mappings.get(category_name)

    async def map_categories_to_crm_fields(
        self, categories: Iterable[str]
    ) -> Dict[str, str]:
        """Fold a category list into ``{field_type: value}``.

        When two categories map to the same field, the later one wins.
        Unmapped categories are ignored.
        """
        mappings = await self._load()
        fields: Dict[str, str] = {}
        for category in categories:
            mapping = mappings.get(category)
            if mapping is not None:
                fields[mapping.crm_field_type.value] = mapping.crm_field_value
        return fields

    # ------------------------------------------------------------------
    # Management
    # ------------------------------------------------------------------

    async def list_mappings(self) -> List[EmailCategoryMapping]:
        return await self._mappings.list_all()

    async def save_mapping(self, mapping: CategoryFieldMapping) -> EmailCategoryMapping:
        row = await self._mappings.upsert(
            category_name=mapping.category_name,
            crm_field_type=mapping.crm_field_type.value,
            crm_field_value=mapping.crm_field_value,
        )
        await self._mappings.commit()
        await self._cache.delete(MAPPINGS_CACHE_KEY)
        logger.info(
            "Category %r now maps to %s=%s",
            mapping.category_name,
            mapping.crm_field_type.value,
            mapping.crm_field_value,
        )
        return row

    async def delete_mapping(self, mapping_id: int) -> None:
        row = await self._mappings.get(mapping_id)
        if row is None:
            raise CategoryMappingNotFoundError(
                f"Category mapping {mapping_id} not found"
            )
        await self._mappings.delete(row)
        await self._mappings.commit()
        await self._cache.delete(MAPPINGS_CACHE_KEY)
