import json
from unittest.mock import AsyncMock

import pytest

from app.core.exceptions import CategoryMappingNotFoundError
from app.repositories.category_mapping_repository import CategoryMappingRepository
from app.schemas.category import CategoryFieldMapping
from app.services.category_mapper import MAPPINGS_CACHE_KEY, CategoryMapper


@pytest.fixture
def mapper(db_session, mock_cache):
    return CategoryMapper(CategoryMappingRepository(db_session), mock_cache)


class TestCategoryLookup:
    @pytest.mark.asyncio
    async def test_cache_hit_skips_database(self, mock_cache, mock_redis):
        mock_redis.get.return_value = json.dumps(
            {
                "Source – Social": {
                    "category_name": "Source – Social",
                    "crm_field_type": "source",
                    "crm_field_value": "social",
                }
            }
        )
        repo = AsyncMock()
        mapper = CategoryMapper(repo, mock_cache)

        mapping = await mapper.map_category_to_field("Source – Social")

        assert mapping.crm_field_value == "social"
        repo.list_all.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cache_miss_loads_and_stores(self, mapper, db_session, mock_redis):
        await CategoryMappingRepository(db_session).upsert(
            "Stage – Proposal", "stage", "proposal"
        )

        fields = await mapper.map_categories_to_crm_fields(["Stage – Proposal", "Unmapped"])

        assert fields == {"stage": "proposal"}
        mock_redis.setex.assert_awaited_once()
        assert mock_redis.setex.await_args.args[0] == MAPPINGS_CACHE_KEY

    @pytest.mark.asyncio
    async def test_later_category_wins_for_same_field(self, mapper, db_session):
        repo = CategoryMappingRepository(db_session)
        await repo.upsert("Source – Webform", "source", "webform")
        await repo.upsert("Source – Referral", "source", "referral")

        fields = await mapper.map_categories_to_crm_fields(
            ["Source – Webform", "Source – Referral"]
        )

        assert fields == {"source": "referral"}

    @pytest.mark.asyncio
    async def test_redis_unavailable_falls_back_to_database(self, db_session):
        from app.core.cache import CacheService

        await CategoryMappingRepository(db_session).upsert("VIP", "sub_source", "VIP")
        mapper = CategoryMapper(CategoryMappingRepository(db_session), CacheService(None))

        assert (await mapper.map_category_to_field("VIP")).crm_field_value == "VIP"


class TestCategoryManagement:
    @pytest.mark.asyncio
    async def test_save_repoints_existing_name_and_invalidates(self, mapper, mock_redis):
        await mapper.save_mapping(
            CategoryFieldMapping(
                category_name="Hot", crm_field_type="stage", crm_field_value="qualified"
            )
        )
        row = await mapper.save_mapping(
            CategoryFieldMapping(
                category_name="Hot", crm_field_type="stage", crm_field_value="proposal"
            )
        )

        assert row.crm_field_value == "proposal"
        assert len(await mapper.list_mappings()) == 1
        mock_redis.delete.assert_awaited_with(MAPPINGS_CACHE_KEY)

    @pytest.mark.asyncio
    async def test_delete_mapping(self, mapper, mock_redis):
        row = await mapper.save_mapping(
            CategoryFieldMapping(
                category_name="Cold", crm_field_type="stage", crm_field_value="new"
            )
        )
        mock_redis.delete.reset_mock()

        await mapper.delete_mapping(row.id)

        assert await mapper.list_mappings() == []
        mock_redis.delete.assert_awaited_once_with(MAPPINGS_CACHE_KEY)

    @pytest.mark.asyncio
    async def test_delete_unknown_mapping(self, mapper):
        with pytest.raises(CategoryMappingNotFoundError):
            await mapper.delete_mapping(999)
