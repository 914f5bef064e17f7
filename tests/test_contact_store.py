import pytest

from app.core.exceptions import ConfigurationError
from app.services.contact_store import normalize_email, normalize_phone


class TestNormalisation:
    def test_email_is_trimmed_and_lower_cased(self):
        assert normalize_email("  Guest@Example.COM ") == "guest@example.com"
        assert normalize_email("   ") is None

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("+1 (555) 010-2000", "+15550102000"),
            (" 020 7946 0018 ", "02079460018"),
            ("ext.", None),
            ("", None),
            (None, None),
        ],
    )
    def test_phone_keeps_digits_and_leading_plus(self, raw, expected):
        assert normalize_phone(raw) == expected


class TestPhoneLookup:
    @pytest.mark.asyncio
    async def test_create_stores_normalised_phone(self, stack):
        contact = await stack.contact_store.create(
            {"name": "Caller", "phone": "+44 20 7946-0018"}
        )
        assert contact.phone == "+442079460018"
        assert contact.email is None

    @pytest.mark.asyncio
    async def test_find_by_phone_ignores_formatting(self, stack):
        contact = await stack.contact_store.create({"name": "Caller", "phone": "+1 555 010 2000"})

        found = await stack.contact_store.find_by_phone("+1 (555) 010-2000")

        assert found is not None and found.id == contact.id
        assert await stack.contact_store.find_by_phone("555 010 2000") is None

    @pytest.mark.asyncio
    async def test_blank_phone_finds_nothing(self, stack):
        await stack.contact_store.create({"name": "No number"})
        assert await stack.contact_store.find_by_phone("  ") is None

    @pytest.mark.asyncio
    async def test_update_normalises_phone_and_keeps_blank_fields(self, stack):
        contact = await stack.contact_store.create(
            {"email": "guest@example.com", "name": "Guest", "phone": "0111"}
        )

        updated = await stack.contact_store.update(
            contact.id, {"phone": "(0) 20-7946 0018", "name": "  "}
        )

        assert updated.phone == "02079460018"
        assert updated.name == "Guest"


class TestEmailLookup:
    @pytest.mark.asyncio
    async def test_resolve_reuses_existing_contact(self, stack):
        first, created = await stack.contact_store.resolve("Guest@Example.com", "Gina")
        again, created_again = await stack.contact_store.resolve("guest@example.com")

        assert created and not created_again
        assert again.id == first.id
        assert first.name == "Gina"

    @pytest.mark.asyncio
    async def test_unknown_contact_type_is_rejected(self, stack):
        with pytest.raises(ConfigurationError):
            await stack.contact_store.create({"email": "x@example.com", "contact_type": "VIP"})
