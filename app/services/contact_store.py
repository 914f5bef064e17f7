import logging
import re
from typing import Any, Dict, Optional, Tuple

from email_validator import EmailNotValidError, validate_email

from app.core.constants import CONTACT_TYPES, DEFAULT_CONTACT_TYPE
from app.core.exceptions import ConfigurationError, ContactNotFoundError
from app.models.contact import Contact
from app.repositories.contact_repository import ContactRepository

logger = logging.getLogger(__name__)


def normalize_email(address: Optional[str]) -> Optional[str]:
    """Trim and lower-case an address; blank input gives ``None``."""
    if address is None:
        return None
    normalized = address.strip().lower()
    return normalized or None


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """Keep digits and a leading ``+``; blank input gives ``None``."""
    if phone is None:
        return None
    stripped = phone.strip()
    digits = re.sub(r"\D", "", stripped)
    if not digits:
        return None
    return ("+" + digits) if stripped.startswith("+") else digits


def is_valid_address(address: Optional[str]) -> bool:
    """Syntax check only; no DNS lookups."""
    if not address:
        return False
    try:
        validate_email(address, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def default_contact_name(address: str, display_name: Optional[str] = None) -> str:
    if display_name and display_name.strip():
        return display_name.strip()
    return address.split("@", 1)[0] or address


class ContactStore:
    """Looks up and creates contacts keyed by normalised email address.

    Contacts without an address (call logs) are found by normalised phone.

    Updates never overwrite an existing value with a blank one.
    """

    def __init__(self, contact_repo: ContactRepository) -> None:
        self._contacts = contact_repo

    async def get(self, contact_id: int) -> Contact:
        contact = await self._contacts.get(contact_id)
        if contact is None:
            raise ContactNotFoundError(f"Contact {contact_id} not found")
        return contact

    async def find_by_email(self, address: Optional[str]) -> Optional[Contact]:
        normalized = normalize_email(address)
        if normalized is None:
            return None
        return await self._contacts.find_by_email(normalized)

    async def find_by_phone(self, phone: Optional[str]) -> Optional[Contact]:
        normalized = normalize_phone(phone)
        if normalized is None:
            return None
        return await self._contacts.find_by_phone(normalized)

    async def create(self, fields: Dict[str, Any]) -> Contact:
        data = {k: v for k, v in fields.items() if v is not None}
        if "email" in data:
            data["email"] = normalize_email(data["email"])
        if "phone" in data:
            data["phone"] = normalize_phone(data["phone"])
        contact_type = data.setdefault("contact_type", DEFAULT_CONTACT_TYPE)
        contact_type = getattr(contact_type, "value", contact_type)
        if contact_type not in CONTACT_TYPES:
            raise ConfigurationError(f"Unknown contact type {contact_type!r}")
        data["contact_type"] = contact_type
        contact = await self._contacts.create(**data)
        logger.info("Created contact %s for %s", contact.id, contact.email)
        return contact

    async def update(self, contact_id: int, fields: Dict[str, Any]) -> Contact:
        """Apply non-blank *fields* to an existing contact."""
        contact = await self.get(contact_id)
        changes = {
            key: value
            for key, value in fields.items()
            if value is not None and not (isinstance(value, str) and not value.strip())
        }
        if "email" in changes:
            changes["email"] = normalize_email(changes["email"])
        if "phone" in changes:
            changes["phone"] = normalize_phone(changes["phone"])
        if not changes:
            return contact
        return await self._contacts.update(contact, changes)

    async def resolve(
        self,
        address: str,
        display_name: Optional[str] = None,
        contact_type: Optional[str] = None,
    ) -> Tuple[Contact, bool]:
        """Return ``(contact, created)`` for *address*, creating it if needed.

        An existing contact is returned untouched.

        Raises:
            ContactNotFoundError: if *address* is not a usable email address.
        """
        if not is_valid_address(address):
            raise ContactNotFoundError(f"Invalid sender address {address!r}")

        existing = await self.find_by_email(address)
        if existing is not None:
            return existing, False

        contact = await self.create(
            {
                "email": address,
                "name": default_contact_name(address.strip(), display_name),
                "contact_type": contact_type or DEFAULT_CONTACT_TYPE,
            }
        )
        return contact, True
