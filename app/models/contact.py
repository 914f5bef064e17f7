from sqlalchemy import Column, String, Integer, Text, DateTime, CheckConstraint
from sqlalchemy.sql import func

from app.core.constants import CONTACT_TYPES, check_clause
from app.models.base import Base, utcnow


class Contact(Base):
    """A person or organisation the business corresponds with.

    Unique by normalised (trimmed, lower-cased) email address.  Contacts
    created from call logs may have a phone number and no email.
    """

    __tablename__ = "contacts"
    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True)
    name = Column(String(200))
    phone = Column(String(50))
    company = Column(String(200))
    contact_type = Column(String(20), nullable=False, default="Other", server_default="Other")
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        CheckConstraint(check_clause("contact_type", CONTACT_TYPES), name="ck_contact_type"),
    )
