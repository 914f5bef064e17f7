from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.sql import func

from app.core.constants import LEAD_STATUSES, OPPORTUNITY_SOURCES, check_clause
from app.models.base import Base, utcnow


class Lead(Base):
    """An early-stage enquiry raised by a rule, before any opportunity."""

    __tablename__ = "leads"
    id = Column(Integer, primary_key=True, autoincrement=True)
    contact_id = Column(
        Integer, ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False
    )
    communication_id = Column(
        Integer, ForeignKey("communications.id", ondelete="SET NULL")
    )
    source = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False, default="new", server_default="new")
    assigned_to = Column(String(100))
    notes = Column(Text)
    value = Column(Numeric(15, 2, asdecimal=False))
    conversation_id = Column(String(255))
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        Index("idx_leads_contact_conversation", "contact_id", "conversation_id"),
        Index("idx_leads_contact_source", "contact_id", "source", "created_at"),
        CheckConstraint(check_clause("status", LEAD_STATUSES), name="ck_lead_status"),
        CheckConstraint(check_clause("source", OPPORTUNITY_SOURCES), name="ck_lead_source"),
        CheckConstraint("value IS NULL OR value >= 0", name="ck_lead_value"),
    )
