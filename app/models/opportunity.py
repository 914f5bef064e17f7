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

from app.core.constants import (
    OPPORTUNITY_SOURCES,
    OPPORTUNITY_STATUSES,
    PIPELINE_STAGES,
    check_clause,
)
from app.models.base import Base, utcnow


class Opportunity(Base):
    """A potential deal with one contact.

    Status moves open -> won | lost and won -> reversed, nothing else.
    The transition is guarded in ``OpportunityService``; the CHECK
    constraints only pin the vocabularies.
    """

    __tablename__ = "opportunities"
    id = Column(Integer, primary_key=True, autoincrement=True)
    contact_id = Column(
        Integer, ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False
    )
    title = Column(String(500), nullable=False)
    source = Column(String(50))
    sub_source = Column(String(100))
    stage = Column(String(20), nullable=False, default="new", server_default="new")
    status = Column(String(20), nullable=False, default="open", server_default="open")
    assigned_to = Column(String(100))
    value = Column(Numeric(15, 2, asdecimal=False))
    currency = Column(String(3))
    description = Column(Text)
    reversed_reason = Column(Text)
    conversation_id = Column(String(255))
    linked_opportunity_id = Column(
        Integer, ForeignKey("opportunities.id", ondelete="SET NULL")
    )
    closed_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        Index("idx_opportunities_contact_status", "contact_id", "status"),
        CheckConstraint(check_clause("status", OPPORTUNITY_STATUSES), name="ck_opportunity_status"),
        CheckConstraint(check_clause("stage", PIPELINE_STAGES), name="ck_opportunity_stage"),
        CheckConstraint(
            "source IS NULL OR " + check_clause("source", OPPORTUNITY_SOURCES),
            name="ck_opportunity_source",
        ),
        CheckConstraint("value IS NULL OR value >= 0", name="ck_opportunity_value"),
    )
