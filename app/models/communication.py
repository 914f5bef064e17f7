from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    CheckConstraint,
    false,
)
from sqlalchemy.sql import func

from app.core.constants import DIRECTIONS, check_clause
from app.models.base import Base, utcnow


class Communication(Base):
    """An email pulled in by the mail-provider sync.

    Only the sync creates rows.  The rule engine touches nothing but the
    category set, the contact/opportunity links and the processing
    outcome columns, and never deletes a row.
    """

    __tablename__ = "communications"
    id = Column(Integer, primary_key=True, autoincrement=True)
    external_id = Column(String(255), unique=True)
    contact_id = Column(Integer, ForeignKey("contacts.id", ondelete="SET NULL"))
    opportunity_id = Column(Integer, ForeignKey("opportunities.id", ondelete="SET NULL"))
    type = Column(String(20), nullable=False, default="email", server_default="email")
    direction = Column(String(20), nullable=False, default="inbound", server_default="inbound")
    subject = Column(Text)
    body = Column(Text)
    from_address = Column(String(255))
    from_name = Column(String(255))
    to_address = Column(Text)
    occurred_at = Column(DateTime(timezone=True), default=utcnow)
    conversation_id = Column(String(255))
    message_id = Column(String(255))
    web_link = Column(Text)
    categories = Column(JSON, nullable=False, default=list)
    is_flagged = Column(Boolean, nullable=False, default=False, server_default=false())
    flag_due_date = Column(DateTime(timezone=True))
    folder_id = Column(String(255))
    processed_by_rules = Column(Boolean, nullable=False, default=False, server_default=false())
    processed_at = Column(DateTime(timezone=True))
    rule_results = Column(JSON)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        Index("idx_communications_unprocessed", "processed_by_rules", "id"),
        Index("idx_communications_opportunity", "opportunity_id"),
        CheckConstraint(check_clause("direction", DIRECTIONS), name="ck_communication_direction"),
    )
