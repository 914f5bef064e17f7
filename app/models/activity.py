from sqlalchemy import Column, String, Integer, Text, DateTime, CheckConstraint, ForeignKey, Index
from sqlalchemy.sql import func

from app.core.constants import ACTIVITY_TYPES, DIRECTIONS, check_clause
from app.models.base import Base, utcnow


class Activity(Base):
    __tablename__ = "activities"
    id = Column(Integer, primary_key=True, autoincrement=True)
    contact_id = Column(Integer, ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False)
    opportunity_id = Column(Integer, ForeignKey("opportunities.id", ondelete="SET NULL"))
    communication_id = Column(Integer, ForeignKey("communications.id", ondelete="SET NULL"))
    type = Column(String(50), nullable=False)
    description = Column(Text)
    direction = Column(String(20))
    user = Column(String(100))
    conversation_id = Column(String(255))
    message_id = Column(String(255))
    occurred_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        Index("idx_activities_contact_occurred", "contact_id", "occurred_at"),
        Index("idx_activities_communication_type", "communication_id", "type"),
        CheckConstraint(check_clause("type", ACTIVITY_TYPES), name="ck_activity_type"),
        CheckConstraint(
            "direction IS NULL OR " + check_clause("direction", DIRECTIONS),
            name="ck_activity_direction",
        ),
    )
