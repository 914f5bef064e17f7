from sqlalchemy import Boolean, Column, String, Integer, Text, DateTime, ForeignKey, false
from sqlalchemy.sql import func

from app.models.base import Base, utcnow


class FollowUp(Base):
    __tablename__ = "follow_ups"
    id = Column(Integer, primary_key=True, autoincrement=True)
    contact_id = Column(Integer, ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False)
    opportunity_id = Column(Integer, ForeignKey("opportunities.id", ondelete="SET NULL"))
    communication_id = Column(Integer, ForeignKey("communications.id", ondelete="SET NULL"))
    lead_id = Column(Integer, ForeignKey("leads.id", ondelete="SET NULL"))
    scheduled_date = Column(DateTime(timezone=True), nullable=False)
    type = Column(String(50), nullable=False, default="email", server_default="email")
    notes = Column(Text)
    completed = Column(Boolean, nullable=False, default=False, server_default=false())
    completed_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
