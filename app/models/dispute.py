from sqlalchemy import Column, String, Integer, Text, DateTime, CheckConstraint, ForeignKey
from sqlalchemy.sql import func

from app.core.constants import DISPUTE_STATUSES, check_clause
from app.models.base import Base, utcnow


class Dispute(Base):
    """A challenge raised against a commission claim."""

    __tablename__ = "disputes"
    id = Column(Integer, primary_key=True, autoincrement=True)
    opportunity_id = Column(
        Integer, ForeignKey("opportunities.id", ondelete="CASCADE"), nullable=False
    )
    commission_snapshot_id = Column(Integer, ForeignKey("commission_snapshots.id"))
    nature = Column(String(100), nullable=False)
    description = Column(Text, nullable=False)
    supporting_evidence = Column(Text)
    status = Column(String(20), nullable=False, default="open", server_default="open")
    resolution = Column(Text)
    created_by = Column(String(100))
    resolved_by = Column(String(100))
    resolved_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        CheckConstraint(check_clause("status", DISPUTE_STATUSES), name="ck_dispute_status"),
    )
