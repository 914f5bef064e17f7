from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey, Index
from sqlalchemy.sql import func

from app.models.base import Base, utcnow


class AuditTrailEntry(Base):
    """Append-only change log for opportunity fields.

    Written for every status, stage and category-derived field change.
    Entries are never mutated or deleted.
    """

    __tablename__ = "audit_trail"
    id = Column(Integer, primary_key=True, autoincrement=True)
    opportunity_id = Column(
        Integer, ForeignKey("opportunities.id", ondelete="CASCADE"), nullable=False
    )
    field_name = Column(String(50), nullable=False)
    old_value = Column(Text)
    new_value = Column(Text)
    changed_by = Column(String(100))
    changed_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        Index("idx_audit_trail_opportunity", "opportunity_id", "changed_at"),
    )
