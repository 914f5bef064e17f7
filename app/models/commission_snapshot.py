from sqlalchemy import Column, String, Integer, Numeric, Text, DateTime, ForeignKey
from sqlalchemy.sql import func

from app.models.base import Base, utcnow


class CommissionSnapshot(Base):
    """Frozen record of a deal at the moment it was won.

    One row per opportunity (unique ``opportunity_id``).  Rows are never
    updated or deleted, not even when the deal is later reversed; the
    listeners in :mod:`app.models.listeners` reject both.
    """

    __tablename__ = "commission_snapshots"
    id = Column(Integer, primary_key=True, autoincrement=True)
    opportunity_id = Column(
        Integer, ForeignKey("opportunities.id"), nullable=False, unique=True
    )
    final_value = Column(Numeric(15, 2, asdecimal=False))
    commissionable_amount = Column(Numeric(15, 2, asdecimal=False))
    currency = Column(String(3))
    products = Column(Text)
    owner = Column(String(100))
    source = Column(String(50))
    sub_source = Column(String(100))
    first_touch_date = Column(DateTime(timezone=True))
    first_touch_type = Column(String(50))
    closed_at = Column(DateTime(timezone=True))
    locked_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    locked_by = Column(String(100))
