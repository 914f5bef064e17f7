from sqlalchemy import Boolean, Column, DateTime, Integer, JSON, String, Text, true
from sqlalchemy.sql import func

from app.models.base import Base, utcnow


class EmailRule(Base):
    """User-defined automation rule applied to every processed email.

    ``conditions`` and ``actions`` hold JSON arrays whose layout is
    owned by ``app.schemas.rule_codec``.  Higher ``priority`` runs
    first; ties run in ascending id order.
    """

    __tablename__ = "email_rules"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    description = Column(Text)
    priority = Column(Integer, nullable=False, default=0, server_default="0")
    enabled = Column(Boolean, nullable=False, default=True, server_default=true())
    conditions = Column(JSON, nullable=False, default=list)
    actions = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
