from sqlalchemy import Column, DateTime, Integer, String, CheckConstraint
from sqlalchemy.sql import func

from app.core.constants import CRM_FIELD_TYPES, check_clause
from app.models.base import Base, utcnow


class EmailCategoryMapping(Base):
    """Maps a mail-provider category label onto a CRM field value."""

    __tablename__ = "email_categories"
    id = Column(Integer, primary_key=True, autoincrement=True)
    category_name = Column(String(200), nullable=False, unique=True)
    crm_field_type = Column(String(20), nullable=False)
    crm_field_value = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        CheckConstraint(check_clause("crm_field_type", CRM_FIELD_TYPES), name="ck_category_field_type"),
    )
