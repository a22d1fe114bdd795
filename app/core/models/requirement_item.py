"""Requirement catalog item. Never edited in place: an update supersedes it with a new row."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid

from app.core.enums import RequirementFrequency, RequirementGender, ScopeType
from app.db.session import Base


class RequirementItem(Base):
    __tablename__ = "requirements"
    __table_args__ = (
        CheckConstraint("frequency IN ('one-time','yearly','termly')", name="chk_requirement_frequency"),
        CheckConstraint("gender IN ('all','male','female')", name="chk_requirement_gender"),
        CheckConstraint("price >= 0", name="chk_requirement_price"),
        CheckConstraint("quantity >= 0", name="chk_requirement_quantity"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    group = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    price = Column(Numeric(12, 2), nullable=False, default=0)
    quantity = Column(Integer, nullable=False, default=0)  # 0 = not quantity based
    frequency = Column(String(20), nullable=False, default=RequirementFrequency.TERMLY.value)
    gender = Column(String(10), nullable=False, default=RequirementGender.ALL.value)
    class_type = Column(String(10), nullable=False, default=ScopeType.ALL.value)
    class_ids = Column(JSON, nullable=False, default=list)
    section_type = Column(String(10), nullable=False, default=ScopeType.ALL.value)
    section = Column(String(20), nullable=True)  # Day | Boarding when section_type = specific
    is_active = Column(Boolean, nullable=False, default=True)
    superseded_by = Column(Uuid, ForeignKey("requirements.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
