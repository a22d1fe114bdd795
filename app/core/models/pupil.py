import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, String, Uuid

from app.db.session import Base


class Pupil(Base):
    """Pupil profile. Owned by the admissions subsystem; read-only for requirement tracking."""

    __tablename__ = "pupils"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    full_name = Column(String(255), nullable=False)
    gender = Column(String(10), nullable=True)  # Male | Female
    class_id = Column(String(64), nullable=True)
    section = Column(String(20), nullable=True)  # Day | Boarding
    registration_date = Column(Date, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
