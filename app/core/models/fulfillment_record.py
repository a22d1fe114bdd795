"""Per-pupil requirement fulfillment record with its append-only history (JSON column)."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String, Uuid
from sqlalchemy.orm import relationship

from app.core.enums import CoverageMode, PaymentStatus, ReleaseStatus, SelectionMode
from app.db.session import Base


class FulfillmentRecord(Base):
    """
    One row per (pupil, requirement selector, academic year, term).
    requirement_ids is the ordered selector; selection_mode tells a single item from a bundle.
    version is the mapper's version counter; a write against a row changed since it was loaded fails.
    """

    __tablename__ = "requirement_fulfillment_records"
    __table_args__ = (
        CheckConstraint("payment_status IN ('pending','partial','paid')", name="chk_fulfillment_payment_status"),
        CheckConstraint("release_status IN ('pending','released')", name="chk_fulfillment_release_status"),
        CheckConstraint("selection_mode IN ('item','bundle')", name="chk_fulfillment_selection_mode"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    pupil_id = Column(Uuid, ForeignKey("pupils.id", ondelete="CASCADE"), nullable=False, index=True)
    academic_year_id = Column(Uuid, ForeignKey("academic_years.id", ondelete="RESTRICT"), nullable=False, index=True)
    term_id = Column(Uuid, ForeignKey("terms.id", ondelete="RESTRICT"), nullable=False)

    selection_mode = Column(String(10), nullable=False, default=SelectionMode.ITEM.value)
    requirement_ids = Column(JSON, nullable=False, default=list)

    paid_amount = Column(Numeric(12, 2), nullable=False, default=0)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.pending.value)
    payment_date = Column(DateTime(timezone=True), nullable=True)
    coverage_mode = Column(String(10), nullable=False, default=CoverageMode.cash.value)

    release_status = Column(String(20), nullable=False, default=ReleaseStatus.pending.value)
    release_date = Column(DateTime(timezone=True), nullable=True)
    released_by = Column(String(255), nullable=True)
    received_by = Column(String(255), nullable=True)
    released_items = Column(JSON, nullable=False, default=list)

    item_quantity_provided = Column(Integer, nullable=False, default=0)
    total_item_quantity_required = Column(Integer, nullable=False, default=0)
    item_quantity_received = Column(Integer, nullable=False, default=0)
    item_quantity_received_from_office = Column(Integer, nullable=False, default=0)
    item_quantity_received_from_parent = Column(Integer, nullable=False, default=0)
    last_class_receipt_date = Column(DateTime(timezone=True), nullable=True)
    last_class_received_by = Column(String(255), nullable=True)

    history = Column(JSON, nullable=False, default=list)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    pupil = relationship("Pupil")
    academic_year = relationship("AcademicYear")
    term = relationship("Term")

    # UPDATE and DELETE match on the loaded version and bump it.
    __mapper_args__ = {"version_id_col": version}
