"""Persistent fee ledger: one row per student plus its installment rows."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.core.enums import FeePaymentStatus
from app.db.session import Base


class StudentFeeLedger(Base):
    """
    Ledger header. remaining_fees and payment_status are derived values written
    alongside every mutation; version_id guards concurrent read-modify-write.
    """

    __tablename__ = "student_fee_ledgers"
    __table_args__ = (
        CheckConstraint("total_fees >= 0", name="chk_fee_ledger_total_fees"),
        CheckConstraint("advance_payment >= 0", name="chk_fee_ledger_advance_payment"),
        CheckConstraint("remaining_fees >= 0", name="chk_fee_ledger_remaining_fees"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(
        UUID(as_uuid=True),
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    total_fees = Column(Numeric(12, 2), nullable=False, default=0)
    installment_count = Column(Integer, nullable=False)
    advance_payment = Column(Numeric(12, 2), nullable=False, default=0)
    remaining_fees = Column(Numeric(12, 2), nullable=False, default=0)
    payment_status = Column(String(20), nullable=False, default=FeePaymentStatus.NOT_PAID.value)
    version_id = Column(Integer, nullable=False)
    # sequence_no of the latest FeeAuditLog row for this ledger
    audit_sequence = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    student = relationship("Student", back_populates="fee_ledger")
    installments = relationship(
        "FeeInstallment",
        back_populates="ledger",
        order_by="FeeInstallment.position",
        cascade="all, delete-orphan",
    )


class FeeInstallment(Base):
    __tablename__ = "fee_installments"
    __table_args__ = (
        UniqueConstraint("ledger_id", "position", name="uq_fee_installment_ledger_position"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    ledger_id = Column(
        UUID(as_uuid=True),
        ForeignKey("student_fee_ledgers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position = Column(Integer, nullable=False)  # 0-based schedule index
    amount = Column(Numeric(12, 2), nullable=False)
    due_date = Column(Date, nullable=False)
    paid = Column(Boolean, nullable=False, default=False)
    paid_amount = Column(Numeric(12, 2), nullable=True)  # set only while partially paid
    payment_date = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)

    ledger = relationship("StudentFeeLedger", back_populates="installments")
