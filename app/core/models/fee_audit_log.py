"""Fee audit log: append-only history of ledger mutations."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import relationship

from app.db.session import Base


class FeeAuditLog(Base):
    """One row per ledger mutation, written in the same transaction as the change."""

    __tablename__ = "fee_audit_logs"
    __table_args__ = (
        UniqueConstraint("ledger_id", "sequence_no", name="uq_fee_audit_log_ledger_sequence"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    ledger_id = Column(
        UUID(as_uuid=True),
        ForeignKey("student_fee_ledgers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # 1, 2, 3, ... per ledger; the order entries were written in
    sequence_no = Column(Integer, nullable=False)
    student_id = Column(UUID(as_uuid=True), ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    action_type = Column(String(40), nullable=False)  # SET_TOTAL_FEES, CUSTOM_PAYMENT, ...
    description = Column(Text, nullable=False)
    # Staff identity comes from the access token; users live outside this service
    actor_id = Column(UUID(as_uuid=True), nullable=True)
    prior_snapshot = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    ledger = relationship("StudentFeeLedger")
