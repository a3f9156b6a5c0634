"""Mapping between fee ledger rows and the pure ledger in app.core.fee_ledger."""

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core import fee_ledger
from app.core.fee_ledger import FeeLedger, Installment
from app.core.models import FeeAuditLog, FeeInstallment, StudentFeeLedger


def ledger_from_row(row: StudentFeeLedger) -> FeeLedger:
    """Build the in-memory ledger from a row loaded with its installments."""
    installments: List[Installment] = [
        Installment(
            amount=fee_ledger.to_money(r.amount),
            due_date=r.due_date,
            paid=bool(r.paid),
            paid_amount=fee_ledger.to_money(r.paid_amount) if r.paid_amount is not None else None,
            payment_date=r.payment_date,
            notes=r.notes,
        )
        for r in sorted(row.installments, key=lambda r: r.position)
    ]
    ledger = FeeLedger(
        total_fees=fee_ledger.to_money(row.total_fees),
        installment_count=row.installment_count,
        installments=installments,
        advance_payment=fee_ledger.to_money(row.advance_payment),
    )
    fee_ledger.recompute_remaining(ledger)
    return ledger


def _copy_installment(target: FeeInstallment, position: int, inst: Installment) -> None:
    target.position = position
    target.amount = inst.amount
    target.due_date = inst.due_date
    target.paid = inst.paid
    target.paid_amount = inst.paid_amount
    target.payment_date = inst.payment_date
    target.notes = inst.notes


def _copy_header(row: StudentFeeLedger, ledger: FeeLedger) -> None:
    row.total_fees = ledger.total_fees
    row.installment_count = ledger.installment_count
    row.advance_payment = ledger.advance_payment
    row.remaining_fees = ledger.remaining_fees
    row.payment_status = fee_ledger.payment_status(ledger).value
    # Always dirty the header so the version counter is checked and bumped.
    row.updated_at = datetime.now(timezone.utc)


def open_ledger(
    db: AsyncSession,
    student_id: UUID,
    total_fees: Decimal,
    installment_count: int,
    joining_date: date,
    actor_id: Optional[UUID] = None,
) -> Tuple[StudentFeeLedger, FeeLedger]:
    """Stage a new ledger row with its even split and opening audit entry."""
    ledger = fee_ledger.create_ledger(total_fees, installment_count, joining_date, actor_id=actor_id)
    row = StudentFeeLedger(id=uuid.uuid4(), student_id=student_id)
    write_ledger(db, row, ledger, student_id)
    db.add(row)
    return row, ledger


def write_ledger(
    db: AsyncSession,
    row: StudentFeeLedger,
    ledger: FeeLedger,
    student_id: UUID,
) -> None:
    """
    Stage the ledger state and its new audit entries on the session.
    Nothing is committed here; the caller owns the transaction.
    """
    _copy_header(row, ledger)
    existing = sorted(row.installments, key=lambda r: r.position)
    for position, inst in enumerate(ledger.installments):
        if position < len(existing):
            target = existing[position]
        else:
            target = FeeInstallment(id=uuid.uuid4())
            row.installments.append(target)
        _copy_installment(target, position, inst)
    for extra in existing[len(ledger.installments):]:
        row.installments.remove(extra)

    add_audit_entries(db, row, student_id, ledger.audit_log)


def add_audit_entries(
    db: AsyncSession,
    row: StudentFeeLedger,
    student_id: UUID,
    entries: List[fee_ledger.AuditEntry],
) -> None:
    """Stage audit rows numbered after the ledger's last entry."""
    for entry in entries:
        row.audit_sequence = (row.audit_sequence or 0) + 1
        db.add(
            FeeAuditLog(
                ledger=row,
                student_id=student_id,
                sequence_no=row.audit_sequence,
                action_type=entry.action,
                description=entry.description,
                actor_id=entry.actor_id,
                prior_snapshot=entry.prior_snapshot,
                created_at=entry.timestamp,
            )
        )
