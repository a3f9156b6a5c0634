"""Fees service: student fee ledger reads and mutations. Every mutation is one transaction with its audit entries."""

import logging
from datetime import date
from decimal import Decimal
from typing import Callable, List, Optional, Tuple
from uuid import UUID

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from app.core import fee_ledger
from app.core.config import settings
from app.core.exceptions import ConcurrentModificationError, NotFoundError, ServiceError
from app.core.fee_ledger import FeeLedger
from app.core.models import FeeAuditLog, Student, StudentFeeLedger
from app.api.v1.students.service import find_student

from .persistence import ledger_from_row, open_ledger, write_ledger
from .schemas import (
    CustomPaymentRequest,
    FeeAuditLogResponse,
    FeeSummaryResponse,
    FeeUpdateRequest,
    InstallmentPaymentRequest,
    InstallmentResponse,
    MarkInstallmentPaidRequest,
    StudentFeeLedgerResponse,
    StudentFeeListItem,
    StudentLookup,
)

logger = logging.getLogger(__name__)

# (ledger, joining_date) -> new ledger
LedgerOperation = Callable[[FeeLedger, date], FeeLedger]


def _summary_to_response(ledger: FeeLedger) -> FeeSummaryResponse:
    summary = fee_ledger.get_summary(ledger)
    return FeeSummaryResponse(
        total_fees=summary.total_fees,
        total_paid=summary.total_paid,
        remaining_fees=summary.remaining_fees,
        advance_payment=summary.advance_payment,
        payment_status=summary.payment_status,
    )


def _ledger_to_response(student: Student, ledger: FeeLedger) -> StudentFeeLedgerResponse:
    return StudentFeeLedgerResponse(
        student_id=student.id,
        roll_no=student.roll_no,
        full_name=student.full_name,
        father_name=student.father_name,
        selected_course=student.selected_course,
        course_duration=student.course_duration,
        joining_date=student.joining_date,
        installment_count=ledger.installment_count,
        installments=[
            InstallmentResponse(
                index=index,
                amount=inst.amount,
                due_date=inst.due_date,
                paid=inst.paid,
                paid_amount=inst.paid_amount,
                outstanding=inst.outstanding,
                payment_date=inst.payment_date,
                notes=inst.notes,
            )
            for index, inst in enumerate(ledger.installments)
        ],
        summary=_summary_to_response(ledger),
    )


async def _load_student(db: AsyncSession, lookup: StudentLookup, for_update: bool = False) -> Student:
    return await find_student(
        db,
        lookup.roll_no,
        lookup.phone_number,
        lookup.email,
        with_ledger=True,
        for_update=for_update,
    )


def _require_ledger(student: Student) -> FeeLedger:
    if student.fee_ledger is None:
        raise NotFoundError("No fee record exists for this student")
    return ledger_from_row(student.fee_ledger)


async def _mutate_ledger(
    db: AsyncSession,
    lookup: StudentLookup,
    operations: List[LedgerOperation],
    *,
    actor_id: Optional[UUID],
    create_if_missing: Optional[Tuple[Decimal, int]] = None,
) -> StudentFeeLedgerResponse:
    """
    Read-modify-write of one student's ledger.

    The student row is locked for the transaction and the ledger row carries a
    version counter; the new ledger state and every audit entry produced by
    ``operations`` are committed together or not at all.
    """
    student = await _load_student(db, lookup, for_update=True)
    student_id = student.id
    row = student.fee_ledger
    opened = False
    try:
        if row is None:
            if create_if_missing is None:
                raise NotFoundError("No fee record exists for this student")
            total_fees, installment_count = create_if_missing
            row, ledger = open_ledger(
                db, student_id, total_fees, installment_count, student.joining_date, actor_id=actor_id
            )
            # the opening entry is staged by open_ledger
            ledger.audit_log.clear()
            opened = True
        else:
            ledger = ledger_from_row(row)

        for operation in operations:
            ledger = operation(ledger, student.joining_date)
    except ServiceError as e:
        await db.rollback()
        logger.warning("Fee update rejected for student %s: %s", student_id, e.message)
        raise

    if not ledger.audit_log and not opened:
        # nothing changed, e.g. marking an installment that is already paid;
        # commit only ends the transaction and releases the row lock
        await db.commit()
        return _ledger_to_response(student, ledger)

    write_ledger(db, row, ledger, student_id)
    try:
        await db.commit()
    except StaleDataError as e:
        await db.rollback()
        logger.warning("Concurrent fee update detected for student %s", student_id)
        raise ConcurrentModificationError() from e
    except IntegrityError as e:
        await db.rollback()
        raise ServiceError("Conflict while saving fee record", status.HTTP_409_CONFLICT) from e

    logger.info(
        "Fee ledger of student %s updated: %s",
        student_id,
        "; ".join(entry.description for entry in ledger.audit_log) or "ledger opened",
    )
    return _ledger_to_response(student, ledger)


# --- Reads ---
async def get_student_fees(db: AsyncSession, lookup: StudentLookup) -> StudentFeeLedgerResponse:
    student = await _load_student(db, lookup)
    return _ledger_to_response(student, _require_ledger(student))


async def get_fee_summary(db: AsyncSession, lookup: StudentLookup) -> FeeSummaryResponse:
    student = await _load_student(db, lookup)
    return _summary_to_response(_require_ledger(student))


async def list_all_student_fees(
    db: AsyncSession,
    incomplete_only: bool = False,
) -> List[StudentFeeListItem]:
    """All students with their fee summaries. incomplete_only keeps students with fees still due."""
    stmt = (
        select(Student)
        .options(selectinload(Student.fee_ledger).selectinload(StudentFeeLedger.installments))
        .order_by(func.length(Student.roll_no), Student.roll_no)
    )
    if incomplete_only:
        stmt = stmt.join(StudentFeeLedger, StudentFeeLedger.student_id == Student.id).where(
            StudentFeeLedger.remaining_fees > 0
        )
    students = (await db.execute(stmt)).scalars().all()
    return [
        StudentFeeListItem(
            student_id=s.id,
            roll_no=s.roll_no,
            full_name=s.full_name,
            father_name=s.father_name,
            phone_number=s.phone_number,
            selected_course=s.selected_course,
            course_duration=s.course_duration,
            summary=_summary_to_response(ledger_from_row(s.fee_ledger)) if s.fee_ledger else None,
        )
        for s in students
    ]


async def get_audit_log(db: AsyncSession, lookup: StudentLookup) -> List[FeeAuditLogResponse]:
    student = await _load_student(db, lookup)
    rows = (
        await db.execute(
            select(FeeAuditLog)
            .where(FeeAuditLog.student_id == student.id)
            .order_by(FeeAuditLog.sequence_no)
        )
    ).scalars().all()
    return [FeeAuditLogResponse.model_validate(r) for r in rows]


# --- Mutations ---
async def update_student_fees(
    db: AsyncSession,
    payload: FeeUpdateRequest,
    changed_by: Optional[UUID],
) -> StudentFeeLedgerResponse:
    """
    Apply every change present in the payload, in order: total fees,
    installment count, mark paid, installment payment, custom payment.
    Opens the ledger first when the student has none.
    """
    operations: List[LedgerOperation] = []
    if payload.total_fees is not None:
        total = payload.total_fees
        operations.append(
            lambda l, joined: fee_ledger.set_total_fees(l, total, joined, actor_id=changed_by).ledger
        )
    if payload.installment_count is not None:
        count = payload.installment_count
        operations.append(
            lambda l, joined: fee_ledger.set_installment_count(l, count, joined, actor_id=changed_by).ledger
        )
    if payload.mark_installment_paid is not None:
        item = payload.mark_installment_paid
        operations.append(
            lambda l, joined: fee_ledger.mark_installment_paid(
                l, item.index, item.payment_date, item.notes, actor_id=changed_by
            ).ledger
        )
    if payload.installment_payment is not None:
        part = payload.installment_payment
        operations.append(
            lambda l, joined: fee_ledger.apply_payment_to_installment(
                l, part.index, part.paid_amount, part.payment_date, part.notes, actor_id=changed_by
            ).ledger
        )
    if payload.custom_payment is not None:
        custom = payload.custom_payment
        operations.append(
            lambda l, joined: fee_ledger.apply_custom_payment(
                l, custom.amount, custom.payment_date, custom.notes, actor_id=changed_by
            ).ledger
        )

    return await _mutate_ledger(
        db,
        StudentLookup(roll_no=payload.roll_no, phone_number=payload.phone_number, email=payload.email),
        operations,
        actor_id=changed_by,
        create_if_missing=(
            payload.total_fees if payload.total_fees is not None else Decimal("0"),
            payload.installment_count or settings.default_installment_count,
        ),
    )


async def mark_installment_paid(
    db: AsyncSession,
    lookup: StudentLookup,
    index: int,
    payload: MarkInstallmentPaidRequest,
    changed_by: Optional[UUID],
) -> StudentFeeLedgerResponse:
    return await _mutate_ledger(
        db,
        lookup,
        [
            lambda l, joined: fee_ledger.mark_installment_paid(
                l, index, payload.payment_date, payload.notes, actor_id=changed_by
            ).ledger
        ],
        actor_id=changed_by,
    )


async def pay_installment(
    db: AsyncSession,
    lookup: StudentLookup,
    index: int,
    payload: InstallmentPaymentRequest,
    changed_by: Optional[UUID],
) -> StudentFeeLedgerResponse:
    """Full or partial payment against one installment; a partial payment splits it."""
    return await _mutate_ledger(
        db,
        lookup,
        [
            lambda l, joined: fee_ledger.apply_payment_to_installment(
                l, index, payload.paid_amount, payload.payment_date, payload.notes, actor_id=changed_by
            ).ledger
        ],
        actor_id=changed_by,
    )


async def record_custom_payment(
    db: AsyncSession,
    lookup: StudentLookup,
    payload: CustomPaymentRequest,
    changed_by: Optional[UUID],
) -> StudentFeeLedgerResponse:
    return await _mutate_ledger(
        db,
        lookup,
        [
            lambda l, joined: fee_ledger.apply_custom_payment(
                l, payload.amount, payload.payment_date, payload.notes, actor_id=changed_by
            ).ledger
        ],
        actor_id=changed_by,
    )
