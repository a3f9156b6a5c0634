"""Fees router: student fee ledger, installment payments, custom payments, audit log."""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.rbac import check_permission
from app.auth.schemas import CurrentUser
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .schemas import (
    CustomPaymentRequest,
    FeeAuditLogResponse,
    FeeSummaryResponse,
    FeeUpdateRequest,
    InstallmentPaymentRequest,
    MarkInstallmentPaidRequest,
    StudentFeeLedgerResponse,
    StudentFeeListItem,
    StudentLookup,
)
from . import service

router = APIRouter(prefix="/api/v1/fees", tags=["fees"])


def student_lookup(
    roll_no: Optional[str] = Query(None, description="Roll number (takes priority)"),
    phone_number: Optional[str] = Query(None, description="10-digit phone number"),
    email: Optional[str] = Query(None),
) -> StudentLookup:
    return StudentLookup(roll_no=roll_no, phone_number=phone_number, email=email)


# --- Reads ---
@router.get(
    "/student",
    response_model=StudentFeeLedgerResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_student_fees(
    lookup: StudentLookup = Depends(student_lookup),
    db: AsyncSession = Depends(get_db),
) -> StudentFeeLedgerResponse:
    try:
        return await service.get_student_fees(db, lookup)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/student/summary",
    response_model=FeeSummaryResponse,
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_fee_summary(
    lookup: StudentLookup = Depends(student_lookup),
    db: AsyncSession = Depends(get_db),
) -> FeeSummaryResponse:
    try:
        return await service.get_fee_summary(db, lookup)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/student/audit-log",
    response_model=List[FeeAuditLogResponse],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def get_fee_audit_log(
    lookup: StudentLookup = Depends(student_lookup),
    db: AsyncSession = Depends(get_db),
) -> List[FeeAuditLogResponse]:
    try:
        return await service.get_audit_log(db, lookup)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get(
    "/all",
    response_model=List[StudentFeeListItem],
    dependencies=[Depends(check_permission("fees", "read"))],
)
async def list_all_student_fees(
    incomplete_only: bool = Query(False, description="Only students with fees still due"),
    db: AsyncSession = Depends(get_db),
) -> List[StudentFeeListItem]:
    return await service.list_all_student_fees(db, incomplete_only=incomplete_only)


# --- Mutations ---
@router.patch(
    "/student",
    response_model=StudentFeeLedgerResponse,
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def update_student_fees(
    payload: FeeUpdateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentFeeLedgerResponse:
    try:
        return await service.update_student_fees(db, payload, changed_by=current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/student/installments/{index}/pay",
    response_model=StudentFeeLedgerResponse,
    dependencies=[Depends(check_permission("fees", "update"))],
)
async def mark_installment_paid(
    index: int = Path(..., ge=0),
    payload: Optional[MarkInstallmentPaidRequest] = None,
    lookup: StudentLookup = Depends(student_lookup),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentFeeLedgerResponse:
    try:
        return await service.mark_installment_paid(
            db,
            lookup,
            index,
            payload or MarkInstallmentPaidRequest(),
            changed_by=current_user.id,
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/student/installments/{index}/payments",
    response_model=StudentFeeLedgerResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def pay_installment(
    payload: InstallmentPaymentRequest,
    index: int = Path(..., ge=0),
    lookup: StudentLookup = Depends(student_lookup),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentFeeLedgerResponse:
    try:
        return await service.pay_installment(db, lookup, index, payload, changed_by=current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/student/payments",
    response_model=StudentFeeLedgerResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("fees", "create"))],
)
async def record_custom_payment(
    payload: CustomPaymentRequest,
    lookup: StudentLookup = Depends(student_lookup),
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
) -> StudentFeeLedgerResponse:
    try:
        return await service.record_custom_payment(db, lookup, payload, changed_by=current_user.id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
