"""Fees schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from app.core.enums import FeePaymentStatus


# --- Student lookup ---
class StudentLookup(BaseModel):
    """Identifies the student whose ledger is targeted. Roll number wins, then phone, then email."""

    roll_no: Optional[str] = Field(None, max_length=20)
    phone_number: Optional[str] = Field(None, max_length=10)
    email: Optional[str] = Field(None, max_length=255)


# --- Ledger operations ---
class MarkInstallmentPaidRequest(BaseModel):
    payment_date: Optional[datetime] = None
    notes: Optional[str] = None


class MarkInstallmentPaidItem(MarkInstallmentPaidRequest):
    index: int = Field(..., ge=0, description="0-based installment index")


class InstallmentPaymentRequest(BaseModel):
    paid_amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    payment_date: Optional[datetime] = None
    notes: Optional[str] = None


class InstallmentPaymentItem(InstallmentPaymentRequest):
    index: int = Field(..., ge=0, description="0-based installment index")


class CustomPaymentRequest(BaseModel):
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    payment_date: Optional[datetime] = Field(None, alias="date")
    notes: Optional[str] = None

    class Config:
        populate_by_name = True


class FeeUpdateRequest(StudentLookup):
    """Any combination of changes; applied in field order inside one transaction."""

    total_fees: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    installment_count: Optional[int] = Field(None, ge=1, le=12)
    mark_installment_paid: Optional[MarkInstallmentPaidItem] = None
    installment_payment: Optional[InstallmentPaymentItem] = None
    custom_payment: Optional[CustomPaymentRequest] = None

    @model_validator(mode="after")
    def validate_has_change(self) -> "FeeUpdateRequest":
        if (
            self.total_fees is None
            and self.installment_count is None
            and self.mark_installment_paid is None
            and self.installment_payment is None
            and self.custom_payment is None
        ):
            raise ValueError("At least one fee change must be provided")
        return self


# --- Responses ---
class InstallmentResponse(BaseModel):
    index: int
    amount: Decimal
    due_date: date
    paid: bool
    paid_amount: Optional[Decimal] = None
    outstanding: Decimal
    payment_date: Optional[datetime] = None
    notes: Optional[str] = None


class FeeSummaryResponse(BaseModel):
    total_fees: Decimal
    total_paid: Decimal
    remaining_fees: Decimal
    advance_payment: Decimal
    payment_status: FeePaymentStatus


class StudentFeeLedgerResponse(BaseModel):
    student_id: UUID
    roll_no: str
    full_name: str
    father_name: str
    selected_course: str
    course_duration: str
    joining_date: date
    installment_count: int
    installments: List[InstallmentResponse]
    summary: FeeSummaryResponse


class StudentFeeListItem(BaseModel):
    student_id: UUID
    roll_no: str
    full_name: str
    father_name: str
    phone_number: str
    selected_course: str
    course_duration: str
    summary: Optional[FeeSummaryResponse] = None  # None until the student has a ledger


class FeeAuditLogResponse(BaseModel):
    id: UUID
    sequence_no: int
    action_type: str
    description: str
    actor_id: Optional[UUID] = None
    prior_snapshot: Optional[Dict[str, Any]] = None
    created_at: datetime

    class Config:
        from_attributes = True
