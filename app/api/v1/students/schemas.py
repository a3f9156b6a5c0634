"""Students schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, model_validator

from app.core.enums import Course, CourseDuration, Gender, Qualification


class StudentCreate(BaseModel):
    """Do NOT send roll_no or certification_title (generated in backend)."""

    full_name: str = Field(..., min_length=1, max_length=255)
    father_name: str = Field(..., min_length=1, max_length=255)
    mother_name: Optional[str] = Field(None, max_length=255)
    gender: Gender
    email: EmailStr
    phone_number: str = Field(..., pattern=r"^\d{10}$")
    aadhar_number: str = Field(..., pattern=r"^\d{12}$")
    date_of_birth: Optional[date] = None
    address: Optional[str] = None
    qualification: Optional[Qualification] = None
    selected_course: Course
    course_duration: CourseDuration
    joining_date: date
    total_fees: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    installment_count: Optional[int] = Field(None, ge=1, le=12, description="Defaults to DEFAULT_INSTALLMENT_COUNT")


class StudentUpdate(BaseModel):
    """Partial edit. Omitted or null fields keep their value; roll_no cannot change."""

    full_name: Optional[str] = Field(None, min_length=1, max_length=255)
    father_name: Optional[str] = Field(None, min_length=1, max_length=255)
    mother_name: Optional[str] = Field(None, max_length=255)
    gender: Optional[Gender] = None
    email: Optional[EmailStr] = None
    phone_number: Optional[str] = Field(None, pattern=r"^\d{10}$")
    aadhar_number: Optional[str] = Field(None, pattern=r"^\d{12}$")
    date_of_birth: Optional[date] = None
    address: Optional[str] = None
    qualification: Optional[Qualification] = None
    selected_course: Optional[Course] = None
    course_duration: Optional[CourseDuration] = None
    joining_date: Optional[date] = None

    @model_validator(mode="after")
    def validate_has_change(self) -> "StudentUpdate":
        if not self.model_dump(exclude_none=True):
            raise ValueError("At least one field must be provided")
        return self


class SubjectResponse(BaseModel):
    code: str
    name: str
    max_theory_marks: int
    max_practical_marks: int


class StudentResponse(BaseModel):
    id: UUID
    roll_no: str
    full_name: str
    father_name: str
    mother_name: Optional[str] = None
    gender: str
    email: str
    phone_number: str
    date_of_birth: Optional[date] = None
    address: Optional[str] = None
    qualification: Optional[str] = None
    selected_course: str
    course_duration: str
    certification_title: Optional[str] = None
    subjects: List[SubjectResponse] = Field(default_factory=list)
    joining_date: date
    created_at: datetime
