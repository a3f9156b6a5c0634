"""Students service: registration (with fee ledger), edits, lookup by roll/phone/email."""

import logging
import re
import uuid
from datetime import date
from enum import Enum
from typing import Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.certifications import CATALOGUE
from app.core.config import settings
from app.core.exceptions import NotFoundError, ServiceError, ValidationError
from app.core.models import Student, StudentFeeLedger
from app.api.v1.fees.persistence import open_ledger

from .schemas import StudentCreate, StudentResponse, StudentUpdate, SubjectResponse

logger = logging.getLogger(__name__)

ROLL_NO_PATTERN = re.compile(r"^[A-Za-z0-9]+$")
PHONE_PATTERN = re.compile(r"^\d{10}$")


def _student_to_response(student: Student) -> StudentResponse:
    return StudentResponse(
        id=student.id,
        roll_no=student.roll_no,
        full_name=student.full_name,
        father_name=student.father_name,
        mother_name=student.mother_name,
        gender=student.gender,
        email=student.email,
        phone_number=student.phone_number,
        date_of_birth=student.date_of_birth,
        address=student.address,
        qualification=student.qualification,
        selected_course=student.selected_course,
        course_duration=student.course_duration,
        certification_title=student.certification_title,
        subjects=[
            SubjectResponse(
                code=s.code,
                name=s.name,
                max_theory_marks=s.max_theory_marks,
                max_practical_marks=s.max_practical_marks,
            )
            for s in CATALOGUE.subjects_for(student.certification_title)
        ],
        joining_date=student.joining_date,
        created_at=student.created_at,
    )


async def next_roll_no(db: AsyncSession, today: Optional[date] = None) -> str:
    """Next roll number for the current year: <YEAR>001, <YEAR>002, ..."""
    year = str((today or date.today()).year)
    last = (
        await db.execute(
            select(Student.roll_no)
            .where(Student.roll_no.like(f"{year}%"))
            # longer sequence first so 2026999 < 20261000
            .order_by(func.length(Student.roll_no).desc(), Student.roll_no.desc())
            .limit(1)
        )
    ).scalar_one_or_none()
    if last and last[4:].isdigit():
        return f"{year}{int(last[4:]) + 1:03d}"
    return f"{year}001"


async def create_student(
    db: AsyncSession,
    payload: StudentCreate,
    created_by: Optional[UUID] = None,
) -> StudentResponse:
    """Register a student and open their fee ledger with an even installment split."""
    duplicate = (
        await db.execute(
            select(Student.id).where(
                or_(Student.email == payload.email.lower(), Student.aadhar_number == payload.aadhar_number)
            )
        )
    ).first()
    if duplicate:
        raise ServiceError("Email or Aadhar number is already in use", status.HTTP_409_CONFLICT)

    installment_count = payload.installment_count or settings.default_installment_count
    try:
        student = Student(
            id=uuid.uuid4(),
            roll_no=await next_roll_no(db),
            full_name=payload.full_name.strip(),
            father_name=payload.father_name.strip(),
            mother_name=(payload.mother_name or "").strip() or None,
            gender=payload.gender.value,
            email=payload.email.lower(),
            phone_number=payload.phone_number,
            aadhar_number=payload.aadhar_number,
            date_of_birth=payload.date_of_birth,
            address=payload.address,
            qualification=payload.qualification.value if payload.qualification else None,
            selected_course=payload.selected_course.value,
            course_duration=payload.course_duration.value,
            certification_title=CATALOGUE.certification_title(payload.selected_course, payload.course_duration),
            joining_date=payload.joining_date,
        )
        db.add(student)
        await db.flush()

        open_ledger(
            db,
            student.id,
            payload.total_fees,
            installment_count,
            payload.joining_date,
            actor_id=created_by,
        )
        await db.commit()
        await db.refresh(student)
    except IntegrityError as e:
        await db.rollback()
        raise ServiceError(
            "Duplicate email, Aadhar or roll number", status.HTTP_409_CONFLICT
        ) from e

    logger.info(
        "Registered student %s (roll %s) with total fees %s over %d installments",
        student.id, student.roll_no, payload.total_fees, installment_count,
    )
    return _student_to_response(student)


def _lookup_clause(
    roll_no: Optional[str], phone_number: Optional[str], email: Optional[str]
):
    """Roll number wins over phone number, phone over email."""
    if roll_no:
        if not ROLL_NO_PATTERN.match(roll_no):
            raise ValidationError("Roll number must be alphanumeric")
        return Student.roll_no == roll_no
    if phone_number:
        if not PHONE_PATTERN.match(phone_number):
            raise ValidationError("Phone number must be a 10-digit number")
        return Student.phone_number == phone_number
    if email:
        return Student.email == email.strip().lower()
    raise ValidationError("Please provide a roll number, phone number or email")


async def find_student(
    db: AsyncSession,
    roll_no: Optional[str] = None,
    phone_number: Optional[str] = None,
    email: Optional[str] = None,
    *,
    with_ledger: bool = False,
    for_update: bool = False,
) -> Student:
    stmt = select(Student).where(_lookup_clause(roll_no, phone_number, email))
    if with_ledger:
        stmt = stmt.options(
            selectinload(Student.fee_ledger).selectinload(StudentFeeLedger.installments)
        )
    if for_update:
        stmt = stmt.with_for_update()
    # Several students may share a parent's phone number; oldest registration wins.
    student = (
        await db.execute(stmt.order_by(Student.created_at, Student.roll_no).limit(1))
    ).scalar_one_or_none()
    if not student:
        raise NotFoundError("Student not found")
    return student


async def search_student(
    db: AsyncSession,
    roll_no: Optional[str] = None,
    phone_number: Optional[str] = None,
    email: Optional[str] = None,
) -> StudentResponse:
    return _student_to_response(await find_student(db, roll_no, phone_number, email))


async def get_student(db: AsyncSession, student_id: UUID) -> Optional[StudentResponse]:
    student = await db.get(Student, student_id)
    if not student:
        return None
    return _student_to_response(student)


async def update_student(
    db: AsyncSession,
    student_id: UUID,
    payload: StudentUpdate,
    updated_by: Optional[UUID] = None,
) -> StudentResponse:
    """
    Edit registration details. A course or duration change re-derives the
    certification title. A new joining date does not move existing installment
    due dates; it is the start date for the next schedule regeneration.
    """
    student = await db.get(Student, student_id)
    if not student:
        raise NotFoundError("Student not found")

    changes = {
        field: value.value if isinstance(value, Enum) else value
        for field, value in payload.model_dump(exclude_none=True).items()
    }
    if "email" in changes:
        changes["email"] = changes["email"].lower()
    for field in ("full_name", "father_name"):
        if field in changes:
            changes[field] = changes[field].strip()
    if "mother_name" in changes:
        changes["mother_name"] = changes["mother_name"].strip() or None

    taken = []
    if changes.get("email", student.email) != student.email:
        taken.append(Student.email == changes["email"])
    if changes.get("aadhar_number", student.aadhar_number) != student.aadhar_number:
        taken.append(Student.aadhar_number == changes["aadhar_number"])
    if taken:
        duplicate = (
            await db.execute(select(Student.id).where(or_(*taken), Student.id != student.id))
        ).first()
        if duplicate:
            raise ServiceError("Email or Aadhar number is already in use", status.HTTP_409_CONFLICT)

    for field, value in changes.items():
        setattr(student, field, value)
    if "selected_course" in changes or "course_duration" in changes:
        student.certification_title = CATALOGUE.certification_title(
            student.selected_course, student.course_duration
        )

    try:
        await db.commit()
        await db.refresh(student)
    except IntegrityError as e:
        await db.rollback()
        raise ServiceError("Duplicate email or Aadhar number", status.HTTP_409_CONFLICT) from e

    logger.info(
        "Student %s updated by %s: %s", student_id, updated_by, ", ".join(sorted(changes))
    )
    return _student_to_response(student)
