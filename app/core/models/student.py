"""Registered student: the record that owns a fee ledger."""

import uuid
from datetime import datetime

from sqlalchemy import Column, Date, DateTime, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from app.db.session import Base


class Student(Base):
    __tablename__ = "students"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # <YEAR><3-digit sequence>, e.g. 2026001; generated on registration
    roll_no = Column(String(20), nullable=False, unique=True, index=True)
    full_name = Column(String(255), nullable=False)
    father_name = Column(String(255), nullable=False)
    mother_name = Column(String(255), nullable=True)
    gender = Column(String(10), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    phone_number = Column(String(10), nullable=False, index=True)
    aadhar_number = Column(String(12), nullable=False, unique=True)
    date_of_birth = Column(Date, nullable=True)
    address = Column(Text, nullable=True)
    qualification = Column(String(20), nullable=True)
    selected_course = Column(String(50), nullable=False)
    course_duration = Column(String(20), nullable=False)
    certification_title = Column(String(100), nullable=True)
    joining_date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    fee_ledger = relationship(
        "StudentFeeLedger",
        back_populates="student",
        uselist=False,
        cascade="all, delete-orphan",
    )
