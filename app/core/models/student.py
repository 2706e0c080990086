"""Admitted student: one row per admission number per academic year per school."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, Date, DateTime, String, UniqueConstraint, Uuid

from app.db.session import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Student(Base):
    """Current admission record. standard/category/boarding drive fee composition."""

    __tablename__ = "students"
    __table_args__ = (
        UniqueConstraint(
            "school_id",
            "academic_year",
            "admission_number",
            name="uq_student_school_year_admission",
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    school_id = Column(String(50), nullable=False, index=True)
    academic_year = Column(String(20), nullable=False)
    admission_number = Column(String(50), nullable=False)

    student_name = Column(String(255), nullable=False)
    father_name = Column(String(255), nullable=True)
    mother_name = Column(String(255), nullable=True)
    gender = Column(String(20), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    date_of_admission = Column(Date, nullable=True)
    standard_on_admission = Column(String(50), nullable=True)

    standard = Column(String(50), nullable=False)
    section = Column(String(20), nullable=True)
    student_category = Column(String(50), nullable=True)
    hostel_required = Column(Boolean, nullable=False, default=False)
    bus_required = Column(Boolean, nullable=False, default=False)
    boarding_point = Column(String(100), nullable=True)
    bus_route_number = Column(String(50), nullable=True)

    nationality = Column(String(50), nullable=True)
    religion = Column(String(50), nullable=True)
    community = Column(String(100), nullable=True)
    caste = Column(String(100), nullable=True)
    mother_tongue = Column(String(50), nullable=True)
    aadhar_number = Column(String(20), nullable=True)
    emis_no = Column(String(30), nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
