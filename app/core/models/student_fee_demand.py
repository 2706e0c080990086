"""Student fee demand: fee rows fixed for a student at admission submission. Never updated."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, Numeric, String, Uuid

from app.core.enums import FeeComponentCategory
from app.db.session import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StudentFeeDemand(Base):
    __tablename__ = "student_fee_demands"
    __table_args__ = (
        CheckConstraint(
            "component_category IN ('ACADEMIC','TRANSPORT','HOSTEL','OTHER')",
            name="chk_student_fee_demand_category",
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    school_id = Column(String(50), nullable=False, index=True)
    academic_year = Column(String(20), nullable=False)
    admission_number = Column(String(50), nullable=False, index=True)
    # OTHER = individual fee added for one student
    component_category = Column(String(20), nullable=False, default=FeeComponentCategory.ACADEMIC.value)
    fee_heading = Column(String(100), nullable=False)
    account_head = Column(String(100), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    boarding_point = Column(String(100), nullable=True)
    bus_route_number = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
