"""Arrear fee: outstanding balance carried forward when a TC is issued."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, Numeric, String, Uuid

from app.core.enums import ArrearDirection
from app.db.session import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ArrearFee(Base):
    __tablename__ = "arrear_fees"
    __table_args__ = (
        CheckConstraint("in_out IN ('IN','OUT')", name="chk_arrear_fee_in_out"),
        CheckConstraint("amount > 0", name="chk_arrear_fee_amount"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    school_id = Column(String(50), nullable=False)
    academic_year = Column(String(20), nullable=False)
    admission_number = Column(String(50), nullable=False, index=True)
    student_name = Column(String(255), nullable=False, default="")
    standard = Column(String(50), nullable=False, default="")
    fee_head = Column(String(100), nullable=False)
    account_head = Column(String(100), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    in_out = Column(String(3), nullable=False, default=ArrearDirection.IN.value)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
