"""Fee setup masters: tuition/hostel rows per standard + category, bus rows per boarding point + route."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, Numeric, String, Uuid

from app.db.session import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FeeSetup(Base):
    """One fee heading for a (standard, student category). ACADEMIC = tuition, HOSTEL = hostel."""

    __tablename__ = "fee_setups"
    __table_args__ = (
        CheckConstraint(
            "component_category IN ('ACADEMIC','HOSTEL')",
            name="chk_fee_setup_category",
        ),
        CheckConstraint("amount >= 0", name="chk_fee_setup_amount"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    school_id = Column(String(50), nullable=False, index=True)
    component_category = Column(String(20), nullable=False)
    standard = Column(String(50), nullable=False)
    student_category = Column(String(50), nullable=False)
    fee_heading = Column(String(100), nullable=True)
    account_head = Column(String(100), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    display_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)


class BusFeeSetup(Base):
    """Transport fee for an exact (boarding point, route number) pair."""

    __tablename__ = "bus_fee_setups"
    __table_args__ = (CheckConstraint("amount >= 0", name="chk_bus_fee_setup_amount"),)

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    school_id = Column(String(50), nullable=False, index=True)
    boarding_point = Column(String(100), nullable=False)
    route_number = Column(String(50), nullable=False)
    fee_heading = Column(String(100), nullable=True)
    account_head = Column(String(100), nullable=True)
    amount = Column(Numeric(12, 2), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
