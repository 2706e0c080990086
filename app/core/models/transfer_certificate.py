"""Transfer certificate: created exactly once per identity key, immutable afterwards."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, Date, DateTime, Numeric, String, Text, UniqueConstraint, Uuid

from app.db.session import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TransferCertificate(Base):
    """
    Issued TC. The unique constraint on (school_id, academic_year, admission_number)
    is the final guard against double issuance. There is no update or delete path.
    """

    __tablename__ = "transfer_certificates"
    __table_args__ = (
        UniqueConstraint(
            "school_id",
            "academic_year",
            "admission_number",
            name="uq_tc_school_year_admission",
        ),
        UniqueConstraint("school_id", "academic_year", "tc_number", name="uq_tc_school_year_number"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    school_id = Column(String(50), nullable=False, index=True)
    academic_year = Column(String(20), nullable=False)
    admission_number = Column(String(50), nullable=False)
    tc_number = Column(String(100), nullable=False)

    student_name = Column(String(255), nullable=False)
    parent_name = Column(String(255), nullable=True)
    standard = Column(String(50), nullable=True)
    section = Column(String(20), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    date_of_admission = Column(Date, nullable=True)
    date_of_leaving = Column(Date, nullable=True)

    application_date = Column(Date, nullable=True)
    issue_date = Column(Date, nullable=True)
    conduct = Column(String(100), nullable=True)
    promotion_status = Column(String(100), nullable=True)
    reason_for_leaving = Column(Text, nullable=True)
    community_option = Column(String(1), nullable=True)
    fees_paid = Column(String(3), nullable=True)  # Yes / No

    fee_balance_shifted = Column(Numeric(12, 2), nullable=False, default=0)
    # Snapshot of individual arrears as understood when the operator selected the student
    individual_arrears = Column(JSON, nullable=False, default=list)
    extra_fields = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
