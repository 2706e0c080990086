"""Fee collection rows (daily and miscellaneous counters). Read-only for this service."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Numeric, String, Uuid

from app.db.session import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FeeCollection(Base):
    __tablename__ = "fee_collections"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    school_id = Column(String(50), nullable=False, index=True)
    academic_year = Column(String(20), nullable=False)
    admission_number = Column(String(50), nullable=False, index=True)
    fee_head = Column(String(100), nullable=False)
    paid_amount = Column(Numeric(12, 2), nullable=False, default=0)
    concession_amount = Column(Numeric(12, 2), nullable=False, default=0)
    counter = Column(String(20), nullable=False, default="DAILY")  # DAILY, MISCELLANEOUS
    collected_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
