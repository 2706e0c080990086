"""
Collaborator operations consumed by fee composition and certificate issuance, bound to one
database session. Connection-level failures surface as TransientServiceError; "no rows"
is returned as an empty list / None.
"""

import functools
import logging
from typing import List, Optional

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.fees import service as fee_service
from app.api.v1.fees.schemas import BusFeeLineItem, FeeLineItem, FeeProfile
from app.api.v1.students import service as student_service
from app.api.v1.students.schemas import StudentProfile
from app.core.exceptions import TransientServiceError

from . import service as tc_service
from .schemas import CertificateRecord

logger = logging.getLogger(__name__)

_TRANSIENT_ERRORS = (OperationalError, InterfaceError, ConnectionError, TimeoutError)


def _transient(func):
    @functools.wraps(func)
    async def wrapper(self, *args, **kwargs):
        try:
            return await func(self, *args, **kwargs)
        except _TRANSIENT_ERRORS as exc:
            logger.warning("%s failed, reporting as retryable: %s", func.__name__, exc)
            raise TransientServiceError() from exc

    return wrapper


class SchoolGateway:
    def __init__(self, db: AsyncSession, changed_by: Optional[str] = None) -> None:
        self.db = db
        self.changed_by = changed_by

    @_transient
    async def fetch_tuition_fees(self, school_id: str, standard: str, student_category: str) -> List[FeeLineItem]:
        return await fee_service.fetch_tuition_fees(self.db, school_id, standard, student_category)

    @_transient
    async def fetch_hostel_fees(self, school_id: str, standard: str, student_category: str) -> List[FeeLineItem]:
        return await fee_service.fetch_hostel_fees(self.db, school_id, standard, student_category)

    @_transient
    async def fetch_bus_fee(self, school_id: str, boarding_point: str, route_number: str) -> Optional[BusFeeLineItem]:
        return await fee_service.fetch_bus_fee(self.db, school_id, boarding_point, route_number)

    @_transient
    async def fetch_student_profile(
        self, school_id: str, academic_year: str, admission_number: str
    ) -> Optional[StudentProfile]:
        return await student_service.fetch_student_profile(self.db, school_id, academic_year, admission_number)

    @_transient
    async def fetch_fee_profile(self, school_id: str, academic_year: str, admission_number: str) -> FeeProfile:
        return await fee_service.fetch_fee_profile(self.db, school_id, academic_year, admission_number)

    @_transient
    async def certificate_exists(self, school_id: str, academic_year: str, admission_number: str) -> bool:
        return await tc_service.certificate_exists(self.db, school_id, academic_year, admission_number)

    @_transient
    async def fetch_certificate(
        self, school_id: str, academic_year: str, admission_number: str
    ) -> Optional[CertificateRecord]:
        return await tc_service.get_certificate(self.db, school_id, academic_year, admission_number)

    @_transient
    async def create_certificate(self, record: CertificateRecord) -> str:
        return await tc_service.create_certificate(self.db, record, changed_by=self.changed_by)
