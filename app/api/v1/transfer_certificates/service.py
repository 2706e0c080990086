"""Transfer certificates: existence, create-once issuance with arrear carry-forward, listing."""

import logging
from decimal import Decimal
from typing import List, Optional

from fastapi import status
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.fees.schemas import ArrearItem
from app.api.v1.fees import audit_service
from app.core.config import settings
from app.core.enums import ArrearDirection
from app.core.exceptions import AlreadyIssuedError, ServiceError
from app.core.models import ArrearFee, TransferCertificate

from .schemas import ArrearFeeResponse, CertificateListItem, CertificateRecord

logger = logging.getLogger(__name__)


def _to_decimal(val) -> Decimal:
    if val is None:
        return Decimal("0")
    return val if isinstance(val, Decimal) else Decimal(str(val))


def _arrears_to_json(arrears: List[ArrearItem]) -> List[dict]:
    # account_head is excluded from serialization, so build the stored form explicitly
    return [
        {"fee_head": a.fee_head, "amount": str(a.amount), "account_head": a.account_head}
        for a in arrears
    ]


def _tc_to_record(tc: TransferCertificate) -> CertificateRecord:
    return CertificateRecord(
        admission_number=tc.admission_number,
        school_id=tc.school_id,
        academic_year=tc.academic_year,
        tc_number=tc.tc_number,
        student_name=tc.student_name,
        parent_name=tc.parent_name,
        standard=tc.standard,
        section=tc.section,
        date_of_birth=tc.date_of_birth,
        date_of_admission=tc.date_of_admission,
        date_of_leaving=tc.date_of_leaving,
        application_date=tc.application_date,
        issue_date=tc.issue_date,
        conduct=tc.conduct,
        promotion_status=tc.promotion_status,
        reason_for_leaving=tc.reason_for_leaving,
        community_option=tc.community_option,
        fees_paid=tc.fees_paid,
        fee_balance_shifted=_to_decimal(tc.fee_balance_shifted),
        individual_arrears=[
            ArrearItem(
                fee_head=a["fee_head"],
                amount=_to_decimal(a["amount"]),
                account_head=a.get("account_head") or "General",
            )
            for a in (tc.individual_arrears or [])
        ],
        extra_fields=tc.extra_fields or {},
        created_at=tc.created_at,
    )


def _key_filter(school_id: str, academic_year: str, admission_number: str):
    return (
        TransferCertificate.school_id == school_id,
        TransferCertificate.academic_year == academic_year,
        TransferCertificate.admission_number == admission_number,
    )


async def certificate_exists(
    db: AsyncSession, school_id: str, academic_year: str, admission_number: str
) -> bool:
    found = (
        await db.execute(
            select(TransferCertificate.id).where(*_key_filter(school_id, academic_year, admission_number))
        )
    ).scalar_one_or_none()
    return found is not None


async def get_certificate(
    db: AsyncSession, school_id: str, academic_year: str, admission_number: str
) -> Optional[CertificateRecord]:
    tc = (
        await db.execute(
            select(TransferCertificate).where(*_key_filter(school_id, academic_year, admission_number))
        )
    ).scalar_one_or_none()
    return _tc_to_record(tc) if tc else None


async def create_certificate(
    db: AsyncSession,
    record: CertificateRecord,
    changed_by: Optional[str] = None,
) -> str:
    """
    Insert the certificate and, when dues are pending, one OUT arrear per snapshotted head.
    Fails with AlreadyIssuedError if the identity key already has a certificate; never overwrites.
    """
    balance = _to_decimal(record.fee_balance_shifted)
    tc = TransferCertificate(
        school_id=record.school_id,
        academic_year=record.academic_year,
        admission_number=record.admission_number,
        tc_number=record.tc_number,
        student_name=record.student_name,
        parent_name=record.parent_name,
        standard=record.standard,
        section=record.section,
        date_of_birth=record.date_of_birth,
        date_of_admission=record.date_of_admission,
        date_of_leaving=record.date_of_leaving,
        application_date=record.application_date,
        issue_date=record.issue_date,
        conduct=record.conduct,
        promotion_status=record.promotion_status,
        reason_for_leaving=record.reason_for_leaving,
        community_option=record.community_option,
        fees_paid=record.fees_paid,
        fee_balance_shifted=balance,
        individual_arrears=_arrears_to_json(record.individual_arrears),
        extra_fields=record.extra_fields or None,
    )
    try:
        db.add(tc)
        await db.flush()
        arrear_ids = []
        if balance > settings.cleared_tolerance:
            for item in record.individual_arrears:
                arrear = ArrearFee(
                    school_id=record.school_id,
                    academic_year=record.academic_year,
                    admission_number=record.admission_number,
                    student_name=record.student_name,
                    standard=record.standard or "",
                    fee_head=item.fee_head,
                    account_head=item.account_head,
                    amount=item.amount,
                    in_out=ArrearDirection.OUT.value,
                )
                db.add(arrear)
                await db.flush()
                arrear_ids.append(str(arrear.id))
        await audit_service.log_fee_audit(
            db, record.school_id, "transfer_certificates", tc.id,
            "ISSUE", None,
            {
                "admission_number": record.admission_number,
                "tc_number": record.tc_number,
                "fee_balance_shifted": str(balance),
                "arrear_fee_ids": arrear_ids,
            },
            changed_by,
        )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        if await certificate_exists(db, record.school_id, record.academic_year, record.admission_number):
            logger.warning(
                "Rejected duplicate TC for %s (%s, %s)",
                record.admission_number, record.school_id, record.academic_year,
            )
            raise AlreadyIssuedError()
        raise ServiceError(
            f"TC number {record.tc_number} is already used for this academic year",
            status.HTTP_409_CONFLICT,
        )
    logger.info(
        "Issued TC %s for %s (%s, %s); balance shifted %s",
        record.tc_number, record.admission_number, record.school_id, record.academic_year, balance,
    )
    return tc.tc_number


async def list_certificates(
    db: AsyncSession,
    school_id: str,
    academic_year: str,
    standard: Optional[str] = None,
    section: Optional[str] = None,
    search: Optional[str] = None,
) -> List[CertificateListItem]:
    stmt = select(TransferCertificate).where(
        TransferCertificate.school_id == school_id,
        TransferCertificate.academic_year == academic_year,
    )
    if standard:
        stmt = stmt.where(TransferCertificate.standard == standard)
    if section:
        stmt = stmt.where(TransferCertificate.section == section)
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(
            or_(
                TransferCertificate.student_name.ilike(pattern),
                TransferCertificate.admission_number.ilike(pattern),
                TransferCertificate.tc_number.ilike(pattern),
            )
        )
    stmt = stmt.order_by(TransferCertificate.created_at.desc())
    result = await db.execute(stmt)
    return [
        CertificateListItem(
            tc_number=tc.tc_number,
            admission_number=tc.admission_number,
            student_name=tc.student_name,
            standard=tc.standard,
            section=tc.section,
            date_of_leaving=tc.date_of_leaving,
            conduct=tc.conduct,
            fee_balance_shifted=_to_decimal(tc.fee_balance_shifted),
            created_at=tc.created_at,
        )
        for tc in result.scalars().all()
    ]


async def list_arrears(
    db: AsyncSession,
    school_id: str,
    admission_number: str,
    academic_year: Optional[str] = None,
) -> List[ArrearFeeResponse]:
    stmt = select(ArrearFee).where(
        ArrearFee.school_id == school_id,
        ArrearFee.admission_number == admission_number,
    )
    if academic_year:
        stmt = stmt.where(ArrearFee.academic_year == academic_year)
    stmt = stmt.order_by(ArrearFee.created_at.desc(), ArrearFee.fee_head)
    result = await db.execute(stmt)
    return [ArrearFeeResponse.model_validate(a) for a in result.scalars().all()]

