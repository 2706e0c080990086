"""Fees service: fee setup lookups, admission fee demands, dues profile. Financial logic with audit."""

import logging
import re
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from fastapi import status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.enums import FeeComponentCategory
from app.core.exceptions import ServiceError
from app.core.models import BusFeeSetup, FeeCollection, FeeSetup, StudentFeeDemand

from . import audit_service
from .schemas import ArrearItem, BusFeeLineItem, FeeLineItem, FeeProfile, FeeStructure, FeeToggles

logger = logging.getLogger(__name__)

_TRANSPORT_HEAD = re.compile(r"transp|bus|van", re.IGNORECASE)


def _to_decimal(val) -> Decimal:
    if val is None:
        return Decimal("0")
    return val if isinstance(val, Decimal) else Decimal(str(val))


def is_transport_head(fee_head: Optional[str]) -> bool:
    return bool(fee_head) and _TRANSPORT_HEAD.search(fee_head) is not None


# --- Fee setup lookups ---
def _setup_to_item(row, default_heading: str, default_account_head: str) -> FeeLineItem:
    return FeeLineItem(
        heading=row.fee_heading or default_heading,
        account_head=row.account_head or default_account_head,
        amount=_to_decimal(row.amount),
    )


async def _fetch_class_fees(
    db: AsyncSession,
    school_id: str,
    category: FeeComponentCategory,
    standard: str,
    student_category: str,
) -> List[FeeSetup]:
    result = await db.execute(
        select(FeeSetup)
        .where(
            FeeSetup.school_id == school_id,
            FeeSetup.component_category == category.value,
            FeeSetup.standard == standard,
            FeeSetup.student_category == student_category,
            FeeSetup.is_active.is_(True),
        )
        .order_by(FeeSetup.display_order, FeeSetup.fee_heading)
    )
    return list(result.scalars().all())


async def fetch_tuition_fees(
    db: AsyncSession, school_id: str, standard: str, student_category: str
) -> List[FeeLineItem]:
    rows = await _fetch_class_fees(db, school_id, FeeComponentCategory.ACADEMIC, standard, student_category)
    return [_setup_to_item(r, "Tuition Fee", "General") for r in rows]


async def fetch_hostel_fees(
    db: AsyncSession, school_id: str, standard: str, student_category: str
) -> List[FeeLineItem]:
    rows = await _fetch_class_fees(db, school_id, FeeComponentCategory.HOSTEL, standard, student_category)
    return [_setup_to_item(r, "Hostel Fee", "Hostel") for r in rows]


async def fetch_bus_fee(
    db: AsyncSession, school_id: str, boarding_point: str, route_number: str
) -> Optional[BusFeeLineItem]:
    row = (
        await db.execute(
            select(BusFeeSetup)
            .where(
                BusFeeSetup.school_id == school_id,
                BusFeeSetup.boarding_point == boarding_point,
                BusFeeSetup.route_number == route_number,
                BusFeeSetup.is_active.is_(True),
            )
            .limit(1)
        )
    ).scalar_one_or_none()
    if row is None:
        return None
    return BusFeeLineItem(
        heading=row.fee_heading or "Bus Fee",
        account_head=row.account_head or "Transport",
        amount=_to_decimal(row.amount),
        boarding_point=row.boarding_point,
        bus_route_number=row.route_number,
    )


# --- Admission fee demands ---
async def record_admission_fees(
    db: AsyncSession,
    school_id: str,
    academic_year: str,
    admission_number: str,
    structure: FeeStructure,
    toggles: FeeToggles,
    changed_by: Optional[str] = None,
) -> int:
    """Persist the fee structure as the student's fee demands. Only included items are stored."""
    existing = (
        await db.execute(
            select(func.count(StudentFeeDemand.id)).where(
                StudentFeeDemand.school_id == school_id,
                StudentFeeDemand.academic_year == academic_year,
                StudentFeeDemand.admission_number == admission_number,
            )
        )
    ).scalar() or 0
    if existing:
        raise ServiceError(
            "Fees are already recorded for this admission",
            status.HTTP_409_CONFLICT,
        )

    rows: List[StudentFeeDemand] = []
    for item in structure.tuition_fees:
        rows.append(_demand(school_id, academic_year, admission_number, FeeComponentCategory.ACADEMIC, item))
    if toggles.hostel_required:
        for item in structure.hostel_fees:
            rows.append(_demand(school_id, academic_year, admission_number, FeeComponentCategory.HOSTEL, item))
    if toggles.bus_required and structure.bus_fee is not None:
        demand = _demand(school_id, academic_year, admission_number, FeeComponentCategory.TRANSPORT, structure.bus_fee)
        demand.boarding_point = structure.bus_fee.boarding_point
        demand.bus_route_number = structure.bus_fee.bus_route_number
        rows.append(demand)

    for row in rows:
        db.add(row)
    await db.flush()
    for row in rows:
        await audit_service.log_fee_audit(
            db, school_id, "student_fee_demands", row.id,
            "CREATE", None,
            {
                "admission_number": admission_number,
                "fee_heading": row.fee_heading,
                "component_category": row.component_category,
                "amount": str(row.amount),
            },
            changed_by,
        )
    await db.commit()
    logger.info(
        "Recorded %d fee demands for %s (%s, %s), total %s",
        len(rows), admission_number, school_id, academic_year, structure.total_fees,
    )
    return len(rows)


def _demand(
    school_id: str,
    academic_year: str,
    admission_number: str,
    category: FeeComponentCategory,
    item: FeeLineItem,
) -> StudentFeeDemand:
    return StudentFeeDemand(
        school_id=school_id,
        academic_year=academic_year,
        admission_number=admission_number,
        component_category=category.value,
        fee_heading=item.heading,
        account_head=item.account_head,
        amount=item.amount,
    )


# --- Fee profile ---
def compute_fee_profile(
    demands: Iterable[Tuple[str, str, Decimal]],
    collections: Iterable[Tuple[str, Decimal, Decimal]],
    arrear_min_balance: Decimal,
) -> FeeProfile:
    """
    Dues for one student from fee demands (heading, category, amount) and collections
    grouped by head (fee_head, paid, concession).

    A head collected without a demand row is counted as demanded for what was collected,
    so it never shows as a balance.
    """
    demand_map: Dict[str, Decimal] = {}
    paid_map: Dict[str, Decimal] = {}
    acad_fixed = acad_paid = trans_fixed = trans_paid = Decimal("0")

    for heading, category, amount in demands:
        amount = _to_decimal(amount)
        demand_map[heading] = demand_map.get(heading, Decimal("0")) + amount
        if category == FeeComponentCategory.TRANSPORT.value:
            trans_fixed += amount
        else:
            acad_fixed += amount

    for fee_head, paid, concession in collections:
        settled = _to_decimal(paid) + _to_decimal(concession)
        paid_map[fee_head] = paid_map.get(fee_head, Decimal("0")) + settled
        virtual = fee_head not in demand_map
        if virtual:
            demand_map[fee_head] = settled
        if is_transport_head(fee_head):
            trans_paid += settled
            if virtual:
                trans_fixed += settled
        else:
            acad_paid += settled
            if virtual:
                acad_fixed += settled

    acad_balance = max(Decimal("0"), acad_fixed - acad_paid)
    trans_balance = max(Decimal("0"), trans_fixed - trans_paid)

    arrears: List[ArrearItem] = []
    for head in sorted(demand_map):
        balance = demand_map[head] - paid_map.get(head, Decimal("0"))
        if balance > arrear_min_balance:
            arrears.append(
                ArrearItem(
                    fee_head=head,
                    amount=balance,
                    account_head="Transport" if is_transport_head(head) else "General",
                )
            )

    return FeeProfile(
        academic_fixed=acad_fixed,
        academic_paid=acad_paid,
        academic_balance=acad_balance,
        transport_fixed=trans_fixed,
        transport_paid=trans_paid,
        transport_balance=trans_balance,
        total_fixed=acad_fixed + trans_fixed,
        total_paid=acad_paid + trans_paid,
        total_pending_balance=acad_balance + trans_balance,
        pending_fee_details=[f"{a.fee_head}: ₹{a.amount:.2f}" for a in arrears],
        individual_arrears=arrears,
    )


async def fetch_fee_profile(
    db: AsyncSession, school_id: str, academic_year: str, admission_number: str
) -> FeeProfile:
    demand_rows = (
        await db.execute(
            select(
                StudentFeeDemand.fee_heading,
                StudentFeeDemand.component_category,
                StudentFeeDemand.amount,
            ).where(
                StudentFeeDemand.school_id == school_id,
                StudentFeeDemand.academic_year == academic_year,
                StudentFeeDemand.admission_number == admission_number,
            )
        )
    ).all()
    collection_rows = (
        await db.execute(
            select(
                FeeCollection.fee_head,
                func.coalesce(func.sum(FeeCollection.paid_amount), 0),
                func.coalesce(func.sum(FeeCollection.concession_amount), 0),
            )
            .where(
                FeeCollection.school_id == school_id,
                FeeCollection.academic_year == academic_year,
                FeeCollection.admission_number == admission_number,
            )
            .group_by(FeeCollection.fee_head)
        )
    ).all()
    return compute_fee_profile(
        [tuple(r) for r in demand_rows],
        [tuple(r) for r in collection_rows],
        settings.arrear_min_balance,
    )
