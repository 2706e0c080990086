"""
Fee composition for the admission form: tuition + hostel + transport into one itemized total.

Hostel and transport are included only when their toggle is on. The toggle is an argument
of total(), never a flag stored on the structure, so a cached hostel list can't leak into
a total after the toggle is switched off.
"""

import logging
from decimal import Decimal
from typing import List, Optional, Tuple

from app.core.enums import FeeSource

from .schemas import BusFeeLineItem, FeeInputs, FeeLineItem, FeeStructure, FeeToggles, quantize_amount

logger = logging.getLogger(__name__)


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


class FeeAggregator:
    """
    Compute FeeStructure from fee lookups.

    `source` provides the async lookups fetch_tuition_fees, fetch_hostel_fees and fetch_bus_fee
    (see SchoolGateway). An empty result means "not configured" and is not an error; lookup
    failures propagate unchanged.

    Hostel items are cached per (standard, category): re-enabling the hostel toggle with the
    same inputs reuses them, a different pair replaces the cache.
    """

    def __init__(self, source, school_id: str) -> None:
        self.source = source
        self.school_id = school_id
        self._hostel_cache: Optional[Tuple[Tuple[str, str], List[FeeLineItem]]] = None

    async def compute_tuition(self, standard: Optional[str], student_category: Optional[str]) -> List[FeeLineItem]:
        standard, student_category = _clean(standard), _clean(student_category)
        if not standard or not student_category:
            return []
        items = await self.source.fetch_tuition_fees(self.school_id, standard, student_category)
        return list(items)

    async def compute_hostel(self, standard: Optional[str], student_category: Optional[str]) -> List[FeeLineItem]:
        standard, student_category = _clean(standard), _clean(student_category)
        if not standard or not student_category:
            return []
        key = (standard, student_category)
        if self._hostel_cache is not None and self._hostel_cache[0] == key:
            return list(self._hostel_cache[1])
        items = list(await self.source.fetch_hostel_fees(self.school_id, standard, student_category))
        self._hostel_cache = (key, items)
        return list(items)

    async def compute_bus(
        self,
        boarding_point: Optional[str],
        bus_route_number: Optional[str],
    ) -> Optional[BusFeeLineItem]:
        boarding_point, bus_route_number = _clean(boarding_point), _clean(bus_route_number)
        if not boarding_point or not bus_route_number:
            return None
        return await self.source.fetch_bus_fee(self.school_id, boarding_point, bus_route_number)

    @staticmethod
    def total(structure: FeeStructure, toggles: FeeToggles) -> Decimal:
        amount = structure.tuition_total
        if toggles.hostel_required:
            amount += structure.hostel_total
        if toggles.bus_required:
            amount += structure.bus_total
        return quantize_amount(amount)

    async def compute_fee_structure(self, inputs: FeeInputs, toggles: FeeToggles) -> FeeStructure:
        not_configured: List[FeeSource] = []
        has_class = bool(_clean(inputs.standard) and _clean(inputs.student_category))

        tuition = await self.compute_tuition(inputs.standard, inputs.student_category)
        if has_class and not tuition:
            not_configured.append(FeeSource.TUITION)

        hostel: List[FeeLineItem] = []
        if toggles.hostel_required:
            hostel = await self.compute_hostel(inputs.standard, inputs.student_category)
            if has_class and not hostel:
                not_configured.append(FeeSource.HOSTEL)

        bus_fee = None
        if toggles.bus_required:
            bus_fee = await self.compute_bus(inputs.boarding_point, inputs.bus_route_number)
            if bus_fee is None and _clean(inputs.boarding_point) and _clean(inputs.bus_route_number):
                not_configured.append(FeeSource.TRANSPORT)

        structure = FeeStructure(
            tuition_fees=tuition,
            hostel_fees=hostel,
            bus_fee=bus_fee,
            not_configured=not_configured,
        )
        structure.total_fees = self.total(structure, toggles)
        if not_configured:
            logger.info(
                "No fee rows configured for %s (school=%s standard=%s category=%s)",
                ", ".join(s.value for s in not_configured),
                self.school_id,
                inputs.standard,
                inputs.student_category,
            )
        return structure
