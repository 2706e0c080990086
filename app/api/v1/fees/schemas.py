"""Fees schemas."""

from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_serializer

from app.core.enums import FeeSource

TWO_PLACES = Decimal("0.01")


def quantize_amount(value: Decimal) -> Decimal:
    """Round to two places for presentation. Internal sums stay unrounded."""
    return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


# --- Line items ---
class FeeLineItem(BaseModel):
    """One fee heading. account_head is stored and persisted but never serialized."""

    heading: str
    account_head: str = Field("General", exclude=True)
    amount: Decimal = Field(..., ge=0)

    @field_serializer("amount")
    def _serialize_amount(self, amount: Decimal) -> Decimal:
        return quantize_amount(amount)


class BusFeeLineItem(FeeLineItem):
    boarding_point: str
    bus_route_number: str


# --- Structure ---
class FeeInputs(BaseModel):
    standard: Optional[str] = None
    student_category: Optional[str] = None
    boarding_point: Optional[str] = None
    bus_route_number: Optional[str] = None


class FeeToggles(BaseModel):
    hostel_required: bool = False
    bus_required: bool = False


class FeeStructure(BaseModel):
    """Itemized fees. total_fees is the total for the toggles the structure was computed with."""

    tuition_fees: List[FeeLineItem] = Field(default_factory=list)
    hostel_fees: List[FeeLineItem] = Field(default_factory=list)
    bus_fee: Optional[BusFeeLineItem] = None
    total_fees: Decimal = Decimal("0")
    # Sources looked up with complete inputs that returned no fee rows
    not_configured: List[FeeSource] = Field(default_factory=list)

    @field_serializer("total_fees")
    def _serialize_total(self, total_fees: Decimal) -> Decimal:
        return quantize_amount(total_fees)

    @property
    def tuition_total(self) -> Decimal:
        return sum((i.amount for i in self.tuition_fees), Decimal("0"))

    @property
    def hostel_total(self) -> Decimal:
        return sum((i.amount for i in self.hostel_fees), Decimal("0"))

    @property
    def bus_total(self) -> Decimal:
        return self.bus_fee.amount if self.bus_fee else Decimal("0")


class FeeStructureRequest(BaseModel):
    school_id: str = Field(..., min_length=1)
    inputs: FeeInputs = Field(default_factory=FeeInputs)
    toggles: FeeToggles = Field(default_factory=FeeToggles)


class AdmissionFeeRequest(BaseModel):
    """Fee selections submitted with the admission form. Missing inputs fall back to the student record."""

    school_id: str = Field(..., min_length=1)
    academic_year: str = Field(..., min_length=1)
    inputs: Optional[FeeInputs] = None
    toggles: Optional[FeeToggles] = None


class AdmissionFeeResponse(BaseModel):
    admission_number: str
    fee_structure: FeeStructure
    demands_recorded: int


# --- Fee profile (dues at certificate time) ---
class ArrearItem(BaseModel):
    fee_head: str
    amount: Decimal
    account_head: str = Field("General", exclude=True)

    @field_serializer("amount")
    def _serialize_amount(self, amount: Decimal) -> Decimal:
        return quantize_amount(amount)


class FeeProfile(BaseModel):
    academic_fixed: Decimal = Decimal("0")
    academic_paid: Decimal = Decimal("0")
    academic_balance: Decimal = Decimal("0")
    transport_fixed: Decimal = Decimal("0")
    transport_paid: Decimal = Decimal("0")
    transport_balance: Decimal = Decimal("0")
    total_fixed: Decimal = Decimal("0")
    total_paid: Decimal = Decimal("0")
    total_pending_balance: Decimal = Decimal("0")
    pending_fee_details: List[str] = Field(default_factory=list)
    individual_arrears: List[ArrearItem] = Field(default_factory=list)

    @field_serializer(
        "academic_fixed",
        "academic_paid",
        "academic_balance",
        "transport_fixed",
        "transport_paid",
        "transport_balance",
        "total_fixed",
        "total_paid",
        "total_pending_balance",
    )
    def _serialize_amounts(self, value: Decimal) -> Decimal:
        return quantize_amount(value)

    def is_cleared(self, tolerance: Decimal) -> bool:
        return self.total_pending_balance <= tolerance
