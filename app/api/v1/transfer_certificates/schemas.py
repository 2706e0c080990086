"""Transfer certificate schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_serializer

from app.api.v1.fees.schemas import ArrearItem, FeeProfile, FeeStructure, quantize_amount
from app.core.enums import IssuanceState


def provisional_tc_number(academic_year: str, admission_number: str) -> str:
    """Stable serial shown before saving: TC/<year end>/<admission number>."""
    parts = [p for p in academic_year.split("-") if p.strip()]
    year = parts[-1].strip() if parts else academic_year.strip()
    return f"TC/{year}/{admission_number}"


class CertificateKey(BaseModel):
    """Identity of an issuance target. At most one certificate exists per key."""

    admission_number: str
    school_id: str
    academic_year: str

    class Config:
        frozen = True


class CertificateFormFields(BaseModel):
    """Operator-entered fields on save. None keeps the value from the selected student."""

    tc_number: Optional[str] = Field(None, max_length=100)
    student_name: Optional[str] = Field(None, max_length=255)
    parent_name: Optional[str] = Field(None, max_length=255)
    standard: Optional[str] = None
    section: Optional[str] = None
    date_of_birth: Optional[date] = None
    date_of_admission: Optional[date] = None
    date_of_leaving: Optional[date] = None
    application_date: Optional[date] = None
    issue_date: Optional[date] = None
    conduct: Optional[str] = Field(None, max_length=100)
    promotion_status: Optional[str] = Field(None, max_length=100)
    reason_for_leaving: Optional[str] = None
    community_option: Optional[str] = Field(None, pattern="^[abcd]$")
    extra_fields: Dict[str, Any] = Field(default_factory=dict)


class CertificateRecord(BaseModel):
    """A persisted (or about to be persisted) transfer certificate."""

    admission_number: str
    school_id: str
    academic_year: str
    tc_number: str
    student_name: str
    parent_name: Optional[str] = None
    standard: Optional[str] = None
    section: Optional[str] = None
    date_of_birth: Optional[date] = None
    date_of_admission: Optional[date] = None
    date_of_leaving: Optional[date] = None
    application_date: Optional[date] = None
    issue_date: Optional[date] = None
    conduct: Optional[str] = None
    promotion_status: Optional[str] = None
    reason_for_leaving: Optional[str] = None
    community_option: Optional[str] = None
    fees_paid: Optional[str] = None
    fee_balance_shifted: Decimal = Decimal("0")
    individual_arrears: List[ArrearItem] = Field(default_factory=list)
    extra_fields: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None

    @field_serializer("fee_balance_shifted")
    def _serialize_balance(self, value: Decimal) -> Decimal:
        return quantize_amount(value)

    @property
    def key(self) -> CertificateKey:
        return CertificateKey(
            admission_number=self.admission_number,
            school_id=self.school_id,
            academic_year=self.academic_year,
        )


class CertificateDraft(BaseModel):
    """What the TC screen shows for the selected student: editable draft or the issued record."""

    state: IssuanceState
    admission_number: str
    school_id: str
    academic_year: str
    tc_number: str
    provisional: bool
    student_name: str
    parent_name: Optional[str] = None
    standard: Optional[str] = None
    section: Optional[str] = None
    date_of_birth: Optional[date] = None
    date_of_admission: Optional[date] = None
    date_of_leaving: Optional[date] = None
    application_date: Optional[date] = None
    issue_date: Optional[date] = None
    conduct: Optional[str] = None
    promotion_status: Optional[str] = None
    reason_for_leaving: Optional[str] = None
    nationality: Optional[str] = None
    religion: Optional[str] = None
    community: Optional[str] = None
    community_option: Optional[str] = None
    fees_paid: str = "No"
    fee_profile: Optional[FeeProfile] = None
    fee_structure: Optional[FeeStructure] = None
    individual_arrears: List[ArrearItem] = Field(default_factory=list)

    @property
    def can_edit(self) -> bool:
        return self.state == IssuanceState.EDITABLE


# --- HTTP payloads ---
class IssuanceSessionCreate(BaseModel):
    school_id: str = Field(..., min_length=1)
    academic_year: str = Field(..., min_length=1)


class SelectStudentRequest(BaseModel):
    admission_number: str


class IssuanceSessionResponse(BaseModel):
    session_id: UUID
    school_id: str
    academic_year: str
    state: IssuanceState
    can_edit: bool
    draft: Optional[CertificateDraft] = None


class CertificateListItem(BaseModel):
    tc_number: str
    admission_number: str
    student_name: str
    standard: Optional[str] = None
    section: Optional[str] = None
    date_of_leaving: Optional[date] = None
    conduct: Optional[str] = None
    fee_balance_shifted: Decimal
    created_at: datetime

    @field_serializer("fee_balance_shifted")
    def _serialize_balance(self, value: Decimal) -> Decimal:
        return quantize_amount(value)


class ArrearFeeResponse(BaseModel):
    id: UUID
    admission_number: str
    student_name: str
    standard: str
    fee_head: str
    amount: Decimal
    in_out: str
    academic_year: str
    created_at: datetime

    class Config:
        from_attributes = True

    @field_serializer("amount")
    def _serialize_amount(self, value: Decimal) -> Decimal:
        return quantize_amount(value)


class SaveCertificateRequest(CertificateFormFields):
    admission_number: str


class CertificateExistsResponse(BaseModel):
    exists: bool
    tc_number: Optional[str] = None
