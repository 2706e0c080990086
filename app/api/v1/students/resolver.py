"""
Resolve an admission number into the inputs fee composition needs and the identity key
certificate issuance uses: (admission_number, school_id, academic_year).
"""

import re
from typing import Optional, Tuple

from app.api.v1.fees.schemas import FeeInputs, FeeToggles
from app.api.v1.transfer_certificates.schemas import CertificateKey
from app.core.exceptions import NotFoundError, ValidationFailure

from .schemas import StudentProfile


def suggest_community_option(community: Optional[str]) -> Optional[str]:
    """
    Map a community name to the TC community clause.
    a: Adi Dravidar / SC / ST, b: Backward Class, c: Most Backward Class,
    d: converted to Christianity from a scheduled caste.
    """
    text = (community or "").strip().lower()
    if not text:
        return None
    words = set(re.findall(r"[a-z]+", text))
    if "converted" in text and "christian" in text:
        return "d"
    if "adi dravidar" in text or "scheduled" in text or words & {"sc", "st"}:
        return "a"
    if "most backward" in text or words & {"mbc", "dnc"}:
        return "c"
    if "backward" in text or "bc" in words:
        return "b"
    return None


class StudentProfileResolver:
    """
    Pure lookup over `source.fetch_student_profile`. Does not observe form state: callers
    resolve again whenever standard/category/boarding selections change.
    """

    def __init__(self, source) -> None:
        self.source = source

    @staticmethod
    def identity_key(school_id: str, academic_year: str, admission_number: Optional[str]) -> CertificateKey:
        admission_number = (admission_number or "").strip()
        if not admission_number:
            raise ValidationFailure("Admission number is required")
        if not (school_id or "").strip() or not (academic_year or "").strip():
            raise ValidationFailure("School and academic year are required")
        return CertificateKey(
            admission_number=admission_number,
            school_id=school_id.strip(),
            academic_year=academic_year.strip(),
        )

    async def resolve(self, school_id: str, academic_year: str, admission_number: Optional[str]) -> StudentProfile:
        key = self.identity_key(school_id, academic_year, admission_number)
        profile = await self.source.fetch_student_profile(key.school_id, key.academic_year, key.admission_number)
        if profile is None:
            raise NotFoundError(f"No student found with admission number {key.admission_number}")
        return profile

    @staticmethod
    def fee_inputs(profile: StudentProfile) -> Tuple[FeeInputs, FeeToggles]:
        inputs = FeeInputs(
            standard=profile.standard,
            student_category=profile.student_category,
            boarding_point=profile.boarding_point,
            bus_route_number=profile.bus_route_number,
        )
        toggles = FeeToggles(
            hostel_required=profile.hostel_required,
            bus_required=profile.bus_required,
        )
        return inputs, toggles
