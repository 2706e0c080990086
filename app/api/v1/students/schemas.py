"""Student profile schemas."""

from datetime import date
from typing import Optional

from pydantic import BaseModel


class StudentProfile(BaseModel):
    """Canonical current values for one admission, as read at lookup time."""

    school_id: str
    academic_year: str
    admission_number: str
    student_name: str
    father_name: Optional[str] = None
    mother_name: Optional[str] = None
    gender: Optional[str] = None
    date_of_birth: Optional[date] = None
    date_of_admission: Optional[date] = None
    standard_on_admission: Optional[str] = None

    standard: str
    section: Optional[str] = None
    student_category: Optional[str] = None
    hostel_required: bool = False
    bus_required: bool = False
    boarding_point: Optional[str] = None
    bus_route_number: Optional[str] = None

    nationality: Optional[str] = None
    religion: Optional[str] = None
    community: Optional[str] = None
    caste: Optional[str] = None
    mother_tongue: Optional[str] = None
    aadhar_number: Optional[str] = None
    emis_no: Optional[str] = None

    class Config:
        from_attributes = True

    @property
    def parent_name(self) -> Optional[str]:
        return self.father_name or self.mother_name
