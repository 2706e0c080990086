"""Student lookups."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.models import Student

from .schemas import StudentProfile


async def fetch_student_profile(
    db: AsyncSession,
    school_id: str,
    academic_year: str,
    admission_number: str,
) -> Optional[StudentProfile]:
    student = (
        await db.execute(
            select(Student).where(
                Student.school_id == school_id,
                Student.academic_year == academic_year,
                Student.admission_number == admission_number,
            )
        )
    ).scalar_one_or_none()
    if student is None:
        return None
    return StudentProfile.model_validate(student)
