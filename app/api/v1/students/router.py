from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.transfer_certificates.gateway import SchoolGateway
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .resolver import StudentProfileResolver
from .schemas import StudentProfile

router = APIRouter(prefix="/api/v1/students", tags=["students"])


@router.get("/{admission_number}/profile", response_model=StudentProfile)
async def get_student_profile(
    admission_number: str,
    school_id: str = Query(...),
    academic_year: str = Query(...),
    db: AsyncSession = Depends(get_db),
) -> StudentProfile:
    """Current student values used to prefill the admission fee section and the TC form."""
    try:
        return await StudentProfileResolver(SchoolGateway(db)).resolve(school_id, academic_year, admission_number)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
