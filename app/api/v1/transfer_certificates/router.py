"""Transfer certificate router: existence check, issuance sessions, issued list, arrears."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ServiceError
from app.db.session import get_db

from .gateway import SchoolGateway
from .guard import CertificateIssuanceGuard, IssuanceSession
from .schemas import (
    ArrearFeeResponse,
    CertificateDraft,
    CertificateExistsResponse,
    CertificateKey,
    CertificateListItem,
    CertificateRecord,
    IssuanceSessionCreate,
    IssuanceSessionResponse,
    SaveCertificateRequest,
    SelectStudentRequest,
)
from .sessions import IssuanceSessionStore, get_session_store
from . import service

router = APIRouter(prefix="/api/v1/tc", tags=["transfer-certificates"])


def _session_response(session: IssuanceSession) -> IssuanceSessionResponse:
    return IssuanceSessionResponse(
        session_id=session.session_id,
        school_id=session.school_id,
        academic_year=session.academic_year,
        state=session.state,
        can_edit=session.draft.can_edit if session.draft else False,
        draft=session.draft,
    )


@router.get("/check-tc-exists/{admission_number}", response_model=CertificateExistsResponse)
async def check_tc_exists(
    admission_number: str,
    school_id: str = Query(...),
    academic_year: str = Query(...),
    db: AsyncSession = Depends(get_db),
) -> CertificateExistsResponse:
    gateway = SchoolGateway(db)
    try:
        record = await gateway.fetch_certificate(school_id, academic_year, admission_number)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return CertificateExistsResponse(exists=record is not None, tc_number=record.tc_number if record else None)


@router.get("/student-profile/{admission_number}", response_model=CertificateDraft)
async def preview_certificate(
    admission_number: str,
    school_id: str = Query(...),
    academic_year: str = Query(...),
    db: AsyncSession = Depends(get_db),
) -> CertificateDraft:
    """Student details and dues as the TC screen would show them. Nothing is kept between calls."""
    guard = CertificateIssuanceGuard(SchoolGateway(db))
    key = CertificateKey(admission_number=admission_number, school_id=school_id, academic_year=academic_year)
    try:
        return await guard.select_student(key)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/sessions", response_model=IssuanceSessionResponse, status_code=status.HTTP_201_CREATED)
async def open_session(
    payload: IssuanceSessionCreate,
    store: IssuanceSessionStore = Depends(get_session_store),
) -> IssuanceSessionResponse:
    session = store.open(payload.school_id.strip(), payload.academic_year.strip())
    return _session_response(session)


@router.get("/sessions/{session_id}", response_model=IssuanceSessionResponse)
async def read_session(
    session_id: UUID,
    store: IssuanceSessionStore = Depends(get_session_store),
) -> IssuanceSessionResponse:
    try:
        return _session_response(store.get(session_id))
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post("/sessions/{session_id}/select", response_model=IssuanceSessionResponse)
async def select_student(
    session_id: UUID,
    payload: SelectStudentRequest,
    db: AsyncSession = Depends(get_db),
    store: IssuanceSessionStore = Depends(get_session_store),
) -> IssuanceSessionResponse:
    """Load a student into the session. An already issued TC comes back read-only."""
    try:
        session = store.get(session_id)
        guard = CertificateIssuanceGuard(SchoolGateway(db), session)
        key = CertificateKey(
            admission_number=payload.admission_number,
            school_id=session.school_id,
            academic_year=session.academic_year,
        )
        await guard.select_student(key)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return _session_response(session)


@router.post(
    "/sessions/{session_id}/save",
    response_model=CertificateRecord,
    status_code=status.HTTP_201_CREATED,
)
async def save_certificate(
    session_id: UUID,
    payload: SaveCertificateRequest,
    changed_by: Optional[str] = Query(None, description="Operator recorded in the fee audit log"),
    db: AsyncSession = Depends(get_db),
    store: IssuanceSessionStore = Depends(get_session_store),
) -> CertificateRecord:
    """Issue the TC for the selected student. A second save for the same student returns 409."""
    try:
        session = store.get(session_id)
        guard = CertificateIssuanceGuard(SchoolGateway(db, changed_by=changed_by), session)
        key = CertificateKey(
            admission_number=payload.admission_number.strip(),
            school_id=session.school_id,
            academic_year=session.academic_year,
        )
        return await guard.save(key, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.delete("/sessions/{session_id}/selection", response_model=IssuanceSessionResponse)
async def clear_selection(
    session_id: UUID,
    db: AsyncSession = Depends(get_db),
    store: IssuanceSessionStore = Depends(get_session_store),
) -> IssuanceSessionResponse:
    try:
        session = store.get(session_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    CertificateIssuanceGuard(SchoolGateway(db), session).clear()
    return _session_response(session)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def close_session(
    session_id: UUID,
    store: IssuanceSessionStore = Depends(get_session_store),
) -> None:
    try:
        store.close(session_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.get("/list", response_model=List[CertificateListItem])
async def list_certificates(
    school_id: str = Query(...),
    academic_year: str = Query(...),
    standard: Optional[str] = None,
    section: Optional[str] = None,
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
) -> List[CertificateListItem]:
    return await service.list_certificates(db, school_id, academic_year, standard, section, search)


@router.get("/arrears/{admission_number}", response_model=List[ArrearFeeResponse])
async def list_arrears(
    admission_number: str,
    school_id: str = Query(...),
    academic_year: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
) -> List[ArrearFeeResponse]:
    """Arrears carried out of the school when the student's TC was issued."""
    return await service.list_arrears(db, school_id, admission_number, academic_year)
