"""Fees router: fee structure preview and admission fee demands."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.students.resolver import StudentProfileResolver
from app.api.v1.transfer_certificates.gateway import SchoolGateway
from app.core.exceptions import ServiceError
from app.db.session import get_db

from .aggregator import FeeAggregator
from .schemas import AdmissionFeeRequest, AdmissionFeeResponse, FeeStructure, FeeStructureRequest
from . import service

router = APIRouter(prefix="/api/v1/fees", tags=["fees"])


@router.post("/structure", response_model=FeeStructure)
async def compute_fee_structure(
    payload: FeeStructureRequest,
    db: AsyncSession = Depends(get_db),
) -> FeeStructure:
    """Itemized tuition, hostel and bus fees for the admission form, with the total for the given toggles."""
    aggregator = FeeAggregator(SchoolGateway(db), payload.school_id)
    try:
        return await aggregator.compute_fee_structure(payload.inputs, payload.toggles)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)


@router.post(
    "/admission/{admission_number}",
    response_model=AdmissionFeeResponse,
    status_code=status.HTTP_201_CREATED,
)
async def record_admission_fees(
    admission_number: str,
    payload: AdmissionFeeRequest,
    db: AsyncSession = Depends(get_db),
) -> AdmissionFeeResponse:
    """
    Store the admission's fee demands. Fees are recomputed from current setup at submission;
    inputs/toggles left out of the request are taken from the student record.
    """
    gateway = SchoolGateway(db)
    resolver = StudentProfileResolver(gateway)
    try:
        key = resolver.identity_key(payload.school_id, payload.academic_year, admission_number)
        inputs, toggles = payload.inputs, payload.toggles
        if inputs is None or toggles is None:
            profile = await resolver.resolve(key.school_id, key.academic_year, key.admission_number)
            profile_inputs, profile_toggles = resolver.fee_inputs(profile)
            inputs = inputs or profile_inputs
            toggles = toggles or profile_toggles
        structure = await FeeAggregator(gateway, key.school_id).compute_fee_structure(inputs, toggles)
        count = await service.record_admission_fees(
            db, key.school_id, key.academic_year, key.admission_number, structure, toggles
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return AdmissionFeeResponse(
        admission_number=key.admission_number,
        fee_structure=structure,
        demands_recorded=count,
    )
