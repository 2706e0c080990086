"""
Transfer certificate issuance guard.

Per identity key (admission_number, school_id, academic_year):

    NO_SELECTION --select_student--> EDITABLE --save--> ISSUED
    NO_SELECTION --select_student (certificate exists)--> ISSUED

ISSUED is terminal for the key: the only way out is clear(). Existence is checked before a
draft becomes editable and again at save time; the database unique constraint has the
final say. Dues are snapshotted at selection and that snapshot is what gets issued.
"""

import logging
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4

from app.api.v1.fees.aggregator import FeeAggregator
from app.api.v1.fees.schemas import FeeProfile, FeeStructure
from app.api.v1.students.resolver import StudentProfileResolver, suggest_community_option
from app.api.v1.students.schemas import StudentProfile
from app.core.config import settings
from app.core.enums import IssuanceState
from app.core.exceptions import AlreadyIssuedError, TransientServiceError, ValidationFailure

from .schemas import (
    CertificateDraft,
    CertificateFormFields,
    CertificateKey,
    CertificateRecord,
    provisional_tc_number,
)

logger = logging.getLogger(__name__)


class IssuanceSession:
    """Mutable state of one operator's TC screen."""

    def __init__(self, school_id: str = "", academic_year: str = "", session_id: Optional[UUID] = None) -> None:
        self.session_id = session_id or uuid4()
        self.school_id = school_id
        self.academic_year = academic_year
        self.state = IssuanceState.NO_SELECTION
        self.key: Optional[CertificateKey] = None
        self.draft: Optional[CertificateDraft] = None
        self.record: Optional[CertificateRecord] = None
        # Bumped on every select/clear; a resolution finishing under an older value is stale.
        self.generation = 0

    def reset(self) -> None:
        self.state = IssuanceState.NO_SELECTION
        self.key = None
        self.draft = None
        self.record = None


def _fees_paid(fee_profile: FeeProfile) -> str:
    return "Yes" if fee_profile.is_cleared(settings.cleared_tolerance) else "No"


def draft_from_record(record: CertificateRecord) -> CertificateDraft:
    return CertificateDraft(
        state=IssuanceState.ISSUED,
        admission_number=record.admission_number,
        school_id=record.school_id,
        academic_year=record.academic_year,
        tc_number=record.tc_number,
        provisional=False,
        student_name=record.student_name,
        parent_name=record.parent_name,
        standard=record.standard,
        section=record.section,
        date_of_birth=record.date_of_birth,
        date_of_admission=record.date_of_admission,
        date_of_leaving=record.date_of_leaving,
        application_date=record.application_date,
        issue_date=record.issue_date,
        conduct=record.conduct,
        promotion_status=record.promotion_status,
        reason_for_leaving=record.reason_for_leaving,
        community_option=record.community_option,
        fees_paid=record.fees_paid or "No",
        individual_arrears=list(record.individual_arrears),
    )


def editable_draft(
    key: CertificateKey,
    profile: StudentProfile,
    fee_profile: FeeProfile,
    fee_structure: FeeStructure,
) -> CertificateDraft:
    return CertificateDraft(
        state=IssuanceState.EDITABLE,
        admission_number=key.admission_number,
        school_id=key.school_id,
        academic_year=key.academic_year,
        tc_number=provisional_tc_number(key.academic_year, key.admission_number),
        provisional=True,
        student_name=profile.student_name,
        parent_name=profile.parent_name,
        standard=profile.standard,
        section=profile.section,
        date_of_birth=profile.date_of_birth,
        date_of_admission=profile.date_of_admission,
        nationality=profile.nationality or settings.default_nationality,
        religion=profile.religion,
        community=profile.community,
        community_option=suggest_community_option(profile.community),
        fees_paid=_fees_paid(fee_profile),
        fee_profile=fee_profile,
        fee_structure=fee_structure,
        individual_arrears=fee_profile.model_copy(deep=True).individual_arrears,
    )


def build_record(key: CertificateKey, draft: CertificateDraft, form: CertificateFormFields) -> CertificateRecord:
    """
    Merge operator edits over the draft. Arrears and balance come only from the draft snapshot;
    a cleared total carries no arrears even if single heads are still short.
    """
    balance = draft.fee_profile.total_pending_balance if draft.fee_profile else Decimal("0")
    arrears = [a.model_copy() for a in draft.individual_arrears]
    if balance <= settings.cleared_tolerance:
        balance = Decimal("0")
        arrears = []
    return CertificateRecord(
        admission_number=key.admission_number,
        school_id=key.school_id,
        academic_year=key.academic_year,
        tc_number=(form.tc_number or "").strip() or draft.tc_number,
        student_name=form.student_name or draft.student_name,
        parent_name=form.parent_name or draft.parent_name,
        standard=form.standard or draft.standard,
        section=form.section or draft.section,
        date_of_birth=form.date_of_birth or draft.date_of_birth,
        date_of_admission=form.date_of_admission or draft.date_of_admission,
        date_of_leaving=form.date_of_leaving,
        application_date=form.application_date,
        issue_date=form.issue_date,
        conduct=form.conduct,
        promotion_status=form.promotion_status,
        reason_for_leaving=form.reason_for_leaving,
        community_option=form.community_option or draft.community_option,
        fees_paid=draft.fees_paid,
        fee_balance_shifted=balance,
        individual_arrears=arrears,
        extra_fields=dict(form.extra_fields),
    )


class CertificateIssuanceGuard:
    """
    State machine over an IssuanceSession. `gateway` provides the collaborator operations
    (see SchoolGateway). Calls are expected to be serialized by the caller; a selection
    that is overtaken by a newer select_student or clear is discarded when it completes.
    """

    def __init__(
        self,
        gateway,
        session: Optional[IssuanceSession] = None,
        resolver: Optional[StudentProfileResolver] = None,
        aggregator: Optional[FeeAggregator] = None,
    ) -> None:
        self.gateway = gateway
        self.session = session or IssuanceSession()
        self.resolver = resolver or StudentProfileResolver(gateway)
        self._aggregator = aggregator

    @property
    def state(self) -> IssuanceState:
        return self.session.state

    @property
    def draft(self) -> Optional[CertificateDraft]:
        return self.session.draft

    @property
    def can_edit(self) -> bool:
        return self.session.state == IssuanceState.EDITABLE

    @property
    def fees_cleared(self) -> bool:
        draft = self.session.draft
        if draft is None:
            return False
        if draft.fee_profile is None:
            return draft.fees_paid == "Yes"
        return draft.fee_profile.is_cleared(settings.cleared_tolerance)

    def _aggregator_for(self, school_id: str) -> FeeAggregator:
        if self._aggregator is None or self._aggregator.school_id != school_id:
            self._aggregator = FeeAggregator(self.gateway, school_id)
        return self._aggregator

    def _superseded(self, generation: int, key: CertificateKey) -> bool:
        if generation != self.session.generation:
            logger.warning("Result for %s not applied; a newer selection was made", key.admission_number)
            return True
        return False

    async def select_student(self, key: CertificateKey) -> Optional[CertificateDraft]:
        """
        Load the student behind `key`. Returns the new draft, or None when a newer selection
        overtook this one. Errors (NotFound, transient) leave the session as it was.
        """
        key = self.resolver.identity_key(key.school_id, key.academic_year, key.admission_number)
        self.session.generation += 1
        generation = self.session.generation

        exists = await self.gateway.certificate_exists(key.school_id, key.academic_year, key.admission_number)
        if exists:
            record = await self.gateway.fetch_certificate(key.school_id, key.academic_year, key.admission_number)
            if record is None:
                raise TransientServiceError("Certificate record could not be loaded, please retry")
            if self._superseded(generation, key):
                return None
            self._mark_issued(key, draft_from_record(record), record)
            logger.info("TC already issued for %s; view only", key.admission_number)
            return self.session.draft

        profile = await self.resolver.resolve(key.school_id, key.academic_year, key.admission_number)
        fee_profile = await self.gateway.fetch_fee_profile(key.school_id, key.academic_year, key.admission_number)
        inputs, toggles = self.resolver.fee_inputs(profile)
        fee_structure = await self._aggregator_for(key.school_id).compute_fee_structure(inputs, toggles)
        if self._superseded(generation, key):
            return None

        session = self.session
        session.state = IssuanceState.EDITABLE
        session.key = key
        session.draft = editable_draft(key, profile, fee_profile, fee_structure)
        session.record = None
        logger.info(
            "Selected %s for TC; pending balance %s",
            key.admission_number, fee_profile.total_pending_balance,
        )
        return session.draft

    async def save(self, key: CertificateKey, form: CertificateFormFields) -> CertificateRecord:
        """
        Issue the certificate for the selected student. Valid only from EDITABLE.
        If a newer selection or clear() lands while this is in flight, the outcome is still
        returned or raised but the session is left with the newer selection.
        """
        if not (key.admission_number or "").strip():
            raise ValidationFailure("Admission number is required")
        session = self.session
        if session.key != key:
            raise ValidationFailure("Select the student before saving the TC")
        if session.state == IssuanceState.ISSUED:
            raise AlreadyIssuedError()
        if session.state != IssuanceState.EDITABLE or session.draft is None:
            raise ValidationFailure("Select the student before saving the TC")
        generation = session.generation
        draft = session.draft

        if await self.gateway.certificate_exists(key.school_id, key.academic_year, key.admission_number):
            logger.warning("TC for %s was issued elsewhere after selection", key.admission_number)
            await self._load_issued(key, generation)
            raise AlreadyIssuedError()

        record = build_record(key, draft, form)
        try:
            tc_number = await self.gateway.create_certificate(record)
        except AlreadyIssuedError:
            await self._load_issued(key, generation)
            raise

        record = record.model_copy(update={"tc_number": tc_number})
        if self._superseded(generation, key):
            return record
        self._mark_issued(key, draft_from_record(record), record)
        return record

    async def _load_issued(self, key: CertificateKey, generation: int) -> None:
        """Show the certificate someone else issued for `key`."""
        record = await self.gateway.fetch_certificate(key.school_id, key.academic_year, key.admission_number)
        if record is None:
            raise TransientServiceError("Certificate record could not be loaded, please retry")
        if self._superseded(generation, key):
            return
        self._mark_issued(key, draft_from_record(record), record)

    def clear(self) -> None:
        self.session.generation += 1
        self.session.reset()

    def _mark_issued(
        self,
        key: CertificateKey,
        draft: CertificateDraft,
        record: Optional[CertificateRecord],
    ) -> None:
        session = self.session
        session.state = IssuanceState.ISSUED
        session.key = key
        session.draft = draft
        session.record = record
