import asyncio
from decimal import Decimal

import pytest

from app.api.v1.fees.service import compute_fee_profile
from app.api.v1.transfer_certificates.guard import CertificateIssuanceGuard
from app.api.v1.transfer_certificates.schemas import CertificateFormFields, CertificateKey, CertificateRecord
from app.core.enums import IssuanceState
from app.core.exceptions import AlreadyIssuedError, NotFoundError, TransientServiceError, ValidationFailure

KEY = CertificateKey(admission_number="ADM7", school_id="SCH1", academic_year="2024-2025")
OTHER = CertificateKey(admission_number="ADM8", school_id="SCH1", academic_year="2024-2025")


def _form(**overrides) -> CertificateFormFields:
    values = dict(conduct="Good", reason_for_leaving="Relocation", promotion_status="Promoted")
    values.update(overrides)
    return CertificateFormFields(**values)


@pytest.mark.asyncio
async def test_select_makes_draft_editable(gateway) -> None:
    guard = CertificateIssuanceGuard(gateway)

    draft = await guard.select_student(KEY)

    assert guard.state == IssuanceState.EDITABLE
    assert guard.can_edit
    assert draft.tc_number == "TC/2025/ADM7"
    assert draft.provisional
    assert draft.community_option == "b"
    assert draft.nationality == "Indian"
    assert draft.fee_structure.total_fees == Decimal("15000")
    assert guard.fees_cleared
    assert draft.fees_paid == "Yes"


@pytest.mark.asyncio
async def test_select_twice_is_idempotent(gateway) -> None:
    guard = CertificateIssuanceGuard(gateway)

    first = await guard.select_student(KEY)
    second = await guard.select_student(KEY)

    assert guard.state == IssuanceState.EDITABLE
    assert first.tc_number == second.tc_number
    assert first == second


@pytest.mark.asyncio
async def test_select_issued_student_is_read_only(gateway) -> None:
    gateway.certificates[("SCH1", "2024-2025", "ADM7")] = CertificateRecord(
        admission_number="ADM7", school_id="SCH1", academic_year="2024-2025",
        tc_number="TC/2025/ADM7", student_name="Arun Kumar", fees_paid="Yes",
    )
    guard = CertificateIssuanceGuard(gateway)

    draft = await guard.select_student(KEY)

    assert guard.state == IssuanceState.ISSUED
    assert not guard.can_edit
    assert not draft.provisional
    assert gateway.count("fetch_student_profile") == 0

    with pytest.raises(AlreadyIssuedError):
        await guard.save(KEY, _form())
    assert gateway.count("create_certificate") == 0


@pytest.mark.asyncio
async def test_save_issues_once(gateway) -> None:
    guard = CertificateIssuanceGuard(gateway)
    await guard.select_student(KEY)

    record = await guard.save(KEY, _form())

    assert guard.state == IssuanceState.ISSUED
    assert record.tc_number == "TC/2025/ADM7"
    assert record.conduct == "Good"
    assert record.student_name == "Arun Kumar"
    stored = gateway.certificates[("SCH1", "2024-2025", "ADM7")]

    with pytest.raises(AlreadyIssuedError):
        await guard.save(KEY, _form(conduct="Excellent"))
    assert gateway.count("create_certificate") == 1
    assert gateway.certificates[("SCH1", "2024-2025", "ADM7")] == stored


@pytest.mark.asyncio
async def test_second_operator_cannot_issue_again(gateway) -> None:
    first = CertificateIssuanceGuard(gateway)
    second = CertificateIssuanceGuard(gateway)
    await first.select_student(KEY)
    await second.select_student(KEY)

    await first.save(KEY, _form(tc_number="TC/2025/0042"))

    with pytest.raises(AlreadyIssuedError):
        await second.save(KEY, _form(conduct="Fair"))
    assert second.state == IssuanceState.ISSUED
    assert gateway.count("create_certificate") == 1
    assert gateway.certificates[("SCH1", "2024-2025", "ADM7")].conduct == "Good"
    assert second.draft.tc_number == "TC/2025/0042"
    assert second.draft.conduct == "Good"
    assert not second.draft.provisional
    assert second.session.record is not None


@pytest.mark.asyncio
async def test_create_rejection_shows_stored_certificate(gateway) -> None:
    gate = asyncio.Event()
    gateway.gates["create_certificate:ADM7"] = gate
    guard = CertificateIssuanceGuard(gateway)
    await guard.select_student(KEY)

    pending = asyncio.create_task(guard.save(KEY, _form()))
    await asyncio.sleep(0)
    gateway.certificates[("SCH1", "2024-2025", "ADM7")] = CertificateRecord(
        admission_number="ADM7", school_id="SCH1", academic_year="2024-2025",
        tc_number="TC/2025/0099", student_name="Arun Kumar", conduct="Excellent", fees_paid="Yes",
    )
    gate.set()

    with pytest.raises(AlreadyIssuedError):
        await pending
    assert guard.state == IssuanceState.ISSUED
    assert guard.draft.tc_number == "TC/2025/0099"
    assert guard.draft.conduct == "Excellent"
    assert guard.session.record.tc_number == "TC/2025/0099"


@pytest.mark.asyncio
async def test_create_rejection_without_record_is_retryable(gateway) -> None:
    guard = CertificateIssuanceGuard(gateway)
    await guard.select_student(KEY)
    gateway.failures["create_certificate"] = AlreadyIssuedError()

    with pytest.raises(TransientServiceError):
        await guard.save(KEY, _form())
    assert guard.state == IssuanceState.EDITABLE
    assert guard.draft.provisional


@pytest.mark.asyncio
async def test_arrears_snapshot_taken_at_selection(gateway, fee_profile_factory) -> None:
    gateway.fee_profiles["ADM7"] = fee_profile_factory({"Tuition Fee": "4000"})
    guard = CertificateIssuanceGuard(gateway)
    await guard.select_student(KEY)
    assert not guard.fees_cleared

    gateway.fee_profiles["ADM7"] = fee_profile_factory({"Tuition Fee": "1000", "Exam Fee": "200"})
    record = await guard.save(KEY, _form())

    assert [(a.fee_head, a.amount) for a in record.individual_arrears] == [("Tuition Fee", Decimal("4000"))]
    assert record.fee_balance_shifted == Decimal("4000")
    assert record.fees_paid == "No"


@pytest.mark.asyncio
async def test_cleared_dues_shift_no_balance(gateway, fee_profile_factory) -> None:
    gateway.fee_profiles["ADM7"] = fee_profile_factory({"Tuition Fee": "0.01"})
    guard = CertificateIssuanceGuard(gateway)
    await guard.select_student(KEY)

    record = await guard.save(KEY, _form())

    assert record.fee_balance_shifted == Decimal("0")
    assert record.individual_arrears == []

@pytest.mark.asyncio
async def test_cleared_total_carries_no_head_arrears(gateway) -> None:
    demands = [("Tuition Fee", "ACADEMIC", Decimal("1000")), ("Lab Fee", "ACADEMIC", Decimal("1000"))]
    collections = [("Tuition Fee", Decimal("2000"), Decimal("0"))]
    gateway.fee_profiles["ADM7"] = compute_fee_profile(demands, collections, Decimal("0.50"))
    guard = CertificateIssuanceGuard(gateway)
    await guard.select_student(KEY)
    assert [a.fee_head for a in guard.draft.individual_arrears] == ["Lab Fee"]

    record = await guard.save(KEY, _form())

    assert record.fee_balance_shifted == Decimal("0")
    assert record.fees_paid == "Yes"
    assert record.individual_arrears == []


@pytest.mark.asyncio
async def test_operator_edits_override_draft(gateway) -> None:
    guard = CertificateIssuanceGuard(gateway)
    await guard.select_student(KEY)

    record = await guard.save(KEY, _form(tc_number="TC/2025/0042", student_name="Arun Kumar S", community_option="a"))

    assert record.tc_number == "TC/2025/0042"
    assert record.student_name == "Arun Kumar S"
    assert record.community_option == "a"
    assert record.parent_name == "Kumar S"


@pytest.mark.asyncio
async def test_save_blank_admission_makes_no_call(gateway) -> None:
    guard = CertificateIssuanceGuard(gateway)

    with pytest.raises(ValidationFailure):
        await guard.save(CertificateKey(admission_number=" ", school_id="SCH1", academic_year="2024-2025"), _form())
    assert gateway.calls == {}


@pytest.mark.asyncio
async def test_select_blank_admission_makes_no_call(gateway) -> None:
    guard = CertificateIssuanceGuard(gateway)

    with pytest.raises(ValidationFailure):
        await guard.select_student(CertificateKey(admission_number="", school_id="SCH1", academic_year="2024-2025"))
    assert gateway.calls == {}
    assert guard.state == IssuanceState.NO_SELECTION


@pytest.mark.asyncio
async def test_save_requires_matching_selection(gateway) -> None:
    guard = CertificateIssuanceGuard(gateway)

    with pytest.raises(ValidationFailure):
        await guard.save(KEY, _form())

    await guard.select_student(KEY)
    with pytest.raises(ValidationFailure):
        await guard.save(OTHER, _form())
    assert gateway.count("create_certificate") == 0
    assert guard.state == IssuanceState.EDITABLE


@pytest.mark.asyncio
async def test_unknown_student_leaves_state_unchanged(gateway) -> None:
    guard = CertificateIssuanceGuard(gateway)
    await guard.select_student(KEY)

    with pytest.raises(NotFoundError):
        await guard.select_student(CertificateKey(admission_number="ADM404", school_id="SCH1", academic_year="2024-2025"))
    assert guard.state == IssuanceState.EDITABLE
    assert guard.draft.admission_number == "ADM7"


@pytest.mark.asyncio
async def test_transient_failure_on_select_keeps_state(gateway) -> None:
    guard = CertificateIssuanceGuard(gateway)
    gateway.failures["certificate_exists"] = TransientServiceError()

    with pytest.raises(TransientServiceError) as exc_info:
        await guard.select_student(KEY)
    assert exc_info.value.retryable
    assert guard.state == IssuanceState.NO_SELECTION

    await guard.select_student(KEY)
    assert guard.state == IssuanceState.EDITABLE


@pytest.mark.asyncio
async def test_transient_failure_on_save_can_be_retried(gateway) -> None:
    guard = CertificateIssuanceGuard(gateway)
    await guard.select_student(KEY)
    gateway.failures["create_certificate"] = TransientServiceError()

    with pytest.raises(TransientServiceError):
        await guard.save(KEY, _form())
    assert guard.state == IssuanceState.EDITABLE

    record = await guard.save(KEY, _form())
    assert record.tc_number == "TC/2025/ADM7"
    assert guard.state == IssuanceState.ISSUED


@pytest.mark.asyncio
async def test_stale_selection_is_discarded(gateway) -> None:
    gate = asyncio.Event()
    gateway.gates["fetch_student_profile:ADM7"] = gate
    guard = CertificateIssuanceGuard(gateway)

    slow = asyncio.create_task(guard.select_student(KEY))
    await asyncio.sleep(0)
    latest = await guard.select_student(OTHER)
    gate.set()
    stale = await slow

    assert stale is None
    assert latest.admission_number == "ADM8"
    assert guard.draft.admission_number == "ADM8"
    assert guard.session.key == OTHER


@pytest.mark.asyncio
async def test_clear_discards_selection(gateway) -> None:
    guard = CertificateIssuanceGuard(gateway)
    await guard.select_student(KEY)

    guard.clear()

    assert guard.state == IssuanceState.NO_SELECTION
    assert guard.draft is None
    with pytest.raises(ValidationFailure):
        await guard.save(KEY, _form())


@pytest.mark.asyncio
async def test_save_superseded_by_new_selection(gateway) -> None:
    gate = asyncio.Event()
    gateway.gates["create_certificate:ADM7"] = gate
    guard = CertificateIssuanceGuard(gateway)
    await guard.select_student(KEY)

    pending = asyncio.create_task(guard.save(KEY, _form()))
    await asyncio.sleep(0)
    await guard.select_student(OTHER)
    gate.set()
    record = await pending

    assert record.tc_number == "TC/2025/ADM7"
    assert ("SCH1", "2024-2025", "ADM7") in gateway.certificates
    assert guard.session.key == OTHER
    assert guard.state == IssuanceState.EDITABLE
    assert guard.draft.admission_number == "ADM8"


@pytest.mark.asyncio
async def test_save_superseded_by_clear(gateway) -> None:
    gate = asyncio.Event()
    gateway.gates["create_certificate:ADM7"] = gate
    guard = CertificateIssuanceGuard(gateway)
    await guard.select_student(KEY)

    pending = asyncio.create_task(guard.save(KEY, _form()))
    await asyncio.sleep(0)
    guard.clear()
    gate.set()
    await pending

    assert guard.state == IssuanceState.NO_SELECTION
    assert guard.draft is None
