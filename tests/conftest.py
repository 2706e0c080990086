import asyncio
import os
from decimal import Decimal
from typing import AsyncGenerator, Dict, List, Optional, Tuple

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.api.v1.fees.schemas import BusFeeLineItem, FeeLineItem, FeeProfile
from app.api.v1.fees.service import compute_fee_profile
from app.api.v1.students.schemas import StudentProfile
from app.api.v1.transfer_certificates.schemas import CertificateRecord
from app.core.exceptions import AlreadyIssuedError
from app.db.session import Base, engine_options, get_db
from app.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture()
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test; overrides the FastAPI dependency."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, **engine_options(TEST_DATABASE_URL))
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.pop(get_db, None)
    await engine.dispose()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


class FakeGateway:
    """
    In-memory collaborator operations. `calls` counts every operation; `failures` maps an
    operation name to an exception raised on its next call; `gates` maps "<operation>:<admission number>"
    (fetch_student_profile, create_certificate) to an asyncio.Event the call waits on first.
    """

    def __init__(self) -> None:
        self.tuition: Dict[Tuple[str, str], List[FeeLineItem]] = {}
        self.hostel: Dict[Tuple[str, str], List[FeeLineItem]] = {}
        self.bus: Dict[Tuple[str, str], BusFeeLineItem] = {}
        self.students: Dict[str, StudentProfile] = {}
        self.fee_profiles: Dict[str, FeeProfile] = {}
        self.certificates: Dict[Tuple[str, str, str], CertificateRecord] = {}
        self.calls: Dict[str, int] = {}
        self.failures: Dict[str, Exception] = {}
        self.gates: Dict[str, asyncio.Event] = {}

    async def _enter(self, name: str, gate_key: Optional[str] = None) -> None:
        self.calls[name] = self.calls.get(name, 0) + 1
        gate = self.gates.get(f"{name}:{gate_key}") if gate_key else None
        if gate is not None:
            await gate.wait()
        if name in self.failures:
            raise self.failures.pop(name)

    def count(self, name: str) -> int:
        return self.calls.get(name, 0)

    async def fetch_tuition_fees(self, school_id, standard, student_category):
        await self._enter("fetch_tuition_fees")
        return list(self.tuition.get((standard, student_category), []))

    async def fetch_hostel_fees(self, school_id, standard, student_category):
        await self._enter("fetch_hostel_fees")
        return list(self.hostel.get((standard, student_category), []))

    async def fetch_bus_fee(self, school_id, boarding_point, route_number):
        await self._enter("fetch_bus_fee")
        return self.bus.get((boarding_point, route_number))

    async def fetch_student_profile(self, school_id, academic_year, admission_number):
        await self._enter("fetch_student_profile", admission_number)
        return self.students.get(admission_number)

    async def fetch_fee_profile(self, school_id, academic_year, admission_number):
        await self._enter("fetch_fee_profile")
        return self.fee_profiles.get(admission_number, FeeProfile()).model_copy(deep=True)

    async def certificate_exists(self, school_id, academic_year, admission_number):
        await self._enter("certificate_exists")
        return (school_id, academic_year, admission_number) in self.certificates

    async def fetch_certificate(self, school_id, academic_year, admission_number):
        await self._enter("fetch_certificate")
        return self.certificates.get((school_id, academic_year, admission_number))

    async def create_certificate(self, record: CertificateRecord) -> str:
        await self._enter("create_certificate", record.admission_number)
        key = (record.school_id, record.academic_year, record.admission_number)
        if key in self.certificates:
            raise AlreadyIssuedError()
        self.certificates[key] = record.model_copy(deep=True)
        return record.tc_number


def make_student(admission_number: str = "ADM7", **overrides) -> StudentProfile:
    values = dict(
        school_id="SCH1",
        academic_year="2024-2025",
        admission_number=admission_number,
        student_name="Arun Kumar",
        father_name="Kumar S",
        standard="V",
        section="A",
        student_category="Day Scholar",
        community="Backward Class",
    )
    values.update(overrides)
    return StudentProfile(**values)


def make_fee_profile(arrears: Optional[Dict[str, str]] = None) -> FeeProfile:
    demands = [(head, "ACADEMIC", Decimal(amount)) for head, amount in (arrears or {}).items()]
    return compute_fee_profile(demands, [], Decimal("0.50"))


@pytest.fixture()
def gateway() -> FakeGateway:
    gw = FakeGateway()
    gw.tuition[("V", "Day Scholar")] = [
        FeeLineItem(heading="Tuition Fee", amount=Decimal("10000")),
        FeeLineItem(heading="Lab Fee", amount=Decimal("5000"), account_head="Lab"),
    ]
    gw.hostel[("V", "Day Scholar")] = [FeeLineItem(heading="Hostel Fee", amount=Decimal("3000"), account_head="Hostel")]
    gw.bus[("Central", "R1")] = BusFeeLineItem(
        heading="Bus Fee",
        account_head="Transport",
        amount=Decimal("2000"),
        boarding_point="Central",
        bus_route_number="R1",
    )
    gw.students["ADM7"] = make_student("ADM7")
    gw.students["ADM8"] = make_student("ADM8", student_name="Priya Devi", community="Most Backward Class")
    return gw


@pytest.fixture()
def student_factory():
    return make_student


@pytest.fixture()
def fee_profile_factory():
    return make_fee_profile
