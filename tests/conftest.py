import os

# Must be set before the app (and its engine) is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./carequeue-test.db"
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ["SECRET_KEY"] = "carequeue-test-secret-0123456789abcdef"

from datetime import date, time

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from app.core.config import settings
from app.db.models import Doctor, DoctorLeave, Hospital, Patient, PatientPackage
from app.db.session import get_session
from app.main import app

WEEKDAYS = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"]

# 2024-01-15 is a Monday
MONDAY = date(2024, 1, 15)
SUNDAY = date(2024, 1, 14)


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def hospital(session):
    hospital = Hospital(name="City General", slug="city-general", city="Pune")
    session.add(hospital)
    await session.commit()
    await session.refresh(hospital)
    return hospital


@pytest_asyncio.fixture
async def other_hospital(session):
    hospital = Hospital(name="Lakeside Clinic", slug="lakeside", city="Pune")
    session.add(hospital)
    await session.commit()
    await session.refresh(hospital)
    return hospital


async def add_doctor(session, hospital, **overrides):
    data = {
        "hospital_id": hospital.id,
        "name": "Dr. Rao",
        "specialization": "General Medicine",
        "available_days": WEEKDAYS,
        "available_from": time(9, 0),
        "available_to": time(11, 0),
        "slot_duration_minutes": 30,
    }
    data.update(overrides)
    doctor = Doctor(**data)
    session.add(doctor)
    await session.commit()
    await session.refresh(doctor)
    return doctor


async def add_leave(session, doctor, leave_date, **overrides):
    data = {
        "hospital_id": doctor.hospital_id,
        "doctor_id": doctor.id,
        "leave_date": leave_date,
        "is_full_day": True,
        "status": "approved",
    }
    data.update(overrides)
    leave = DoctorLeave(**data)
    session.add(leave)
    await session.commit()
    await session.refresh(leave)
    return leave


async def add_package(session, patient, **overrides):
    data = {
        "hospital_id": patient.hospital_id,
        "patient_id": patient.id,
        "name": "Physio x3",
        "total_visits": 3,
    }
    data.update(overrides)
    package = PatientPackage(**data)
    session.add(package)
    await session.commit()
    await session.refresh(package)
    return package


@pytest_asyncio.fixture
async def doctor(session, hospital):
    return await add_doctor(session, hospital)


@pytest_asyncio.fixture
async def patient(session, hospital):
    patient = Patient(hospital_id=hospital.id, name="Asha Patil", phone="9000000001")
    session.add(patient)
    await session.commit()
    await session.refresh(patient)
    return patient


@pytest_asyncio.fixture
async def second_patient(session, hospital):
    patient = Patient(hospital_id=hospital.id, name="Ravi Kulkarni", phone="9000000002")
    session.add(patient)
    await session.commit()
    await session.refresh(patient)
    return patient


def make_token(hospital_id, role="receptionist", user_id=None, secret=None):
    payload = {"hospital_id": str(hospital_id), "role": role}
    if user_id is not None:
        payload["sub"] = str(user_id)
    return jwt.encode(payload, secret or settings.SECRET_KEY, algorithm=settings.ALGORITHM)


@pytest.fixture
def auth_headers(hospital):
    return {"Authorization": f"Bearer {make_token(hospital.id)}"}


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
