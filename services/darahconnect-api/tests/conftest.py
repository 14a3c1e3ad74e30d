import os

# Settings are read at import time, so the environment is prepared first.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test_secret_key"
os.environ["MIDTRANS_SERVER_KEY"] = "SB-Mid-server-test"
os.environ["MAILJET_API_KEY"] = ""
os.environ["MAILJET_SECRET_KEY"] = ""
os.environ["FIRST_ADMIN_EMAIL"] = ""
os.environ["MAX_RETRY_ATTEMPTS"] = "1"

from datetime import timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from darahconnect.core.security import ROLE_ADMIN, ROLE_USER, create_user_token, get_password_hash
from darahconnect.main import app
from darahconnect.models.database import (
    Base,
    BloodRequest,
    DonorSchedule,
    HealthPassport,
    Hospital,
    User,
    get_db,
)
from darahconnect.utils.clock import utcnow


# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_PASSWORD = "rahasia123"


@pytest.fixture
async def test_engine():
    """Create test database engine with fresh tables."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def client(session_factory):
    """HTTP client bound to the app, with get_db pointed at the test database."""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def save(session_factory):
    """Persist ORM objects in a short-lived session and return them."""
    async def _save(*entities):
        async with session_factory() as session:
            session.add_all(entities)
            await session.commit()
        return entities[0] if len(entities) == 1 else entities

    return _save


@pytest.fixture
def fetch(session_factory):
    """Load one row by primary key in a fresh session."""
    async def _fetch(model, entity_id):
        async with session_factory() as session:
            return await session.get(model, entity_id)

    return _fetch


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_user_token(user)}"}


def build_user(email="donor@darahconnect.id", role=ROLE_USER, **overrides) -> User:
    data = {
        "name": "Budi Santoso",
        "gender": "Laki-laki",
        "email": email,
        "password": get_password_hash(TEST_PASSWORD),
        "phone": "081234567890",
        "blood_type": "A+",
        "address": "Jl. Merdeka No. 1, Semarang",
        "role": role,
        "is_verified": True,
    }
    data.update(overrides)
    return User(**data)


@pytest.fixture
def make_user(save):
    async def _make(email, **overrides):
        return await save(build_user(email=email, **overrides))

    return _make


@pytest.fixture
async def user(save):
    return await save(build_user())


@pytest.fixture
async def other_user(save):
    return await save(build_user(email="siti@darahconnect.id", name="Siti Aminah", blood_type="O+"))


@pytest.fixture
async def admin(save):
    return await save(build_user(email="admin@darahconnect.id", role=ROLE_ADMIN, name="Admin"))


@pytest.fixture
def headers_for():
    """Bearer headers for an arbitrary user."""
    return auth_headers


@pytest.fixture
def user_headers(user):
    return auth_headers(user)


@pytest.fixture
def other_headers(other_user):
    return auth_headers(other_user)


@pytest.fixture
def admin_headers(admin):
    return auth_headers(admin)


@pytest.fixture
async def hospital(save):
    return await save(Hospital(
        name="RSUP Dr. Kariadi",
        address="Jl. Dr. Sutomo No. 16",
        city="Semarang",
        province="Jawa Tengah",
        latitude=-6.9932,
        longitude=110.4078,
    ))


@pytest.fixture
def make_passport(save):
    async def _make(owner, status="active", hours=24):
        return await save(HealthPassport(
            user_id=owner.id,
            passport_number=f"HP-TEST{owner.id:05d}",
            expiry_date=utcnow() + timedelta(hours=hours),
            status=status,
        ))

    return _make


@pytest.fixture
def make_blood_request(save):
    async def _make(owner, hospital, status="verified", quantity=2, event_type="blood_request", **overrides):
        data = {
            "user_id": owner.id,
            "hospital_id": hospital.id,
            "event_type": event_type,
            "event_name": "Donor untuk Ibu Ani",
            "event_date": utcnow() + timedelta(days=3),
            "patient_name": "Ani",
            "blood_type": "A+",
            "quantity": quantity,
            "urgency_level": "high",
            "slots_available": quantity,
            "slots_booked": 0,
            "status": status,
        }
        data.update(overrides)
        return await save(BloodRequest(**data))

    return _make


@pytest.fixture
def make_schedule(save):
    async def _make(hospital, slots=5, status="upcoming", days=2):
        return await save(DonorSchedule(
            hospital_id=hospital.id,
            event_name="Donor Darah Rutin",
            event_date=utcnow() + timedelta(days=days),
            slots_available=slots,
            slots_booked=0,
            status=status,
        ))

    return _make
