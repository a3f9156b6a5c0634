import os
import uuid
from typing import AsyncGenerator

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.core.models  # noqa: F401
from app.auth.security import create_access_token
from app.db.session import Base, get_db
from app.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture()
async def db_engine():
    """Fresh in-memory database per test; StaticPool keeps the single connection alive."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for a test and override FastAPI dependency."""
    session_factory = async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with session_factory() as session:
        yield session
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture()
def staff_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture()
def auth_headers(staff_id: uuid.UUID) -> dict:
    token = create_access_token(subject={"sub": str(staff_id), "role": "ADMIN"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
async def client(db_session: AsyncSession, auth_headers: dict) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app, authenticated as an admin."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers=auth_headers,
    ) as ac:
        yield ac


@pytest.fixture()
def student_payload() -> dict:
    return {
        "full_name": "Ravi Kumar",
        "father_name": "Suresh Kumar",
        "mother_name": "Meena Devi",
        "gender": "male",
        "email": "ravi.kumar@example.com",
        "phone_number": "9876543210",
        "aadhar_number": "123412341234",
        "date_of_birth": "2004-05-17",
        "address": "12 Station Road",
        "qualification": "12th",
        "selected_course": "Computer Course",
        "course_duration": "6 months",
        "joining_date": "2026-01-15",
        "total_fees": "10000",
        "installment_count": 3,
    }
