import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

from datetime import date
from decimal import Decimal
from typing import AsyncGenerator, Callable, Dict, Optional
from uuid import UUID, uuid4

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from dojo.api.v1.fee_configurations.service import set_fee_configuration
from dojo.auth.security import create_access_token
from dojo.core.clock import FixedClock, get_clock
from dojo.core.enums import FeeType, UserRole
from dojo.core.events import fee_events
from dojo.core.models import Branch, Student
from dojo.db.init_db import create_schema
from dojo.db.session import get_db, get_session_factory
from dojo.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture()
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database per test. StaticPool keeps every session on the same connection."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def db_session(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def reset_fee_events():
    yield
    fee_events.clear()


@pytest.fixture()
def app_clock() -> FixedClock:
    """Clock seen by the HTTP app. Service tests build their own FixedClock per scenario."""
    return FixedClock(date(2024, 3, 2))


@pytest.fixture()
async def client(session_factory: async_sessionmaker, app_clock: FixedClock) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app, one DB session per request."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_clock] = lambda: app_clock
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers() -> Callable[..., Dict[str, str]]:
    def _make(
        role: UserRole = UserRole.SUPER_ADMIN,
        user_id: Optional[UUID] = None,
        branch_id: Optional[UUID] = None,
    ) -> Dict[str, str]:
        subject = {"user_id": str(user_id or uuid4()), "role": role.value}
        if branch_id:
            subject["branch_id"] = str(branch_id)
        return {"Authorization": f"Bearer {create_access_token(subject=subject)}"}

    return _make


@pytest.fixture()
async def branch(db_session: AsyncSession) -> Branch:
    branch = Branch(name="Main Dojo")
    db_session.add(branch)
    await db_session.commit()
    return branch


@pytest.fixture()
def make_student(db_session: AsyncSession, branch: Branch):
    async def _make(
        first_name: str = "Aiko",
        last_name: str = "Tanaka",
        current_belt: str = "White",
        is_active: bool = True,
        branch_id: Optional[UUID] = None,
    ) -> Student:
        student = Student(
            branch_id=branch_id or branch.id,
            student_code=f"STU-{uuid4().hex[:8]}",
            first_name=first_name,
            last_name=last_name,
            current_belt=current_belt,
            is_active=is_active,
        )
        db_session.add(student)
        await db_session.commit()
        return student

    return _make


@pytest.fixture()
async def student(make_student) -> Student:
    return await make_student()


@pytest.fixture()
def set_price(db_session: AsyncSession):
    async def _set(fee_type: FeeType, amount: str, belt_level: Optional[str] = None):
        return await set_fee_configuration(db_session, fee_type, Decimal(amount), belt_level, created_by_id=None)

    return _set
