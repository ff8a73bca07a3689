"""Shared test fixtures: async DB, client, auth helpers, factories.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.

Service calls commit or roll back the session themselves, so seed helpers
commit what they insert; after a failed call, reload rows with
``await db.refresh(obj)`` before reading them.
"""

from __future__ import annotations

import os

# Set test settings before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ENVIRONMENT", "test")

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from leavedesk.common.constants import EmploymentStatus, UserRole
from leavedesk.common.rate_limit import limiter
from leavedesk.config import settings
from leavedesk.database import Base, get_db
from leavedesk.leave import calendar as leave_calendar
from leavedesk.main import create_app
from leavedesk.notifications.service import NotificationDispatcher, set_dispatcher

# Import ALL model modules so SQLAlchemy can resolve cross-module relationships
import leavedesk.employees.models  # noqa: F401
import leavedesk.leave.models  # noqa: F401

from leavedesk.employees.models import Employee
from leavedesk.leave.models import LeaveBalance, LeaveType

# ── SQLite compat: compile PG-specific types to TEXT ────────────────

from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Register PG-compatible functions for SQLite
@event.listens_for(engine.sync_engine, "connect")
def _register_sqlite_functions(dbapi_conn, connection_record):
    """Register NOW() and uuid_generate_v4() as SQLite custom functions."""
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).isoformat(),
    )
    dbapi_conn.create_function(
        "uuid_generate_v4", 0, lambda: str(uuid.uuid4()),
    )


TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


# Fixed evaluation date: every span the tests apply for lies ahead of it
TODAY = date(2026, 1, 5)


@pytest.fixture(autouse=True)
def _pin_today(monkeypatch):
    monkeypatch.setattr(leave_calendar, "today", lambda: TODAY)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Clear rate limiter counters between tests."""
    limiter.reset()
    yield


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── Notifications ───────────────────────────────────────────────────

class RecordingNotifier:
    """Sink that keeps every notification it receives."""

    name = "recording"

    def __init__(self) -> None:
        self.sent = []

    async def send(self, notification) -> None:
        self.sent.append(notification)

    @property
    def events(self) -> list[str]:
        return [n.event.value for n in self.sent]


@pytest.fixture(autouse=True)
def notifier() -> RecordingNotifier:
    """Route lifecycle notifications to an in-memory recorder."""
    recorder = RecordingNotifier()
    set_dispatcher(NotificationDispatcher([recorder]))
    yield recorder
    set_dispatcher(None)


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependency overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Model factories ─────────────────────────────────────────────────

def _make_employee(
    *,
    email: Optional[str] = None,
    first_name: str = "Test",
    last_name: str = "User",
    join_date: Optional[date] = date(2024, 1, 15),
    status: EmploymentStatus = EmploymentStatus.active,
    role: UserRole = UserRole.employee,
    is_active: bool = True,
) -> dict:
    return dict(
        id=uuid.uuid4(),
        employee_code=f"LD-{uuid.uuid4().hex[:6].upper()}",
        first_name=first_name,
        last_name=last_name,
        email=email or f"{uuid.uuid4().hex[:8]}@leavedesk.test",
        department="Engineering",
        join_date=join_date,
        status=status,
        role=role,
        is_active=is_active,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


async def seed_employee(db: AsyncSession, **kwargs) -> Employee:
    emp = Employee(**_make_employee(**kwargs))
    db.add(emp)
    await db.commit()
    return emp


async def seed_leave_type(
    db: AsyncSession,
    name: str = "Casual Leave",
    default_days: Decimal = Decimal("12"),
    *,
    is_active: bool = True,
) -> LeaveType:
    lt = LeaveType(
        id=uuid.uuid4(),
        name=name,
        default_days=default_days,
        is_active=is_active,
    )
    db.add(lt)
    await db.commit()
    return lt


async def seed_balance(
    db: AsyncSession,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    *,
    year: int = 2026,
    entitled: Decimal = Decimal("12"),
    used: Decimal = Decimal("0"),
    pending: Decimal = Decimal("0"),
) -> LeaveBalance:
    bal = LeaveBalance(
        id=uuid.uuid4(),
        employee_id=employee_id,
        leave_type_id=leave_type_id,
        year=year,
        entitled_days=entitled,
        used_days=used,
        pending_days=pending,
    )
    db.add(bal)
    await db.commit()
    return bal


@pytest.fixture
async def employee(db) -> Employee:
    return await seed_employee(db, first_name="Asha", last_name="Rao")


@pytest.fixture
async def admin(db) -> Employee:
    return await seed_employee(
        db, first_name="Hana", last_name="Admin", role=UserRole.admin,
    )


@pytest.fixture
async def cascade_types(db) -> dict[str, LeaveType]:
    """The default cascade chain plus the standalone and unpaid types."""
    return {
        "casual": await seed_leave_type(db, "Casual Leave", Decimal("14")),
        "sick": await seed_leave_type(db, "Sick Leave", Decimal("3")),
        "flex": await seed_leave_type(db, "Flex Leave", Decimal("3")),
        "paid": await seed_leave_type(db, "Paid Leave", Decimal("0")),
        "unpaid": await seed_leave_type(db, "Unpaid Leave", Decimal("0")),
    }


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(employee_id: uuid.UUID, expired: bool = False) -> str:
    """Generate a JWT access token for testing."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(hours=1)
    payload = {
        "sub": str(employee_id),
        "type": "access",
        "exp": exp,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def auth_headers_for(employee_id: uuid.UUID) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(employee_id)}"}
