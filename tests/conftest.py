"""Pytest fixtures for attendance ledger tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import date
from decimal import Decimal
from uuid import UUID

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from attendance_ledger.calculators.types import DailyRecord, WorkTypeCode
from attendance_ledger.database import create_schema, get_engine, make_session_factory
from attendance_ledger.services.blob_store import PublicUrlBlobStore
from attendance_ledger.services.identity import StaticRoleProvider

OWNER_ID = UUID("0a1b2c3d-0000-4000-8000-000000000001")
OTHER_OWNER_ID = UUID("0a1b2c3d-0000-4000-8000-000000000002")
LEADER_ID = UUID("0a1b2c3d-0000-4000-8000-000000000010")
OTHER_LEADER_ID = UUID("0a1b2c3d-0000-4000-8000-000000000011")
ADMIN_ID = UUID("0a1b2c3d-0000-4000-8000-000000000020")

BRANCH = "tokyo"
OTHER_BRANCH = "osaka"
BLOB_BASE_URL = "https://blobs.test/expense-evidences"


def worked_day(
    day: int,
    start: str = "09:00",
    end: str = "18:00",
    break_minutes: int = 60,
    work_type: WorkTypeCode | None = WorkTypeCode.REGULAR,
    remarks: str = "office",
    year: int = 2024,
    month: int = 4,
) -> DailyRecord:
    """A complete, valid worked day."""
    return DailyRecord(
        work_date=date(year, month, day),
        start_time=start,
        end_time=end,
        break_minutes=break_minutes,
        work_type=work_type,
        remarks=remarks,
    )


def leave_day(
    day: int,
    work_type: WorkTypeCode = WorkTypeCode.PAID_LEAVE,
    year: int = 2024,
    month: int = 4,
    late_early_hours: Decimal = Decimal("0"),
) -> DailyRecord:
    """A day carrying only a work-type code."""
    return DailyRecord(
        work_date=date(year, month, day),
        work_type=work_type,
        late_early_hours=late_early_hours,
    )


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite engine so separate sessions see each other's commits."""
    engine = get_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(engine)


@pytest_asyncio.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def roles() -> StaticRoleProvider:
    """One admin, plus a leader for each of two branches."""
    return StaticRoleProvider(
        admins=frozenset({ADMIN_ID}),
        branch_leaders={
            BRANCH: frozenset({LEADER_ID}),
            OTHER_BRANCH: frozenset({OTHER_LEADER_ID}),
        },
    )


@pytest.fixture
def blob_store() -> PublicUrlBlobStore:
    return PublicUrlBlobStore(BLOB_BASE_URL)
