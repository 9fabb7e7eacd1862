"""Ledger persistence tests: lazy creation, full replacement, editability."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from attendance_ledger.calculators.types import DailyRecord, WorkTypeCode
from attendance_ledger.errors import (
    ConflictError,
    LedgerNotEditableError,
    LedgerNotFoundError,
    ValidationFailed,
)
from attendance_ledger.models import DailyRecordRow, MonthlyLedger
from attendance_ledger.services.ledger_service import LedgerService

from tests.conftest import BRANCH, OTHER_OWNER_ID, OWNER_ID, leave_day, worked_day


pytestmark = pytest.mark.asyncio


async def _save(session, records, **kwargs) -> MonthlyLedger:
    kwargs.setdefault("branch", BRANCH)
    ledger = await LedgerService(session).save_ledger(
        OWNER_ID, 2024, 4, records, actor_id=OWNER_ID, **kwargs
    )
    await session.commit()
    return ledger


class TestSaveLedger:
    """Test saving a month of records."""

    async def test_first_save_creates_draft(self, session):
        """The ledger is created lazily on first save."""
        service = LedgerService(session)
        assert await service.get_ledger(OWNER_ID, 2024, 4) is None

        ledger = await _save(session, [worked_day(1), leave_day(2)], workplace="HQ")

        assert ledger.status == "00"
        assert ledger.version == 1
        assert ledger.workplace == "HQ"
        assert ledger.branch == BRANCH
        assert ledger.created_by == OWNER_ID

        loaded = await service.get_ledger(OWNER_ID, 2024, 4)
        assert loaded.ledger_id == ledger.ledger_id

    async def test_save_replaces_every_record(self, session):
        """Records omitted from a save are deleted."""
        ledger = await _save(session, [worked_day(1), worked_day(2), worked_day(3)])
        await _save(session, [worked_day(2, end="17:00")])

        records = await LedgerService(session).load_records(ledger.ledger_id)
        assert [r.work_date for r in records] == [date(2024, 4, 2)]
        assert records[0].end_time == "17:00"
        assert records[0].actual_work_minutes == 420
        assert ledger.version == 2

    async def test_blank_records_are_dropped(self, session):
        ledger = await _save(session, [worked_day(1), DailyRecord(date(2024, 4, 2))])
        records = await LedgerService(session).load_records(ledger.ledger_id)
        assert len(records) == 1

    async def test_cached_actual_time_is_stored(self, session):
        ledger = await _save(session, [worked_day(1)])
        row = (
            await session.execute(
                select(DailyRecordRow).where(DailyRecordRow.ledger_id == ledger.ledger_id)
            )
        ).scalar_one()
        assert row.actual_work_minutes == 480

    async def test_summary_is_recomputed_and_cached(self, session):
        ledger = await _save(
            session,
            [
                worked_day(1),
                leave_day(2, WorkTypeCode.AM_LEAVE),
                leave_day(3, WorkTypeCode.ABSENCE),
            ],
        )
        service = LedgerService(session)
        summary = await service.summarize(ledger.ledger_id)
        assert summary.regular_work_days == 1
        assert summary.absence_days == 1
        assert summary.paid_leave_days == Decimal("0.5")
        assert LedgerService.cached_summary(ledger) == summary

    async def test_cached_summary_matches_stored_records(self, session, session_factory):
        """Hours beyond two places are rounded before both caching and storage."""
        late = leave_day(2, WorkTypeCode.LATE)
        late.late_early_hours = Decimal("0.125")
        ledger = await _save(session, [worked_day(1), late])

        async with session_factory() as fresh:
            service = LedgerService(fresh)
            stored = await service.require_ledger(ledger.ledger_id)
            recomputed = await service.summarize(ledger.ledger_id)

        assert LedgerService.cached_summary(stored) == recomputed
        assert recomputed.late_early_hours == Decimal("0.13")

    async def test_late_early_hours_out_of_range_rejected(self, session):
        with pytest.raises(ValidationFailed) as exc_info:
            await LedgerService(session).save_ledger(
                OWNER_ID, 2024, 4,
                [leave_day(2, WorkTypeCode.LATE, late_early_hours=Decimal("10000"))],
                actor_id=OWNER_ID,
            )
        assert exc_info.value.violations[0].field == "late_early_hours"

    async def test_out_of_month_dates_rejected(self, session):
        with pytest.raises(ValidationFailed) as exc_info:
            await LedgerService(session).save_ledger(
                OWNER_ID, 2024, 4, [worked_day(1, month=5)], actor_id=OWNER_ID
            )
        assert exc_info.value.violations[0].field == "work_date"

    async def test_duplicate_dates_rejected(self, session):
        with pytest.raises(ValidationFailed):
            await LedgerService(session).save_ledger(
                OWNER_ID, 2024, 4, [worked_day(1), worked_day(1)], actor_id=OWNER_ID
            )

    async def test_invalid_month(self, session):
        with pytest.raises(ValueError):
            await LedgerService(session).save_ledger(OWNER_ID, 2024, 13, [], actor_id=OWNER_ID)

    async def test_incomplete_rows_can_be_saved(self, session):
        """Validation only gates submission; drafts may be incomplete."""
        partial = worked_day(1)
        partial.remarks = None
        ledger = await _save(session, [partial])
        assert ledger.version == 1

    async def test_locked_ledger_rejects_save(self, session):
        ledger = await _save(session, [worked_day(1)])
        ledger.status = "01"
        await session.commit()

        with pytest.raises(LedgerNotEditableError) as exc_info:
            await LedgerService(session).save_ledger(
                OWNER_ID, 2024, 4, [worked_day(2)], actor_id=OWNER_ID
            )
        assert exc_info.value.status == "01"

    async def test_stale_expected_version_conflicts(self, session):
        await _save(session, [worked_day(1)])
        await _save(session, [worked_day(2)], expected_version=1)

        with pytest.raises(ConflictError):
            await LedgerService(session).save_ledger(
                OWNER_ID, 2024, 4, [worked_day(3)], actor_id=OWNER_ID, expected_version=1
            )

    async def test_expected_version_on_missing_ledger(self, session):
        with pytest.raises(ConflictError):
            await LedgerService(session).save_ledger(
                OWNER_ID, 2024, 4, [worked_day(1)], actor_id=OWNER_ID, expected_version=3
            )


class TestLookups:
    """Test reads and the approver list."""

    async def test_require_missing_ledger(self, session):
        with pytest.raises(LedgerNotFoundError):
            await LedgerService(session).require_ledger(uuid4())

    async def test_search_filters(self, session):
        service = LedgerService(session)
        await service.save_ledger(
            OWNER_ID, 2024, 4, [worked_day(1)], actor_id=OWNER_ID, branch=BRANCH,
            employee_id="E001",
        )
        await service.save_ledger(
            OTHER_OWNER_ID, 2024, 4, [worked_day(1)], actor_id=OTHER_OWNER_ID, branch="osaka",
            employee_id="E002",
        )
        await service.save_ledger(
            OWNER_ID, 2024, 5, [worked_day(1, month=5)], actor_id=OWNER_ID, branch=BRANCH,
        )
        await session.commit()

        assert len(await service.search_ledgers(year=2024, month=4)) == 2
        assert len(await service.search_ledgers(branch=BRANCH)) == 2
        assert len(await service.search_ledgers(employee_id="E002")) == 1
        assert len(await service.search_ledgers(status="01")) == 0
        assert len(await service.search_ledgers(owner_id=OWNER_ID, month=5)) == 1
