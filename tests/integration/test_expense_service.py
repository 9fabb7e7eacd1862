"""Expense sub-ledger tests."""

from datetime import date, datetime, timezone

import pytest

from attendance_ledger.calculators.expenses import ExpenseLine, Receipt, TripType
from attendance_ledger.errors import ConflictError, LedgerNotEditableError, ValidationFailed
from attendance_ledger.services.approval_service import ApprovalService
from attendance_ledger.services.expense_service import ExpenseService
from attendance_ledger.services.ledger_service import LedgerService

from tests.conftest import BLOB_BASE_URL, BRANCH, OWNER_ID, worked_day


pytestmark = pytest.mark.asyncio


@pytest.fixture
def expenses(session, blob_store) -> ExpenseService:
    return ExpenseService(session, blob_store)


def _commute(day: int, amount: int = 420) -> ExpenseLine:
    return ExpenseLine(
        work_date=date(2024, 4, day),
        amount=amount,
        carrier_or_lodging="JR",
        from_location="Shinjuku",
        to_location="Tokyo",
        trip_type=TripType.ROUND_TRIP,
    )


def _business(day: int, amount: int = 9800) -> ExpenseLine:
    return ExpenseLine(
        work_date=date(2024, 4, day),
        amount=amount,
        carrier_or_lodging="Hotel Osaka",
        expense_type="lodging",
        trip_type=TripType.OTHER,
    )


def _receipt(name: str = "hotel.pdf") -> Receipt:
    return Receipt(
        file_name=name,
        blob_reference=f"{OWNER_ID}/2024-04/{name}",
        uploaded_at=datetime(2024, 4, 20, 9, 0, tzinfo=timezone.utc),
        file_size=2048,
        file_type="application/pdf",
    )


class TestSaveExpenses:
    """Test saving and reading a month of expenses."""

    async def test_empty_sheet_before_first_save(self, expenses):
        sheet = await expenses.get_expenses(OWNER_ID, 2024, 4)
        assert sheet.expense_ledger_id is None
        assert sheet.version == 0
        assert sheet.editable
        assert sheet.total_amount == 0

    async def test_save_and_reload(self, session, expenses):
        await expenses.save_expenses(
            OWNER_ID, 2024, 4,
            commute_items=[_commute(1), _commute(2)],
            business_items=[_business(10)],
            receipts=[_receipt()],
            actor_id=OWNER_ID,
        )
        await session.commit()

        sheet = await expenses.get_expenses(OWNER_ID, 2024, 4)
        assert sheet.version == 1
        assert [i.work_date.day for i in sheet.commute_items] == [1, 2]
        assert sheet.business_items[0].expense_type == "lodging"
        assert sheet.total_amount == 420 * 2 + 9800
        assert sheet.receipts[0].url == f"{BLOB_BASE_URL}/{OWNER_ID}/2024-04/hotel.pdf"
        assert sheet.warnings == []

    async def test_save_replaces_items(self, session, expenses):
        await expenses.save_expenses(
            OWNER_ID, 2024, 4, [_commute(1), _commute(2)], [], [_receipt()], actor_id=OWNER_ID
        )
        await session.commit()
        sheet = await expenses.save_expenses(
            OWNER_ID, 2024, 4, [_commute(3)], [], [], actor_id=OWNER_ID, expected_version=1
        )
        await session.commit()

        assert sheet.version == 2
        reloaded = await expenses.get_expenses(OWNER_ID, 2024, 4)
        assert [i.work_date.day for i in reloaded.commute_items] == [3]
        assert reloaded.receipts == []

    async def test_non_positive_amount_rejected(self, expenses):
        with pytest.raises(ValidationFailed) as exc_info:
            await expenses.save_expenses(
                OWNER_ID, 2024, 4, [_commute(1, amount=0)], [], [], actor_id=OWNER_ID
            )
        assert exc_info.value.violations[0].field == "amount"

    async def test_out_of_month_item_is_kept_with_warning(self, session, expenses):
        stray = _commute(1)
        stray.work_date = date(2024, 5, 1)
        sheet = await expenses.save_expenses(
            OWNER_ID, 2024, 4, [stray], [], [], actor_id=OWNER_ID
        )
        await session.commit()

        assert [w.work_date for w in sheet.warnings] == [date(2024, 5, 1)]
        reloaded = await expenses.get_expenses(OWNER_ID, 2024, 4)
        assert len(reloaded.commute_items) == 1
        assert len(reloaded.warnings) == 1

    async def test_stale_version_conflicts(self, session, expenses):
        await expenses.save_expenses(OWNER_ID, 2024, 4, [_commute(1)], [], [], actor_id=OWNER_ID)
        await session.commit()
        await expenses.save_expenses(
            OWNER_ID, 2024, 4, [_commute(2)], [], [], actor_id=OWNER_ID, expected_version=1
        )
        await session.commit()

        with pytest.raises(ConflictError):
            await expenses.save_expenses(
                OWNER_ID, 2024, 4, [_commute(3)], [], [], actor_id=OWNER_ID, expected_version=1
            )


class TestEditability:
    """Expenses follow the attendance ledger's editability."""

    async def test_links_to_attendance_ledger(self, session, expenses):
        ledger = await LedgerService(session).save_ledger(
            OWNER_ID, 2024, 4, [worked_day(1)], actor_id=OWNER_ID, branch=BRANCH
        )
        await session.commit()

        sheet = await expenses.save_expenses(
            OWNER_ID, 2024, 4, [_commute(1)], [], [], actor_id=OWNER_ID
        )
        header = await expenses.get_expense_ledger(OWNER_ID, 2024, 4)
        assert header.attendance_ledger_id == ledger.ledger_id
        assert sheet.editable

        # Saving expenses leaves the attendance ledger's version alone
        await session.commit()
        await session.refresh(ledger)
        assert ledger.version == 1

    async def test_submitted_ledger_locks_expenses(self, session, expenses, roles):
        ledger = await LedgerService(session).save_ledger(
            OWNER_ID, 2024, 4, [worked_day(1)], actor_id=OWNER_ID, branch=BRANCH
        )
        await ApprovalService(session, roles).submit(ledger.ledger_id, OWNER_ID, ledger.version)
        await session.commit()

        assert not await expenses.is_editable(OWNER_ID, 2024, 4)
        with pytest.raises(LedgerNotEditableError):
            await expenses.save_expenses(
                OWNER_ID, 2024, 4, [_commute(1)], [], [], actor_id=OWNER_ID
            )

        sheet = await expenses.get_expenses(OWNER_ID, 2024, 4)
        assert not sheet.editable


class TestConcurrentSubmit:
    """A submit committed while an expense save is in flight."""

    async def test_submit_after_status_read_fails_the_save(
        self, session_factory, roles, blob_store
    ):
        async with session_factory() as session:
            ledger = await LedgerService(session).save_ledger(
                OWNER_ID, 2024, 4, [worked_day(1)], actor_id=OWNER_ID, branch=BRANCH
            )
            await session.commit()
            ledger_id, version = ledger.ledger_id, ledger.version

        async with session_factory() as owner_session:
            # The owner's session read the ledger while it was still a draft
            seen = await LedgerService(owner_session).get_ledger(OWNER_ID, 2024, 4)

            async with session_factory() as submitter:
                await ApprovalService(submitter, roles).submit(ledger_id, OWNER_ID, version)
                await submitter.commit()

            with pytest.raises(ConflictError):
                await ExpenseService(owner_session, blob_store).save_expenses(
                    OWNER_ID, 2024, 4, [_commute(1)], [], [], actor_id=OWNER_ID
                )
            assert seen.status == "00"
            await owner_session.rollback()

        async with session_factory() as check:
            sheet = await ExpenseService(check, blob_store).get_expenses(OWNER_ID, 2024, 4)
            assert sheet.expense_ledger_id is None
            assert sheet.commute_items == []
            assert not sheet.editable
