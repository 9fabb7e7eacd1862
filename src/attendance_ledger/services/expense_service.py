"""Expense service - commute/business expenses and receipts per month."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from attendance_ledger.calculators.expenses import (
    ExpenseCategory,
    ExpenseLine,
    Receipt,
    out_of_month_warnings,
    validate_expense_lines,
)
from attendance_ledger.calculators.validation import Violation
from attendance_ledger.database import store_errors
from attendance_ledger.errors import ConflictError, LedgerNotEditableError, ValidationFailed
from attendance_ledger.models import ExpenseItem, ExpenseLedger, ExpenseReceipt
from attendance_ledger.models.base import utcnow
from attendance_ledger.services.blob_store import BlobStore
from attendance_ledger.services.ledger_service import LedgerService
from attendance_ledger.services.state_machine import LedgerStateMachine

logger = logging.getLogger(__name__)


@dataclass
class ExpenseSheet:
    """A month's expenses as read back by the owner or a reviewer."""

    year: int
    month: int
    expense_ledger_id: UUID | None = None
    version: int = 0
    editable: bool = True
    commute_items: list[ExpenseLine] = field(default_factory=list)
    business_items: list[ExpenseLine] = field(default_factory=list)
    receipts: list[Receipt] = field(default_factory=list)
    warnings: list[Violation] = field(default_factory=list)

    @property
    def total_amount(self) -> int:
        return sum(i.amount for i in self.commute_items) + sum(
            i.amount for i in self.business_items
        )


class ExpenseService:
    """Service for the expense sub-ledger.

    The expense ledger has its own version but shares the attendance
    ledger's editability: when an attendance ledger exists for the same
    month and is under review, expenses are read-only too. A missing
    attendance ledger never blocks expense entry.
    """

    def __init__(self, session: AsyncSession, blob_store: BlobStore):
        self.session = session
        self.blob_store = blob_store
        self.ledgers = LedgerService(session)

    async def get_expense_ledger(
        self, owner_id: UUID, year: int, month: int
    ) -> ExpenseLedger | None:
        async with store_errors("get_expense_ledger"):
            result = await self.session.execute(
                select(ExpenseLedger).where(
                    ExpenseLedger.owner_id == owner_id,
                    ExpenseLedger.year == year,
                    ExpenseLedger.month == month,
                )
            )
            return result.scalar_one_or_none()

    async def is_editable(self, owner_id: UUID, year: int, month: int) -> bool:
        attendance = await self.ledgers.get_ledger(owner_id, year, month)
        return attendance is None or LedgerStateMachine.is_editable(attendance.status)

    async def get_expenses(self, owner_id: UUID, year: int, month: int) -> ExpenseSheet:
        """Load a month's expenses; an empty sheet when nothing was saved yet."""
        sheet = ExpenseSheet(
            year=year, month=month, editable=await self.is_editable(owner_id, year, month)
        )
        header = await self.get_expense_ledger(owner_id, year, month)
        if header is None:
            return sheet

        sheet.expense_ledger_id = header.expense_ledger_id
        sheet.version = header.version

        async with store_errors("load_expenses"):
            items = await self.session.execute(
                select(ExpenseItem)
                .where(ExpenseItem.expense_ledger_id == header.expense_ledger_id)
                .order_by(ExpenseItem.category, ExpenseItem.position)
            )
            receipts = await self.session.execute(
                select(ExpenseReceipt)
                .where(ExpenseReceipt.expense_ledger_id == header.expense_ledger_id)
                .order_by(ExpenseReceipt.uploaded_at)
            )

        for item in items.scalars().all():
            target = (
                sheet.commute_items
                if item.category == ExpenseCategory.COMMUTE.value
                else sheet.business_items
            )
            target.append(item.to_domain())

        for row in receipts.scalars().all():
            receipt = row.to_domain()
            receipt.url = self.blob_store.public_url(receipt.blob_reference)
            sheet.receipts.append(receipt)

        sheet.warnings = out_of_month_warnings(
            sheet.commute_items + sheet.business_items, year, month
        )
        return sheet

    async def save_expenses(
        self,
        owner_id: UUID,
        year: int,
        month: int,
        commute_items: list[ExpenseLine],
        business_items: list[ExpenseLine],
        receipts: list[Receipt],
        actor_id: UUID,
        employee_id: str | None = None,
        branch: str | None = None,
        expected_version: int | None = None,
    ) -> ExpenseSheet:
        """Replace a month's expense items and receipt references.

        Non-positive amounts are refused with ValidationFailed. Items dated
        outside the month are kept and reported as warnings.
        """
        if not 1 <= month <= 12:
            raise ValueError(f"month must be 1-12, got {month}")

        violations = validate_expense_lines(commute_items + business_items)
        if violations:
            raise ValidationFailed(violations)

        attendance = await self.ledgers.get_ledger(owner_id, year, month)
        attendance_id = None
        if attendance is not None:
            if not LedgerStateMachine.is_editable(attendance.status):
                raise LedgerNotEditableError(attendance.ledger_id, attendance.status)
            # A submit racing this save must either wait for our commit or fail it
            await self.ledgers.hold_editable(attendance)
            attendance_id = attendance.ledger_id

        header = await self.get_expense_ledger(owner_id, year, month)
        if header is None:
            if expected_version not in (None, 0):
                raise ConflictError("expense_ledger", None, expected_version)
            header = ExpenseLedger(
                owner_id=owner_id,
                year=year,
                month=month,
                employee_id=employee_id,
                branch=branch,
                attendance_ledger_id=attendance_id,
                version=1,
                created_by=actor_id,
                updated_by=actor_id,
            )
            self.session.add(header)
            try:
                await self.session.flush()
            except IntegrityError as e:
                raise ConflictError("expense_ledger", None, 0) from e
        else:
            await self._bump_version(
                header,
                expected_version if expected_version is not None else header.version,
                attendance_ledger_id=attendance_id,
                employee_id=employee_id if employee_id is not None else header.employee_id,
                branch=branch if branch is not None else header.branch,
                updated_by=actor_id,
            )

        await self._replace_lines(header.expense_ledger_id, commute_items, business_items, receipts)

        warnings = out_of_month_warnings(commute_items + business_items, year, month)
        for warning in warnings:
            logger.warning(
                "Expense ledger %s: item on %s is outside %d-%02d",
                header.expense_ledger_id, warning.work_date, year, month,
            )
        logger.info(
            "Saved expense ledger %s (%d commute, %d business, %d receipts)",
            header.expense_ledger_id, len(commute_items), len(business_items), len(receipts),
        )

        for receipt in receipts:
            receipt.url = self.blob_store.public_url(receipt.blob_reference)

        return ExpenseSheet(
            year=year,
            month=month,
            expense_ledger_id=header.expense_ledger_id,
            version=header.version,
            editable=True,
            commute_items=list(commute_items),
            business_items=list(business_items),
            receipts=list(receipts),
            warnings=warnings,
        )

    async def _bump_version(
        self, header: ExpenseLedger, expected_version: int, **values: object
    ) -> None:
        values.update(version=expected_version + 1, updated_at=utcnow())
        async with store_errors("update_expense_ledger"):
            result = await self.session.execute(
                update(ExpenseLedger)
                .where(
                    ExpenseLedger.expense_ledger_id == header.expense_ledger_id,
                    ExpenseLedger.version == expected_version,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
        if result.rowcount == 0:
            raise ConflictError("expense_ledger", header.expense_ledger_id, expected_version)
        for key, value in values.items():
            set_committed_value(header, key, value)

    async def _replace_lines(
        self,
        expense_ledger_id: UUID,
        commute_items: list[ExpenseLine],
        business_items: list[ExpenseLine],
        receipts: list[Receipt],
    ) -> None:
        async with store_errors("replace_expense_lines"):
            await self.session.execute(
                delete(ExpenseItem).where(ExpenseItem.expense_ledger_id == expense_ledger_id)
            )
            await self.session.execute(
                delete(ExpenseReceipt).where(ExpenseReceipt.expense_ledger_id == expense_ledger_id)
            )
            for category, lines in (
                (ExpenseCategory.COMMUTE, commute_items),
                (ExpenseCategory.BUSINESS, business_items),
            ):
                self.session.add_all(
                    ExpenseItem.from_domain(expense_ledger_id, category, position, line)
                    for position, line in enumerate(lines)
                )
            self.session.add_all(
                ExpenseReceipt.from_domain(expense_ledger_id, receipt) for receipt in receipts
            )
            await self.session.flush()
