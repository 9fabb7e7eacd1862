"""Expense sub-ledger API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Path

from attendance_ledger.api.dependencies import ActorId, Blobs, DbSession
from attendance_ledger.api.schemas import (
    ErrorResponse,
    ExpenseLineIn,
    ExpenseLineOut,
    ExpenseResponse,
    ExpenseSaveRequest,
    ReceiptOut,
    ViolationOut,
)
from attendance_ledger.calculators.expenses import ExpenseLine, Receipt
from attendance_ledger.services.expense_service import ExpenseService, ExpenseSheet

router = APIRouter(prefix="/expenses", tags=["expenses"])

Year = Annotated[int, Path(ge=2000, le=2100)]
Month = Annotated[int, Path(ge=1, le=12)]


def _line(entry: ExpenseLineIn) -> ExpenseLine:
    return ExpenseLine(**entry.model_dump())


def _sheet_out(sheet: ExpenseSheet) -> ExpenseResponse:
    return ExpenseResponse(
        expense_ledger_id=sheet.expense_ledger_id,
        year=sheet.year,
        month=sheet.month,
        version=sheet.version,
        editable=sheet.editable,
        total_amount=sheet.total_amount,
        commute_items=[ExpenseLineOut.model_validate(i) for i in sheet.commute_items],
        business_items=[ExpenseLineOut.model_validate(i) for i in sheet.business_items],
        receipts=[ReceiptOut.model_validate(r) for r in sheet.receipts],
        warnings=[ViolationOut.model_validate(w) for w in sheet.warnings],
    )


@router.get(
    "/me/{year}/{month}",
    response_model=ExpenseResponse,
)
async def get_my_expenses(
    db: DbSession,
    actor_id: ActorId,
    blobs: Blobs,
    year: Year,
    month: Month,
) -> ExpenseResponse:
    """Get the caller's expenses for a month."""
    sheet = await ExpenseService(db, blobs).get_expenses(actor_id, year, month)
    return _sheet_out(sheet)


@router.put(
    "/me/{year}/{month}",
    response_model=ExpenseResponse,
    responses={409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def save_my_expenses(
    db: DbSession,
    actor_id: ActorId,
    blobs: Blobs,
    year: Year,
    month: Month,
    payload: ExpenseSaveRequest,
) -> ExpenseResponse:
    """Replace the caller's expense items and receipts for a month."""
    sheet = await ExpenseService(db, blobs).save_expenses(
        actor_id,
        year,
        month,
        commute_items=[_line(i) for i in payload.commute_items],
        business_items=[_line(i) for i in payload.business_items],
        receipts=[Receipt(**r.model_dump()) for r in payload.receipts],
        actor_id=actor_id,
        employee_id=payload.employee_id,
        branch=payload.branch,
        expected_version=payload.expected_version,
    )
    await db.commit()
    return _sheet_out(sheet)
