"""Attendance ledger API endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query

from attendance_ledger.api.dependencies import ActorId, DbSession, Roles
from attendance_ledger.api.schemas import (
    AuditEntryOut,
    AuditHistoryResponse,
    ClearedField,
    DailyRecordIn,
    DailyRecordOut,
    ErrorResponse,
    LedgerListItem,
    LedgerListResponse,
    LedgerResponse,
    LedgerSaveRequest,
    SummaryOut,
    TransitionRequest,
    TransitionResponse,
)
from attendance_ledger.calculators.summary import compute_summary
from attendance_ledger.calculators.types import DailyRecord, MonthlySummary
from attendance_ledger.models import MonthlyLedger
from attendance_ledger.services.approval_service import ApprovalService, TransitionResult
from attendance_ledger.services.ledger_service import LedgerService
from attendance_ledger.services.state_machine import (
    ApprovalStage,
    LedgerStateMachine,
    LedgerStatus,
)

router = APIRouter(prefix="/ledgers", tags=["ledgers"])

ERROR_RESPONSES = {
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    422: {"model": ErrorResponse},
}

Year = Annotated[int, Path(ge=2000, le=2100)]
Month = Annotated[int, Path(ge=1, le=12)]


def _to_domain(entry: DailyRecordIn) -> tuple[DailyRecord, list[ClearedField]]:
    """Run raw input through the sanitize-on-write setters."""
    record = DailyRecord(
        work_date=entry.work_date,
        work_type=entry.work_type,
        remarks=entry.remarks,
        late_early_hours=entry.late_early_hours,
    )
    results = {
        "start_time": record.set_time("start_time", entry.start_time),
        "end_time": record.set_time("end_time", entry.end_time),
        "break_minutes": record.set_break(entry.break_minutes),
    }
    cleared = [
        ClearedField(work_date=entry.work_date, field=name, raw=result.raw, reason=result.reason)
        for name, result in results.items()
        if result.cleared
    ]
    return record, cleared


def _record_out(record: DailyRecord) -> DailyRecordOut:
    return DailyRecordOut(
        work_date=record.work_date,
        start_time=record.start_time,
        end_time=record.end_time,
        break_minutes=record.break_minutes,
        work_type=record.work_type,
        remarks=record.remarks,
        late_early_hours=record.late_early_hours,
        actual_work_minutes=record.actual_work_minutes,
    )


def _summary_out(summary: MonthlySummary) -> SummaryOut:
    return SummaryOut(**summary.to_dict())


async def _ledger_response(
    db: DbSession,
    ledger: MonthlyLedger,
    cleared: list[ClearedField] | None = None,
) -> LedgerResponse:
    ledgers = LedgerService(db)
    records = await ledgers.load_records(ledger.ledger_id)
    reviews = await ledgers.current_stage_outcomes(ledger.ledger_id)
    leader = reviews.get(ApprovalStage.LEADER)
    admin = reviews.get(ApprovalStage.ADMIN)

    return LedgerResponse(
        ledger_id=ledger.ledger_id,
        owner_id=ledger.owner_id,
        employee_id=ledger.employee_id,
        branch=ledger.branch,
        year=ledger.year,
        month=ledger.month,
        status=ledger.status,
        status_label=LedgerStatus(ledger.status).label,
        workplace=ledger.workplace,
        version=ledger.version,
        editable=LedgerStateMachine.is_editable(ledger.status),
        allowed_events=[e.value for e in LedgerStateMachine.allowed_events(ledger.status)],
        submitted_at=ledger.submitted_at,
        updated_at=ledger.updated_at,
        records=[_record_out(r) for r in records],
        summary=_summary_out(compute_summary(records)),
        leader_review=AuditEntryOut.model_validate(leader) if leader else None,
        admin_review=AuditEntryOut.model_validate(admin) if admin else None,
        cleared_fields=cleared or [],
    )


def _transition_out(result: TransitionResult) -> TransitionResponse:
    return TransitionResponse(
        ledger_id=result.ledger.ledger_id,
        from_status=result.from_status.value,
        to_status=result.to_status.value,
        version=result.ledger.version,
        audit_entry=(
            AuditEntryOut.model_validate(result.audit_entry) if result.audit_entry else None
        ),
    )


# ============================================================================
# Owner endpoints
# ============================================================================


@router.get(
    "/me/{year}/{month}",
    response_model=LedgerResponse,
)
async def get_my_ledger(
    db: DbSession,
    actor_id: ActorId,
    year: Year,
    month: Month,
) -> LedgerResponse:
    """Get the caller's ledger for a month; an empty draft if never saved."""
    ledger = await LedgerService(db).get_ledger(actor_id, year, month)
    if ledger is None:
        return LedgerResponse(
            owner_id=actor_id,
            year=year,
            month=month,
            status=LedgerStatus.DRAFT.value,
            status_label=LedgerStatus.DRAFT.label,
            version=0,
            editable=True,
            allowed_events=[],
            records=[],
            summary=_summary_out(MonthlySummary()),
        )
    return await _ledger_response(db, ledger)


@router.put(
    "/me/{year}/{month}",
    response_model=LedgerResponse,
    responses=ERROR_RESPONSES,
)
async def save_my_ledger(
    db: DbSession,
    actor_id: ActorId,
    year: Year,
    month: Month,
    payload: LedgerSaveRequest,
) -> LedgerResponse:
    """Save a month of attendance, replacing every record."""
    records: list[DailyRecord] = []
    cleared: list[ClearedField] = []
    for entry in payload.records:
        record, entry_cleared = _to_domain(entry)
        records.append(record)
        cleared.extend(entry_cleared)

    ledger = await LedgerService(db).save_ledger(
        actor_id,
        year,
        month,
        records,
        actor_id=actor_id,
        workplace=payload.workplace,
        employee_id=payload.employee_id,
        branch=payload.branch,
        expected_version=payload.expected_version,
    )
    response = await _ledger_response(db, ledger, cleared)
    await db.commit()
    return response


# ============================================================================
# Reviewer endpoints
# ============================================================================


@router.get(
    "",
    response_model=LedgerListResponse,
)
async def list_ledgers(
    db: DbSession,
    year: Annotated[int | None, Query(ge=2000, le=2100)] = None,
    month: Annotated[int | None, Query(ge=1, le=12)] = None,
    branch: str | None = None,
    status_filter: Annotated[LedgerStatus | None, Query(alias="status")] = None,
    employee_id: str | None = None,
) -> LedgerListResponse:
    """List ledgers with their cached summaries."""
    ledgers = await LedgerService(db).search_ledgers(
        year=year,
        month=month,
        branch=branch,
        status=status_filter.value if status_filter else None,
        employee_id=employee_id,
    )
    items = []
    for ledger in ledgers:
        cached = LedgerService.cached_summary(ledger)
        items.append(
            LedgerListItem(
                ledger_id=ledger.ledger_id,
                owner_id=ledger.owner_id,
                employee_id=ledger.employee_id,
                branch=ledger.branch,
                year=ledger.year,
                month=ledger.month,
                status=ledger.status,
                status_label=LedgerStatus(ledger.status).label,
                version=ledger.version,
                summary=_summary_out(cached) if cached else None,
            )
        )
    return LedgerListResponse(items=items, total=len(items))


@router.get(
    "/{ledger_id}",
    response_model=LedgerResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_ledger(
    db: DbSession,
    ledger_id: Annotated[UUID, Path()],
) -> LedgerResponse:
    """Get a ledger by ID with its records and recomputed summary."""
    ledger = await LedgerService(db).require_ledger(ledger_id)
    return await _ledger_response(db, ledger)


@router.get(
    "/{ledger_id}/approvals",
    response_model=AuditHistoryResponse,
)
async def get_approval_history(
    db: DbSession,
    ledger_id: Annotated[UUID, Path()],
) -> AuditHistoryResponse:
    """Full approval history, oldest first."""
    entries = await LedgerService(db).audit_history(ledger_id)
    return AuditHistoryResponse(items=[AuditEntryOut.model_validate(e) for e in entries])


# ============================================================================
# State transitions
# ============================================================================


@router.post(
    "/{ledger_id}/submit",
    response_model=TransitionResponse,
    responses=ERROR_RESPONSES,
)
async def submit_ledger(
    db: DbSession,
    actor_id: ActorId,
    roles: Roles,
    ledger_id: Annotated[UUID, Path()],
    payload: TransitionRequest,
) -> TransitionResponse:
    """Submit a draft or returned ledger for review."""
    result = await ApprovalService(db, roles).submit(ledger_id, actor_id, payload.expected_version)
    await db.commit()
    return _transition_out(result)


@router.post(
    "/{ledger_id}/leader-approve",
    response_model=TransitionResponse,
    responses=ERROR_RESPONSES,
)
async def leader_approve_ledger(
    db: DbSession,
    actor_id: ActorId,
    roles: Roles,
    ledger_id: Annotated[UUID, Path()],
    payload: TransitionRequest,
) -> TransitionResponse:
    """Approve a submitted ledger as the branch leader."""
    result = await ApprovalService(db, roles).leader_approve(
        ledger_id, actor_id, payload.expected_version, payload.comment
    )
    await db.commit()
    return _transition_out(result)


@router.post(
    "/{ledger_id}/leader-reject",
    response_model=TransitionResponse,
    responses=ERROR_RESPONSES,
)
async def leader_reject_ledger(
    db: DbSession,
    actor_id: ActorId,
    roles: Roles,
    ledger_id: Annotated[UUID, Path()],
    payload: TransitionRequest,
) -> TransitionResponse:
    """Return a submitted ledger to its owner with a reason."""
    result = await ApprovalService(db, roles).leader_reject(
        ledger_id, actor_id, payload.expected_version, payload.comment
    )
    await db.commit()
    return _transition_out(result)


@router.post(
    "/{ledger_id}/admin-approve",
    response_model=TransitionResponse,
    responses=ERROR_RESPONSES,
)
async def admin_approve_ledger(
    db: DbSession,
    actor_id: ActorId,
    roles: Roles,
    ledger_id: Annotated[UUID, Path()],
    payload: TransitionRequest,
) -> TransitionResponse:
    """Give final approval to a leader-approved ledger."""
    result = await ApprovalService(db, roles).admin_approve(
        ledger_id, actor_id, payload.expected_version, payload.comment
    )
    await db.commit()
    return _transition_out(result)


@router.post(
    "/{ledger_id}/reopen",
    response_model=TransitionResponse,
    responses=ERROR_RESPONSES,
)
async def reopen_ledger(
    db: DbSession,
    actor_id: ActorId,
    roles: Roles,
    ledger_id: Annotated[UUID, Path()],
    payload: TransitionRequest,
) -> TransitionResponse:
    """Send a ledger back to draft."""
    result = await ApprovalService(db, roles).reopen(ledger_id, actor_id, payload.expected_version)
    await db.commit()
    return _transition_out(result)
