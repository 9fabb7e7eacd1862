"""Ledger service - persistence and editing of monthly attendance ledgers."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Sequence
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from attendance_ledger.calculators.summary import compute_summary
from attendance_ledger.calculators.time_arithmetic import quantize_hours
from attendance_ledger.calculators.types import MAX_LATE_EARLY_HOURS, DailyRecord, MonthlySummary
from attendance_ledger.calculators.validation import Violation, dates_outside_month
from attendance_ledger.database import store_errors
from attendance_ledger.errors import (
    ConflictError,
    LedgerNotEditableError,
    LedgerNotFoundError,
    ValidationFailed,
)
from attendance_ledger.models import ApprovalAuditEntry, DailyRecordRow, MonthlyLedger
from attendance_ledger.models.base import utcnow
from attendance_ledger.services.state_machine import ApprovalStage, LedgerStateMachine, LedgerStatus

logger = logging.getLogger(__name__)


def _check_period(year: int, month: int) -> None:
    if not 1 <= month <= 12:
        raise ValueError(f"month must be 1-12, got {month}")
    if year < 1:
        raise ValueError(f"invalid year {year}")


def _save_violations(
    records: Sequence[DailyRecord], year: int, month: int
) -> list[Violation]:
    violations = [
        Violation(d, f"date is outside {year}-{month:02d}", "work_date")
        for d in dates_outside_month((r.work_date for r in records), year, month)
    ]
    seen = set()
    for record in sorted(records, key=lambda r: r.work_date):
        if record.work_date in seen:
            violations.append(Violation(record.work_date, "date entered more than once", "work_date"))
        seen.add(record.work_date)
        if not 0 <= quantize_hours(record.late_early_hours) <= MAX_LATE_EARLY_HOURS:
            violations.append(
                Violation(
                    record.work_date,
                    f"late/early hours must be between 0 and {MAX_LATE_EARLY_HOURS}",
                    "late_early_hours",
                )
            )
    return violations


class LedgerService:
    """Service for reading and writing monthly ledgers.

    Operations:
    - get_ledger / get_ledger_by_id: lookups by (owner, year, month) or id
    - save_ledger: lazily create, then replace all records in one unit of work
    - load_records / summarize: rebuild records and the derived summary
    - search_ledgers: approver list view with cached summaries
    - compare_and_set: version-checked header update shared with the workflow
    - hold_editable: keep a ledger editable until the caller commits

    Nothing here commits; the caller owns the transaction boundary.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_ledger(self, owner_id: UUID, year: int, month: int) -> MonthlyLedger | None:
        """Load the ledger for an owner and month, if one was ever saved."""
        async with store_errors("get_ledger"):
            result = await self.session.execute(
                select(MonthlyLedger).where(
                    MonthlyLedger.owner_id == owner_id,
                    MonthlyLedger.year == year,
                    MonthlyLedger.month == month,
                )
            )
            return result.scalar_one_or_none()

    async def get_ledger_by_id(self, ledger_id: UUID) -> MonthlyLedger | None:
        async with store_errors("get_ledger_by_id"):
            return await self.session.get(MonthlyLedger, ledger_id)

    async def require_ledger(self, ledger_id: UUID) -> MonthlyLedger:
        ledger = await self.get_ledger_by_id(ledger_id)
        if ledger is None:
            raise LedgerNotFoundError("ledger", ledger_id)
        return ledger

    async def load_records(self, ledger_id: UUID) -> list[DailyRecord]:
        """Load a ledger's daily records in date order."""
        async with store_errors("load_records"):
            result = await self.session.execute(
                select(DailyRecordRow)
                .where(DailyRecordRow.ledger_id == ledger_id)
                .order_by(DailyRecordRow.work_date)
            )
            return [row.to_domain() for row in result.scalars().all()]

    async def summarize(self, ledger_id: UUID) -> MonthlySummary:
        """Recompute the summary from stored records; the cache is not consulted."""
        return compute_summary(await self.load_records(ledger_id))

    @staticmethod
    def cached_summary(ledger: MonthlyLedger) -> MonthlySummary | None:
        if not ledger.summary_cache:
            return None
        return MonthlySummary.from_dict(ledger.summary_cache)

    async def save_ledger(
        self,
        owner_id: UUID,
        year: int,
        month: int,
        records: Iterable[DailyRecord],
        actor_id: UUID,
        workplace: str | None = None,
        employee_id: str | None = None,
        branch: str | None = None,
        expected_version: int | None = None,
    ) -> MonthlyLedger:
        """Create or update a ledger, replacing all of its records.

        Blank records are dropped. Raises ValidationFailed for dates outside
        the month, repeated dates or late/early hours the column cannot hold,
        LedgerNotEditableError when the ledger is not in draft or returned,
        and ConflictError when the stored version moved.

        Without expected_version, concurrent saves by the same owner are
        last-writer-wins.
        """
        _check_period(year, month)
        records = [r for r in records if not r.is_blank]

        violations = _save_violations(records, year, month)
        if violations:
            raise ValidationFailed(violations)

        summary = compute_summary(records)
        ledger = await self.get_ledger(owner_id, year, month)

        if ledger is None:
            if expected_version not in (None, 0):
                raise ConflictError("ledger", None, expected_version)
            return await self._create_ledger(
                owner_id, year, month, records, summary, actor_id,
                workplace=workplace, employee_id=employee_id, branch=branch,
            )

        if not LedgerStateMachine.is_editable(ledger.status):
            raise LedgerNotEditableError(ledger.ledger_id, ledger.status)

        values: dict[str, Any] = {
            "workplace": workplace,
            "summary_cache": summary.to_dict(),
            "updated_by": actor_id,
        }
        if employee_id is not None:
            values["employee_id"] = employee_id
        if branch is not None:
            values["branch"] = branch

        await self.compare_and_set(
            ledger,
            expected_version if expected_version is not None else ledger.version,
            from_statuses=LedgerStateMachine.EDITABLE,
            **values,
        )
        await self._replace_records(ledger.ledger_id, records)

        logger.info(
            "Saved ledger %s (%d records, version %d)",
            ledger.ledger_id, len(records), ledger.version,
        )
        return ledger

    async def _create_ledger(
        self,
        owner_id: UUID,
        year: int,
        month: int,
        records: list[DailyRecord],
        summary: MonthlySummary,
        actor_id: UUID,
        workplace: str | None,
        employee_id: str | None,
        branch: str | None,
    ) -> MonthlyLedger:
        ledger = MonthlyLedger(
            owner_id=owner_id,
            year=year,
            month=month,
            status=LedgerStatus.DRAFT.value,
            workplace=workplace,
            employee_id=employee_id,
            branch=branch,
            version=1,
            summary_cache=summary.to_dict(),
            created_by=actor_id,
            updated_by=actor_id,
        )
        self.session.add(ledger)
        try:
            await self.session.flush()
        except IntegrityError as e:
            # Another session created the same (owner, year, month) first
            raise ConflictError("ledger", None, 0) from e

        async with store_errors("create_ledger"):
            self.session.add_all(DailyRecordRow.from_domain(ledger.ledger_id, r) for r in records)
            await self.session.flush()

        logger.info(
            "Created ledger %s for owner %s %d-%02d", ledger.ledger_id, owner_id, year, month
        )
        return ledger

    async def _replace_records(self, ledger_id: UUID, records: list[DailyRecord]) -> None:
        async with store_errors("replace_records"):
            await self.session.execute(
                delete(DailyRecordRow).where(DailyRecordRow.ledger_id == ledger_id)
            )
            self.session.add_all(DailyRecordRow.from_domain(ledger_id, r) for r in records)
            await self.session.flush()

    async def compare_and_set(
        self,
        ledger: MonthlyLedger,
        expected_version: int,
        from_statuses: Iterable[str] | None = None,
        **values: Any,
    ) -> int:
        """Apply a header update only if the version (and status) still match.

        Bumps the version and updated_at. Returns the new version, or raises
        ConflictError when another writer got there first.
        """
        new_version = expected_version + 1
        conditions = [
            MonthlyLedger.ledger_id == ledger.ledger_id,
            MonthlyLedger.version == expected_version,
        ]
        if from_statuses is not None:
            conditions.append(
                MonthlyLedger.status.in_([LedgerStatus(s).value for s in from_statuses])
            )

        values.update(version=new_version, updated_at=utcnow())
        async with store_errors("compare_and_set"):
            result = await self.session.execute(
                update(MonthlyLedger)
                .where(*conditions)
                .values(**values)
                .execution_options(synchronize_session=False)
            )

        if result.rowcount == 0:
            logger.warning(
                "Version conflict on ledger %s (expected %d)", ledger.ledger_id, expected_version
            )
            raise ConflictError("ledger", ledger.ledger_id, expected_version)

        # Mirror the row into the loaded instance without marking it dirty
        for key, value in values.items():
            set_committed_value(ledger, key, value)
        return new_version

    async def hold_editable(self, ledger: MonthlyLedger) -> None:
        """Pin an editable ledger for the rest of the caller's transaction.

        Rewrites the row's version with itself, guarded on the version and an
        editable status as they were read. The row stays write-locked until
        the caller commits, and a transition committed since the read raises
        ConflictError.
        """
        async with store_errors("hold_editable"):
            result = await self.session.execute(
                update(MonthlyLedger)
                .where(
                    MonthlyLedger.ledger_id == ledger.ledger_id,
                    MonthlyLedger.version == ledger.version,
                    MonthlyLedger.status.in_(
                        [LedgerStatus(s).value for s in LedgerStateMachine.EDITABLE]
                    ),
                )
                .values(version=MonthlyLedger.version)
                .execution_options(synchronize_session=False)
            )

        if result.rowcount == 0:
            logger.warning(
                "Ledger %s changed since it was read (version %d)",
                ledger.ledger_id, ledger.version,
            )
            raise ConflictError("ledger", ledger.ledger_id, ledger.version)

    async def audit_history(self, ledger_id: UUID) -> list[ApprovalAuditEntry]:
        """All approval entries for a ledger, oldest first."""
        async with store_errors("audit_history"):
            result = await self.session.execute(
                select(ApprovalAuditEntry)
                .where(ApprovalAuditEntry.ledger_id == ledger_id)
                .order_by(ApprovalAuditEntry.ledger_version)
            )
            return list(result.scalars().all())

    async def current_stage_outcomes(
        self, ledger_id: UUID
    ) -> dict[ApprovalStage, ApprovalAuditEntry]:
        """Latest entry per stage; only these decide whether a stage is satisfied."""
        latest: dict[ApprovalStage, ApprovalAuditEntry] = {}
        for entry in await self.audit_history(ledger_id):
            latest[ApprovalStage(entry.stage)] = entry
        return latest

    async def search_ledgers(
        self,
        year: int | None = None,
        month: int | None = None,
        branch: str | None = None,
        status: str | None = None,
        employee_id: str | None = None,
        owner_id: UUID | None = None,
    ) -> list[MonthlyLedger]:
        """List ledgers for the approver view, filtered by any given fields."""
        query = select(MonthlyLedger)
        if year is not None:
            query = query.where(MonthlyLedger.year == year)
        if month is not None:
            query = query.where(MonthlyLedger.month == month)
        if branch:
            query = query.where(MonthlyLedger.branch == branch)
        if status:
            query = query.where(MonthlyLedger.status == LedgerStatus(status).value)
        if employee_id:
            query = query.where(MonthlyLedger.employee_id == employee_id)
        if owner_id is not None:
            query = query.where(MonthlyLedger.owner_id == owner_id)

        query = query.order_by(
            MonthlyLedger.year.desc(), MonthlyLedger.month.desc(), MonthlyLedger.employee_id
        )
        async with store_errors("search_ledgers"):
            result = await self.session.execute(query)
            return list(result.scalars().all())
