"""Entitlement policy: tenure tiers, probation pro-rata, admin adjustments
and the bulk rebalance pass.

Every entry point takes ``year`` explicitly; nothing here reads the clock
except as a default for the evaluation date.
"""

from __future__ import annotations

import calendar
import logging
import uuid
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.common.constants import ZERO_DAYS
from leavedesk.common.exceptions import (
    FloorViolationException,
    NotFoundException,
    ValidationException,
)
from leavedesk.config import settings
from leavedesk.database import transaction
from leavedesk.employees.models import Employee
from leavedesk.employees.service import EmployeeDirectory
from leavedesk.leave import ledger
from leavedesk.leave.models import LeaveBalance, LeaveEntitlementLog, LeaveType
from leavedesk.leave.schemas import (
    EntitlementChangeOut,
    RebalanceChange,
    RebalanceResult,
    YearResetResult,
)

logger = logging.getLogger(__name__)

# (minimum full years of service, vacation days), highest tier first
TENURE_TIERS: tuple[tuple[int, Decimal], ...] = (
    (5, Decimal("18")),
    (2, Decimal("14")),
    (0, Decimal("7")),
)


# ═════════════════════════════════════════════════════════════════════
# Pure policy math
# ═════════════════════════════════════════════════════════════════════


def add_months(d: date, months: int) -> date:
    """Shift by whole months, clamping to the last day of a short month."""
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def years_of_service(join_date: Optional[date], as_of: date) -> int:
    if join_date is None:
        return 0
    years = as_of.year - join_date.year
    if (as_of.month, as_of.day) < (join_date.month, join_date.day):
        years -= 1
    return max(0, years)


def tenure_vacation_days(join_date: Optional[date], as_of: date) -> Decimal:
    """7 / 14 / 18 days by full years of service; no join date is tier one."""
    years = years_of_service(join_date, as_of)
    for min_years, days in TENURE_TIERS:
        if years >= min_years:
            return days
    return TENURE_TIERS[-1][1]


def pro_rata_entitlement(
    default_days: Decimal,
    join_date: date,
    year: int,
    probation_months: int = 3,
) -> Decimal:
    """Scale a full-year entitlement to the months left after probation.

    Counts the month probation ends in through December, caps at twelve,
    and rounds to the nearest half day. Zero if probation outlasts *year*.
    """
    probation_end = add_months(join_date, probation_months)
    year_end = date(year, 12, 31)
    if probation_end > year_end:
        return ZERO_DAYS

    remaining = (12 - probation_end.month) + (year - probation_end.year) * 12 + 1
    remaining = max(0, min(12, remaining))

    raw = Decimal(default_days) * remaining / 12
    halves = (raw * 2).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return ledger.as_days(halves / 2)


def _find_type_by_keywords(
    leave_types: Sequence[LeaveType],
    keywords: Sequence[str],
) -> Optional[LeaveType]:
    for lt in leave_types:
        name = lt.name.lower()
        if any(k in name for k in keywords):
            return lt
    return None


# ═════════════════════════════════════════════════════════════════════
# EntitlementService
# ═════════════════════════════════════════════════════════════════════


class EntitlementService:
    """Administrative writes to ``entitled_days``, each logged."""

    @staticmethod
    async def _get_leave_type(db: AsyncSession, leave_type_id: uuid.UUID) -> LeaveType:
        lt = await db.get(LeaveType, leave_type_id)
        if lt is None:
            raise NotFoundException("LeaveType", str(leave_type_id))
        return lt

    @staticmethod
    def _log(
        db: AsyncSession,
        balance: LeaveBalance,
        days_added: Decimal,
        reason: Optional[str],
        created_by: Optional[uuid.UUID],
    ) -> None:
        db.add(
            LeaveEntitlementLog(
                employee_id=balance.employee_id,
                leave_type_id=balance.leave_type_id,
                year=balance.year,
                days_added=ledger.as_days(days_added),
                reason=reason,
                created_by=created_by,
            )
        )

    @staticmethod
    def _check_days(days: Decimal) -> Decimal:
        days = ledger.as_days(days)
        if days <= 0:
            raise ValidationException({"days": ["Days must be greater than zero."]})
        return days

    # ── Add ─────────────────────────────────────────────────────────

    @staticmethod
    async def add_entitlement(
        db: AsyncSession,
        employee_ids: Sequence[uuid.UUID],
        leave_type_id: uuid.UUID,
        days: Decimal,
        year: int,
        *,
        reason: Optional[str] = None,
        created_by: Optional[uuid.UUID] = None,
    ) -> list[EntitlementChangeOut]:
        """Credit *days* to every listed employee; all or nothing."""
        days = EntitlementService._check_days(days)
        results: list[EntitlementChangeOut] = []

        async with transaction(db):
            leave_type = await EntitlementService._get_leave_type(db, leave_type_id)
            for employee_id in employee_ids:
                await EmployeeDirectory.get_employee(db, employee_id)
                balance = await ledger.get_or_create_balance(
                    db, employee_id, leave_type, year,
                )
                ledger.set_entitled(balance, balance.entitled_days + days)
                EntitlementService._log(
                    db, balance, days, reason or "Entitlement added", created_by,
                )
                results.append(
                    EntitlementChangeOut(
                        employee_id=employee_id,
                        leave_type_id=leave_type.id,
                        year=year,
                        days_added=days,
                        new_entitlement=balance.entitled_days,
                    )
                )

        logger.info(
            "Added %s day(s) of %s to %d employee(s) for %s",
            days, leave_type.name, len(results), year,
        )
        return results

    # ── Remove ──────────────────────────────────────────────────────

    @staticmethod
    async def remove_entitlement(
        db: AsyncSession,
        employee_ids: Sequence[uuid.UUID],
        leave_type_id: uuid.UUID,
        days: Decimal,
        year: int,
        *,
        reason: Optional[str] = None,
        created_by: Optional[uuid.UUID] = None,
    ) -> list[EntitlementChangeOut]:
        """Debit *days*; fails with FloorViolationException if any employee
        would drop below their used + pending days (or below zero)."""
        days = EntitlementService._check_days(days)
        results: list[EntitlementChangeOut] = []

        async with transaction(db):
            leave_type = await EntitlementService._get_leave_type(db, leave_type_id)
            for employee_id in employee_ids:
                await EmployeeDirectory.get_employee(db, employee_id)
                balance = await ledger.get_or_create_balance(
                    db, employee_id, leave_type, year,
                )
                new_entitled = ledger.as_days(balance.entitled_days - days)
                floor = max(ZERO_DAYS, balance.committed_days)
                if new_entitled < floor:
                    raise FloorViolationException(employee_id, floor, new_entitled)

                ledger.set_entitled(balance, new_entitled)
                EntitlementService._log(
                    db, balance, -days, reason or "Entitlement reduction", created_by,
                )
                results.append(
                    EntitlementChangeOut(
                        employee_id=employee_id,
                        leave_type_id=leave_type.id,
                        year=year,
                        days_added=-days,
                        new_entitlement=balance.entitled_days,
                    )
                )

        logger.info(
            "Removed %s day(s) of %s from %d employee(s) for %s",
            days, leave_type.name, len(results), year,
        )
        return results

    # ── Rebalance ───────────────────────────────────────────────────

    @staticmethod
    async def _rebalance_bucket(
        db: AsyncSession,
        employee: Employee,
        leave_type: LeaveType,
        correct: Decimal,
        year: int,
        reason: str,
        admin_id: Optional[uuid.UUID],
    ) -> Optional[RebalanceChange]:
        balance = await ledger.get_or_create_balance(db, employee.id, leave_type, year)
        current = balance.entitled_days
        # Never below what is already committed
        target = ledger.as_days(max(correct, balance.committed_days))
        diff = target - current
        if abs(diff) <= settings.REBALANCE_EPSILON:
            return None

        ledger.set_entitled(balance, target)
        EntitlementService._log(db, balance, diff, reason, admin_id)
        return RebalanceChange(
            employee_id=employee.id,
            employee_name=employee.full_name,
            leave_type_id=leave_type.id,
            leave_type_name=leave_type.name,
            from_days=current,
            to_days=target,
            diff=diff,
            reason=reason,
        )

    @staticmethod
    async def rebalance_all(
        db: AsyncSession,
        admin_id: Optional[uuid.UUID],
        year: int,
        *,
        as_of: Optional[date] = None,
    ) -> RebalanceResult:
        """Recompute vacation (tenure) and flex (flat) entitlements for every
        active employee. Probation employees get the pro-rata share.

        Runs as one unit of work; a second run with no changes in between
        reports nothing.
        """
        as_of = as_of or date.today()
        result = RebalanceResult(year=year)

        async with transaction(db):
            types = (
                await db.execute(
                    select(LeaveType)
                    .where(LeaveType.is_active.is_(True))
                    .order_by(LeaveType.name)
                )
            ).scalars().all()
            vacation_type = _find_type_by_keywords(types, settings.vacation_keywords_list)
            flex_type = _find_type_by_keywords(types, settings.flex_keywords_list)
            if flex_type is not None and flex_type is vacation_type:
                flex_type = None

            for employee in await EmployeeDirectory.list_active(db):
                prorate = employee.is_on_probation and employee.join_date is not None

                if vacation_type is not None:
                    correct = tenure_vacation_days(employee.join_date, as_of)
                    if prorate:
                        correct = pro_rata_entitlement(
                            correct, employee.join_date, year, settings.PROBATION_MONTHS,
                        )
                    years = years_of_service(employee.join_date, as_of)
                    change = await EntitlementService._rebalance_bucket(
                        db, employee, vacation_type, correct, year,
                        f"Rebalance: tenure-based adjustment ({years} years of service)",
                        admin_id,
                    )
                    if change:
                        result.changes.append(change)

                if flex_type is not None:
                    correct = settings.FLEX_POLICY_DAYS
                    if prorate:
                        correct = pro_rata_entitlement(
                            correct, employee.join_date, year, settings.PROBATION_MONTHS,
                        )
                    change = await EntitlementService._rebalance_bucket(
                        db, employee, flex_type, correct, year,
                        f"Rebalance: flex policy adjustment "
                        f"({settings.FLEX_POLICY_DAYS} days for all)",
                        admin_id,
                    )
                    if change:
                        result.changes.append(change)

                result.processed += 1

        for change in result.changes:
            logger.info(
                "Rebalanced %s / %s: %s -> %s (diff %s)",
                change.employee_name, change.leave_type_name,
                change.from_days, change.to_days, change.diff,
            )
        logger.info(
            "Rebalance %s: %d employee(s) processed, %d change(s)",
            year, result.processed, len(result.changes),
        )
        return result

    # ── Annual reset ────────────────────────────────────────────────

    @staticmethod
    async def reset_year_balances(db: AsyncSession, year: int) -> YearResetResult:
        """Seed every active employee x active type for *year* with the type
        default. Existing rows are left alone."""
        created = skipped = 0

        async with transaction(db):
            types = (
                await db.execute(select(LeaveType).where(LeaveType.is_active.is_(True)))
            ).scalars().all()
            employees = await EmployeeDirectory.list_active(db)
            for employee in employees:
                for leave_type in types:
                    existing = await ledger.find_balance(
                        db, employee.id, leave_type.id, year,
                    )
                    if existing is not None:
                        skipped += 1
                        continue
                    await ledger.get_or_create_balance(db, employee.id, leave_type, year)
                    created += 1

        logger.info(
            "Year %s reset: %d employee(s), %d balance(s) created, %d skipped",
            year, len(employees), created, skipped,
        )
        return YearResetResult(
            year=year,
            employees_processed=len(employees),
            created=created,
            skipped=skipped,
        )
