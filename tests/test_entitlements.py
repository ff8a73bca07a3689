"""Tests for entitlement policy: tenure tiers, probation pro-rata, admin
add/remove with the committed-days floor, bulk rebalance and year reset."""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.common.constants import EmploymentStatus
from leavedesk.common.exceptions import (
    FloorViolationException,
    NotFoundException,
    ValidationException,
)
from leavedesk.leave import ledger
from leavedesk.leave.models import LeaveBalance, LeaveEntitlementLog
from leavedesk.leave.policy import (
    EntitlementService,
    add_months,
    pro_rata_entitlement,
    tenure_vacation_days,
    years_of_service,
)
from tests.conftest import seed_balance, seed_employee, seed_leave_type

AS_OF = date(2026, 6, 1)


async def _logs(db: AsyncSession) -> list[LeaveEntitlementLog]:
    result = await db.execute(select(LeaveEntitlementLog).order_by(LeaveEntitlementLog.created_at))
    return list(result.scalars().all())


async def _refreshed(db: AsyncSession, employee_id, leave_type_id, year=2026) -> LeaveBalance:
    bal = await ledger.find_balance(db, employee_id, leave_type_id, year)
    assert bal is not None
    await db.refresh(bal)
    return bal


# ═════════════════════════════════════════════════════════════════════
# Pure policy math
# ═════════════════════════════════════════════════════════════════════


class TestTenure:
    @pytest.mark.parametrize(
        "join_date, expected",
        [
            (date(2026, 1, 10), Decimal("7")),
            (date(2024, 6, 2), Decimal("7")),    # one day short of two years
            (date(2024, 6, 1), Decimal("14")),
            (date(2021, 6, 2), Decimal("14")),
            (date(2021, 6, 1), Decimal("18")),
            (date(2010, 1, 1), Decimal("18")),
            (None, Decimal("7")),
        ],
    )
    def test_vacation_tiers(self, join_date, expected):
        assert tenure_vacation_days(join_date, AS_OF) == expected

    def test_years_never_negative(self):
        assert years_of_service(date(2027, 1, 1), AS_OF) == 0


class TestProRata:
    def test_add_months_clamps_to_month_end(self):
        assert add_months(date(2026, 11, 30), 3) == date(2027, 2, 28)
        assert add_months(date(2026, 1, 31), 1) == date(2026, 2, 28)

    def test_probation_ending_mid_year(self):
        # Joined 15 Mar, probation ends 15 Jun: June..December is 7 months
        assert pro_rata_entitlement(Decimal("12"), date(2026, 3, 15), 2026) == Decimal("7")

    def test_rounds_to_half_day(self):
        # 7 days x 7/12 = 4.083 -> 4.0
        assert pro_rata_entitlement(Decimal("7"), date(2026, 3, 15), 2026) == Decimal("4")
        # 3 days x 7/12 = 1.75 -> 2.0 (half-up on halves)
        assert pro_rata_entitlement(Decimal("3"), date(2026, 3, 15), 2026) == Decimal("2")

    def test_probation_ending_in_december(self):
        assert pro_rata_entitlement(Decimal("12"), date(2026, 9, 1), 2026) == Decimal("1")

    def test_probation_outlasting_year_is_zero(self):
        assert pro_rata_entitlement(Decimal("12"), date(2026, 11, 1), 2026) == Decimal("0")

    def test_earlier_join_is_capped_at_full_year(self):
        assert pro_rata_entitlement(Decimal("12"), date(2024, 1, 1), 2026) == Decimal("12")


# ═════════════════════════════════════════════════════════════════════
# Add / remove
# ═════════════════════════════════════════════════════════════════════


class TestAddEntitlement:
    async def test_add_to_many_employees(self, db: AsyncSession, admin):
        lt = await seed_leave_type(db, "Casual Leave", Decimal("14"))
        a = await seed_employee(db, first_name="A")
        b = await seed_employee(db, first_name="B")
        await seed_balance(db, a.id, lt.id, entitled=Decimal("10"))

        results = await EntitlementService.add_entitlement(
            db, [a.id, b.id], lt.id, Decimal("2"), 2026,
            reason="Compensatory days", created_by=admin.id,
        )

        assert {r.employee_id: r.new_entitlement for r in results} == {
            a.id: Decimal("12"),
            b.id: Decimal("16"),  # lazily created from the default of 14
        }
        logs = await _logs(db)
        assert len(logs) == 2
        assert all(log.days_added == Decimal("2") for log in logs)
        assert all(log.created_by == admin.id for log in logs)

    async def test_non_positive_days_rejected(self, db: AsyncSession, employee):
        lt = await seed_leave_type(db)
        with pytest.raises(ValidationException):
            await EntitlementService.add_entitlement(db, [employee.id], lt.id, Decimal("0"), 2026)

    async def test_unknown_employee_rolls_back_everyone(self, db: AsyncSession, employee):
        lt = await seed_leave_type(db, "Casual Leave", Decimal("14"))
        await seed_balance(db, employee.id, lt.id, entitled=Decimal("10"))
        emp_id, lt_id = employee.id, lt.id

        with pytest.raises(NotFoundException):
            await EntitlementService.add_entitlement(
                db, [emp_id, uuid.uuid4()], lt_id, Decimal("2"), 2026,
            )

        assert (await _refreshed(db, emp_id, lt_id)).entitled_days == Decimal("10")
        assert await _logs(db) == []


class TestRemoveEntitlement:
    async def test_remove_down_to_committed(self, db: AsyncSession, employee):
        lt = await seed_leave_type(db, "Casual Leave", Decimal("14"))
        await seed_balance(
            db, employee.id, lt.id,
            entitled=Decimal("10"), used=Decimal("3"), pending=Decimal("2"),
        )

        results = await EntitlementService.remove_entitlement(
            db, [employee.id], lt.id, Decimal("5"), 2026,
        )

        assert results[0].new_entitlement == Decimal("5")
        assert results[0].days_added == Decimal("-5")
        logs = await _logs(db)
        assert [log.days_added for log in logs] == [Decimal("-5")]

    async def test_floor_violation_changes_nothing(self, db: AsyncSession, employee):
        lt = await seed_leave_type(db, "Casual Leave", Decimal("14"))
        await seed_balance(
            db, employee.id, lt.id,
            entitled=Decimal("10"), used=Decimal("3"), pending=Decimal("2"),
        )
        emp_id, lt_id = employee.id, lt.id

        with pytest.raises(FloorViolationException) as exc_info:
            await EntitlementService.remove_entitlement(
                db, [emp_id], lt_id, Decimal("6"), 2026,
            )

        assert exc_info.value.floor == Decimal("5")
        bal = await _refreshed(db, emp_id, lt_id)
        assert bal.entitled_days == Decimal("10")
        assert await _logs(db) == []

    async def test_cannot_go_below_zero(self, db: AsyncSession, employee):
        lt = await seed_leave_type(db, "Flex Leave", Decimal("3"))
        emp_id, lt_id = employee.id, lt.id

        with pytest.raises(FloorViolationException):
            await EntitlementService.remove_entitlement(db, [emp_id], lt_id, Decimal("4"), 2026)


# ═════════════════════════════════════════════════════════════════════
# Rebalance
# ═════════════════════════════════════════════════════════════════════


class TestRebalance:
    async def test_tenure_and_flex_targets(self, db: AsyncSession, admin):
        casual = await seed_leave_type(db, "Casual Leave", Decimal("14"))
        flex = await seed_leave_type(db, "Flex Leave", Decimal("3"))
        await seed_leave_type(db, "Sick Leave", Decimal("3"))
        senior = await seed_employee(db, first_name="Senior", join_date=date(2019, 1, 1))
        await seed_balance(db, senior.id, flex.id, entitled=Decimal("5"))

        result = await EntitlementService.rebalance_all(db, admin.id, 2026, as_of=AS_OF)

        assert result.processed == 2
        senior_changes = {
            c.leave_type_name: c for c in result.changes if c.employee_id == senior.id
        }
        assert senior_changes["Casual Leave"].to_days == Decimal("18")
        assert senior_changes["Casual Leave"].diff == Decimal("4")
        assert senior_changes["Flex Leave"].to_days == Decimal("3")
        assert senior_changes["Flex Leave"].diff == Decimal("-2")
        assert "Sick Leave" not in {c.leave_type_name for c in result.changes}
        assert (await _refreshed(db, senior.id, casual.id)).entitled_days == Decimal("18")

    async def test_never_drops_below_committed(self, db: AsyncSession, admin):
        casual = await seed_leave_type(db, "Casual Leave", Decimal("14"))
        junior = await seed_employee(db, first_name="Junior", join_date=date(2025, 12, 1))
        await seed_balance(
            db, junior.id, casual.id, entitled=Decimal("14"), used=Decimal("10"),
        )

        result = await EntitlementService.rebalance_all(db, admin.id, 2026, as_of=AS_OF)

        change = next(c for c in result.changes if c.employee_id == junior.id)
        assert change.to_days == Decimal("10")

    async def test_probation_is_pro_rated(self, db: AsyncSession, admin):
        casual = await seed_leave_type(db, "Casual Leave", Decimal("14"))
        newbie = await seed_employee(
            db,
            first_name="New",
            join_date=date(2026, 3, 15),
            status=EmploymentStatus.probation,
        )

        await EntitlementService.rebalance_all(db, admin.id, 2026, as_of=AS_OF)

        # Tier one (7 days) over June..December
        assert (await _refreshed(db, newbie.id, casual.id)).entitled_days == Decimal("4")

    async def test_second_run_is_a_no_op(self, db: AsyncSession, admin):
        await seed_leave_type(db, "Casual Leave", Decimal("14"))
        await seed_leave_type(db, "Flex Leave", Decimal("3"))
        await seed_employee(db, first_name="Senior", join_date=date(2019, 1, 1))

        first = await EntitlementService.rebalance_all(db, admin.id, 2026, as_of=AS_OF)
        log_count = len(await _logs(db))
        second = await EntitlementService.rebalance_all(db, admin.id, 2026, as_of=AS_OF)

        assert first.changes
        assert second.changes == []
        assert len(await _logs(db)) == log_count

    async def test_inactive_employees_are_skipped(self, db: AsyncSession):
        casual = await seed_leave_type(db, "Casual Leave", Decimal("14"))
        gone = await seed_employee(db, is_active=False, join_date=date(2019, 1, 1))

        result = await EntitlementService.rebalance_all(db, None, 2026, as_of=AS_OF)

        assert result.processed == 0
        assert await ledger.find_balance(db, gone.id, casual.id, 2026) is None


# ═════════════════════════════════════════════════════════════════════
# Year reset
# ═════════════════════════════════════════════════════════════════════


class TestYearReset:
    async def test_seeds_missing_rows_only(self, db: AsyncSession, employee):
        casual = await seed_leave_type(db, "Casual Leave", Decimal("14"))
        await seed_leave_type(db, "Sick Leave", Decimal("3"))
        await seed_leave_type(db, "Retired Leave", Decimal("9"), is_active=False)
        await seed_balance(db, employee.id, casual.id, year=2027, entitled=Decimal("20"))

        result = await EntitlementService.reset_year_balances(db, 2027)

        assert result.employees_processed == 1
        assert result.created == 1
        assert result.skipped == 1
        assert (await _refreshed(db, employee.id, casual.id, 2027)).entitled_days == Decimal("20")

        count = (
            await db.execute(
                select(func.count()).select_from(LeaveBalance).where(LeaveBalance.year == 2027)
            )
        ).scalar_one()
        assert count == 2

    async def test_rerun_creates_nothing(self, db: AsyncSession, employee):
        await seed_leave_type(db, "Casual Leave", Decimal("14"))

        await EntitlementService.reset_year_balances(db, 2027)
        again = await EntitlementService.reset_year_balances(db, 2027)

        assert again.created == 0
        assert again.skipped == 1
