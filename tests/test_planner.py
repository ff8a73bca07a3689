"""Tests for the cascade consumption planner.

The pure ``plan_consumption`` cases run without a database; the
``build_plan`` cases read real balances through the ledger.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.leave.models import LeaveBalance
from leavedesk.leave.planner import (
    Bucket,
    CascadePolicy,
    breakdown_total,
    build_plan,
    plan_consumption,
)
from tests.conftest import seed_balance

POLICY = CascadePolicy(
    priority=["Casual Leave", "Sick Leave", "Flex Leave"],
    standalone=["Paid Leave"],
    unpaid_type_name="Unpaid Leave",
)

UNPAID_ID = uuid.uuid4()


def _bucket(name: str, available: str) -> Bucket:
    return Bucket(leave_type_id=uuid.uuid4(), name=name, available=Decimal(available))


def _buckets(**available: str) -> dict[str, Bucket]:
    names = {
        "casual": "Casual Leave",
        "sick": "Sick Leave",
        "flex": "Flex Leave",
        "paid": "Paid Leave",
        "unpaid": "Unpaid Leave",
    }
    return {names[k]: _bucket(names[k], v) for k, v in available.items()}


def _shape(plan) -> list[tuple[str, Decimal]]:
    return [(e.leave_type_name, e.days) for e in plan.breakdown]


# ═════════════════════════════════════════════════════════════════════
# CascadePolicy
# ═════════════════════════════════════════════════════════════════════


class TestCascadePolicy:
    def test_candidate_order_puts_primary_first(self):
        assert POLICY.candidate_order("Sick Leave") == [
            "Sick Leave", "Casual Leave", "Flex Leave",
        ]

    def test_candidate_order_skips_standalone_and_unpaid(self):
        policy = CascadePolicy(
            priority=["Casual Leave", "Paid Leave", "Unpaid Leave", "Sick Leave"],
            standalone=["Paid Leave"],
        )
        assert policy.candidate_order("Casual Leave") == ["Casual Leave", "Sick Leave"]

    def test_unlisted_primary_still_cascades(self):
        order = POLICY.candidate_order("Bereavement Leave")
        assert order[0] == "Bereavement Leave"
        assert order[1:] == ["Casual Leave", "Sick Leave", "Flex Leave"]

    def test_from_settings_uses_configured_names(self):
        policy = CascadePolicy.from_settings()
        assert policy.priority == ["Casual Leave", "Sick Leave", "Flex Leave"]
        assert policy.is_standalone("Paid Leave")
        assert policy.is_unpaid("Unpaid Leave")


# ═════════════════════════════════════════════════════════════════════
# plan_consumption (pure)
# ═════════════════════════════════════════════════════════════════════


class TestPlanConsumption:
    def test_cascade_spills_into_unpaid(self):
        """Casual 2, Sick 1, Flex 0; five days ⇒ Casual 2, Sick 1, Unpaid 2."""
        buckets = _buckets(casual="2", sick="1", flex="0")
        plan = plan_consumption(
            buckets["Casual Leave"], Decimal("5"), buckets, POLICY,
            unpaid_type_id=UNPAID_ID,
        )

        assert _shape(plan) == [
            ("Casual Leave", Decimal("2")),
            ("Sick Leave", Decimal("1")),
            ("Unpaid Leave", Decimal("2")),
        ]
        assert plan.unpaid_days == Decimal("2")
        assert plan.has_overflow is True
        assert plan.total_entitled == Decimal("3")
        assert plan.total_requested == Decimal("5")
        assert plan.breakdown[0].exhausted is True
        assert plan.breakdown[-1].is_unpaid is True
        assert plan.breakdown[-1].leave_type_id == UNPAID_ID
        assert breakdown_total(plan.breakdown) == plan.total_requested

    def test_primary_covers_everything(self):
        buckets = _buckets(casual="10", sick="3")
        plan = plan_consumption(buckets["Casual Leave"], Decimal("3"), buckets, POLICY)

        assert _shape(plan) == [("Casual Leave", Decimal("3"))]
        assert plan.has_overflow is False
        assert plan.unpaid_days == Decimal("0")
        assert plan.breakdown[0].exhausted is False

    def test_exact_fit_marks_bucket_exhausted(self):
        buckets = _buckets(casual="3")
        plan = plan_consumption(buckets["Casual Leave"], Decimal("3"), buckets, POLICY)

        assert plan.breakdown[0].exhausted is True
        assert plan.has_overflow is False

    def test_two_paid_buckets_is_overflow(self):
        buckets = _buckets(casual="1", sick="3")
        plan = plan_consumption(buckets["Casual Leave"], Decimal("2"), buckets, POLICY)

        assert _shape(plan) == [
            ("Casual Leave", Decimal("1")),
            ("Sick Leave", Decimal("1")),
        ]
        assert plan.has_overflow is True
        assert plan.unpaid_days == Decimal("0")

    def test_empty_primary_is_listed_with_zero(self):
        buckets = _buckets(casual="0", sick="5")
        plan = plan_consumption(buckets["Casual Leave"], Decimal("2"), buckets, POLICY)

        assert _shape(plan) == [
            ("Casual Leave", Decimal("0")),
            ("Sick Leave", Decimal("2")),
        ]
        assert plan.breakdown[0].exhausted is True

    def test_negative_availability_counts_as_zero(self):
        buckets = _buckets(casual="-2", sick="1")
        plan = plan_consumption(buckets["Casual Leave"], Decimal("2"), buckets, POLICY)

        assert _shape(plan) == [
            ("Casual Leave", Decimal("0")),
            ("Sick Leave", Decimal("1")),
            ("Unpaid Leave", Decimal("1")),
        ]
        assert plan.total_entitled == Decimal("1")

    def test_unpaid_entry_without_unpaid_type(self):
        buckets = _buckets(casual="0")
        plan = plan_consumption(buckets["Casual Leave"], Decimal("1"), buckets, POLICY)

        assert plan.breakdown[-1].is_unpaid is True
        assert plan.breakdown[-1].leave_type_id is None

    def test_missing_fallback_buckets_are_skipped(self):
        buckets = _buckets(casual="1")
        plan = plan_consumption(buckets["Casual Leave"], Decimal("3"), buckets, POLICY)

        assert _shape(plan) == [
            ("Casual Leave", Decimal("1")),
            ("Unpaid Leave", Decimal("2")),
        ]

    def test_fractional_days(self):
        buckets = _buckets(casual="1.5", sick="0.5")
        plan = plan_consumption(buckets["Casual Leave"], Decimal("3"), buckets, POLICY)

        assert plan.unpaid_days == Decimal("1.00")
        assert breakdown_total(plan.breakdown) == Decimal("3.00")


class TestStandalonePlan:
    def test_shortage_fails_closed(self):
        """Paid Leave never borrows and never spills into unpaid."""
        buckets = _buckets(paid="1", casual="10", sick="3")
        plan = plan_consumption(buckets["Paid Leave"], Decimal("3"), buckets, POLICY)

        assert plan.insufficient_balance is True
        assert plan.shortage == Decimal("2")
        assert plan.breakdown == []
        assert plan.unpaid_days == Decimal("0")
        assert plan.has_overflow is False
        assert "Insufficient Paid Leave balance" in plan.error

    def test_sufficient_standalone_is_single_entry(self):
        buckets = _buckets(paid="5", casual="10")
        plan = plan_consumption(buckets["Paid Leave"], Decimal("2"), buckets, POLICY)

        assert plan.insufficient_balance is False
        assert _shape(plan) == [("Paid Leave", Decimal("2"))]
        assert plan.has_overflow is False

    def test_negative_standalone_balance(self):
        buckets = _buckets(paid="-1")
        plan = plan_consumption(buckets["Paid Leave"], Decimal("1"), buckets, POLICY)

        assert plan.insufficient_balance is True
        assert plan.shortage == Decimal("1")


class TestUnpaidPrimary:
    def test_whole_request_is_unpaid(self):
        buckets = _buckets(unpaid="0", casual="10")
        plan = plan_consumption(buckets["Unpaid Leave"], Decimal("4"), buckets, POLICY)

        assert _shape(plan) == [("Unpaid Leave", Decimal("4"))]
        assert plan.breakdown[0].is_unpaid is True
        assert plan.breakdown[0].leave_type_id == buckets["Unpaid Leave"].leave_type_id
        assert plan.unpaid_days == Decimal("4")
        assert plan.has_overflow is True
        assert plan.paid_entries == []


# ═════════════════════════════════════════════════════════════════════
# build_plan (DB-backed, read-only)
# ═════════════════════════════════════════════════════════════════════


class TestBuildPlan:
    async def test_reads_existing_balances(self, db: AsyncSession, employee, cascade_types):
        casual, sick = cascade_types["casual"], cascade_types["sick"]
        await seed_balance(db, employee.id, casual.id, entitled=Decimal("4"), used=Decimal("2"))
        await seed_balance(db, employee.id, sick.id, entitled=Decimal("3"), pending=Decimal("2"))

        plan = await build_plan(db, employee.id, casual, Decimal("5"), 2026, POLICY)

        # Flex has no row yet and reports its default of 3
        assert _shape(plan) == [
            ("Casual Leave", Decimal("2")),
            ("Sick Leave", Decimal("1")),
            ("Flex Leave", Decimal("2")),
        ]
        assert plan.unpaid_days == Decimal("0")

    async def test_unpaid_entry_uses_unpaid_type(self, db: AsyncSession, employee, cascade_types):
        casual = cascade_types["casual"]
        for key in ("casual", "sick", "flex"):
            await seed_balance(db, employee.id, cascade_types[key].id, entitled=Decimal("0"))

        plan = await build_plan(db, employee.id, casual, Decimal("2"), 2026, POLICY)

        assert plan.breakdown[-1].is_unpaid is True
        assert plan.breakdown[-1].leave_type_id == cascade_types["unpaid"].id

    async def test_creates_no_rows(self, db: AsyncSession, employee, cascade_types):
        await build_plan(
            db, employee.id, cascade_types["casual"], Decimal("3"), 2026, POLICY,
        )

        count = (await db.execute(select(func.count()).select_from(LeaveBalance))).scalar_one()
        assert count == 0
