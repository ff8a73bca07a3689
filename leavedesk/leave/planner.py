"""Cascade consumption planner.

Decides which leave-type buckets pay for a requested number of days:

  1. A *standalone* primary pays alone or the plan fails with a shortage.
     It never borrows from other buckets and never spills into unpaid.
  2. Any other primary is drawn first, then the configured priority list
     (minus the primary, standalone types and the unpaid type).
  3. Whatever is still unmet becomes unpaid days.

The resulting breakdown is frozen on the request at creation time and
replayed verbatim by approve / reject / cancel.
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.common.constants import ZERO_DAYS
from leavedesk.config import settings
from leavedesk.leave import ledger
from leavedesk.leave.models import LeaveType
from leavedesk.leave.schemas import BreakdownEntry, ConsumptionPlan


class CascadePolicy(BaseModel):
    """Which types cascade, in what order, and which never do."""

    model_config = ConfigDict(frozen=True)

    priority: list[str] = Field(default_factory=list)
    standalone: list[str] = Field(default_factory=list)
    unpaid_type_name: str = "Unpaid Leave"

    @classmethod
    def from_settings(cls) -> "CascadePolicy":
        return cls(
            priority=settings.cascade_priority_list,
            standalone=settings.standalone_types_list,
            unpaid_type_name=settings.UNPAID_LEAVE_TYPE,
        )

    def is_standalone(self, name: str) -> bool:
        return name in self.standalone

    def is_unpaid(self, name: str) -> bool:
        return name == self.unpaid_type_name

    def candidate_order(self, primary_name: str) -> list[str]:
        """Primary first, then every eligible fallback in priority order."""
        order = [primary_name]
        for name in self.priority:
            if name in order or self.is_standalone(name) or self.is_unpaid(name):
                continue
            order.append(name)
        return order


class Bucket(BaseModel):
    """Availability snapshot for one leave type."""

    model_config = ConfigDict(frozen=True)

    leave_type_id: uuid.UUID
    name: str
    available: Decimal


def _unpaid_entry(
    policy: CascadePolicy,
    unpaid_type_id: Optional[uuid.UUID],
    days: Decimal,
) -> BreakdownEntry:
    return BreakdownEntry(
        leave_type_id=unpaid_type_id,
        leave_type_name=policy.unpaid_type_name,
        days=days,
        is_unpaid=True,
    )


def plan_consumption(
    primary: Bucket,
    requested: Decimal,
    buckets: Mapping[str, Bucket],
    policy: CascadePolicy,
    *,
    unpaid_type_id: Optional[uuid.UUID] = None,
) -> ConsumptionPlan:
    """Pure planning step; *buckets* maps leave-type name to availability.

    Negative availability (entitlement cut below commitments) counts as 0.
    """
    requested = ledger.as_days(requested)
    plan = ConsumptionPlan(
        leave_type_id=primary.leave_type_id,
        leave_type_name=primary.name,
        total_requested=requested,
    )

    # ── Standalone: fail closed ─────────────────────────────────────
    if policy.is_standalone(primary.name):
        available = max(ZERO_DAYS, primary.available)
        plan.total_entitled = available
        if available < requested:
            plan.insufficient_balance = True
            plan.shortage = requested - available
            plan.error = (
                f"Insufficient {primary.name} balance. "
                f"Available: {available}, Requested: {requested}."
            )
            return plan
        plan.breakdown = [
            BreakdownEntry(
                leave_type_id=primary.leave_type_id,
                leave_type_name=primary.name,
                days=requested,
                available=available,
                exhausted=available == requested,
            )
        ]
        return plan

    # ── Unpaid chosen outright ──────────────────────────────────────
    if policy.is_unpaid(primary.name):
        plan.breakdown = [_unpaid_entry(policy, primary.leave_type_id, requested)]
        plan.unpaid_days = requested
        plan.has_overflow = requested > 0
        return plan

    # ── Cascade ─────────────────────────────────────────────────────
    remaining = requested
    total_entitled = ZERO_DAYS
    breakdown: list[BreakdownEntry] = []

    for name in policy.candidate_order(primary.name):
        bucket = primary if name == primary.name else buckets.get(name)
        if bucket is None:
            continue
        available = max(ZERO_DAYS, bucket.available)
        total_entitled += available
        take = min(remaining, available)
        # The primary is always listed so the breakdown explains the cascade
        if take > 0 or bucket is primary:
            breakdown.append(
                BreakdownEntry(
                    leave_type_id=bucket.leave_type_id,
                    leave_type_name=bucket.name,
                    days=take,
                    available=available,
                    exhausted=take >= available,
                )
            )
        remaining -= take

    unpaid = ledger.as_days(remaining)
    if unpaid > 0:
        breakdown.append(_unpaid_entry(policy, unpaid_type_id, unpaid))

    paid_touched = [e for e in breakdown if not e.is_unpaid and e.days > 0]
    plan.breakdown = breakdown
    plan.unpaid_days = unpaid
    plan.total_entitled = total_entitled
    plan.has_overflow = len(paid_touched) > 1 or unpaid > 0
    return plan


def breakdown_total(breakdown: Sequence[BreakdownEntry]) -> Decimal:
    return ledger.as_days(sum((e.days for e in breakdown), ZERO_DAYS))


# ── DB-backed planning ──────────────────────────────────────────────

async def load_types_by_name(
    db: AsyncSession,
    names: Sequence[str],
) -> dict[str, LeaveType]:
    if not names:
        return {}
    result = await db.execute(
        select(LeaveType).where(
            LeaveType.name.in_(list(names)),
            LeaveType.is_active.is_(True),
        )
    )
    return {lt.name: lt for lt in result.scalars().all()}


async def load_type_by_name(db: AsyncSession, name: str) -> Optional[LeaveType]:
    """Single lookup by name, active or not."""
    result = await db.execute(select(LeaveType).where(LeaveType.name == name))
    return result.scalars().first()


async def build_plan(
    db: AsyncSession,
    employee_id: uuid.UUID,
    primary: LeaveType,
    requested: Decimal,
    year: int,
    policy: CascadePolicy,
) -> ConsumptionPlan:
    """Snapshot the employee's balances for *year* and plan against them.

    Read-only: no balance rows are created or locked.
    """
    names = policy.candidate_order(primary.name)
    types = await load_types_by_name(db, [*names, policy.unpaid_type_name])
    types[primary.name] = primary

    buckets: dict[str, Bucket] = {}
    for name in names:
        lt = types.get(name)
        if lt is None:
            continue
        buckets[name] = Bucket(
            leave_type_id=lt.id,
            name=lt.name,
            available=await ledger.peek_available(db, employee_id, lt, year),
        )

    unpaid_type = types.get(policy.unpaid_type_name)
    return plan_consumption(
        buckets[primary.name],
        requested,
        buckets,
        policy,
        unpaid_type_id=unpaid_type.id if unpaid_type else None,
    )
