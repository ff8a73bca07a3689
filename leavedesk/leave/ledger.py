"""Balance ledger: per (employee, leave type, year) entitled / used / pending.

Rows are created lazily on first access, seeded from the leave type's
``default_days``. Racing creators are resolved by the unique key
``uq_leave_balance``: the insert is ``ON CONFLICT DO NOTHING`` and every
caller re-reads the surviving row with ``FOR UPDATE``.

The mutation primitives below only adjust numbers on a balance that the
caller already holds inside a unit of work. They saturate at zero and do
not check sufficiency; that is the caller's job.
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.common.constants import DAYS_QUANTUM, ZERO_DAYS
from leavedesk.leave.models import LeaveBalance, LeaveType

logger = logging.getLogger(__name__)


def as_days(value: Decimal | int | str) -> Decimal:
    """Normalise any day quantity to two-decimal fixed point."""
    return Decimal(value).quantize(DAYS_QUANTUM)


def _insert_for(db: AsyncSession):
    if db.get_bind().dialect.name == "postgresql":
        return postgresql.insert
    return sqlite.insert


# ── Reads ───────────────────────────────────────────────────────────

async def find_balance(
    db: AsyncSession,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    year: int,
    *,
    for_update: bool = False,
) -> LeaveBalance | None:
    query = select(LeaveBalance).where(
        LeaveBalance.employee_id == employee_id,
        LeaveBalance.leave_type_id == leave_type_id,
        LeaveBalance.year == year,
    )
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await db.execute(query)
    return result.scalars().first()


async def get_or_create_balance(
    db: AsyncSession,
    employee_id: uuid.UUID,
    leave_type: LeaveType,
    year: int,
) -> LeaveBalance:
    """Return the locked balance row, inserting it if missing."""
    balance = await find_balance(
        db, employee_id, leave_type.id, year, for_update=True,
    )
    if balance is not None:
        return balance

    insert = _insert_for(db)
    stmt = (
        insert(LeaveBalance)
        .values(
            id=uuid.uuid4(),
            employee_id=employee_id,
            leave_type_id=leave_type.id,
            year=year,
            entitled_days=as_days(leave_type.default_days or ZERO_DAYS),
            used_days=ZERO_DAYS,
            pending_days=ZERO_DAYS,
        )
        .on_conflict_do_nothing(
            index_elements=["employee_id", "leave_type_id", "year"],
        )
    )
    result = await db.execute(stmt)

    balance = await find_balance(
        db, employee_id, leave_type.id, year, for_update=True,
    )
    if balance is None:  # pragma: no cover - insert or conflict always leaves a row
        raise RuntimeError(
            f"Balance row for {employee_id}/{leave_type.id}/{year} vanished"
        )
    if result.rowcount:
        logger.info(
            "Created %s balance for employee %s in %s (entitled=%s)",
            leave_type.name, employee_id, year, balance.entitled_days,
        )
    return balance


async def get_or_create_balances(
    db: AsyncSession,
    employee_id: uuid.UUID,
    leave_types: Iterable[LeaveType],
    year: int,
) -> dict[uuid.UUID, LeaveBalance]:
    """Lock several buckets for one employee, in a stable order."""
    unique = {lt.id: lt for lt in leave_types}
    balances: dict[uuid.UUID, LeaveBalance] = {}
    for type_id in sorted(unique, key=str):
        balances[type_id] = await get_or_create_balance(
            db, employee_id, unique[type_id], year,
        )
    return balances


async def peek_available(
    db: AsyncSession,
    employee_id: uuid.UUID,
    leave_type: LeaveType,
    year: int,
) -> Decimal:
    """Availability without creating or locking anything.

    A missing row reports what it would be seeded with.
    """
    balance = await find_balance(db, employee_id, leave_type.id, year)
    if balance is None:
        return as_days(leave_type.default_days or ZERO_DAYS)
    return available_days(balance)


def available_days(balance: LeaveBalance) -> Decimal:
    """``entitled - used - pending``; negative when entitlement was cut."""
    return as_days(balance.entitled_days - balance.used_days - balance.pending_days)


# ── Mutations ───────────────────────────────────────────────────────

def credit_pending(balance: LeaveBalance, days: Decimal) -> None:
    """Reserve *days* for a request awaiting a decision."""
    balance.pending_days = as_days(balance.pending_days + days)


def debit_pending(balance: LeaveBalance, days: Decimal) -> None:
    balance.pending_days = max(ZERO_DAYS, as_days(balance.pending_days - days))


def release_pending(balance: LeaveBalance, days: Decimal) -> None:
    """Give back a reservation (reject / cancel)."""
    debit_pending(balance, days)


def move_pending_to_used(balance: LeaveBalance, days: Decimal) -> None:
    """Approve: the reservation becomes consumption."""
    debit_pending(balance, days)
    balance.used_days = as_days(balance.used_days + days)


def credit_used(balance: LeaveBalance, days: Decimal) -> None:
    """Consume directly, skipping the pending stage (historic import)."""
    balance.used_days = as_days(balance.used_days + days)


def set_entitled(balance: LeaveBalance, days: Decimal) -> None:
    balance.entitled_days = max(ZERO_DAYS, as_days(days))
