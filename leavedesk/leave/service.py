"""Leave service layer: leave types, balances and the request lifecycle.

Business logic:
  - Leave type administration (create, soft-deactivate)
  - Per-year balances, lazily materialised per active leave type
  - Consumption preview via the cascade planner
  - Request lifecycle: create (pending) → approve / reject / cancel
  - Historic import of backdated, already-approved leave

Each lifecycle call is one unit of work: request and balance rows are
locked, the frozen breakdown is replayed against the ledger, and the
whole thing commits or rolls back together. Notifications go out only
after the commit.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional, Sequence

import sqlalchemy as sa
from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from leavedesk.common.constants import ZERO_DAYS, LeaveEvent, LeaveStatus
from leavedesk.common.exceptions import (
    ConflictError,
    ForbiddenException,
    InsufficientBalanceException,
    InvalidRangeException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
)
from leavedesk.common.pagination import PaginatedResponse, PaginationParams, paginate
from leavedesk.database import transaction
from leavedesk.employees.models import Employee
from leavedesk.employees.service import EmployeeDirectory
from leavedesk.leave import calendar, ledger
from leavedesk.leave.models import LeaveBalance, LeaveRequest, LeaveType
from leavedesk.leave.planner import (
    CascadePolicy,
    breakdown_total,
    build_plan,
    load_type_by_name,
)
from leavedesk.leave.schemas import (
    BalanceCheckOut,
    BreakdownEntry,
    ConsumptionPreviewOut,
    EmployeeBrief,
    HistoricImportCreate,
    LeaveBalanceOut,
    LeaveRequestCreate,
    LeaveRequestOut,
    LeaveTypeBrief,
    LeaveTypeCreate,
    LeaveTypeOut,
)
from leavedesk.notifications.service import (
    BreakdownLine,
    LeaveNotification,
    get_dispatcher,
)

logger = logging.getLogger(__name__)


def _columns(obj: Any) -> dict[str, Any]:
    """Column values only; never touches (lazy) relationships."""
    return {attr.key: getattr(obj, attr.key) for attr in sa.inspect(obj).mapper.column_attrs}


# ═════════════════════════════════════════════════════════════════════
# LeaveService
# ═════════════════════════════════════════════════════════════════════


class LeaveService:
    """Async leave operations: types, balances, requests, approvals."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def _span_days(start_date: date, end_date: date) -> Decimal:
        """Working days in the span, or InvalidRangeException."""
        if end_date < start_date:
            raise InvalidRangeException("End date must be on or after the start date.")
        days = calendar.working_days(start_date, end_date)
        if days == 0:
            raise InvalidRangeException(
                "No working days found in the selected range "
                "(all days are weekends)."
            )
        return ledger.as_days(days)

    @staticmethod
    async def _get_leave_type(
        db: AsyncSession,
        leave_type_id: uuid.UUID,
        *,
        active_only: bool = True,
    ) -> LeaveType:
        lt = await db.get(LeaveType, leave_type_id)
        if lt is None or (active_only and not lt.is_active):
            raise NotFoundException("LeaveType", str(leave_type_id))
        return lt

    @staticmethod
    async def _get_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        *,
        for_update: bool = False,
    ) -> LeaveRequest:
        query = (
            select(LeaveRequest)
            .where(LeaveRequest.id == request_id)
            .options(
                selectinload(LeaveRequest.employee),
                selectinload(LeaveRequest.leave_type),
            )
        )
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await db.execute(query)
        req = result.scalars().first()
        if req is None:
            raise NotFoundException("LeaveRequest", str(request_id))
        return req

    @staticmethod
    def _require_transition(req: LeaveRequest, target: LeaveStatus) -> None:
        if not req.status.can_transition_to(target):
            raise InvalidTransitionException(req.status.value, target.value)

    @staticmethod
    def _breakdown_of(req: LeaveRequest) -> list[BreakdownEntry]:
        return [BreakdownEntry.model_validate(e) for e in (req.balance_breakdown or [])]

    @staticmethod
    def _paid_days_by_type(entries: Sequence[BreakdownEntry]) -> dict[uuid.UUID, Decimal]:
        """Sum paid days per leave type, skipping unpaid and zero entries."""
        totals: dict[uuid.UUID, Decimal] = {}
        for entry in entries:
            if entry.is_unpaid or entry.days <= 0 or entry.leave_type_id is None:
                continue
            totals[entry.leave_type_id] = totals.get(entry.leave_type_id, ZERO_DAYS) + entry.days
        return totals

    @staticmethod
    async def _lock_buckets(
        db: AsyncSession,
        employee_id: uuid.UUID,
        entries: Sequence[BreakdownEntry],
        year: int,
    ) -> list[tuple[LeaveBalance, Decimal]]:
        """Load the leave types a breakdown touches and lock their balances."""
        paid = LeaveService._paid_days_by_type(entries)
        types = [
            await LeaveService._get_leave_type(db, type_id, active_only=False)
            for type_id in paid
        ]
        balances = await ledger.get_or_create_balances(db, employee_id, types, year)
        return [(balances[type_id], days) for type_id, days in paid.items()]

    @staticmethod
    def _build_employee_brief(emp: Employee) -> EmployeeBrief:
        return EmployeeBrief.model_validate(_columns(emp))

    @staticmethod
    def _build_leave_type_brief(lt: LeaveType) -> LeaveTypeBrief:
        return LeaveTypeBrief(id=lt.id, name=lt.name)

    @staticmethod
    def _build_request_response(
        req: LeaveRequest,
        *,
        employee: Optional[Employee] = None,
        leave_type: Optional[LeaveType] = None,
    ) -> LeaveRequestOut:
        """Build LeaveRequestOut from ORM, optionally enriching relationships."""
        out = LeaveRequestOut.model_validate(_columns(req))
        if employee is not None:
            out.employee = LeaveService._build_employee_brief(employee)
        if leave_type is not None:
            out.leave_type = LeaveService._build_leave_type_brief(leave_type)
        return out

    @staticmethod
    def _build_balance_response(balance: LeaveBalance, leave_type: LeaveType) -> LeaveBalanceOut:
        out = LeaveBalanceOut.model_validate(
            {**_columns(balance), "available_days": ledger.available_days(balance)}
        )
        out.leave_type = LeaveService._build_leave_type_brief(leave_type)
        return out

    @staticmethod
    async def _notify(
        event: LeaveEvent,
        req: LeaveRequest,
        employee: Employee,
        leave_type: LeaveType,
        *,
        actor: Optional[Employee] = None,
    ) -> None:
        """Fire-and-forget; runs after commit and never raises."""
        try:
            notification = LeaveNotification(
                event=event,
                request_id=req.id,
                status=req.status,
                employee_id=employee.id,
                employee_name=employee.full_name,
                employee_email=employee.email,
                slack_user_id=employee.slack_user_id,
                leave_type_name=leave_type.name,
                start_date=req.start_date,
                end_date=req.end_date,
                total_days=req.total_days,
                unpaid_days=req.unpaid_days,
                breakdown=[
                    BreakdownLine(
                        leave_type_name=e.leave_type_name,
                        days=e.days,
                        is_unpaid=e.is_unpaid,
                    )
                    for e in LeaveService._breakdown_of(req)
                ],
                reason=req.reason,
                actor_name=actor.full_name if actor else None,
                remarks=req.admin_remarks,
            )
            await get_dispatcher().dispatch(notification)
        except Exception:
            logger.exception(
                "Failed to dispatch %s notification for leave request %s",
                event.value, req.id,
            )

    # ─────────────────────────────────────────────────────────────────
    # Leave Types
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_leave_types(
        db: AsyncSession,
        *,
        is_active: Optional[bool] = True,
    ) -> list[LeaveTypeOut]:
        """List leave types; ``is_active=None`` returns all."""
        query = select(LeaveType).order_by(LeaveType.name)
        if is_active is not None:
            query = query.where(LeaveType.is_active == is_active)

        result = await db.execute(query)
        return [LeaveTypeOut.model_validate(lt) for lt in result.scalars().all()]

    @staticmethod
    async def create_leave_type(db: AsyncSession, data: LeaveTypeCreate) -> LeaveTypeOut:
        async with transaction(db):
            existing = await db.execute(
                select(LeaveType.id).where(sa.func.lower(LeaveType.name) == data.name.lower())
            )
            if existing.scalar() is not None:
                raise ConflictError("name", data.name)

            leave_type = LeaveType(
                name=data.name,
                description=data.description,
                default_days=ledger.as_days(data.default_days),
            )
            db.add(leave_type)

        logger.info("Created leave type %r (default %s days)", leave_type.name, leave_type.default_days)
        return LeaveTypeOut.model_validate(leave_type)

    @staticmethod
    async def deactivate_leave_type(db: AsyncSession, leave_type_id: uuid.UUID) -> LeaveTypeOut:
        """Soft delete; balances and requests keep referencing the row."""
        async with transaction(db):
            leave_type = await LeaveService._get_leave_type(db, leave_type_id, active_only=False)
            leave_type.is_active = False

        logger.info("Deactivated leave type %r", leave_type.name)
        return LeaveTypeOut.model_validate(leave_type)

    # ─────────────────────────────────────────────────────────────────
    # Balance
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_employee_balances(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
    ) -> list[LeaveBalanceOut]:
        """Balances for every active leave type in *year*, creating any
        missing rows from the type defaults."""
        async with transaction(db):
            await EmployeeDirectory.get_employee(db, employee_id, active_only=False)
            types = (
                await db.execute(
                    select(LeaveType)
                    .where(LeaveType.is_active.is_(True))
                    .order_by(LeaveType.name)
                )
            ).scalars().all()
            balances = await ledger.get_or_create_balances(db, employee_id, types, year)

        return [
            LeaveService._build_balance_response(balances[lt.id], lt)
            for lt in types
        ]

    @staticmethod
    async def can_apply(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        days: Decimal,
        year: int,
    ) -> BalanceCheckOut:
        leave_type = await LeaveService._get_leave_type(db, leave_type_id)
        available = await ledger.peek_available(db, employee_id, leave_type, year)
        requested = ledger.as_days(days)
        return BalanceCheckOut(
            can_apply=available >= requested,
            available=available,
            requested=requested,
            shortage=max(ZERO_DAYS, requested - available),
        )

    # ─────────────────────────────────────────────────────────────────
    # Preview
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def preview_consumption(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        start_date: date,
        end_date: date,
        *,
        policy: Optional[CascadePolicy] = None,
    ) -> ConsumptionPreviewOut:
        """Plan the span without touching the ledger.

        A standalone-type shortage is reported in the plan
        (``insufficient_balance``), not raised.
        """
        policy = policy or CascadePolicy.from_settings()
        total_days = LeaveService._span_days(start_date, end_date)
        await EmployeeDirectory.get_employee(db, employee_id)
        leave_type = await LeaveService._get_leave_type(db, leave_type_id)
        year = start_date.year

        plan = await build_plan(db, employee_id, leave_type, total_days, year, policy)
        return ConsumptionPreviewOut(
            **plan.model_dump(),
            employee_id=employee_id,
            start_date=start_date,
            end_date=end_date,
            year=year,
        )

    # ─────────────────────────────────────────────────────────────────
    # Create
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def _validate_breakdown(
        entries: Sequence[BreakdownEntry],
        total_days: Decimal,
        leave_type: LeaveType,
        policy: CascadePolicy,
    ) -> None:
        if not entries:
            raise ValidationException({"breakdown": ["Breakdown must not be empty."]})

        summed = breakdown_total(entries)
        if summed != total_days:
            raise ValidationException(
                {"breakdown": [
                    f"Breakdown totals {summed} day(s) but the span has "
                    f"{total_days} working day(s)."
                ]}
            )

        if policy.is_standalone(leave_type.name):
            foreign = [
                e for e in entries
                if e.days > 0 and (e.is_unpaid or e.leave_type_id != leave_type.id)
            ]
            if foreign:
                raise ValidationException(
                    {"breakdown": [f"{leave_type.name} cannot be combined with other leave types."]}
                )

    @staticmethod
    async def _lock_confirmed_breakdown(
        db: AsyncSession,
        employee_id: uuid.UUID,
        entries: Sequence[BreakdownEntry],
        leave_type: LeaveType,
        year: int,
        policy: CascadePolicy,
        *,
        allow_overdraw: bool = False,
    ) -> list[tuple[LeaveBalance, Decimal]]:
        """Check a caller-built breakdown against the type rows, then lock
        its buckets and check each one can pay its share.

        Paid entries must name a type from the primary's cascade (never a
        foreign standalone type, never the unpaid type) under its stored
        name. Unpaid entries point at the unpaid type or at nothing.
        """
        allowed = set(policy.candidate_order(leave_type.name))
        unpaid_type = await load_type_by_name(db, policy.unpaid_type_name)
        types: dict[uuid.UUID, LeaveType] = {}
        errors: list[str] = []

        for entry in entries:
            if entry.is_unpaid:
                if entry.leave_type_id is not None and (
                    unpaid_type is None or entry.leave_type_id != unpaid_type.id
                ):
                    errors.append(
                        f"Unpaid days must be booked as {policy.unpaid_type_name}."
                    )
                continue

            lt = await LeaveService._get_leave_type(db, entry.leave_type_id, active_only=False)
            types[lt.id] = lt
            if entry.leave_type_name != lt.name:
                errors.append(
                    f"Entry '{entry.leave_type_name}' does not match leave type {lt.name}."
                )
            elif policy.is_unpaid(lt.name):
                errors.append(f"{lt.name} days must be marked as unpaid.")
            elif lt.id != leave_type.id and (
                lt.name not in allowed or policy.is_standalone(lt.name) or not lt.is_active
            ):
                errors.append(f"{lt.name} cannot cover a {leave_type.name} request.")

        if errors:
            raise ValidationException({"breakdown": errors})

        buckets = await LeaveService._lock_buckets(db, employee_id, entries, year)
        if not allow_overdraw:
            for balance, days in buckets:
                available = ledger.available_days(balance)
                if days > available:
                    raise InsufficientBalanceException(
                        types[balance.leave_type_id].name, available, days,
                    )
        return buckets

    @staticmethod
    async def _single_type_breakdown(
        db: AsyncSession,
        employee_id: uuid.UUID,
        leave_type: LeaveType,
        total_days: Decimal,
        year: int,
        policy: CascadePolicy,
    ) -> list[BreakdownEntry]:
        """One-bucket plan; the bucket must cover the whole span."""
        if policy.is_unpaid(leave_type.name):
            return [
                BreakdownEntry(
                    leave_type_id=leave_type.id,
                    leave_type_name=leave_type.name,
                    days=total_days,
                    is_unpaid=True,
                )
            ]

        balance = await ledger.get_or_create_balance(db, employee_id, leave_type, year)
        available = ledger.available_days(balance)
        if available < total_days:
            raise InsufficientBalanceException(leave_type.name, available, total_days)
        return [
            BreakdownEntry(
                leave_type_id=leave_type.id,
                leave_type_name=leave_type.name,
                days=total_days,
            )
        ]

    @staticmethod
    async def create_request(
        db: AsyncSession,
        employee_id: uuid.UUID,
        data: LeaveRequestCreate,
        *,
        requested_by: Optional[uuid.UUID] = None,
        today: Optional[date] = None,
        policy: Optional[CascadePolicy] = None,
    ) -> LeaveRequestOut:
        """Create a pending request and reserve its paid days.

        Without ``data.breakdown`` the primary type must cover the span
        (InsufficientBalanceException otherwise). With a breakdown, as
        returned by the preview, every bucket is re-checked under lock
        before the breakdown is frozen.

        An employee's own request may not start before *today*; requests
        filed on someone's behalf (``requested_by``) may.
        """
        policy = policy or CascadePolicy.from_settings()
        total_days = LeaveService._span_days(data.start_date, data.end_date)
        if requested_by is None and data.start_date < (today or calendar.today()):
            raise InvalidRangeException("Cannot apply for leave in the past.")
        year = data.start_date.year

        async with transaction(db):
            employee = await EmployeeDirectory.get_employee(db, employee_id)
            leave_type = await LeaveService._get_leave_type(db, data.leave_type_id)

            if data.breakdown is None:
                entries = await LeaveService._single_type_breakdown(
                    db, employee_id, leave_type, total_days, year, policy,
                )
                buckets = await LeaveService._lock_buckets(db, employee_id, entries, year)
            else:
                entries = list(data.breakdown)
                LeaveService._validate_breakdown(entries, total_days, leave_type, policy)
                buckets = await LeaveService._lock_confirmed_breakdown(
                    db, employee_id, entries, leave_type, year, policy,
                )

            for balance, days in buckets:
                ledger.credit_pending(balance, days)

            unpaid_days = breakdown_total([e for e in entries if e.is_unpaid])
            leave_request = LeaveRequest(
                employee_id=employee_id,
                leave_type_id=leave_type.id,
                start_date=data.start_date,
                end_date=data.end_date,
                total_days=total_days,
                reason=data.reason,
                status=LeaveStatus.pending,
                requested_by=requested_by or employee_id,
                is_multi_type=len([e for e in entries if e.days > 0]) > 1,
                balance_breakdown=[e.to_json() for e in entries],
                unpaid_days=unpaid_days,
            )
            db.add(leave_request)
            await db.flush()

        logger.info(
            "Leave request %s created for %s: %s %s..%s (%s day(s), %s unpaid)",
            leave_request.id, employee.email, leave_type.name,
            data.start_date, data.end_date, total_days, unpaid_days,
        )
        await LeaveService._notify(LeaveEvent.requested, leave_request, employee, leave_type)
        return LeaveService._build_request_response(
            leave_request, employee=employee, leave_type=leave_type,
        )

    # ─────────────────────────────────────────────────────────────────
    # Approve / Reject / Cancel
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def approve_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        admin_id: uuid.UUID,
        *,
        remarks: Optional[str] = None,
    ) -> LeaveRequestOut:
        """Pending → approved; every paid bucket moves pending → used."""
        async with transaction(db):
            leave_req = await LeaveService._get_request(db, request_id, for_update=True)
            LeaveService._require_transition(leave_req, LeaveStatus.approved)
            admin = await EmployeeDirectory.get_optional(db, admin_id)

            buckets = await LeaveService._lock_buckets(
                db, leave_req.employee_id, LeaveService._breakdown_of(leave_req), leave_req.year,
            )
            for balance, days in buckets:
                ledger.move_pending_to_used(balance, days)

            leave_req.status = LeaveStatus.approved
            leave_req.approved_by = admin_id
            leave_req.admin_remarks = remarks
            leave_req.decided_at = datetime.now(timezone.utc)

        logger.info("Leave request %s approved by %s", leave_req.id, admin_id)
        await LeaveService._notify(
            LeaveEvent.approved, leave_req, leave_req.employee, leave_req.leave_type,
            actor=admin,
        )
        return LeaveService._build_request_response(
            leave_req, employee=leave_req.employee, leave_type=leave_req.leave_type,
        )

    @staticmethod
    async def reject_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        admin_id: uuid.UUID,
        *,
        remarks: Optional[str] = None,
    ) -> LeaveRequestOut:
        """Pending → rejected; reserved days go back, nothing is used."""
        async with transaction(db):
            leave_req = await LeaveService._get_request(db, request_id, for_update=True)
            LeaveService._require_transition(leave_req, LeaveStatus.rejected)
            admin = await EmployeeDirectory.get_optional(db, admin_id)

            buckets = await LeaveService._lock_buckets(
                db, leave_req.employee_id, LeaveService._breakdown_of(leave_req), leave_req.year,
            )
            for balance, days in buckets:
                ledger.release_pending(balance, days)

            leave_req.status = LeaveStatus.rejected
            leave_req.approved_by = admin_id
            leave_req.admin_remarks = remarks
            leave_req.decided_at = datetime.now(timezone.utc)

        logger.info("Leave request %s rejected by %s", leave_req.id, admin_id)
        await LeaveService._notify(
            LeaveEvent.rejected, leave_req, leave_req.employee, leave_req.leave_type,
            actor=admin,
        )
        return LeaveService._build_request_response(
            leave_req, employee=leave_req.employee, leave_type=leave_req.leave_type,
        )

    @staticmethod
    async def cancel_request(
        db: AsyncSession,
        request_id: uuid.UUID,
        employee_id: uuid.UUID,
    ) -> LeaveRequestOut:
        """Owner-only pending → cancelled; same ledger effect as reject."""
        async with transaction(db):
            leave_req = await LeaveService._get_request(db, request_id, for_update=True)
            if leave_req.employee_id != employee_id:
                raise ForbiddenException("You can only cancel your own leave requests.")
            LeaveService._require_transition(leave_req, LeaveStatus.cancelled)

            buckets = await LeaveService._lock_buckets(
                db, leave_req.employee_id, LeaveService._breakdown_of(leave_req), leave_req.year,
            )
            for balance, days in buckets:
                ledger.release_pending(balance, days)

            leave_req.status = LeaveStatus.cancelled
            leave_req.decided_at = datetime.now(timezone.utc)

        logger.info("Leave request %s cancelled by owner", leave_req.id)
        await LeaveService._notify(
            LeaveEvent.cancelled, leave_req, leave_req.employee, leave_req.leave_type,
        )
        return LeaveService._build_request_response(
            leave_req, employee=leave_req.employee, leave_type=leave_req.leave_type,
        )

    # ─────────────────────────────────────────────────────────────────
    # Historic import
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def import_historic(
        db: AsyncSession,
        data: HistoricImportCreate,
        admin_id: uuid.UUID,
        *,
        today: Optional[date] = None,
        policy: Optional[CascadePolicy] = None,
    ) -> LeaveRequestOut:
        """Record backdated leave as already approved.

        Skips the pending stage: each paid bucket's ``used_days`` grows
        directly. The span must end before *today*.
        """
        policy = policy or CascadePolicy.from_settings()
        today = today or calendar.today()
        total_days = LeaveService._span_days(data.start_date, data.end_date)
        if data.end_date >= today:
            raise InvalidRangeException(
                "Historic leave must end in the past; use apply-on-behalf for future leave."
            )
        year = data.start_date.year

        async with transaction(db):
            employee = await EmployeeDirectory.get_employee(db, data.employee_id)
            leave_type = await LeaveService._get_leave_type(db, data.leave_type_id)
            admin = await EmployeeDirectory.get_optional(db, admin_id)

            if data.breakdown:
                entries = list(data.breakdown)
            else:
                entries = [
                    BreakdownEntry(
                        leave_type_id=leave_type.id,
                        leave_type_name=leave_type.name,
                        days=total_days,
                        is_unpaid=policy.is_unpaid(leave_type.name),
                    )
                ]
            LeaveService._validate_breakdown(entries, total_days, leave_type, policy)

            for balance, days in await LeaveService._lock_confirmed_breakdown(
                db, data.employee_id, entries, leave_type, year, policy,
                allow_overdraw=True,
            ):
                ledger.credit_used(balance, days)

            now = datetime.now(timezone.utc)
            leave_request = LeaveRequest(
                employee_id=data.employee_id,
                leave_type_id=leave_type.id,
                start_date=data.start_date,
                end_date=data.end_date,
                total_days=total_days,
                reason=data.reason,
                status=LeaveStatus.approved,
                requested_by=admin_id,
                approved_by=admin_id,
                decided_at=now,
                is_multi_type=len([e for e in entries if e.days > 0]) > 1,
                balance_breakdown=[e.to_json() for e in entries],
                unpaid_days=breakdown_total([e for e in entries if e.is_unpaid]),
                is_historic=True,
            )
            db.add(leave_request)
            await db.flush()

        logger.info(
            "Historic leave %s imported for %s: %s %s..%s (%s day(s))",
            leave_request.id, employee.email, leave_type.name,
            data.start_date, data.end_date, total_days,
        )
        await LeaveService._notify(
            LeaveEvent.historic_imported, leave_request, employee, leave_type, actor=admin,
        )
        return LeaveService._build_request_response(
            leave_request, employee=employee, leave_type=leave_type,
        )

    # ─────────────────────────────────────────────────────────────────
    # Listings
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_my_requests(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        year: Optional[int] = None,
        status: Optional[LeaveStatus] = None,
    ) -> list[LeaveRequestOut]:
        """The employee's own requests, newest span first."""
        query = (
            select(LeaveRequest)
            .where(LeaveRequest.employee_id == employee_id)
            .options(selectinload(LeaveRequest.leave_type))
            .order_by(LeaveRequest.start_date.desc(), LeaveRequest.created_at.desc())
        )
        if year is not None:
            query = query.where(
                LeaveRequest.start_date >= date(year, 1, 1),
                LeaveRequest.start_date <= date(year, 12, 31),
            )
        if status is not None:
            query = query.where(LeaveRequest.status == status)

        result = await db.execute(query)
        return [
            LeaveService._build_request_response(r, leave_type=r.leave_type)
            for r in result.scalars().all()
        ]

    @staticmethod
    async def get_leave_requests(
        db: AsyncSession,
        params: PaginationParams,
        *,
        status: Optional[LeaveStatus] = None,
        employee_id: Optional[uuid.UUID] = None,
        leave_type_id: Optional[uuid.UUID] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
    ) -> PaginatedResponse:
        """All requests, filtered; the date filters select spans that overlap."""
        conditions = []
        if status is not None:
            conditions.append(LeaveRequest.status == status)
        if employee_id is not None:
            conditions.append(LeaveRequest.employee_id == employee_id)
        if leave_type_id is not None:
            conditions.append(LeaveRequest.leave_type_id == leave_type_id)
        if from_date is not None:
            conditions.append(LeaveRequest.end_date >= from_date)
        if to_date is not None:
            conditions.append(LeaveRequest.start_date <= to_date)

        query = select(LeaveRequest).order_by(LeaveRequest.created_at.desc())
        if conditions:
            query = query.where(and_(*conditions))

        return await paginate(
            db,
            query,
            params,
            options=[
                selectinload(LeaveRequest.employee),
                selectinload(LeaveRequest.leave_type),
            ],
            transform=lambda r: LeaveService._build_request_response(
                r, employee=r.employee, leave_type=r.leave_type,
            ),
        )

    @staticmethod
    async def get_pending_requests(db: AsyncSession) -> list[LeaveRequestOut]:
        """Approval queue, oldest first."""
        result = await db.execute(
            select(LeaveRequest)
            .where(LeaveRequest.status == LeaveStatus.pending)
            .options(
                selectinload(LeaveRequest.employee),
                selectinload(LeaveRequest.leave_type),
            )
            .order_by(LeaveRequest.created_at.asc())
        )
        return [
            LeaveService._build_request_response(
                r, employee=r.employee, leave_type=r.leave_type,
            )
            for r in result.scalars().all()
        ]
