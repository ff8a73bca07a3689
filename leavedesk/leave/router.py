"""Leave router: types, balances, preview, requests, approvals, entitlements.

All endpoints require authentication. Admin endpoints enforce the role via
``require_admin``; ``year`` defaults to the current calendar year here and
is passed explicitly to every service call.
"""

import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.auth.dependencies import get_current_user, require_admin
from leavedesk.common.constants import LeaveStatus
from leavedesk.common.pagination import PaginatedResponse, PaginationParams
from leavedesk.common.rate_limit import leave_apply_limit, limiter
from leavedesk.database import get_db
from leavedesk.employees.models import Employee
from leavedesk.leave import calendar
from leavedesk.leave.policy import EntitlementService
from leavedesk.leave.schemas import (
    BalanceCheckOut,
    ConsumptionPreviewOut,
    EntitlementChangeOut,
    EntitlementChangeRequest,
    HistoricImportCreate,
    LeaveBalanceOut,
    LeaveDecisionRequest,
    LeaveRequestCreate,
    LeaveRequestOnBehalfCreate,
    LeaveRequestOut,
    LeaveTypeCreate,
    LeaveTypeOut,
    RebalanceRequest,
    RebalanceResult,
)
from leavedesk.leave.service import LeaveService

router = APIRouter(prefix="", tags=["leave"])


def _year(year: Optional[int]) -> int:
    return year or calendar.today().year


# ── Leave types ─────────────────────────────────────────────────────

@router.get("/types", response_model=list[LeaveTypeOut])
async def list_leave_types(
    include_inactive: bool = Query(False),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List leave types (active only unless ``include_inactive``)."""
    return await LeaveService.get_leave_types(
        db, is_active=None if include_inactive else True,
    )


@router.post("/types", response_model=LeaveTypeOut, status_code=201)
async def create_leave_type(
    body: LeaveTypeCreate,
    admin: Employee = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.create_leave_type(db, body)


@router.post("/types/{leave_type_id}/deactivate", response_model=LeaveTypeOut)
async def deactivate_leave_type(
    leave_type_id: uuid.UUID,
    admin: Employee = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.deactivate_leave_type(db, leave_type_id)


# ── Balances ────────────────────────────────────────────────────────

@router.get("/balances", response_model=list[LeaveBalanceOut])
async def my_balances(
    year: Optional[int] = Query(None, description="Leave year; defaults to current year"),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The authenticated user's balances for a year."""
    return await LeaveService.get_employee_balances(db, employee.id, _year(year))


@router.get("/balances/check", response_model=BalanceCheckOut)
async def check_balance(
    leave_type_id: uuid.UUID = Query(...),
    days: Decimal = Query(..., gt=0),
    year: Optional[int] = Query(None),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Would *days* of this type fit in the caller's balance?"""
    return await LeaveService.can_apply(
        db, employee.id, leave_type_id, days, _year(year),
    )


@router.get("/balances/{employee_id}", response_model=list[LeaveBalanceOut])
async def employee_balances(
    employee_id: uuid.UUID,
    year: Optional[int] = Query(None),
    admin: Employee = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_employee_balances(db, employee_id, _year(year))


# ── Preview ─────────────────────────────────────────────────────────

@router.get("/preview", response_model=ConsumptionPreviewOut)
async def preview_consumption(
    leave_type_id: uuid.UUID = Query(...),
    start_date: date = Query(...),
    end_date: date = Query(...),
    employee_id: Optional[uuid.UUID] = Query(None, description="Admin only"),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Which buckets would pay for this span. Read-only."""
    target_id = employee.id
    if employee_id is not None and employee_id != employee.id:
        await require_admin(employee)
        target_id = employee_id
    return await LeaveService.preview_consumption(
        db, target_id, leave_type_id, start_date, end_date,
    )


# ── Requests ────────────────────────────────────────────────────────

@router.post("/requests", response_model=LeaveRequestOut, status_code=201)
@limiter.limit(leave_apply_limit)
async def apply_leave(
    request: Request,
    body: LeaveRequestCreate,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Apply for leave; pass the preview breakdown to confirm a cascade."""
    return await LeaveService.create_request(db, employee.id, body)


@router.post("/requests/on-behalf", response_model=LeaveRequestOut, status_code=201)
@limiter.limit(leave_apply_limit)
async def apply_on_behalf(
    request: Request,
    body: LeaveRequestOnBehalfCreate,
    admin: Employee = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.create_request(
        db, body.employee_id, body, requested_by=admin.id,
    )


@router.get("/requests/my", response_model=list[LeaveRequestOut])
async def my_requests(
    year: Optional[int] = Query(None),
    status: Optional[LeaveStatus] = Query(None),
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_my_requests(db, employee.id, year=year, status=status)


@router.get("/requests/pending", response_model=list[LeaveRequestOut])
async def pending_requests(
    admin: Employee = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Approval queue, oldest first."""
    return await LeaveService.get_pending_requests(db)


@router.get("/requests", response_model=PaginatedResponse[LeaveRequestOut])
async def all_requests(
    status: Optional[LeaveStatus] = Query(None),
    employee_id: Optional[uuid.UUID] = Query(None),
    leave_type_id: Optional[uuid.UUID] = Query(None),
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    pagination: PaginationParams = Depends(),
    admin: Employee = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_leave_requests(
        db,
        pagination,
        status=status,
        employee_id=employee_id,
        leave_type_id=leave_type_id,
        from_date=from_date,
        to_date=to_date,
    )


@router.put("/requests/{request_id}/approve", response_model=LeaveRequestOut)
async def approve_leave(
    request_id: uuid.UUID,
    body: LeaveDecisionRequest,
    admin: Employee = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Approve a pending request; pending days become used."""
    return await LeaveService.approve_request(
        db, request_id, admin.id, remarks=body.remarks,
    )


@router.put("/requests/{request_id}/reject", response_model=LeaveRequestOut)
async def reject_leave(
    request_id: uuid.UUID,
    body: LeaveDecisionRequest,
    admin: Employee = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Reject a pending request; pending days are released."""
    return await LeaveService.reject_request(
        db, request_id, admin.id, remarks=body.remarks,
    )


@router.put("/requests/{request_id}/cancel", response_model=LeaveRequestOut)
async def cancel_leave(
    request_id: uuid.UUID,
    employee: Employee = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Cancel one of your own pending requests."""
    return await LeaveService.cancel_request(db, request_id, employee.id)


# ── Historic import ─────────────────────────────────────────────────

@router.post("/historic-import", response_model=LeaveRequestOut, status_code=201)
async def historic_import(
    body: HistoricImportCreate,
    admin: Employee = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.import_historic(db, body, admin.id)


# ── Entitlements ────────────────────────────────────────────────────

@router.post("/entitlements/add", response_model=list[EntitlementChangeOut])
async def add_entitlement(
    body: EntitlementChangeRequest,
    admin: Employee = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await EntitlementService.add_entitlement(
        db,
        body.employee_ids,
        body.leave_type_id,
        body.days,
        _year(body.year),
        reason=body.reason,
        created_by=admin.id,
    )


@router.post("/entitlements/remove", response_model=list[EntitlementChangeOut])
async def remove_entitlement(
    body: EntitlementChangeRequest,
    admin: Employee = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Fails with floor-violation rather than underfund committed leave."""
    return await EntitlementService.remove_entitlement(
        db,
        body.employee_ids,
        body.leave_type_id,
        body.days,
        _year(body.year),
        reason=body.reason,
        created_by=admin.id,
    )


@router.post("/entitlements/rebalance", response_model=RebalanceResult)
async def rebalance(
    body: RebalanceRequest,
    admin: Employee = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await EntitlementService.rebalance_all(db, admin.id, _year(body.year))
