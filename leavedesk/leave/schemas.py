"""Leave Pydantic v2 schemas: request / response validation.

Naming conventions:
  - *Create / *Request  → request bodies (write)
  - *Out / *Result      → response bodies (read)
  - *Brief              → compact embedded representations
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from leavedesk.common.constants import DAYS_QUANTUM, LeaveStatus


def _as_days(value: Decimal) -> Decimal:
    return Decimal(value).quantize(DAYS_QUANTUM)


# ═════════════════════════════════════════════════════════════════════
# Embedded / shared
# ═════════════════════════════════════════════════════════════════════


class EmployeeBrief(BaseModel):
    """Minimal employee info embedded in leave responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_code: Optional[str] = None
    first_name: str
    last_name: str
    email: str
    department: Optional[str] = None


class LeaveTypeBrief(BaseModel):
    """Minimal leave type info embedded in leave responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str


# ═════════════════════════════════════════════════════════════════════
# Leave Type
# ═════════════════════════════════════════════════════════════════════


class LeaveTypeCreate(BaseModel):
    """Payload for creating a leave type."""

    name: str = Field(..., min_length=2, max_length=50)
    description: Optional[str] = Field(None, max_length=1000)
    default_days: Decimal = Field(Decimal("0"), ge=0, le=365)


class LeaveTypeOut(BaseModel):
    """Full leave type representation."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    description: Optional[str] = None
    default_days: Decimal
    is_active: bool = True
    created_at: datetime
    updated_at: datetime


# ═════════════════════════════════════════════════════════════════════
# Leave Balance
# ═════════════════════════════════════════════════════════════════════


class LeaveBalanceOut(BaseModel):
    """Balance for a single leave type with computed available field."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    year: int
    entitled_days: Decimal
    used_days: Decimal
    pending_days: Decimal
    available_days: Decimal

    leave_type: Optional[LeaveTypeBrief] = None


class BalanceCheckOut(BaseModel):
    """Quick sufficiency check for a single bucket."""

    can_apply: bool
    available: Decimal
    requested: Decimal
    shortage: Decimal


# ═════════════════════════════════════════════════════════════════════
# Consumption plan (cascade)
# ═════════════════════════════════════════════════════════════════════


class BreakdownEntry(BaseModel):
    """One bucket in a frozen consumption plan.

    ``leave_type_id`` is ``None`` only for an unpaid overflow entry when no
    unpaid leave type is configured.
    """

    leave_type_id: Optional[uuid.UUID] = None
    leave_type_name: str
    days: Decimal = Field(..., ge=0)
    is_unpaid: bool = False
    available: Optional[Decimal] = None
    exhausted: bool = False

    @field_validator("days")
    @classmethod
    def _quantize_days(cls, v: Decimal) -> Decimal:
        return _as_days(v)

    @model_validator(mode="after")
    def _paid_entries_need_type(self) -> "BreakdownEntry":
        if not self.is_unpaid and self.leave_type_id is None:
            raise ValueError("leave_type_id is required for paid breakdown entries.")
        return self

    def to_json(self) -> dict:
        """JSON-safe form persisted on the request row."""
        return {
            "leave_type_id": str(self.leave_type_id) if self.leave_type_id else None,
            "leave_type_name": self.leave_type_name,
            "days": str(self.days),
            "is_unpaid": self.is_unpaid,
        }


class ConsumptionPlan(BaseModel):
    """Result of the cascade planner for one requested span."""

    leave_type_id: uuid.UUID
    leave_type_name: str
    total_requested: Decimal
    breakdown: list[BreakdownEntry] = Field(default_factory=list)
    has_overflow: bool = False
    unpaid_days: Decimal = Decimal("0")
    total_entitled: Decimal = Decimal("0")
    insufficient_balance: bool = False
    shortage: Decimal = Decimal("0")
    error: Optional[str] = None

    @property
    def paid_entries(self) -> list[BreakdownEntry]:
        return [b for b in self.breakdown if not b.is_unpaid and b.days > 0]


class ConsumptionPreviewOut(ConsumptionPlan):
    """Plan plus the span it was computed for."""

    employee_id: uuid.UUID
    start_date: date
    end_date: date
    year: int


# ═════════════════════════════════════════════════════════════════════
# Leave Request: Create
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    """Payload for applying a leave request.

    Omit ``breakdown`` for the single-type path; pass the breakdown returned
    by the preview endpoint to confirm a cascade.
    """

    leave_type_id: uuid.UUID
    start_date: date = Field(..., description="Leave start date (inclusive)")
    end_date: date = Field(..., description="Leave end date (inclusive)")
    reason: Optional[str] = Field(None, max_length=1000)
    breakdown: Optional[list[BreakdownEntry]] = None


class LeaveRequestOnBehalfCreate(LeaveRequestCreate):
    """Admin-submitted request for another employee."""

    employee_id: uuid.UUID


class HistoricImportCreate(BaseModel):
    """Backdated, already-approved leave."""

    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    reason: Optional[str] = Field(None, max_length=1000)
    breakdown: Optional[list[BreakdownEntry]] = None


# ═════════════════════════════════════════════════════════════════════
# Leave Request: Response
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestOut(BaseModel):
    """Full leave request response."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    total_days: Decimal
    reason: Optional[str] = None
    status: LeaveStatus
    admin_remarks: Optional[str] = None
    requested_by: Optional[uuid.UUID] = None
    approved_by: Optional[uuid.UUID] = None
    decided_at: Optional[datetime] = None
    is_multi_type: bool = False
    balance_breakdown: list[BreakdownEntry] = Field(default_factory=list)
    unpaid_days: Decimal = Decimal("0")
    is_historic: bool = False
    created_at: datetime
    updated_at: datetime

    # Enriched by service
    employee: Optional[EmployeeBrief] = None
    leave_type: Optional[LeaveTypeBrief] = None


# ═════════════════════════════════════════════════════════════════════
# Leave Approve / Reject
# ═════════════════════════════════════════════════════════════════════


class LeaveDecisionRequest(BaseModel):
    """Payload for approving or rejecting a leave request."""

    remarks: Optional[str] = Field(None, max_length=500)


# ═════════════════════════════════════════════════════════════════════
# Entitlements
# ═════════════════════════════════════════════════════════════════════


class EntitlementChangeRequest(BaseModel):
    """Admin add/remove of entitled days for one or more employees."""

    employee_ids: list[uuid.UUID] = Field(..., min_length=1)
    leave_type_id: uuid.UUID
    days: Decimal = Field(..., gt=0, le=365)
    reason: Optional[str] = Field(None, max_length=255)
    year: Optional[int] = Field(
        None, ge=2000, le=2100, description="Target year; defaults to current year"
    )


class EntitlementChangeOut(BaseModel):
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    year: int
    days_added: Decimal
    new_entitlement: Decimal


class RebalanceRequest(BaseModel):
    year: Optional[int] = Field(None, ge=2000, le=2100)


class RebalanceChange(BaseModel):
    employee_id: uuid.UUID
    employee_name: str
    leave_type_id: uuid.UUID
    leave_type_name: str
    from_days: Decimal
    to_days: Decimal
    diff: Decimal
    reason: str


class RebalanceResult(BaseModel):
    year: int
    processed: int = 0
    changes: list[RebalanceChange] = Field(default_factory=list)


class YearResetResult(BaseModel):
    year: int
    employees_processed: int
    created: int
    skipped: int
