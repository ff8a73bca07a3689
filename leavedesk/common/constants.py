"""Enums and constants for LeaveDesk: matching PostgreSQL ENUM types."""

from __future__ import annotations

import enum
from decimal import Decimal


# ── Employee ────────────────────────────────────────────────────────

class EmploymentStatus(str, enum.Enum):
    active = "active"
    probation = "probation"
    inactive = "inactive"


class UserRole(str, enum.Enum):
    employee = "employee"
    admin = "admin"


# ── Leave ───────────────────────────────────────────────────────────

class LeaveStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    cancelled = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not LeaveStatus.pending

    def can_transition_to(self, target: LeaveStatus) -> bool:
        return target in LEAVE_TRANSITIONS.get(self, frozenset())


# pending is the only state with outgoing edges
LEAVE_TRANSITIONS: dict[LeaveStatus, frozenset[LeaveStatus]] = {
    LeaveStatus.pending: frozenset(
        {LeaveStatus.approved, LeaveStatus.rejected, LeaveStatus.cancelled}
    ),
}


class LeaveEvent(str, enum.Enum):
    requested = "requested"
    approved = "approved"
    rejected = "rejected"
    cancelled = "cancelled"
    historic_imported = "historic_imported"


# ── Misc constants ──────────────────────────────────────────────────

DAYS_QUANTUM = Decimal("0.01")      # Numeric(5, 2)
ZERO_DAYS = Decimal("0")
MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 50
