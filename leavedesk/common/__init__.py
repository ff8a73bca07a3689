"""Common module: shared utilities for LeaveDesk."""

from leavedesk.common.constants import (
    DAYS_QUANTUM,
    DEFAULT_PAGE_SIZE,
    LEAVE_TRANSITIONS,
    MAX_PAGE_SIZE,
    ZERO_DAYS,
    EmploymentStatus,
    LeaveEvent,
    LeaveStatus,
    UserRole,
)
from leavedesk.common.exceptions import (
    AppException,
    ConflictError,
    FloorViolationException,
    ForbiddenException,
    InsufficientBalanceException,
    InvalidRangeException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
    register_exception_handlers,
)
from leavedesk.common.pagination import (
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    paginate,
)

__all__ = [
    # Constants / Enums
    "EmploymentStatus",
    "LeaveEvent",
    "LeaveStatus",
    "UserRole",
    "LEAVE_TRANSITIONS",
    "DAYS_QUANTUM",
    "ZERO_DAYS",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    # Exceptions
    "AppException",
    "ConflictError",
    "FloorViolationException",
    "ForbiddenException",
    "InsufficientBalanceException",
    "InvalidRangeException",
    "InvalidTransitionException",
    "NotFoundException",
    "ValidationException",
    "register_exception_handlers",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "paginate",
]
