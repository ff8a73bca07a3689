"""Rate limiting configuration using slowapi.

A module-level Limiter keyed on client IP, wired into the app in main.py.
Routers import it for per-endpoint limits on leave submission.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from leavedesk.config import settings

limiter = Limiter(key_func=get_remote_address)


def leave_apply_limit() -> str:
    """Limit for POST /requests, read from settings on every call."""
    return settings.LEAVE_APPLY_RATE_LIMIT
