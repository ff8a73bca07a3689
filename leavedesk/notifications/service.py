"""Notification sink: fire-and-forget fan-out after lifecycle commits.

The leave lifecycle hands every committed transition to the active
``NotificationDispatcher``. Each sink runs independently; a failing sink
is logged and skipped, and nothing propagates back to the caller.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Optional, Protocol, Sequence

import httpx
from pydantic import BaseModel, Field

from leavedesk.common.constants import LeaveEvent, LeaveStatus
from leavedesk.config import settings

logger = logging.getLogger(__name__)


# ── Payload ─────────────────────────────────────────────────────────

class BreakdownLine(BaseModel):
    leave_type_name: str
    days: Decimal
    is_unpaid: bool = False


class LeaveNotification(BaseModel):
    """Everything a sink needs to describe one transition."""

    event: LeaveEvent
    request_id: uuid.UUID
    status: LeaveStatus
    employee_id: uuid.UUID
    employee_name: str
    employee_email: str
    slack_user_id: Optional[str] = None
    leave_type_name: str
    start_date: date
    end_date: date
    total_days: Decimal
    unpaid_days: Decimal = Decimal("0")
    breakdown: list[BreakdownLine] = Field(default_factory=list)
    reason: Optional[str] = None
    actor_name: Optional[str] = None
    remarks: Optional[str] = None

    def summary(self) -> str:
        span = (
            self.start_date.isoformat()
            if self.start_date == self.end_date
            else f"{self.start_date.isoformat()} to {self.end_date.isoformat()}"
        )
        buckets = ", ".join(
            f"{b.leave_type_name}: {b.days}" for b in self.breakdown if b.days > 0
        )
        text = (
            f"[{self.event.value}] {self.employee_name}: {self.leave_type_name} "
            f"{span} ({self.total_days} day(s))"
        )
        if buckets:
            text += f" [{buckets}]"
        if self.actor_name:
            text += f" by {self.actor_name}"
        if self.remarks:
            text += f": {self.remarks}"
        return text


# ── Sinks ───────────────────────────────────────────────────────────

class Notifier(Protocol):
    name: str

    async def send(self, notification: LeaveNotification) -> None: ...


class LoggingNotifier:
    """Always-on sink: one INFO line per transition."""

    name = "log"

    async def send(self, notification: LeaveNotification) -> None:
        logger.info("Leave notification %s", notification.summary())


class SlackWebhookNotifier:
    """Posts a plain-text message to an incoming webhook."""

    name = "slack"

    def __init__(self, webhook_url: str, *, timeout: float = 5.0) -> None:
        self.webhook_url = webhook_url
        self.timeout = timeout

    def _message(self, notification: LeaveNotification) -> dict:
        text = notification.summary()
        if notification.slack_user_id:
            text = f"<@{notification.slack_user_id}> {text}"
        return {"text": text}

    async def send(self, notification: LeaveNotification) -> None:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(self.webhook_url, json=self._message(notification))
            resp.raise_for_status()


# ── Dispatcher ──────────────────────────────────────────────────────

class NotificationDispatcher:
    def __init__(self, sinks: Sequence[Notifier]) -> None:
        self.sinks = list(sinks)

    async def dispatch(self, notification: LeaveNotification) -> None:
        """Deliver to every sink; failures are logged, never raised."""
        for sink in self.sinks:
            try:
                await sink.send(notification)
            except Exception:
                logger.exception(
                    "Notification sink %r failed for %s on request %s",
                    getattr(sink, "name", type(sink).__name__),
                    notification.event.value,
                    notification.request_id,
                )


def build_default_dispatcher() -> NotificationDispatcher:
    sinks: list[Notifier] = [LoggingNotifier()]
    if settings.SLACK_WEBHOOK_URL:
        sinks.append(
            SlackWebhookNotifier(
                settings.SLACK_WEBHOOK_URL,
                timeout=settings.NOTIFY_TIMEOUT_SECONDS,
            )
        )
    return NotificationDispatcher(sinks)


_dispatcher: Optional[NotificationDispatcher] = None


def get_dispatcher() -> NotificationDispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = build_default_dispatcher()
    return _dispatcher


def set_dispatcher(dispatcher: Optional[NotificationDispatcher]) -> None:
    """Swap the active dispatcher; ``None`` restores the default on next use."""
    global _dispatcher
    _dispatcher = dispatcher
