"""Employee directory lookups used by the leave ledger."""

from __future__ import annotations

import uuid
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from leavedesk.common.exceptions import NotFoundException
from leavedesk.employees.models import Employee


class EmployeeDirectory:
    """Read-only access to employees."""

    @staticmethod
    async def get_employee(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        active_only: bool = True,
    ) -> Employee:
        """Load an employee or raise NotFoundException."""
        query = select(Employee).where(Employee.id == employee_id)
        if active_only:
            query = query.where(Employee.is_active.is_(True))
        result = await db.execute(query)
        employee = result.scalars().first()
        if employee is None:
            raise NotFoundException("Employee", str(employee_id))
        return employee

    @staticmethod
    async def get_optional(
        db: AsyncSession,
        employee_id: uuid.UUID | None,
    ) -> Employee | None:
        if employee_id is None:
            return None
        return await db.get(Employee, employee_id)

    @staticmethod
    async def list_active(db: AsyncSession) -> Sequence[Employee]:
        """All active employees, ordered by name."""
        result = await db.execute(
            select(Employee)
            .where(Employee.is_active.is_(True))
            .order_by(Employee.first_name, Employee.last_name)
        )
        return result.scalars().all()
