"""Employees module: the directory the leave ledger is keyed on."""

from leavedesk.employees.models import Employee
from leavedesk.employees.service import EmployeeDirectory

__all__ = ["Employee", "EmployeeDirectory"]
