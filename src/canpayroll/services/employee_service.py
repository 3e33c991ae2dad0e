"""Employee store operations: create, HR updates and status changes."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import date
from typing import Any
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from canpayroll.context import TenantContext
from canpayroll.exceptions import InvalidEmployeeDataError, NotFoundError
from canpayroll.models import Client, Employee
from canpayroll.repositories import PayrollRepository, SqlPayrollRepository
from canpayroll.schemas import EmployeeCreate, EmployeeUpdate

logger = logging.getLogger(__name__)

EMPLOYEE_STATUSES = ("active", "terminated", "on_leave")


def _validation_error(e: ValidationError) -> InvalidEmployeeDataError:
    first = e.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ()))
    return InvalidEmployeeDataError(first.get("msg", str(e)), field=field or None)


class EmployeeService:
    """Employees are never deleted; termination is a status change."""

    def __init__(
        self,
        session: AsyncSession,
        context: TenantContext,
        repository: PayrollRepository | None = None,
    ):
        self.session = session
        self.context = context
        self.repo = repository or SqlPayrollRepository(session, context.tenant_id)

    async def create_client(self, name: str) -> Client:
        client = await self.repo.add(Client(tenant_id=self.context.tenant_id, name=name))
        logger.info("Created client %s (%s)", name, client.client_id)
        return client

    async def create_employee(self, data: EmployeeCreate | Mapping[str, Any]) -> Employee:
        """Create an employee, raising InvalidEmployeeDataError on bad input."""
        if not isinstance(data, EmployeeCreate):
            try:
                data = EmployeeCreate.model_validate(data)
            except ValidationError as e:
                raise _validation_error(e) from e

        if await self.repo.get_client(data.client_id) is None:
            raise NotFoundError("Client", data.client_id)

        employee = await self.repo.add(
            Employee(tenant_id=self.context.tenant_id, **data.model_dump())
        )
        logger.info("Created employee %s (%s)", employee.full_name, employee.employee_id)
        return employee

    async def get_employee(self, employee_id: UUID) -> Employee:
        employee = await self.repo.get_employee(employee_id)
        if employee is None:
            raise NotFoundError("Employee", employee_id)
        return employee

    async def list_employees(self, client_id: UUID, active_only: bool = False) -> list[Employee]:
        return await self.repo.list_employees(client_id, status="active" if active_only else None)

    async def update_employee(
        self, employee_id: UUID, changes: EmployeeUpdate | Mapping[str, Any]
    ) -> Employee:
        """Apply HR changes to pay and withholding settings."""
        if not isinstance(changes, EmployeeUpdate):
            try:
                changes = EmployeeUpdate.model_validate(changes)
            except ValidationError as e:
                raise _validation_error(e) from e

        employee = await self.get_employee(employee_id)
        for name, value in changes.model_dump(exclude_unset=True).items():
            if value is None and name != "email":
                continue
            setattr(employee, name, value)
        await self.session.flush()
        return employee

    async def set_status(
        self,
        employee_id: UUID,
        status: str,
        effective_date: date | None = None,
    ) -> Employee:
        """Move an employee between active, on_leave and terminated."""
        if status not in EMPLOYEE_STATUSES:
            raise InvalidEmployeeDataError(f"unknown status {status!r}", employee_id, "status")

        employee = await self.get_employee(employee_id)
        employee.status = status
        if status == "terminated":
            employee.termination_date = effective_date or date.today()
        await self.session.flush()

        logger.info("Employee %s status set to %s", employee_id, status)
        return employee
