"""Tenant-scoped storage access for payroll records.

Services depend on the ``PayrollRepository`` protocol; the SQLAlchemy
implementation scopes every query to one tenant so records of other firms
are indistinguishable from records that do not exist.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Protocol, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from canpayroll.models import (
    AuditEvent,
    Base,
    Client,
    Employee,
    PayrollRun,
    PayrollRunEmployee,
    Paystub,
    T4Record,
    YtdBalance,
)

ModelT = TypeVar("ModelT", bound=Base)


class PayrollRepository(Protocol):
    """Storage contract consumed by the payroll services."""

    tenant_id: UUID

    async def add(self, obj: ModelT) -> ModelT: ...

    async def get_client(self, client_id: UUID) -> Client | None: ...

    async def get_employee(self, employee_id: UUID, for_update: bool = False) -> Employee | None: ...

    async def list_employees(self, client_id: UUID, status: str | None = None) -> list[Employee]: ...

    async def get_run(self, run_id: UUID, for_update: bool = False) -> PayrollRun | None: ...

    async def list_runs(self, client_id: UUID) -> list[PayrollRun]: ...

    async def list_run_members(self, run_id: UUID) -> list[PayrollRunEmployee]: ...

    async def run_numbers_for_year(self, year: int) -> list[str]: ...

    async def get_paystub(self, paystub_id: UUID) -> Paystub | None: ...

    async def list_run_paystubs(self, run_id: UUID) -> list[Paystub]: ...

    async def list_employee_paystubs(self, employee_id: UUID, tax_year: int) -> list[Paystub]: ...

    async def get_ytd(
        self, employee_id: UUID, tax_year: int, for_update: bool = False
    ) -> YtdBalance | None: ...

    async def get_t4(self, employee_id: UUID, tax_year: int) -> T4Record | None: ...

    async def list_t4s(self, client_id: UUID, tax_year: int | None = None) -> list[T4Record]: ...

    async def record_audit(
        self,
        entity_type: str,
        entity_id: UUID,
        action: str,
        actor_user_id: UUID | None = None,
        details: dict[str, Any] | None = None,
    ) -> None: ...


class SqlPayrollRepository:
    """SQLAlchemy implementation of PayrollRepository for one tenant.

    ``for_update`` issues SELECT ... FOR UPDATE, which serializes payroll
    processing per employee on databases that support row locks.
    """

    def __init__(self, session: AsyncSession, tenant_id: UUID):
        self.session = session
        self.tenant_id = tenant_id

    async def add(self, obj: ModelT) -> ModelT:
        if getattr(obj, "tenant_id", None) is None and hasattr(obj, "tenant_id"):
            obj.tenant_id = self.tenant_id
        elif getattr(obj, "tenant_id", self.tenant_id) != self.tenant_id:
            raise ValueError("Cannot store a record belonging to another tenant")
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get_client(self, client_id: UUID) -> Client | None:
        result = await self.session.execute(
            select(Client).where(
                Client.client_id == client_id,
                Client.tenant_id == self.tenant_id,
            )
        )
        return result.scalar_one_or_none()

    async def get_employee(self, employee_id: UUID, for_update: bool = False) -> Employee | None:
        stmt = select(Employee).where(
            Employee.employee_id == employee_id,
            Employee.tenant_id == self.tenant_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_employees(self, client_id: UUID, status: str | None = None) -> list[Employee]:
        stmt = select(Employee).where(
            Employee.client_id == client_id,
            Employee.tenant_id == self.tenant_id,
        )
        if status is not None:
            stmt = stmt.where(Employee.status == status)
        result = await self.session.execute(stmt.order_by(Employee.employee_number))
        return list(result.scalars().all())

    async def get_run(self, run_id: UUID, for_update: bool = False) -> PayrollRun | None:
        stmt = select(PayrollRun).where(
            PayrollRun.payroll_run_id == run_id,
            PayrollRun.tenant_id == self.tenant_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_runs(self, client_id: UUID) -> list[PayrollRun]:
        result = await self.session.execute(
            select(PayrollRun)
            .where(
                PayrollRun.client_id == client_id,
                PayrollRun.tenant_id == self.tenant_id,
            )
            .order_by(PayrollRun.run_number)
        )
        return list(result.scalars().all())

    async def list_run_members(self, run_id: UUID) -> list[PayrollRunEmployee]:
        result = await self.session.execute(
            select(PayrollRunEmployee)
            .join(PayrollRun, PayrollRun.payroll_run_id == PayrollRunEmployee.payroll_run_id)
            .where(
                PayrollRunEmployee.payroll_run_id == run_id,
                PayrollRun.tenant_id == self.tenant_id,
            )
            .order_by(PayrollRunEmployee.created_at, PayrollRunEmployee.payroll_run_employee_id)
        )
        return list(result.scalars().all())

    async def run_numbers_for_year(self, year: int) -> list[str]:
        result = await self.session.execute(
            select(PayrollRun.run_number).where(
                PayrollRun.tenant_id == self.tenant_id,
                PayrollRun.run_number.like(f"PR-{year}-%"),
            )
        )
        return list(result.scalars().all())

    async def get_paystub(self, paystub_id: UUID) -> Paystub | None:
        result = await self.session.execute(
            select(Paystub).where(
                Paystub.paystub_id == paystub_id,
                Paystub.tenant_id == self.tenant_id,
            )
        )
        return result.scalar_one_or_none()

    async def list_run_paystubs(self, run_id: UUID) -> list[Paystub]:
        result = await self.session.execute(
            select(Paystub)
            .where(
                Paystub.payroll_run_id == run_id,
                Paystub.tenant_id == self.tenant_id,
            )
            .order_by(Paystub.pay_date, Paystub.created_at)
        )
        return list(result.scalars().all())

    async def list_employee_paystubs(self, employee_id: UUID, tax_year: int) -> list[Paystub]:
        result = await self.session.execute(
            select(Paystub)
            .where(
                Paystub.employee_id == employee_id,
                Paystub.tenant_id == self.tenant_id,
                Paystub.pay_date >= date(tax_year, 1, 1),
                Paystub.pay_date <= date(tax_year, 12, 31),
            )
            .order_by(Paystub.pay_date, Paystub.created_at)
        )
        return list(result.scalars().all())

    async def get_ytd(
        self, employee_id: UUID, tax_year: int, for_update: bool = False
    ) -> YtdBalance | None:
        stmt = select(YtdBalance).where(
            YtdBalance.employee_id == employee_id,
            YtdBalance.tenant_id == self.tenant_id,
            YtdBalance.tax_year == tax_year,
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_t4(self, employee_id: UUID, tax_year: int) -> T4Record | None:
        result = await self.session.execute(
            select(T4Record).where(
                T4Record.employee_id == employee_id,
                T4Record.tenant_id == self.tenant_id,
                T4Record.tax_year == tax_year,
            )
        )
        return result.scalar_one_or_none()

    async def list_t4s(self, client_id: UUID, tax_year: int | None = None) -> list[T4Record]:
        stmt = select(T4Record).where(
            T4Record.client_id == client_id,
            T4Record.tenant_id == self.tenant_id,
        )
        if tax_year is not None:
            stmt = stmt.where(T4Record.tax_year == tax_year)
        result = await self.session.execute(stmt.order_by(T4Record.tax_year))
        return list(result.scalars().all())

    async def record_audit(
        self,
        entity_type: str,
        entity_id: UUID,
        action: str,
        actor_user_id: UUID | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.session.add(
            AuditEvent(
                tenant_id=self.tenant_id,
                actor_user_id=actor_user_id,
                entity_type=entity_type,
                entity_id=entity_id,
                action=action,
                details_json=details,
            )
        )
