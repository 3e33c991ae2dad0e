"""Year-end T4 aggregation."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from canpayroll.calculators.types import ZERO, round_to_cents
from canpayroll.context import TenantContext
from canpayroll.exceptions import NotFoundError
from canpayroll.models import T4Record
from canpayroll.repositories import PayrollRepository, SqlPayrollRepository

logger = logging.getLogger(__name__)


class T4Service:
    """Builds T4 slip summaries from an employee's paystubs.

    Box 14 is gross employment income, box 16 CPP, box 18 EI and box 22
    federal plus provincial income tax. Regenerating overwrites the record
    for the same employee and year.
    """

    def __init__(
        self,
        session: AsyncSession,
        context: TenantContext,
        repository: PayrollRepository | None = None,
    ):
        self.session = session
        self.context = context
        self.repo = repository or SqlPayrollRepository(session, context.tenant_id)

    async def generate_t4(self, employee_id: UUID, tax_year: int) -> T4Record:
        employee = await self.repo.get_employee(employee_id)
        if employee is None:
            raise NotFoundError("Employee", employee_id)

        paystubs = await self.repo.list_employee_paystubs(employee_id, tax_year)

        box14 = box16 = box18 = box22 = ZERO
        for stub in paystubs:
            box14 += stub.gross_pay
            box16 += stub.cpp
            box18 += stub.ei
            box22 += stub.federal_tax + stub.provincial_tax

        record = await self.repo.get_t4(employee_id, tax_year)
        if record is None:
            record = T4Record(
                tenant_id=self.context.tenant_id,
                client_id=employee.client_id,
                employee_id=employee_id,
                tax_year=tax_year,
            )
            self.session.add(record)

        record.box14_employment_income = round_to_cents(box14)
        record.box16_cpp_contributions = round_to_cents(box16)
        record.box18_ei_premiums = round_to_cents(box18)
        record.box22_income_tax_deducted = round_to_cents(box22)
        record.paystub_count = len(paystubs)
        record.status = "draft"
        record.generated_at = datetime.now(timezone.utc)
        await self.session.flush()

        await self.repo.record_audit(
            entity_type="t4_record",
            entity_id=record.t4_record_id,
            action="generated",
            actor_user_id=self.context.user_id,
            details={"tax_year": tax_year, "paystub_count": len(paystubs)},
        )
        await self.session.flush()

        logger.info(
            "Generated %d T4 for employee %s from %d paystubs",
            tax_year,
            employee_id,
            len(paystubs),
        )
        return record

    async def list_t4s(self, client_id: UUID, tax_year: int | None = None) -> list[T4Record]:
        return await self.repo.list_t4s(client_id, tax_year)
