"""Per-employee payroll processing with year-to-date threading."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from canpayroll.calculators.deductions import PayrollDeductionCalculator, calculate_gross_pay
from canpayroll.calculators.tax_tables import TaxTableProvider
from canpayroll.calculators.types import (
    PERIODS_PER_YEAR,
    ZERO,
    DeductionResult,
    FixedDeductions,
    PayType,
)
from canpayroll.config import get_settings
from canpayroll.context import TenantContext
from canpayroll.exceptions import InvalidEmployeeDataError, InvalidFrequencyError, NotFoundError
from canpayroll.models import Employee, Paystub, YtdBalance
from canpayroll.repositories import PayrollRepository, SqlPayrollRepository
from canpayroll.schemas import PayPeriodInput

logger = logging.getLogger(__name__)


def employee_amount(employee: Employee, field: str) -> Decimal:
    """Read a monetary employee field as a finite, non-negative Decimal.

    Raises InvalidEmployeeDataError instead of coercing bad values to zero.
    """
    value: Any = getattr(employee, field)
    if value is None:
        raise InvalidEmployeeDataError("value is missing", employee.employee_id, field)
    if isinstance(value, bool):
        raise InvalidEmployeeDataError(f"{value!r} is not numeric", employee.employee_id, field)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidEmployeeDataError(
            f"{value!r} is not numeric", employee.employee_id, field
        ) from None
    if not amount.is_finite():
        raise InvalidEmployeeDataError(f"{value!r} is not finite", employee.employee_id, field)
    if amount < 0:
        raise InvalidEmployeeDataError(f"{value!r} is negative", employee.employee_id, field)
    return amount


def fixed_deductions(employee: Employee) -> FixedDeductions:
    """Collect the employee's per-period fixed deductions."""
    return FixedDeductions(
        **{name: employee_amount(employee, name) for name in Employee.FIXED_DEDUCTION_FIELDS}
    )


def validate_pay_settings(employee: Employee) -> None:
    if employee.pay_type not in (PayType.SALARY, PayType.HOURLY):
        raise InvalidEmployeeDataError(
            f"unknown pay type {employee.pay_type!r}", employee.employee_id, "pay_type"
        )
    if employee.pay_frequency not in PERIODS_PER_YEAR:
        raise InvalidFrequencyError(employee.pay_frequency)


class PayrollService:
    """Processes payroll for one employee and one pay period.

    ``process_payroll`` validates and calculates everything before writing,
    so a failure leaves no partial records behind. It never touches payroll
    run totals; see PayrollRunService for rollups.
    """

    def __init__(
        self,
        session: AsyncSession,
        context: TenantContext,
        tables: TaxTableProvider | None = None,
        repository: PayrollRepository | None = None,
    ):
        self.session = session
        self.context = context
        self.repo = repository or SqlPayrollRepository(session, context.tenant_id)
        self.calculator = PayrollDeductionCalculator(tables)
        self.settings = get_settings()

    async def process_payroll(self, employee_id: UUID, period: PayPeriodInput) -> Paystub:
        """Calculate and persist a paystub, advancing the employee's YTD totals."""
        if period.employee_id != employee_id:
            raise InvalidEmployeeDataError(
                "pay period input belongs to another employee", employee_id, "employee_id"
            )

        # Row lock serializes payroll for this employee until commit
        employee = await self._load_employee(employee_id, period.client_id, for_update=True)
        validate_pay_settings(employee)

        deductions = fixed_deductions(employee)
        gross_pay = calculate_gross_pay(
            pay_type=employee.pay_type,
            pay_rate=employee_amount(employee, "pay_rate"),
            frequency=employee.pay_frequency,
            regular_hours=period.regular_hours,
            overtime_hours=period.overtime_hours,
            vacation_pay=period.vacation_pay,
            bonus=period.bonus,
            commission=period.commission,
        )

        tax_year = period.pay_date.year
        ytd = await self.repo.get_ytd(employee_id, tax_year, for_update=True)
        ytd_before = self._ytd_earnings(employee_id, period, ytd)

        result = self.calculator.calculate(
            tax_year=tax_year,
            gross_pay=gross_pay,
            frequency=employee.pay_frequency,
            province=employee.province,
            federal_bpa=employee_amount(employee, "federal_basic_personal_amount"),
            provincial_bpa=employee_amount(employee, "provincial_basic_personal_amount"),
            ytd_earnings=ytd_before,
            other_deductions=deductions.total,
        )

        paystub = await self.repo.add(
            Paystub(
                tenant_id=self.context.tenant_id,
                client_id=employee.client_id,
                employee_id=employee_id,
                period_start=period.period_start,
                period_end=period.period_end,
                pay_date=period.pay_date,
                regular_hours=period.regular_hours,
                overtime_hours=period.overtime_hours,
                gross_pay=result.gross_pay,
                federal_tax=result.federal_tax,
                provincial_tax=result.provincial_tax,
                cpp=result.cpp,
                ei=result.ei,
                other_deductions=result.other_deductions,
                net_pay=result.net_pay,
                employer_contributions=result.employer_contributions,
                union_dues=deductions.union_dues,
                additional_tax_deduction=deductions.additional_tax_deduction,
                health_benefits=deductions.health_benefits,
                dental_benefits=deductions.dental_benefits,
                life_insurance=deductions.life_insurance,
                reimbursements=period.reimbursements,
                ytd_earnings_before=ytd_before,
                engine_version=self.settings.engine_version,
            )
        )

        await self._advance_ytd(employee_id, tax_year, ytd, result, period.pay_date)

        logger.info(
            "Processed payroll for employee %s pay date %s: gross %s net %s",
            employee_id,
            period.pay_date,
            result.gross_pay,
            result.net_pay,
        )
        return paystub

    async def preview(
        self,
        employee_id: UUID,
        client_id: UUID,
        gross_amount: Decimal,
        province: str | None = None,
        tax_year: int | None = None,
    ) -> DeductionResult:
        """Calculate deductions for a gross amount without saving anything.

        Uses the employee's frequency, personal amounts and fixed deductions;
        ``province`` overrides the employee's province of employment.
        """
        employee = await self._load_employee(employee_id, client_id)
        validate_pay_settings(employee)

        tax_year = tax_year or date.today().year
        ytd = await self.repo.get_ytd(employee.employee_id, tax_year)

        return self.calculator.calculate(
            tax_year=tax_year,
            gross_pay=gross_amount,
            frequency=employee.pay_frequency,
            province=(province or employee.province).upper(),
            federal_bpa=employee_amount(employee, "federal_basic_personal_amount"),
            provincial_bpa=employee_amount(employee, "provincial_basic_personal_amount"),
            ytd_earnings=ytd.gross_earnings if ytd else ZERO,
            other_deductions=fixed_deductions(employee).total,
        )

    async def _load_employee(
        self, employee_id: UUID, client_id: UUID, for_update: bool = False
    ) -> Employee:
        employee = await self.repo.get_employee(employee_id, for_update=for_update)
        # Employees of another client are reported as missing
        if employee is None or employee.client_id != client_id:
            raise NotFoundError("Employee", employee_id)
        return employee

    def _ytd_earnings(
        self, employee_id: UUID, period: PayPeriodInput, ytd: YtdBalance | None
    ) -> Decimal:
        if period.ytd_earnings is not None:
            return period.ytd_earnings
        if ytd is None:
            return ZERO
        if ytd.last_pay_date is not None and period.pay_date < ytd.last_pay_date:
            logger.warning(
                "Employee %s: pay date %s precedes last processed pay date %s; "
                "CPP/EI use YTD earnings that include later periods",
                employee_id,
                period.pay_date,
                ytd.last_pay_date,
            )
        return ytd.gross_earnings

    async def _advance_ytd(
        self,
        employee_id: UUID,
        tax_year: int,
        ytd: YtdBalance | None,
        result: DeductionResult,
        pay_date: date,
    ) -> None:
        if ytd is None:
            ytd = await self.repo.add(
                YtdBalance(
                    tenant_id=self.context.tenant_id,
                    employee_id=employee_id,
                    tax_year=tax_year,
                    gross_earnings=ZERO,
                    cpp=ZERO,
                    ei=ZERO,
                    income_tax=ZERO,
                )
            )

        ytd.gross_earnings += result.gross_pay
        ytd.cpp += result.cpp
        ytd.ei += result.ei
        ytd.income_tax += result.income_tax
        if ytd.last_pay_date is None or pay_date > ytd.last_pay_date:
            ytd.last_pay_date = pay_date
        await self.session.flush()
