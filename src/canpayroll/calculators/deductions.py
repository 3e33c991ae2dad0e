"""Payroll deduction orchestrator - gross to net for one pay period."""

from __future__ import annotations

import logging
from dataclasses import replace
from decimal import Decimal

from canpayroll.calculators.statutory import (
    calculate_cpp,
    calculate_ei,
    calculate_employer_contributions,
    calculate_federal_tax,
    calculate_provincial_tax,
)
from canpayroll.calculators.tax_tables import TaxTableProvider, get_tax_table_provider
from canpayroll.calculators.types import (
    PERIODS_PER_YEAR,
    ZERO,
    DeductionResult,
    PayType,
    ProvincialTable,
    TaxYearTable,
    round_to_cents,
)
from canpayroll.exceptions import InvalidEmployeeDataError, InvalidFrequencyError

logger = logging.getLogger(__name__)

OVERTIME_MULTIPLIER = Decimal("1.5")


def periods_per_year(frequency: str) -> int:
    """Resolve periods per year, raising InvalidFrequencyError if unknown."""
    try:
        return PERIODS_PER_YEAR[frequency]
    except (KeyError, TypeError):
        raise InvalidFrequencyError(frequency) from None


def compute_deductions(
    gross_pay: Decimal,
    frequency: str,
    province: str,
    federal_bpa: Decimal,
    provincial_bpa: Decimal,
    ytd_earnings: Decimal,
    other_deductions: Decimal,
    table: TaxYearTable,
    provincial_table: ProvincialTable,
) -> DeductionResult:
    """Compute all deductions for a single pay.

    Pipeline:
    1) Resolve periods per year from the frequency
    2) Round gross pay to the cent, then annualize it (assumes every period
       pays the same), so a 66,600 salary paid biweekly annualizes to 66,600.04
    3) Annual federal and provincial tax, prorated back to the period
    4) CPP and EI on true year-to-date earnings
    5) Total deductions and net pay

    ``province`` is informational here; the caller resolves
    ``provincial_table`` for it.
    """
    periods = periods_per_year(frequency)
    gross_pay = round_to_cents(gross_pay)
    annual_income = gross_pay * periods

    annual_federal = calculate_federal_tax(annual_income, federal_bpa, table)
    annual_provincial = calculate_provincial_tax(annual_income, provincial_table, provincial_bpa)

    federal_tax = round_to_cents(annual_federal / periods)
    provincial_tax = round_to_cents(annual_provincial / periods)

    cpp = calculate_cpp(gross_pay, ytd_earnings, table.cpp)
    ei = calculate_ei(gross_pay, ytd_earnings, table.ei)

    other_deductions = round_to_cents(other_deductions)
    total_deductions = round_to_cents(federal_tax + provincial_tax + cpp + ei + other_deductions)
    net_pay = round_to_cents(gross_pay - total_deductions)

    return DeductionResult(
        gross_pay=gross_pay,
        federal_tax=federal_tax,
        provincial_tax=provincial_tax,
        cpp=cpp,
        ei=ei,
        other_deductions=other_deductions,
        total_deductions=total_deductions,
        net_pay=net_pay,
        periods_per_year=periods,
        annualized_income=annual_income,
        employer_contributions=calculate_employer_contributions(cpp, ei, table.ei),
    )


def calculate_gross_pay(
    pay_type: str,
    pay_rate: Decimal,
    frequency: str,
    regular_hours: Decimal = ZERO,
    overtime_hours: Decimal = ZERO,
    vacation_pay: Decimal = ZERO,
    bonus: Decimal = ZERO,
    commission: Decimal = ZERO,
) -> Decimal:
    """Derive gross pay for a period.

    Hourly: regular hours at rate plus overtime at 1.5x rate.
    Salary: annual rate divided by periods per year.
    Vacation pay, bonus and commission are added in both cases.
    Reimbursements are not earnings and never enter gross pay.
    """
    if pay_type == PayType.HOURLY:
        base = regular_hours * pay_rate + overtime_hours * pay_rate * OVERTIME_MULTIPLIER
    elif pay_type == PayType.SALARY:
        base = pay_rate / periods_per_year(frequency)
    else:
        raise InvalidEmployeeDataError(f"unknown pay type {pay_type!r}", field="pay_type")

    return round_to_cents(round_to_cents(base) + vacation_pay + bonus + commission)


class PayrollDeductionCalculator:
    """Table-aware entry point over compute_deductions.

    Resolves the tax year's table and the employee's provincial table from
    the provider, then runs the pure pipeline.
    """

    def __init__(self, tables: TaxTableProvider | None = None):
        self.tables = tables or get_tax_table_provider()

    def calculate(
        self,
        tax_year: int,
        gross_pay: Decimal,
        frequency: str,
        province: str,
        federal_bpa: Decimal,
        provincial_bpa: Decimal,
        ytd_earnings: Decimal = ZERO,
        other_deductions: Decimal = ZERO,
    ) -> DeductionResult:
        table = self.tables.get_table(tax_year)
        provincial_table = self.tables.provincial_table(table, province)

        result = compute_deductions(
            gross_pay=gross_pay,
            frequency=frequency,
            province=province,
            federal_bpa=federal_bpa,
            provincial_bpa=provincial_bpa,
            ytd_earnings=ytd_earnings,
            other_deductions=other_deductions,
            table=table,
            provincial_table=provincial_table,
        )

        if provincial_table.code != (province or "").strip().upper():
            result = replace(
                result,
                warnings=[
                    f"Provincial tax for {province!r} calculated with "
                    f"{provincial_table.code} brackets"
                ],
            )
        return result
