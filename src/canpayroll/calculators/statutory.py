"""Statutory deduction calculations: CPP, EI, federal and provincial tax.

All functions are pure, take and return Decimal, and round half-up to the
cent at the point of computation.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from canpayroll.calculators.types import (
    ZERO,
    CppRates,
    EiRates,
    ProvincialTable,
    TaxBracket,
    TaxYearTable,
    round_to_cents,
)


def calculate_cpp(gross_pay: Decimal, ytd_earnings: Decimal, rates: CppRates) -> Decimal:
    """Calculate the CPP contribution for one period.

    Pensionable earnings are earnings above the basic exemption, capped at
    the annual maximum. The period's contribution covers the pensionable
    earnings added by this period on top of those already consumed by the
    year-to-date earnings before it.
    """
    maximum = rates.max_pensionable_earnings
    exemption = rates.basic_exemption

    total = ytd_earnings + gross_pay
    if total <= exemption:
        return ZERO

    current = max(ZERO, min(total, maximum) - exemption)
    previous = max(ZERO, min(ytd_earnings, maximum) - exemption)

    contribution = round_to_cents((current - previous) * rates.rate)
    return max(ZERO, contribution)


def calculate_ei(gross_pay: Decimal, ytd_earnings: Decimal, rates: EiRates) -> Decimal:
    """Calculate the EI premium for one period (no exemption, annual cap)."""
    maximum = rates.max_insurable_earnings
    if ytd_earnings >= maximum:
        return ZERO

    insurable = max(ZERO, min(ytd_earnings + gross_pay, maximum) - ytd_earnings)
    return round_to_cents(insurable * rates.rate)


def calculate_bracket_tax(
    annual_income: Decimal,
    basic_personal_amount: Decimal,
    brackets: Iterable[TaxBracket],
) -> Decimal:
    """Calculate annual tax by walking ordered marginal brackets."""
    taxable = max(ZERO, annual_income - basic_personal_amount)
    if taxable <= 0:
        return ZERO

    tax = ZERO
    for bracket in brackets:
        if taxable <= bracket.min_amount:
            break
        upper = taxable if bracket.max_amount is None else min(taxable, bracket.max_amount)
        tax += (upper - bracket.min_amount) * bracket.rate

    return round_to_cents(tax)


def calculate_federal_tax(
    annual_income: Decimal,
    basic_personal_amount: Decimal,
    table: TaxYearTable,
) -> Decimal:
    return calculate_bracket_tax(annual_income, basic_personal_amount, table.federal)


def calculate_provincial_tax(
    annual_income: Decimal,
    provincial_table: ProvincialTable,
    basic_personal_amount: Decimal,
) -> Decimal:
    return calculate_bracket_tax(annual_income, basic_personal_amount, provincial_table.brackets)


def calculate_employer_contributions(cpp: Decimal, ei: Decimal, rates: EiRates) -> Decimal:
    """Employer share: CPP is matched, EI is the employee premium times the multiplier."""
    return round_to_cents(cpp + ei * rates.employer_multiplier)
