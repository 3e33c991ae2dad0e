"""Type definitions for the deduction calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any

CENTS = Decimal("0.01")
ZERO = Decimal("0")


def round_to_cents(amount: Decimal) -> Decimal:
    """Round amount to 2 decimal places, half-up."""
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


class PayFrequency(str, Enum):
    """Pay frequencies and their periods per year."""

    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    SEMIMONTHLY = "semimonthly"
    MONTHLY = "monthly"


PERIODS_PER_YEAR: dict[str, int] = {
    PayFrequency.WEEKLY: 52,
    PayFrequency.BIWEEKLY: 26,
    PayFrequency.SEMIMONTHLY: 24,
    PayFrequency.MONTHLY: 12,
}


class PayType(str, Enum):
    """How an employee's pay rate is expressed."""

    SALARY = "salary"
    HOURLY = "hourly"


@dataclass(frozen=True)
class TaxBracket:
    """Marginal tax bracket covering [min_amount, max_amount)."""

    min_amount: Decimal
    max_amount: Decimal | None  # None = no upper limit
    rate: Decimal  # As decimal, e.g., 0.15 for 15%


@dataclass(frozen=True)
class ProvincialTable:
    """One province's bracket table for a tax year."""

    code: str
    name: str
    brackets: tuple[TaxBracket, ...]


@dataclass(frozen=True)
class CppRates:
    """Canada Pension Plan contribution parameters."""

    rate: Decimal
    max_pensionable_earnings: Decimal
    basic_exemption: Decimal


@dataclass(frozen=True)
class EiRates:
    """Employment Insurance premium parameters."""

    rate: Decimal
    max_insurable_earnings: Decimal
    employer_multiplier: Decimal = Decimal("1.4")


@dataclass(frozen=True)
class TaxYearTable:
    """Published federal/provincial brackets and CPP/EI parameters for a year."""

    year: int
    federal: tuple[TaxBracket, ...]
    provinces: dict[str, ProvincialTable]
    cpp: CppRates
    ei: EiRates

    @property
    def province_codes(self) -> list[str]:
        return sorted(self.provinces)


@dataclass
class FixedDeductions:
    """Employee-specific per-period deductions."""

    union_dues: Decimal = ZERO
    additional_tax_deduction: Decimal = ZERO
    health_benefits: Decimal = ZERO
    dental_benefits: Decimal = ZERO
    life_insurance: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return round_to_cents(
            self.union_dues
            + self.additional_tax_deduction
            + self.health_benefits
            + self.dental_benefits
            + self.life_insurance
        )


@dataclass(frozen=True)
class DeductionResult:
    """Itemized gross-to-net result for one pay period."""

    gross_pay: Decimal
    federal_tax: Decimal
    provincial_tax: Decimal
    cpp: Decimal
    ei: Decimal
    other_deductions: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    periods_per_year: int
    annualized_income: Decimal
    employer_contributions: Decimal = ZERO
    warnings: list[str] = field(default_factory=list)

    @property
    def income_tax(self) -> Decimal:
        return self.federal_tax + self.provincial_tax

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly dict with amounts as strings."""
        return {
            "gross_pay": str(self.gross_pay),
            "federal_tax": str(self.federal_tax),
            "provincial_tax": str(self.provincial_tax),
            "cpp": str(self.cpp),
            "ei": str(self.ei),
            "other_deductions": str(self.other_deductions),
            "total_deductions": str(self.total_deductions),
            "net_pay": str(self.net_pay),
            "employer_contributions": str(self.employer_contributions),
            "periods_per_year": self.periods_per_year,
            "annualized_income": str(self.annualized_income),
            "warnings": list(self.warnings),
        }
