"""Statutory deduction calculators."""

from canpayroll.calculators.deductions import (
    PayrollDeductionCalculator,
    calculate_gross_pay,
    compute_deductions,
    periods_per_year,
)
from canpayroll.calculators.statutory import (
    calculate_bracket_tax,
    calculate_cpp,
    calculate_ei,
    calculate_federal_tax,
    calculate_provincial_tax,
)
from canpayroll.calculators.tax_tables import TaxTableProvider, get_tax_table_provider
from canpayroll.calculators.types import DeductionResult, TaxYearTable

__all__ = [
    "PayrollDeductionCalculator",
    "calculate_gross_pay",
    "compute_deductions",
    "periods_per_year",
    "calculate_bracket_tax",
    "calculate_cpp",
    "calculate_ei",
    "calculate_federal_tax",
    "calculate_provincial_tax",
    "TaxTableProvider",
    "get_tax_table_provider",
    "DeductionResult",
    "TaxYearTable",
]
