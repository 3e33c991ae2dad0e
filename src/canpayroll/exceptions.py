"""Typed exceptions raised by the payroll engine.

Every exception carries a machine-readable ``code`` plus the structured data
that caused it, so callers (for example an HTTP layer) can map failures to
responses without parsing messages:

    PayrollError
    ├── TaxTableError
    │   ├── UnsupportedYearError
    │   └── UnsupportedProvinceError
    ├── InvalidFrequencyError
    ├── InvalidEmployeeDataError
    ├── InvalidPeriodError
    ├── NotFoundError
    └── InvalidTransitionError
        └── AlreadyApprovedError

All of them are deterministic: retrying with the same inputs fails the same way.
"""

from __future__ import annotations

from datetime import date
from typing import Any
from uuid import UUID


class PayrollError(Exception):
    """Base class for payroll engine errors."""

    code: str = "PAYROLL_ERROR"

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": str(self)}


class TaxTableError(PayrollError):
    """Raised when a tax table is missing or malformed."""

    code = "TAX_TABLE_ERROR"


class UnsupportedYearError(TaxTableError):
    """Raised when no tax table is published for a year."""

    code = "UNSUPPORTED_YEAR"

    def __init__(self, year: int):
        self.year = year
        super().__init__(f"No tax table published for {year}")


class UnsupportedProvinceError(TaxTableError):
    """Raised when a year's table has no brackets for a province."""

    code = "UNSUPPORTED_PROVINCE"

    def __init__(self, province: str, year: int):
        self.province = province
        self.year = year
        super().__init__(f"No provincial tax table for '{province}' in {year}")


class InvalidFrequencyError(PayrollError):
    """Raised for an unrecognized pay frequency."""

    code = "INVALID_FREQUENCY"

    def __init__(self, frequency: Any):
        self.frequency = frequency
        super().__init__(f"Invalid pay frequency: {frequency!r}")


class InvalidEmployeeDataError(PayrollError):
    """Raised when employee data cannot be used for a calculation."""

    code = "INVALID_EMPLOYEE_DATA"

    def __init__(
        self,
        reason: str,
        employee_id: UUID | None = None,
        field: str | None = None,
    ):
        self.reason = reason
        self.employee_id = employee_id
        self.field = field
        msg = "Invalid employee data"
        if employee_id is not None:
            msg += f" for employee {employee_id}"
        if field:
            msg += f" ({field})"
        super().__init__(f"{msg}: {reason}")


class InvalidPeriodError(PayrollError):
    """Raised when a pay period ends before it starts."""

    code = "INVALID_PERIOD"

    def __init__(self, period_start: date, period_end: date):
        self.period_start = period_start
        self.period_end = period_end
        super().__init__(f"Pay period ends ({period_end}) before it starts ({period_start})")


class NotFoundError(PayrollError):
    """Raised when an employee, client, run or paystub does not exist."""

    code = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: Any):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} {entity_id} not found")


class InvalidTransitionError(PayrollError):
    """Raised when an invalid run state transition is attempted."""

    code = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class AlreadyApprovedError(InvalidTransitionError):
    """Raised when a payroll run is approved (or edited) after approval."""

    code = "ALREADY_APPROVED"

    def __init__(self, run_id: UUID, run_number: str | None = None):
        self.run_id = run_id
        self.run_number = run_number
        super().__init__(
            "approved",
            "approved",
            f"payroll run {run_number or run_id} is already approved",
        )
