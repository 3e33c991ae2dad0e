"""Pydantic schemas for payroll inputs and serialized records."""

from datetime import date, datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

PayType = Literal["salary", "hourly"]
PayFrequencyName = Literal["weekly", "biweekly", "semimonthly", "monthly"]
EmployeeStatus = Literal["active", "terminated", "on_leave"]

Money = Decimal


# ============================================================================
# Employee schemas
# ============================================================================


class EmployeeCreate(BaseModel):
    """Schema for creating an employee."""

    client_id: UUID
    employee_number: str = Field(min_length=1)
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: str | None = None
    province: str = Field(min_length=2, max_length=2)
    hire_date: date | None = None
    termination_date: date | None = None
    pay_type: PayType
    pay_rate: Money = Field(ge=0, allow_inf_nan=False)
    pay_frequency: PayFrequencyName
    federal_basic_personal_amount: Money = Field(default=Decimal("15000"), ge=0, allow_inf_nan=False)
    provincial_basic_personal_amount: Money = Field(default=Decimal("11141"), ge=0, allow_inf_nan=False)
    union_dues: Money = Field(default=Decimal("0"), ge=0, allow_inf_nan=False)
    additional_tax_deduction: Money = Field(default=Decimal("0"), ge=0, allow_inf_nan=False)
    health_benefits: Money = Field(default=Decimal("0"), ge=0, allow_inf_nan=False)
    dental_benefits: Money = Field(default=Decimal("0"), ge=0, allow_inf_nan=False)
    life_insurance: Money = Field(default=Decimal("0"), ge=0, allow_inf_nan=False)
    status: EmployeeStatus = "active"

    @field_validator("province")
    @classmethod
    def normalize_province(cls, v: str) -> str:
        return v.strip().upper()


class EmployeeUpdate(BaseModel):
    """Schema for HR updates; only provided fields change."""

    email: str | None = None
    province: str | None = Field(default=None, min_length=2, max_length=2)
    pay_type: PayType | None = None
    pay_rate: Money | None = Field(default=None, ge=0, allow_inf_nan=False)
    pay_frequency: PayFrequencyName | None = None
    federal_basic_personal_amount: Money | None = Field(default=None, ge=0, allow_inf_nan=False)
    provincial_basic_personal_amount: Money | None = Field(default=None, ge=0, allow_inf_nan=False)
    union_dues: Money | None = Field(default=None, ge=0, allow_inf_nan=False)
    additional_tax_deduction: Money | None = Field(default=None, ge=0, allow_inf_nan=False)
    health_benefits: Money | None = Field(default=None, ge=0, allow_inf_nan=False)
    dental_benefits: Money | None = Field(default=None, ge=0, allow_inf_nan=False)
    life_insurance: Money | None = Field(default=None, ge=0, allow_inf_nan=False)

    @field_validator("province")
    @classmethod
    def normalize_province(cls, v: str | None) -> str | None:
        return v.strip().upper() if v is not None else None


class EmployeeResponse(BaseModel):
    """Schema for employee response."""

    model_config = ConfigDict(from_attributes=True)

    employee_id: UUID
    client_id: UUID
    employee_number: str
    first_name: str
    last_name: str
    province: str
    pay_type: str
    pay_rate: Decimal
    pay_frequency: str
    status: str


# ============================================================================
# Pay period input
# ============================================================================


class PayPeriodInput(BaseModel):
    """Inputs for one employee's pay period."""

    client_id: UUID
    employee_id: UUID
    period_start: date
    period_end: date
    pay_date: date
    regular_hours: Decimal = Field(default=Decimal("0"), ge=0, allow_inf_nan=False)
    overtime_hours: Decimal = Field(default=Decimal("0"), ge=0, allow_inf_nan=False)
    vacation_pay: Money = Field(default=Decimal("0"), ge=0, allow_inf_nan=False)
    bonus: Money = Field(default=Decimal("0"), ge=0, allow_inf_nan=False)
    commission: Money = Field(default=Decimal("0"), ge=0, allow_inf_nan=False)
    reimbursements: Money = Field(default=Decimal("0"), ge=0, allow_inf_nan=False)
    # Overrides the stored running total; normally left unset.
    ytd_earnings: Money | None = Field(default=None, ge=0, allow_inf_nan=False)

    @model_validator(mode="after")
    def check_dates(self) -> "PayPeriodInput":
        if self.period_end < self.period_start:
            raise ValueError("period_end must not be before period_start")
        return self


# ============================================================================
# Output schemas
# ============================================================================


class PaystubResponse(BaseModel):
    """Schema for paystub response."""

    model_config = ConfigDict(from_attributes=True)

    paystub_id: UUID
    employee_id: UUID
    client_id: UUID
    payroll_run_id: UUID | None = None
    period_start: date
    period_end: date
    pay_date: date
    regular_hours: Decimal
    overtime_hours: Decimal
    gross_pay: Decimal
    federal_tax: Decimal
    provincial_tax: Decimal
    cpp: Decimal
    ei: Decimal
    other_deductions: Decimal
    net_pay: Decimal
    reimbursements: Decimal
    health_benefits: Decimal
    dental_benefits: Decimal
    life_insurance: Decimal
    ytd_earnings_before: Decimal


class PayrollRunResponse(BaseModel):
    """Schema for payroll run response."""

    model_config = ConfigDict(from_attributes=True)

    payroll_run_id: UUID
    client_id: UUID
    run_number: str
    period_start: date
    period_end: date
    pay_date: date
    status: str
    employee_count: int
    total_gross_pay: Decimal
    total_net_pay: Decimal
    total_deductions: Decimal
    total_employer_contributions: Decimal
    approved_at: datetime | None = None
    approved_by_user_id: UUID | None = None


class T4Response(BaseModel):
    """Schema for T4 slip response."""

    model_config = ConfigDict(from_attributes=True)

    t4_record_id: UUID
    employee_id: UUID
    client_id: UUID
    tax_year: int
    box14_employment_income: Decimal
    box16_cpp_contributions: Decimal
    box18_ei_premiums: Decimal
    box22_income_tax_deducted: Decimal
    status: str
    generated_at: datetime
