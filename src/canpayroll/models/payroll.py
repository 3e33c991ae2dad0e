"""Payroll run, paystub, year-to-date and T4 models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from canpayroll.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from canpayroll.models.employee import Employee

ZERO = Decimal("0")


# ===== Payroll Run =====


class PayrollRun(Base, TimestampMixin):
    """Batch of paystubs for one client sharing a pay period and pay date."""

    __tablename__ = "payroll_run"

    payroll_run_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        ForeignKey("tenant.tenant_id", ondelete="CASCADE"),
        nullable=False,
    )
    client_id: Mapped[UUID] = mapped_column(
        ForeignKey("client.client_id", ondelete="RESTRICT"),
        nullable=False,
    )
    run_number: Mapped[str] = mapped_column(String, nullable=False)
    period_start: Mapped[date] = mapped_column(nullable=False)
    period_end: Mapped[date] = mapped_column(nullable=False)
    pay_date: Mapped[date] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
    employee_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    total_gross_pay: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    total_net_pay: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    total_deductions: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    total_employer_contributions: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)

    created_by_user_id: Mapped[UUID | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_by_user_id: Mapped[UUID | None] = mapped_column(nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "run_number", name="payroll_run_tenant_number_unique"),
        CheckConstraint("status IN ('draft', 'approved')", name="payroll_run_status_check"),
        CheckConstraint("period_end >= period_start", name="payroll_run_dates_check"),
    )

    members: Mapped[list[PayrollRunEmployee]] = relationship(
        back_populates="payroll_run",
        order_by="PayrollRunEmployee.created_at",
    )
    paystubs: Mapped[list[Paystub]] = relationship(back_populates="payroll_run")


class PayrollRunEmployee(Base, TimestampMixin):
    """Employee membership in a payroll run, fixed at creation."""

    __tablename__ = "payroll_run_employee"

    payroll_run_employee_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    payroll_run_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_run.payroll_run_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="RESTRICT"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(String, nullable=False, default="pending")
    error_code: Mapped[str | None] = mapped_column(String, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("payroll_run_id", "employee_id", name="payroll_run_employee_unique"),
        CheckConstraint(
            "status IN ('pending', 'included', 'error')",
            name="payroll_run_employee_status_check",
        ),
    )

    payroll_run: Mapped[PayrollRun] = relationship(back_populates="members")


# ===== Paystub =====


class Paystub(Base, TimestampMixin):
    """Computed pay for one employee and one pay period.

    Amounts are immutable once created; only ``payroll_run_id`` may be set
    afterwards, when the paystub is attached to a run. Corrections are new
    paystubs.
    """

    __tablename__ = "paystub"

    paystub_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        ForeignKey("tenant.tenant_id", ondelete="CASCADE"),
        nullable=False,
    )
    client_id: Mapped[UUID] = mapped_column(
        ForeignKey("client.client_id", ondelete="RESTRICT"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="RESTRICT"),
        nullable=False,
    )
    payroll_run_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("payroll_run.payroll_run_id", ondelete="SET NULL"),
        nullable=True,
    )

    period_start: Mapped[date] = mapped_column(nullable=False)
    period_end: Mapped[date] = mapped_column(nullable=False)
    pay_date: Mapped[date] = mapped_column(nullable=False)
    regular_hours: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=ZERO)
    overtime_hours: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=ZERO)

    gross_pay: Mapped[Decimal] = mapped_column(nullable=False)
    federal_tax: Mapped[Decimal] = mapped_column(nullable=False)
    provincial_tax: Mapped[Decimal] = mapped_column(nullable=False)
    cpp: Mapped[Decimal] = mapped_column(nullable=False)
    ei: Mapped[Decimal] = mapped_column(nullable=False)
    other_deductions: Mapped[Decimal] = mapped_column(nullable=False)
    net_pay: Mapped[Decimal] = mapped_column(nullable=False)
    employer_contributions: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)

    union_dues: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    additional_tax_deduction: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    health_benefits: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    dental_benefits: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    life_insurance: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)

    reimbursements: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    ytd_earnings_before: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    engine_version: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = (
        CheckConstraint("period_end >= period_start", name="paystub_dates_check"),
    )

    employee: Mapped[Employee] = relationship(back_populates="paystubs")
    payroll_run: Mapped[PayrollRun | None] = relationship(back_populates="paystubs")

    @property
    def total_deductions(self) -> Decimal:
        return (
            self.federal_tax
            + self.provincial_tax
            + self.cpp
            + self.ei
            + self.other_deductions
        )

    @property
    def amount_payable(self) -> Decimal:
        """Net pay plus the non-taxable reimbursement line."""
        return self.net_pay + self.reimbursements


# ===== Year-to-date =====


class YtdBalance(Base, TimestampMixin):
    """Per-employee running totals for a tax year.

    Advanced in the same transaction that persists each paystub so the next
    period's CPP/EI calculation sees true cumulative earnings.
    """

    __tablename__ = "ytd_balance"

    ytd_balance_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        ForeignKey("tenant.tenant_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="RESTRICT"),
        nullable=False,
    )
    tax_year: Mapped[int] = mapped_column(Integer, nullable=False)
    gross_earnings: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    cpp: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    ei: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    income_tax: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    last_pay_date: Mapped[date | None] = mapped_column(nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "employee_id", "tax_year", name="ytd_balance_unique"),
    )


# ===== T4 =====


class T4Record(Base, TimestampMixin):
    """Year-end T4 slip summary; regenerated in place."""

    __tablename__ = "t4_record"

    t4_record_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        ForeignKey("tenant.tenant_id", ondelete="CASCADE"),
        nullable=False,
    )
    client_id: Mapped[UUID] = mapped_column(
        ForeignKey("client.client_id", ondelete="RESTRICT"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employee.employee_id", ondelete="RESTRICT"),
        nullable=False,
    )
    tax_year: Mapped[int] = mapped_column(Integer, nullable=False)
    box14_employment_income: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    box16_cpp_contributions: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    box18_ei_premiums: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    box22_income_tax_deducted: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    paystub_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String, nullable=False, default="draft")
    generated_at: Mapped[datetime] = mapped_column(nullable=False)

    __table_args__ = (
        UniqueConstraint("tenant_id", "employee_id", "tax_year", name="t4_record_unique"),
        CheckConstraint("status IN ('draft', 'final')", name="t4_record_status_check"),
    )

    def boxes(self) -> dict[str, Decimal]:
        return {
            "box14_employment_income": self.box14_employment_income,
            "box16_cpp_contributions": self.box16_cpp_contributions,
            "box18_ei_premiums": self.box18_ei_premiums,
            "box22_income_tax_deducted": self.box22_income_tax_deducted,
        }


# ===== Audit =====


class AuditEvent(Base, TimestampMixin):
    """Audit trail entry."""

    __tablename__ = "audit_event"

    audit_event_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        ForeignKey("tenant.tenant_id", ondelete="CASCADE"),
        nullable=False,
    )
    actor_user_id: Mapped[UUID | None] = mapped_column(nullable=True)
    entity_type: Mapped[str] = mapped_column(String, nullable=False)
    entity_id: Mapped[UUID] = mapped_column(nullable=False)
    action: Mapped[str] = mapped_column(String, nullable=False)
    details_json: Mapped[dict[str, Any] | None] = mapped_column(nullable=True)
