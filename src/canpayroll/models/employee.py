"""Firm, client and employee models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from canpayroll.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from canpayroll.models.payroll import Paystub


class Tenant(Base, TimestampMixin):
    """Accounting firm owning clients and their payroll data."""

    __tablename__ = "tenant"

    tenant_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(String, nullable=False, default="active")

    clients: Mapped[list[Client]] = relationship(back_populates="tenant")


class Client(Base, TimestampMixin):
    """Client of the firm whose employees are paid through payroll."""

    __tablename__ = "client"

    client_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        ForeignKey("tenant.tenant_id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String, nullable=False)

    tenant: Mapped[Tenant] = relationship(back_populates="clients")
    employees: Mapped[list[Employee]] = relationship(back_populates="client")


class Employee(Base, TimestampMixin):
    """Employee record with pay and withholding settings."""

    __tablename__ = "employee"

    employee_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    tenant_id: Mapped[UUID] = mapped_column(
        ForeignKey("tenant.tenant_id", ondelete="CASCADE"),
        nullable=False,
    )
    client_id: Mapped[UUID] = mapped_column(
        ForeignKey("client.client_id", ondelete="RESTRICT"),
        nullable=False,
    )
    employee_number: Mapped[str] = mapped_column(String, nullable=False)
    first_name: Mapped[str] = mapped_column(String, nullable=False)
    last_name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str | None] = mapped_column(String, nullable=True)
    province: Mapped[str] = mapped_column(String(2), nullable=False)
    hire_date: Mapped[date | None] = mapped_column(nullable=True)
    termination_date: Mapped[date | None] = mapped_column(nullable=True)

    pay_type: Mapped[str] = mapped_column(String, nullable=False)
    pay_rate: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)
    pay_frequency: Mapped[str] = mapped_column(String, nullable=False)

    federal_basic_personal_amount: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("15000")
    )
    provincial_basic_personal_amount: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("11141")
    )

    union_dues: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    additional_tax_deduction: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    health_benefits: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    dental_benefits: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    life_insurance: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    status: Mapped[str] = mapped_column(String, nullable=False, default="active")

    __table_args__ = (
        UniqueConstraint("tenant_id", "employee_number", name="employee_tenant_number_unique"),
        CheckConstraint(
            "status IN ('active', 'terminated', 'on_leave')",
            name="employee_status_check",
        ),
        CheckConstraint("pay_type IN ('salary', 'hourly')", name="employee_pay_type_check"),
    )

    client: Mapped[Client] = relationship(back_populates="employees")
    paystubs: Mapped[list[Paystub]] = relationship(back_populates="employee")

    FIXED_DEDUCTION_FIELDS = (
        "union_dues",
        "additional_tax_deduction",
        "health_benefits",
        "dental_benefits",
        "life_insurance",
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

