"""ORM models for the payroll engine."""

from canpayroll.models.base import Base, TimestampMixin
from canpayroll.models.employee import Client, Employee, Tenant
from canpayroll.models.payroll import (
    AuditEvent,
    PayrollRun,
    PayrollRunEmployee,
    Paystub,
    T4Record,
    YtdBalance,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "Tenant",
    "Client",
    "Employee",
    "PayrollRun",
    "PayrollRunEmployee",
    "Paystub",
    "YtdBalance",
    "T4Record",
    "AuditEvent",
]
