"""Payroll services."""

from canpayroll.services.employee_service import EmployeeService
from canpayroll.services.payroll_run_service import PayrollRunService, RunProcessingResult
from canpayroll.services.payroll_service import PayrollService
from canpayroll.services.state_machine import (
    MemberStatus,
    PayrollRunStateMachine,
    PayrollRunStatus,
)
from canpayroll.services.t4_service import T4Service

__all__ = [
    "EmployeeService",
    "MemberStatus",
    "PayrollRunService",
    "PayrollRunStateMachine",
    "PayrollRunStatus",
    "PayrollService",
    "RunProcessingResult",
    "T4Service",
]
