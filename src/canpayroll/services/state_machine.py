"""Payroll run state machine with transition validation."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from canpayroll.exceptions import AlreadyApprovedError, InvalidTransitionError

if TYPE_CHECKING:
    from canpayroll.models import PayrollRun


class PayrollRunStatus(str, Enum):
    """Payroll run status values."""

    DRAFT = "draft"
    APPROVED = "approved"


class MemberStatus(str, Enum):
    """Per-employee status within a run."""

    PENDING = "pending"
    INCLUDED = "included"
    ERROR = "error"


class PayrollRunStateMachine:
    """State machine for payroll run status transitions.

    Allowed transitions:
    - draft → approved

    Approved is terminal: paystubs can no longer be attached and a second
    approval is rejected rather than repeated.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PayrollRunStatus.DRAFT: [PayrollRunStatus.APPROVED],
        PayrollRunStatus.APPROVED: [],
    }

    # Statuses where paystubs may be attached and totals recomputed
    EDITABLE = {PayrollRunStatus.DRAFT}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def is_editable(cls, status: str) -> bool:
        return status in cls.EDITABLE

    @classmethod
    def validate_transition(cls, run: PayrollRun, to_status: str) -> None:
        """Validate a transition, raising if it is not allowed."""
        if run.status == PayrollRunStatus.APPROVED:
            raise AlreadyApprovedError(run.payroll_run_id, run.run_number)
        if not cls.can_transition(run.status, to_status):
            raise InvalidTransitionError(run.status, to_status)

    @classmethod
    def ensure_editable(cls, run: PayrollRun) -> None:
        """Raise if the run no longer accepts paystubs."""
        if run.status == PayrollRunStatus.APPROVED:
            raise AlreadyApprovedError(run.payroll_run_id, run.run_number)
        if not cls.is_editable(run.status):
            raise InvalidTransitionError(run.status, run.status, "run is not editable")
