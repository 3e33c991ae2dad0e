"""Payroll run service - batches paystubs, rolls up totals and approves."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from canpayroll.calculators.tax_tables import TaxTableProvider
from canpayroll.calculators.types import ZERO, round_to_cents
from canpayroll.context import TenantContext
from canpayroll.exceptions import (
    AlreadyApprovedError,
    InvalidEmployeeDataError,
    InvalidPeriodError,
    InvalidTransitionError,
    NotFoundError,
    PayrollError,
)
from canpayroll.models import PayrollRun, PayrollRunEmployee, Paystub
from canpayroll.repositories import PayrollRepository, SqlPayrollRepository
from canpayroll.schemas import PayPeriodInput
from canpayroll.services.payroll_service import PayrollService
from canpayroll.services.state_machine import (
    MemberStatus,
    PayrollRunStateMachine,
    PayrollRunStatus,
)

logger = logging.getLogger(__name__)

RUN_NUMBER_PATTERN = re.compile(r"^PR-(\d{4})-(\d+)$")


def format_run_number(year: int, sequence: int) -> str:
    return f"PR-{year}-{sequence:04d}"


def next_run_number(year: int, existing: Sequence[str]) -> str:
    """Next run number for ``year`` given the tenant's existing numbers."""
    highest = 0
    for number in existing:
        match = RUN_NUMBER_PATTERN.match(number)
        if match and int(match.group(1)) == year:
            highest = max(highest, int(match.group(2)))
    return format_run_number(year, highest + 1)


@dataclass
class RunProcessingResult:
    """Outcome of processing every member of a run."""

    run: PayrollRun
    paystubs: list[Paystub] = field(default_factory=list)
    errors: dict[UUID, PayrollError] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return not self.errors


class PayrollRunService:
    """Service for managing payroll run lifecycle.

    Operations:
    - create_run: Fix run membership and assign a run number
    - process_run: Process payroll for every member, collecting failures
    - attach_paystub: Add an existing paystub and recompute totals
    - approve: Transition draft → approved (terminal)
    """

    def __init__(
        self,
        session: AsyncSession,
        context: TenantContext,
        tables: TaxTableProvider | None = None,
        repository: PayrollRepository | None = None,
    ):
        self.session = session
        self.context = context
        self.repo = repository or SqlPayrollRepository(session, context.tenant_id)
        self.payroll = PayrollService(session, context, tables, self.repo)

    async def create_run(
        self,
        client_id: UUID,
        period_start: date,
        period_end: date,
        pay_date: date,
        employee_ids: Sequence[UUID] | None = None,
    ) -> PayrollRun:
        """Create a draft run for the given employees, or all active ones."""
        if period_end < period_start:
            raise InvalidPeriodError(period_start, period_end)
        if await self.repo.get_client(client_id) is None:
            raise NotFoundError("Client", client_id)

        if employee_ids is None:
            members = [e.employee_id for e in await self.repo.list_employees(client_id, "active")]
        else:
            members = []
            for employee_id in dict.fromkeys(employee_ids):
                employee = await self.repo.get_employee(employee_id)
                if employee is None or employee.client_id != client_id:
                    raise NotFoundError("Employee", employee_id)
                members.append(employee_id)

        run_number = next_run_number(
            pay_date.year, await self.repo.run_numbers_for_year(pay_date.year)
        )
        run = await self.repo.add(
            PayrollRun(
                tenant_id=self.context.tenant_id,
                client_id=client_id,
                run_number=run_number,
                period_start=period_start,
                period_end=period_end,
                pay_date=pay_date,
                status=PayrollRunStatus.DRAFT.value,
                employee_count=len(members),
                total_gross_pay=ZERO,
                total_net_pay=ZERO,
                total_deductions=ZERO,
                total_employer_contributions=ZERO,
                created_by_user_id=self.context.user_id,
            )
        )
        for employee_id in members:
            self.session.add(
                PayrollRunEmployee(
                    payroll_run_id=run.payroll_run_id,
                    employee_id=employee_id,
                    status=MemberStatus.PENDING.value,
                )
            )

        await self.repo.record_audit(
            entity_type="payroll_run",
            entity_id=run.payroll_run_id,
            action="created",
            actor_user_id=self.context.user_id,
            details={"run_number": run_number, "employee_count": len(members)},
        )
        await self.session.flush()

        logger.info(
            "Created payroll run %s for client %s with %d employees",
            run_number,
            client_id,
            len(members),
        )
        return run

    async def get_run(self, run_id: UUID, for_update: bool = False) -> PayrollRun:
        run = await self.repo.get_run(run_id, for_update=for_update)
        if run is None:
            raise NotFoundError("PayrollRun", run_id)
        return run

    async def list_runs(self, client_id: UUID) -> list[PayrollRun]:
        return await self.repo.list_runs(client_id)

    async def list_run_paystubs(self, run_id: UUID) -> list[Paystub]:
        await self.get_run(run_id)
        return await self.repo.list_run_paystubs(run_id)

    async def list_members(self, run_id: UUID) -> list[PayrollRunEmployee]:
        await self.get_run(run_id)
        return await self.repo.list_run_members(run_id)

    async def process_run(
        self,
        run_id: UUID,
        inputs: Mapping[UUID, PayPeriodInput] | None = None,
    ) -> RunProcessingResult:
        """Process payroll for every pending or failed member of a draft run.

        Members without an explicit input are paid for the run's own period
        with no hours or extras, which suits salaried employees. A
        PayrollError for one employee marks that member as failed and
        processing continues with the next one.
        """
        run = await self.get_run(run_id, for_update=True)
        PayrollRunStateMachine.ensure_editable(run)

        inputs = dict(inputs or {})
        members = await self.repo.list_run_members(run_id)
        member_ids = {m.employee_id for m in members}
        for employee_id in inputs:
            if employee_id not in member_ids:
                raise NotFoundError("PayrollRunEmployee", employee_id)

        result = RunProcessingResult(run=run)
        for member in members:
            if member.status == MemberStatus.INCLUDED:
                continue

            period = inputs.get(member.employee_id) or PayPeriodInput(
                client_id=run.client_id,
                employee_id=member.employee_id,
                period_start=run.period_start,
                period_end=run.period_end,
                pay_date=run.pay_date,
            )
            try:
                if period.client_id != run.client_id:
                    raise InvalidEmployeeDataError(
                        "pay period input is for another client", member.employee_id, "client_id"
                    )
                paystub = await self.payroll.process_payroll(member.employee_id, period)
            except PayrollError as e:
                member.status = MemberStatus.ERROR.value
                member.error_code = e.code
                member.error_message = str(e)
                result.errors[member.employee_id] = e
                logger.warning(
                    "Payroll run %s: employee %s failed: %s",
                    run.run_number,
                    member.employee_id,
                    e,
                )
                continue

            paystub.payroll_run_id = run.payroll_run_id
            member.status = MemberStatus.INCLUDED.value
            member.error_code = None
            member.error_message = None
            result.paystubs.append(paystub)

        await self.session.flush()
        await self.recompute_totals(run)

        logger.info(
            "Processed payroll run %s: %d paystubs, %d errors",
            run.run_number,
            len(result.paystubs),
            len(result.errors),
        )
        return result

    async def attach_paystub(self, run_id: UUID, paystub_id: UUID) -> PayrollRun:
        """Attach a member's paystub to a draft run and refresh its totals.

        A paystub already attached to another run stays where it is:
        AlreadyApprovedError if that run is approved, InvalidTransitionError
        otherwise.
        """
        run = await self.get_run(run_id, for_update=True)
        PayrollRunStateMachine.ensure_editable(run)

        paystub = await self.repo.get_paystub(paystub_id)
        if paystub is None:
            raise NotFoundError("Paystub", paystub_id)
        if paystub.client_id != run.client_id:
            raise NotFoundError("Paystub", paystub_id)

        if paystub.payroll_run_id is not None and paystub.payroll_run_id != run.payroll_run_id:
            source = await self.get_run(paystub.payroll_run_id)
            if source.status == PayrollRunStatus.APPROVED:
                raise AlreadyApprovedError(source.payroll_run_id, source.run_number)
            raise InvalidTransitionError(
                run.status,
                run.status,
                f"paystub {paystub_id} is already attached to payroll run {source.run_number}",
            )

        member = next(
            (m for m in await self.repo.list_run_members(run_id) if m.employee_id == paystub.employee_id),
            None,
        )
        if member is None:
            raise NotFoundError("PayrollRunEmployee", paystub.employee_id)

        paystub.payroll_run_id = run.payroll_run_id
        member.status = MemberStatus.INCLUDED.value
        member.error_code = None
        member.error_message = None
        await self.session.flush()
        return await self.recompute_totals(run)

    async def recompute_totals(self, run: PayrollRun) -> PayrollRun:
        """Recompute run totals from the paystubs attached to it."""
        paystubs = await self.repo.list_run_paystubs(run.payroll_run_id)

        run.total_gross_pay = round_to_cents(sum((p.gross_pay for p in paystubs), ZERO))
        run.total_net_pay = round_to_cents(sum((p.net_pay for p in paystubs), ZERO))
        run.total_deductions = round_to_cents(
            sum((p.total_deductions for p in paystubs), ZERO)
        )
        run.total_employer_contributions = round_to_cents(
            sum((p.employer_contributions for p in paystubs), ZERO)
        )
        await self.session.flush()
        return run

    async def approve(self, run_id: UUID, approver_id: UUID | None = None) -> PayrollRun:
        """Approve a draft run.

        Raises AlreadyApprovedError, leaving the run untouched, when the run
        was approved before.
        """
        run = await self.get_run(run_id, for_update=True)
        PayrollRunStateMachine.validate_transition(run, PayrollRunStatus.APPROVED)

        approver_id = approver_id or self.context.user_id
        run.status = PayrollRunStatus.APPROVED.value
        run.approved_at = datetime.now(timezone.utc)
        run.approved_by_user_id = approver_id

        await self.repo.record_audit(
            entity_type="payroll_run",
            entity_id=run.payroll_run_id,
            action="status_change:draft:approved",
            actor_user_id=approver_id,
            details={"run_number": run.run_number},
        )
        await self.session.flush()

        logger.info("Approved payroll run %s", run.run_number)
        return run
