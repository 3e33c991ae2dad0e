"""Tests for input validation and ORM serialization schemas."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from pydantic import ValidationError

from canpayroll.schemas import (
    EmployeeResponse,
    PayPeriodInput,
    PayrollRunResponse,
    PaystubResponse,
    T4Response,
)
from canpayroll.services import PayrollRunService, PayrollService, T4Service


class TestPayPeriodInput:
    def test_end_before_start_rejected(self):
        with pytest.raises(ValidationError):
            PayPeriodInput(
                client_id=uuid4(),
                employee_id=uuid4(),
                period_start=date(2024, 1, 14),
                period_end=date(2024, 1, 1),
                pay_date=date(2024, 1, 19),
            )

    def test_negative_hours_rejected(self):
        with pytest.raises(ValidationError):
            PayPeriodInput(
                client_id=uuid4(),
                employee_id=uuid4(),
                period_start=date(2024, 1, 1),
                period_end=date(2024, 1, 14),
                pay_date=date(2024, 1, 19),
                regular_hours=Decimal("-1"),
            )


async def test_records_serialize(session, context, tables, test_client, salaried_employee):
    runs = PayrollRunService(session, context, tables)
    run = await runs.create_run(test_client.client_id, date(2024, 1, 1), date(2024, 1, 14), date(2024, 1, 19))
    result = await runs.process_run(run.payroll_run_id)
    t4 = await T4Service(session, context).generate_t4(salaried_employee.employee_id, 2024)

    employee = EmployeeResponse.model_validate(salaried_employee)
    stub = PaystubResponse.model_validate(result.paystubs[0])
    run_out = PayrollRunResponse.model_validate(run)
    t4_out = T4Response.model_validate(t4)

    assert employee.province == "ON"
    assert stub.payroll_run_id == run.payroll_run_id
    assert stub.net_pay == Decimal("2104.56")
    assert run_out.run_number == "PR-2024-0001"
    assert run_out.total_gross_pay == Decimal("2561.54")
    assert t4_out.box14_employment_income == Decimal("2561.54")
    assert "net_pay" in stub.model_dump(mode="json")


async def test_paystub_ytd_before_serializes(session, context, tables, salaried_employee):
    stub = await PayrollService(session, context, tables).process_payroll(
        salaried_employee.employee_id,
        PayPeriodInput(
            client_id=salaried_employee.client_id,
            employee_id=salaried_employee.employee_id,
            period_start=date(2024, 1, 1),
            period_end=date(2024, 1, 14),
            pay_date=date(2024, 1, 19),
            ytd_earnings=Decimal("1000"),
        ),
    )

    assert PaystubResponse.model_validate(stub).ytd_earnings_before == Decimal("1000")
