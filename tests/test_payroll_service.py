"""Tests for per-employee payroll processing."""

import logging
from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from canpayroll.exceptions import (
    InvalidEmployeeDataError,
    NotFoundError,
    UnsupportedProvinceError,
    UnsupportedYearError,
)
from canpayroll.models import Client, Paystub, YtdBalance
from canpayroll.repositories import SqlPayrollRepository
from canpayroll.schemas import PayPeriodInput
from canpayroll.services import PayrollService


def _period(employee, start, end, pay_date, **extra) -> PayPeriodInput:
    return PayPeriodInput(
        client_id=employee.client_id,
        employee_id=employee.employee_id,
        period_start=start,
        period_end=end,
        pay_date=pay_date,
        **extra,
    )


FIRST = (date(2024, 1, 1), date(2024, 1, 14), date(2024, 1, 19))
SECOND = (date(2024, 1, 15), date(2024, 1, 28), date(2024, 2, 2))


async def _paystub_count(session) -> int:
    return (await session.execute(select(func.count()).select_from(Paystub))).scalar_one()


class TestProcessPayroll:
    async def test_first_period_salaried(self, session, context, tables, salaried_employee):
        service = PayrollService(session, context, tables)

        stub = await service.process_payroll(
            salaried_employee.employee_id, _period(salaried_employee, *FIRST)
        )

        assert stub.gross_pay == Decimal("2561.54")
        assert stub.federal_tax == Decimal("297.69")
        assert stub.provincial_tax == Decimal("117.54")
        assert stub.cpp == Decimal("0")
        assert stub.ei == Decimal("41.75")
        assert stub.net_pay == Decimal("2104.56")
        assert stub.ytd_earnings_before == Decimal("0")
        assert stub.payroll_run_id is None
        assert stub.engine_version

    async def test_ytd_threads_between_periods(self, session, context, tables, salaried_employee):
        service = PayrollService(session, context, tables)

        await service.process_payroll(salaried_employee.employee_id, _period(salaried_employee, *FIRST))
        second = await service.process_payroll(
            salaried_employee.employee_id, _period(salaried_employee, *SECOND)
        )

        assert second.ytd_earnings_before == Decimal("2561.54")
        # (5123.08 - 3500) * 0.0595
        assert second.cpp == Decimal("96.57")

        ytd = await SqlPayrollRepository(session, context.tenant_id).get_ytd(
            salaried_employee.employee_id, 2024
        )
        assert ytd.gross_earnings == Decimal("5123.08")
        assert ytd.cpp == Decimal("96.57")
        assert ytd.ei == Decimal("83.50")
        assert ytd.last_pay_date == date(2024, 2, 2)

    async def test_explicit_ytd_override(self, session, context, tables, salaried_employee):
        service = PayrollService(session, context, tables)

        stub = await service.process_payroll(
            salaried_employee.employee_id,
            _period(salaried_employee, *FIRST, ytd_earnings=Decimal("70000")),
        )

        assert stub.cpp == Decimal("0")
        assert stub.ei == Decimal("0")

    async def test_tax_year_follows_pay_date(self, session, context, tables, salaried_employee):
        service = PayrollService(session, context, tables)
        await service.process_payroll(
            salaried_employee.employee_id,
            _period(salaried_employee, date(2024, 12, 16), date(2024, 12, 29), date(2024, 12, 31)),
        )

        with pytest.raises(UnsupportedYearError):
            await service.process_payroll(
                salaried_employee.employee_id,
                _period(salaried_employee, date(2024, 12, 30), date(2025, 1, 12), date(2025, 1, 17)),
            )

    async def test_hourly_with_overtime_and_reimbursement(self, session, context, tables, hourly_employee):
        service = PayrollService(session, context, tables)

        stub = await service.process_payroll(
            hourly_employee.employee_id,
            _period(
                hourly_employee,
                date(2024, 3, 4),
                date(2024, 3, 10),
                date(2024, 3, 15),
                regular_hours=Decimal("40"),
                overtime_hours=Decimal("4"),
                reimbursements=Decimal("35.00"),
            ),
        )

        # 40*25 + 4*25*1.5; reimbursements stay out of gross
        assert stub.gross_pay == Decimal("1150.00")
        assert stub.reimbursements == Decimal("35.00")
        assert stub.amount_payable == stub.net_pay + Decimal("35.00")

    async def test_fixed_deductions_reduce_net(self, session, context, tables, salaried_employee):
        salaried_employee.union_dues = Decimal("20")
        salaried_employee.health_benefits = Decimal("15.50")
        await session.flush()
        service = PayrollService(session, context, tables)

        stub = await service.process_payroll(
            salaried_employee.employee_id, _period(salaried_employee, *FIRST)
        )

        assert stub.other_deductions == Decimal("35.50")
        assert stub.union_dues == Decimal("20")
        assert stub.net_pay == Decimal("2069.06")

    async def test_out_of_order_pay_date_warns(self, session, context, tables, salaried_employee, caplog):
        service = PayrollService(session, context, tables)
        await service.process_payroll(salaried_employee.employee_id, _period(salaried_employee, *SECOND))

        with caplog.at_level(logging.WARNING, logger="canpayroll.services.payroll_service"):
            await service.process_payroll(
                salaried_employee.employee_id, _period(salaried_employee, *FIRST)
            )

        assert "precedes last processed pay date" in caplog.text


class TestProcessPayrollFailures:
    async def test_unknown_employee(self, session, context, tables, test_client):
        employee_id = uuid4()
        period = PayPeriodInput(
            client_id=test_client.client_id,
            employee_id=employee_id,
            period_start=FIRST[0],
            period_end=FIRST[1],
            pay_date=FIRST[2],
        )

        with pytest.raises(NotFoundError):
            await PayrollService(session, context, tables).process_payroll(employee_id, period)

    async def test_employee_of_another_client(self, session, context, tables, test_tenant, salaried_employee):
        other = Client(client_id=uuid4(), tenant_id=test_tenant.tenant_id, name="Other Client")
        session.add(other)
        await session.flush()

        period = PayPeriodInput(
            client_id=other.client_id,
            employee_id=salaried_employee.employee_id,
            period_start=FIRST[0],
            period_end=FIRST[1],
            pay_date=FIRST[2],
        )
        with pytest.raises(NotFoundError):
            await PayrollService(session, context, tables).process_payroll(
                salaried_employee.employee_id, period
            )

        assert await _paystub_count(session) == 0

    @pytest.mark.parametrize("bad_value", ["abc", Decimal("NaN"), Decimal("-10"), None])
    async def test_malformed_deduction_field(self, session, context, tables, salaried_employee, bad_value):
        # Simulates a bad value in the employee store; never flushed
        salaried_employee.dental_benefits = bad_value

        with pytest.raises(InvalidEmployeeDataError) as exc_info:
            await PayrollService(session, context, tables).process_payroll(
                salaried_employee.employee_id, _period(salaried_employee, *FIRST)
            )

        assert exc_info.value.field == "dental_benefits"
        assert exc_info.value.employee_id == salaried_employee.employee_id

    async def test_unknown_pay_type(self, session, context, tables, salaried_employee):
        salaried_employee.pay_type = "piecework"

        with pytest.raises(InvalidEmployeeDataError):
            await PayrollService(session, context, tables).process_payroll(
                salaried_employee.employee_id, _period(salaried_employee, *FIRST)
            )

    async def test_unsupported_province_writes_nothing(self, session, context, tables, salaried_employee):
        salaried_employee.province = "QC"
        await session.flush()

        with pytest.raises(UnsupportedProvinceError):
            await PayrollService(session, context, tables).process_payroll(
                salaried_employee.employee_id, _period(salaried_employee, *FIRST)
            )

        assert await _paystub_count(session) == 0
        ytd_rows = (await session.execute(select(func.count()).select_from(YtdBalance))).scalar_one()
        assert ytd_rows == 0

    async def test_input_for_other_employee(self, session, context, tables, salaried_employee, hourly_employee):
        with pytest.raises(InvalidEmployeeDataError):
            await PayrollService(session, context, tables).process_payroll(
                salaried_employee.employee_id, _period(hourly_employee, *FIRST)
            )


class TestPreview:
    async def test_preview_persists_nothing(self, session, context, tables, salaried_employee):
        service = PayrollService(session, context, tables)

        result = await service.preview(
            salaried_employee.employee_id,
            salaried_employee.client_id,
            Decimal("2561.54"),
            tax_year=2024,
        )

        assert result.net_pay == Decimal("2104.56")
        assert await _paystub_count(session) == 0

    async def test_preview_province_override(self, session, context, tables, salaried_employee):
        with pytest.raises(UnsupportedProvinceError):
            await PayrollService(session, context, tables).preview(
                salaried_employee.employee_id,
                salaried_employee.client_id,
                Decimal("1000"),
                province="mb",
                tax_year=2024,
            )

    async def test_preview_unknown_employee(self, session, context, tables, test_client):
        with pytest.raises(NotFoundError):
            await PayrollService(session, context, tables).preview(
                uuid4(), test_client.client_id, Decimal("1000"), tax_year=2024
            )
