"""Tests for the employee store."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from canpayroll.context import TenantContext
from canpayroll.exceptions import InvalidEmployeeDataError, NotFoundError
from canpayroll.models import Tenant
from canpayroll.services import EmployeeService


def _employee_data(client_id, **overrides):
    data = {
        "client_id": client_id,
        "employee_number": "E100",
        "first_name": "Alex",
        "last_name": "Martin",
        "province": "on",
        "pay_type": "salary",
        "pay_rate": "60000",
        "pay_frequency": "semimonthly",
    }
    data.update(overrides)
    return data


class TestCreateEmployee:
    async def test_create_with_defaults(self, session, context, test_client):
        service = EmployeeService(session, context)

        employee = await service.create_employee(_employee_data(test_client.client_id))

        assert employee.tenant_id == context.tenant_id
        assert employee.province == "ON"
        assert employee.pay_rate == Decimal("60000")
        assert employee.federal_basic_personal_amount == Decimal("15000")
        assert employee.provincial_basic_personal_amount == Decimal("11141")
        assert employee.status == "active"

    async def test_negative_deduction_rejected(self, session, context, test_client):
        service = EmployeeService(session, context)

        with pytest.raises(InvalidEmployeeDataError) as exc_info:
            await service.create_employee(
                _employee_data(test_client.client_id, union_dues="-5")
            )

        assert exc_info.value.field == "union_dues"

    async def test_non_numeric_rate_rejected(self, session, context, test_client):
        service = EmployeeService(session, context)

        with pytest.raises(InvalidEmployeeDataError):
            await service.create_employee(
                _employee_data(test_client.client_id, pay_rate="lots")
            )

    async def test_nan_rejected(self, session, context, test_client):
        service = EmployeeService(session, context)

        with pytest.raises(InvalidEmployeeDataError):
            await service.create_employee(
                _employee_data(test_client.client_id, health_benefits="NaN")
            )

    async def test_unknown_frequency_rejected(self, session, context, test_client):
        service = EmployeeService(session, context)

        with pytest.raises(InvalidEmployeeDataError):
            await service.create_employee(
                _employee_data(test_client.client_id, pay_frequency="daily")
            )

    async def test_unknown_client(self, session, context):
        service = EmployeeService(session, context)

        with pytest.raises(NotFoundError):
            await service.create_employee(_employee_data(uuid4()))


class TestEmployeeLookup:
    async def test_get_unknown_employee(self, session, context):
        with pytest.raises(NotFoundError):
            await EmployeeService(session, context).get_employee(uuid4())

    async def test_other_tenant_cannot_see_employee(self, session, salaried_employee):
        other = Tenant(tenant_id=uuid4(), name="Other Firm")
        session.add(other)
        await session.flush()

        service = EmployeeService(session, TenantContext(tenant_id=other.tenant_id))
        with pytest.raises(NotFoundError):
            await service.get_employee(salaried_employee.employee_id)

    async def test_list_active_only(self, session, context, test_client, salaried_employee, hourly_employee):
        service = EmployeeService(session, context)
        await service.set_status(hourly_employee.employee_id, "terminated", date(2024, 3, 1))

        everyone = await service.list_employees(test_client.client_id)
        active = await service.list_employees(test_client.client_id, active_only=True)

        assert len(everyone) == 2
        assert [e.employee_id for e in active] == [salaried_employee.employee_id]


class TestEmployeeUpdates:
    async def test_update_withholding(self, session, context, salaried_employee):
        service = EmployeeService(session, context)

        employee = await service.update_employee(
            salaried_employee.employee_id,
            {"union_dues": "12.50", "province": "bc"},
        )

        assert employee.union_dues == Decimal("12.50")
        assert employee.province == "BC"
        assert employee.pay_rate == Decimal("66600")

    async def test_update_rejects_negative(self, session, context, salaried_employee):
        with pytest.raises(InvalidEmployeeDataError):
            await EmployeeService(session, context).update_employee(
                salaried_employee.employee_id, {"pay_rate": "-1"}
            )

    async def test_terminate_sets_date(self, session, context, salaried_employee):
        employee = await EmployeeService(session, context).set_status(
            salaried_employee.employee_id, "terminated", date(2024, 6, 30)
        )

        assert employee.status == "terminated"
        assert employee.termination_date == date(2024, 6, 30)

    async def test_unknown_status(self, session, context, salaried_employee):
        with pytest.raises(InvalidEmployeeDataError):
            await EmployeeService(session, context).set_status(
                salaried_employee.employee_id, "retired"
            )
