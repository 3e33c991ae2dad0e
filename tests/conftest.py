"""Pytest fixtures for payroll engine tests."""

from __future__ import annotations

from decimal import Decimal
from typing import AsyncGenerator
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from canpayroll.calculators.tax_tables import TaxTableProvider
from canpayroll.context import Role, TenantContext
from canpayroll.models import Base, Client, Employee, Tenant

# Use in-memory SQLite for tests (with async support)
# For row locking behaviour, use a test Postgres database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def engine():
    """Create a fresh test database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def session(engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def tables() -> TaxTableProvider:
    """Provider over the packaged tables with no provincial fallback."""
    return TaxTableProvider()


@pytest.fixture
async def test_tenant(session: AsyncSession) -> Tenant:
    """Create a test tenant."""
    tenant = Tenant(tenant_id=uuid4(), name="Maple Bookkeeping", status="active")
    session.add(tenant)
    await session.flush()
    return tenant


@pytest.fixture
def context(test_tenant: Tenant) -> TenantContext:
    return TenantContext(tenant_id=test_tenant.tenant_id, user_id=uuid4(), role=Role.FIRM_ADMIN)


@pytest.fixture
async def test_client(session: AsyncSession, test_tenant: Tenant) -> Client:
    """Create a test client company."""
    client = Client(client_id=uuid4(), tenant_id=test_tenant.tenant_id, name="Northwind Ltd")
    session.add(client)
    await session.flush()
    return client


def make_employee(tenant: Tenant, client: Client, **overrides) -> Employee:
    fields = {
        "employee_id": uuid4(),
        "tenant_id": tenant.tenant_id,
        "client_id": client.client_id,
        "employee_number": f"E{uuid4().hex[:6]}",
        "first_name": "Jane",
        "last_name": "Doe",
        "province": "ON",
        "pay_type": "salary",
        "pay_rate": Decimal("66600"),
        "pay_frequency": "biweekly",
        "federal_basic_personal_amount": Decimal("15000"),
        "provincial_basic_personal_amount": Decimal("11141"),
        "union_dues": Decimal("0"),
        "additional_tax_deduction": Decimal("0"),
        "health_benefits": Decimal("0"),
        "dental_benefits": Decimal("0"),
        "life_insurance": Decimal("0"),
        "status": "active",
    }
    fields.update(overrides)
    return Employee(**fields)


@pytest.fixture
async def salaried_employee(
    session: AsyncSession, test_tenant: Tenant, test_client: Client
) -> Employee:
    """Salaried Ontario employee at 66,600 paid biweekly."""
    employee = make_employee(test_tenant, test_client, employee_number="E001")
    session.add(employee)
    await session.flush()
    return employee


@pytest.fixture
async def hourly_employee(
    session: AsyncSession, test_tenant: Tenant, test_client: Client
) -> Employee:
    """Hourly Ontario employee at 25.00/h paid weekly."""
    employee = make_employee(
        test_tenant,
        test_client,
        employee_number="E002",
        first_name="Sam",
        last_name="Lee",
        pay_type="hourly",
        pay_rate=Decimal("25"),
        pay_frequency="weekly",
    )
    session.add(employee)
    await session.flush()
    return employee
