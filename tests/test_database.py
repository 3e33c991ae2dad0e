"""Tests for engine and session management."""

from uuid import uuid4

import pytest
from sqlalchemy import select

from canpayroll import database
from canpayroll.models import Tenant


@pytest.fixture
async def file_engine(tmp_path, monkeypatch):
    engine = database.get_engine(f"sqlite+aiosqlite:///{tmp_path / 'payroll.db'}")
    await database.create_schema(engine)
    monkeypatch.setattr(database, "_engine", engine)
    monkeypatch.setattr(database, "_session_factory", database.make_session_factory(engine))
    yield engine
    await engine.dispose()


async def _tenant_names(engine) -> list[str]:
    async with database.make_session_factory(engine)() as session:
        return list((await session.execute(select(Tenant.name))).scalars().all())


async def test_get_session_commits(file_engine):
    async with database.get_session() as session:
        session.add(Tenant(tenant_id=uuid4(), name="Committed Firm"))

    assert await _tenant_names(file_engine) == ["Committed Firm"]


async def test_get_session_rolls_back_on_error(file_engine):
    with pytest.raises(RuntimeError):
        async with database.get_session() as session:
            session.add(Tenant(tenant_id=uuid4(), name="Rolled Back Firm"))
            await session.flush()
            raise RuntimeError("boom")

    assert await _tenant_names(file_engine) == []
