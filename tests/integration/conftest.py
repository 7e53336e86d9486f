"""Fixtures backed by a real SQLAlchemy schema on a temporary SQLite file."""

from datetime import time
from decimal import Decimal
from types import SimpleNamespace

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from agenda.core.scheduling import FixedClock
from agenda.models import database as orm
from tests.fakes import brt


@pytest.fixture
def clock():
    """Monday 2025-03-10, 08:00 business time."""
    return FixedClock(brt(2025, 3, 10, 8, 0))


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'agenda.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(orm.Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def seeded(session_factory):
    """
    One business ("studio") open 08:00-18:00 every day.

    Ana works 09:00-12:00. Bruno works 09:00-18:00 with lunch 12:00-13:00.
    """
    async with session_factory() as session:
        business = orm.Business(name="Studio", slug="studio", timezone="America/Sao_Paulo")
        session.add(business)
        await session.flush()

        ana = orm.Professional(business_id=business.id, name="Ana")
        bruno = orm.Professional(business_id=business.id, name="Bruno")
        haircut = orm.Service(
            business_id=business.id, name="Haircut", duration_minutes=30, price=Decimal("50.00")
        )
        fringe = orm.Service(
            business_id=business.id, name="Fringe", duration_minutes=15, price=Decimal("20.00")
        )
        session.add_all([ana, bruno, haircut, fringe])
        await session.flush()

        for day in range(7):
            session.add(orm.WorkingWindow(
                business_id=business.id,
                day_of_week=day,
                start_time=time(8, 0),
                end_time=time(18, 0),
            ))
            session.add(orm.WorkingWindow(
                business_id=business.id,
                professional_id=ana.id,
                day_of_week=day,
                start_time=time(9, 0),
                end_time=time(12, 0),
            ))
            session.add(orm.WorkingWindow(
                business_id=business.id,
                professional_id=bruno.id,
                day_of_week=day,
                start_time=time(9, 0),
                end_time=time(18, 0),
                breaks=[orm.RecurringBreak(start_time=time(12, 0), end_time=time(13, 0))],
            ))

        await session.commit()

        return SimpleNamespace(
            business_id=business.id,
            ana_id=ana.id,
            bruno_id=bruno.id,
            haircut_id=haircut.id,
            fringe_id=fringe.id,
        )
