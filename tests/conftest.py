"""Shared test fixtures."""
import os

# Keep the import-time defaults away from the developer's .env
os.environ["SEED_ON_STARTUP"] = "false"
os.environ["LOG_JSON"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"

from datetime import date

import pytest

from clinicbook import lifecycle
from clinicbook import models  # noqa: F401
from clinicbook.db import Base, build_engine, build_sessionmaker


SLOT_DAY = date(2024, 1, 10)


@pytest.fixture
async def engine(tmp_path):
    """Fresh file-backed SQLite database per test."""
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'clinic.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def sessionmaker(engine):
    return build_sessionmaker(engine)


@pytest.fixture
async def db(sessionmaker):
    async with sessionmaker() as session:
        yield session


@pytest.fixture
async def doctor(db):
    return await lifecycle.create_doctor(db, "D1", "Dr. Asha Mehta", "General Physician", "101")


@pytest.fixture
async def slot(db, doctor):
    return await lifecycle.create_slot(db, doctor.id, SLOT_DAY, "09:00")
