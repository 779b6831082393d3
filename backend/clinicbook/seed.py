from __future__ import annotations

import asyncio
from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from . import repositories as repo
from .db import SessionLocal
from .logging_config import get_logger

logger = get_logger(__name__)

SAMPLE_DOCTORS = [
    ("D001", "Dr. Asha Mehta", "General Physician", "101"),
    ("D002", "Dr. Rajesh Singh", "Cardiologist", "201"),
]

# (slot id, doctor id, time) on the seeding day
SAMPLE_SLOTS = [
    ("SL1", "D001", "09:00"),
    ("SL2", "D001", "09:30"),
    ("SL3", "D002", "10:00"),
]


async def seed(sessionmaker: async_sessionmaker[AsyncSession] = SessionLocal) -> bool:
    """Insert the sample doctors and today's slots into an empty database.

    Any existing row means the data belongs to someone, so nothing is touched and
    deleted sample rows stay deleted. Returns whether sample data was written.
    """
    today = date.today()
    async with sessionmaker() as db:
        counts = await repo.count_entities(db)
        if any(counts.values()):
            logger.info("seed_skipped", **counts)
            return False

        for doctor_id, name, speciality, room in SAMPLE_DOCTORS:
            await repo.insert_doctor(db, id=doctor_id, name=name, speciality=speciality, room=room)
        for slot_id, doctor_id, at_time in SAMPLE_SLOTS:
            await repo.insert_slot(db, id=slot_id, doctor_id=doctor_id, date=today, time=at_time)

    logger.info("database_seeded", doctors=len(SAMPLE_DOCTORS), slots=len(SAMPLE_SLOTS), day=today.isoformat())
    return True


if __name__ == "__main__":
    asyncio.run(seed())
