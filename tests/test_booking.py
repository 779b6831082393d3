"""Booking engine: one winner per slot, conflicts, cancellation and rebooking."""
import asyncio

import pytest

from clinicbook import booking, lifecycle
from clinicbook import repositories as repo
from clinicbook.errors import Conflict, InvalidInput, NotFound

from .conftest import SLOT_DAY


async def test_book_returns_persisted_appointment(db, slot):
    appt = await booking.book(db, slot.id, "  Alice  ", patient_phone=" 555-0100 ", reason="")

    assert appt.slot_id == slot.id
    assert appt.patient_name == "Alice"
    assert appt.patient_phone == "555-0100"
    assert appt.reason is None
    assert appt.status == "Confirmed"
    assert appt.created_at is not None
    assert (await repo.get_appointment(db, appt.id)).patient_name == "Alice"


async def test_book_unknown_slot(db):
    with pytest.raises(NotFound):
        await booking.book(db, "missing", "Alice")


@pytest.mark.parametrize("name", ["", "   ", None])
async def test_book_requires_patient_name(db, slot, name):
    with pytest.raises(InvalidInput):
        await booking.book(db, slot.id, name)
    assert await repo.get_appointment_for_slot(db, slot.id) is None


async def test_second_booking_conflicts(db, slot):
    first = await booking.book(db, slot.id, "Alice")
    with pytest.raises(Conflict, match="already booked"):
        await booking.book(db, slot.id, "Bob")
    assert (await repo.get_appointment_for_slot(db, slot.id)).id == first.id


async def test_concurrent_bookings_have_exactly_one_winner(sessionmaker, slot):
    attempts = 8

    async def attempt(i):
        async with sessionmaker() as session:
            try:
                return await booking.book(session, slot.id, f"Patient {i}")
            except Conflict as exc:
                return exc

    results = await asyncio.gather(*(attempt(i) for i in range(attempts)))

    winners = [r for r in results if not isinstance(r, Conflict)]
    losers = [r for r in results if isinstance(r, Conflict)]
    assert len(winners) == 1
    assert len(losers) == attempts - 1

    async with sessionmaker() as session:
        rows = await repo.list_appointments(session)
    assert [r.appointment.id for r in rows] == [winners[0].id]


async def test_cancel_makes_slot_bookable_again(db, slot):
    alice = await booking.book(db, slot.id, "Alice")
    await lifecycle.cancel_appointment(db, alice.id)

    bob = await booking.book(db, slot.id, "Bob")

    assert bob.id != alice.id
    assert (await repo.get_appointment_for_slot(db, slot.id)).patient_name == "Bob"


async def test_cancel_unknown_appointment(db):
    with pytest.raises(NotFound):
        await lifecycle.cancel_appointment(db, "missing")


async def test_walkthrough_book_conflict_cancel_rebook(db):
    """D1 / S1 on 2024-01-10 09:00: Alice books, Bob conflicts, Alice cancels, Bob books."""
    await lifecycle.create_doctor(db, "D1", "Dr. One")
    s1 = await lifecycle.create_slot(db, "D1", "2024-01-10", "09:00")
    assert s1.date == SLOT_DAY

    async def status():
        rows = await lifecycle.list_slots(db, doctor_id="D1", on_date="2024-01-10")
        return rows[0].status

    assert await status() == "available"
    alice = await booking.book(db, s1.id, "Alice")
    assert await status() == "booked"

    with pytest.raises(Conflict):
        await booking.book(db, s1.id, "Bob")

    await lifecycle.cancel_appointment(db, alice.id)
    assert await status() == "available"

    bob = await booking.book(db, s1.id, "Bob")
    assert bob.patient_name == "Bob"
    assert await status() == "booked"


async def test_book_after_slot_deleted(db, slot):
    await lifecycle.delete_slot(db, slot.id)
    with pytest.raises(NotFound):
        await booking.book(db, slot.id, "Alice")
