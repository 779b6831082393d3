from __future__ import annotations

import datetime as dt
import re
import uuid
from typing import Any, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from . import repositories as repo
from .errors import Conflict, ForeignKeyViolation, InvalidInput, NotFound, UniqueConstraintViolation
from .logging_config import get_logger
from .models import Appointment, Doctor, Slot
from .repositories import AppointmentRow, CascadeResult, SlotRow

logger = get_logger(__name__)

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

DOCTOR_FIELDS = frozenset({"name", "speciality", "room"})
SLOT_FIELDS = frozenset({"doctor_id", "date", "time"})


def parse_date(value: Union[dt.date, str]) -> dt.date:
	if isinstance(value, dt.datetime):
		return value.date()
	if isinstance(value, dt.date):
		return value
	try:
		return dt.date.fromisoformat(str(value).strip())
	except ValueError as exc:
		raise InvalidInput(f"Invalid date {value!r}, expected YYYY-MM-DD") from exc


def parse_time(value: str) -> str:
	value = (value or "").strip()
	if not TIME_PATTERN.match(value):
		raise InvalidInput(f"Invalid time {value!r}, expected HH:MM")
	return value


def _required(value: Optional[str], field: str) -> str:
	cleaned = (value or "").strip()
	if not cleaned:
		raise InvalidInput(f"{field} is required")
	return cleaned


def _check_fields(patch: dict[str, Any], allowed: frozenset[str]) -> None:
	unknown = set(patch) - allowed
	if unknown:
		raise InvalidInput(f"Unknown field(s): {', '.join(sorted(unknown))}")


# Doctors

async def create_doctor(
	db: AsyncSession,
	id: str,
	name: str,
	speciality: Optional[str] = None,
	room: Optional[str] = None,
) -> Doctor:
	doctor = await repo.insert_doctor(
		db,
		id=_required(id, "Doctor ID"),
		name=_required(name, "Doctor name"),
		speciality=speciality,
		room=room,
	)
	logger.info("doctor_created", doctor_id=doctor.id)
	return doctor


async def update_doctor(db: AsyncSession, doctor_id: str, **patch: Any) -> Doctor:
	"""Update name/speciality/room. Slots and appointments are untouched."""
	_check_fields(patch, DOCTOR_FIELDS)
	if "name" in patch:
		patch["name"] = _required(patch["name"], "Doctor name")
	if not patch:
		doctor = await repo.get_doctor(db, doctor_id)
	else:
		doctor = await repo.update_doctor_row(db, doctor_id, patch)
	if doctor is None:
		raise NotFound("Doctor not found")
	return doctor


async def delete_doctor(db: AsyncSession, doctor_id: str) -> CascadeResult:
	result = await repo.delete_doctor(db, doctor_id)
	if result is None:
		raise NotFound("Doctor not found")
	logger.info(
		"doctor_deleted",
		doctor_id=doctor_id,
		slots_removed=result.slots,
		appointments_removed=result.appointments,
	)
	return result


# Slots

async def create_slot(
	db: AsyncSession,
	doctor_id: str,
	date: Union[dt.date, str],
	time: str,
) -> Slot:
	on_date = parse_date(date)
	at_time = parse_time(time)
	try:
		slot = await repo.insert_slot(db, id=str(uuid.uuid4()), doctor_id=doctor_id, date=on_date, time=at_time)
	except ForeignKeyViolation as exc:
		raise NotFound("Doctor not found") from exc
	except UniqueConstraintViolation as exc:
		raise Conflict("Doctor already has a slot at this date and time") from exc
	logger.info("slot_created", slot_id=slot.id, doctor_id=doctor_id, date=on_date.isoformat(), time=at_time)
	return slot


async def update_slot(db: AsyncSession, slot_id: str, **patch: Any) -> Slot:
	"""Move a slot to another doctor/date/time. Booked slots are locked."""
	_check_fields(patch, SLOT_FIELDS)
	current = await repo.get_slot(db, slot_id)
	if current is None:
		raise NotFound("Slot not found")

	values: dict[str, Any] = {
		"doctor_id": patch.get("doctor_id") or current.doctor_id,
		"date": parse_date(patch["date"]) if patch.get("date") else current.date,
		"time": parse_time(patch["time"]) if patch.get("time") else current.time,
	}
	try:
		updated = await repo.update_unbooked_slot(db, slot_id, values)
	except ForeignKeyViolation as exc:
		raise NotFound("Doctor not found") from exc
	except UniqueConstraintViolation as exc:
		raise Conflict("Doctor already has a slot at this date and time") from exc

	if not updated:
		# either booked or deleted since the lookup
		if await repo.get_slot(db, slot_id) is None:
			raise NotFound("Slot not found")
		raise Conflict("Cannot edit slot with an existing appointment")

	slot = await repo.get_slot(db, slot_id)
	if slot is None:
		raise NotFound("Slot not found")
	return slot


async def delete_slot(db: AsyncSession, slot_id: str) -> CascadeResult:
	result = await repo.delete_slot(db, slot_id)
	if result is None:
		raise NotFound("Slot not found")
	logger.info("slot_deleted", slot_id=slot_id, appointments_removed=result.appointments)
	return result


# Appointments

async def cancel_appointment(db: AsyncSession, appointment_id: str) -> None:
	"""Cancellation is deletion; the slot becomes bookable again."""
	if not await repo.delete_appointment(db, appointment_id):
		raise NotFound("Appointment not found")
	logger.info("appointment_cancelled", appointment_id=appointment_id)


async def get_appointment(db: AsyncSession, appointment_id: str) -> AppointmentRow:
	rows = await repo.list_appointments(db, appointment_id=appointment_id)
	if not rows:
		raise NotFound("Appointment not found")
	return rows[0]


async def get_slot_appointment(db: AsyncSession, slot_id: str) -> Optional[Appointment]:
	if await repo.get_slot(db, slot_id) is None:
		raise NotFound("Slot not found")
	return await repo.get_appointment_for_slot(db, slot_id)


# Listing

async def list_doctors(db: AsyncSession) -> list[Doctor]:
	return await repo.list_doctors(db)


async def list_slots(
	db: AsyncSession,
	doctor_id: Optional[str] = None,
	on_date: Union[dt.date, str, None] = None,
) -> list[SlotRow]:
	return await repo.list_slots(db, doctor_id=doctor_id, on_date=parse_date(on_date) if on_date else None)


async def list_appointments(db: AsyncSession) -> list[AppointmentRow]:
	return await repo.list_appointments(db)


async def dashboard(db: AsyncSession) -> dict[str, int]:
	counts = await repo.count_entities(db)
	today = await repo.list_slots(db, on_date=dt.date.today())
	counts["slots_today"] = len(today)
	counts["available_today"] = sum(1 for row in today if not row.booked)
	return counts
