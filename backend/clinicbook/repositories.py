from __future__ import annotations

import datetime as dt
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Optional

from sqlalchemy import delete, exists, func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import DuplicateKey, ForeignKeyViolation, StoreError, UniqueConstraintViolation
from .logging_config import get_logger
from .models import STATUS_CONFIRMED, Appointment, Doctor, Slot

logger = get_logger(__name__)

# PostgreSQL SQLSTATE codes
_PG_UNIQUE_VIOLATION = "23505"
_PG_FOREIGN_KEY_VIOLATION = "23503"


@dataclass(frozen=True)
class CascadeResult:
	"""Rows removed by a cascading delete, children only."""

	slots: int = 0
	appointments: int = 0


@dataclass(frozen=True)
class SlotRow:
	slot: Slot
	doctor_name: str
	speciality: Optional[str]
	appointment_id: Optional[str]

	@property
	def booked(self) -> bool:
		return self.appointment_id is not None

	@property
	def status(self) -> str:
		return "booked" if self.booked else "available"


@dataclass(frozen=True)
class AppointmentRow:
	appointment: Appointment
	slot: Optional[Slot]
	doctor: Optional[Doctor]


def classify_integrity_error(exc: IntegrityError) -> type[StoreError]:
	"""Map a driver-level integrity failure onto the store's error kinds."""
	orig = exc.orig
	code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
	if code == _PG_FOREIGN_KEY_VIOLATION:
		return ForeignKeyViolation
	if code == _PG_UNIQUE_VIOLATION:
		return UniqueConstraintViolation
	# SQLite only reports through the message text
	message = str(orig).upper()
	if "FOREIGN KEY" in message:
		return ForeignKeyViolation
	if "UNIQUE" in message or "PRIMARY KEY" in message:
		return UniqueConstraintViolation
	return StoreError


async def _rollback(db: AsyncSession) -> None:
	# detach first so the rollback cannot expire instances callers already hold
	db.expunge_all()
	await db.rollback()


@asynccontextmanager
async def _unit_of_work(db: AsyncSession) -> AsyncIterator[None]:
	"""Run the enclosed statements as one transaction, committed on exit."""
	try:
		yield
		await db.commit()
	except IntegrityError as exc:
		await _rollback(db)
		kind = classify_integrity_error(exc)
		logger.info("integrity_error", kind=kind.__name__, detail=str(exc.orig))
		raise kind() from exc
	except BaseException:
		await _rollback(db)
		raise


# Reads. populate_existing keeps objects cached in the session from hiding committed writes.

async def get_doctor(db: AsyncSession, doctor_id: str) -> Optional[Doctor]:
	stmt = select(Doctor).where(Doctor.id == doctor_id).execution_options(populate_existing=True)
	res = await db.execute(stmt)
	return res.scalar_one_or_none()


async def get_slot(db: AsyncSession, slot_id: str) -> Optional[Slot]:
	stmt = select(Slot).where(Slot.id == slot_id).execution_options(populate_existing=True)
	res = await db.execute(stmt)
	return res.scalar_one_or_none()


async def get_appointment(db: AsyncSession, appointment_id: str) -> Optional[Appointment]:
	stmt = select(Appointment).where(Appointment.id == appointment_id).execution_options(populate_existing=True)
	res = await db.execute(stmt)
	return res.scalar_one_or_none()


async def get_appointment_for_slot(db: AsyncSession, slot_id: str) -> Optional[Appointment]:
	stmt = select(Appointment).where(Appointment.slot_id == slot_id).execution_options(populate_existing=True)
	res = await db.execute(stmt)
	return res.scalar_one_or_none()


async def list_doctors(db: AsyncSession) -> list[Doctor]:
	stmt = select(Doctor).order_by(Doctor.name).execution_options(populate_existing=True)
	res = await db.execute(stmt)
	return list(res.scalars().all())


async def list_slots(
	db: AsyncSession,
	doctor_id: Optional[str] = None,
	on_date: Optional[dt.date] = None,
) -> list[SlotRow]:
	"""Slots with their doctor and, when booked, the appointment id; ordered by date and time."""
	conds = []
	if doctor_id:
		conds.append(Slot.doctor_id == doctor_id)
	if on_date is not None:
		conds.append(Slot.date == on_date)
	stmt = (
		select(Slot, Doctor.name, Doctor.speciality, Appointment.id)
		.join(Doctor, Doctor.id == Slot.doctor_id)
		.outerjoin(Appointment, Appointment.slot_id == Slot.id)
		.where(*conds)
		.order_by(Slot.date, Slot.time)
		.execution_options(populate_existing=True)
	)
	rows = (await db.execute(stmt)).all()
	return [SlotRow(slot=s, doctor_name=name, speciality=spec, appointment_id=appt_id) for s, name, spec, appt_id in rows]


async def list_appointments(db: AsyncSession, appointment_id: Optional[str] = None) -> list[AppointmentRow]:
	"""Appointments joined with their slot and doctor, newest first."""
	stmt = (
		select(Appointment, Slot, Doctor)
		.outerjoin(Slot, Slot.id == Appointment.slot_id)
		.outerjoin(Doctor, Doctor.id == Slot.doctor_id)
		.order_by(Appointment.created_at.desc())
		.execution_options(populate_existing=True)
	)
	if appointment_id is not None:
		stmt = stmt.where(Appointment.id == appointment_id)
	rows = (await db.execute(stmt)).all()
	return [AppointmentRow(appointment=a, slot=s, doctor=d) for a, s, d in rows]


async def count_entities(db: AsyncSession) -> dict[str, int]:
	doctors = (await db.execute(select(func.count(Doctor.id)))).scalar_one()
	slots = (await db.execute(select(func.count(Slot.id)))).scalar_one()
	appointments = (await db.execute(select(func.count(Appointment.id)))).scalar_one()
	return {"doctors": doctors, "slots": slots, "appointments": appointments}


# Writes. Each function is a single transaction.

async def insert_doctor(
	db: AsyncSession,
	*,
	id: str,
	name: str,
	speciality: Optional[str] = None,
	room: Optional[str] = None,
) -> Doctor:
	try:
		async with _unit_of_work(db):
			await db.execute(insert(Doctor).values(id=id, name=name, speciality=speciality, room=room))
	except UniqueConstraintViolation as exc:
		raise DuplicateKey("Doctor ID already exists") from exc
	doctor = await get_doctor(db, id)
	if doctor is None:
		raise StoreError("Doctor missing after insert")
	return doctor


async def insert_slot(
	db: AsyncSession,
	*,
	id: str,
	doctor_id: str,
	date: dt.date,
	time: str,
) -> Slot:
	async with _unit_of_work(db):
		await db.execute(insert(Slot).values(id=id, doctor_id=doctor_id, date=date, time=time))
	slot = await get_slot(db, id)
	if slot is None:
		raise StoreError("Slot missing after insert")
	return slot


async def insert_appointment(
	db: AsyncSession,
	*,
	id: str,
	slot_id: str,
	patient_name: str,
	created_at: dt.datetime,
	patient_phone: Optional[str] = None,
	reason: Optional[str] = None,
	status: str = STATUS_CONFIRMED,
) -> Appointment:
	"""Single atomic insert; UNIQUE(slot_id) and the slot FK are checked by the database."""
	async with _unit_of_work(db):
		await db.execute(
			insert(Appointment).values(
				id=id,
				slot_id=slot_id,
				patient_name=patient_name,
				patient_phone=patient_phone,
				reason=reason,
				status=status,
				created_at=created_at,
			)
		)
	appt = await get_appointment(db, id)
	if appt is None:
		raise StoreError("Appointment missing after insert")
	return appt


async def update_doctor_row(db: AsyncSession, doctor_id: str, values: dict[str, Any]) -> Optional[Doctor]:
	async with _unit_of_work(db):
		res = await db.execute(
			update(Doctor).where(Doctor.id == doctor_id).values(**values).execution_options(synchronize_session=False)
		)
	if res.rowcount == 0:
		return None
	return await get_doctor(db, doctor_id)


def _slot_row_lock(slot_id: str):
	return select(Slot.id).where(Slot.id == slot_id).with_for_update()


async def update_unbooked_slot(db: AsyncSession, slot_id: str, values: dict[str, Any]) -> bool:
	"""Update a slot only if no appointment references it.

	The slot row is locked first (``FOR UPDATE``, which conflicts with the key-share
	lock an appointment insert takes through its foreign key), so on PostgreSQL an
	in-flight booking either finishes before the guard is evaluated or waits for the
	edit to commit. SQLite ignores the lock clause and serializes writers instead.
	"""
	stmt = (
		update(Slot)
		.where(Slot.id == slot_id, ~exists().where(Appointment.slot_id == slot_id))
		.values(**values)
		.execution_options(synchronize_session=False)
	)
	async with _unit_of_work(db):
		await db.execute(_slot_row_lock(slot_id))
		res = await db.execute(stmt)
	return res.rowcount > 0


async def delete_doctor(db: AsyncSession, doctor_id: str) -> Optional[CascadeResult]:
	"""Remove a doctor, its slots and their appointments in one transaction."""
	owned_slots = select(Slot.id).where(Slot.doctor_id == doctor_id)
	async with _unit_of_work(db):
		appts = await db.execute(
			delete(Appointment).where(Appointment.slot_id.in_(owned_slots)).execution_options(synchronize_session=False)
		)
		slots = await db.execute(
			delete(Slot).where(Slot.doctor_id == doctor_id).execution_options(synchronize_session=False)
		)
		doctors = await db.execute(
			delete(Doctor).where(Doctor.id == doctor_id).execution_options(synchronize_session=False)
		)
	if doctors.rowcount == 0:
		return None
	return CascadeResult(slots=slots.rowcount, appointments=appts.rowcount)


async def delete_slot(db: AsyncSession, slot_id: str) -> Optional[CascadeResult]:
	async with _unit_of_work(db):
		appts = await db.execute(
			delete(Appointment).where(Appointment.slot_id == slot_id).execution_options(synchronize_session=False)
		)
		slots = await db.execute(delete(Slot).where(Slot.id == slot_id).execution_options(synchronize_session=False))
	if slots.rowcount == 0:
		return None
	return CascadeResult(slots=slots.rowcount, appointments=appts.rowcount)


async def delete_appointment(db: AsyncSession, appointment_id: str) -> bool:
	async with _unit_of_work(db):
		res = await db.execute(
			delete(Appointment).where(Appointment.id == appointment_id).execution_options(synchronize_session=False)
		)
	return res.rowcount > 0
