"""Single-writer mirror of the booking model for environments without a database.

State lives in memory and, when a path is given, in one JSON document that is
rewritten after every change. It keeps the same invariants as the database
(one appointment per slot, cascading deletes) but only for a single writer; it
makes no promise under concurrent use.
"""
from __future__ import annotations

import argparse
import datetime as dt
import json
import sys
import uuid
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from .config import Settings, get_settings
from .errors import BookingError, Conflict, DuplicateKey, InvalidInput, NotFound
from .lifecycle import DOCTOR_FIELDS, SLOT_FIELDS, parse_date, parse_time
from .logging_config import get_logger, setup_structured_logging
from .models import STATUS_CONFIRMED

logger = get_logger(__name__)

STORAGE_KEY = "doctor_booking_demo_v1"


def _uid(prefix: str) -> str:
	return prefix + uuid.uuid4().hex[:8].upper()


class DemoDoctor(BaseModel):
	id: str
	name: str
	speciality: Optional[str] = None
	room: Optional[str] = None


class DemoSlot(BaseModel):
	id: str
	doctor_id: str
	date: dt.date
	time: str


class DemoAppointment(BaseModel):
	id: str
	slot_id: str
	patient_name: str
	patient_phone: Optional[str] = None
	reason: Optional[str] = None
	status: str = STATUS_CONFIRMED
	created_at: dt.datetime


class DemoState(BaseModel):
	key: str = STORAGE_KEY
	doctors: list[DemoDoctor] = Field(default_factory=list)
	slots: list[DemoSlot] = Field(default_factory=list)
	appointments: list[DemoAppointment] = Field(default_factory=list)


def default_state(today: Optional[dt.date] = None) -> DemoState:
	today = today or dt.date.today()
	return DemoState(
		doctors=[
			DemoDoctor(id="D001", name="Dr. Asha Mehta", speciality="General Physician", room="101"),
			DemoDoctor(id="D002", name="Dr. Rajesh Singh", speciality="Cardiologist", room="201"),
		],
		slots=[
			DemoSlot(id="S1", doctor_id="D001", date=today, time="09:00"),
			DemoSlot(id="S2", doctor_id="D001", date=today, time="09:30"),
			DemoSlot(id="S3", doctor_id="D002", date=today, time="10:00"),
		],
	)


class DemoStore:
	def __init__(self, path: Union[str, Path, None] = None, state: Optional[DemoState] = None) -> None:
		self.path = Path(path) if path else None
		self.state = state if state is not None else self._load()

	@classmethod
	def from_settings(cls, settings: Optional[Settings] = None) -> "DemoStore":
		settings = settings or get_settings()
		return cls(settings.DEMO_STATE_PATH or None)

	# persistence

	def _load(self) -> DemoState:
		if self.path is None or not self.path.exists():
			return default_state()
		try:
			return DemoState.model_validate_json(self.path.read_text(encoding="utf-8"))
		except (ValidationError, ValueError) as exc:
			logger.warning("demo_state_unreadable", path=str(self.path), error=str(exc))
			return default_state()

	def save(self) -> None:
		if self.path is None:
			return
		self.path.write_text(self.state.model_dump_json(indent=2), encoding="utf-8")

	def reset(self) -> DemoState:
		"""Throw away every change and go back to the sample doctors and today's slots."""
		self.state = default_state()
		self.save()
		logger.info("demo_state_reset", path=str(self.path) if self.path else None)
		return self.state

	# lookups

	def get_doctor(self, doctor_id: str) -> Optional[DemoDoctor]:
		return next((d for d in self.state.doctors if d.id == doctor_id), None)

	def get_slot(self, slot_id: str) -> Optional[DemoSlot]:
		return next((s for s in self.state.slots if s.id == slot_id), None)

	def get_appointment(self, appointment_id: str) -> Optional[DemoAppointment]:
		return next((a for a in self.state.appointments if a.id == appointment_id), None)

	def appointment_for_slot(self, slot_id: str) -> Optional[DemoAppointment]:
		return next((a for a in self.state.appointments if a.slot_id == slot_id), None)

	def is_slot_booked(self, slot_id: str) -> bool:
		return self.appointment_for_slot(slot_id) is not None

	def list_slots(self, doctor_id: Optional[str] = None, on_date: Union[dt.date, str, None] = None) -> list[dict[str, Any]]:
		day = parse_date(on_date) if on_date else None
		rows = []
		for slot in sorted(self.state.slots, key=lambda s: (s.date, s.time)):
			if doctor_id and slot.doctor_id != doctor_id:
				continue
			if day is not None and slot.date != day:
				continue
			appt = self.appointment_for_slot(slot.id)
			rows.append({
				**slot.model_dump(),
				"status": "booked" if appt else "available",
				"appointment_id": appt.id if appt else None,
			})
		return rows

	def _slot_taken(self, doctor_id: str, on_date: dt.date, at_time: str, ignore: Optional[str] = None) -> bool:
		return any(
			s.doctor_id == doctor_id and s.date == on_date and s.time == at_time and s.id != ignore
			for s in self.state.slots
		)

	# doctors

	def create_doctor(self, id: str, name: str, speciality: Optional[str] = None, room: Optional[str] = None) -> DemoDoctor:
		id, name = (id or "").strip(), (name or "").strip()
		if not id or not name:
			raise InvalidInput("Doctor ID and name are required")
		if self.get_doctor(id):
			raise DuplicateKey("Doctor ID already exists")
		doctor = DemoDoctor(id=id, name=name, speciality=speciality, room=room)
		self.state.doctors.append(doctor)
		self.save()
		return doctor

	def update_doctor(self, doctor_id: str, **patch: Any) -> DemoDoctor:
		unknown = set(patch) - DOCTOR_FIELDS
		if unknown:
			raise InvalidInput(f"Unknown field(s): {', '.join(sorted(unknown))}")
		doctor = self.get_doctor(doctor_id)
		if doctor is None:
			raise NotFound("Doctor not found")
		if "name" in patch and not (patch["name"] or "").strip():
			raise InvalidInput("Doctor name is required")
		for field, value in patch.items():
			setattr(doctor, field, value.strip() if field == "name" else value)
		self.save()
		return doctor

	def delete_doctor(self, doctor_id: str) -> tuple[int, int]:
		"""Remove the doctor with its slots and their appointments; returns (slots, appointments) removed."""
		if self.get_doctor(doctor_id) is None:
			raise NotFound("Doctor not found")
		remaining_slots = [s for s in self.state.slots if s.doctor_id != doctor_id]
		kept_ids = {s.id for s in remaining_slots}
		remaining_appts = [a for a in self.state.appointments if a.slot_id in kept_ids]
		removed = (len(self.state.slots) - len(remaining_slots), len(self.state.appointments) - len(remaining_appts))
		# swap all three collections together so no partial state is ever saved
		self.state = self.state.model_copy(update={
			"doctors": [d for d in self.state.doctors if d.id != doctor_id],
			"slots": remaining_slots,
			"appointments": remaining_appts,
		})
		self.save()
		return removed

	# slots

	def create_slot(self, doctor_id: str, date: Union[dt.date, str], time: str) -> DemoSlot:
		on_date, at_time = parse_date(date), parse_time(time)
		if self.get_doctor(doctor_id) is None:
			raise NotFound("Doctor not found")
		if self._slot_taken(doctor_id, on_date, at_time):
			raise Conflict("Doctor already has a slot at this date and time")
		slot = DemoSlot(id=_uid("SL"), doctor_id=doctor_id, date=on_date, time=at_time)
		self.state.slots.append(slot)
		self.save()
		return slot

	def update_slot(self, slot_id: str, **patch: Any) -> DemoSlot:
		unknown = set(patch) - SLOT_FIELDS
		if unknown:
			raise InvalidInput(f"Unknown field(s): {', '.join(sorted(unknown))}")
		slot = self.get_slot(slot_id)
		if slot is None:
			raise NotFound("Slot not found")
		doctor_id = patch.get("doctor_id") or slot.doctor_id
		on_date = parse_date(patch["date"]) if patch.get("date") else slot.date
		at_time = parse_time(patch["time"]) if patch.get("time") else slot.time
		# malformed input is rejected before the booking lock is consulted
		if self.is_slot_booked(slot_id):
			raise Conflict("Cannot edit slot with an existing appointment")
		if self.get_doctor(doctor_id) is None:
			raise NotFound("Doctor not found")
		if self._slot_taken(doctor_id, on_date, at_time, ignore=slot_id):
			raise Conflict("Doctor already has a slot at this date and time")
		slot.doctor_id, slot.date, slot.time = doctor_id, on_date, at_time
		self.save()
		return slot

	def delete_slot(self, slot_id: str) -> int:
		if self.get_slot(slot_id) is None:
			raise NotFound("Slot not found")
		remaining_appts = [a for a in self.state.appointments if a.slot_id != slot_id]
		removed = len(self.state.appointments) - len(remaining_appts)
		self.state = self.state.model_copy(update={
			"slots": [s for s in self.state.slots if s.id != slot_id],
			"appointments": remaining_appts,
		})
		self.save()
		return removed

	# appointments

	def book(
		self,
		slot_id: str,
		patient_name: str,
		patient_phone: Optional[str] = None,
		reason: Optional[str] = None,
	) -> DemoAppointment:
		if self.get_slot(slot_id) is None:
			raise NotFound("Slot not found")
		name = (patient_name or "").strip()
		if not name:
			raise InvalidInput("Patient name is required")
		if self.is_slot_booked(slot_id):
			raise Conflict("Slot already booked")
		appt = DemoAppointment(
			id=_uid("AP"),
			slot_id=slot_id,
			patient_name=name,
			patient_phone=(patient_phone or "").strip() or None,
			reason=(reason or "").strip() or None,
			created_at=dt.datetime.now(dt.timezone.utc),
		)
		self.state.appointments.append(appt)
		self.save()
		return appt

	def cancel_appointment(self, appointment_id: str) -> None:
		if self.get_appointment(appointment_id) is None:
			raise NotFound("Appointment not found")
		self.state.appointments = [a for a in self.state.appointments if a.id != appointment_id]
		self.save()


def _emit(payload: Any) -> None:
	sys.stdout.write(json.dumps(payload, indent=2, default=str) + "\n")


def main(argv: Optional[list[str]] = None) -> None:
	parser = argparse.ArgumentParser(description="Inspect and edit the clinicbook demo state file.")
	parser.add_argument("--path", help="state file (defaults to DEMO_STATE_PATH)")
	commands = parser.add_subparsers(dest="command", required=True)

	commands.add_parser("show", help="print the whole state")
	commands.add_parser("reset", help="restore the sample doctors and today's slots")

	slots = commands.add_parser("slots", help="list slots with their booking status")
	slots.add_argument("--doctor", help="only this doctor id")
	slots.add_argument("--date", help="only this day (YYYY-MM-DD)")

	book = commands.add_parser("book", help="book a slot")
	book.add_argument("slot_id")
	book.add_argument("patient_name")
	book.add_argument("--phone")
	book.add_argument("--reason")

	cancel = commands.add_parser("cancel", help="cancel an appointment")
	cancel.add_argument("appointment_id")

	args = parser.parse_args(argv)

	settings = get_settings()
	setup_structured_logging(settings.LOG_LEVEL, json_logs=settings.LOG_JSON)
	store = DemoStore(args.path) if args.path else DemoStore.from_settings(settings)
	if store.path is None:
		parser.error("no state file: pass --path or set DEMO_STATE_PATH")

	try:
		if args.command == "show":
			_emit(store.state.model_dump(mode="json"))
		elif args.command == "reset":
			_emit(store.reset().model_dump(mode="json"))
		elif args.command == "slots":
			_emit(store.list_slots(doctor_id=args.doctor, on_date=args.date))
		elif args.command == "book":
			appt = store.book(args.slot_id, args.patient_name, patient_phone=args.phone, reason=args.reason)
			_emit(appt.model_dump(mode="json"))
		elif args.command == "cancel":
			store.cancel_appointment(args.appointment_id)
			_emit({"cancelled": args.appointment_id})
	except BookingError as exc:
		parser.exit(1, f"{type(exc).__name__}: {exc.message}\n")


if __name__ == "__main__":
	main()
