from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from . import repositories as repo
from .errors import Conflict, ForeignKeyViolation, InvalidInput, NotFound, UniqueConstraintViolation
from .logging_config import get_logger
from .models import STATUS_CONFIRMED, Appointment

logger = get_logger(__name__)


def _clean(value: Optional[str]) -> Optional[str]:
	if value is None:
		return None
	value = value.strip()
	return value or None


async def book(
	db: AsyncSession,
	slot_id: str,
	patient_name: str,
	patient_phone: Optional[str] = None,
	reason: Optional[str] = None,
) -> Appointment:
	"""Reserve ``slot_id`` for a patient.

	The slot lookup only produces a friendly NotFound; whether the booking wins is
	decided by the single insert attempt against UNIQUE(appointments.slot_id).
	A lost race surfaces as Conflict and is never retried here.
	"""
	slot = await repo.get_slot(db, slot_id)
	if slot is None:
		raise NotFound("Slot not found")

	name = _clean(patient_name)
	if not name:
		raise InvalidInput("Patient name is required")

	appointment_id = str(uuid.uuid4())
	try:
		appt = await repo.insert_appointment(
			db,
			id=appointment_id,
			slot_id=slot_id,
			patient_name=name,
			patient_phone=_clean(patient_phone),
			reason=_clean(reason),
			status=STATUS_CONFIRMED,
			created_at=datetime.now(timezone.utc),
		)
	except UniqueConstraintViolation as exc:
		logger.info("booking_conflict", slot_id=slot_id)
		raise Conflict("Slot already booked") from exc
	except ForeignKeyViolation as exc:
		# slot removed between the lookup and the insert
		logger.info("booking_slot_vanished", slot_id=slot_id)
		raise NotFound("Slot not found") from exc

	logger.info("appointment_booked", appointment_id=appt.id, slot_id=slot_id)
	return appt
