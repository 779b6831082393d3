from __future__ import annotations

import datetime as dt
from typing import Optional

from pydantic import BaseModel, Field

from .repositories import AppointmentRow, SlotRow

TIME_REGEX = r"^([01]\d|2[0-3]):[0-5]\d$"


class DoctorCreate(BaseModel):
	id: str = Field(min_length=1, max_length=64)
	name: str = Field(min_length=1, max_length=200)
	speciality: Optional[str] = None
	room: Optional[str] = None


class DoctorUpdate(BaseModel):
	name: Optional[str] = Field(default=None, min_length=1, max_length=200)
	speciality: Optional[str] = None
	room: Optional[str] = None


class DoctorOut(BaseModel):
	id: str
	name: str
	speciality: Optional[str] = None
	room: Optional[str] = None

	class Config:
		from_attributes = True


class SlotCreate(BaseModel):
	doctor_id: str = Field(min_length=1)
	date: dt.date
	time: str = Field(pattern=TIME_REGEX)


class SlotUpdate(BaseModel):
	doctor_id: Optional[str] = None
	date: Optional[dt.date] = None
	time: Optional[str] = Field(default=None, pattern=TIME_REGEX)


class SlotOut(BaseModel):
	id: str
	doctor_id: str
	date: dt.date
	time: str

	class Config:
		from_attributes = True


class SlotListItem(SlotOut):
	doctor_name: str
	speciality: Optional[str] = None
	status: str  # booked / available
	appointment_id: Optional[str] = None

	@classmethod
	def from_row(cls, row: SlotRow) -> "SlotListItem":
		return cls(
			id=row.slot.id,
			doctor_id=row.slot.doctor_id,
			date=row.slot.date,
			time=row.slot.time,
			doctor_name=row.doctor_name,
			speciality=row.speciality,
			status=row.status,
			appointment_id=row.appointment_id,
		)


class AppointmentCreate(BaseModel):
	slot_id: str = Field(min_length=1)
	patient_name: str = Field(min_length=1, max_length=200)
	patient_phone: Optional[str] = None
	reason: Optional[str] = None


class AppointmentOut(BaseModel):
	id: str
	slot_id: str
	patient_name: str
	patient_phone: Optional[str] = None
	reason: Optional[str] = None
	status: str
	created_at: dt.datetime

	class Config:
		from_attributes = True


class AppointmentDetail(AppointmentOut):
	date: Optional[dt.date] = None
	time: Optional[str] = None
	doctor_id: Optional[str] = None
	doctor_name: Optional[str] = None
	speciality: Optional[str] = None

	@classmethod
	def from_row(cls, row: AppointmentRow) -> "AppointmentDetail":
		appt = row.appointment
		return cls(
			id=appt.id,
			slot_id=appt.slot_id,
			patient_name=appt.patient_name,
			patient_phone=appt.patient_phone,
			reason=appt.reason,
			status=appt.status,
			created_at=appt.created_at,
			date=row.slot.date if row.slot else None,
			time=row.slot.time if row.slot else None,
			doctor_id=row.doctor.id if row.doctor else None,
			doctor_name=row.doctor.name if row.doctor else None,
			speciality=row.doctor.speciality if row.doctor else None,
		)


class DashboardOut(BaseModel):
	doctors: int
	slots: int
	appointments: int
	slots_today: int
	available_today: int
