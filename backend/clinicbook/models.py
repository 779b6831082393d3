from __future__ import annotations

import datetime as dt
from typing import Optional

from sqlalchemy import Date, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base

STATUS_CONFIRMED = "Confirmed"


class Doctor(Base):
	__tablename__ = "doctors"

	id: Mapped[str] = mapped_column(String(64), primary_key=True)
	name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
	speciality: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
	room: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

	slots: Mapped[list[Slot]] = relationship(
		back_populates="doctor", cascade="all, delete-orphan", passive_deletes=True
	)


class Slot(Base):
	__tablename__ = "slots"
	__table_args__ = (
		UniqueConstraint("doctor_id", "date", "time", name="uix_doctor_slot"),
	)

	id: Mapped[str] = mapped_column(String(64), primary_key=True)
	doctor_id: Mapped[str] = mapped_column(ForeignKey("doctors.id", ondelete="CASCADE"), nullable=False, index=True)
	date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
	time: Mapped[str] = mapped_column(String(5), nullable=False)  # HH:MM, 24h

	doctor: Mapped[Doctor] = relationship(back_populates="slots")
	appointment: Mapped[Optional[Appointment]] = relationship(
		back_populates="slot", cascade="all, delete-orphan", passive_deletes=True, uselist=False
	)


class Appointment(Base):
	__tablename__ = "appointments"
	__table_args__ = (
		# one appointment per slot; this constraint is what makes double-booking impossible
		UniqueConstraint("slot_id", name="uix_appointment_slot"),
	)

	id: Mapped[str] = mapped_column(String(64), primary_key=True)
	slot_id: Mapped[str] = mapped_column(ForeignKey("slots.id", ondelete="CASCADE"), nullable=False)
	patient_name: Mapped[str] = mapped_column(String(200), nullable=False)
	patient_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
	reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
	status: Mapped[str] = mapped_column(String(20), nullable=False, default=STATUS_CONFIRMED)
	created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)

	slot: Mapped[Slot] = relationship(back_populates="appointment")
