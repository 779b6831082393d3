from __future__ import annotations

import datetime as dt
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from . import booking, lifecycle
from .db import get_db
from .errors import BookingError, Conflict, DuplicateKey, InvalidInput, NotFound
from .logging_config import get_logger
from .schemas import (
	AppointmentCreate,
	AppointmentDetail,
	AppointmentOut,
	DashboardOut,
	DoctorCreate,
	DoctorOut,
	DoctorUpdate,
	SlotCreate,
	SlotListItem,
	SlotOut,
	SlotUpdate,
)

logger = get_logger(__name__)

router = APIRouter()

ERROR_STATUS: dict[type[BookingError], int] = {
	NotFound: status.HTTP_404_NOT_FOUND,
	DuplicateKey: status.HTTP_409_CONFLICT,
	Conflict: status.HTTP_409_CONFLICT,
	InvalidInput: status.HTTP_400_BAD_REQUEST,
}


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
	code = next((c for kind, c in ERROR_STATUS.items() if isinstance(exc, kind)), status.HTTP_500_INTERNAL_SERVER_ERROR)
	if code >= 500:
		logger.error("unmapped_booking_error", path=request.url.path, kind=type(exc).__name__, error=exc.message)
	return JSONResponse(status_code=code, content={"error": exc.message})


# Doctors

@router.get("/doctors", response_model=list[DoctorOut], tags=["doctors"])
async def list_doctors(db: AsyncSession = Depends(get_db)):
	return await lifecycle.list_doctors(db)


@router.post("/doctors", response_model=DoctorOut, status_code=status.HTTP_201_CREATED, tags=["doctors"])
async def create_doctor(payload: DoctorCreate, db: AsyncSession = Depends(get_db)):
	return await lifecycle.create_doctor(db, payload.id, payload.name, payload.speciality, payload.room)


@router.put("/doctors/{doctor_id}", response_model=DoctorOut, tags=["doctors"])
async def update_doctor(doctor_id: str, payload: DoctorUpdate, db: AsyncSession = Depends(get_db)):
	return await lifecycle.update_doctor(db, doctor_id, **payload.model_dump(exclude_unset=True))


@router.delete("/doctors/{doctor_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["doctors"])
async def delete_doctor(doctor_id: str, db: AsyncSession = Depends(get_db)):
	await lifecycle.delete_doctor(db, doctor_id)
	return Response(status_code=status.HTTP_204_NO_CONTENT)


# Slots

@router.get("/slots", response_model=list[SlotListItem], tags=["slots"])
async def list_slots(
	doctor_id: Optional[str] = None,
	date: Optional[dt.date] = None,
	db: AsyncSession = Depends(get_db),
):
	rows = await lifecycle.list_slots(db, doctor_id=doctor_id, on_date=date)
	return [SlotListItem.from_row(r) for r in rows]


@router.post("/slots", response_model=SlotOut, status_code=status.HTTP_201_CREATED, tags=["slots"])
async def create_slot(payload: SlotCreate, db: AsyncSession = Depends(get_db)):
	return await lifecycle.create_slot(db, payload.doctor_id, payload.date, payload.time)


@router.put("/slots/{slot_id}", response_model=SlotOut, tags=["slots"])
async def update_slot(slot_id: str, payload: SlotUpdate, db: AsyncSession = Depends(get_db)):
	patch = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
	return await lifecycle.update_slot(db, slot_id, **patch)


@router.delete("/slots/{slot_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["slots"])
async def delete_slot(slot_id: str, db: AsyncSession = Depends(get_db)):
	await lifecycle.delete_slot(db, slot_id)
	return Response(status_code=status.HTTP_204_NO_CONTENT)


# Appointments

@router.get("/appointments", response_model=list[AppointmentDetail], tags=["appointments"])
async def list_appointments(db: AsyncSession = Depends(get_db)):
	rows = await lifecycle.list_appointments(db)
	return [AppointmentDetail.from_row(r) for r in rows]


@router.get("/appointments/{appointment_id}", response_model=AppointmentDetail, tags=["appointments"])
async def get_appointment(appointment_id: str, db: AsyncSession = Depends(get_db)):
	return AppointmentDetail.from_row(await lifecycle.get_appointment(db, appointment_id))


@router.post("/appointments", response_model=AppointmentOut, status_code=status.HTTP_201_CREATED, tags=["appointments"])
async def book_appointment(payload: AppointmentCreate, db: AsyncSession = Depends(get_db)):
	return await booking.book(db, payload.slot_id, payload.patient_name, payload.patient_phone, payload.reason)


@router.delete("/appointments/{appointment_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["appointments"])
async def cancel_appointment(appointment_id: str, db: AsyncSession = Depends(get_db)):
	await lifecycle.cancel_appointment(db, appointment_id)
	return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/dashboard", response_model=DashboardOut, tags=["dashboard"])
async def dashboard(db: AsyncSession = Depends(get_db)):
	return await lifecycle.dashboard(db)
