from __future__ import annotations

from fastapi import APIRouter

from .api import router as booking_router

api_router = APIRouter()
api_router.include_router(booking_router)


@api_router.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "service": "clinicbook-api"}
