from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import booking_error_handler
from .config import get_settings
from .errors import BookingError
from .logging_config import setup_structured_logging
from .router import api_router
from .startup import init_models

settings = get_settings()
setup_structured_logging(settings.LOG_LEVEL, json_logs=settings.LOG_JSON)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown."""
    await init_models(seed_data=settings.SEED_ON_STARTUP)
    yield


app = FastAPI(
    title="Clinicbook API",
    description="Doctor slot booking with storage-enforced double-booking protection",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(BookingError, booking_error_handler)
app.include_router(api_router)
