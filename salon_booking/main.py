from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging
import os

from salon_booking.core.config import settings
from salon_booking.core.errors import (
    BookingError,
    DatabaseError,
    DuplicateReview,
    InvalidRating,
    InvalidStatus,
    InvalidTimeRange,
    NotFound,
    ReservationNotFound,
    ReviewUpdateExpired,
    SlotNotAvailable,
)
from salon_booking.routes import reservations, reviews

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# Checked in order, so subclasses come before their parents
ERROR_STATUS_CODES = (
    (NotFound, status.HTTP_404_NOT_FOUND),
    (ReservationNotFound, status.HTTP_404_NOT_FOUND),
    (InvalidTimeRange, status.HTTP_400_BAD_REQUEST),
    (InvalidRating, status.HTTP_400_BAD_REQUEST),
    (SlotNotAvailable, status.HTTP_409_CONFLICT),
    (DuplicateReview, status.HTTP_409_CONFLICT),
    (InvalidStatus, status.HTTP_409_CONFLICT),
    (ReviewUpdateExpired, 422),
    (DatabaseError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def status_for(error: BookingError) -> int:
    for error_type, status_code in ERROR_STATUS_CODES:
        if isinstance(error, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Salon Booking API starting...")
    if settings.IS_SQLITE:
        logger.info("Development mode - SQLite backend, overlap exclusion constraint not available")
    yield
    logger.info("Salon Booking API shutting down")

app = FastAPI(
    title="Salon Booking API",
    description="Reservation scheduling and reviews for salons",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGIN_LIST,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code} {exc.message}")
    return JSONResponse(status_code=status_code, content={"code": exc.code, "message": exc.message})


# Include routers
app.include_router(reservations.router, prefix="/api/reservations", tags=["Reservations"])
app.include_router(reviews.router, prefix="/api/reviews", tags=["Reviews"])

@app.get("/")
async def root():
    return {
        "message": "Welcome to Salon Booking API",
        "status": "healthy",
        "version": "1.0.0",
        "environment": "development" if settings.DEBUG else "production"
    }

@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "message": "Salon Booking API is running",
    }

if __name__ == "__main__":
    import uvicorn
    port = int(os.environ.get("PORT", 8000))
    uvicorn.run("salon_booking.main:app", host="0.0.0.0", port=port, reload=settings.DEBUG)
