import asyncio
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from . import models
from .database import engine
from .exceptions import StayBnBError
from .routers import auth_router, property_router, booking_router, review_router
from .booking_scheduler import run_booking_scheduler

import redis.asyncio as redis
from fastapi_limiter import FastAPILimiter
from .config import settings

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("staybnb")

# Alembic owns the PostgreSQL schema (incl. the booking exclusion constraint);
# this only fills in missing tables for local runs.
models.Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manages application startup and shutdown events.
    """
    logger.info("StayBnB starting up...")

    redis_client = None
    try:
        redis_client = redis.from_url(settings.REDIS_URL, encoding="utf-8")
        await FastAPILimiter.init(redis_client)
        logger.info("FastAPILimiter initialized with Redis.")
    except Exception as e:
        logger.error(f"Failed to initialize FastAPILimiter: {e}")

    # Start the booking scheduler as a background task
    scheduler_task = asyncio.create_task(run_booking_scheduler())

    yield  # The application is now running

    logger.info("Shutting down background tasks...")
    scheduler_task.cancel()
    try:
        await scheduler_task
    except asyncio.CancelledError:
        logger.info("Booking scheduler task successfully cancelled.")
    except Exception as e:
        logger.error(f"Error during booking scheduler shutdown: {e}")

    if redis_client is not None:
        await redis_client.aclose()


app = FastAPI(
    title="StayBnB API",
    description="Short-term rental marketplace: listings, bookings and reviews.",
    version="1.0.0",
    lifespan=lifespan
)


@app.exception_handler(StayBnBError)
async def staybnb_error_handler(request: Request, exc: StayBnBError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    # Missing fields and malformed dates are client errors, reported as 400
    errors = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'] if part != 'body')}: {err['msg']}"
        for err in exc.errors()
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": f"Invalid request: {errors}"},
    )


app.include_router(auth_router.router)
app.include_router(property_router.router)
app.include_router(booking_router.router)
app.include_router(review_router.router)


@app.get("/")
def read_root():
    return {"message": "Welcome to the StayBnB API"}
