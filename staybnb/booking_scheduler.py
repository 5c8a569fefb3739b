import asyncio
import logging
from datetime import date
from sqlalchemy.orm import Session
from .database import SessionLocal
from .config import settings
from . import crud

logger = logging.getLogger("booking_scheduler")


async def complete_finished_stays(db: Session, today: date | None = None) -> int:
    """
    Moves bookings whose check-out date has been reached to 'completed',
    which is what makes the guest eligible to leave a review.
    """
    today = today or date.today()
    logger.info(f"Checking for stays that ended on or before {today}...")

    # The ORM call blocks, so keep it off the event loop
    completed = await asyncio.to_thread(crud.complete_finished_bookings, db, today)

    if completed:
        logger.info(f"Marked {completed} bookings as completed.")
    else:
        logger.info("No stays to complete.")
    return completed


async def run_booking_scheduler(interval_seconds: int | None = None):
    """
    Main background loop for the scheduler.
    """
    interval = interval_seconds or settings.BOOKING_SCHEDULER_INTERVAL_SECONDS
    while True:
        logger.info("Scheduler waking up to complete finished stays...")
        db: Session = SessionLocal()
        try:
            await complete_finished_stays(db)
        except Exception as e:
            logger.error(f"Error in booking scheduler loop: {e}")
            db.rollback()
        finally:
            db.close()

        await asyncio.sleep(interval)
