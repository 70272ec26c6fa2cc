"""
Periodic lifecycle tasks.
"""
import logging

from eventyukk.controller.event_cleanup_controller import run_event_sweep
from eventyukk.database import SessionLocal
from eventyukk.worker.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="eventyukk.worker.tasks.sweep_ended_events")
def sweep_ended_events():
    """
    Mark overdue registrations absent and archive events that ended more
    than a month ago. Runs hourly via beat schedule.
    """
    logger.info("Starting event sweep")
    db = SessionLocal()
    try:
        result = run_event_sweep(db)
    finally:
        db.close()
    logger.info("Event sweep finished: %s", result)
    return result
