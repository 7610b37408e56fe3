"""
Invitation sweeper job.

Marks stale pending invitations expired and sends expiry reminders. Lazy
expiry at validation time already gives the same answers; the sweeper only
keeps listings and the pending_key index tidy.
"""
import logging
from apscheduler.triggers.interval import IntervalTrigger
from app.core.config import INVITATION_SWEEP_INTERVAL_MINUTES, INVITATION_REMINDER_HOURS
from app.core.database import SessionLocal
from app.services.invitation import expire_stale_invitations, send_expiry_reminders
from app.services.scheduler.scheduler_service import get_scheduler

logger = logging.getLogger(__name__)

JOB_ID = "invitation_sweeper"


def sweep_invitations(session_factory=SessionLocal) -> dict:
    """
    Run one sweep with its own session.

    Returns:
        {"expired": int, "reminded": int}
    """
    db = session_factory()
    try:
        expired = expire_stale_invitations(db)
        reminded = send_expiry_reminders(db, within_hours=INVITATION_REMINDER_HOURS)
        logger.info(f"Invitation sweep completed: {expired} expired, {reminded} reminded")
        return {"expired": expired, "reminded": reminded}
    except Exception as e:
        logger.error(f"Error in invitation sweep: {e}", exc_info=True)
        db.rollback()
        raise
    finally:
        db.close()


def add_sweeper_job(interval_minutes: int = INVITATION_SWEEP_INTERVAL_MINUTES):
    """Register the sweeper on the global scheduler."""
    scheduler = get_scheduler()
    scheduler.add_job(
        sweep_invitations,
        trigger=IntervalTrigger(minutes=interval_minutes),
        id=JOB_ID,
        replace_existing=True,
        max_instances=1  # Prevent overlapping sweeps
    )
    logger.info(f"Added invitation sweeper job (every {interval_minutes} minutes)")


def remove_sweeper_job():
    scheduler = get_scheduler()
    if scheduler.get_job(JOB_ID):
        scheduler.remove_job(JOB_ID)
