"""Background scheduler for the periodic reaper sweep."""

import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from burnlink.config import settings
from burnlink.database import SessionLocal
from burnlink.services.attempt_limiter import AttemptLimiter
from burnlink.services.secret_service import delete_finished_secrets

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()

JOB_ID = "delete_finished_secrets"


def cleanup_job(attempt_limiter: AttemptLimiter | None = None) -> int:
    """Delete expired and consumed one-time secrets, then drop stale attempt windows."""
    db = SessionLocal()
    try:
        deleted = delete_finished_secrets(db)
        if deleted:
            logger.info(f"Cleanup: deleted {deleted} secrets")
    except Exception as e:
        logger.error(f"Cleanup failed: {e}")
        return 0
    finally:
        db.close()

    if attempt_limiter is not None:
        evicted = attempt_limiter.evict_expired()
        if evicted:
            logger.info(f"Cleanup: evicted {evicted} attempt windows")
    return deleted


def start_scheduler(attempt_limiter: AttemptLimiter | None = None) -> None:
    """Start the background scheduler."""
    scheduler.add_job(
        cleanup_job,
        trigger=IntervalTrigger(minutes=settings.cleanup_interval_minutes),
        kwargs={"attempt_limiter": attempt_limiter},
        id=JOB_ID,
        replace_existing=True,
    )
    scheduler.start()
    logger.info(
        f"Scheduler started - cleanup runs every {settings.cleanup_interval_minutes} minute(s)"
    )


def shutdown_scheduler() -> None:
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduler stopped")


def main() -> None:
    """Run a single sweep, for cron or other external schedulers."""
    from burnlink.logging_config import setup_logging

    setup_logging()
    db = SessionLocal()
    try:
        deleted = delete_finished_secrets(db)
    finally:
        db.close()
    logger.info(f"Expired and viewed one-time secrets deleted: {deleted}")


if __name__ == "__main__":
    main()
