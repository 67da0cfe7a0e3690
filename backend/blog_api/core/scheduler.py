"""
Background scheduler for automatic backups.

Only started when AUTO_BACKUP_ENABLED is set; the default process runs
without any background job.
- Automatic backup: every AUTO_BACKUP_INTERVAL_HOURS, then prune old files
"""

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from blog_api.core.config import settings
from blog_api.core.database import SessionLocal
from blog_api.services.backup_service import backup_service
from blog_api.storage.backup_storage import backup_storage
import logging

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler()


def automatic_backup_job():
    """
    Write a snapshot to the backup directory and prune old ones.

    Failures are logged; the next run tries again.
    """
    db = SessionLocal()
    try:
        snapshot = backup_service.export_all(
            db, include_images=settings.AUTO_BACKUP_INCLUDE_IMAGES)
        filename = backup_storage.save(snapshot)
        logger.info(f"Automatic backup written: {filename}")

        removed = backup_storage.prune(settings.BACKUP_RETENTION)
        if removed:
            logger.info(f"Pruned {len(removed)} old backup(s): {', '.join(removed)}")
    except Exception as e:
        logger.error(f"Error in automatic_backup_job: {str(e)}")
    finally:
        db.close()


def start_scheduler():
    """
    Start the background scheduler if automatic backups are enabled.

    Called from the FastAPI lifespan on startup.
    """
    if not settings.AUTO_BACKUP_ENABLED:
        logger.info("Automatic backups disabled; scheduler not started.")
        return

    if not scheduler.running:
        scheduler.add_job(
            automatic_backup_job,
            trigger=IntervalTrigger(hours=settings.AUTO_BACKUP_INTERVAL_HOURS),
            id="automatic_backup",
            name="Automatic backup",
            replace_existing=True
        )

        scheduler.start()
        logger.info(
            f"Background scheduler started. Automatic backup every {settings.AUTO_BACKUP_INTERVAL_HOURS} hours.")


def stop_scheduler():
    """Stop the background scheduler on app shutdown."""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Background scheduler stopped.")
