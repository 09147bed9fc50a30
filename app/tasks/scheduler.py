"""Background scheduler for periodic PDF cache maintenance."""

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.services.cache import PDFCache

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "sweep_expired_pdfs"


def sweep_expired_pdfs(cache: PDFCache) -> int:
    """Drop expired PDFs from the cache."""
    try:
        return cache.cleanup_expired()
    except Exception as e:
        logger.error("Failed to sweep expired PDFs: %s", e, extra={"error": str(e)})
        return 0


def start_scheduler(cache: PDFCache, interval_seconds: int = 60) -> AsyncIOScheduler:
    """Create and start a scheduler that sweeps ``cache`` every ``interval_seconds``."""
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        sweep_expired_pdfs,
        trigger=IntervalTrigger(seconds=interval_seconds),
        args=[cache],
        id=SWEEP_JOB_ID,
        replace_existing=True,
    )
    scheduler.start()
    logger.info("Scheduler started, sweeping PDF cache every %ss", interval_seconds)
    return scheduler


def stop_scheduler(scheduler: AsyncIOScheduler) -> None:
    """Stop the background scheduler."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
