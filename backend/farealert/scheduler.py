"""
APScheduler setup for the periodic price check.

The job runs in-process with max_instances=1; manual triggers share the same
lock so two runs never overlap inside one process.
"""

import asyncio
import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.jobstores.memory import MemoryJobStore

from farealert.database import SessionLocal
from farealert.services.fare_gateway import AmadeusFareGateway, build_fare_gateway
from farealert.services.pipeline import PriceCheckPipeline
from farealert.config import get_settings
import os

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler: Optional[AsyncIOScheduler] = None

# Process-wide gateway so the cached credential survives between runs
_fare_gateway: Optional[AmadeusFareGateway] = None
_run_lock = asyncio.Lock()

settings = get_settings()


def get_fare_gateway() -> AmadeusFareGateway:
    global _fare_gateway
    if _fare_gateway is None:
        _fare_gateway = build_fare_gateway(settings)
    return _fare_gateway


def get_scheduler() -> AsyncIOScheduler:
    """Get or create the global scheduler instance."""
    global scheduler
    if scheduler is None:
        tz = os.environ.get('TZ', 'UTC')
        logger.info(f"Scheduler using timezone: {tz}")

        scheduler = AsyncIOScheduler(
            jobstores={'default': MemoryJobStore()},
            timezone=tz
        )

        _setup_scheduled_jobs()

    return scheduler


def _setup_scheduled_jobs():
    scheduler.add_job(
        scheduled_price_check,
        trigger=IntervalTrigger(hours=settings.price_check_interval_hours),
        id='price_check',
        name='Flight Price Check',
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    logger.info(f"Scheduled jobs configured: price check every {settings.price_check_interval_hours}h")


async def run_price_check() -> dict:
    """
    Execute one full pipeline run and return its outward result:
    {success, destinationsChecked, alertsTriggered, results[]}.
    """
    if _run_lock.locked():
        logger.warning("Price check already in progress, not starting another")
        return {
            "success": False,
            "destinationsChecked": 0,
            "alertsTriggered": 0,
            "alertsUnsent": 0,
            "alertsFailed": 0,
            "results": [],
            "error": "A price check is already running",
        }

    async with _run_lock:
        db = SessionLocal()
        try:
            pipeline = PriceCheckPipeline(db, get_fare_gateway())
            result = await pipeline.run(timeout=settings.pipeline_timeout_seconds)
            return result.to_dict()
        finally:
            db.close()


async def scheduled_price_check():
    try:
        result = await run_price_check()
        logger.info(
            f"Scheduled price check finished: success={result['success']} "
            f"checked={result['destinationsChecked']} alerts={result['alertsTriggered']}"
        )
    except Exception as e:
        logger.error(f"Error in scheduled price check: {e}")


def start_scheduler():
    """Start the scheduler (call this from FastAPI startup)."""
    scheduler_instance = get_scheduler()

    if not scheduler_instance.running:
        scheduler_instance.start()
        logger.info("APScheduler started successfully")

        for job in scheduler_instance.get_jobs():
            logger.info(f"Next '{job.name}': {job.next_run_time}")
    else:
        logger.warning("Scheduler already running")


def stop_scheduler():
    """Stop the scheduler (call this from FastAPI shutdown)."""
    global scheduler
    if scheduler and scheduler.running:
        scheduler.shutdown()
        logger.info("APScheduler stopped")
        scheduler = None


def get_scheduler_status() -> dict:
    if scheduler is None or not scheduler.running:
        return {"running": False, "jobs": [], "next_run": None}

    jobs = []
    next_run = None
    for job in scheduler.get_jobs():
        jobs.append({
            "id": job.id,
            "name": job.name,
            "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
        })
        if job.next_run_time and (next_run is None or job.next_run_time < next_run):
            next_run = job.next_run_time

    return {
        "running": True,
        "jobs": jobs,
        "next_run": next_run.isoformat() if next_run else None
    }
