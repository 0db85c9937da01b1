"""
Scheduler for insight cache housekeeping

Uses APScheduler to sweep expired cache entries and purge finished
generation jobs for every registered organization.
"""
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from typing import Optional

from growth_insights.config import get_settings
from growth_insights.services.insights_engine import EngineRegistry
from growth_insights.utils.logger import log

settings = get_settings()
scheduler: Optional[AsyncIOScheduler] = None


async def sweep_caches(registry: EngineRegistry):
    """Drop expired entries from every organization's cache"""
    try:
        removed = registry.cache_registry.sweep_expired()
        log.info(f"Cache sweep completed: {removed} expired entries removed")
    except Exception as e:
        log.error(f"Cache sweep error: {str(e)}")


async def purge_jobs(registry: EngineRegistry):
    """Forget finished jobs older than the retention window"""
    try:
        purged = registry.purge_expired_jobs()
        if purged:
            log.info(f"Job purge completed: {purged} finished jobs removed")
    except Exception as e:
        log.error(f"Job purge error: {str(e)}")


def setup_scheduler(registry: EngineRegistry) -> AsyncIOScheduler:
    """
    Configure the housekeeping jobs.

    - Cache sweep: every cache_sweep_interval_minutes (default 15)
    - Job purge:   every minute
    """
    new_scheduler = AsyncIOScheduler()

    new_scheduler.add_job(
        sweep_caches,
        trigger=IntervalTrigger(minutes=settings.cache_sweep_interval_minutes),
        args=[registry],
        id='insight_cache_sweep',
        name='Insight Cache Sweep',
        replace_existing=True,
        max_instances=1
    )

    new_scheduler.add_job(
        purge_jobs,
        trigger=IntervalTrigger(minutes=1),
        args=[registry],
        id='insight_job_purge',
        name='Generation Job Purge',
        replace_existing=True,
        max_instances=1
    )

    log.info("Scheduler configured with cache sweep and job purge")
    return new_scheduler


def start_scheduler(registry: EngineRegistry):
    """Start the scheduler"""
    global scheduler
    scheduler = setup_scheduler(registry)
    scheduler.start()
    log.info("Scheduler started")


def stop_scheduler():
    """Stop the scheduler"""
    global scheduler
    if scheduler is None:
        return
    scheduler.shutdown(wait=False)
    scheduler = None
    log.info("Scheduler stopped")
