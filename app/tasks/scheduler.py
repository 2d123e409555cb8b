# app/tasks/scheduler.py
"""
Background scheduler for periodic negotiation jobs.

Uses APScheduler to run the offer expiry sweep on a fixed interval.
"""
import logging
from typing import Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_MISSED
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import Settings
from app.tasks.expiry_tasks import sweep_expired_offers

logger = logging.getLogger(__name__)

scheduler: Optional[BackgroundScheduler] = None


def _on_job_error(event):
    exc = event.exception
    logger.error(
        "Scheduled job FAILED: job_id=%s error=%s",
        event.job_id,
        exc,
        exc_info=(type(exc), exc, None) if exc else None,
    )
    if event.traceback:
        logger.error("Traceback for job %s:\n%s", event.job_id, event.traceback)


def _on_job_missed(event):
    logger.warning(
        "Scheduled job MISSED: job_id=%s scheduled_run_time=%s",
        event.job_id,
        event.scheduled_run_time,
    )


def init_scheduler(settings: Settings) -> BackgroundScheduler:
    """
    Build the scheduler and register jobs. Called once at startup.
    """
    global scheduler

    if scheduler is not None:
        logger.warning("Scheduler already initialized")
        return scheduler

    scheduler = BackgroundScheduler(
        timezone="UTC",
        job_defaults={
            "coalesce": True,  # combine missed executions
            "max_instances": 1,
            "misfire_grace_time": 60,
        },
    )

    scheduler.add_job(
        func=sweep_expired_offers,
        trigger=IntervalTrigger(minutes=settings.expiry_sweep_interval_minutes),
        id="sweep_expired_offers",
        name="Expire Offers Past Their Negotiation Window",
        replace_existing=True,
    )
    logger.info(
        "Scheduled job: sweep_expired_offers (every %s minutes)",
        settings.expiry_sweep_interval_minutes,
    )

    scheduler.add_listener(_on_job_error, EVENT_JOB_ERROR)
    scheduler.add_listener(_on_job_missed, EVENT_JOB_MISSED)
    return scheduler


def start_scheduler(settings: Settings) -> Optional[BackgroundScheduler]:
    if not settings.expiry_sweep_enabled:
        logger.info("Expiry sweep disabled; scheduler not started")
        return None

    sched = init_scheduler(settings)
    if not sched.running:
        sched.start()
        logger.info("Background scheduler started")
    return sched


def shutdown_scheduler() -> None:
    global scheduler

    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Background scheduler stopped")
    scheduler = None
