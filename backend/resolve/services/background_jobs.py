"""
services/background_jobs.py

Scheduled background jobs.

Jobs:
  1. process_workflow_tasks
     Drains the workflow outbox (emails, strategy-pack generation).
     Runs every WORKFLOW_WORKER_INTERVAL_SECONDS.

  2. sweep_expired_records
     Deletes expired idempotency records and notifications. Hourly.

Started and stopped from the FastAPI lifespan in resolve.main.
"""

from __future__ import annotations

import asyncio
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from resolve.core.config import settings
from resolve.db.database import SessionLocal

logger = logging.getLogger(__name__)

# ── Scheduler singleton ───────────────────────────────────────────────────────
_scheduler: AsyncIOScheduler | None = None


def start_scheduler() -> None:
    """
    Starts the APScheduler background job scheduler.
    Call this from FastAPI lifespan startup.
    """
    global _scheduler

    _scheduler = AsyncIOScheduler(timezone="UTC")

    if settings.WORKFLOW_WORKER_ENABLED:
        _scheduler.add_job(
            process_workflow_tasks,
            trigger=IntervalTrigger(seconds=settings.WORKFLOW_WORKER_INTERVAL_SECONDS),
            id="process_workflow_tasks",
            name="Drain workflow outbox",
            replace_existing=True,
            max_instances=1,          # never run two at once
            misfire_grace_time=60,
        )

    _scheduler.add_job(
        sweep_expired_records,
        trigger=IntervalTrigger(minutes=60),
        id="sweep_expired_records",
        name="Sweep expired idempotency records and notifications",
        replace_existing=True,
        max_instances=1,
        misfire_grace_time=300,
    )

    _scheduler.start()
    logger.info("Background scheduler started with %s job(s)", len(_scheduler.get_jobs()))


def shutdown_scheduler() -> None:
    """Gracefully shuts down the scheduler. Call from FastAPI lifespan shutdown."""
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info("Background scheduler shut down")


# ============================================================================
# Job 1: Workflow outbox
# ============================================================================

def _drain_outbox() -> dict:
    from resolve.services.task_service import process_due_tasks

    db = SessionLocal()
    try:
        return process_due_tasks(db)
    finally:
        db.close()


async def process_workflow_tasks() -> None:
    """AI generation and email calls block, so the drain runs in a worker thread."""
    try:
        stats = await asyncio.to_thread(_drain_outbox)
    except Exception as e:
        logger.error("Job: process_workflow_tasks failed: %s", e, exc_info=True)
        return
    if stats.get("completed") or stats.get("failed"):
        logger.info("Job: process_workflow_tasks %s", stats)


# ============================================================================
# Job 2: Expired record sweep
# ============================================================================

def _sweep() -> tuple[int, int]:
    from resolve.services.idempotency_service import purge_expired
    from resolve.services.notification_service import delete_expired

    db = SessionLocal()
    try:
        return purge_expired(db), delete_expired(db)
    finally:
        db.close()


async def sweep_expired_records() -> None:
    try:
        idem, notes = await asyncio.to_thread(_sweep)
    except Exception as e:
        logger.error("Job: sweep_expired_records failed: %s", e, exc_info=True)
        return
    logger.info("Job: sweep_expired_records removed %s idempotency record(s), %s notification(s)", idem, notes)
