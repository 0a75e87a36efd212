"""
Workflow outbox.

Workflow transitions call ``enqueue`` inside their own transaction, so the
side effect is recorded if and only if the state change commits. The
background worker calls ``process_due_tasks`` to run them.

Task lifecycle: queued -> processing -> completed, or back to queued with
exponential backoff until max_attempts, then failed. Rows stuck in
processing past WORKFLOW_TASK_STALE_MINUTES (worker died mid-task) are
re-queued on the next drain.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from resolve.core.config import settings
from resolve.core.logger import logger
from resolve.db.models import WorkflowTask, WorkflowTaskStatus

TaskHandler = Callable[[Session, Dict[str, Any]], None]

_handlers: Dict[str, TaskHandler] = {}


def register(task_type: str) -> Callable[[TaskHandler], TaskHandler]:
    def decorator(fn: TaskHandler) -> TaskHandler:
        _handlers[task_type] = fn
        return fn
    return decorator


def enqueue(
    db: Session,
    task_type: str,
    payload: Dict[str, Any],
    dedupe_key: Optional[str] = None,
    run_after: Optional[datetime] = None,
) -> Optional[WorkflowTask]:
    """
    Add a task to the current transaction. Returns None when a task with the
    same dedupe_key already exists. Does not commit.
    """
    if dedupe_key:
        existing = db.query(WorkflowTask.id).filter(WorkflowTask.dedupe_key == dedupe_key).first()
        if existing is not None:
            logger.info("Outbox task %s already enqueued; skipping", dedupe_key)
            return None

    task = WorkflowTask(
        task_type=task_type,
        payload=payload,
        dedupe_key=dedupe_key,
        status=WorkflowTaskStatus.queued.value,
        attempts=0,
        max_attempts=settings.WORKFLOW_TASK_MAX_ATTEMPTS,
        run_after=run_after or datetime.utcnow(),
    )
    db.add(task)
    return task


def enqueue_email(
    db: Session,
    to: str,
    template_id: str,
    variables: Dict[str, Any],
    dedupe_key: Optional[str] = None,
) -> Optional[WorkflowTask]:
    return enqueue(
        db,
        "send_email",
        {"to": to, "template_id": template_id, "vars": variables},
        dedupe_key=dedupe_key,
    )


def _retry_delay(attempts: int) -> timedelta:
    return timedelta(seconds=settings.WORKFLOW_TASK_BASE_DELAY_SECONDS * (2 ** max(attempts - 1, 0)))


def reclaim_stale_tasks(db: Session, now: Optional[datetime] = None) -> int:
    now = now or datetime.utcnow()
    cutoff = now - timedelta(minutes=settings.WORKFLOW_TASK_STALE_MINUTES)
    reclaimed = (
        db.query(WorkflowTask)
        .filter(
            WorkflowTask.status == WorkflowTaskStatus.processing.value,
            WorkflowTask.started_at < cutoff,
        )
        .update(
            {"status": WorkflowTaskStatus.queued.value, "run_after": now},
            synchronize_session=False,
        )
    )
    db.commit()
    if reclaimed:
        logger.warning("Reclaimed %s stale outbox task(s)", reclaimed)
    return reclaimed


def _claim(db: Session, task_id, now: datetime) -> bool:
    claimed = (
        db.query(WorkflowTask)
        .filter(
            WorkflowTask.id == task_id,
            WorkflowTask.status == WorkflowTaskStatus.queued.value,
        )
        .update(
            {
                "status": WorkflowTaskStatus.processing.value,
                "attempts": WorkflowTask.attempts + 1,
                "started_at": now,
            },
            synchronize_session=False,
        )
    )
    db.commit()
    return claimed == 1


def run_task(db: Session, task: WorkflowTask, now: Optional[datetime] = None) -> bool:
    """Run one claimed task and record the outcome. Returns True on success."""
    now = now or datetime.utcnow()
    handler = _handlers.get(task.task_type)
    task_id = task.id
    try:
        if handler is None:
            raise LookupError(f"No handler registered for task type '{task.task_type}'")
        handler(db, dict(task.payload or {}))
    except Exception as exc:
        db.rollback()
        task = db.get(WorkflowTask, task_id)
        task.last_error = str(exc)[:2000]
        if task.attempts >= task.max_attempts:
            task.status = WorkflowTaskStatus.failed.value
            logger.error("Outbox task %s (%s) failed permanently: %s", task.id, task.task_type, exc)
        else:
            task.status = WorkflowTaskStatus.queued.value
            task.run_after = now + _retry_delay(task.attempts)
            logger.warning(
                "Outbox task %s (%s) attempt %s failed, retry at %s: %s",
                task.id, task.task_type, task.attempts, task.run_after, exc,
            )
        db.commit()
        return False

    task = db.get(WorkflowTask, task_id)
    task.status = WorkflowTaskStatus.completed.value
    task.completed_at = datetime.utcnow()
    task.last_error = None
    db.commit()
    logger.info("Outbox task %s (%s) completed", task.id, task.task_type)
    return True


def process_due_tasks(db: Session, now: Optional[datetime] = None, limit: Optional[int] = None) -> Dict[str, int]:
    """Drain due outbox tasks. Safe to run from several workers."""
    from resolve.services import task_handlers  # noqa: F401  registers handlers

    now = now or datetime.utcnow()
    limit = limit or settings.WORKFLOW_WORKER_BATCH_SIZE
    stats = {"reclaimed": reclaim_stale_tasks(db, now), "completed": 0, "failed": 0, "skipped": 0}

    due_ids = [
        row.id
        for row in db.query(WorkflowTask.id)
        .filter(
            WorkflowTask.status == WorkflowTaskStatus.queued.value,
            WorkflowTask.run_after <= now,
        )
        .order_by(WorkflowTask.created_at.asc())
        .limit(limit)
        .all()
    ]

    for task_id in due_ids:
        if not _claim(db, task_id, now):
            stats["skipped"] += 1
            continue
        task = db.get(WorkflowTask, task_id)
        db.refresh(task)
        if run_task(db, task, now):
            stats["completed"] += 1
        else:
            stats["failed"] += 1

    if due_ids:
        logger.info("Outbox drain: %s", stats)
    return stats
