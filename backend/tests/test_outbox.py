from datetime import datetime, timedelta

from resolve.db.models import WorkflowTask
from resolve.services import task_service
from resolve.services.email_service import email_service


def _queue(db, task_type, payload=None, dedupe_key=None, max_attempts=None):
    task = task_service.enqueue(db, task_type, payload or {}, dedupe_key=dedupe_key)
    if task is not None and max_attempts is not None:
        task.max_attempts = max_attempts
    db.commit()
    return task


def test_enqueue_with_same_dedupe_key_is_skipped(db):
    first = _queue(db, "noop", dedupe_key="application:1:submitted")
    second = _queue(db, "noop", dedupe_key="application:1:submitted")

    assert first is not None
    assert second is None
    assert db.query(WorkflowTask).count() == 1


def test_successful_task_is_completed(db, monkeypatch):
    seen = []
    monkeypatch.setitem(task_service._handlers, "record", lambda db, payload: seen.append(payload))
    task = _queue(db, "record", {"n": 1})

    stats = task_service.process_due_tasks(db)

    assert stats["completed"] == 1
    assert seen == [{"n": 1}]
    db.refresh(task)
    assert task.status == "completed"
    assert task.attempts == 1
    assert task.completed_at is not None


def test_failing_task_backs_off_then_fails(db, monkeypatch):
    def _boom(db, payload):
        raise RuntimeError("provider down")

    monkeypatch.setitem(task_service._handlers, "boom", _boom)
    task = _queue(db, "boom", max_attempts=2)
    now = datetime.utcnow()

    task_service.process_due_tasks(db, now=now)
    db.refresh(task)
    assert task.status == "queued"
    assert task.attempts == 1
    assert task.last_error == "provider down"
    assert task.run_after > now

    # Not due yet: nothing runs.
    assert task_service.process_due_tasks(db, now=now)["failed"] == 0

    task_service.process_due_tasks(db, now=task.run_after + timedelta(seconds=1))
    db.refresh(task)
    assert task.status == "failed"
    assert task.attempts == 2


def test_backoff_grows_exponentially():
    assert task_service._retry_delay(2) == 2 * task_service._retry_delay(1)
    assert task_service._retry_delay(3) == 4 * task_service._retry_delay(1)


def test_stale_processing_task_is_reclaimed_and_completed(db, monkeypatch):
    monkeypatch.setitem(task_service._handlers, "record", lambda db, payload: None)
    task = _queue(db, "record")
    task.status = "processing"
    task.attempts = 1
    task.started_at = datetime.utcnow() - timedelta(hours=1)
    task.run_after = datetime.utcnow() - timedelta(hours=1)
    db.commit()

    stats = task_service.process_due_tasks(db)

    assert stats["reclaimed"] == 1
    assert stats["completed"] == 1
    db.refresh(task)
    assert task.status == "completed"


def test_recent_processing_task_is_left_alone(db):
    task = _queue(db, "record")
    task.status = "processing"
    task.started_at = datetime.utcnow()
    db.commit()

    assert task_service.process_due_tasks(db)["reclaimed"] == 0
    db.refresh(task)
    assert task.status == "processing"


def test_claim_only_succeeds_once(db):
    task = _queue(db, "record")
    now = datetime.utcnow()

    assert task_service._claim(db, task.id, now) is True
    assert task_service._claim(db, task.id, now) is False


def test_undelivered_email_is_retried(db, monkeypatch):
    monkeypatch.setattr(email_service, "send", lambda to, template_id, variables: False)
    task = task_service.enqueue_email(db, "jane@example.com", "welcome", {"full_name": "Jane"})
    db.commit()

    stats = task_service.process_due_tasks(db)

    assert stats["failed"] == 1
    db.refresh(task)
    assert task.status == "queued"
    assert "not delivered" in task.last_error


def test_unknown_task_type_is_recorded_as_failure(db):
    task = _queue(db, "does_not_exist")

    task_service.process_due_tasks(db)

    db.refresh(task)
    assert "No handler registered" in task.last_error


def test_admin_can_drain_outbox(client, admin_headers, application, sent_emails):
    resp = client.post("/api/admin/tasks/run", headers=admin_headers)

    assert resp.status_code == 200
    assert resp.json()["data"]["completed"] == 1
    assert [e["template_id"] for e in sent_emails] == ["welcome"]
