import uuid
from datetime import datetime, timedelta, timezone

import pytest

from resolve.db.models import Notification, TimelineEntry
from resolve.services import document_workflow_service, notification_service

NOW = datetime(2025, 3, 10, 9, 0, 0)


@pytest.mark.parametrize(
    "offset, expected",
    [
        (timedelta(days=-2), "critical"),
        (timedelta(hours=12), "critical"),
        (timedelta(days=1), "critical"),
        (timedelta(days=2), "high"),
        (timedelta(days=3), "high"),
        (timedelta(days=5), "medium"),
        (timedelta(days=7), "medium"),
        (timedelta(days=7, hours=1), None),
        (timedelta(days=30), None),
    ],
)
def test_deadline_priority_thresholds(offset, expected):
    assert notification_service.deadline_priority(NOW + offset, NOW) == expected


def _deadline(db, user, case, due, title="Serve payment claim"):
    entry = TimelineEntry(
        user_id=user.id,
        case_id=case.id,
        title=title,
        event_type="deadline",
        event_date=due,
        due_date=due,
        status="pending",
    )
    db.add(entry)
    db.commit()
    return entry


def test_offset_deadline_is_stored_as_utc(client, db, user, case, user_headers):
    sydney = timezone(timedelta(hours=10))
    due = (NOW - timedelta(hours=5)).replace(tzinfo=timezone.utc).astimezone(sydney)

    resp = client.post(
        "/api/timeline",
        json={"caseId": str(case.id), "title": "Lodge adjudication", "eventType": "deadline",
              "dueDate": due.isoformat()},
        headers=user_headers,
    )
    entry = db.get(TimelineEntry, uuid.UUID(resp.json()["data"]["id"]))
    assert entry.due_date == NOW - timedelta(hours=5)

    notification_service.generate_notifications(db, user, NOW)
    db.refresh(entry)
    assert entry.status == "overdue"


def test_offset_next_action_due_is_stored_as_utc(client, db, case, user_headers):
    due = datetime(2025, 3, 12, 9, 0, tzinfo=timezone(timedelta(hours=10)))

    client.put(f"/api/cases/{case.id}", json={"nextActionDue": due.isoformat()}, headers=user_headers)

    db.refresh(case)
    assert case.next_action_due == datetime(2025, 3, 11, 23, 0)


def test_candidate_is_materialized_once_per_day(db, user, case):
    _deadline(db, user, case, NOW + timedelta(days=2))

    assert notification_service.generate_notifications(db, user, NOW) == 1
    assert notification_service.generate_notifications(db, user, NOW + timedelta(hours=1)) == 0

    notification = db.query(Notification).one()
    assert notification.priority == "high"
    assert notification.type == "deadline"
    assert notification.related_type == "timeline"


def test_candidate_reappears_after_dedupe_window(db, user, case):
    _deadline(db, user, case, NOW + timedelta(days=6))

    notification_service.generate_notifications(db, user, NOW)
    assert notification_service.generate_notifications(db, user, NOW + timedelta(hours=25)) == 1


def test_overdue_entry_is_marked_overdue(db, user, case):
    entry = _deadline(db, user, case, NOW - timedelta(days=1))

    notification_service.generate_notifications(db, user, NOW)

    db.refresh(entry)
    assert entry.status == "overdue"
    notification = db.query(Notification).one()
    assert notification.priority == "critical"
    assert notification.title == "Deadline overdue"


def test_far_and_completed_deadlines_are_ignored(db, user, case):
    _deadline(db, user, case, NOW + timedelta(days=20), title="Far away")
    done = _deadline(db, user, case, NOW + timedelta(days=1), title="Done")
    done.is_completed = True
    done.status = "completed"
    db.commit()

    assert notification_service.generate_notifications(db, user, NOW) == 0


def test_case_next_action_produces_notification(db, user, case):
    case.next_action = "Call the builder"
    case.next_action_due = NOW + timedelta(hours=6)
    db.commit()

    notification_service.generate_notifications(db, user, NOW)

    notification = db.query(Notification).one()
    assert notification.type == "next_action"
    assert notification.priority == "critical"
    assert notification.related_id == case.id


def test_admin_gets_review_reminders(db, admin, case, fake_ai):
    document = document_workflow_service.generate_document(db, case)

    notification_service.generate_notifications(db, admin, NOW)

    notification = db.query(Notification).filter(Notification.user_id == admin.id).one()
    assert notification.type == "document_review"
    assert notification.related_id == document.id


def test_sort_order_priority_then_due_then_newest():
    def n(priority, due=None, created=NOW):
        return Notification(priority=priority, due_date=due, created_at=created, type="t", title=priority, message="")

    low = n("low")
    high_late = n("high", NOW + timedelta(days=3))
    high_soon = n("high", NOW + timedelta(days=1))
    high_undated_new = n("high", None, NOW + timedelta(hours=2))
    high_undated_old = n("high", None, NOW)
    critical = n("critical", NOW + timedelta(days=5))

    ordered = notification_service.sort_notifications(
        [low, high_undated_old, high_late, critical, high_undated_new, high_soon]
    )
    assert ordered == [critical, high_soon, high_late, high_undated_new, high_undated_old, low]


def test_read_archive_and_unread_count_over_api(client, db, user, case, user_headers):
    _deadline(db, user, case, datetime.utcnow() + timedelta(days=2))

    listing = client.get("/api/notifications", headers=user_headers).json()["data"]
    assert len(listing) == 1
    notification_id = listing[0]["id"]
    assert client.get("/api/notifications/unread-count", headers=user_headers).json()["data"]["count"] == 1

    resp = client.post(f"/api/notifications/{notification_id}/read", headers=user_headers)
    assert resp.json()["data"]["readAt"] is not None
    assert client.get("/api/notifications/unread-count", headers=user_headers).json()["data"]["count"] == 0

    client.post(f"/api/notifications/{notification_id}/archive", headers=user_headers)
    listing = client.get("/api/notifications", headers=user_headers).json()["data"]
    assert notification_id not in [n["id"] for n in listing]


def test_mark_all_read(db, user, case):
    _deadline(db, user, case, NOW + timedelta(days=1), title="A")
    _deadline(db, user, case, NOW + timedelta(days=2), title="B")
    notification_service.generate_notifications(db, user, NOW)

    assert notification_service.mark_all_read(db, user.id) == 2
    assert notification_service.unread_count(db, user.id, NOW) == 0


def test_other_users_notification_is_not_found(client, db, user, case, other_headers):
    _deadline(db, user, case, datetime.utcnow() + timedelta(days=1))
    notification_service.generate_notifications(db, user)
    notification = db.query(Notification).one()

    assert client.post(f"/api/notifications/{notification.id}/read", headers=other_headers).status_code == 404
