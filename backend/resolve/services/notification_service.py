"""
Notification/insight generator.

Nothing here is event-driven: every listing call rescans the user's
pending timeline deadlines, case next-actions and (for admins) documents
awaiting review, and materializes any new candidates as Notification rows.
A candidate is skipped if an unarchived notification for the same
(related_type, related_id, type) was created within NOTIFICATION_DEDUPE_HOURS.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from resolve.core.config import settings
from resolve.core.logger import logger
from resolve.db.models import (
    Application,
    Case,
    CaseStatus,
    GeneratedDocument,
    GeneratedDocumentStatus,
    Notification,
    NotificationPriority,
    TimelineEntry,
    TimelineEventType,
    TimelineStatus,
    User,
    UserRole,
)
from resolve.utils.exceptions import NotFoundError

PRIORITY_RANK = {
    NotificationPriority.critical.value: 4,
    NotificationPriority.high.value: 3,
    NotificationPriority.medium.value: 2,
    NotificationPriority.low.value: 1,
}


@dataclass
class Candidate:
    type: str
    title: str
    message: str
    priority: str
    related_type: str
    related_id: UUID
    due_date: Optional[datetime] = None
    action_url: Optional[str] = None


def deadline_priority(due: datetime, now: datetime) -> Optional[str]:
    """critical when overdue or due within a day, high within 3, medium within 7."""
    days = math.ceil((due - now).total_seconds() / 86400)
    if days <= 1:
        return NotificationPriority.critical.value
    if days <= 3:
        return NotificationPriority.high.value
    if days <= 7:
        return NotificationPriority.medium.value
    return None


def _deadline_message(label: str, due: datetime, now: datetime) -> tuple[str, str]:
    days = math.ceil((due - now).total_seconds() / 86400)
    if due < now:
        return "Deadline overdue", f"{label} was due on {due:%d %b %Y}. Take action now."
    if days <= 1:
        return "Deadline today", f"{label} is due today. Take immediate action."
    return "Deadline approaching", f"{label} is due in {days} days."


def add_notification(db: Session, user_id: UUID, **fields: Any) -> Notification:
    """Add a notification to the current transaction (no commit)."""
    notification = Notification(
        user_id=user_id,
        expires_at=fields.pop("expires_at", None)
        or datetime.utcnow() + timedelta(days=settings.NOTIFICATION_TTL_DAYS),
        **fields,
    )
    db.add(notification)
    return notification


# ============================================================================
# Candidate sources
# ============================================================================

def _timeline_candidates(db: Session, user_id: UUID, now: datetime) -> List[Candidate]:
    entries = (
        db.query(TimelineEntry)
        .filter(
            TimelineEntry.user_id == user_id,
            TimelineEntry.is_completed == False,  # noqa: E712
            TimelineEntry.status.in_([TimelineStatus.pending.value, TimelineStatus.overdue.value]),
        )
        .all()
    )
    out: List[Candidate] = []
    for entry in entries:
        due = entry.due_date
        if due is None and entry.event_type == TimelineEventType.deadline.value:
            due = entry.event_date
        if due is None:
            continue
        if due < now and entry.status != TimelineStatus.overdue.value:
            entry.status = TimelineStatus.overdue.value
        priority = deadline_priority(due, now)
        if priority is None:
            continue
        title, message = _deadline_message(f'"{entry.title}"', due, now)
        parent = f"/cases/{entry.case_id}" if entry.case_id else f"/contracts/{entry.contract_id}"
        out.append(
            Candidate(
                type="deadline",
                title=title,
                message=message,
                priority=priority,
                related_type="timeline",
                related_id=entry.id,
                due_date=due,
                action_url=parent,
            )
        )
    return out


def _case_candidates(db: Session, user_id: UUID, now: datetime) -> List[Candidate]:
    cases = (
        db.query(Case)
        .filter(
            Case.user_id == user_id,
            Case.status == CaseStatus.active.value,
            Case.next_action_due != None,  # noqa: E711
        )
        .all()
    )
    out: List[Candidate] = []
    for case in cases:
        priority = deadline_priority(case.next_action_due, now)
        if priority is None:
            continue
        label = f'Next action for case "{case.title}" ({case.next_action or "follow up"})'
        title, message = _deadline_message(label, case.next_action_due, now)
        out.append(
            Candidate(
                type="next_action",
                title=title,
                message=message,
                priority=priority,
                related_type="case",
                related_id=case.id,
                due_date=case.next_action_due,
                action_url=f"/cases/{case.id}",
            )
        )
    return out


def _review_candidates(db: Session) -> List[Candidate]:
    documents = (
        db.query(GeneratedDocument)
        .filter(
            GeneratedDocument.status.in_(
                [GeneratedDocumentStatus.draft.value, GeneratedDocumentStatus.pending_review.value]
            )
        )
        .all()
    )
    return [
        Candidate(
            type="document_review",
            title="Document awaiting review",
            message=f'"{doc.title}" needs admin review before it can be sent.',
            priority=NotificationPriority.high.value,
            related_type="document",
            related_id=doc.id,
            action_url=f"/admin/documents/{doc.id}",
        )
        for doc in documents
    ]


# ============================================================================
# Generation + listing
# ============================================================================

def _recently_materialized(db: Session, user_id: UUID, candidate: Candidate, since: datetime) -> bool:
    return (
        db.query(Notification.id)
        .filter(
            Notification.user_id == user_id,
            Notification.related_type == candidate.related_type,
            Notification.related_id == candidate.related_id,
            Notification.type == candidate.type,
            Notification.archived_at == None,  # noqa: E711
            Notification.created_at >= since,
        )
        .first()
        is not None
    )


def collect_candidates(db: Session, user: User, now: datetime) -> List[Candidate]:
    """Current candidates for *user*. Marks passed deadlines overdue; the caller commits."""
    candidates = _timeline_candidates(db, user.id, now) + _case_candidates(db, user.id, now)
    if user.role == UserRole.admin.value:
        candidates += _review_candidates(db)
    return candidates


def generate_notifications(db: Session, user: User, now: Optional[datetime] = None) -> int:
    """Materialize new candidates for *user*; returns how many were created."""
    now = now or datetime.utcnow()
    candidates = collect_candidates(db, user, now)

    since = now - timedelta(hours=settings.NOTIFICATION_DEDUPE_HOURS)
    created = 0
    for candidate in candidates:
        if _recently_materialized(db, user.id, candidate, since):
            continue
        add_notification(
            db,
            user.id,
            type=candidate.type,
            title=candidate.title,
            message=candidate.message,
            priority=candidate.priority,
            related_type=candidate.related_type,
            related_id=candidate.related_id,
            due_date=candidate.due_date,
            action_url=candidate.action_url,
            created_at=now,
        )
        db.flush()
        created += 1
    db.commit()
    if created:
        logger.info("Materialized %s notification(s) for user %s", created, user.id)
    return created


def sort_notifications(notifications: List[Notification]) -> List[Notification]:
    """Priority first, then soonest due date (undated last), then newest."""
    ordered = sorted(notifications, key=lambda n: n.created_at, reverse=True)
    return sorted(
        ordered,
        key=lambda n: (
            -PRIORITY_RANK.get(n.priority, 1),
            n.due_date is None,
            n.due_date or datetime.max,
        ),
    )


def list_notifications(
    db: Session,
    user: User,
    unread_only: bool = False,
    limit: int = 50,
    now: Optional[datetime] = None,
    refresh: bool = True,
) -> List[Notification]:
    now = now or datetime.utcnow()
    if refresh:
        generate_notifications(db, user, now)

    query = db.query(Notification).filter(
        Notification.user_id == user.id,
        Notification.archived_at == None,  # noqa: E711
        (Notification.expires_at == None) | (Notification.expires_at > now),  # noqa: E711
    )
    if unread_only:
        query = query.filter(Notification.read_at == None)  # noqa: E711
    return sort_notifications(query.all())[:limit]


def unread_count(db: Session, user_id: UUID, now: Optional[datetime] = None) -> int:
    now = now or datetime.utcnow()
    return (
        db.query(Notification)
        .filter(
            Notification.user_id == user_id,
            Notification.read_at == None,  # noqa: E711
            Notification.archived_at == None,  # noqa: E711
            (Notification.expires_at == None) | (Notification.expires_at > now),  # noqa: E711
        )
        .count()
    )


def _get_owned(db: Session, notification_id: UUID, user_id: UUID) -> Notification:
    notification = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user_id)
        .first()
    )
    if notification is None:
        raise NotFoundError("Notification", notification_id)
    return notification


def mark_read(db: Session, notification_id: UUID, user_id: UUID) -> Notification:
    notification = _get_owned(db, notification_id, user_id)
    if notification.read_at is None:
        notification.read_at = datetime.utcnow()
        db.commit()
    return notification


def mark_all_read(db: Session, user_id: UUID) -> int:
    updated = (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.read_at == None)  # noqa: E711
        .update({"read_at": datetime.utcnow()}, synchronize_session=False)
    )
    db.commit()
    return updated


def archive(db: Session, notification_id: UUID, user_id: UUID) -> Notification:
    notification = _get_owned(db, notification_id, user_id)
    if notification.archived_at is None:
        notification.archived_at = datetime.utcnow()
        db.commit()
    return notification


def delete_expired(db: Session, now: Optional[datetime] = None) -> int:
    now = now or datetime.utcnow()
    deleted = (
        db.query(Notification)
        .filter(Notification.expires_at != None, Notification.expires_at < now)  # noqa: E711
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted


def admin_alerts(db: Session, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """Admin dashboard alerts: documents awaiting review and applications from the last 24h."""
    now = now or datetime.utcnow()
    alerts: List[Dict[str, Any]] = [
        {
            "type": c.type,
            "title": c.title,
            "message": c.message,
            "priority": c.priority,
            "relatedType": c.related_type,
            "relatedId": str(c.related_id),
            "actionUrl": c.action_url,
        }
        for c in _review_candidates(db)
    ]
    recent = (
        db.query(Application)
        .filter(Application.created_at >= now - timedelta(hours=24))
        .order_by(Application.created_at.desc())
        .all()
    )
    for app in recent:
        alerts.append(
            {
                "type": "new_application",
                "title": "New application",
                "message": f"{app.full_name} ({app.trade}, {app.state}) submitted a {app.issue_type.replace('_', ' ')} application.",
                "priority": NotificationPriority.medium.value,
                "relatedType": "application",
                "relatedId": str(app.id),
                "actionUrl": f"/admin/applications/{app.id}",
            }
        )
    alerts.sort(key=lambda a: -PRIORITY_RANK.get(a["priority"], 1))
    return alerts
