"""
Timeline entries for cases and contracts, with best-effort calendar sync.

Calendar failures never fail the request: the entry is saved first and its
sync_status records the outcome.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from resolve.core.logger import logger
from resolve.db.models import (
    CalendarSyncStatus,
    Case,
    Contract,
    TimelineEntry,
    TimelineEventType,
    TimelinePriority,
    TimelineStatus,
)
from resolve.services import calendar_service
from resolve.utils.exceptions import NotFoundError, ValidationFailedError
from resolve.utils.helpers import to_naive_utc

EDITABLE_FIELDS = ("title", "description", "event_type", "event_date", "due_date", "priority", "status")
DATE_FIELDS = ("event_date", "due_date")


def _validate(data: Dict[str, Any]) -> None:
    checks = (
        ("event_type", TimelineEventType),
        ("priority", TimelinePriority),
        ("status", TimelineStatus),
    )
    for field, enum_cls in checks:
        value = data.get(field)
        if value is not None and value not in {e.value for e in enum_cls}:
            raise ValidationFailedError(f"Invalid {field}: {value}")


def _check_parent(db: Session, user_id: UUID, case_id: Optional[UUID], contract_id: Optional[UUID]) -> None:
    if not case_id and not contract_id:
        raise ValidationFailedError("caseId or contractId is required")
    if case_id and db.query(Case.id).filter(Case.id == case_id, Case.user_id == user_id).first() is None:
        raise NotFoundError("Case", case_id)
    if contract_id and db.query(Contract.id).filter(
        Contract.id == contract_id, Contract.user_id == user_id
    ).first() is None:
        raise NotFoundError("Contract", contract_id)


def get_entry(db: Session, entry_id: UUID, user_id: UUID) -> TimelineEntry:
    entry = (
        db.query(TimelineEntry)
        .filter(TimelineEntry.id == entry_id, TimelineEntry.user_id == user_id)
        .first()
    )
    if entry is None:
        raise NotFoundError("Timeline entry", entry_id)
    return entry


def list_entries(
    db: Session,
    user_id: UUID,
    case_id: Optional[UUID] = None,
    contract_id: Optional[UUID] = None,
) -> List[TimelineEntry]:
    query = db.query(TimelineEntry).filter(TimelineEntry.user_id == user_id)
    if case_id:
        query = query.filter(TimelineEntry.case_id == case_id)
    if contract_id:
        query = query.filter(TimelineEntry.contract_id == contract_id)
    return query.order_by(TimelineEntry.event_date.desc()).all()


def sync_entry(db: Session, entry: TimelineEntry) -> TimelineEntry:
    """Push the entry to the calendar provider; record success or failure."""
    if not calendar_service.is_enabled():
        return entry
    try:
        external_id = calendar_service.update_event(entry)
    except calendar_service.CalendarSyncError as e:
        logger.warning("Calendar sync failed for timeline entry %s (non-blocking): %s", entry.id, e)
        entry.sync_status = CalendarSyncStatus.failed.value
        entry.sync_error = str(e)[:1000]
    else:
        entry.external_event_id = external_id
        entry.calendar_provider = "google"
        entry.sync_status = CalendarSyncStatus.synced.value
        entry.sync_error = None
        entry.last_synced_at = datetime.utcnow()
    db.commit()
    db.refresh(entry)
    return entry


def create_entry(db: Session, user_id: UUID, data: Dict[str, Any]) -> TimelineEntry:
    _validate(data)
    _check_parent(db, user_id, data.get("case_id"), data.get("contract_id"))

    entry = TimelineEntry(
        user_id=user_id,
        case_id=data.get("case_id"),
        contract_id=data.get("contract_id"),
        title=data["title"],
        description=data.get("description"),
        event_type=data.get("event_type") or TimelineEventType.milestone.value,
        event_date=to_naive_utc(data.get("event_date")) or datetime.utcnow(),
        due_date=to_naive_utc(data.get("due_date")),
        priority=data.get("priority") or TimelinePriority.medium.value,
        status=data.get("status") or TimelineStatus.pending.value,
    )
    if entry.status == TimelineStatus.completed.value:
        entry.is_completed = True
        entry.completed_at = datetime.utcnow()
    db.add(entry)
    db.commit()
    db.refresh(entry)
    logger.info("Created timeline entry %s (%s)", entry.id, entry.event_type)

    if data.get("sync_to_calendar", True):
        sync_entry(db, entry)
    return entry


def update_entry(db: Session, entry_id: UUID, user_id: UUID, changes: Dict[str, Any]) -> TimelineEntry:
    _validate(changes)
    entry = get_entry(db, entry_id, user_id)
    for field in EDITABLE_FIELDS:
        value = changes.get(field)
        if value is not None:
            setattr(entry, field, to_naive_utc(value) if field in DATE_FIELDS else value)

    if changes.get("is_completed") is not None:
        entry.is_completed = bool(changes["is_completed"])
        entry.status = TimelineStatus.completed.value if entry.is_completed else TimelineStatus.pending.value
    elif changes.get("status") == TimelineStatus.completed.value:
        entry.is_completed = True
    if entry.is_completed and entry.completed_at is None:
        entry.completed_at = datetime.utcnow()
    if not entry.is_completed:
        entry.completed_at = None

    db.commit()
    db.refresh(entry)
    if entry.external_event_id:
        sync_entry(db, entry)
    return entry


def delete_entry(db: Session, entry_id: UUID, user_id: UUID) -> None:
    entry = get_entry(db, entry_id, user_id)
    external_id = entry.external_event_id
    db.delete(entry)
    db.commit()
    if external_id and calendar_service.is_enabled():
        try:
            calendar_service.delete_event(external_id)
        except calendar_service.CalendarSyncError as e:
            logger.warning("Calendar delete failed for %s (non-blocking): %s", external_id, e)
