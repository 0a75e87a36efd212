"""
Case records: creation (gated or provisioned from a paid application),
owner-scoped reads and updates, and the progress gauge.

``progress`` is only ever moved by ``advance_progress``; user-supplied
payloads cannot set it.
"""
from __future__ import annotations

import random
import time
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from resolve.core.logger import logger
from resolve.db.database import transaction
from resolve.db.models import (
    Application,
    Case,
    CaseStatus,
    TimelineEntry,
    TimelineEventType,
    TimelineStatus,
    User,
)
from resolve.services import entitlement_service
from resolve.utils.exceptions import NotFoundError, ValidationFailedError
from resolve.utils.helpers import to_naive_utc

PROGRESS_DOCUMENT_GENERATED = 30
PROGRESS_DOCUMENT_SENT = 70
PROGRESS_RESOLVED = 100

UPDATABLE_FIELDS = {
    "title",
    "description",
    "issue_type",
    "amount",
    "priority",
    "next_action",
    "next_action_due",
    "status",
}


def generate_number(prefix: str) -> str:
    return f"{prefix}-{int(time.time() * 1000)}-{random.randint(0, 9999):04d}"


def advance_progress(case: Case, value: int) -> int:
    """Move progress forward to *value*; never backwards, clamped to 0..100."""
    target = max(0, min(100, int(value)))
    current = case.progress or 0
    if target > current:
        logger.info("Case %s progress %s -> %s", case.case_number, current, target)
        case.progress = target
    return case.progress


def _initial_timeline_entry(case: Case) -> TimelineEntry:
    return TimelineEntry(
        user_id=case.user_id,
        case=case,
        title="Case created",
        description=f"Case {case.case_number} opened",
        event_type=TimelineEventType.milestone.value,
        event_date=datetime.utcnow(),
        status=TimelineStatus.completed.value,
        is_completed=True,
        completed_at=datetime.utcnow(),
    )


def create_case(db: Session, user: User, data: Dict[str, Any]) -> Case:
    """User-initiated case creation, subject to the entitlement gate."""
    entitlement_service.enforce_can_create(db, user.id, "case")

    with transaction(db):
        case = Case(
            user_id=user.id,
            case_number=generate_number("CASE"),
            title=data["title"],
            issue_type=data.get("issue_type"),
            amount=data.get("amount"),
            description=data.get("description"),
            priority=data.get("priority") or "medium",
            trade=data.get("trade"),
            state=data.get("state"),
            next_action=data.get("next_action"),
            next_action_due=to_naive_utc(data.get("next_action_due")),
            status=CaseStatus.active.value,
            progress=0,
        )
        db.add(case)
        db.add(_initial_timeline_entry(case))
        db.flush()
        entitlement_service.recheck_after_insert(db, user.id, "case")

    db.refresh(case)
    logger.info("Created case %s for user %s", case.case_number, user.id)
    return case


def provision_case_from_application(db: Session, application: Application, user_id: UUID) -> Case:
    """Create the paid case for an application. Caller owns the transaction."""
    case = Case(
        user_id=user_id,
        application_id=application.id,
        case_number=generate_number("CASE"),
        title=f"{application.issue_type.replace('_', ' ').title()} - {application.full_name}",
        issue_type=application.issue_type,
        amount=application.amount,
        description=application.description,
        trade=application.trade,
        state=application.state,
        priority="high",
        status=CaseStatus.active.value,
        progress=0,
    )
    db.add(case)
    db.add(_initial_timeline_entry(case))
    db.flush()
    application.case_id = case.id
    return case


def get_case(db: Session, case_id: UUID, user_id: Optional[UUID] = None) -> Case:
    query = db.query(Case).filter(Case.id == case_id)
    if user_id is not None:
        query = query.filter(Case.user_id == user_id)
    case = query.first()
    if case is None:
        raise NotFoundError("Case", case_id)
    return case


def list_cases(db: Session, user_id: UUID, status: Optional[str] = None) -> List[Case]:
    query = db.query(Case).filter(Case.user_id == user_id)
    if status:
        query = query.filter(Case.status == status)
    return query.order_by(Case.created_at.desc()).all()


def update_case(db: Session, case_id: UUID, user_id: UUID, changes: Dict[str, Any]) -> Case:
    case = get_case(db, case_id, user_id)
    if "progress" in changes:
        raise ValidationFailedError("progress cannot be set directly")

    status = changes.get("status")
    if status is not None and status not in {s.value for s in CaseStatus}:
        raise ValidationFailedError(f"Invalid case status: {status}")

    with transaction(db):
        for key, value in changes.items():
            if key in UPDATABLE_FIELDS:
                setattr(case, key, to_naive_utc(value) if key == "next_action_due" else value)
        if status == CaseStatus.resolved.value:
            advance_progress(case, PROGRESS_RESOLVED)

    db.refresh(case)
    return case


def case_facts(case: Case, intake_data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {
        "title": case.title,
        "issue_type": case.issue_type,
        "amount": str(case.amount) if case.amount is not None else None,
        "description": case.description,
        "trade": case.trade,
        "state": case.state,
        "intake_data": intake_data,
    }
