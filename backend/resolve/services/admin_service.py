from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from resolve.db.models import (
    Application,
    ApplicationStatus,
    Case,
    CaseStatus,
    Contract,
    GeneratedDocument,
    GeneratedDocumentStatus,
    PaymentStatus,
    User,
    WorkflowTask,
    WorkflowTaskStatus,
)


def list_applications(
    db: Session,
    status: Optional[str] = None,
    stage: Optional[str] = None,
    limit: int = 100,
) -> List[Application]:
    query = db.query(Application)
    if status:
        query = query.filter(Application.status == status)
    if stage:
        query = query.filter(Application.workflow_stage == stage)
    return query.order_by(Application.created_at.desc()).limit(limit).all()


def _count(db: Session, column, *criteria) -> int:
    return db.query(func.count(column)).filter(*criteria).scalar() or 0


def get_stats(db: Session, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.utcnow()
    stages = dict(
        db.query(Application.workflow_stage, func.count(Application.id))
        .group_by(Application.workflow_stage)
        .all()
    )
    revenue = (
        db.query(func.coalesce(func.sum(Application.payment_amount), 0))
        .filter(Application.payment_status == PaymentStatus.completed.value)
        .scalar()
    )
    return {
        "totalUsers": _count(db, User.id),
        "totalApplications": _count(db, Application.id),
        "pendingApplications": _count(db, Application.id, Application.status == ApplicationStatus.pending.value),
        "newApplications24h": _count(db, Application.id, Application.created_at >= now - timedelta(hours=24)),
        "applicationsByStage": stages,
        "totalCases": _count(db, Case.id),
        "activeCases": _count(db, Case.id, Case.status == CaseStatus.active.value),
        "resolvedCases": _count(db, Case.id, Case.status == CaseStatus.resolved.value),
        "totalContracts": _count(db, Contract.id),
        "documentsAwaitingReview": _count(
            db,
            GeneratedDocument.id,
            GeneratedDocument.status.in_(
                [
                    GeneratedDocumentStatus.draft.value,
                    GeneratedDocumentStatus.pending_review.value,
                    GeneratedDocumentStatus.reviewed.value,
                ]
            ),
        ),
        "documentsSent": _count(db, GeneratedDocument.id, GeneratedDocument.status == GeneratedDocumentStatus.sent.value),
        "failedTasks": _count(db, WorkflowTask.id, WorkflowTask.status == WorkflowTaskStatus.failed.value),
        "revenue": float(revenue or 0),
    }
