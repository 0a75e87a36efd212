"""
Admin endpoints: application review, generated-document review/send,
dashboard stats and alerts. All require an admin session.
"""
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from resolve.api.deps import actor_name, get_admin_user, get_db
from resolve.db.models import User
from resolve.db.schemas import (
    ApplicationAdminOut,
    DocumentUpdateIn,
    GeneratedDocumentAdminOut,
    ReviewIn,
    dump,
    dump_list,
)
from resolve.services import admin_service, document_workflow_service, notification_service, workflow_service
from resolve.services.task_handlers import run_strategy_pack
from resolve.services.task_service import process_due_tasks

router = APIRouter()


# ── Applications ─────────────────────────────────────────────────────────────

@router.get("/applications")
def list_applications(
    status: Optional[str] = Query(default=None),
    stage: Optional[str] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    admin: User = Depends(get_admin_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    applications = admin_service.list_applications(db, status=status, stage=stage, limit=limit)
    return {"data": dump_list(ApplicationAdminOut, applications)}


@router.get("/applications/{application_id}")
def get_application(
    application_id: UUID,
    admin: User = Depends(get_admin_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    return {"data": dump(ApplicationAdminOut, workflow_service.get_application(db, application_id))}


@router.post("/applications/{application_id}/ai-review")
def ai_review_application(
    application_id: UUID,
    admin: User = Depends(get_admin_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    application = workflow_service.run_ai_review(db, application_id, actor_name(admin))
    return {"data": dump(ApplicationAdminOut, application)}


@router.post("/applications/{application_id}/review")
def review_application(
    application_id: UUID,
    payload: ReviewIn,
    admin: User = Depends(get_admin_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    application = workflow_service.review_application(
        db, application_id, payload.action, actor_name(admin), payload.notes
    )
    return {"data": dump(ApplicationAdminOut, application)}


@router.post("/applications/{application_id}/complete")
def complete_application(
    application_id: UUID,
    admin: User = Depends(get_admin_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Manual retry of strategy-pack generation and completion."""
    application = run_strategy_pack(db, application_id)
    return {"data": dump(ApplicationAdminOut, application)}


# ── Generated documents ──────────────────────────────────────────────────────

@router.get("/documents/pending")
def list_pending_documents(
    admin: User = Depends(get_admin_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    documents = document_workflow_service.list_pending_documents(db)
    return {"data": dump_list(GeneratedDocumentAdminOut, documents)}


@router.get("/documents/{document_id}")
def get_document(
    document_id: UUID,
    admin: User = Depends(get_admin_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    document = document_workflow_service.get_document(db, document_id)
    return {"data": dump(GeneratedDocumentAdminOut, document)}


@router.put("/documents/{document_id}")
def update_document(
    document_id: UUID,
    payload: DocumentUpdateIn,
    admin: User = Depends(get_admin_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    document = document_workflow_service.update_document(
        db,
        document_id,
        actor_name(admin),
        status=payload.status,
        review_notes=payload.review_notes,
        title=payload.title,
        content_text=payload.content_text,
        ai_content=payload.ai_content,
    )
    return {"data": dump(GeneratedDocumentAdminOut, document)}


@router.post("/documents/{document_id}/send")
def send_document(
    document_id: UUID,
    admin: User = Depends(get_admin_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    document = document_workflow_service.send_document(db, document_id, actor_name(admin))
    return {"data": dump(GeneratedDocumentAdminOut, document)}


# ── Dashboard ────────────────────────────────────────────────────────────────

@router.get("/stats")
def get_stats(
    admin: User = Depends(get_admin_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    return {"data": admin_service.get_stats(db)}


@router.get("/notifications")
def get_admin_notifications(
    admin: User = Depends(get_admin_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    return {"data": notification_service.admin_alerts(db)}


@router.post("/tasks/run")
def run_due_tasks(
    admin: User = Depends(get_admin_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    return {"data": process_due_tasks(db)}
