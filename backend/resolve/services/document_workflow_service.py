"""
Generated-document lifecycle.

    draft -> approved | rejected | pending_review | reviewed     (admin review)
    reviewed | pending_review | rejected -> any review state
    approved -> sent, or back to a review state
    sent: terminal

Entering ``sent`` moves the case to at least 70% progress, records one
notification for the owner and enqueues the delivery email, all in the
same transaction as the status write. Content edits stay possible after
sending; they re-render the stored PDF.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from resolve.core.config import settings
from resolve.core.logger import logger
from resolve.db.database import transaction
from resolve.db.models import (
    Case,
    GeneratedDocument,
    GeneratedDocumentStatus,
    GeneratedDocumentType,
    NotificationPriority,
)
from resolve.services import case_service, notification_service, task_service
from resolve.services.ai_service import DOCUMENT_TITLES, ai_service
from resolve.services.artifact_renderer import render_pdf
from resolve.services.storage_service import storage_service
from resolve.utils.exceptions import InvalidTransitionError, NotFoundError, ValidationFailedError

D = GeneratedDocumentStatus

REVIEW_STATES = frozenset({D.approved.value, D.rejected.value, D.pending_review.value, D.reviewed.value})

ALLOWED_STATUS_CHANGES = {
    D.draft.value: REVIEW_STATES,
    D.reviewed.value: REVIEW_STATES,
    D.pending_review.value: REVIEW_STATES,
    D.rejected.value: REVIEW_STATES,
    D.approved.value: REVIEW_STATES | {D.sent.value},
    D.sent.value: frozenset(),
}

AWAITING_REVIEW = (D.draft.value, D.pending_review.value, D.reviewed.value)


def get_document(db: Session, document_id: UUID) -> GeneratedDocument:
    document = db.get(GeneratedDocument, document_id)
    if document is None:
        raise NotFoundError("Document", document_id)
    return document


def get_sent_document_for_owner(db: Session, document_id: UUID, user_id: UUID) -> GeneratedDocument:
    document = (
        db.query(GeneratedDocument)
        .filter(
            GeneratedDocument.id == document_id,
            GeneratedDocument.user_id == user_id,
            GeneratedDocument.status == D.sent.value,
        )
        .first()
    )
    if document is None:
        raise NotFoundError("Document", document_id)
    return document


def list_visible_documents(db: Session, case_id: UUID, user_id: UUID) -> List[GeneratedDocument]:
    """Documents the case owner may see: sent ones only."""
    return (
        db.query(GeneratedDocument)
        .filter(
            GeneratedDocument.case_id == case_id,
            GeneratedDocument.user_id == user_id,
            GeneratedDocument.status == D.sent.value,
        )
        .order_by(GeneratedDocument.sent_at.desc())
        .all()
    )


def list_pending_documents(db: Session) -> List[GeneratedDocument]:
    return (
        db.query(GeneratedDocument)
        .filter(GeneratedDocument.status.in_(AWAITING_REVIEW + (D.approved.value,)))
        .order_by(GeneratedDocument.created_at.asc())
        .all()
    )


def _artifact_key(document: GeneratedDocument) -> str:
    stamp = datetime.utcnow().strftime("%Y%m%d%H%M%S%f")
    return f"generated/{document.case_id}/{document.id}-{stamp}.pdf"


def _render_and_store(document: GeneratedDocument, case: Case) -> str:
    pdf = render_pdf(
        document.title,
        document.content_text or "",
        subtitle=f"Case {case.case_number}",
    )
    key = _artifact_key(document)
    storage_service.store(pdf, key, "application/pdf")
    document.artifact_key = key
    document.artifact_generated_at = datetime.utcnow()
    return key


# ============================================================================
# Generation
# ============================================================================

def generate_document(
    db: Session,
    case: Case,
    document_type: str = GeneratedDocumentType.strategy_pack.value,
    intake_data: Optional[Dict[str, Any]] = None,
) -> GeneratedDocument:
    """
    Ask the AI collaborator for a deliverable and store it as a draft.

    AI failures propagate (UpstreamUnavailableError / UpstreamError) before
    anything is written, so the case keeps its previous progress.
    """
    if document_type not in {t.value for t in GeneratedDocumentType}:
        raise ValidationFailedError(f"Unknown document type: {document_type}")

    result = ai_service.generate(case_service.case_facts(case, intake_data), document_type)

    stored_key = None
    try:
        with transaction(db):
            document = GeneratedDocument(
                case_id=case.id,
                user_id=case.user_id,
                type=document_type,
                title=f"{DOCUMENT_TITLES.get(document_type, document_type)} - {case.case_number}",
                status=D.draft.value,
                ai_content=result.strategy_pack or {"analysis": result.analysis},
                content_text=result.content_text,
                intake_data=intake_data,
            )
            db.add(document)
            db.flush()
            stored_key = _render_and_store(document, case)
            case.ai_analysis = result.analysis
            case_service.advance_progress(case, case_service.PROGRESS_DOCUMENT_GENERATED)
    except Exception:
        if stored_key:
            storage_service.delete(stored_key)
        raise

    db.refresh(document)
    logger.info("Generated %s draft %s for case %s", document_type, document.id, case.case_number)
    return document


def generate_for_owner(db: Session, case_id: UUID, user_id: UUID, document_type: str) -> GeneratedDocument:
    case = case_service.get_case(db, case_id, user_id)
    return generate_document(db, case, document_type)


# ============================================================================
# Review / send
# ============================================================================

def _check_status_change(document: GeneratedDocument, new_status: str) -> None:
    if new_status not in ALLOWED_STATUS_CHANGES:
        raise ValidationFailedError(f"Invalid document status: {new_status}")
    if new_status not in ALLOWED_STATUS_CHANGES[document.status]:
        raise InvalidTransitionError("document", document.status, new_status)


def _mark_sent(db: Session, document: GeneratedDocument, actor: str) -> None:
    """Status write plus send side effects; caller owns the transaction."""
    case = document.case
    document.status = D.sent.value
    document.sent_by = actor
    document.sent_at = datetime.utcnow()
    case_service.advance_progress(case, case_service.PROGRESS_DOCUMENT_SENT)
    if document.type == GeneratedDocumentType.strategy_pack.value:
        case.strategy_pack = document.ai_content
    notification_service.add_notification(
        db,
        user_id=document.user_id,
        type="document_ready",
        title="New document available",
        message=f"{document.title} has been reviewed and is ready to view.",
        priority=NotificationPriority.high.value,
        related_type="document",
        related_id=document.id,
        action_url=f"/cases/{case.id}",
    )
    owner = case.user
    if owner is not None and owner.email:
        task_service.enqueue_email(
            db,
            owner.email,
            "document_sent",
            {
                "full_name": owner.full_name or owner.email,
                "case_title": case.title,
                "case_number": case.case_number,
                "document_title": document.title,
                "document_url": f"{settings.FRONTEND_URL.rstrip('/')}/cases/{case.id}",
            },
            dedupe_key=f"document:{document.id}:sent",
        )


def update_document(
    db: Session,
    document_id: UUID,
    actor: str,
    status: Optional[str] = None,
    review_notes: Optional[str] = None,
    title: Optional[str] = None,
    content_text: Optional[str] = None,
    ai_content: Optional[Dict[str, Any]] = None,
) -> GeneratedDocument:
    """
    Admin edit: review status and/or content, applied in one transaction.
    Content edits re-render the PDF. ``status="sent"`` sends the document.
    """
    document = get_document(db, document_id)

    status_changed = status is not None and status != document.status
    if status_changed:
        _check_status_change(document, status)

    content_changed = any(v is not None for v in (title, content_text, ai_content))
    old_key = document.artifact_key
    new_key = None

    try:
        with transaction(db):
            if review_notes is not None:
                document.review_notes = review_notes
            if title is not None:
                document.title = title
            if content_text is not None:
                document.content_text = content_text
            if ai_content is not None:
                document.ai_content = ai_content
            if content_changed:
                new_key = _render_and_store(document, document.case)

            if status_changed:
                logger.info("Document %s: %s -> %s by %s", document.id, document.status, status, actor)
                if status == D.sent.value:
                    _mark_sent(db, document, actor)
                else:
                    document.status = status
                    document.reviewed_by = actor
                    document.reviewed_at = datetime.utcnow()
            elif content_changed and document.status == D.sent.value:
                if document.type == GeneratedDocumentType.strategy_pack.value:
                    document.case.strategy_pack = document.ai_content
    except Exception:
        if new_key:
            storage_service.delete(new_key)
        raise

    if new_key and old_key and old_key != new_key:
        storage_service.delete(old_key)
    db.refresh(document)
    return document


def send_document(db: Session, document_id: UUID, actor: str) -> GeneratedDocument:
    """
    approved -> sent. Sending an already-sent document is a no-op.
    """
    document = get_document(db, document_id)
    if document.status == D.sent.value:
        logger.info("Document %s already sent; no-op", document.id)
        return document
    if document.status != D.approved.value:
        raise InvalidTransitionError("document", document.status, D.sent.value)

    with transaction(db):
        _mark_sent(db, document, actor)

    db.refresh(document)
    logger.info(
        "Document %s sent by %s; case %s progress=%s",
        document.id, actor, document.case.case_number, document.case.progress,
    )
    return document


def fetch_artifact(document: GeneratedDocument) -> bytes:
    if not document.artifact_key:
        raise NotFoundError("Document file", document.id)
    return storage_service.fetch(document.artifact_key)
