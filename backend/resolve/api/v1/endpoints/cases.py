"""
Case endpoints for the signed-in tradesperson.
"""
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from resolve.api.deps import get_current_user, get_db
from resolve.core.logger import logger
from resolve.db.models import User
from resolve.db.schemas import (
    CaseCreate,
    CaseDocumentOut,
    CaseOut,
    CaseOutcomeHistoryOut,
    CaseOutcomeUpdate,
    CaseUpdate,
    GenerateDocumentIn,
    GeneratedDocumentOut,
    dump,
    dump_list,
)
from resolve.services import (
    case_service,
    document_service,
    document_workflow_service,
    idempotency_service,
    outcome_service,
)

router = APIRouter()

ENDPOINT = "POST /api/cases"


@router.get("")
def list_cases(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    cases = case_service.list_cases(db, current_user.id, status=status_filter)
    return {"data": dump_list(CaseOut, cases)}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_case(
    payload: CaseCreate,
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    request_body = payload.model_dump(mode="json")
    cached = idempotency_service.replay(db, idempotency_key, current_user.id, ENDPOINT, request_body)
    if cached:
        status_code, body = cached
        return JSONResponse(body, status_code=status_code)

    case = case_service.create_case(db, current_user, payload.model_dump())
    body = {"data": dump(CaseOut, case)}
    idempotency_service.remember(
        db, idempotency_key, current_user.id, ENDPOINT, request_body, status.HTTP_201_CREATED, body
    )
    return body


@router.get("/{case_id}")
def get_case(
    case_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    case = case_service.get_case(db, case_id, current_user.id)
    return {"data": dump(CaseOut, case)}


@router.put("/{case_id}")
def update_case(
    case_id: UUID,
    payload: CaseUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    case = case_service.update_case(db, case_id, current_user.id, payload.model_dump(exclude_unset=True))
    return {"data": dump(CaseOut, case)}


@router.post("/{case_id}/generate-document", status_code=status.HTTP_201_CREATED)
def generate_document(
    case_id: UUID,
    payload: GenerateDocumentIn,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Draft a document for admin review. The client sees it only once sent."""
    document = document_workflow_service.generate_for_owner(
        db, case_id, current_user.id, payload.document_type
    )
    logger.info("Document %s queued for review on case %s", document.id, case_id)
    return {
        "data": {
            "id": str(document.id),
            "type": document.type,
            "status": document.status,
            "message": "Your document is being reviewed and will be sent to you once approved.",
        }
    }


@router.get("/{case_id}/documents")
def list_case_documents(
    case_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    case_service.get_case(db, case_id, current_user.id)
    uploads = document_service.list_case_documents(db, case_id, current_user.id)
    generated = document_workflow_service.list_visible_documents(db, case_id, current_user.id)
    return {
        "data": {
            "uploads": dump_list(CaseDocumentOut, uploads),
            "generated": dump_list(GeneratedDocumentOut, generated),
        }
    }


@router.put("/{case_id}/outcome")
def update_case_outcome(
    case_id: UUID,
    payload: CaseOutcomeUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Record how the dispute ended. Any outcome but ongoing resolves the case."""
    case = outcome_service.update_outcome(db, case_id, current_user.id, payload.model_dump())
    return {"data": dump(CaseOut, case)}


@router.get("/{case_id}/outcome-history")
def get_outcome_history(
    case_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    history = outcome_service.outcome_history(db, case_id, current_user.id)
    return {"data": dump_list(CaseOutcomeHistoryOut, history)}
