"""Uploaded evidence documents attached to cases and contracts."""
from __future__ import annotations

import re
import uuid
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from resolve.core.config import settings
from resolve.core.logger import logger
from resolve.db.models import Case, CaseDocument, Contract
from resolve.services.storage_service import storage_service
from resolve.utils.exceptions import NotFoundError, ValidationFailedError

DEFAULT_CATEGORY = "evidence"


def _safe_name(name: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "_", name or "file").strip("._")
    return cleaned[:120] or "file"


def upload_document(
    db: Session,
    user_id: UUID,
    data: bytes,
    original_name: str,
    mime_type: Optional[str],
    case_id: Optional[UUID] = None,
    contract_id: Optional[UUID] = None,
    category: Optional[str] = None,
    description: Optional[str] = None,
) -> CaseDocument:
    if not case_id and not contract_id:
        raise ValidationFailedError("caseId or contractId is required")
    if not data:
        raise ValidationFailedError("Uploaded file is empty")
    if len(data) > settings.MAX_UPLOAD_BYTES:
        raise ValidationFailedError(f"File exceeds {settings.MAX_UPLOAD_BYTES} bytes")

    if case_id and db.query(Case.id).filter(Case.id == case_id, Case.user_id == user_id).first() is None:
        raise NotFoundError("Case", case_id)
    if contract_id and db.query(Contract.id).filter(
        Contract.id == contract_id, Contract.user_id == user_id
    ).first() is None:
        raise NotFoundError("Contract", contract_id)

    parent = f"cases/{case_id}" if case_id else f"contracts/{contract_id}"
    file_name = f"{uuid.uuid4().hex}-{_safe_name(original_name)}"
    key = f"uploads/{user_id}/{parent}/{file_name}"
    storage_service.store(data, key, mime_type or "application/octet-stream")

    document = CaseDocument(
        user_id=user_id,
        case_id=case_id,
        contract_id=contract_id,
        file_name=file_name,
        original_name=original_name or file_name,
        file_size=len(data),
        mime_type=mime_type,
        storage_key=key,
        category=category or DEFAULT_CATEGORY,
        description=description,
    )
    db.add(document)
    try:
        db.commit()
    except Exception:
        db.rollback()
        storage_service.delete(key)
        raise
    db.refresh(document)
    logger.info("Uploaded %s (%s bytes) to %s", document.original_name, document.file_size, parent)
    return document


def get_document(db: Session, document_id: UUID, user_id: UUID) -> CaseDocument:
    document = (
        db.query(CaseDocument)
        .filter(CaseDocument.id == document_id, CaseDocument.user_id == user_id)
        .first()
    )
    if document is None:
        raise NotFoundError("Document", document_id)
    return document


def list_case_documents(db: Session, case_id: UUID, user_id: UUID) -> List[CaseDocument]:
    return (
        db.query(CaseDocument)
        .filter(CaseDocument.case_id == case_id, CaseDocument.user_id == user_id)
        .order_by(CaseDocument.created_at.desc())
        .all()
    )


def list_contract_documents(db: Session, contract_id: UUID, user_id: UUID) -> List[CaseDocument]:
    return (
        db.query(CaseDocument)
        .filter(CaseDocument.contract_id == contract_id, CaseDocument.user_id == user_id)
        .order_by(CaseDocument.created_at.desc())
        .all()
    )


def read_document(document: CaseDocument) -> bytes:
    return storage_service.fetch(document.storage_key)


def delete_document(db: Session, document_id: UUID, user_id: UUID) -> None:
    document = get_document(db, document_id, user_id)
    key = document.storage_key
    db.delete(document)
    db.commit()
    storage_service.delete(key)
