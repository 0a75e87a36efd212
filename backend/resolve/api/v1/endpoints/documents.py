"""
Uploaded evidence documents and downloads of sent generated documents.
"""
import io
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from resolve.api.deps import get_current_user, get_db
from resolve.db.models import User
from resolve.db.schemas import CaseDocumentOut, dump
from resolve.services import document_service, document_workflow_service

router = APIRouter()
generated_router = APIRouter()


def _stream(data: bytes, filename: str, media_type: Optional[str]) -> StreamingResponse:
    return StreamingResponse(
        io.BytesIO(data),
        media_type=media_type or "application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/upload", status_code=status.HTTP_201_CREATED)
async def upload_document(
    file: UploadFile = File(...),
    case_id: Optional[UUID] = Form(default=None, alias="caseId"),
    contract_id: Optional[UUID] = Form(default=None, alias="contractId"),
    category: Optional[str] = Form(default=None),
    description: Optional[str] = Form(default=None),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    data = await file.read()
    document = document_service.upload_document(
        db,
        current_user.id,
        data,
        original_name=file.filename or "file",
        mime_type=file.content_type,
        case_id=case_id,
        contract_id=contract_id,
        category=category,
        description=description,
    )
    return {"data": dump(CaseDocumentOut, document)}


@router.get("/{document_id}")
def get_document(
    document_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    document = document_service.get_document(db, document_id, current_user.id)
    return {"data": dump(CaseDocumentOut, document)}


@router.get("/{document_id}/download")
def download_document(
    document_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    document = document_service.get_document(db, document_id, current_user.id)
    data = document_service.read_document(document)
    return _stream(data, document.original_name, document.mime_type)


@router.delete("/{document_id}")
def delete_document(
    document_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    document_service.delete_document(db, document_id, current_user.id)
    return {"data": {"deleted": True, "id": str(document_id)}}


@generated_router.get("/{document_id}/download")
def download_generated_document(
    document_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Only documents already sent to the client are downloadable."""
    document = document_workflow_service.get_sent_document_for_owner(db, document_id, current_user.id)
    data = document_workflow_service.fetch_artifact(document)
    return _stream(data, f"{document.type}-{document.id}.pdf", "application/pdf")
