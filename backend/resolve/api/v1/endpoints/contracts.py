"""
Contract endpoints. Creation is subject to the free-tier gate.
"""
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from resolve.api.deps import get_current_user, get_db
from resolve.db.models import User
from resolve.db.schemas import CaseDocumentOut, ContractCreate, ContractOut, ContractUpdate, dump, dump_list
from resolve.services import contract_service, document_service, idempotency_service

router = APIRouter()

ENDPOINT = "POST /api/contracts"


@router.get("")
def list_contracts(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    return {"data": dump_list(ContractOut, contract_service.list_contracts(db, current_user.id))}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_contract(
    payload: ContractCreate,
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    request_body = payload.model_dump(mode="json")
    cached = idempotency_service.replay(db, idempotency_key, current_user.id, ENDPOINT, request_body)
    if cached:
        status_code, body = cached
        return JSONResponse(body, status_code=status_code)

    contract = contract_service.create_contract(db, current_user, payload.model_dump())
    body = {"data": dump(ContractOut, contract)}
    idempotency_service.remember(
        db, idempotency_key, current_user.id, ENDPOINT, request_body, status.HTTP_201_CREATED, body
    )
    return body


@router.get("/{contract_id}")
def get_contract(
    contract_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    contract = contract_service.get_contract(db, contract_id, current_user.id)
    return {"data": dump(ContractOut, contract)}


@router.put("/{contract_id}")
def update_contract(
    contract_id: UUID,
    payload: ContractUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    contract = contract_service.update_contract(
        db, contract_id, current_user.id, payload.model_dump(exclude_unset=True)
    )
    return {"data": dump(ContractOut, contract)}


@router.delete("/{contract_id}")
def delete_contract(
    contract_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    contract_service.delete_contract(db, contract_id, current_user.id)
    return {"data": {"deleted": True, "id": str(contract_id)}}


@router.post("/{contract_id}/versions", status_code=status.HTTP_201_CREATED)
def create_version(
    contract_id: UUID,
    payload: ContractUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    contract = contract_service.create_version(
        db, contract_id, current_user.id, payload.model_dump(exclude_unset=True)
    )
    return {"data": dump(ContractOut, contract)}


@router.get("/{contract_id}/documents")
def list_contract_documents(
    contract_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    contract_service.get_contract(db, contract_id, current_user.id)
    documents = document_service.list_contract_documents(db, contract_id, current_user.id)
    return {"data": dump_list(CaseDocumentOut, documents)}
