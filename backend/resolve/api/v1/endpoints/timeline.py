from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from resolve.api.deps import get_current_user, get_db
from resolve.db.models import User
from resolve.db.schemas import TimelineCreate, TimelineOut, TimelineUpdate, dump, dump_list
from resolve.services import timeline_service

router = APIRouter()


@router.get("")
def list_entries(
    case_id: Optional[UUID] = Query(default=None, alias="caseId"),
    contract_id: Optional[UUID] = Query(default=None, alias="contractId"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    entries = timeline_service.list_entries(db, current_user.id, case_id=case_id, contract_id=contract_id)
    return {"data": dump_list(TimelineOut, entries)}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_entry(
    payload: TimelineCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    entry = timeline_service.create_entry(db, current_user.id, payload.model_dump())
    return {"data": dump(TimelineOut, entry)}


@router.put("/{entry_id}")
def update_entry(
    entry_id: UUID,
    payload: TimelineUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    entry = timeline_service.update_entry(db, entry_id, current_user.id, payload.model_dump(exclude_unset=True))
    return {"data": dump(TimelineOut, entry)}


@router.delete("/{entry_id}")
def delete_entry(
    entry_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    timeline_service.delete_entry(db, entry_id, current_user.id)
    return {"data": {"deleted": True, "id": str(entry_id)}}


@router.post("/{entry_id}/sync")
def sync_entry(
    entry_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Retry the calendar push for one entry."""
    entry = timeline_service.get_entry(db, entry_id, current_user.id)
    entry = timeline_service.sync_entry(db, entry)
    return {"data": dump(TimelineOut, entry)}
