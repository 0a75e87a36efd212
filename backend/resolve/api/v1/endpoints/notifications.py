"""
In-app notifications. Listing regenerates deadline and review reminders
before returning the unarchived, unexpired set.
"""
from typing import Any, Dict
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from resolve.api.deps import get_current_user, get_db
from resolve.db.models import User
from resolve.db.schemas import NotificationOut, dump, dump_list
from resolve.services import notification_service

router = APIRouter()


@router.get("")
def list_notifications(
    unread_only: bool = Query(default=False, alias="unreadOnly"),
    limit: int = Query(default=50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    notifications = notification_service.list_notifications(
        db, current_user, unread_only=unread_only, limit=limit
    )
    return {"data": dump_list(NotificationOut, notifications)}


@router.get("/unread-count")
def get_unread_count(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    return {"data": {"count": notification_service.unread_count(db, current_user.id)}}


@router.post("/read-all")
def mark_all_read(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    return {"data": {"updated": notification_service.mark_all_read(db, current_user.id)}}


@router.post("/{notification_id}/read")
def mark_read(
    notification_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    notification = notification_service.mark_read(db, notification_id, current_user.id)
    return {"data": dump(NotificationOut, notification)}


@router.post("/{notification_id}/archive")
def archive(
    notification_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    notification = notification_service.archive(db, notification_id, current_user.id)
    return {"data": dump(NotificationOut, notification)}
