"""
Application submission and client-side workflow endpoints.

Submission and status lookup are public; intake requires the signed-in
user who owns (or whose email matches) the application.
"""
from typing import Any, Dict
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import EmailStr
from sqlalchemy.orm import Session

from resolve.api.deps import get_current_user, get_db
from resolve.db.models import User
from resolve.db.schemas import (
    ApplicationCreate,
    ApplicationOut,
    ApplicationStatusOut,
    IntakeIn,
    dump,
    dump_list,
)
from resolve.services import workflow_service
from resolve.utils.exceptions import NotFoundError

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
def submit_application(
    payload: ApplicationCreate,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    application = workflow_service.create_application(db, payload.model_dump())
    return {"data": dump(ApplicationOut, application)}


@router.get("/mine")
def list_my_applications(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    applications = workflow_service.list_applications_for_user(db, current_user)
    return {"data": dump_list(ApplicationOut, applications)}


@router.get("/{application_id}/status")
def get_application_status(
    application_id: UUID,
    email: EmailStr = Query(...),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    application = workflow_service.get_application(db, application_id)
    if application.email.strip().lower() != str(email).strip().lower():
        raise NotFoundError("Application", application_id)
    return {"data": dump(ApplicationStatusOut, application)}


@router.get("/{application_id}")
def get_application(
    application_id: UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    application = workflow_service.get_application_for_user(db, application_id, current_user)
    return {"data": dump(ApplicationOut, application)}


@router.post("/{application_id}/intake")
def submit_intake(
    application_id: UUID,
    payload: IntakeIn,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    application = workflow_service.submit_intake(db, application_id, current_user, payload.intake_data)
    return {"data": dump(ApplicationOut, application)}
