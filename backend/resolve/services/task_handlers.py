"""Outbox task handlers. Imported by task_service before draining."""
from __future__ import annotations

from typing import Any, Dict
from uuid import UUID

from sqlalchemy.orm import Session

from resolve.core.logger import logger
from resolve.db.models import (
    Application,
    GeneratedDocument,
    GeneratedDocumentStatus,
    GeneratedDocumentType,
    WorkflowStage,
)
from resolve.services import document_workflow_service, workflow_service
from resolve.services.email_service import email_service
from resolve.services.task_service import register
from resolve.utils.exceptions import InvalidTransitionError


class EmailDeliveryFailed(RuntimeError):
    pass


@register("send_email")
def handle_send_email(db: Session, payload: Dict[str, Any]) -> None:
    delivered = email_service.send(payload["to"], payload["template_id"], payload.get("vars") or {})
    if not delivered:
        raise EmailDeliveryFailed(f"{payload['template_id']} to {payload['to']} not delivered")


def run_strategy_pack(db: Session, application_id: UUID) -> Application:
    """
    Produce the strategy-pack draft for an application's case (unless one
    already exists) and move the application to dashboard_access.
    """
    application = workflow_service.get_application(db, application_id)
    if application.workflow_stage == WorkflowStage.dashboard_access.value:
        return application
    if application.workflow_stage != WorkflowStage.pdf_generation.value:
        raise InvalidTransitionError("application", application.workflow_stage, "complete_generation")
    if application.case is None:
        raise LookupError(f"Application {application_id} has no provisioned case")

    existing = (
        db.query(GeneratedDocument)
        .filter(
            GeneratedDocument.case_id == application.case_id,
            GeneratedDocument.type == GeneratedDocumentType.strategy_pack.value,
            GeneratedDocument.status != GeneratedDocumentStatus.rejected.value,
        )
        .first()
    )
    if existing is None:
        document_workflow_service.generate_document(
            db,
            application.case,
            GeneratedDocumentType.strategy_pack.value,
            intake_data=application.intake_data,
        )
    else:
        logger.info("Strategy pack %s already exists for application %s", existing.id, application_id)

    return workflow_service.complete_generation(db, application.id)


@register("generate_strategy_pack")
def handle_generate_strategy_pack(db: Session, payload: Dict[str, Any]) -> None:
    run_strategy_pack(db, UUID(payload["application_id"]))
