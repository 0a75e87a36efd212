"""
Application workflow state machine.

    submitted --ai_review--> ai_reviewed
    submitted | ai_reviewed --approve--> payment_pending
    payment_pending --payment_confirmed--> intake_pending      (webhook only)
    intake_pending --submit_intake--> pdf_generation           (provisions the Case)
    pdf_generation --complete_generation--> dashboard_access

``reject`` is allowed from submitted, ai_reviewed and payment_pending; it
sets status=rejected and leaves the stage where it was. Rejected
applications accept no further triggers.

Every transition is one transaction. Its side effect is written to the
outbox in the same transaction under the key ``application:<id>:<stage>``,
so entering a stage can enqueue its side effect at most once. Re-invoking a
trigger once the application already sits at its target is a no-op.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Dict, FrozenSet, Optional, Tuple
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from resolve.core.config import settings
from resolve.core.logger import logger
from resolve.db.database import transaction
from resolve.db.models import (
    Application,
    ApplicationStatus,
    PaymentStatus,
    User,
    WorkflowStage,
)
from resolve.services import case_service, task_service
from resolve.services.ai_service import ai_service
from resolve.utils.exceptions import (
    AccessDeniedError,
    InvalidTransitionError,
    NotFoundError,
    ValidationFailedError,
)

S = WorkflowStage

TRANSITIONS: Dict[str, Tuple[FrozenSet[str], str]] = {
    "ai_review": (frozenset({S.submitted.value}), S.ai_reviewed.value),
    "approve": (frozenset({S.submitted.value, S.ai_reviewed.value}), S.payment_pending.value),
    "payment_confirmed": (frozenset({S.payment_pending.value}), S.intake_pending.value),
    "submit_intake": (frozenset({S.intake_pending.value}), S.pdf_generation.value),
    "complete_generation": (frozenset({S.pdf_generation.value}), S.dashboard_access.value),
}

REJECTABLE_STAGES = frozenset({S.submitted.value, S.ai_reviewed.value, S.payment_pending.value})

TRIGGERS = frozenset(TRANSITIONS) | {"reject"}

STAGE_ORDER = [stage.value for stage in WorkflowStage]


def stage_index(stage: str) -> int:
    return STAGE_ORDER.index(stage) if stage in STAGE_ORDER else -1


def _dedupe_key(application: Application, stage: str) -> str:
    return f"application:{application.id}:{stage}"


def _frontend(path: str) -> str:
    return f"{settings.FRONTEND_URL.rstrip('/')}{path}"


def _email_vars(application: Application, **extra: Any) -> Dict[str, Any]:
    values = {
        "full_name": application.full_name,
        "issue_type": application.issue_type.replace("_", " "),
        "application_id": str(application.id),
        "status_url": _frontend(f"/application-status/{application.id}"),
    }
    values.update(extra)
    return values


def get_application(db: Session, application_id: UUID) -> Application:
    application = db.get(Application, application_id)
    if application is None:
        raise NotFoundError("Application", application_id)
    return application


# ============================================================================
# Creation
# ============================================================================

def create_application(db: Session, data: Dict[str, Any]) -> Application:
    with transaction(db):
        application = Application(
            full_name=data["full_name"],
            phone=data.get("phone"),
            email=data["email"],
            trade=data["trade"],
            state=data["state"],
            issue_type=data["issue_type"],
            amount=data.get("amount"),
            start_date=data.get("start_date"),
            description=data["description"],
            status=ApplicationStatus.pending.value,
            workflow_stage=S.submitted.value,
            payment_status=PaymentStatus.pending.value,
            payment_amount=settings.APPLICATION_FEE_CENTS / 100,
        )
        db.add(application)
        db.flush()
        task_service.enqueue_email(
            db,
            application.email,
            "welcome",
            _email_vars(application),
            dedupe_key=_dedupe_key(application, S.submitted.value),
        )
    db.refresh(application)
    logger.info("Application %s submitted (%s, %s)", application.id, application.trade, application.state)
    return application


# ============================================================================
# Per-trigger effects (run inside the transition transaction)
# ============================================================================

def _on_ai_review(db: Session, application: Application, ctx: Dict[str, Any]) -> None:
    application.ai_analysis = ctx["analysis"]


def _on_approve(db: Session, application: Application, ctx: Dict[str, Any]) -> None:
    application.status = ApplicationStatus.approved.value
    application.reviewed_by = ctx.get("actor")
    application.reviewed_at = datetime.utcnow()
    if ctx.get("notes"):
        application.admin_notes = ctx["notes"]
    task_service.enqueue_email(
        db,
        application.email,
        "application_approved",
        _email_vars(
            application,
            payment_amount=f"{application.payment_amount:.2f}",
            payment_url=_frontend(f"/payment/{application.id}"),
        ),
        dedupe_key=_dedupe_key(application, S.payment_pending.value),
    )


def _on_payment_confirmed(db: Session, application: Application, ctx: Dict[str, Any]) -> None:
    application.payment_status = PaymentStatus.completed.value
    if ctx.get("payment_reference"):
        application.payment_reference = ctx["payment_reference"]
    task_service.enqueue_email(
        db,
        application.email,
        "payment_received",
        _email_vars(application, intake_url=_frontend(f"/intake/{application.id}")),
        dedupe_key=_dedupe_key(application, S.intake_pending.value),
    )


def _on_submit_intake(db: Session, application: Application, ctx: Dict[str, Any]) -> None:
    user: User = ctx["user"]
    application.intake_data = ctx.get("intake_data") or {}
    application.intake_completed = True
    application.user_id = user.id
    case = case_service.provision_case_from_application(db, application, user.id)
    task_service.enqueue(
        db,
        "generate_strategy_pack",
        {"application_id": str(application.id), "case_id": str(case.id)},
        dedupe_key=_dedupe_key(application, S.pdf_generation.value),
    )


def _on_complete_generation(db: Session, application: Application, ctx: Dict[str, Any]) -> None:
    if not application.intake_completed or application.payment_status != PaymentStatus.completed.value:
        raise InvalidTransitionError("application", application.workflow_stage, "complete_generation")
    application.pdf_generated = True
    application.dashboard_access_granted = True
    task_service.enqueue_email(
        db,
        application.email,
        "strategy_pack_ready",
        _email_vars(application, dashboard_url=_frontend("/dashboard")),
        dedupe_key=_dedupe_key(application, S.dashboard_access.value),
    )


_EFFECTS: Dict[str, Callable[[Session, Application, Dict[str, Any]], None]] = {
    "ai_review": _on_ai_review,
    "approve": _on_approve,
    "payment_confirmed": _on_payment_confirmed,
    "submit_intake": _on_submit_intake,
    "complete_generation": _on_complete_generation,
}


# ============================================================================
# Transition entry point
# ============================================================================

def _reject(db: Session, application: Application, ctx: Dict[str, Any]) -> Application:
    if application.status == ApplicationStatus.rejected.value:
        logger.info("Application %s already rejected; no-op", application.id)
        return application
    if application.workflow_stage not in REJECTABLE_STAGES:
        raise InvalidTransitionError("application", application.workflow_stage, "reject")

    with transaction(db):
        application.status = ApplicationStatus.rejected.value
        application.reviewed_by = ctx.get("actor")
        application.reviewed_at = datetime.utcnow()
        if ctx.get("notes"):
            application.admin_notes = ctx["notes"]
        task_service.enqueue_email(
            db,
            application.email,
            "application_rejected",
            _email_vars(application, reason=ctx.get("notes") or "Not specified"),
            dedupe_key=_dedupe_key(application, ApplicationStatus.rejected.value),
        )
    logger.info("Application %s: %s -> rejected", application.id, application.workflow_stage)
    return application


def advance_application(
    db: Session,
    application_id: UUID,
    trigger: str,
    context: Optional[Dict[str, Any]] = None,
) -> Application:
    """
    Apply *trigger* to the application.

    Raises NotFoundError for an unknown id and InvalidTransitionError when
    the trigger has no edge from the current stage. Returns the application
    unchanged when it is already at the trigger's target.
    """
    if trigger not in TRIGGERS:
        raise ValidationFailedError(f"Unknown workflow trigger: {trigger}")

    ctx = context or {}
    application = get_application(db, application_id)

    if trigger == "reject":
        return _reject(db, application, ctx)

    if application.status == ApplicationStatus.rejected.value:
        raise InvalidTransitionError("rejected application", application.workflow_stage, trigger)

    sources, target = TRANSITIONS[trigger]
    current = application.workflow_stage
    if current == target:
        logger.info("Application %s already at %s; '%s' is a no-op", application.id, target, trigger)
        return application
    if current not in sources:
        raise InvalidTransitionError("application", current, trigger)

    with transaction(db):
        _EFFECTS[trigger](db, application, ctx)
        application.workflow_stage = target

    db.refresh(application)
    logger.info("Application %s: %s -> %s (%s)", application.id, current, target, trigger)
    return application


# ============================================================================
# Named operations
# ============================================================================

def run_ai_review(db: Session, application_id: UUID, actor: str) -> Application:
    """Ask the AI collaborator for a pre-review, then record it."""
    application = get_application(db, application_id)
    if application.workflow_stage == S.ai_reviewed.value:
        return application
    if application.status == ApplicationStatus.rejected.value or application.workflow_stage != S.submitted.value:
        raise InvalidTransitionError("application", application.workflow_stage, "ai_review")

    analysis = ai_service.review_application(
        {
            "issue_type": application.issue_type,
            "amount": str(application.amount) if application.amount is not None else None,
            "description": application.description,
            "trade": application.trade,
            "state": application.state,
        }
    )
    return advance_application(db, application_id, "ai_review", {"analysis": analysis, "actor": actor})


def review_application(db: Session, application_id: UUID, action: str, actor: str, notes: Optional[str] = None) -> Application:
    if action not in ("approve", "reject"):
        raise ValidationFailedError("action must be 'approve' or 'reject'")
    return advance_application(db, application_id, action, {"actor": actor, "notes": notes})


def confirm_payment(db: Session, application_id: UUID, payment_reference: Optional[str] = None) -> Application:
    return advance_application(
        db, application_id, "payment_confirmed", {"payment_reference": payment_reference}
    )


def _owned_by(application: Application, user: User) -> bool:
    if application.user_id is not None:
        return application.user_id == user.id
    return bool(user.email) and user.email.strip().lower() == application.email.strip().lower()


def get_application_for_user(db: Session, application_id: UUID, user: User) -> Application:
    application = get_application(db, application_id)
    if not _owned_by(application, user):
        raise NotFoundError("Application", application_id)
    return application


def list_applications_for_user(db: Session, user: User):
    query = db.query(Application)
    if user.email:
        query = query.filter(
            (Application.user_id == user.id)
            | (func.lower(Application.email) == user.email.strip().lower())
        )
    else:
        query = query.filter(Application.user_id == user.id)
    return query.order_by(Application.created_at.desc()).all()


def submit_intake(db: Session, application_id: UUID, user: User, intake_data: Dict[str, Any]) -> Application:
    application = get_application_for_user(db, application_id, user)
    if application.workflow_stage == S.intake_pending.value and application.payment_status != PaymentStatus.completed.value:
        raise AccessDeniedError("Payment must be completed before submitting the intake form")
    return advance_application(
        db, application.id, "submit_intake", {"user": user, "intake_data": intake_data}
    )


def complete_generation(db: Session, application_id: UUID) -> Application:
    return advance_application(db, application_id, "complete_generation")
