"""
Application fee checkout: payment intents and processor webhooks.

A ``payment_intent.succeeded`` webhook is the only path that issues the
``payment_confirmed`` workflow trigger.
"""
from __future__ import annotations

from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from resolve.core.config import settings
from resolve.core.logger import logger
from resolve.db.models import (
    Application,
    ApplicationStatus,
    Payment,
    PaymentIntentStatus,
    WorkflowStage,
)
from resolve.services import workflow_service
from resolve.services.payment_service import payment_service
from resolve.utils.exceptions import InvalidTransitionError, NotFoundError

SUCCEEDED_EVENTS = ("payment_intent.succeeded",)
FAILED_EVENTS = ("payment_intent.payment_failed",)


def create_payment_intent(db: Session, application_id: UUID, email: str) -> Dict[str, Any]:
    application = workflow_service.get_application(db, application_id)
    if application.email.strip().lower() != (email or "").strip().lower():
        raise NotFoundError("Application", application_id)
    if (
        application.status == ApplicationStatus.rejected.value
        or application.workflow_stage != WorkflowStage.payment_pending.value
    ):
        raise InvalidTransitionError("application", application.workflow_stage, "create_payment_intent")

    amount_cents = settings.APPLICATION_FEE_CENTS
    result = payment_service.create_intent(
        amount_cents,
        {"application_id": str(application.id), "email": application.email},
    )
    db.add(
        Payment(
            application_id=application.id,
            user_id=application.user_id,
            provider=result.provider,
            provider_intent_id=result.intent_id,
            amount_cents=amount_cents,
            currency=result.currency,
            status=PaymentIntentStatus.requires_payment.value,
        )
    )
    db.commit()
    logger.info("Payment intent %s created for application %s", result.intent_id, application.id)
    return {
        "clientSecret": result.client_secret,
        "paymentIntentId": result.intent_id,
        "amount": amount_cents,
        "currency": result.currency,
    }


def _application_for_event(db: Session, intent_id: Optional[str], metadata: Dict[str, Any]) -> Optional[Application]:
    payment = None
    if intent_id:
        payment = db.query(Payment).filter(Payment.provider_intent_id == intent_id).first()
    if payment is not None:
        return db.get(Application, payment.application_id)
    app_id = metadata.get("application_id")
    if app_id:
        try:
            return db.get(Application, UUID(app_id))
        except ValueError:
            return None
    return None


def handle_webhook(db: Session, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
    event = payment_service.parse_webhook(payload, signature)
    logger.info("Payment webhook %s intent=%s", event.type, event.intent_id)

    if event.type not in SUCCEEDED_EVENTS + FAILED_EVENTS:
        return {"received": True, "handled": False}

    application = _application_for_event(db, event.intent_id, event.metadata)
    if application is None:
        logger.warning("Payment webhook for unknown intent %s", event.intent_id)
        return {"received": True, "handled": False}

    payment = None
    if event.intent_id:
        payment = db.query(Payment).filter(Payment.provider_intent_id == event.intent_id).first()

    if event.type in FAILED_EVENTS:
        if payment is not None:
            payment.status = PaymentIntentStatus.failed.value
            db.commit()
        return {"received": True, "handled": True}

    if payment is not None and payment.status != PaymentIntentStatus.succeeded.value:
        payment.status = PaymentIntentStatus.succeeded.value
        db.commit()

    if workflow_service.stage_index(application.workflow_stage) > workflow_service.stage_index(
        WorkflowStage.payment_pending.value
    ):
        logger.info("Duplicate payment webhook for application %s ignored", application.id)
        return {"received": True, "handled": True, "workflowStage": application.workflow_stage}

    application = workflow_service.confirm_payment(db, application.id, payment_reference=event.intent_id)
    return {"received": True, "handled": True, "workflowStage": application.workflow_stage}
