import json

import pytest

from resolve.core.config import settings
from resolve.db.models import Payment, WorkflowTask
from resolve.services import checkout_service, workflow_service


def _event(event_type, intent_id, application_id=None):
    metadata = {"application_id": str(application_id)} if application_id else {}
    return json.dumps(
        {"type": event_type, "data": {"object": {"id": intent_id, "amount": 29900, "metadata": metadata}}}
    ).encode()


@pytest.fixture
def approved(db, application):
    return workflow_service.review_application(db, application.id, "approve", "admin")


def test_intent_is_recorded_for_approved_application(db, approved):
    result = checkout_service.create_payment_intent(db, approved.id, "JANE@example.com")

    assert result["paymentIntentId"].startswith("pi_dev_")
    assert result["currency"] == "aud"
    payment = db.query(Payment).one()
    assert payment.provider_intent_id == result["paymentIntentId"]
    assert payment.status == "requires_payment"


def test_intent_before_approval_is_rejected(client, application):
    resp = client.post(
        "/api/payments/intent", json={"applicationId": str(application.id), "email": "jane@example.com"}
    )
    assert resp.status_code == 409


def test_intent_with_wrong_email_is_not_found(client, approved):
    resp = client.post(
        "/api/payments/intent", json={"applicationId": str(approved.id), "email": "bob@example.com"}
    )
    assert resp.status_code == 404


def test_duplicate_webhook_does_not_repeat_side_effects(db, approved):
    intent = checkout_service.create_payment_intent(db, approved.id, "jane@example.com")
    body = _event("payment_intent.succeeded", intent["paymentIntentId"])

    first = checkout_service.handle_webhook(db, body, None)
    second = checkout_service.handle_webhook(db, body, None)

    assert first["workflowStage"] == second["workflowStage"] == "intake_pending"
    db.refresh(approved)
    assert approved.payment_status == "completed"
    assert approved.payment_reference == intent["paymentIntentId"]
    assert db.query(Payment).one().status == "succeeded"
    payment_emails = [
        t for t in db.query(WorkflowTask).all() if (t.payload or {}).get("template_id") == "payment_received"
    ]
    assert len(payment_emails) == 1


def test_webhook_endpoint_confirms_payment(client, db, approved):
    intent = checkout_service.create_payment_intent(db, approved.id, "jane@example.com")

    resp = client.post(
        "/api/payments/webhook",
        content=_event("payment_intent.succeeded", intent["paymentIntentId"]),
        headers={"Content-Type": "application/json"},
    )

    assert resp.status_code == 200
    assert resp.json()["workflowStage"] == "intake_pending"
    db.refresh(approved)
    assert approved.payment_status == "completed"


def test_webhook_after_intake_is_acknowledged(db, approved, user):
    intent = checkout_service.create_payment_intent(db, approved.id, "jane@example.com")
    body = _event("payment_intent.succeeded", intent["paymentIntentId"])
    checkout_service.handle_webhook(db, body, None)
    workflow_service.submit_intake(db, approved.id, user, {"site": "Bondi"})

    result = checkout_service.handle_webhook(db, body, None)

    assert result["handled"] is True
    assert result["workflowStage"] == "pdf_generation"


def test_webhook_falls_back_to_metadata(db, approved):
    result = checkout_service.handle_webhook(
        db, _event("payment_intent.succeeded", "pi_external", approved.id), None
    )
    assert result["workflowStage"] == "intake_pending"


def test_failed_payment_leaves_stage(db, approved):
    intent = checkout_service.create_payment_intent(db, approved.id, "jane@example.com")

    checkout_service.handle_webhook(db, _event("payment_intent.payment_failed", intent["paymentIntentId"]), None)

    db.refresh(approved)
    assert approved.workflow_stage == "payment_pending"
    assert db.query(Payment).one().status == "failed"


def test_unrelated_event_is_ignored(client):
    resp = client.post("/api/payments/webhook", content=_event("customer.created", "cus_1"))
    assert resp.status_code == 200
    assert resp.json() == {"received": True, "handled": False}


def test_bad_signature_is_rejected(client, approved, monkeypatch):
    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", "whsec_test")

    resp = client.post(
        "/api/payments/webhook",
        content=_event("payment_intent.succeeded", "pi_x", approved.id),
        headers={"Stripe-Signature": "t=1,v1=deadbeef"},
    )

    assert resp.status_code == 422
