"""
Payment processor adapter (Stripe).

PAYMENT_PROVIDER=stripe creates real PaymentIntents; "dev" returns synthetic
intents so the workflow can be exercised locally. Webhooks are verified with
the Stripe signature whenever STRIPE_WEBHOOK_SECRET is set.
"""
from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import stripe

from resolve.core.config import settings
from resolve.core.logger import logger
from resolve.utils.exceptions import UpstreamError, ValidationFailedError


@dataclass
class PaymentIntentResult:
    intent_id: str
    client_secret: str
    amount_cents: int
    currency: str
    provider: str


@dataclass
class WebhookEvent:
    type: str
    intent_id: Optional[str]
    metadata: Dict[str, Any] = field(default_factory=dict)
    amount_cents: Optional[int] = None


class PaymentService:
    def __init__(self) -> None:
        provider = (settings.PAYMENT_PROVIDER or "dev").strip().lower()
        if provider == "stripe" and not settings.STRIPE_SECRET_KEY:
            logger.warning("STRIPE_SECRET_KEY missing; payments running in dev mode")
            provider = "dev"
        self.provider = provider

    def create_intent(self, amount_cents: int, metadata: Dict[str, str]) -> PaymentIntentResult:
        currency = settings.CURRENCY.lower()
        if self.provider == "dev":
            intent_id = f"pi_dev_{uuid.uuid4().hex[:24]}"
            logger.info("[DEV PAYMENT] intent=%s amount=%s %s", intent_id, amount_cents, currency)
            return PaymentIntentResult(
                intent_id=intent_id,
                client_secret=f"{intent_id}_secret_dev",
                amount_cents=amount_cents,
                currency=currency,
                provider="dev",
            )

        try:
            intent = stripe.PaymentIntent.create(
                amount=amount_cents,
                currency=currency,
                metadata=metadata,
                automatic_payment_methods={"enabled": True},
                api_key=settings.STRIPE_SECRET_KEY,
            )
        except stripe.StripeError as exc:
            logger.error("Stripe PaymentIntent.create failed: %s", exc)
            raise UpstreamError("Payment processor", str(exc)) from exc
        return PaymentIntentResult(
            intent_id=intent["id"],
            client_secret=intent["client_secret"],
            amount_cents=amount_cents,
            currency=currency,
            provider="stripe",
        )

    def parse_webhook(self, payload: bytes, signature: Optional[str]) -> WebhookEvent:
        """Verify and decode a webhook body into a WebhookEvent."""
        secret = settings.STRIPE_WEBHOOK_SECRET
        if secret:
            try:
                event = stripe.Webhook.construct_event(payload, signature or "", secret)
            except stripe.SignatureVerificationError as exc:
                logger.warning("Rejected webhook with bad signature: %s", exc)
                raise ValidationFailedError("Invalid webhook signature") from exc
            except ValueError as exc:
                raise ValidationFailedError("Invalid webhook payload") from exc
            event = event.to_dict() if hasattr(event, "to_dict") else dict(event)
        else:
            if self.provider != "dev":
                raise ValidationFailedError("Webhook signing secret not configured")
            try:
                event = json.loads(payload or b"{}")
            except ValueError as exc:
                raise ValidationFailedError("Invalid webhook payload") from exc

        obj = (event.get("data") or {}).get("object") or {}
        return WebhookEvent(
            type=event.get("type", ""),
            intent_id=obj.get("id"),
            metadata=dict(obj.get("metadata") or {}),
            amount_cents=obj.get("amount"),
        )


payment_service = PaymentService()
