from __future__ import annotations

from typing import Any, Dict, Tuple

import httpx

from resolve.core.config import settings
from resolve.core.logger import logger

# template_id -> (subject, plain-text body)
TEMPLATES: Dict[str, Tuple[str, str]] = {
    "welcome": (
        "Application Received - Project Resolve",
        "Hi {full_name},\n\n"
        "Thanks for submitting your {issue_type} application. Our team will review it "
        "within 1-2 business days and email you with the next steps.\n\n"
        "Track your application: {status_url}\n",
    ),
    "application_approved": (
        "Case Approved - Project Resolve",
        "Hi {full_name},\n\n"
        "Good news: your application has been approved. To start your strategy pack, "
        "complete the one-off payment of ${payment_amount} AUD here:\n{payment_url}\n",
    ),
    "application_rejected": (
        "Application Update - Project Resolve",
        "Hi {full_name},\n\n"
        "After reviewing your application we are unable to take on this matter.\n\n"
        "Reason: {reason}\n\n"
        "We recommend speaking with a local construction lawyer.\n",
    ),
    "payment_received": (
        "Payment Received - Complete Your Intake",
        "Hi {full_name},\n\n"
        "We've received your payment. Please complete the detailed intake form so we "
        "can prepare your strategy pack:\n{intake_url}\n",
    ),
    "strategy_pack_ready": (
        "Your Strategy Pack Is Ready",
        "Hi {full_name},\n\n"
        "Your case dashboard is now available. Log in to view your strategy pack and next steps:\n"
        "{dashboard_url}\n",
    ),
    "document_sent": (
        "Your Legal Document is Ready - {case_title}",
        "Hi {full_name},\n\n"
        "A new document, \"{document_title}\", has been reviewed by our team and added to case "
        "{case_number}.\n\nView it here: {document_url}\n",
    ),
}


class _SafeVars(dict):
    def __missing__(self, key: str) -> str:
        return ""


def render_template(template_id: str, variables: Dict[str, Any]) -> Tuple[str, str]:
    if template_id not in TEMPLATES:
        raise ValueError(f"Unknown email template: {template_id}")
    subject, body = TEMPLATES[template_id]
    safe = _SafeVars({k: "" if v is None else v for k, v in variables.items()})
    return subject.format_map(safe), body.format_map(safe)


class EmailService:
    """Transactional email with provider toggle (dev logs, resend delivers)."""

    def __init__(self) -> None:
        self.provider = (settings.EMAIL_PROVIDER or "dev").strip().lower()

    def send(self, to: str, template_id: str, variables: Dict[str, Any]) -> bool:
        """
        Render and deliver one email. Never raises for delivery problems;
        returns False after logging so callers can record the failure.
        """
        target = (to or "").strip()
        if not target:
            logger.warning("Email %s skipped: no recipient", template_id)
            return False
        subject, body = render_template(template_id, variables)

        provider = self.provider
        if provider == "dev":
            logger.info("[DEV EMAIL] to=%s template=%s subject=%s", target, template_id, subject)
            return True
        if provider == "resend":
            api_key = (settings.RESEND_API_KEY or "").strip()
            sender = (settings.EMAIL_FROM or "").strip()
            if not api_key or not sender:
                logger.warning("Email disabled: RESEND_API_KEY/EMAIL_FROM missing (template=%s)", template_id)
                return False
            payload = {"from": sender, "to": [target], "subject": subject, "text": body}
            headers = {
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            }
            try:
                with httpx.Client(timeout=20.0) as client:
                    resp = client.post("https://api.resend.com/emails", json=payload, headers=headers)
            except httpx.HTTPError as exc:
                logger.error("Resend email failed to=%s template=%s: %s", target, template_id, exc)
                return False
            if resp.status_code >= 400:
                logger.error(
                    "Resend email failed to=%s template=%s: %s %s",
                    target, template_id, resp.status_code, resp.text[:200],
                )
                return False
            logger.info("Email sent to=%s template=%s", target, template_id)
            return True
        logger.error("Unsupported EMAIL_PROVIDER: %s", provider)
        return False


email_service = EmailService()
