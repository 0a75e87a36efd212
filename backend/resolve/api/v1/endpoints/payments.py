"""
Application fee checkout. The webhook is the only path that confirms payment.
"""
import asyncio
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.orm import Session

from resolve.api.deps import get_db
from resolve.db.schemas import PaymentIntentIn
from resolve.services import checkout_service

router = APIRouter()


@router.post("/intent")
def create_payment_intent(
    payload: PaymentIntentIn,
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    return {"data": checkout_service.create_payment_intent(db, payload.application_id, str(payload.email))}


@router.post("/webhook")
async def payment_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None, alias="Stripe-Signature"),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    payload = await request.body()
    return await asyncio.to_thread(checkout_service.handle_webhook, db, payload, stripe_signature)
