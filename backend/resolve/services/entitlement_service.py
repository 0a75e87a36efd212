"""
Usage/entitlement gate for case and contract creation.

A user with an active, unexpired subscription may create without limit
(remaining = -1). Everyone else gets FREE_TIER_LIMIT of each entity type.
The count is taken fresh on every call.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from resolve.core.config import settings
from resolve.core.logger import logger
from resolve.db.models import Case, Contract, Subscription, SubscriptionStatus
from resolve.utils.exceptions import UsageLimitExceededError, ValidationFailedError

UNLIMITED = -1

_ENTITY_MODELS = {
    "case": Case,
    "contract": Contract,
}


@dataclass
class GateResult:
    allowed: bool
    remaining: int
    reason: str


def get_latest_subscription(db: Session, user_id: UUID) -> Optional[Subscription]:
    return (
        db.query(Subscription)
        .filter(Subscription.user_id == user_id)
        .order_by(Subscription.created_at.desc())
        .first()
    )


def has_active_subscription(db: Session, user_id: UUID, now: Optional[datetime] = None) -> bool:
    now = now or datetime.utcnow()
    sub = get_latest_subscription(db, user_id)
    if sub is None or sub.status != SubscriptionStatus.active.value:
        return False
    return sub.expires_at is None or sub.expires_at > now


def count_entities(db: Session, user_id: UUID, entity_type: str) -> int:
    model = _ENTITY_MODELS.get(entity_type)
    if model is None:
        raise ValidationFailedError(f"Unknown entity type: {entity_type}")
    return db.query(func.count(model.id)).filter(model.user_id == user_id).scalar() or 0


def can_create(db: Session, user_id: UUID, entity_type: str, now: Optional[datetime] = None) -> GateResult:
    if entity_type not in _ENTITY_MODELS:
        raise ValidationFailedError(f"Unknown entity type: {entity_type}")
    if has_active_subscription(db, user_id, now):
        return GateResult(allowed=True, remaining=UNLIMITED, reason="subscription_active")

    limit = settings.FREE_TIER_LIMIT
    count = count_entities(db, user_id, entity_type)
    if count < limit:
        return GateResult(allowed=True, remaining=limit - count, reason="free_tier")
    return GateResult(allowed=False, remaining=0, reason="free_tier_limit_reached")


def enforce_can_create(db: Session, user_id: UUID, entity_type: str) -> GateResult:
    result = can_create(db, user_id, entity_type)
    if not result.allowed:
        logger.info("Gate rejected %s creation for user %s", entity_type, user_id)
        raise UsageLimitExceededError(entity_type, settings.FREE_TIER_LIMIT)
    return result


def recheck_after_insert(db: Session, user_id: UUID, entity_type: str) -> None:
    """
    Called after the new row is flushed but before commit. If a concurrent
    request slipped past the gate, the count now exceeds the limit and the
    caller's transaction must roll back.
    """
    if has_active_subscription(db, user_id):
        return
    limit = settings.FREE_TIER_LIMIT
    if count_entities(db, user_id, entity_type) > limit:
        logger.warning("Free-tier race detected for user %s (%s); rolling back", user_id, entity_type)
        raise UsageLimitExceededError(entity_type, limit)


def subscription_status(db: Session, user_id: UUID) -> Dict[str, Any]:
    sub = get_latest_subscription(db, user_id)
    cases = can_create(db, user_id, "case")
    contracts = can_create(db, user_id, "contract")
    active = has_active_subscription(db, user_id)
    return {
        "planType": sub.plan_type if sub and active else "free",
        "status": sub.status if sub else SubscriptionStatus.inactive.value,
        "expiresAt": sub.expires_at.isoformat() if sub and sub.expires_at else None,
        "isActive": active,
        "freeTierLimit": settings.FREE_TIER_LIMIT,
        "canCreateCases": cases.allowed,
        "canCreateContracts": contracts.allowed,
        "casesRemaining": cases.remaining,
        "contractsRemaining": contracts.remaining,
        "casesUsed": count_entities(db, user_id, "case"),
        "contractsUsed": count_entities(db, user_id, "contract"),
    }
