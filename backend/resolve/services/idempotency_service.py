"""
Replay protection for the gated create endpoints (cases, contracts).

A client that retries ``POST /cases`` after a timeout, or double-submits a
form, sends the same ``Idempotency-Key`` header. The first 201 response is
kept for 24 hours and replayed, so the retry neither creates a second case
nor burns another free-tier slot.

A key is bound to the endpoint and to a fingerprint of the request body.
Reusing it for a different request is a 409.
"""
from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from resolve.core.config import settings
from resolve.db.models import IdempotencyRecord
from resolve.utils.exceptions import ConflictError

logger = logging.getLogger(__name__)


def fingerprint(payload: Dict[str, Any]) -> str:
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _live_record(db: Session, key: str, user_id: UUID) -> Optional[IdempotencyRecord]:
    return (
        db.query(IdempotencyRecord)
        .filter(
            IdempotencyRecord.idempotency_key == key,
            IdempotencyRecord.user_id == user_id,
            IdempotencyRecord.expires_at > datetime.utcnow(),
        )
        .first()
    )


def replay(
    db: Session,
    key: Optional[str],
    user_id: UUID,
    endpoint: str,
    payload: Dict[str, Any],
) -> Optional[Tuple[int, Dict[str, Any]]]:
    """(status_code, body) of the first response for this key, or None."""
    if not key:
        return None

    record = _live_record(db, key, user_id)
    if record is None:
        return None

    if record.endpoint != endpoint or (
        record.request_hash and record.request_hash != fingerprint(payload)
    ):
        logger.warning("Idempotency-Key %s reused for a different request by user %s", key, user_id)
        raise ConflictError("Idempotency-Key was already used for a different request")

    logger.info("Replaying %s response for user %s (key %s)", endpoint, user_id, key)
    return record.status_code, record.response_body


def remember(
    db: Session,
    key: Optional[str],
    user_id: UUID,
    endpoint: str,
    payload: Dict[str, Any],
    status_code: int,
    body: Dict[str, Any],
) -> None:
    if not key:
        return

    now = datetime.utcnow()
    # An expired row still holds the unique (key, user) slot.
    db.query(IdempotencyRecord).filter(
        IdempotencyRecord.idempotency_key == key,
        IdempotencyRecord.user_id == user_id,
        IdempotencyRecord.expires_at <= now,
    ).delete(synchronize_session=False)

    db.add(
        IdempotencyRecord(
            idempotency_key=key,
            user_id=user_id,
            endpoint=endpoint,
            request_hash=fingerprint(payload),
            status_code=status_code,
            response_body=body,
            created_at=now,
            expires_at=now + timedelta(hours=settings.IDEMPOTENCY_TTL_HOURS),
        )
    )
    try:
        db.commit()
    except IntegrityError:
        # A concurrent request with the same key stored first; its response stands.
        db.rollback()
        logger.debug("Idempotency record for key %s already stored", key)


def purge_expired(db: Session) -> int:
    deleted = (
        db.query(IdempotencyRecord)
        .filter(IdempotencyRecord.expires_at <= datetime.utcnow())
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted
