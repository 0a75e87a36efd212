"""
Custom exception classes
"""
from typing import Optional

from fastapi import HTTPException

from resolve.core.config import settings


class NotFoundError(HTTPException):
    """Raised when an entity doesn't exist or isn't owned by the caller"""
    def __init__(self, entity: str, entity_id=None):
        detail = f"{entity} not found" if entity_id is None else f"{entity} {entity_id} not found"
        super().__init__(status_code=404, detail=detail)


class AccessDeniedError(HTTPException):
    """Raised when the caller may not perform the action"""
    def __init__(self, reason: str = "You don't have permission to access this resource"):
        super().__init__(status_code=403, detail=reason)


class InvalidTransitionError(HTTPException):
    """Raised when a workflow trigger is not allowed from the current state"""
    def __init__(self, entity: str, current: str, trigger: str):
        self.current = current
        self.trigger = trigger
        super().__init__(
            status_code=409,
            detail=f"Cannot apply '{trigger}' to {entity} in state '{current}'",
        )


class ConflictError(HTTPException):
    """Raised when a concurrent write won the race"""
    def __init__(self, reason: str = "The record was modified by another request. Reload and try again."):
        super().__init__(status_code=409, detail=reason)


class ValidationFailedError(HTTPException):
    """Raised for semantically invalid input"""
    def __init__(self, reason: str):
        super().__init__(status_code=422, detail=reason)


class UsageLimitExceededError(HTTPException):
    """Raised by the entitlement gate; the body carries an upgrade prompt"""
    def __init__(self, entity_type: str, limit: int):
        super().__init__(
            status_code=402,
            detail={
                "code": "usage_limit_exceeded",
                "message": (
                    f"You've used all {limit} free {entity_type}s. "
                    f"Upgrade to a monthly subscription for unlimited {entity_type}s."
                ),
                "entityType": entity_type,
                "limit": limit,
                "upgradeUrl": f"{settings.FRONTEND_URL.rstrip('/')}/subscription",
            },
        )


class UpstreamUnavailableError(HTTPException):
    """Raised when a collaborator is not configured; may carry a degraded result"""
    def __init__(self, service: str, placeholder: Optional[dict] = None):
        self.placeholder = placeholder
        message = f"{service} is not available"
        super().__init__(
            status_code=503,
            detail={"message": message, "degraded": placeholder} if placeholder else message,
        )


class UpstreamError(HTTPException):
    """Raised when a collaborator call fails or returns an unusable response"""
    def __init__(self, service: str, reason: str = "Unknown error"):
        super().__init__(
            status_code=502,
            detail=f"{service} error: {reason}",
        )
