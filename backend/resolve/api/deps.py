# resolve/api/deps.py

from datetime import datetime
from typing import Optional
from uuid import UUID

import jwt
from fastapi import Cookie, Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from resolve.core.config import settings
from resolve.core.logger import logger
from resolve.db.database import get_db
from resolve.db.models import User, UserRole

security = HTTPBearer()

__all__ = ["get_db", "get_current_user", "get_admin_user"]


def _unauthorized(detail: str = "Invalid token") -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def _provision_user(db: Session, payload: dict, role: Optional[str] = None) -> User:
    """Find the user for the token's subject, creating it on first sight."""
    subject = payload.get("sub") or payload.get("user_id")
    if not subject:
        raise _unauthorized()
    try:
        user_id = UUID(str(subject))
    except ValueError:
        raise _unauthorized()

    metadata = payload.get("user_metadata") or {}
    email = payload.get("email")
    user = db.get(User, user_id)
    if user is None:
        user = User(
            id=user_id,
            email=email,
            full_name=metadata.get("full_name") or metadata.get("name"),
            role=role or UserRole.user.value,
        )
        db.add(user)
        logger.info("Provisioned user %s (%s)", user_id, email)
    else:
        if email and user.email != email:
            user.email = email
        if role and user.role != role:
            user.role = role
    user.last_seen_at = datetime.utcnow()
    db.commit()
    db.refresh(user)
    return user


# ============================================================================
# JWT Dependency
# ============================================================================

def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """
    Validate the identity provider's access token and return the user.
    """
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.AUTH_JWT_SECRET,
            algorithms=[settings.AUTH_JWT_ALGORITHM],
            audience=settings.AUTH_JWT_AUDIENCE,
        )
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token expired")
    except jwt.PyJWTError:
        raise _unauthorized()

    user = _provision_user(db, payload)
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated",
        )
    return user


def get_admin_user(
    x_admin_session: Optional[str] = Header(default=None),
    admin_session: Optional[str] = Cookie(default=None),
    db: Session = Depends(get_db),
) -> User:
    """
    Admin endpoints use a separate admin session token, sent as the
    X-Admin-Session header or the admin_session cookie.
    """
    token = x_admin_session or admin_session
    if not token:
        raise _unauthorized("Admin session required")
    try:
        payload = jwt.decode(
            token,
            settings.admin_session_secret,
            algorithms=[settings.AUTH_JWT_ALGORITHM],
            options={"verify_aud": False},
        )
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Admin session expired")
    except jwt.PyJWTError:
        raise _unauthorized("Invalid admin session")

    if payload.get("role") != UserRole.admin.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return _provision_user(db, payload, role=UserRole.admin.value)


def actor_name(user: User) -> str:
    return user.email or str(user.id)
