"""
Health and readiness checks: verify the database and report collaborator modes.
"""
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from resolve.api.deps import get_db
from resolve.core.config import settings
from resolve.core.logger import logger
from resolve.services import calendar_service
from resolve.services.ai_service import ai_service

router = APIRouter()


def _check_database(db: Session) -> tuple[str, str]:
    """Returns (status, detail). Status is 'ok' or 'error'."""
    try:
        db.execute(text("SELECT 1"))
        return "ok", "Database reachable"
    except Exception as e:
        logger.warning("Database health check failed: %s", e)
        return "error", f"Database: {str(e)}"


@router.get("")
def health():
    return {"status": "healthy"}


@router.get("/ready")
def readiness(db: Session = Depends(get_db)):
    db_status, db_detail = _check_database(db)
    return {
        "status": "ready" if db_status == "ok" else "degraded",
        "checks": {
            "database": {"status": db_status, "detail": db_detail},
            "ai": {"status": "ok" if ai_service.enabled else "disabled", "provider": settings.AI_PROVIDER},
            "email": {"provider": settings.EMAIL_PROVIDER},
            "storage": {"provider": settings.STORAGE_PROVIDER},
            "payments": {"provider": settings.PAYMENT_PROVIDER},
            "calendar": {"status": "ok" if calendar_service.is_enabled() else "disabled"},
        },
    }
