from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from resolve.api.deps import get_current_user, get_db
from resolve.db.models import User
from resolve.services import entitlement_service

router = APIRouter()


@router.get("/status")
def get_subscription_status(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Plan, remaining free-tier allowance and whether new cases/contracts are allowed."""
    return {"data": entitlement_service.subscription_status(db, current_user.id)}
