"""
Dashboard insights and outcome analytics for the signed-in tradesperson.
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from resolve.api.deps import get_current_user, get_db
from resolve.db.models import User
from resolve.services import insights_service, outcome_service

router = APIRouter()


@router.get("/dashboard")
def get_dashboard_insights(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    return {"data": insights_service.dashboard_insights(db, current_user)}


@router.get("/outcomes")
def get_outcome_analytics(
    period: Optional[str] = Query(default=None, pattern="^(week|month|quarter|year|all)$"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Success rate, recovery and resolution-time metrics over resolved cases."""
    return {"data": outcome_service.outcome_analytics(db, current_user.id, period=period)}
