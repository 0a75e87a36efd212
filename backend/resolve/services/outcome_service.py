"""
Case outcomes: recording how a dispute ended, the per-case history of
outcome changes, and the success analytics derived from resolved cases.

Any outcome other than ``ongoing`` resolves the case (progress 100).
Setting ``ongoing`` reopens it; progress stays where it was.
"""
from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from resolve.core.logger import logger
from resolve.db.database import transaction
from resolve.db.models import (
    Case,
    CaseOutcome,
    CaseOutcomeHistory,
    CaseStatus,
    TimelineEntry,
    TimelineEventType,
    TimelineStatus,
)
from resolve.services import case_service
from resolve.utils.exceptions import ValidationFailedError

SUCCESSFUL = (CaseOutcome.successful.value, CaseOutcome.partial_success.value)

OUTCOME_FIELDS = (
    "outcome_description",
    "amount_recovered",
    "resolution_method",
    "client_satisfaction_score",
    "strategy_effectiveness",
    "would_recommend",
    "lessons_learned",
)

PERIODS = ("week", "month", "quarter", "year", "all")


def _recovery_percentage(recovered, claimed) -> Optional[float]:
    if recovered is None or not claimed:
        return None
    return round(float(recovered) / float(claimed) * 100, 2)


def update_outcome(db: Session, case_id: UUID, user_id: UUID, data: Dict[str, Any]) -> Case:
    outcome = data.get("outcome")
    if outcome not in {o.value for o in CaseOutcome}:
        raise ValidationFailedError(f"Invalid outcome: {outcome}")

    case = case_service.get_case(db, case_id, user_id)
    now = datetime.utcnow()
    resolved = outcome != CaseOutcome.ongoing.value
    new_status = CaseStatus.resolved.value if resolved else CaseStatus.active.value

    with transaction(db):
        db.add(
            CaseOutcomeHistory(
                case_id=case.id,
                user_id=user_id,
                previous_outcome=case.outcome,
                new_outcome=outcome,
                previous_status=case.status,
                new_status=new_status,
                amount_recovered=data.get("amount_recovered"),
                resolution_method=data.get("resolution_method"),
                notes=data.get("outcome_description"),
            )
        )
        for field in OUTCOME_FIELDS:
            if data.get(field) is not None:
                setattr(case, field, data[field])
        if data.get("amount_claimed") is not None:
            case.amount = data["amount_claimed"]

        case.outcome = outcome
        case.status = new_status
        case.recovery_percentage = _recovery_percentage(case.amount_recovered, case.amount)
        if resolved:
            case.resolved_at = now
            case.days_to_resolution = (now - case.created_at).days
            case_service.advance_progress(case, case_service.PROGRESS_RESOLVED)
            db.add(
                TimelineEntry(
                    user_id=user_id,
                    case_id=case.id,
                    title=f"Outcome recorded: {outcome.replace('_', ' ')}",
                    description=data.get("outcome_description"),
                    event_type=TimelineEventType.milestone.value,
                    event_date=now,
                    status=TimelineStatus.completed.value,
                    is_completed=True,
                    completed_at=now,
                )
            )
        else:
            case.resolved_at = None
            case.days_to_resolution = None

    db.refresh(case)
    logger.info("Case %s outcome -> %s (status %s)", case.case_number, outcome, case.status)
    return case


def outcome_history(db: Session, case_id: UUID, user_id: UUID) -> List[CaseOutcomeHistory]:
    case = case_service.get_case(db, case_id, user_id)
    return list(case.outcome_history)


# ============================================================================
# Analytics
# ============================================================================

def _period_start(period: Optional[str], now: datetime) -> Optional[datetime]:
    if period == "week":
        return now - timedelta(days=7)
    if period == "month":
        return datetime(now.year, now.month, 1)
    if period == "quarter":
        return datetime(now.year, (now.month - 1) // 3 * 3 + 1, 1)
    if period == "year":
        return datetime(now.year, 1, 1)
    return None


def _average(values: List[float]) -> float:
    return round(sum(values) / len(values), 2) if values else 0.0


def _rate(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


def _ranked(cases: List[Case], key) -> List[Dict[str, Any]]:
    groups: Dict[str, List[Case]] = defaultdict(list)
    for case in cases:
        label = key(case)
        if label:
            groups[label].append(case)
    ranked = [
        {
            "name": label,
            "successRate": _rate(sum(1 for c in members if c.outcome in SUCCESSFUL), len(members)),
            "caseCount": len(members),
        }
        for label, members in groups.items()
    ]
    ranked.sort(key=lambda r: (-r["successRate"], -r["caseCount"], r["name"]))
    return ranked[:5]


def _monthly_trends(cases: List[Case]) -> List[Dict[str, Any]]:
    months: Dict[str, List[Case]] = defaultdict(list)
    for case in cases:
        if case.resolved_at:
            months[case.resolved_at.strftime("%Y-%m")].append(case)
    trends = [
        {
            "month": month,
            "successRate": _rate(sum(1 for c in members if c.outcome in SUCCESSFUL), len(members)),
            "casesResolved": len(members),
            "averageRecovery": _average(
                [c.recovery_percentage for c in members if c.recovery_percentage is not None]
            ),
        }
        for month, members in months.items()
    ]
    trends.sort(key=lambda t: t["month"], reverse=True)
    return trends[:12]


def outcome_analytics(
    db: Session,
    user_id: UUID,
    period: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Success metrics over the user's resolved cases, optionally limited to a period."""
    if period is not None and period not in PERIODS:
        raise ValidationFailedError(f"Invalid period: {period}")
    now = now or datetime.utcnow()

    query = db.query(Case).filter(Case.user_id == user_id, Case.status == CaseStatus.resolved.value)
    start = _period_start(period, now)
    if start is not None:
        query = query.filter(Case.resolved_at >= start)
    cases = query.all()

    def count(outcome: str) -> int:
        return sum(1 for c in cases if c.outcome == outcome)

    recommended = [c.would_recommend for c in cases if c.would_recommend is not None]
    return {
        "totalCases": len(cases),
        "successfulCases": count(CaseOutcome.successful.value),
        "partialSuccessCases": count(CaseOutcome.partial_success.value),
        "unsuccessfulCases": count(CaseOutcome.unsuccessful.value),
        "settledCases": count(CaseOutcome.settled.value),
        "successRate": _rate(sum(1 for c in cases if c.outcome in SUCCESSFUL), len(cases)),
        "averageRecoveryRate": _average(
            [c.recovery_percentage for c in cases if c.recovery_percentage is not None]
        ),
        "averageDaysToResolution": _average(
            [c.days_to_resolution for c in cases if c.days_to_resolution is not None]
        ),
        "averageClientSatisfaction": _average(
            [c.client_satisfaction_score for c in cases if c.client_satisfaction_score]
        ),
        "averageStrategyEffectiveness": _average(
            [c.strategy_effectiveness for c in cases if c.strategy_effectiveness]
        ),
        "totalAmountClaimed": round(sum(float(c.amount or 0) for c in cases), 2),
        "totalAmountRecovered": round(sum(float(c.amount_recovered or 0) for c in cases), 2),
        "recommendationRate": _rate(sum(1 for r in recommended if r), len(recommended)),
        "topStrategies": _ranked(cases, lambda c: c.resolution_method),
        "topIssueTypes": _ranked(cases, lambda c: c.issue_type),
        "monthlyTrends": _monthly_trends(cases),
    }
