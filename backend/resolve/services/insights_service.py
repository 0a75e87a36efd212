"""
Dashboard insights feed.

Built from the same deadline and next-action candidates the notification
generator uses, plus the stored AI case analysis and a fixed set of legal
tips. Nothing is persisted here except the overdue status marks that the
candidate scan applies to timeline entries.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from resolve.db.models import Case, CaseStatus, NotificationPriority, User
from resolve.services import notification_service
from resolve.services.notification_service import PRIORITY_RANK, Candidate

URGENT_LIMIT = 3
CASE_ANALYSIS_LIMIT = 2
TIPS_LIMIT = 3
ACTION_LIMIT = 4

URGENT_PRIORITIES = (NotificationPriority.critical.value, NotificationPriority.high.value)

LEGAL_TIPS: List[Dict[str, Any]] = [
    {
        "id": "tip-document-everything",
        "type": "legal_tip",
        "title": "Document Everything",
        "content": "Keep variations, site instructions and delivery dockets in writing. "
        "Contemporaneous records carry the most weight in adjudication.",
        "priority": NotificationPriority.medium.value,
        "category": "Evidence",
        "actionable": False,
        "relatedCaseId": None,
    },
    {
        "id": "tip-sopa-timing",
        "type": "legal_tip",
        "title": "SOPA Notice Timing",
        "content": "Payment claims under Security of Payment legislation have strict "
        "service windows. A late claim can lose the statutory right to adjudication.",
        "priority": NotificationPriority.high.value,
        "category": "Security of Payment",
        "actionable": True,
        "relatedCaseId": None,
    },
    {
        "id": "tip-retention-release",
        "type": "legal_tip",
        "title": "Retention Release",
        "content": "Diary the practical completion and defects liability dates so "
        "retention can be claimed back as soon as it falls due.",
        "priority": NotificationPriority.medium.value,
        "category": "Retention",
        "actionable": True,
        "relatedCaseId": None,
    },
]

STRENGTH_PRIORITY = {
    "weak": NotificationPriority.high.value,
    "moderate": NotificationPriority.medium.value,
    "strong": NotificationPriority.low.value,
}


def _from_candidate(candidate: Candidate, kind: str) -> Dict[str, Any]:
    case_id = candidate.related_id if candidate.related_type == "case" else None
    return {
        "id": f"{candidate.type}-{candidate.related_id}",
        "type": kind,
        "title": candidate.title,
        "content": candidate.message,
        "priority": candidate.priority,
        "category": candidate.type,
        "actionable": True,
        "relatedCaseId": str(case_id) if case_id else None,
        "dueDate": candidate.due_date.isoformat() if candidate.due_date else None,
        "actionUrl": candidate.action_url,
    }


def _by_urgency(candidates: List[Candidate]) -> List[Candidate]:
    return sorted(
        candidates,
        key=lambda c: (-PRIORITY_RANK.get(c.priority, 1), c.due_date is None, c.due_date or datetime.max),
    )


def _case_analysis(cases: List[Case]) -> List[Dict[str, Any]]:
    out = []
    for case in cases:
        analysis = case.ai_analysis or {}
        strength = analysis.get("strengthOfCase")
        if not strength:
            continue
        risk = analysis.get("riskLevel", "medium")
        issues = analysis.get("keyIssues") or []
        summary = f"Assessed as a {strength} case with {risk} risk."
        if issues:
            summary += f" Key issue: {issues[0]}."
        out.append(
            {
                "id": f"analysis-{case.id}",
                "type": "case_analysis",
                "title": f"{case.title} ({case.progress}% complete)",
                "content": summary,
                "priority": STRENGTH_PRIORITY.get(strength, NotificationPriority.medium.value),
                "category": case.issue_type or "general",
                "actionable": bool(analysis.get("recommendedActions")),
                "relatedCaseId": str(case.id),
            }
        )
    out.sort(key=lambda i: -PRIORITY_RANK.get(i["priority"], 1))
    return out[:CASE_ANALYSIS_LIMIT]


def _missing_next_actions(cases: List[Case]) -> List[Dict[str, Any]]:
    return [
        {
            "id": f"plan-{case.id}",
            "type": "action_item",
            "title": "Plan the next step",
            "content": f'Case "{case.title}" has no next action set.',
            "priority": NotificationPriority.low.value,
            "category": "next_action",
            "actionable": True,
            "relatedCaseId": str(case.id),
            "dueDate": None,
            "actionUrl": f"/cases/{case.id}",
        }
        for case in cases
        if not case.next_action
    ]


def dashboard_insights(db: Session, user: User, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or datetime.utcnow()
    candidates = _by_urgency(notification_service.collect_candidates(db, user, now))
    db.commit()

    urgent = [c for c in candidates if c.priority in URGENT_PRIORITIES][:URGENT_LIMIT]
    rest = [c for c in candidates if c not in urgent]

    active = (
        db.query(Case)
        .filter(Case.user_id == user.id, Case.status == CaseStatus.active.value)
        .order_by(Case.created_at.desc())
        .all()
    )
    actions = [_from_candidate(c, "action_item") for c in rest] + _missing_next_actions(active)

    return {
        "urgentAlerts": [_from_candidate(c, "urgent_alert") for c in urgent],
        "caseAnalysis": _case_analysis(active),
        "legalTips": LEGAL_TIPS[:TIPS_LIMIT],
        "actionItems": actions[:ACTION_LIMIT],
        "generatedAt": now.isoformat(),
    }
