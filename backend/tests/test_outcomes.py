import uuid
from datetime import datetime, timedelta

from resolve.db.models import Case, CaseOutcomeHistory, TimelineEntry
from resolve.services import outcome_service

NOW = datetime(2025, 6, 20, 9, 0, 0)


def _resolved_case(db, user, outcome, resolved_at, **fields):
    case = Case(
        user_id=user.id,
        case_number=f"CASE-{uuid.uuid4().hex[:8]}",
        title=fields.pop("title", "Resolved dispute"),
        status="resolved",
        progress=100,
        outcome=outcome,
        resolved_at=resolved_at,
        **fields,
    )
    db.add(case)
    db.commit()
    return case


def test_resolving_outcome_closes_case(client, db, case, user_headers):
    resp = client.put(
        f"/api/cases/{case.id}/outcome",
        json={
            "outcome": "partial_success",
            "amountClaimed": 15000,
            "amountRecovered": 12000,
            "resolutionMethod": "adjudication",
            "outcomeDescription": "Adjudicator awarded most of the claim.",
            "clientSatisfactionScore": 4,
        },
        headers=user_headers,
    )

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "resolved"
    assert data["progress"] == 100
    assert data["outcome"] == "partial_success"
    assert data["recoveryPercentage"] == 80.0
    assert data["resolvedAt"] is not None
    assert data["daysToResolution"] == 0

    milestone = (
        db.query(TimelineEntry)
        .filter(TimelineEntry.case_id == case.id, TimelineEntry.title.like("Outcome recorded%"))
        .one()
    )
    assert milestone.is_completed


def test_ongoing_outcome_reopens_case_and_keeps_progress(client, db, case, user_headers):
    client.put(f"/api/cases/{case.id}/outcome", json={"outcome": "settled"}, headers=user_headers)

    resp = client.put(f"/api/cases/{case.id}/outcome", json={"outcome": "ongoing"}, headers=user_headers)

    data = resp.json()["data"]
    assert data["status"] == "active"
    assert data["progress"] == 100
    assert data["resolvedAt"] is None
    assert data["daysToResolution"] is None


def test_outcome_history_records_each_change(client, db, case, user_headers):
    client.put(f"/api/cases/{case.id}/outcome", json={"outcome": "unsuccessful"}, headers=user_headers)
    client.put(
        f"/api/cases/{case.id}/outcome",
        json={"outcome": "settled", "outcomeDescription": "Settled at mediation"},
        headers=user_headers,
    )

    resp = client.get(f"/api/cases/{case.id}/outcome-history", headers=user_headers)

    history = resp.json()["data"]
    assert [h["newOutcome"] for h in history] == ["unsuccessful", "settled"]
    assert history[0]["previousOutcome"] is None
    assert history[0]["previousStatus"] == "active"
    assert history[1]["previousOutcome"] == "unsuccessful"
    assert history[1]["notes"] == "Settled at mediation"


def test_outcome_rejects_unknown_value_and_bad_scores(client, case, user_headers):
    bad_outcome = client.put(f"/api/cases/{case.id}/outcome", json={"outcome": "won"}, headers=user_headers)
    bad_score = client.put(
        f"/api/cases/{case.id}/outcome",
        json={"outcome": "successful", "clientSatisfactionScore": 9},
        headers=user_headers,
    )

    assert bad_outcome.status_code == 422
    assert bad_score.status_code == 422


def test_outcome_on_another_users_case_is_not_found(client, db, case, other_headers):
    resp = client.put(f"/api/cases/{case.id}/outcome", json={"outcome": "successful"}, headers=other_headers)

    assert resp.status_code == 404
    assert db.query(CaseOutcomeHistory).count() == 0


def test_analytics_summarises_resolved_cases(db, user):
    _resolved_case(db, user, "successful", NOW - timedelta(days=3), amount=10000, amount_recovered=10000,
                   recovery_percentage=100.0, days_to_resolution=20, resolution_method="adjudication",
                   issue_type="unpaid_invoice", would_recommend=True, client_satisfaction_score=5)
    _resolved_case(db, user, "partial_success", NOW - timedelta(days=40), amount=8000, amount_recovered=4000,
                   recovery_percentage=50.0, days_to_resolution=40, resolution_method="adjudication",
                   issue_type="unpaid_invoice", would_recommend=True, client_satisfaction_score=3)
    _resolved_case(db, user, "unsuccessful", NOW - timedelta(days=70), amount=2000,
                   days_to_resolution=60, resolution_method="negotiation",
                   issue_type="defects", would_recommend=False)

    stats = outcome_service.outcome_analytics(db, user.id, now=NOW)

    assert stats["totalCases"] == 3
    assert stats["successRate"] == 66.67
    assert stats["averageRecoveryRate"] == 75.0
    assert stats["averageDaysToResolution"] == 40.0
    assert stats["averageClientSatisfaction"] == 4.0
    assert stats["totalAmountClaimed"] == 20000.0
    assert stats["totalAmountRecovered"] == 14000.0
    assert stats["recommendationRate"] == 66.67
    assert stats["topStrategies"][0] == {"name": "adjudication", "successRate": 100.0, "caseCount": 2}
    assert [t["month"] for t in stats["monthlyTrends"]] == ["2025-06", "2025-05", "2025-04"]


def test_analytics_period_filter_and_ownership(client, db, user, other_user, user_headers):
    _resolved_case(db, user, "successful", NOW - timedelta(days=2))
    _resolved_case(db, user, "settled", NOW - timedelta(days=200))
    _resolved_case(db, other_user, "successful", NOW - timedelta(days=1))

    assert outcome_service.outcome_analytics(db, user.id, period="week", now=NOW)["totalCases"] == 1
    assert outcome_service.outcome_analytics(db, user.id, period="all", now=NOW)["totalCases"] == 2

    resp = client.get("/api/insights/outcomes", params={"period": "fortnight"}, headers=user_headers)
    assert resp.status_code == 422


def test_analytics_with_no_resolved_cases(db, user, case):
    stats = outcome_service.outcome_analytics(db, user.id, now=NOW)

    assert stats["totalCases"] == 0
    assert stats["successRate"] == 0.0
    assert stats["monthlyTrends"] == []
