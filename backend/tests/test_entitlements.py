from datetime import datetime, timedelta

import pytest

from resolve.db.models import Case, IdempotencyRecord, Subscription
from resolve.services import case_service, entitlement_service, idempotency_service
from resolve.utils.exceptions import UsageLimitExceededError


def _subscribe(db, user, status="active", expires_at=None):
    sub = Subscription(user_id=user.id, plan_type="monthly", status=status, expires_at=expires_at)
    db.add(sub)
    db.commit()
    return sub


def test_free_tier_allows_two_then_blocks(db, user):
    first = entitlement_service.can_create(db, user.id, "case")
    assert (first.allowed, first.remaining, first.reason) == (True, 2, "free_tier")

    case_service.create_case(db, user, {"title": "One"})
    case_service.create_case(db, user, {"title": "Two"})

    gate = entitlement_service.can_create(db, user.id, "case")
    assert (gate.allowed, gate.remaining, gate.reason) == (False, 0, "free_tier_limit_reached")
    with pytest.raises(UsageLimitExceededError):
        case_service.create_case(db, user, {"title": "Three"})


def test_active_subscription_is_unlimited(db, user):
    _subscribe(db, user, expires_at=datetime.utcnow() + timedelta(days=30))
    for i in range(3):
        case_service.create_case(db, user, {"title": f"Case {i}"})

    gate = entitlement_service.can_create(db, user.id, "case")
    assert (gate.allowed, gate.remaining, gate.reason) == (True, -1, "subscription_active")


def test_expired_subscription_falls_back_to_free_tier(db, user):
    _subscribe(db, user, expires_at=datetime.utcnow() - timedelta(days=1))
    case_service.create_case(db, user, {"title": "One"})
    case_service.create_case(db, user, {"title": "Two"})

    assert entitlement_service.can_create(db, user.id, "case").allowed is False


def test_cancelled_subscription_does_not_count(db, user):
    _subscribe(db, user, status="cancelled")
    assert entitlement_service.has_active_subscription(db, user.id) is False


def test_cases_and_contracts_are_counted_separately(db, user):
    case_service.create_case(db, user, {"title": "One"})
    case_service.create_case(db, user, {"title": "Two"})

    gate = entitlement_service.can_create(db, user.id, "contract")
    assert gate.allowed is True
    assert gate.remaining == 2


def test_insert_recheck_rolls_back_a_racing_create(db, user, monkeypatch):
    case_service.create_case(db, user, {"title": "One"})
    case_service.create_case(db, user, {"title": "Two"})

    # A second request that passed the gate before the first one committed.
    monkeypatch.setattr(entitlement_service, "enforce_can_create", lambda *a, **kw: None)
    with pytest.raises(UsageLimitExceededError):
        case_service.create_case(db, user, {"title": "Three"})

    assert db.query(Case).filter(Case.user_id == user.id).count() == 2


def test_third_case_over_api_returns_upgrade_prompt(client, user_headers):
    for title in ("One", "Two"):
        assert client.post("/api/cases", json={"title": title}, headers=user_headers).status_code == 201

    resp = client.post("/api/cases", json={"title": "Three"}, headers=user_headers)
    assert resp.status_code == 402
    detail = resp.json()["detail"]
    assert detail["code"] == "usage_limit_exceeded"
    assert detail["entityType"] == "case"
    assert detail["limit"] == 2
    assert detail["upgradeUrl"].endswith("/subscription")


def test_idempotency_key_replays_the_first_response(client, db, user, user_headers):
    headers = dict(user_headers, **{"Idempotency-Key": "create-case-1"})
    first = client.post("/api/cases", json={"title": "Once"}, headers=headers)
    second = client.post("/api/cases", json={"title": "Once"}, headers=headers)

    assert first.status_code == second.status_code == 201
    assert first.json()["data"]["id"] == second.json()["data"]["id"]
    assert db.query(Case).filter(Case.user_id == user.id).count() == 1


def test_idempotency_key_reused_for_other_request_conflicts(client, db, user, user_headers):
    headers = dict(user_headers, **{"Idempotency-Key": "create-1"})
    client.post("/api/cases", json={"title": "Once"}, headers=headers)

    other_body = client.post("/api/cases", json={"title": "Different"}, headers=headers)
    other_endpoint = client.post("/api/contracts", json={"title": "Once"}, headers=headers)

    assert other_body.status_code == 409
    assert other_endpoint.status_code == 409
    assert db.query(Case).filter(Case.user_id == user.id).count() == 1


def test_expired_idempotency_key_can_be_reused(client, db, user, user_headers):
    headers = dict(user_headers, **{"Idempotency-Key": "create-2"})
    client.post("/api/cases", json={"title": "Once"}, headers=headers)
    db.query(IdempotencyRecord).update({"expires_at": datetime.utcnow() - timedelta(minutes=1)})
    db.commit()

    again = client.post("/api/cases", json={"title": "Twice"}, headers=headers)

    assert again.status_code == 201
    assert again.json()["data"]["title"] == "Twice"
    assert db.query(IdempotencyRecord).count() == 1
    assert idempotency_service.purge_expired(db) == 0


def test_subscription_status_endpoint(client, db, user, user_headers):
    case_service.create_case(db, user, {"title": "One"})

    data = client.get("/api/subscription/status", headers=user_headers).json()["data"]
    assert data["planType"] == "free"
    assert data["isActive"] is False
    assert data["canCreateCases"] is True
    assert data["casesRemaining"] == 1
    assert data["casesUsed"] == 1
    assert data["contractsRemaining"] == 2
