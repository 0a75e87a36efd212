import uuid

from conftest import make_token
from resolve.db.models import Case


def test_create_and_read_case(client, user_headers):
    resp = client.post(
        "/api/cases",
        json={"title": "Unpaid deck", "issueType": "unpaid_invoice", "amount": 8200, "priority": "high"},
        headers=user_headers,
    )
    assert resp.status_code == 201
    case = resp.json()["data"]
    assert case["progress"] == 0
    assert case["status"] == "active"
    assert case["caseNumber"].startswith("CASE-")

    fetched = client.get(f"/api/cases/{case['id']}", headers=user_headers).json()["data"]
    assert fetched["title"] == "Unpaid deck"
    assert fetched["priority"] == "high"


def test_progress_cannot_be_set_by_client(client, case, user_headers):
    resp = client.put(f"/api/cases/{case.id}", json={"progress": 90}, headers=user_headers)
    assert resp.status_code == 422


def test_resolving_sets_progress_to_complete(client, db, case, user_headers):
    resp = client.put(f"/api/cases/{case.id}", json={"status": "resolved"}, headers=user_headers)

    assert resp.status_code == 200
    assert resp.json()["data"]["progress"] == 100
    db.refresh(case)
    assert case.progress == 100


def test_other_users_case_is_not_found(client, case, other_headers):
    assert client.get(f"/api/cases/{case.id}", headers=other_headers).status_code == 404
    assert client.put(f"/api/cases/{case.id}", json={"title": "Mine now"}, headers=other_headers).status_code == 404


def test_list_only_returns_own_cases(client, db, case, user_headers, other_headers):
    client.post("/api/cases", json={"title": "Bob's case"}, headers=other_headers)

    mine = client.get("/api/cases", headers=user_headers).json()["data"]
    assert [c["id"] for c in mine] == [str(case.id)]
    assert db.query(Case).count() == 2


def test_missing_token_is_rejected(client):
    assert client.get("/api/cases").status_code in (401, 403)


def test_bad_token_is_rejected(client):
    resp = client.get("/api/cases", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


def test_me_provisions_user_from_token(client):
    user_id = uuid.uuid4()
    resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {make_token(user_id, 'new@example.com')}"})

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["id"] == str(user_id)
    assert data["email"] == "new@example.com"
    assert data["fullName"] == "Jane Smith"
    assert data["role"] == "user"


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}
    ready = client.get("/api/health/ready").json()
    assert ready["checks"]["database"]["status"] == "ok"
    assert ready["checks"]["ai"]["status"] == "disabled"


def test_correlation_id_is_echoed(client):
    resp = client.get("/health", headers={"X-Correlation-ID": "abc-123"})
    assert resp.headers["X-Correlation-ID"] == "abc-123"
