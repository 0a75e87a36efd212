import pytest

from resolve.db.models import Contract, TimelineEntry
from resolve.services import contract_service
from resolve.utils.exceptions import InvalidTransitionError, NotFoundError, UsageLimitExceededError


def _create(db, user, **data):
    return contract_service.create_contract(db, user, dict({"title": "Kitchen fit-out"}, **data))


def test_create_contract_records_timeline_entry(db, user):
    contract = _create(db, user, client_name="Acme Builders", value=42000)

    assert contract.contract_number.startswith("CONTRACT-")
    assert contract.version_number == 1
    assert contract.status == "draft"
    entry = db.query(TimelineEntry).filter(TimelineEntry.contract_id == contract.id).one()
    assert entry.title == "Contract created"


def test_contract_gate(db, user):
    _create(db, user)
    _create(db, user)

    with pytest.raises(UsageLimitExceededError):
        _create(db, user)
    assert db.query(Contract).count() == 2


def test_new_version_bumps_number_and_resets_status(db, user):
    contract = _create(db, user, status="final")

    revised = contract_service.create_version(db, contract.id, user.id, {"terms": "Net 14", "status": "signed"})

    assert revised.version_number == 2
    assert revised.status == "draft"
    assert revised.terms == "Net 14"
    titles = [e.title for e in db.query(TimelineEntry).filter(TimelineEntry.contract_id == contract.id)]
    assert "Version 2 created" in titles


def test_signed_contract_cannot_change_status(db, user):
    contract = _create(db, user, status="signed")

    with pytest.raises(InvalidTransitionError):
        contract_service.update_contract(db, contract.id, user.id, {"status": "draft"})

    updated = contract_service.update_contract(db, contract.id, user.id, {"client_name": "New Client"})
    assert updated.client_name == "New Client"
    assert updated.status == "signed"


def test_other_user_cannot_read_contract(db, user, other_user):
    contract = _create(db, user)

    with pytest.raises(NotFoundError):
        contract_service.get_contract(db, contract.id, other_user.id)


def test_contract_crud_over_api(client, user_headers):
    resp = client.post(
        "/api/contracts",
        json={"title": "Deck build", "clientName": "Smith Homes", "value": 18500, "startDate": "2025-02-01"},
        headers=user_headers,
    )
    assert resp.status_code == 201
    contract = resp.json()["data"]
    assert contract["clientName"] == "Smith Homes"
    assert contract["startDate"] == "2025-02-01"

    resp = client.put(f"/api/contracts/{contract['id']}", json={"status": "final"}, headers=user_headers)
    assert resp.json()["data"]["status"] == "final"

    resp = client.post(f"/api/contracts/{contract['id']}/versions", json={"terms": "Net 7"}, headers=user_headers)
    assert resp.status_code == 201
    assert resp.json()["data"]["versionNumber"] == 2

    listing = client.get("/api/contracts", headers=user_headers).json()["data"]
    assert [c["id"] for c in listing] == [contract["id"]]

    assert client.delete(f"/api/contracts/{contract['id']}", headers=user_headers).status_code == 200
    assert client.get(f"/api/contracts/{contract['id']}", headers=user_headers).status_code == 404
