import uuid

import pytest

from resolve.db.database import SessionLocal
from resolve.db.models import GeneratedDocument, Notification, WorkflowTask
from resolve.services import case_service, document_workflow_service
from resolve.services.storage_service import storage_service
from resolve.utils.exceptions import ConflictError, InvalidTransitionError, UpstreamUnavailableError


def _approve_and_send(db, document):
    document_workflow_service.update_document(db, document.id, "admin", status="approved")
    return document_workflow_service.send_document(db, document.id, "admin")


def test_progress_moves_0_30_70_and_second_send_is_noop(db, case, fake_ai):
    assert case.progress == 0

    document = document_workflow_service.generate_document(db, case)
    db.refresh(case)
    assert case.progress == 30
    assert document.status == "draft"

    _approve_and_send(db, document)
    db.refresh(case)
    assert case.progress == 70

    document_workflow_service.send_document(db, document.id, "admin")
    db.refresh(case)
    assert case.progress == 70
    assert db.query(Notification).filter(Notification.related_id == document.id).count() == 1
    assert db.query(WorkflowTask).filter(WorkflowTask.dedupe_key == f"document:{document.id}:sent").count() == 1


def test_generated_pdf_is_stored(db, case, fake_ai):
    document = document_workflow_service.generate_document(db, case, "demand_letter")

    assert document.artifact_key.startswith(f"generated/{case.id}/")
    assert storage_service.fetch(document.artifact_key).startswith(b"%PDF")
    assert document.content_text == "Draft demand_letter"


def test_ai_failure_leaves_case_untouched(db, case):
    with pytest.raises(UpstreamUnavailableError):
        document_workflow_service.generate_document(db, case)

    db.refresh(case)
    assert case.progress == 0
    assert db.query(GeneratedDocument).count() == 0


def test_only_approved_documents_can_be_sent(db, case, fake_ai):
    document = document_workflow_service.generate_document(db, case)

    with pytest.raises(InvalidTransitionError):
        document_workflow_service.send_document(db, document.id, "admin")

    db.refresh(document)
    assert document.status == "draft"


def test_send_with_edits_on_unapproved_document_writes_nothing(db, case, fake_ai):
    document = document_workflow_service.generate_document(db, case)
    original_key = document.artifact_key

    with pytest.raises(InvalidTransitionError):
        document_workflow_service.update_document(
            db, document.id, "admin", status="sent", title="Edited title", content_text="New body"
        )

    db.refresh(document)
    assert document.status == "draft"
    assert document.title != "Edited title"
    assert document.artifact_key == original_key
    assert db.query(Notification).filter(Notification.related_id == document.id).count() == 0


def test_edit_and_send_apply_together(db, case, fake_ai):
    document = document_workflow_service.generate_document(db, case)
    document_workflow_service.update_document(db, document.id, "admin", status="approved")

    sent = document_workflow_service.update_document(db, document.id, "admin", status="sent", title="Final pack")

    assert sent.status == "sent"
    assert sent.title == "Final pack"
    assert db.query(Notification).filter(Notification.related_id == document.id).one().message.startswith(
        "Final pack"
    )


def test_concurrent_send_loses_with_conflict(db, case, fake_ai):
    document = document_workflow_service.generate_document(db, case)
    document_workflow_service.update_document(db, document.id, "admin", status="approved")

    other = SessionLocal()
    try:
        stale = other.get(GeneratedDocument, document.id)
        assert stale.status == "approved"

        document_workflow_service.send_document(db, document.id, "admin-1")

        with pytest.raises(ConflictError):
            document_workflow_service.send_document(other, document.id, "admin-2")
    finally:
        other.close()

    db.refresh(document)
    assert document.sent_by == "admin-1"
    assert db.query(WorkflowTask).filter(WorkflowTask.dedupe_key == f"document:{document.id}:sent").count() == 1
    assert db.query(Notification).filter(Notification.related_id == document.id).count() == 1


def test_sent_document_cannot_return_to_review(db, case, fake_ai):
    document = document_workflow_service.generate_document(db, case)
    _approve_and_send(db, document)

    for status in ("draft", "pending_review", "approved", "rejected"):
        with pytest.raises(InvalidTransitionError):
            document_workflow_service.update_document(db, document.id, "admin", status=status)
        db.refresh(document)
        assert document.status == "sent"


def test_content_edit_after_send_rerenders_and_updates_case_pack(db, case, fake_ai):
    document = document_workflow_service.generate_document(db, case)
    _approve_and_send(db, document)
    old_key = document.artifact_key

    edited = document_workflow_service.update_document(
        db, document.id, "admin", ai_content={"executiveSummary": "Revised"}, content_text="Revised"
    )

    assert edited.status == "sent"
    assert edited.artifact_key != old_key
    db.refresh(case)
    assert case.strategy_pack == {"executiveSummary": "Revised"}


def test_strategy_pack_reaches_case_only_when_sent(db, case, fake_ai):
    document = document_workflow_service.generate_document(db, case)
    db.refresh(case)
    assert case.strategy_pack is None
    assert case.ai_analysis["caseType"] == "Unpaid progress claim"

    _approve_and_send(db, document)
    db.refresh(case)
    assert case.strategy_pack["executiveSummary"].startswith("Recover")


def test_resolved_case_progress_never_drops(db, case, user, fake_ai):
    document = document_workflow_service.generate_document(db, case)
    case_service.update_case(db, case.id, user.id, {"status": "resolved"})
    db.refresh(case)
    assert case.progress == 100

    _approve_and_send(db, document)
    db.refresh(case)
    assert case.progress == 100


def test_owner_sees_generated_document_only_after_send(client, db, case, user_headers, admin_headers, fake_ai):
    resp = client.post(
        f"/api/cases/{case.id}/generate-document",
        json={"documentType": "demand_letter"},
        headers=user_headers,
    )
    assert resp.status_code == 201
    doc_id = resp.json()["data"]["id"]
    assert resp.json()["data"]["status"] == "draft"

    listing = client.get(f"/api/cases/{case.id}/documents", headers=user_headers).json()["data"]
    assert listing["generated"] == []
    assert client.get(f"/api/generated-documents/{doc_id}/download", headers=user_headers).status_code == 404

    pending = client.get("/api/admin/documents/pending", headers=admin_headers).json()["data"]
    assert [d["id"] for d in pending] == [doc_id]

    resp = client.put(f"/api/admin/documents/{doc_id}", json={"status": "approved"}, headers=admin_headers)
    assert resp.status_code == 200
    resp = client.post(f"/api/admin/documents/{doc_id}/send", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "sent"

    listing = client.get(f"/api/cases/{case.id}/documents", headers=user_headers).json()["data"]
    assert [d["id"] for d in listing["generated"]] == [doc_id]
    download = client.get(f"/api/generated-documents/{doc_id}/download", headers=user_headers)
    assert download.status_code == 200
    assert download.content.startswith(b"%PDF")


def test_generate_for_someone_elses_case_is_not_found(client, case, other_headers, fake_ai):
    resp = client.post(f"/api/cases/{case.id}/generate-document", json={}, headers=other_headers)
    assert resp.status_code == 404


def test_upload_download_and_delete(client, db, case, user_headers, other_headers):
    resp = client.post(
        "/api/documents/upload",
        files={"file": ("invoice 42.pdf", b"%PDF-1.4 invoice", "application/pdf")},
        data={"caseId": str(case.id), "category": "invoice"},
        headers=user_headers,
    )
    assert resp.status_code == 201
    doc = resp.json()["data"]
    assert doc["originalName"] == "invoice 42.pdf"
    assert doc["category"] == "invoice"
    assert doc["fileSize"] == len(b"%PDF-1.4 invoice")

    download = client.get(f"/api/documents/{doc['id']}/download", headers=user_headers)
    assert download.content == b"%PDF-1.4 invoice"
    assert client.get(f"/api/documents/{doc['id']}/download", headers=other_headers).status_code == 404

    listing = client.get(f"/api/cases/{case.id}/documents", headers=user_headers).json()["data"]
    assert [u["id"] for u in listing["uploads"]] == [doc["id"]]

    assert client.delete(f"/api/documents/{doc['id']}", headers=user_headers).status_code == 200
    assert client.get(f"/api/documents/{doc['id']}", headers=user_headers).status_code == 404


def test_upload_requires_a_parent(client, user_headers):
    resp = client.post(
        "/api/documents/upload",
        files={"file": ("note.txt", b"hello", "text/plain")},
        headers=user_headers,
    )
    assert resp.status_code == 422


def test_unknown_document_is_not_found(client, admin_headers):
    assert client.get(f"/api/admin/documents/{uuid.uuid4()}", headers=admin_headers).status_code == 404
