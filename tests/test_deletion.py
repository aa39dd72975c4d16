"""
Deletion policy dispatcher tests.

Covers:
  - default policy (soft delete, reason required) when no row exists
  - every deletion mode: soft_delete, archive, hard_delete, disable_only
  - restore / purge permissions and confirmation
  - batch operations (per-item results, one audit row per success)
  - recycle bin listing and retention purge
"""

from datetime import datetime, timedelta, timezone

import pytest

from solarhub.core.exceptions import PolicyViolationError, ValidationError
from solarhub.models import db
from solarhub.models.audit import AuditLog
from solarhub.models.directory import Partner
from solarhub.models.document import Document
from solarhub.services import deletion_service as svc


def _partner(name="結構技師事務所", deleted=False):
    p = Partner(name=name, partner_type="structural")
    if deleted:
        p.soft_delete(actor="staff-1", reason="duplicate")
    db.session.add(p)
    db.session.commit()
    return p


def _audit(table, record_id=None, action=None):
    q = AuditLog.query.filter_by(table_name=table)
    if record_id is not None:
        q = q.filter_by(record_id=str(record_id))
    if action:
        q = q.filter_by(action=action)
    return q.all()


def _set_policy(client, table, admin_headers, **data):
    res = client.put(f"/api/v1/deletion-policies/{table}", json=data, headers=admin_headers)
    assert res.status_code == 200, res.get_json()
    return res.get_json()


class TestPolicies:

    def test_default_policy_when_no_row(self, client):
        body = client.get("/api/v1/deletion-policies/documents").get_json()
        assert body["deletion_mode"] == "soft_delete"
        assert body["require_reason"] is True
        assert body["require_confirmation"] is True
        assert body["allow_auto_purge"] is False
        assert body["is_default"] is True

    def test_list_covers_every_governed_table(self, client):
        policies = client.get("/api/v1/deletion-policies").get_json()["policies"]
        assert {p["table_name"] for p in policies} == {
            "projects", "documents", "investors", "investor_contacts", "partners", "partner_contacts",
        }

    def test_unknown_table(self, client):
        assert client.get("/api/v1/deletion-policies/users").status_code == 422
        res = client.post("/api/v1/records/users/1/delete", json={"reason": "x"})
        assert res.status_code == 422

    def test_upsert_requires_admin(self, client, staff_headers):
        res = client.put("/api/v1/deletion-policies/partners",
                         json={"deletion_mode": "hard_delete"}, headers=staff_headers)
        assert res.status_code == 403

    def test_upsert_validation(self, client, admin_headers):
        res = client.put("/api/v1/deletion-policies/partner_contacts",
                         json={"deletion_mode": "archive", "retention_days": -1}, headers=admin_headers)
        assert res.status_code == 422
        details = res.get_json()["details"]
        assert "deletion_mode" in details and "retention_days" in details

    def test_upsert_keeps_unspecified_fields(self, client, admin_headers):
        body = _set_policy(client, "partners", admin_headers, retention_days=90)
        assert body["retention_days"] == 90
        assert body["deletion_mode"] == "soft_delete"
        assert body["is_default"] is False

    @pytest.mark.parametrize("raw, expected", [
        ("false", False), ("true", True), (False, False), (True, True), ("0", False),
    ])
    def test_upsert_flag_values(self, client, admin_headers, raw, expected):
        body = _set_policy(client, "partners", admin_headers,
                           allow_auto_purge=raw, require_reason=raw)
        assert body["allow_auto_purge"] is expected
        assert body["require_reason"] is expected


class TestSoftDelete:

    def test_reason_required(self, client):
        p = _partner()
        res = client.post(f"/api/v1/records/partners/{p.id}/delete", json={"reason": "   "})
        assert res.status_code == 422
        assert db.session.get(Partner, p.id).is_deleted is False
        assert _audit("partners") == []

    def test_soft_delete_sets_fields_and_audits(self, client, staff_headers):
        p = _partner()
        res = client.post(f"/api/v1/records/partners/{p.id}/delete",
                          json={"reason": "合約終止"}, headers=staff_headers)
        assert res.status_code == 200
        assert res.get_json()["action"] == "DELETE"

        row = db.session.get(Partner, p.id)
        assert row.is_deleted is True
        assert row.deleted_by == "staff-1"
        assert row.delete_reason == "合約終止"

        [entry] = _audit("partners", p.id)
        assert entry.action == "DELETE"
        assert entry.actor_user_id == "staff-1"
        assert entry.old_data["is_deleted"] is False
        assert entry.new_data["is_deleted"] is True

    def test_reason_optional_when_policy_allows(self, client, admin_headers):
        _set_policy(client, "partners", admin_headers, require_reason=False)
        p = _partner()
        res = client.post(f"/api/v1/records/partners/{p.id}/delete", json={})
        assert res.status_code == 200

    def test_double_delete_rejected(self, client):
        p = _partner(deleted=True)
        res = client.post(f"/api/v1/records/partners/{p.id}/delete", json={"reason": "again"})
        assert res.status_code == 422

    def test_missing_record(self, client):
        res = client.post("/api/v1/records/partners/999/delete", json={"reason": "x"})
        assert res.status_code == 404

    def test_document_audit_snapshot_has_no_derived_status(self, client, project):
        doc = Document(project_id=project.id, doc_type="同意備案", submitted_at=datetime(2024, 1, 2).date())
        db.session.add(doc)
        db.session.commit()
        client.post(f"/api/v1/records/documents/{doc.id}/delete", json={"reason": "重複上傳"})
        [entry] = _audit("documents", doc.id)
        assert "derived_status" not in entry.old_data
        assert "derived_status" not in entry.new_data


class TestRestore:

    def test_restore_clears_fields(self, client, staff_headers):
        p = _partner(deleted=True)
        res = client.post(f"/api/v1/records/partners/{p.id}/restore", json={}, headers=staff_headers)
        assert res.status_code == 200

        row = db.session.get(Partner, p.id)
        assert row.is_deleted is False
        assert row.deleted_at is None
        assert row.deleted_by is None
        assert row.delete_reason is None

        entries = _audit("partners", p.id)
        assert [e.action for e in entries] == ["RESTORE"]

    def test_restore_live_record(self, client):
        p = _partner()
        res = client.post(f"/api/v1/records/partners/{p.id}/restore", json={})
        assert res.status_code == 422


class TestOtherModes:

    def test_hard_delete(self, client, admin_headers):
        _set_policy(client, "partners", admin_headers, deletion_mode="hard_delete")
        p = _partner()
        res = client.post(f"/api/v1/records/partners/{p.id}/delete", json={"reason": "建檔錯誤"})
        assert res.status_code == 200
        assert db.session.get(Partner, p.id) is None

        [entry] = _audit("partners", p.id)
        assert entry.action == "DELETE"
        assert entry.old_data["name"] == "結構技師事務所"
        assert entry.new_data is None

    def test_archive_mode(self, client, admin_headers):
        _set_policy(client, "partners", admin_headers, deletion_mode="archive")
        p = _partner()
        res = client.post(f"/api/v1/records/partners/{p.id}/delete", json={"reason": "不再合作"})
        assert res.get_json()["action"] == "ARCHIVE"

        row = db.session.get(Partner, p.id)
        assert row.is_archived is True
        assert row.is_deleted is False
        assert row.archive_reason == "不再合作"

    def test_disable_only(self, client, admin_headers):
        _set_policy(client, "partners", admin_headers, deletion_mode="disable_only")
        p = _partner()
        res = client.post(f"/api/v1/records/partners/{p.id}/delete", json={"reason": "暫停"})
        assert res.get_json()["action"] == "UPDATE"

        row = db.session.get(Partner, p.id)
        assert row.is_active is False
        assert row.is_deleted is False
        assert [e.action for e in _audit("partners", p.id)] == ["UPDATE"]

    def test_explicit_archive_and_unarchive(self, client):
        p = _partner()
        assert client.post(f"/api/v1/records/partners/{p.id}/archive", json={"reason": "x"}).status_code == 200
        assert client.post(f"/api/v1/records/partners/{p.id}/archive", json={}).status_code == 422
        assert client.post(f"/api/v1/records/partners/{p.id}/unarchive", json={}).status_code == 200
        assert [e.action for e in _audit("partners", p.id)] == ["ARCHIVE", "UNARCHIVE"]

    def test_contacts_cannot_be_archived(self, client):
        res = client.post("/api/v1/records/partner_contacts/1/archive", json={})
        assert res.status_code == 409


class TestPurge:

    def test_staff_cannot_purge_by_default(self, client, staff_headers):
        p = _partner(deleted=True)
        res = client.post(f"/api/v1/records/partners/{p.id}/purge",
                          json={"confirm": True}, headers=staff_headers)
        assert res.status_code == 409
        assert db.session.get(Partner, p.id) is not None

    def test_confirmation_required(self, client, admin_headers):
        p = _partner(deleted=True)
        res = client.post(f"/api/v1/records/partners/{p.id}/purge", json={}, headers=admin_headers)
        assert res.status_code == 422
        assert db.session.get(Partner, p.id) is not None

    def test_live_record_cannot_be_purged(self, client, admin_headers):
        p = _partner()
        res = client.post(f"/api/v1/records/partners/{p.id}/purge",
                          json={"confirm": True}, headers=admin_headers)
        assert res.status_code == 409

    def test_admin_purge(self, client, admin_headers):
        p = _partner(deleted=True)
        res = client.post(f"/api/v1/records/partners/{p.id}/purge",
                          json={"confirm": True, "reason": "清理"}, headers=admin_headers)
        assert res.status_code == 200
        assert db.session.get(Partner, p.id) is None
        assert [e.action for e in _audit("partners", p.id)] == ["PURGE"]

    def test_auto_purge_policy_lets_staff_purge(self, client, admin_headers, staff_headers):
        _set_policy(client, "partners", admin_headers, allow_auto_purge=True, require_confirmation=False)
        p = _partner(deleted=True)
        res = client.post(f"/api/v1/records/partners/{p.id}/purge", json={}, headers=staff_headers)
        assert res.status_code == 200

    def test_auto_purge_string_false_keeps_staff_out(self, client, admin_headers, staff_headers):
        _set_policy(client, "partners", admin_headers, allow_auto_purge="false")
        p = _partner(deleted=True)
        res = client.post(f"/api/v1/records/partners/{p.id}/purge",
                          json={"confirm": True}, headers=staff_headers)
        assert res.status_code == 409
        assert db.session.get(Partner, p.id) is not None


class TestBatch:

    def test_batch_delete_partial_failure(self, client):
        p1, p2, p3 = _partner("A"), _partner("B"), _partner("C", deleted=True)
        res = client.post("/api/v1/records/partners/batch-delete", json={
            "record_ids": [p1.id, 9999, p2.id, p3.id], "reason": "整理名單",
        })
        assert res.status_code == 200
        body = res.get_json()
        assert body["succeeded"] == 2
        assert body["failed"] == 2
        assert [r["record_id"] for r in body["results"]] == [p1.id, 9999, p2.id, p3.id]
        assert [r["ok"] for r in body["results"]] == [True, False, True, False]
        assert body["results"][1]["error"]

        assert len(_audit("partners", action="DELETE")) == 2

    def test_batch_delete_without_reason(self, client):
        p = _partner()
        res = client.post("/api/v1/records/partners/batch-delete", json={"record_ids": [p.id]})
        assert res.status_code == 422
        assert _audit("partners") == []

    def test_batch_requires_ids(self, client):
        res = client.post("/api/v1/records/partners/batch-restore", json={"record_ids": []})
        assert res.status_code == 422

    def test_batch_restore(self, client):
        deleted = [_partner(f"D{i}", deleted=True) for i in range(3)]
        live = _partner("L")
        res = client.post("/api/v1/records/partners/batch-restore",
                          json={"record_ids": [d.id for d in deleted] + [live.id]})
        body = res.get_json()
        assert body["succeeded"] == 3
        assert body["failed"] == 1
        assert len(_audit("partners", action="RESTORE")) == 3

    def test_batch_purge_checks_permission_up_front(self, client, staff_headers):
        p = _partner(deleted=True)
        res = client.post("/api/v1/records/partners/batch-purge",
                          json={"record_ids": [p.id], "confirm": True}, headers=staff_headers)
        assert res.status_code == 409

    def test_batch_purge(self, client, admin_headers):
        a, b = _partner("A", deleted=True), _partner("B")
        res = client.post("/api/v1/records/partners/batch-purge",
                          json={"record_ids": [a.id, b.id], "confirm": True}, headers=admin_headers)
        body = res.get_json()
        assert [r["ok"] for r in body["results"]] == [True, False]
        assert len(_audit("partners", action="PURGE")) == 1


class TestRecycleBin:

    def test_lists_soft_deleted_rows(self, client, project):
        _partner("live")
        gone = _partner("gone", deleted=True)
        doc = Document(project_id=project.id, doc_type="X")
        doc.soft_delete(actor="u", reason="r")
        db.session.add(doc)
        db.session.commit()

        body = client.get("/api/v1/recycle-bin").get_json()
        assert body["total"] == 2

        body = client.get("/api/v1/recycle-bin?table=partners").get_json()
        [item] = body["items"]
        assert item["record_id"] == gone.id
        assert item["display_name"] == "gone"
        assert item["retention_days"] == 30
        assert item["purge_after"] is not None

    def test_unknown_table(self, client):
        assert client.get("/api/v1/recycle-bin?table=nope").status_code == 422


class TestPurgeExpired:

    def test_only_expired_rows_on_auto_purge_tables(self, client, admin_headers, project):
        _set_policy(client, "partners", admin_headers, allow_auto_purge=True, retention_days=30)
        now = datetime.now(timezone.utc)

        old = _partner("old", deleted=True)
        old.deleted_at = now - timedelta(days=40)
        recent = _partner("recent", deleted=True)
        recent.deleted_at = now - timedelta(days=5)
        doc = Document(project_id=project.id, doc_type="X")
        doc.soft_delete(actor="u", reason="r")
        doc.deleted_at = now - timedelta(days=400)
        db.session.add(doc)
        db.session.commit()

        purged = svc.purge_expired(now=now)
        assert purged == {"partners": 1}
        assert db.session.get(Partner, old.id) is None
        assert db.session.get(Partner, recent.id) is not None
        assert db.session.get(Document, doc.id) is not None

        [entry] = _audit("partners", old.id, action="PURGE")
        assert entry.actor_user_id == "system"


class TestServiceErrors:

    def test_purge_policy_violation_raised(self):
        p = _partner(deleted=True)
        with pytest.raises(PolicyViolationError):
            svc.purge_record("partners", p.id, admin=False, confirm=True)

    def test_reason_checked_before_lookup(self):
        with pytest.raises(ValidationError):
            svc.delete_record("partners", 12345, reason=None)
