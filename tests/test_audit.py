"""
Audit log tests.

Covers:
  - write_audit action validation
  - immutability of stored rows (ORM update/delete blocked)
  - list filters, pagination, record history
  - best-effort semantics: a failed audit write never undoes the mutation
  - log formatters render the record context carried by audit failures
"""

import json
import logging

import pytest
from flask import g
from sqlalchemy.exc import OperationalError

from solarhub.middleware.logging_config import ActorContextFilter, JSONFormatter, ReadableFormatter
from solarhub.models import db
from solarhub.models.audit import AuditLog, ImmutableAuditLogError, write_audit
from solarhub.models.directory import Partner
from solarhub.services import audit_service


def _log(table="partners", record_id=1, action="UPDATE", actor="staff-1", **kw):
    entry = audit_service.log_action(table, record_id, action, actor_user_id=actor, **kw)
    assert entry is not None
    return entry


class TestWriteAudit:

    def test_unknown_action_rejected(self):
        with pytest.raises(ValueError):
            write_audit(table_name="partners", record_id=1, action="TRUNCATE")

    def test_record_id_stored_as_string(self):
        entry = _log(record_id=42)
        assert entry.record_id == "42"
        assert entry.created_at is not None


class TestImmutability:

    def test_update_blocked(self):
        entry = _log()
        entry.reason = "tampered"
        with pytest.raises(ImmutableAuditLogError):
            db.session.commit()
        db.session.rollback()
        assert db.session.get(AuditLog, entry.id).reason is None

    def test_delete_blocked(self):
        entry = _log()
        db.session.delete(entry)
        with pytest.raises(ImmutableAuditLogError):
            db.session.commit()
        db.session.rollback()
        assert AuditLog.query.count() == 1


class TestAuditQueries:

    def _seed(self):
        _log(record_id=1, action="CREATE", actor="a")
        _log(record_id=1, action="UPDATE", actor="a")
        _log(record_id=2, action="DELETE", actor="b", reason="dup")
        _log(table="projects", record_id=1, action="CREATE", actor="b")

    def test_filters(self, client):
        self._seed()
        assert client.get("/api/v1/audit").get_json()["total"] == 4
        assert client.get("/api/v1/audit?table_name=partners").get_json()["total"] == 3
        assert client.get("/api/v1/audit?table_name=partners&record_id=1").get_json()["total"] == 2
        assert client.get("/api/v1/audit?action=delete").get_json()["total"] == 1
        assert client.get("/api/v1/audit?actor=b").get_json()["total"] == 2

    def test_unknown_action_filter(self, client):
        res = client.get("/api/v1/audit?action=EXPLODE")
        assert res.status_code == 422

    def test_pagination_newest_first(self, client):
        self._seed()
        body = client.get("/api/v1/audit?per_page=3&page=1").get_json()
        assert body["pages"] == 2
        assert len(body["audit_logs"]) == 3
        assert body["audit_logs"][0]["table_name"] == "projects"

        body = client.get("/api/v1/audit?per_page=3&page=2").get_json()
        assert len(body["audit_logs"]) == 1
        assert body["audit_logs"][0]["action"] == "CREATE"

    def test_per_page_capped(self, client):
        body = client.get("/api/v1/audit?per_page=5000").get_json()
        assert body["per_page"] == audit_service.MAX_PER_PAGE

    def test_single_entry(self, client):
        entry = _log(reason="note")
        body = client.get(f"/api/v1/audit/{entry.id}").get_json()
        assert body["reason"] == "note"
        assert client.get("/api/v1/audit/9999").status_code == 404

    def test_record_history_oldest_first(self, client):
        self._seed()
        body = client.get("/api/v1/audit/records/partners/1").get_json()
        assert [e["action"] for e in body["entries"]] == ["CREATE", "UPDATE"]


class TestBestEffort:

    def test_failed_write_returns_none(self, monkeypatch, caplog):
        def _boom(**kwargs):
            raise OperationalError("INSERT", {}, Exception("disk full"))

        monkeypatch.setattr(audit_service, "write_audit", _boom)
        with caplog.at_level("WARNING", logger="solarhub.services.audit_service"):
            assert audit_service.log_action("partners", 1, "UPDATE") is None
        assert "Audit write failed" in caplog.text

    def test_mutation_survives_audit_failure(self, client, monkeypatch):
        p = Partner(name="電機技師", partner_type="electrical")
        db.session.add(p)
        db.session.commit()

        def _boom(**kwargs):
            raise OperationalError("INSERT", {}, Exception("disk full"))

        monkeypatch.setattr(audit_service, "write_audit", _boom)
        res = client.post(f"/api/v1/records/partners/{p.id}/delete", json={"reason": "停止合作"})
        assert res.status_code == 200
        assert db.session.get(Partner, p.id).is_deleted is True
        assert AuditLog.query.count() == 0


def _record(**extra):
    return logging.makeLogRecord({
        "name": "solarhub.services.audit_service",
        "levelname": "WARNING",
        "levelno": logging.WARNING,
        "msg": "Audit write failed",
        **extra,
    })


class TestLogRecordContext:

    def test_json_groups_record_fields(self):
        rec = _record(table_name="partners", record_id="3", action="DELETE", actor_user_id="u-1")
        entry = json.loads(JSONFormatter().format(rec))
        assert entry["record"] == {"table": "partners", "id": "3", "action": "DELETE"}
        assert entry["actor"] == "u-1"

    def test_json_without_context(self):
        entry = json.loads(JSONFormatter().format(_record()))
        assert "record" not in entry and "actor" not in entry

    def test_readable_suffix(self):
        rec = _record(table_name="partners", record_id="3", action="DELETE", actor_user_id="u-1")
        assert ReadableFormatter().format(rec).endswith("Audit write failed [partners#3 DELETE by u-1]")

    def test_filter_takes_actor_from_request(self, app):
        rec = _record()
        with app.test_request_context("/"):
            g.actor_user_id = "staff-7"
            g.request_id = "req-1"
            assert ActorContextFilter().filter(rec) is True
        assert rec.actor_user_id == "staff-7"
        assert rec.request_id == "req-1"

    def test_failed_write_carries_context(self, monkeypatch, caplog):
        def _boom(**kwargs):
            raise OperationalError("INSERT", {}, Exception("disk full"))

        monkeypatch.setattr(audit_service, "write_audit", _boom)
        with caplog.at_level("WARNING", logger="solarhub.services.audit_service"):
            audit_service.log_action("partners", 5, "DELETE", actor_user_id="staff-1")
        [rec] = [r for r in caplog.records if r.name == "solarhub.services.audit_service"]
        assert (rec.table_name, rec.record_id, rec.action, rec.actor_user_id) == ("partners", "5", "DELETE", "staff-1")
