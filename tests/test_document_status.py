"""
Derived document status tests.

Covers:
  - derive_document_status truth table and malformed inputs
  - Document.derived_status accessor (never a column)
  - Document API exposes derived_status and filters on it
"""

from datetime import date

import pytest

from solarhub.models import db
from solarhub.models.document import Document
from solarhub.services.document_status import (
    DocumentStatus,
    derive_document_status,
    parse_status,
)


class TestDeriveDocumentStatus:

    @pytest.mark.parametrize("submitted", [None, date(2024, 1, 5), "2024-01-05"])
    def test_issued_means_obtained_regardless_of_submitted(self, submitted):
        assert derive_document_status(submitted, date(2024, 2, 1)) is DocumentStatus.OBTAINED

    def test_submitted_only_is_in_progress(self):
        assert derive_document_status(date(2024, 1, 5), None) is DocumentStatus.IN_PROGRESS

    def test_no_dates_is_not_started(self):
        assert derive_document_status(None, None) is DocumentStatus.NOT_STARTED
        assert derive_document_status() is DocumentStatus.NOT_STARTED

    def test_malformed_dates_count_as_absent(self):
        assert derive_document_status("not-a-date", "") is DocumentStatus.NOT_STARTED
        assert derive_document_status("2024/03/01", "garbage") is DocumentStatus.IN_PROGRESS

    def test_labels(self):
        assert DocumentStatus.NOT_STARTED.value == "未開始"
        assert DocumentStatus.IN_PROGRESS.value == "已開始"
        assert DocumentStatus.OBTAINED.value == "已取得"
        assert DocumentStatus.OBTAINED.label_en == "obtained"

    def test_parse_status_accepts_label_and_name(self):
        assert parse_status("已取得") is DocumentStatus.OBTAINED
        assert parse_status("in progress") is DocumentStatus.IN_PROGRESS
        assert parse_status("NOT_STARTED") is DocumentStatus.NOT_STARTED
        with pytest.raises(ValueError):
            parse_status("done")


class TestDocumentModel:

    def test_derived_status_is_not_a_column(self):
        assert "derived_status" not in Document.__table__.columns

    def test_status_follows_date_edits(self, project):
        doc = Document(project_id=project.id, doc_type="同意備案")
        db.session.add(doc)
        db.session.commit()
        assert doc.derived_status is DocumentStatus.NOT_STARTED

        doc.submitted_at = date(2024, 3, 1)
        assert doc.derived_status is DocumentStatus.IN_PROGRESS

        doc.issued_at = date(2024, 4, 1)
        assert doc.derived_status is DocumentStatus.OBTAINED

        doc.issued_at = None
        assert doc.derived_status is DocumentStatus.IN_PROGRESS


class TestDocumentAPI:

    def _create(self, client, project, **kw):
        body = {"project_id": project.id, "doc_type": "台電審查意見書", **kw}
        res = client.post("/api/v1/documents", json=body)
        assert res.status_code == 201, res.get_json()
        return res.get_json()

    def test_create_exposes_derived_status(self, client, project):
        doc = self._create(client, project, submitted_at="2024-03-01")
        assert doc["derived_status"] == "已開始"

    def test_derived_status_is_ignored_on_input(self, client, project):
        doc = self._create(client, project, derived_status="已取得")
        assert doc["derived_status"] == "未開始"

    def test_update_dates_changes_status(self, client, project):
        doc = self._create(client, project)
        res = client.put(f"/api/v1/documents/{doc['id']}", json={"issued_at": "2024-05-02"})
        assert res.status_code == 200
        assert res.get_json()["derived_status"] == "已取得"

    def test_invalid_date_rejected(self, client, project):
        res = client.post("/api/v1/documents", json={
            "project_id": project.id, "doc_type": "X", "issued_at": "31/31/2024",
        })
        assert res.status_code == 422
        assert "issued_at" in res.get_json()["details"]

    def test_filter_by_derived_status(self, client, project):
        self._create(client, project)
        self._create(client, project, submitted_at="2024-03-01")
        self._create(client, project, submitted_at="2024-03-01", issued_at="2024-04-01")

        for label, expected in (("未開始", 1), ("已開始", 1), ("obtained", 1)):
            res = client.get(f"/api/v1/documents?derived_status={label}")
            assert res.status_code == 200
            assert res.get_json()["total"] == expected

    def test_filter_unknown_status(self, client, project):
        res = client.get("/api/v1/documents?derived_status=finished")
        assert res.status_code == 422
