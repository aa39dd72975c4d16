"""
CRUD endpoint tests for projects, investors and partners.

Every create/update must leave exactly one CREATE/UPDATE audit row carrying
the acting user from X-User-Id.
"""

from sqlalchemy.exc import OperationalError

from solarhub.models.audit import AuditLog
from solarhub.services import project_service


def _entries(table, record_id):
    return (
        AuditLog.query
        .filter_by(table_name=table, record_id=str(record_id))
        .order_by(AuditLog.id.asc())
        .all()
    )


class TestProjects:

    def test_create_and_get(self, client, investor, staff_headers):
        res = client.post("/api/v1/projects", json={
            "project_code": "PV-2024-010", "project_name": "台南魚塭案",
            "investor_id": investor.id, "capacity_kwp": "499.5",
        }, headers=staff_headers)
        assert res.status_code == 201
        body = res.get_json()
        assert body["status"] == "開發中"
        assert body["capacity_kwp"] == 499.5
        assert body["overall_progress"] == 0

        [entry] = _entries("projects", body["id"])
        assert entry.action == "CREATE"
        assert entry.actor_user_id == "staff-1"
        assert entry.new_data["project_code"] == "PV-2024-010"

        got = client.get(f"/api/v1/projects/{body['id']}").get_json()
        assert got["project_name"] == "台南魚塭案"

    def test_required_fields(self, client):
        res = client.post("/api/v1/projects", json={"project_name": ""})
        assert res.status_code == 422
        assert set(res.get_json()["details"]) == {"project_code", "project_name"}

    def test_duplicate_code(self, client, project):
        res = client.post("/api/v1/projects", json={"project_code": project.project_code, "project_name": "x"})
        assert res.status_code == 409

    def test_unknown_status(self, client, project):
        res = client.put(f"/api/v1/projects/{project.id}", json={"status": "完工了"})
        assert res.status_code == 422
        assert _entries("projects", project.id) == []

    def test_unknown_investor(self, client):
        res = client.post("/api/v1/projects", json={
            "project_code": "X1", "project_name": "x", "investor_id": 999,
        })
        assert res.status_code == 422

    def test_energy_administration_stage_accepted(self, client):
        res = client.post("/api/v1/projects", json={
            "project_code": "PV-2024-020", "project_name": "彰化屋頂案", "status": "能源署送件",
        })
        assert res.status_code == 201
        assert res.get_json()["status"] == "能源署送件"

    def test_database_error_body(self, client, monkeypatch):
        def _boom(**kwargs):
            raise OperationalError("SELECT", {}, Exception("db down"))
        monkeypatch.setattr(project_service, "list_projects", _boom)

        res = client.get("/api/v1/projects")

        assert res.status_code == 500
        body = res.get_json()
        assert body["error"] == "Database error"
        assert "db down" in body["detail"]

    def test_update_writes_old_and_new(self, client, project, admin_headers):
        res = client.put(f"/api/v1/projects/{project.id}",
                         json={"status": "台電送件", "note": "已送件"}, headers=admin_headers)
        assert res.status_code == 200
        [entry] = _entries("projects", project.id)
        assert entry.action == "UPDATE"
        assert entry.old_data["status"] == "開發中"
        assert entry.new_data["status"] == "台電送件"
        assert entry.actor_user_id == "admin-1"

    def test_progress_fields_ignored_on_update(self, client, project):
        res = client.put(f"/api/v1/projects/{project.id}", json={"overall_progress": 99})
        assert res.get_json()["overall_progress"] == 0

    def test_list_filters_and_deleted(self, client, project):
        client.post("/api/v1/projects", json={"project_code": "PV-B", "project_name": "雲林案"})
        client.post(f"/api/v1/records/projects/{project.id}/delete", json={"reason": "取消開發"})

        assert client.get("/api/v1/projects").get_json()["total"] == 1
        assert client.get("/api/v1/projects?include_deleted=1").get_json()["total"] == 2
        assert client.get("/api/v1/projects?q=雲林").get_json()["items"][0]["project_code"] == "PV-B"

        assert client.get(f"/api/v1/projects/{project.id}").status_code == 404
        assert client.get(f"/api/v1/projects/{project.id}?include_deleted=1").status_code == 200

    def test_wrong_content_type(self, client):
        res = client.post("/api/v1/projects", data="project_code=x", content_type="text/plain")
        assert res.status_code == 415


class TestInvestors:

    def test_crud(self, client, staff_headers):
        res = client.post("/api/v1/investors", json={
            "investor_code": "INV02", "company_name": " 綠電投資 ", "tax_id": "12345678",
        }, headers=staff_headers)
        assert res.status_code == 201
        inv = res.get_json()
        assert inv["company_name"] == "綠電投資"

        res = client.put(f"/api/v1/investors/{inv['id']}", json={"note": "VIP"}, headers=staff_headers)
        assert res.get_json()["note"] == "VIP"

        assert [e.action for e in _entries("investors", inv["id"])] == ["CREATE", "UPDATE"]

    def test_required(self, client, investor):
        assert client.post("/api/v1/investors", json={"investor_code": "X"}).status_code == 422
        res = client.put(f"/api/v1/investors/{investor.id}", json={"company_name": "  "})
        assert res.status_code == 422

    def test_search(self, client, investor):
        client.post("/api/v1/investors", json={"investor_code": "INV09", "company_name": "北風資本"})
        body = client.get("/api/v1/investors?q=北風").get_json()
        assert [i["investor_code"] for i in body["items"]] == ["INV09"]

    def test_contacts(self, client, investor):
        res = client.post(f"/api/v1/investors/{investor.id}/contacts",
                          json={"contact_name": "王小明", "title": "財務長"})
        assert res.status_code == 201
        assert res.get_json()["investor_id"] == investor.id

        body = client.get(f"/api/v1/investors/{investor.id}/contacts").get_json()
        assert body["total"] == 1
        assert client.get("/api/v1/investors/999/contacts").status_code == 404


class TestPartners:

    def test_crud(self, client):
        res = client.post("/api/v1/partners", json={"name": "大同電機", "partner_type": "electrical"})
        assert res.status_code == 201
        pid = res.get_json()["id"]

        res = client.put(f"/api/v1/partners/{pid}", json={"phone": "02-1234"})
        assert res.get_json()["phone"] == "02-1234"
        assert [e.action for e in _entries("partners", pid)] == ["CREATE", "UPDATE"]

    def test_partner_type_validated(self, client):
        res = client.post("/api/v1/partners", json={"name": "x", "partner_type": "legal"})
        assert res.status_code == 422

    def test_filter_by_type_and_deleted(self, client):
        a = client.post("/api/v1/partners", json={"name": "A", "partner_type": "construction"}).get_json()
        client.post("/api/v1/partners", json={"name": "B", "partner_type": "structural"})
        client.post(f"/api/v1/records/partners/{a['id']}/delete", json={"reason": "歇業"})

        assert client.get("/api/v1/partners").get_json()["total"] == 1
        assert client.get("/api/v1/partners?include_deleted=1").get_json()["total"] == 2
        body = client.get("/api/v1/partners?partner_type=structural").get_json()
        assert [p["name"] for p in body["items"]] == ["B"]
        assert client.get(f"/api/v1/partners/{a['id']}").status_code == 404

    def test_contacts(self, client):
        pid = client.post("/api/v1/partners", json={"name": "A"}).get_json()["id"]
        res = client.post(f"/api/v1/partners/{pid}/contacts", json={"contact_name": "陳工", "role": "工地主任"})
        assert res.status_code == 201
        assert client.post(f"/api/v1/partners/{pid}/contacts", json={}).status_code == 422
        assert client.get(f"/api/v1/partners/{pid}/contacts").get_json()["total"] == 1


class TestHealth:

    def test_health(self, client):
        res = client.get("/api/v1/health")
        assert res.status_code == 200
        assert client.get("/api/v1/health/live").status_code == 200
        assert client.get("/api/v1/health/ready").status_code == 200
