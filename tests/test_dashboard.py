"""Dashboard layout settings tests."""

from solarhub.models import db
from solarhub.models.dashboard import DashboardSettings
from solarhub.services import dashboard_service as svc


class TestDashboardSettings:

    def test_defaults(self, client, staff_headers):
        body = client.get("/api/v1/dashboard/settings", headers=staff_headers).get_json()
        assert body["is_default"] is True
        assert body["visible_sections"] == [s["id"] for s in svc.DEFAULT_SECTIONS]
        assert body["default_filters"] == svc.DEFAULT_FILTERS

    def test_save_hide_and_reorder(self, client, staff_headers):
        res = client.put("/api/v1/dashboard/settings", json={
            "sections": [
                {"id": "health-kpis", "visible": False},
                {"id": "advanced-analysis", "order": -1},
            ],
            "default_filters": {"status": "工程施工"},
        }, headers=staff_headers)
        assert res.status_code == 200
        body = res.get_json()
        assert body["is_default"] is False
        assert body["visible_sections"][0] == "advanced-analysis"
        assert "health-kpis" not in body["visible_sections"]
        assert body["default_filters"]["status"] == "工程施工"
        assert body["default_filters"]["investor"] == "all"

        again = client.get("/api/v1/dashboard/settings", headers=staff_headers).get_json()
        assert again == body

    def test_settings_are_per_user(self, client, staff_headers, admin_headers):
        client.put("/api/v1/dashboard/settings",
                   json={"sections": [{"id": "phase-overview", "visible": False}]}, headers=staff_headers)
        body = client.get("/api/v1/dashboard/settings", headers=admin_headers).get_json()
        assert body["is_default"] is True

    def test_unknown_section(self, client, staff_headers):
        res = client.put("/api/v1/dashboard/settings",
                         json={"sections": [{"id": "weather"}]}, headers=staff_headers)
        assert res.status_code == 422
        assert "weather" in res.get_json()["details"]

    def test_save_requires_user(self, client):
        res = client.put("/api/v1/dashboard/settings", json={"sections": []})
        assert res.status_code == 422

    def test_stale_stored_sections_are_merged(self, staff_headers):
        db.session.add(DashboardSettings(
            user_id="staff-1",
            sections=[{"id": "retired-section", "visible": True, "order": 0},
                      {"id": "phase-overview", "visible": False, "order": 0}],
            default_filters={},
        ))
        db.session.commit()

        config = svc.get_dashboard_config("staff-1")
        assert [s["id"] for s in config.sections] == [s["id"] for s in svc.DEFAULT_SECTIONS]
        assert "phase-overview" not in config.visible_section_ids()

    def test_reset(self, client, staff_headers):
        client.put("/api/v1/dashboard/settings",
                   json={"sections": [{"id": "phase-overview", "visible": False}]}, headers=staff_headers)
        body = client.delete("/api/v1/dashboard/settings", headers=staff_headers).get_json()
        assert body["is_default"] is True
        assert DashboardSettings.query.count() == 0
