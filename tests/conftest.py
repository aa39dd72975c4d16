"""
Shared pytest fixtures for the SolarHub test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - admin_headers / staff_headers: X-User-Id / X-User-Role headers
    - investor, project: pre-created rows
    - milestones: a balanced admin + engineering milestone catalogue
"""

import pytest

from solarhub import create_app
from solarhub.models import db as _db
from solarhub.models.directory import Investor
from solarhub.models.progress import ProgressMilestone
from solarhub.models.project import Project


ADMIN_HEADERS = {"X-User-Id": "admin-1", "X-User-Role": "admin"}
STAFF_HEADERS = {"X-User-Id": "staff-1", "X-User-Role": "staff"}


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture()
def admin_headers():
    return dict(ADMIN_HEADERS)


@pytest.fixture()
def staff_headers():
    return dict(STAFF_HEADERS)


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def investor():
    inv = Investor(investor_code="INV01", company_name="陽光能源股份有限公司")
    _db.session.add(inv)
    _db.session.commit()
    return inv


@pytest.fixture()
def project(investor):
    proj = Project(
        project_code="PV-2024-001",
        project_name="彰化屋頂案",
        investor_id=investor.id,
    )
    _db.session.add(proj)
    _db.session.commit()
    return proj


@pytest.fixture()
def milestones():
    """Two admin milestones (60/40) and two engineering milestones (50/50)."""
    rows = [
        ProgressMilestone(milestone_code="ADM_TPC", milestone_type="admin", milestone_name="台電審查",
                          weight=60, sort_order=1, is_required=True, is_active=True),
        ProgressMilestone(milestone_code="ADM_MOEA", milestone_type="admin", milestone_name="同意備案",
                          weight=40, sort_order=2, is_required=True, is_active=True),
        ProgressMilestone(milestone_code="ENG_BUILD", milestone_type="engineering", milestone_name="工程施工",
                          weight=50, sort_order=1, is_required=True, is_active=True),
        ProgressMilestone(milestone_code="ENG_GRID", milestone_type="engineering", milestone_name="報竣掛表",
                          weight=50, sort_order=2, is_required=True, is_active=True),
    ]
    _db.session.add_all(rows)
    _db.session.commit()
    return rows
