"""
Shared pytest fixtures for the KPI Tracker test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - make_user / auth_headers: user factory and Bearer headers
    - legacy_kpis: default template + legacy KPI set provisioned
    - tenant: an active tenant with its KPI set
    - project_setup: a legacy-scope project with admin/editor/viewer members
"""

import pytest

from kpi_tracker import create_app
from kpi_tracker.models import db as _db
from kpi_tracker.models.auth import SuperAdmin, Tenant, User
from kpi_tracker.models.project import Project, ProjectMember
from kpi_tracker.services import kpi_template_service
from kpi_tracker.services.jwt_service import generate_access_token, generate_super_admin_token
from kpi_tracker.utils.crypto import hash_password

PASSWORD = "secret123"

# bcrypt is slow; hash once per session
_PASSWORD_HASH = None


def _password_hash():
    global _PASSWORD_HASH
    if _PASSWORD_HASH is None:
        _PASSWORD_HASH = hash_password(PASSWORD)
    return _PASSWORD_HASH


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


# ── Factories ────────────────────────────────────────────────────────────


@pytest.fixture()
def make_user():
    """Factory: create a user and return it."""

    def _make(email, name=None, tenant_id=None, role="member"):
        user = User(
            tenant_id=tenant_id,
            email=email,
            password_hash=_password_hash(),
            name=name or email.split("@")[0],
            role=role,
        )
        _db.session.add(user)
        _db.session.commit()
        return user

    return _make


@pytest.fixture()
def auth_headers():
    """Factory: Bearer headers for a user."""

    def _headers(user):
        token = generate_access_token(user.id, user.tenant_id, user.role)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture()
def super_admin():
    admin = SuperAdmin(email="root@platform.test", password_hash=_password_hash(), name="Root")
    _db.session.add(admin)
    _db.session.commit()
    return admin


@pytest.fixture()
def super_headers(super_admin):
    return {"Authorization": f"Bearer {generate_super_admin_token(super_admin.id)}"}


# ── Domain fixtures ──────────────────────────────────────────────────────


@pytest.fixture()
def legacy_kpis():
    """Default template plus the tenant-less KPI set."""
    return kpi_template_service.seed_kpis()


@pytest.fixture()
def tenant(legacy_kpis):
    """Active tenant with its own copy of the default KPI set."""
    t = Tenant(name="Acme", slug="acme")
    _db.session.add(t)
    _db.session.commit()
    kpi_template_service.instantiate_for_scope(t.id)
    return t


def _add_project(owner, members=()):
    project = Project(tenant_id=owner.tenant_id, name="D2C shop", owner_id=owner.id)
    _db.session.add(project)
    _db.session.flush()
    _db.session.add(ProjectMember(project_id=project.id, user_id=owner.id, role="admin"))
    for user, role in members:
        _db.session.add(ProjectMember(project_id=project.id, user_id=user.id, role=role))
    _db.session.commit()
    return project


@pytest.fixture()
def add_project():
    """Factory: project owned by ``owner`` with extra ``(user, role)`` members."""
    return _add_project


@pytest.fixture()
def project_setup(legacy_kpis, make_user):
    """Legacy-scope project with an owner and an admin, editor, viewer and outsider."""
    owner = make_user("owner@example.com", "Owner")
    admin = make_user("admin@example.com", "Admin")
    editor = make_user("editor@example.com", "Editor")
    viewer = make_user("viewer@example.com", "Viewer")
    outsider = make_user("outsider@example.com", "Outsider")
    project = _add_project(owner, [(admin, "admin"), (editor, "editor"), (viewer, "viewer")])
    return {
        "project": project,
        "owner": owner,
        "admin": admin,
        "editor": editor,
        "viewer": viewer,
        "outsider": outsider,
    }
