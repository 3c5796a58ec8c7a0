"""
Authentication + project role gate tests.

Test blocks:
  1. Token middleware — missing / invalid / wrong-family / stale tokens
  2. Tenant context — inactive tenants are refused
  3. Project roles — viewer / editor / admin / owner per operation class
  4. Scope isolation — projects and KPI sets never leak across scopes
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from kpi_tracker.models import db
from kpi_tracker.models.auth import Tenant
from kpi_tracker.models.project import ProjectMember
from kpi_tracker.services import access_service
from kpi_tracker.services.access_service import ADMIN, READ, WRITE_ACTUALS, Principal
from kpi_tracker.core.exceptions import ForbiddenError, NotFoundError
from kpi_tracker.services.jwt_service import generate_super_admin_token


def _url(project, suffix=""):
    return f"/api/v1/projects/{project.id}{suffix}"


ACTUALS = {"actuals": [{"kpi_id": "drv_cvr", "year": 2024, "month": 1, "actual_value": 3}]}
TARGETS = {"targets": [{"kpi_id": "drv_cvr", "year": 2024, "target_value": 3.5}]}


# ═══════════════════════════════════════════════════════════════
# 1. Tokens
# ═══════════════════════════════════════════════════════════════


class TestTokens:
    def test_missing_token(self, client):
        res = client.get("/api/v1/projects")
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHENTICATED"

    def test_garbage_token(self, client):
        res = client.get("/api/v1/projects", headers={"Authorization": "Bearer not-a-jwt"})
        assert res.status_code == 401

    def test_expired_token(self, client, app, make_user):
        user = make_user("late@example.com")
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"sub": str(user.id), "type": "access", "tenant_id": None, "tenant_role": "member",
             "iat": now - timedelta(days=8), "exp": now - timedelta(days=1)},
            app.config["JWT_SECRET_KEY"], algorithm="HS256",
        )
        res = client.get("/api/v1/projects", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 401
        assert res.get_json()["error"] == "Session expired"

    def test_super_admin_token_is_not_a_user_token(self, client, super_admin):
        token = generate_super_admin_token(super_admin.id)
        res = client.get("/api/v1/projects", headers={"Authorization": f"Bearer {token}"})
        assert res.status_code == 401

    def test_user_token_is_not_a_super_admin_token(self, client, make_user, auth_headers):
        user = make_user("u@example.com")
        res = client.get("/api/v1/super-admin/tenants", headers=auth_headers(user))
        assert res.status_code == 401

    def test_token_of_deleted_user(self, client, make_user, auth_headers):
        user = make_user("gone@example.com")
        headers = auth_headers(user)
        db.session.delete(user)
        db.session.commit()
        assert client.get("/api/v1/projects", headers=headers).status_code == 401

    def test_token_of_reassigned_user(self, client, make_user, auth_headers):
        user = make_user("moved@example.com")
        headers = auth_headers(user)
        tenant = Tenant(name="T", slug="t")
        db.session.add(tenant)
        db.session.flush()
        user.tenant_id = tenant.id
        db.session.commit()
        assert client.get("/api/v1/projects", headers=headers).status_code == 401


# ═══════════════════════════════════════════════════════════════
# 2. Tenant context
# ═══════════════════════════════════════════════════════════════


@pytest.mark.parametrize("status", ["suspended", "deleted"])
def test_inactive_tenant_refused(client, tenant, make_user, auth_headers, status):
    user = make_user("member@acme.test", tenant_id=tenant.id)
    headers = auth_headers(user)
    assert client.get("/api/v1/projects", headers=headers).status_code == 200

    tenant.status = status
    db.session.commit()
    res = client.get("/api/v1/projects", headers=headers)
    assert res.status_code == 403


# ═══════════════════════════════════════════════════════════════
# 3. Project roles
# ═══════════════════════════════════════════════════════════════


class TestRolePolicy:
    def test_policy_table(self):
        assert access_service.ROLE_POLICY[READ] == {"admin", "editor", "viewer"}
        assert access_service.ROLE_POLICY[WRITE_ACTUALS] == {"admin", "editor"}
        assert access_service.ROLE_POLICY[ADMIN] == {"admin"}

    def test_non_member_forbidden(self, project_setup):
        project, outsider = project_setup["project"], project_setup["outsider"]
        with pytest.raises(ForbiddenError):
            access_service.check_project_role(project.id, outsider.id, READ)

    def test_authorize_returns_project(self, project_setup):
        project, viewer = project_setup["project"], project_setup["viewer"]
        principal = Principal(user_id=viewer.id)
        assert access_service.authorize_project(project.id, principal, READ).id == project.id


class TestProjectRoutes:
    def test_viewer_reads_but_cannot_write(self, client, project_setup, auth_headers):
        project, headers = project_setup["project"], auth_headers(project_setup["viewer"])
        assert client.get(_url(project), headers=headers).status_code == 200
        assert client.get(_url(project, "/kpi-tree"), headers=headers).status_code == 200
        assert client.get(_url(project, "/summary"), headers=headers).status_code == 200
        assert client.post(_url(project, "/actuals"), json=ACTUALS, headers=headers).status_code == 403
        assert client.post(_url(project, "/targets"), json=TARGETS, headers=headers).status_code == 403

    def test_editor_writes_actuals_only(self, client, project_setup, auth_headers):
        project, headers = project_setup["project"], auth_headers(project_setup["editor"])
        assert client.post(_url(project, "/actuals"), json=ACTUALS, headers=headers).status_code == 200
        assert client.post(_url(project, "/targets"), json=TARGETS, headers=headers).status_code == 403
        res = client.post(_url(project, "/members"), json={"email": "outsider@example.com"},
                          headers=headers)
        assert res.status_code == 403

    def test_admin_writes_targets_and_members(self, client, project_setup, auth_headers):
        project, headers = project_setup["project"], auth_headers(project_setup["admin"])
        assert client.post(_url(project, "/targets"), json=TARGETS, headers=headers).status_code == 200
        res = client.post(_url(project, "/members"), json={"email": "outsider@example.com"},
                          headers=headers)
        assert res.status_code == 201
        assert res.get_json()["role"] == "viewer"

    def test_non_owner_admin_cannot_delete(self, client, project_setup, auth_headers):
        project = project_setup["project"]
        res = client.delete(_url(project), headers=auth_headers(project_setup["admin"]))
        assert res.status_code == 403

    def test_owner_deletes(self, client, project_setup, auth_headers):
        project = project_setup["project"]
        res = client.delete(_url(project), headers=auth_headers(project_setup["owner"]))
        assert res.status_code == 200
        res = client.get(_url(project), headers=auth_headers(project_setup["owner"]))
        assert res.status_code == 403

    def test_outsider_forbidden(self, client, project_setup, auth_headers):
        project, headers = project_setup["project"], auth_headers(project_setup["outsider"])
        assert client.get(_url(project), headers=headers).status_code == 403

    def test_unknown_project(self, client, project_setup, auth_headers):
        res = client.get("/api/v1/projects/9999", headers=auth_headers(project_setup["owner"]))
        assert res.status_code == 403


# ═══════════════════════════════════════════════════════════════
# 4. Scope isolation
# ═══════════════════════════════════════════════════════════════


class TestScopeIsolation:
    def test_member_row_across_scopes_is_not_found(self, project_setup, tenant, make_user):
        project = project_setup["project"]
        stranger = make_user("s@acme.test", tenant_id=tenant.id)
        db.session.add(ProjectMember(project_id=project.id, user_id=stranger.id, role="viewer"))
        db.session.commit()

        principal = Principal(user_id=stranger.id, tenant_id=tenant.id, tenant_role="member")
        with pytest.raises(NotFoundError):
            access_service.authorize_project(project.id, principal, READ)

    def test_add_member_looks_up_inside_scope(self, client, project_setup, tenant, make_user,
                                              auth_headers):
        make_user("t@acme.test", tenant_id=tenant.id)
        res = client.post(
            _url(project_setup["project"], "/members"),
            json={"email": "t@acme.test"},
            headers=auth_headers(project_setup["owner"]),
        )
        assert res.status_code == 404
        assert res.get_json()["error"] == "User not found"

    def test_kpi_master_is_scoped(self, client, tenant, make_user, auth_headers):
        legacy = make_user("legacy@example.com")
        member = make_user("m@acme.test", tenant_id=tenant.id)

        legacy_ids = {k["id"] for k in client.get("/api/v1/kpi-master",
                                                  headers=auth_headers(legacy)).get_json()}
        tenant_ids = {k["id"] for k in client.get("/api/v1/kpi-master",
                                                  headers=auth_headers(member)).get_json()}
        assert "kgi_001" in legacy_ids
        assert f"{tenant.id}_kgi_001" in tenant_ids
        assert not legacy_ids & tenant_ids

    def test_projects_listed_per_scope(self, client, tenant, make_user, auth_headers):
        member = make_user("m@acme.test", tenant_id=tenant.id)
        res = client.post("/api/v1/projects", json={"name": "Tenant project"},
                          headers=auth_headers(member))
        assert res.status_code == 201
        assert res.get_json()["tenant_id"] == tenant.id

        listed = client.get("/api/v1/projects", headers=auth_headers(member)).get_json()
        assert [p["name"] for p in listed] == ["Tenant project"]
        assert listed[0]["role"] == "admin"
