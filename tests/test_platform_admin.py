"""
Platform Admin tests — super-admin API for cross-tenant management.

Tests cover:
  Block 1: Setup and login
  Block 2: Tenant CRUD (create with KPI set, detail, status, soft/permanent delete)
  Block 3: Invitations
  Block 4: User management (removal with project hand-over, assignment, roles)
  Block 5: Templates and stats
"""

import pytest
from sqlalchemy import func, select

from kpi_tracker.models import db
from kpi_tracker.models.auth import SuperAdmin, Tenant, TenantInvitation, User
from kpi_tracker.models.kpi import KpiDefinition
from kpi_tracker.models.project import Project, ProjectMember
from kpi_tracker.services.kpi_catalog import DEFAULT_KPI_DATA

PASSWORD = "secret123"
BASE = "/api/v1/super-admin"

TENANT_BODY = {
    "name": "Globex",
    "slug": "globex",
    "admin_email": "boss@globex.test",
    "admin_name": "Boss",
    "admin_password": PASSWORD,
}


def _count(model, *where):
    return db.session.scalar(select(func.count()).select_from(model).where(*where))


# ═══════════════════════════════════════════════════════════════════════════════
# Block 1: Setup and login
# ═══════════════════════════════════════════════════════════════════════════════


class TestSetupLogin:
    def _setup(self, client, key="test-setup-key"):
        return client.post(f"{BASE}/setup", json={
            "setup_key": key, "email": "Root@Platform.test", "password": PASSWORD, "name": "Root",
        })

    def test_setup_once(self, client):
        res = self._setup(client)
        assert res.status_code == 201
        assert res.get_json()["admin"]["email"] == "root@platform.test"
        assert self._setup(client).status_code == 409

    def test_wrong_setup_key(self, client):
        assert self._setup(client, key="guess").status_code == 403
        assert _count(SuperAdmin) == 0

    def test_login_and_me(self, client, super_admin):
        res = client.post(f"{BASE}/login", json={"email": "root@platform.test", "password": PASSWORD})
        assert res.status_code == 200
        token = res.get_json()["token"]
        me = client.get(f"{BASE}/me", headers={"Authorization": f"Bearer {token}"})
        assert me.get_json()["id"] == super_admin.id

    def test_login_failure(self, client, super_admin):
        res = client.post(f"{BASE}/login", json={"email": "root@platform.test", "password": "nope"})
        assert res.status_code == 401
        assert res.get_json()["error"] == "Invalid email or password"

    def test_protected_without_token(self, client):
        assert client.get(f"{BASE}/stats").status_code == 401


# ═══════════════════════════════════════════════════════════════════════════════
# Block 2: Tenants
# ═══════════════════════════════════════════════════════════════════════════════


class TestTenants:
    def test_create_provisions_admin_and_kpis(self, client, super_headers, legacy_kpis):
        res = client.post(f"{BASE}/tenants", json=TENANT_BODY, headers=super_headers)
        assert res.status_code == 201
        tenant = res.get_json()
        assert tenant["kpi_count"] == len(DEFAULT_KPI_DATA)

        admin = db.session.execute(select(User).where(User.email == "boss@globex.test")).scalar_one()
        assert admin.tenant_id == tenant["id"]
        assert admin.role == "tenant_admin"
        assert _count(KpiDefinition, KpiDefinition.tenant_id == tenant["id"]) == len(DEFAULT_KPI_DATA)

        login = client.post("/api/v1/auth/login", json={
            "email": "boss@globex.test", "password": PASSWORD, "tenant_slug": "globex",
        })
        assert login.status_code == 200

    def test_create_with_template(self, client, super_headers):
        client.post(f"{BASE}/templates", headers=super_headers, json={
            "id": "mini", "name": "Mini",
            "items": [{"id": "rev", "agent": "COMMANDER", "category": "KGI", "name": "Revenue",
                       "unit": "JPY"}],
        })
        res = client.post(f"{BASE}/tenants", json={**TENANT_BODY, "template_id": "mini"},
                          headers=super_headers)
        assert res.status_code == 201
        tenant_id = res.get_json()["id"]
        assert db.session.get(KpiDefinition, f"{tenant_id}_rev").level == 1

    def test_create_with_unknown_template(self, client, super_headers):
        res = client.post(f"{BASE}/tenants", json={**TENANT_BODY, "template_id": "ghost"},
                          headers=super_headers)
        assert res.status_code == 404
        assert _count(Tenant) == 0

    def test_create_with_taken_kpi_ids_is_undone(self, client, super_headers, legacy_kpis):
        next_id = (db.session.scalar(select(func.max(Tenant.id))) or 0) + 1
        db.session.add(KpiDefinition(
            id=f"{next_id}_kgi_001", tenant_id=None, local_id=f"{next_id}_kgi_001",
            agent="COMMANDER", category="KGI", name="Old", unit="JPY", level=1,
        ))
        db.session.commit()

        res = client.post(f"{BASE}/tenants", json=TENANT_BODY, headers=super_headers)
        assert res.status_code == 409
        assert _count(Tenant) == 0
        assert _count(User, User.email == "boss@globex.test") == 0

    def test_legacy_admin_cannot_claim_tenant_ids(self, client, project_setup, auth_headers,
                                                  super_headers):
        project = project_setup["project"]
        res = client.post(f"/api/v1/projects/{project.id}/kpi-master",
                          headers=auth_headers(project_setup["owner"]),
                          json={"id": "1_kgi_001", "agent": "CREATIVE", "category": "Test",
                                "name": "Squat", "unit": "count", "parent_kpi_id": "kgi_001"})
        assert res.status_code == 400

        res = client.post(f"{BASE}/tenants", json=TENANT_BODY, headers=super_headers)
        assert res.status_code == 201
        assert res.get_json()["kpi_count"] == len(DEFAULT_KPI_DATA)

    def test_duplicate_slug(self, client, super_headers, tenant):
        res = client.post(f"{BASE}/tenants", json={**TENANT_BODY, "slug": "acme"},
                          headers=super_headers)
        assert res.status_code == 409

    def test_list_detail_and_counts(self, client, super_headers, tenant, make_user, add_project):
        owner = make_user("o@acme.test", tenant_id=tenant.id)
        add_project(owner)
        listed = client.get(f"{BASE}/tenants", headers=super_headers).get_json()
        assert listed[0]["user_count"] == 1
        assert listed[0]["project_count"] == 1

        detail = client.get(f"{BASE}/tenants/{tenant.id}", headers=super_headers).get_json()
        assert [u["email"] for u in detail["users"]] == ["o@acme.test"]
        assert len(detail["projects"]) == 1

    def test_update_status(self, client, super_headers, tenant):
        res = client.put(f"{BASE}/tenants/{tenant.id}", json={"status": "suspended"},
                         headers=super_headers)
        assert res.get_json()["status"] == "suspended"
        res = client.put(f"{BASE}/tenants/{tenant.id}", json={"status": "frozen"},
                         headers=super_headers)
        assert res.status_code == 400

    def test_soft_delete_hides_tenant(self, client, super_headers, tenant):
        assert client.delete(f"{BASE}/tenants/{tenant.id}", headers=super_headers).status_code == 200
        assert client.get(f"{BASE}/tenants", headers=super_headers).get_json() == []
        assert db.session.get(Tenant, tenant.id).status == "deleted"

    def test_permanent_delete_removes_everything(self, client, super_headers, tenant, make_user,
                                                 add_project):
        owner = make_user("o@acme.test", tenant_id=tenant.id)
        add_project(owner)
        tenant_id = tenant.id
        res = client.delete(f"{BASE}/tenants/{tenant_id}/permanent", headers=super_headers)
        assert res.status_code == 200
        assert db.session.get(Tenant, tenant_id) is None
        assert _count(User, User.tenant_id == tenant_id) == 0
        assert _count(Project, Project.tenant_id == tenant_id) == 0
        assert _count(KpiDefinition, KpiDefinition.tenant_id == tenant_id) == 0
        # the legacy KPI set is untouched
        assert _count(KpiDefinition, KpiDefinition.tenant_id.is_(None)) == len(DEFAULT_KPI_DATA)


# ═══════════════════════════════════════════════════════════════════════════════
# Block 3: Invitations
# ═══════════════════════════════════════════════════════════════════════════════


class TestInvitations:
    def test_create_and_redeem(self, client, super_headers, tenant):
        res = client.post(f"{BASE}/tenants/{tenant.id}/invitations",
                          json={"email": "New@Acme.test"}, headers=super_headers)
        assert res.status_code == 201
        body = res.get_json()
        token = body["invitation"]["token"]
        assert body["invitation"]["role"] == "tenant_admin"
        assert body["invite_url"] == f"http://kpi.test/invite/{token}"

        res = client.post("/api/v1/auth/register-by-invitation", json={
            "token": token, "password": PASSWORD, "name": "New",
        })
        assert res.status_code == 201
        assert res.get_json()["user"]["email"] == "new@acme.test"

        listed = client.get(f"{BASE}/tenants/{tenant.id}/invitations", headers=super_headers).get_json()
        assert listed[0]["used_at"] is not None
        assert "token" not in listed[0]

    def test_invalid_role(self, client, super_headers, tenant):
        res = client.post(f"{BASE}/tenants/{tenant.id}/invitations",
                          json={"email": "x@acme.test", "role": "owner"}, headers=super_headers)
        assert res.status_code == 400
        assert _count(TenantInvitation) == 0


# ═══════════════════════════════════════════════════════════════════════════════
# Block 4: Users
# ═══════════════════════════════════════════════════════════════════════════════


class TestUsers:
    def test_removed_owner_hands_project_to_member(self, client, super_headers, tenant, make_user,
                                                   add_project):
        owner = make_user("o@acme.test", tenant_id=tenant.id)
        editor = make_user("e@acme.test", tenant_id=tenant.id)
        viewer = make_user("v@acme.test", tenant_id=tenant.id)
        project = add_project(owner, [(viewer, "viewer"), (editor, "editor")])
        project_id, editor_id = project.id, editor.id

        res = client.delete(f"{BASE}/tenants/{tenant.id}/users/{owner.id}", headers=super_headers)
        assert res.status_code == 200

        project = db.session.get(Project, project_id)
        assert project.owner_id in {editor_id, viewer.id}
        assert db.session.get(ProjectMember, (project_id, project.owner_id)).role == "admin"

    def test_removed_sole_member_project_is_deleted(self, client, super_headers, tenant, make_user,
                                                    add_project):
        owner = make_user("o@acme.test", tenant_id=tenant.id)
        project_id = add_project(owner).id
        client.delete(f"{BASE}/tenants/{tenant.id}/users/{owner.id}", headers=super_headers)
        assert db.session.get(Project, project_id) is None

    def test_user_of_other_tenant_not_found(self, client, super_headers, tenant, make_user):
        solo = make_user("solo@example.com")
        res = client.delete(f"{BASE}/tenants/{tenant.id}/users/{solo.id}", headers=super_headers)
        assert res.status_code == 404

    def test_independent_users_listed_with_project_count(self, client, super_headers, make_user,
                                                         add_project):
        solo = make_user("solo@example.com")
        add_project(solo)
        listed = client.get(f"{BASE}/users/independent", headers=super_headers).get_json()
        assert [(u["email"], u["project_count"]) for u in listed] == [("solo@example.com", 1)]

    def test_assign_moves_user_and_projects(self, client, super_headers, tenant, make_user,
                                            add_project, auth_headers):
        solo = make_user("solo@example.com")
        project_id = add_project(solo).id
        url = f"/api/v1/projects/{project_id}"
        old_headers = auth_headers(solo)
        client.post(f"{url}/targets", headers=old_headers, json={"targets": [
            {"kpi_id": "kgi_001", "year": 2024, "target_value": 1000},
            {"kpi_id": "drv_cvr", "year": 2024, "month": 1, "target_value": 4},
        ]})
        client.post(f"{url}/actuals", headers=old_headers, json={"actuals": [
            {"kpi_id": "kgi_001", "year": 2024, "month": 1, "actual_value": 500},
            {"kpi_id": "drv_cvr", "year": 2024, "month": 1, "actual_value": 3},
        ]})

        res = client.put(f"{BASE}/users/{solo.id}/assign-tenant",
                         json={"tenant_id": tenant.id, "role": "tenant_admin"},
                         headers=super_headers)
        assert res.status_code == 200
        assert res.get_json()["tenant_id"] == tenant.id
        assert db.session.get(Project, project_id).tenant_id == tenant.id
        assert client.get(url, headers=old_headers).status_code == 401

        headers = auth_headers(db.session.get(User, solo.id))
        summary = client.get(f"{url}/summary?year=2024&month=1", headers=headers).get_json()
        assert [(k["id"], k["target_value"], k["actual_value"]) for k in summary["kgis"]] == [
            (f"{tenant.id}_kgi_001", 1000, 500),
        ]
        tree = client.get(f"{url}/kpi-tree?year=2024&month=1", headers=headers).get_json()
        cvr = next(c for c in tree["roots"][0]["children"] if c["id"] == f"{tenant.id}_drv_cvr")
        assert (cvr["target_value"], cvr["actual_value"]) == (4, 3)

        again = client.put(f"{BASE}/users/{solo.id}/assign-tenant", json={"tenant_id": tenant.id},
                           headers=super_headers)
        assert again.status_code == 409

    def test_assign_refuses_projects_shared_with_others(self, client, super_headers, tenant,
                                                        make_user, add_project, auth_headers):
        solo = make_user("solo@example.com")
        editor = make_user("editor@example.com")
        project_id = add_project(solo, [(editor, "editor")]).id

        res = client.put(f"{BASE}/users/{solo.id}/assign-tenant", json={"tenant_id": tenant.id},
                         headers=super_headers)
        assert res.status_code == 409
        assert db.session.get(User, solo.id).tenant_id is None
        assert db.session.get(Project, project_id).tenant_id is None
        res = client.get(f"/api/v1/projects/{project_id}", headers=auth_headers(editor))
        assert res.status_code == 200

    def test_assign_leaves_other_projects_values_alone(self, client, super_headers, tenant,
                                                       project_setup, make_user, auth_headers):
        project = project_setup["project"]
        owner_headers = auth_headers(project_setup["owner"])
        client.post(f"/api/v1/projects/{project.id}/targets", headers=owner_headers, json={
            "targets": [{"kpi_id": "kgi_001", "year": 2024, "target_value": 1000}],
        })
        solo = make_user("solo@example.com")
        res = client.put(f"{BASE}/users/{solo.id}/assign-tenant", json={"tenant_id": tenant.id},
                         headers=super_headers)
        assert res.status_code == 200
        targets = client.get(f"/api/v1/projects/{project.id}/targets", headers=owner_headers)
        assert [t["kpi_id"] for t in targets.get_json()] == ["kgi_001"]

    def test_assign_email_taken_in_tenant(self, client, super_headers, tenant, make_user):
        make_user("same@example.com", tenant_id=tenant.id)
        solo = make_user("same@example.com")
        res = client.put(f"{BASE}/users/{solo.id}/assign-tenant", json={"tenant_id": tenant.id},
                         headers=super_headers)
        assert res.status_code == 409

    def test_change_role(self, client, super_headers, tenant, make_user):
        user = make_user("m@acme.test", tenant_id=tenant.id)
        res = client.put(f"{BASE}/users/{user.id}/role", json={"role": "tenant_admin"},
                         headers=super_headers)
        assert res.get_json()["role"] == "tenant_admin"
        res = client.put(f"{BASE}/users/{user.id}/role", json={"role": "emperor"},
                         headers=super_headers)
        assert res.status_code == 400

    def test_delete_user(self, client, super_headers, make_user):
        user_id = make_user("solo@example.com").id
        assert client.delete(f"{BASE}/users/{user_id}", headers=super_headers).status_code == 200
        assert db.session.get(User, user_id) is None
        assert client.delete(f"{BASE}/users/{user_id}", headers=super_headers).status_code == 404


# ═══════════════════════════════════════════════════════════════════════════════
# Block 5: Templates and stats
# ═══════════════════════════════════════════════════════════════════════════════


class TestTemplatesAndStats:
    def test_templates(self, client, super_headers, legacy_kpis):
        listed = client.get(f"{BASE}/templates", headers=super_headers).get_json()
        assert listed[0]["is_default"] is True
        assert listed[0]["item_count"] == len(DEFAULT_KPI_DATA)

        detail = client.get(f"{BASE}/templates/{legacy_kpis}", headers=super_headers).get_json()
        assert len(detail["items"]) == len(DEFAULT_KPI_DATA)
        assert client.get(f"{BASE}/templates/ghost", headers=super_headers).status_code == 404

    def test_stats(self, client, super_headers, tenant, make_user, add_project):
        add_project(make_user("o@acme.test", tenant_id=tenant.id))
        make_user("solo@example.com")
        suspended = Tenant(name="Old", slug="old", status="suspended")
        db.session.add(suspended)
        db.session.commit()

        stats = client.get(f"{BASE}/stats", headers=super_headers).get_json()
        assert stats["total_tenants"] == 1
        assert stats["total_users"] == 2
        assert stats["tenant_users"] == 1
        assert stats["independent_users"] == 1
        assert stats["total_projects"] == 1
        assert [t["name"] for t in stats["recent_tenants"]] == ["Acme"]
