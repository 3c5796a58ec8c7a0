"""
Platform Admin Blueprint — super-admin API for cross-tenant management.

API Endpoints (JSON):
  POST   /api/v1/super-admin/setup                          — First super admin (setup key)
  POST   /api/v1/super-admin/login                          — Super-admin login
  GET    /api/v1/super-admin/me                             — Current super admin
  GET    /api/v1/super-admin/tenants                        — List tenants
  POST   /api/v1/super-admin/tenants                        — Create tenant + tenant admin + KPI set
  GET    /api/v1/super-admin/tenants/<id>                   — Tenant detail (users, projects)
  PUT    /api/v1/super-admin/tenants/<id>                   — Update name / status
  DELETE /api/v1/super-admin/tenants/<id>                   — Soft delete
  DELETE /api/v1/super-admin/tenants/<id>/permanent         — Delete with all data
  GET    /api/v1/super-admin/tenants/<id>/invitations       — Invitations
  POST   /api/v1/super-admin/tenants/<id>/invitations       — Invite a user
  DELETE /api/v1/super-admin/tenants/<id>/users/<user_id>   — Remove tenant user
  GET    /api/v1/super-admin/users/independent              — Tenant-less users
  PUT    /api/v1/super-admin/users/<id>/assign-tenant       — Move user into a tenant
  PUT    /api/v1/super-admin/users/<id>/role                — Change tenant role
  DELETE /api/v1/super-admin/users/<id>                     — Delete any user
  GET    /api/v1/super-admin/templates                      — KPI templates
  POST   /api/v1/super-admin/templates                      — Create KPI template
  GET    /api/v1/super-admin/templates/<id>                 — Template with items
  GET    /api/v1/super-admin/stats                          — Platform-wide counts

Everything except setup and login requires a super-admin token.
"""

from flask import Blueprint, g, jsonify

from kpi_tracker.blueprints import json_body
from kpi_tracker.middleware.jwt_auth import require_super_admin
from kpi_tracker.services import kpi_template_service, platform_admin_service

platform_admin_bp = Blueprint("platform_admin", __name__, url_prefix="/api/v1/super-admin")


# ═══════════════════════════════════════════════════════════════════════════════
# SUPER-ADMIN ACCOUNT
# ═══════════════════════════════════════════════════════════════════════════════


@platform_admin_bp.route("/setup", methods=["POST"])
def setup():
    """Body: { "setup_key", "email", "password", "name" }"""
    return jsonify(platform_admin_service.setup_super_admin(json_body())), 201


@platform_admin_bp.route("/login", methods=["POST"])
def login():
    return jsonify(platform_admin_service.login_super_admin(json_body())), 200


@platform_admin_bp.route("/me", methods=["GET"])
@require_super_admin
def me():
    return jsonify(platform_admin_service.get_super_admin(g.super_admin_id)), 200


# ═══════════════════════════════════════════════════════════════════════════════
# TENANTS
# ═══════════════════════════════════════════════════════════════════════════════


@platform_admin_bp.route("/tenants", methods=["GET"])
@require_super_admin
def list_tenants():
    return jsonify(platform_admin_service.list_tenants()), 200


@platform_admin_bp.route("/tenants", methods=["POST"])
@require_super_admin
def create_tenant():
    """
    Body: { "name", "slug", "admin_email", "admin_name", "admin_password",
            "template_id"? }
    """
    tenant = platform_admin_service.create_tenant(json_body(), g.super_admin_id)
    return jsonify(tenant), 201


@platform_admin_bp.route("/tenants/<int:tenant_id>", methods=["GET"])
@require_super_admin
def get_tenant(tenant_id):
    return jsonify(platform_admin_service.get_tenant(tenant_id)), 200


@platform_admin_bp.route("/tenants/<int:tenant_id>", methods=["PUT"])
@require_super_admin
def update_tenant(tenant_id):
    return jsonify(platform_admin_service.update_tenant(tenant_id, json_body())), 200


@platform_admin_bp.route("/tenants/<int:tenant_id>", methods=["DELETE"])
@require_super_admin
def delete_tenant(tenant_id):
    platform_admin_service.soft_delete_tenant(tenant_id)
    return jsonify({"message": "Tenant deleted"}), 200


@platform_admin_bp.route("/tenants/<int:tenant_id>/permanent", methods=["DELETE"])
@require_super_admin
def purge_tenant(tenant_id):
    platform_admin_service.purge_tenant(tenant_id)
    return jsonify({"message": "Tenant permanently deleted"}), 200


# ═══════════════════════════════════════════════════════════════════════════════
# INVITATIONS & TENANT USERS
# ═══════════════════════════════════════════════════════════════════════════════


@platform_admin_bp.route("/tenants/<int:tenant_id>/invitations", methods=["GET"])
@require_super_admin
def list_invitations(tenant_id):
    return jsonify(platform_admin_service.list_invitations(tenant_id)), 200


@platform_admin_bp.route("/tenants/<int:tenant_id>/invitations", methods=["POST"])
@require_super_admin
def create_invitation(tenant_id):
    """Body: { "email", "role"? }  role defaults to tenant_admin."""
    return jsonify(platform_admin_service.create_invitation(tenant_id, json_body())), 201


@platform_admin_bp.route("/tenants/<int:tenant_id>/users/<int:user_id>", methods=["DELETE"])
@require_super_admin
def delete_tenant_user(tenant_id, user_id):
    platform_admin_service.delete_tenant_user(tenant_id, user_id)
    return jsonify({"message": "User deleted"}), 200


# ═══════════════════════════════════════════════════════════════════════════════
# USERS
# ═══════════════════════════════════════════════════════════════════════════════


@platform_admin_bp.route("/users/independent", methods=["GET"])
@require_super_admin
def list_independent_users():
    return jsonify(platform_admin_service.list_independent_users()), 200


@platform_admin_bp.route("/users/<int:user_id>/assign-tenant", methods=["PUT"])
@require_super_admin
def assign_tenant(user_id):
    """Body: { "tenant_id", "role"? }"""
    return jsonify(platform_admin_service.assign_user_to_tenant(user_id, json_body())), 200


@platform_admin_bp.route("/users/<int:user_id>/role", methods=["PUT"])
@require_super_admin
def change_role(user_id):
    return jsonify(platform_admin_service.change_user_role(user_id, json_body())), 200


@platform_admin_bp.route("/users/<int:user_id>", methods=["DELETE"])
@require_super_admin
def delete_user(user_id):
    platform_admin_service.delete_user(user_id)
    return jsonify({"message": "User deleted"}), 200


# ═══════════════════════════════════════════════════════════════════════════════
# KPI TEMPLATES
# ═══════════════════════════════════════════════════════════════════════════════


@platform_admin_bp.route("/templates", methods=["GET"])
@require_super_admin
def list_templates():
    return jsonify(kpi_template_service.list_templates()), 200


@platform_admin_bp.route("/templates", methods=["POST"])
@require_super_admin
def create_template():
    """Body: { "id"?, "name", "description"?, "is_default"?, "items": [...] }"""
    return jsonify(kpi_template_service.create_template(json_body())), 201


@platform_admin_bp.route("/templates/<template_id>", methods=["GET"])
@require_super_admin
def get_template(template_id):
    return jsonify(kpi_template_service.get_template(template_id)), 200


# ═══════════════════════════════════════════════════════════════════════════════
# STATS
# ═══════════════════════════════════════════════════════════════════════════════


@platform_admin_bp.route("/stats", methods=["GET"])
@require_super_admin
def stats():
    return jsonify(platform_admin_service.get_stats()), 200
