"""
Project Blueprint — projects, membership and data export/import.

  GET    /api/v1/projects                                  — Projects I belong to
  POST   /api/v1/projects                                  — Create (caller becomes owner)
  GET    /api/v1/projects/<id>                             — Detail + my role
  DELETE /api/v1/projects/<id>                             — Owner only
  GET    /api/v1/projects/<id>/members                     — Members
  POST   /api/v1/projects/<id>/members                     — Add by email (admin)
  PUT    /api/v1/projects/<id>/members/<user_id>           — Change role (admin)
  DELETE /api/v1/projects/<id>/members/<user_id>           — Remove (admin)
  GET    /api/v1/projects/<id>/export                      — Full snapshot
  POST   /api/v1/projects/<id>/import                      — Upsert targets/actuals (admin)
"""

from flask import Blueprint, g, jsonify

from kpi_tracker.blueprints import json_body
from kpi_tracker.middleware.jwt_auth import require_auth
from kpi_tracker.middleware.project_access import require_project_role
from kpi_tracker.services import export_service, project_service
from kpi_tracker.services.access_service import ADMIN, READ

project_bp = Blueprint("projects", __name__, url_prefix="/api/v1/projects")


# ═══════════════════════════════════════════════════════════════
# Projects
# ═══════════════════════════════════════════════════════════════
@project_bp.route("", methods=["GET"])
@require_auth
def list_projects():
    return jsonify(project_service.list_projects(g.principal)), 200


@project_bp.route("", methods=["POST"])
@require_auth
def create_project():
    return jsonify(project_service.create_project(g.principal, json_body())), 201


@project_bp.route("/<int:project_id>", methods=["GET"])
@require_auth
@require_project_role(READ)
def get_project(project_id):
    return jsonify(project_service.get_project(g.project, g.project_role)), 200


@project_bp.route("/<int:project_id>", methods=["DELETE"])
@require_auth
@require_project_role(ADMIN)
def delete_project(project_id):
    project_service.delete_project(g.project, g.principal)
    return jsonify({"message": "Project deleted"}), 200


# ═══════════════════════════════════════════════════════════════
# Members
# ═══════════════════════════════════════════════════════════════
@project_bp.route("/<int:project_id>/members", methods=["GET"])
@require_auth
@require_project_role(READ)
def list_members(project_id):
    return jsonify(project_service.list_members(project_id)), 200


@project_bp.route("/<int:project_id>/members", methods=["POST"])
@require_auth
@require_project_role(ADMIN)
def add_member(project_id):
    """Body: { "email", "role"? }  role defaults to viewer."""
    return jsonify(project_service.add_member(g.project, json_body())), 201


@project_bp.route("/<int:project_id>/members/<int:user_id>", methods=["PUT"])
@require_auth
@require_project_role(ADMIN)
def update_member(project_id, user_id):
    return jsonify(project_service.update_member_role(g.project, user_id, json_body())), 200


@project_bp.route("/<int:project_id>/members/<int:user_id>", methods=["DELETE"])
@require_auth
@require_project_role(ADMIN)
def remove_member(project_id, user_id):
    project_service.remove_member(g.project, user_id)
    return jsonify({"message": "Member removed"}), 200


# ═══════════════════════════════════════════════════════════════
# Export / import
# ═══════════════════════════════════════════════════════════════
@project_bp.route("/<int:project_id>/export", methods=["GET"])
@require_auth
@require_project_role(READ)
def export_project(project_id):
    return jsonify(export_service.export_project(g.project)), 200


@project_bp.route("/<int:project_id>/import", methods=["POST"])
@require_auth
@require_project_role(ADMIN)
def import_project(project_id):
    """Body: { "targets": [...], "actuals": [...] } as produced by export."""
    imported = export_service.import_project_data(g.project, json_body(), g.principal.user_id)
    return jsonify({"imported": imported}), 200
