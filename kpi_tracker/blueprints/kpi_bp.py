"""
KPI Blueprint — KPI definitions, targets, actuals and the KPI tree.

  GET    /api/v1/kpi-master                                   — Definitions of my scope
  POST   /api/v1/projects/<id>/kpi-master                     — Add definition (admin)
  PUT    /api/v1/projects/<id>/kpi-master/<kpi_id>            — Update definition (admin)
  DELETE /api/v1/projects/<id>/kpi-master/<kpi_id>            — Delete leaf definition (admin)
  GET    /api/v1/projects/<id>/targets?year=                  — Targets
  POST   /api/v1/projects/<id>/targets                        — Upsert targets (admin)
  POST   /api/v1/projects/<id>/targets/initialize             — Annual targets from defaults (admin)
  GET    /api/v1/projects/<id>/actuals?year=&month=           — Actuals
  POST   /api/v1/projects/<id>/actuals                        — Upsert actuals (admin, editor)
  GET    /api/v1/projects/<id>/kpi-tree?year=&month=&driver=  — KPI forest with figures

Definitions edited through a project belong to that project's scope.
"""

from datetime import date

from flask import Blueprint, g, jsonify, request

from kpi_tracker.blueprints import json_body, period_args
from kpi_tracker.middleware.jwt_auth import require_auth
from kpi_tracker.middleware.project_access import require_project_role
from kpi_tracker.services import kpi_template_service, kpi_value_service
from kpi_tracker.services.access_service import ADMIN, READ, WRITE_ACTUALS
from kpi_tracker.utils.helpers import parse_int

kpi_bp = Blueprint("kpi", __name__, url_prefix="/api/v1")


# ═══════════════════════════════════════════════════════════════
# KPI definitions
# ═══════════════════════════════════════════════════════════════
@kpi_bp.route("/kpi-master", methods=["GET"])
@require_auth
def list_definitions():
    definitions = kpi_template_service.list_definitions(g.principal.scope_id)
    return jsonify([d.to_dict() for d in definitions]), 200


@kpi_bp.route("/projects/<int:project_id>/kpi-master", methods=["POST"])
@require_auth
@require_project_role(ADMIN)
def add_definition(project_id):
    kpi = kpi_template_service.add_definition(json_body(), g.project.tenant_id)
    return jsonify(kpi.to_dict()), 201


@kpi_bp.route("/projects/<int:project_id>/kpi-master/<kpi_id>", methods=["PUT"])
@require_auth
@require_project_role(ADMIN)
def update_definition(project_id, kpi_id):
    kpi = kpi_template_service.update_definition(kpi_id, json_body(), g.project.tenant_id)
    return jsonify(kpi.to_dict()), 200


@kpi_bp.route("/projects/<int:project_id>/kpi-master/<kpi_id>", methods=["DELETE"])
@require_auth
@require_project_role(ADMIN)
def delete_definition(project_id, kpi_id):
    kpi_template_service.delete_definition(kpi_id, g.project.tenant_id)
    return jsonify({"message": "KPI deleted"}), 200


# ═══════════════════════════════════════════════════════════════
# Targets
# ═══════════════════════════════════════════════════════════════
@kpi_bp.route("/projects/<int:project_id>/targets", methods=["GET"])
@require_auth
@require_project_role(READ)
def list_targets(project_id):
    year = request.args.get("year", type=int)
    return jsonify(kpi_value_service.list_targets(project_id, year)), 200


@kpi_bp.route("/projects/<int:project_id>/targets", methods=["POST"])
@require_auth
@require_project_role(ADMIN)
def save_targets(project_id):
    """Body: { "targets": [{ "kpi_id", "year", "month"?, "target_value" }] }"""
    saved = kpi_value_service.save_targets(project_id, request.get_json(silent=True))
    return jsonify({"saved": saved}), 200


@kpi_bp.route("/projects/<int:project_id>/targets/initialize", methods=["POST"])
@require_auth
@require_project_role(ADMIN)
def initialize_targets(project_id):
    data = json_body()
    year = parse_int(data.get("year") or date.today().year, "year", minimum=1900, maximum=9999)
    saved = kpi_value_service.initialize_targets(project_id, g.project.tenant_id, year)
    return jsonify({"year": year, "saved": saved}), 200


# ═══════════════════════════════════════════════════════════════
# Actuals
# ═══════════════════════════════════════════════════════════════
@kpi_bp.route("/projects/<int:project_id>/actuals", methods=["GET"])
@require_auth
@require_project_role(READ)
def list_actuals(project_id):
    year = request.args.get("year", type=int)
    month = request.args.get("month", type=int)
    return jsonify(kpi_value_service.list_actuals(project_id, year, month)), 200


@kpi_bp.route("/projects/<int:project_id>/actuals", methods=["POST"])
@require_auth
@require_project_role(WRITE_ACTUALS)
def save_actuals(project_id):
    """Body: { "actuals": [{ "kpi_id", "year", "month", "actual_value" }] }"""
    saved = kpi_value_service.save_actuals(
        project_id, request.get_json(silent=True), g.principal.user_id
    )
    return jsonify({"saved": saved}), 200


# ═══════════════════════════════════════════════════════════════
# Tree
# ═══════════════════════════════════════════════════════════════
@kpi_bp.route("/projects/<int:project_id>/kpi-tree", methods=["GET"])
@require_auth
@require_project_role(READ)
def kpi_tree(project_id):
    year, month = period_args()
    driver = request.args.get("driver") or None
    tree = kpi_value_service.get_kpi_tree(project_id, g.project.tenant_id, year, month, driver)
    return jsonify(tree), 200
