"""
Dashboard Blueprint — period roll-up for one project.

  GET /api/v1/projects/<id>/summary?year=&month=   — KGIs, agent scores, alerts
"""

from flask import Blueprint, g, jsonify

from kpi_tracker.blueprints import period_args
from kpi_tracker.middleware.jwt_auth import require_auth
from kpi_tracker.middleware.project_access import require_project_role
from kpi_tracker.services import dashboard_service
from kpi_tracker.services.access_service import READ

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/v1/projects")


@dashboard_bp.route("/<int:project_id>/summary", methods=["GET"])
@require_auth
@require_project_role(READ)
def summary(project_id):
    year, month = period_args()
    return jsonify(dashboard_service.get_summary(project_id, g.project.tenant_id, year, month)), 200
