"""
Auth Blueprint — user accounts and invitation sign-up.

  POST   /api/v1/auth/register                  — Independent user sign-up
  POST   /api/v1/auth/login                     — Email + password (+ tenant_slug) → JWT
  GET    /api/v1/auth/me                        — Current user and tenant
  DELETE /api/v1/auth/account                   — Delete own account (password required)
  GET    /api/v1/auth/invitation/<token>        — Invitation preview
  POST   /api/v1/auth/register-by-invitation    — Redeem invitation → JWT
"""

from flask import Blueprint, g, jsonify

from kpi_tracker.blueprints import json_body
from kpi_tracker.middleware.jwt_auth import require_auth
from kpi_tracker.services import auth_service

auth_bp = Blueprint("auth", __name__, url_prefix="/api/v1/auth")


@auth_bp.route("/register", methods=["POST"])
def register():
    """Body: { "email", "password", "confirm_password"?, "name" }"""
    return jsonify(auth_service.register(json_body())), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    """Body: { "email", "password", "tenant_slug"? }"""
    return jsonify(auth_service.login(json_body())), 200


@auth_bp.route("/me", methods=["GET"])
@require_auth
def me():
    return jsonify(auth_service.get_me(g.principal.user_id)), 200


@auth_bp.route("/account", methods=["DELETE"])
@require_auth
def delete_account():
    data = json_body()
    auth_service.delete_account(g.principal.user_id, data.get("password"))
    return jsonify({"message": "Account deleted"}), 200


@auth_bp.route("/invitation/<token>", methods=["GET"])
def get_invitation(token):
    return jsonify(auth_service.get_invitation(token)), 200


@auth_bp.route("/register-by-invitation", methods=["POST"])
def register_by_invitation():
    """Body: { "token", "password", "confirm_password"?, "name" }"""
    return jsonify(auth_service.register_by_invitation(json_body())), 201
