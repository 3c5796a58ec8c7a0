"""
JWT Auth Middleware — parses the Bearer token and sets the request principal.

    init_jwt_middleware(app)   before_request hook: g.principal / g.jwt_*
    @require_auth              401 unless a valid user token was presented
    @require_super_admin       401/403 unless a valid super-admin token was presented

User and super-admin tokens are signed with different secrets and carry a
type claim, so a token of one family never authenticates the other.
"""

import functools
import logging

import jwt as pyjwt
from flask import g, request

from kpi_tracker.services.access_service import Principal
from kpi_tracker.services.jwt_service import decode_access_token, decode_super_admin_token
from kpi_tracker.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# Paths that never carry a user token
JWT_SKIP_PREFIXES = (
    "/api/v1/auth/login",
    "/api/v1/auth/register",
    "/api/v1/auth/invitation/",
    "/api/v1/health",
    "/api/v1/super-admin/",
)


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    return auth_header[7:].strip() or None


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.principal = None
        g.jwt_user_id = None
        g.jwt_tenant_id = None
        g.jwt_tenant_role = None
        g.jwt_error = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        token = _bearer_token()
        if token is None:
            return

        try:
            payload = decode_access_token(token)
        except pyjwt.ExpiredSignatureError:
            g.jwt_error = "Session expired"
            return
        except pyjwt.InvalidTokenError:
            g.jwt_error = "Invalid token"
            return

        g.jwt_user_id = int(payload["sub"])
        g.jwt_tenant_id = payload.get("tenant_id")
        g.jwt_tenant_role = payload.get("tenant_role")
        g.principal = Principal(
            user_id=g.jwt_user_id,
            tenant_id=g.jwt_tenant_id,
            tenant_role=g.jwt_tenant_role,
        )


def require_auth(f):
    """Decorator: reject the request with 401 unless a user principal is set."""

    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if getattr(g, "principal", None) is None:
            message = getattr(g, "jwt_error", None) or "Authentication required"
            return api_error(E.UNAUTHENTICATED, message)
        return f(*args, **kwargs)

    return decorated


def require_super_admin(f):
    """Decorator: require a valid super-admin token; sets g.super_admin_id."""

    @functools.wraps(f)
    def decorated(*args, **kwargs):
        token = _bearer_token()
        if token is None:
            return api_error(E.UNAUTHENTICATED, "Authentication required")
        try:
            payload = decode_super_admin_token(token)
        except pyjwt.ExpiredSignatureError:
            return api_error(E.UNAUTHENTICATED, "Session expired")
        except (pyjwt.InvalidSignatureError, pyjwt.DecodeError):
            return api_error(E.UNAUTHENTICATED, "Invalid token")
        except pyjwt.InvalidTokenError:
            logger.warning("Rejected non super-admin token on %s", request.path)
            return api_error(E.FORBIDDEN, "Super admin access required")

        g.super_admin_id = int(payload["sub"])
        return f(*args, **kwargs)

    return decorated
