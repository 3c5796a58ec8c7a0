"""
Tenant Context Middleware — validates the principal's user and tenant.

Chain order:
  jwt_auth.py  →  tenant_context.py  →  route handler

When a user token is present:
  1. The user must still exist and still belong to the token's tenant
     (deleted accounts and reassigned users lose their old sessions).
  2. A tenant-scoped principal's tenant must be active; suspended and
     deleted tenants are refused with 403.
  3. g.tenant is set for downstream use (None for independent users).
"""

import logging

from flask import g, request

from kpi_tracker.models import db
from kpi_tracker.models.auth import Tenant, User
from kpi_tracker.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def init_tenant_context(app):
    """Register tenant context middleware as a before_request hook."""

    @app.before_request
    def _tenant_context():
        g.tenant = None

        principal = getattr(g, "principal", None)
        if principal is None or not request.path.startswith("/api/v1/"):
            return None

        user = db.session.get(User, principal.user_id)
        if user is None or user.tenant_id != principal.tenant_id:
            logger.warning("Token for user %s no longer matches an account", principal.user_id)
            g.principal = None
            return api_error(E.UNAUTHENTICATED, "Invalid session")

        if principal.tenant_id is None:
            return None

        tenant = db.session.get(Tenant, principal.tenant_id)
        if tenant is None or not tenant.is_active:
            logger.warning(
                "Request for inactive tenant %s (status=%s)",
                principal.tenant_id, tenant.status if tenant else None,
            )
            return api_error(E.FORBIDDEN, "Tenant account is not active")

        g.tenant = tenant
        return None

    logger.info("Tenant context middleware installed")
