"""
Project Access Middleware — verifies project membership and role.

Provides the ``@require_project_role`` decorator that checks whether the
authenticated user is a member of the project named by the route parameter
and holds a role allowed for the operation class.

Usage:
    @bp.route("/api/v1/projects/<int:project_id>/targets", methods=["POST"])
    @require_auth
    @require_project_role(access_service.ADMIN)
    def save_targets(project_id):
        ...  # g.project and g.project_role are set

Must be stacked under ``@require_auth``.
"""

import functools

from flask import g, request

from kpi_tracker.services import access_service


def require_project_role(operation: str, param_name: str = "project_id"):
    """
    Decorator: require the principal to hold a role allowed for ``operation``
    on the project identified by the given route parameter.

    Raises ForbiddenError / NotFoundError, rendered by the app error handlers.
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            project_id = kwargs.get(param_name)
            if project_id is None:
                project_id = (request.view_args or {}).get(param_name)

            principal = g.principal
            g.project_role = access_service.check_project_role(
                project_id, principal.user_id, operation
            )
            g.project = access_service.get_scoped_project(project_id, principal)
            return f(*args, **kwargs)
        return decorated
    return decorator
