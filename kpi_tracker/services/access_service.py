"""
Access control — principal scope and project role gates.

Rules:
  - A principal with a tenant sees only rows whose tenant_id equals theirs;
    a principal without a tenant (independent / legacy user) sees only rows
    whose tenant_id IS NULL. Super-admins use separate endpoints and have no
    principal here.
  - Project-scoped operations require a ProjectMember row whose role is in
    the operation's allowed set.
  - Project deletion additionally requires ownership.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from kpi_tracker.core.exceptions import ForbiddenError, NotFoundError
from kpi_tracker.models import db
from kpi_tracker.models.project import Project, ProjectMember

logger = logging.getLogger(__name__)

# ── Role policy per operation class ─────────────────────────────────────
READ = "read"
WRITE_ACTUALS = "write_actuals"
ADMIN = "admin"

ROLE_POLICY: dict[str, frozenset[str]] = {
    READ: frozenset({"admin", "editor", "viewer"}),
    WRITE_ACTUALS: frozenset({"admin", "editor"}),
    ADMIN: frozenset({"admin"}),
}


@dataclass(frozen=True)
class Principal:
    """The authenticated tenant or independent user behind a request."""

    user_id: int
    tenant_id: int | None = None
    tenant_role: str | None = None

    @property
    def scope_id(self) -> int | None:
        return self.tenant_id

    @property
    def is_tenant_admin(self) -> bool:
        return self.tenant_role == "tenant_admin"


def get_project_role(project_id: int, user_id: int) -> str | None:
    member = db.session.get(ProjectMember, (project_id, user_id))
    return member.role if member else None


def check_project_role(project_id: int, user_id: int, operation: str) -> str:
    """Return the member's role, or raise ForbiddenError if it is not allowed.

    Non-members are rejected the same way as members with too weak a role.
    """
    allowed = ROLE_POLICY[operation]
    role = get_project_role(project_id, user_id)
    if role is None or role not in allowed:
        logger.warning(
            "User %s denied %s on project %s (role=%s)", user_id, operation, project_id, role
        )
        raise ForbiddenError("You do not have permission for this project")
    return role


def get_scoped_project(project_id: int, principal: Principal) -> Project:
    """Load a project visible to the principal's scope, else NotFoundError."""
    project = db.session.get(Project, project_id)
    if project is None or not project.in_scope(principal.scope_id):
        raise NotFoundError("Project", project_id, principal.scope_id)
    return project


def authorize_project(project_id: int, principal: Principal, operation: str) -> Project:
    """Role gate followed by the scope check; returns the project."""
    check_project_role(project_id, principal.user_id, operation)
    return get_scoped_project(project_id, principal)


def require_owner(project: Project, principal: Principal) -> None:
    if project.owner_id != principal.user_id:
        logger.warning(
            "User %s denied owner-only action on project %s", principal.user_id, project.id
        )
        raise ForbiddenError("Only the project owner can perform this action")
