"""
Projects and project membership.

Rules:
  - Projects live in the creator's scope (tenant or legacy).
  - The creator becomes owner and admin member.
  - Members are added by email, looked up inside the project's scope only.
  - The owner cannot be removed and cannot lose the admin role.
  - Deleting a project removes its targets, actuals and members.
"""

from __future__ import annotations

import logging

from sqlalchemy import delete, select

from kpi_tracker.core.exceptions import ConflictError, NotFoundError, ValidationError
from kpi_tracker.models import db
from kpi_tracker.models.kpi import KpiActual, KpiTarget
from kpi_tracker.models.project import Project, ProjectMember
from kpi_tracker.services import access_service
from kpi_tracker.services.access_service import Principal
from kpi_tracker.services.auth_service import find_user_by_email
from kpi_tracker.utils.helpers import require_fields

logger = logging.getLogger(__name__)


def _validate_role(role) -> str:
    if role not in ProjectMember.ROLES:
        raise ValidationError(
            f"role must be one of: {', '.join(ProjectMember.ROLES)}", details={"role": "invalid"}
        )
    return role


# ── Projects ─────────────────────────────────────────────────────────────


def list_projects(principal: Principal) -> list[dict]:
    """Projects in the principal's scope where they are a member."""
    rows = db.session.execute(
        select(Project, ProjectMember.role)
        .join(ProjectMember, ProjectMember.project_id == Project.id)
        .where(
            ProjectMember.user_id == principal.user_id,
            Project.scope_filter(principal.scope_id),
        )
        .order_by(Project.created_at.desc(), Project.id.desc())
    ).all()
    return [{**project.to_dict(), "role": role} for project, role in rows]


def create_project(principal: Principal, data: dict) -> dict:
    require_fields(data, "name")
    project = Project(
        tenant_id=principal.scope_id,
        name=str(data["name"]).strip(),
        owner_id=principal.user_id,
    )
    db.session.add(project)
    db.session.flush()
    db.session.add(ProjectMember(project_id=project.id, user_id=principal.user_id, role="admin"))
    db.session.commit()

    logger.info("Project %s created by user %s (scope=%s)", project.id, principal.user_id, principal.scope_id)
    return {**project.to_dict(), "role": "admin"}


def get_project(project: Project, role: str) -> dict:
    return {**project.to_dict(), "role": role}


def purge_project(project_id: int) -> None:
    """Delete a project and everything it owns; the caller commits."""
    db.session.execute(delete(KpiActual).where(KpiActual.project_id == project_id))
    db.session.execute(delete(KpiTarget).where(KpiTarget.project_id == project_id))
    db.session.execute(delete(ProjectMember).where(ProjectMember.project_id == project_id))
    db.session.execute(delete(Project).where(Project.id == project_id))


def delete_project(project: Project, principal: Principal) -> None:
    """Owner-only deletion (the admin role gate runs first in the route)."""
    access_service.require_owner(project, principal)
    project_id = project.id
    purge_project(project_id)
    db.session.commit()
    logger.info("Project %s deleted by owner %s", project_id, principal.user_id)


# ── Members ──────────────────────────────────────────────────────────────


def list_members(project_id: int) -> list[dict]:
    members = db.session.execute(
        select(ProjectMember)
        .where(ProjectMember.project_id == project_id)
        .order_by(ProjectMember.created_at, ProjectMember.user_id)
    ).scalars().all()
    return [m.to_dict() for m in members]


def add_member(project: Project, data: dict) -> dict:
    require_fields(data, "email")
    role = _validate_role(data.get("role") or "viewer")

    user = find_user_by_email(data["email"], project.tenant_id)
    if user is None:
        raise NotFoundError("User", message="User not found")
    if db.session.get(ProjectMember, (project.id, user.id)) is not None:
        raise ConflictError("ProjectMember", "user_id", str(user.id))

    member = ProjectMember(project_id=project.id, user_id=user.id, role=role)
    db.session.add(member)
    db.session.commit()
    logger.info("User %s added to project %s as %s", user.id, project.id, role)
    return member.to_dict()


def _get_member(project_id: int, user_id: int) -> ProjectMember:
    member = db.session.get(ProjectMember, (project_id, user_id))
    if member is None:
        raise NotFoundError("ProjectMember", user_id)
    return member


def update_member_role(project: Project, user_id: int, data: dict) -> dict:
    role = _validate_role(data.get("role"))
    member = _get_member(project.id, user_id)
    if user_id == project.owner_id and role != "admin":
        raise ConflictError("ProjectMember", message="The project owner must remain an admin")
    member.role = role
    db.session.commit()
    logger.info("User %s role on project %s set to %s", user_id, project.id, role)
    return member.to_dict()


def remove_member(project: Project, user_id: int) -> None:
    member = _get_member(project.id, user_id)
    if user_id == project.owner_id:
        raise ConflictError("ProjectMember", message="The project owner cannot be removed")
    db.session.delete(member)
    db.session.commit()
    logger.info("User %s removed from project %s", user_id, project.id)
