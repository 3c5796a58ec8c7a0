"""
Platform administration — super-admin accounts, tenants, invitations,
cross-tenant user management, KPI templates and platform stats.

All functions are called from super-admin endpoints only; they are not
tenant-scoped. db.session.commit() happens only in service modules.
"""

from __future__ import annotations

import hmac
import logging
from datetime import datetime, timedelta, timezone

from flask import current_app
from sqlalchemy import String, case, delete, func, literal, select

from kpi_tracker.core.exceptions import (
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from kpi_tracker.models import db
from kpi_tracker.models.auth import SuperAdmin, Tenant, TenantInvitation, User
from kpi_tracker.models.kpi import KpiActual, KpiDefinition, KpiTarget
from kpi_tracker.models.project import Project, ProjectMember
from kpi_tracker.services import kpi_template_service, project_service
from kpi_tracker.services.auth_service import find_user_by_email, validate_password
from kpi_tracker.services.jwt_service import generate_super_admin_token
from kpi_tracker.utils.crypto import generate_invite_token, hash_password, verify_password
from kpi_tracker.utils.helpers import normalize_email, require_fields

logger = logging.getLogger(__name__)

LOGIN_FAILED = "Invalid email or password"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _validate_tenant_role(role) -> str:
    if role not in User.ROLES:
        raise ValidationError(
            f"role must be one of: {', '.join(User.ROLES)}", details={"role": "invalid"}
        )
    return role


# ═════════════════════════════════════════════════════════════════════════
# Super-admin accounts
# ═════════════════════════════════════════════════════════════════════════


def setup_super_admin(data: dict) -> dict:
    """Create the first super-admin; requires the configured setup key."""
    require_fields(data, "setup_key", "email", "password", "name")
    expected = current_app.config.get("SUPER_ADMIN_SETUP_KEY")
    if not expected or not hmac.compare_digest(str(data["setup_key"]), expected):
        logger.warning("Super-admin setup attempted with an invalid key")
        raise ForbiddenError("Invalid setup key")

    if db.session.scalar(select(func.count()).select_from(SuperAdmin)):
        raise ConflictError("SuperAdmin", message="A super admin already exists")

    validate_password(data["password"])
    admin = SuperAdmin(
        email=normalize_email(data["email"]),
        password_hash=hash_password(data["password"]),
        name=str(data["name"]).strip(),
    )
    db.session.add(admin)
    db.session.commit()
    logger.info("Super admin %s created via setup", admin.id)
    return {"token": generate_super_admin_token(admin.id), "admin": admin.to_dict()}


def login_super_admin(data: dict) -> dict:
    email = normalize_email(data.get("email"))
    admin = db.session.execute(
        select(SuperAdmin).where(SuperAdmin.email == email)
    ).scalar_one_or_none() if email else None
    if admin is None or not verify_password(data.get("password") or "", admin.password_hash):
        logger.info("Failed super-admin login attempt")
        raise AuthenticationError(LOGIN_FAILED)
    return {"token": generate_super_admin_token(admin.id), "admin": admin.to_dict()}


def get_super_admin(admin_id: int) -> dict:
    admin = db.session.get(SuperAdmin, admin_id)
    if admin is None:
        raise NotFoundError("SuperAdmin", admin_id)
    return admin.to_dict()


# ═════════════════════════════════════════════════════════════════════════
# Tenants
# ═════════════════════════════════════════════════════════════════════════


def _counts_by_tenant(model) -> dict:
    return dict(db.session.execute(
        select(model.tenant_id, func.count())
        .where(model.tenant_id.is_not(None))
        .group_by(model.tenant_id)
    ).all())


def list_tenants() -> list[dict]:
    tenants = db.session.execute(
        select(Tenant).where(Tenant.status != "deleted").order_by(Tenant.created_at.desc())
    ).scalars().all()
    users = _counts_by_tenant(User)
    projects = _counts_by_tenant(Project)
    return [
        {**t.to_dict(), "user_count": users.get(t.id, 0), "project_count": projects.get(t.id, 0)}
        for t in tenants
    ]


def _get_tenant(tenant_id: int) -> Tenant:
    tenant = db.session.get(Tenant, tenant_id)
    if tenant is None:
        raise NotFoundError("Tenant", tenant_id)
    return tenant


def create_tenant(data: dict, created_by: int | None) -> dict:
    """Create a tenant, its first tenant admin and its KPI set."""
    require_fields(data, "name", "slug", "admin_email", "admin_name", "admin_password")
    slug = str(data["slug"]).strip().lower()
    if db.session.execute(select(Tenant.id).where(Tenant.slug == slug)).first():
        raise ConflictError("Tenant", "slug", slug)
    validate_password(data["admin_password"])

    template_id = data.get("template_id") or None
    if template_id:
        kpi_template_service.get_template(template_id)

    tenant = Tenant(name=str(data["name"]).strip(), slug=slug, created_by=created_by)
    db.session.add(tenant)
    db.session.flush()
    db.session.add(User(
        tenant_id=tenant.id,
        email=normalize_email(data["admin_email"]),
        password_hash=hash_password(data["admin_password"]),
        name=str(data["admin_name"]).strip(),
        role="tenant_admin",
    ))
    db.session.commit()

    try:
        created = kpi_template_service.instantiate_for_scope(tenant.id, template_id)
    except ConflictError:
        purge_tenant(tenant.id)
        raise
    logger.info("Tenant %s (%s) created with %d KPI definitions", tenant.id, slug, created)
    return {**tenant.to_dict(), "kpi_count": created}


def get_tenant(tenant_id: int) -> dict:
    tenant = _get_tenant(tenant_id)
    users = db.session.execute(
        select(User).where(User.tenant_id == tenant_id).order_by(User.created_at)
    ).scalars().all()
    projects = db.session.execute(
        select(Project).where(Project.tenant_id == tenant_id).order_by(Project.created_at)
    ).scalars().all()
    return {
        **tenant.to_dict(),
        "user_count": len(users),
        "project_count": len(projects),
        "users": [u.to_dict() for u in users],
        "projects": [p.to_dict() for p in projects],
    }


def update_tenant(tenant_id: int, data: dict) -> dict:
    tenant = _get_tenant(tenant_id)
    if "name" in data:
        require_fields(data, "name")
        tenant.name = str(data["name"]).strip()
    if "status" in data:
        if data["status"] not in Tenant.STATUSES:
            raise ValidationError(
                f"status must be one of: {', '.join(Tenant.STATUSES)}",
                details={"status": "invalid"},
            )
        tenant.status = data["status"]
    db.session.commit()
    logger.info("Tenant %s updated (status=%s)", tenant_id, tenant.status)
    return tenant.to_dict()


def soft_delete_tenant(tenant_id: int) -> None:
    tenant = _get_tenant(tenant_id)
    tenant.status = "deleted"
    db.session.commit()
    logger.info("Tenant %s marked deleted", tenant_id)


def purge_tenant(tenant_id: int) -> None:
    """Permanently delete a tenant and every row it owns."""
    _get_tenant(tenant_id)
    project_ids = select(Project.id).where(Project.tenant_id == tenant_id)

    db.session.execute(delete(KpiActual).where(KpiActual.project_id.in_(project_ids)))
    db.session.execute(delete(KpiTarget).where(KpiTarget.project_id.in_(project_ids)))
    db.session.execute(delete(ProjectMember).where(ProjectMember.project_id.in_(project_ids)))
    db.session.execute(delete(Project).where(Project.tenant_id == tenant_id))
    db.session.execute(delete(KpiDefinition).where(KpiDefinition.tenant_id == tenant_id))
    db.session.execute(delete(TenantInvitation).where(TenantInvitation.tenant_id == tenant_id))
    db.session.execute(delete(User).where(User.tenant_id == tenant_id))
    db.session.execute(delete(Tenant).where(Tenant.id == tenant_id))
    db.session.commit()
    logger.warning("Tenant %s permanently deleted", tenant_id)


# ═════════════════════════════════════════════════════════════════════════
# Invitations
# ═════════════════════════════════════════════════════════════════════════


def create_invitation(tenant_id: int, data: dict) -> dict:
    tenant = _get_tenant(tenant_id)
    if not tenant.is_active:
        raise ConflictError("Tenant", message="Cannot invite users to an inactive tenant")
    require_fields(data, "email")
    role = _validate_tenant_role(data.get("role") or "tenant_admin")

    days = current_app.config.get("INVITATION_EXPIRES_DAYS", 7)
    invitation = TenantInvitation(
        tenant_id=tenant_id,
        email=normalize_email(data["email"]),
        role=role,
        token=generate_invite_token(),
        expires_at=_utcnow() + timedelta(days=days),
    )
    db.session.add(invitation)
    db.session.commit()

    app_url = current_app.config.get("APP_URL", "").rstrip("/")
    logger.info("Invitation %s created for tenant %s", invitation.id, tenant_id)
    return {
        "invitation": {**invitation.to_dict(), "token": invitation.token},
        "invite_url": f"{app_url}/invite/{invitation.token}",
    }


def list_invitations(tenant_id: int) -> list[dict]:
    _get_tenant(tenant_id)
    rows = db.session.execute(
        select(TenantInvitation)
        .where(TenantInvitation.tenant_id == tenant_id)
        .order_by(TenantInvitation.created_at.desc())
    ).scalars().all()
    return [r.to_dict() for r in rows]


# ═════════════════════════════════════════════════════════════════════════
# Users
# ═════════════════════════════════════════════════════════════════════════


def _hand_over_projects(user_id: int) -> None:
    """Give each project the user owns to another member, or delete it.

    The successor is the longest-standing admin, else the longest-standing
    member, and becomes admin. The caller commits.
    """
    owned = db.session.execute(
        select(Project).where(Project.owner_id == user_id)
    ).scalars().all()
    for project in owned:
        successor = db.session.execute(
            select(ProjectMember)
            .where(ProjectMember.project_id == project.id, ProjectMember.user_id != user_id)
            .order_by(
                case((ProjectMember.role == "admin", 0), else_=1),
                ProjectMember.created_at,
                ProjectMember.user_id,
            )
            .limit(1)
        ).scalar_one_or_none()
        if successor is None:
            project_service.purge_project(project.id)
            logger.info("Project %s deleted with its last member %s", project.id, user_id)
        else:
            project.owner_id = successor.user_id
            successor.role = "admin"
            logger.info("Project %s handed over to user %s", project.id, successor.user_id)


def _delete_user(user: User) -> None:
    user_id = user.id
    _hand_over_projects(user_id)
    db.session.execute(delete(ProjectMember).where(ProjectMember.user_id == user_id))
    db.session.delete(user)
    db.session.commit()


def delete_tenant_user(tenant_id: int, user_id: int) -> None:
    user = db.session.get(User, user_id)
    if user is None or user.tenant_id != tenant_id:
        raise NotFoundError("User", user_id, tenant_id)
    _delete_user(user)
    logger.info("User %s removed from tenant %s", user_id, tenant_id)


def list_independent_users() -> list[dict]:
    project_counts = dict(db.session.execute(
        select(Project.owner_id, func.count())
        .where(Project.tenant_id.is_(None))
        .group_by(Project.owner_id)
    ).all())
    users = db.session.execute(
        select(User).where(User.tenant_id.is_(None)).order_by(User.created_at.desc())
    ).scalars().all()
    return [{**u.to_dict(), "project_count": project_counts.get(u.id, 0)} for u in users]


def _get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


def assign_user_to_tenant(user_id: int, data: dict) -> dict:
    """Move an independent user, with the projects they own, into a tenant."""
    require_fields(data, "tenant_id")
    user = _get_user(user_id)
    if user.tenant_id is not None:
        raise ConflictError("User", message="User already belongs to a tenant")
    tenant = _get_tenant(data["tenant_id"])
    if not tenant.is_active:
        raise ConflictError("Tenant", message="Cannot assign users to an inactive tenant")
    role = _validate_tenant_role(data.get("role") or "member")
    if find_user_by_email(user.email, tenant.id) is not None:
        raise ConflictError("User", "email", user.email)

    owned = select(Project.id).where(Project.owner_id == user_id, Project.tenant_id.is_(None))
    shared = db.session.execute(
        select(ProjectMember.project_id)
        .where(ProjectMember.project_id.in_(owned), ProjectMember.user_id != user_id)
        .limit(1)
    ).first()
    if shared is not None:
        raise ConflictError(
            "Project",
            message="User owns projects shared with other users; remove those members first",
        )
    project_ids = db.session.execute(owned).scalars().all()

    user.tenant_id = tenant.id
    user.role = role
    if project_ids:
        # Legacy values reference bare KPI ids; the tenant stores them prefixed.
        prefix = literal(kpi_template_service.scoped_kpi_id(tenant.id, ""), String)
        for model in (KpiTarget, KpiActual):
            db.session.execute(
                model.__table__.update()
                .where(model.project_id.in_(project_ids))
                .values(kpi_id=prefix + model.kpi_id)
            )
        db.session.execute(
            Project.__table__.update()
            .where(Project.id.in_(project_ids))
            .values(tenant_id=tenant.id)
        )
    db.session.commit()
    logger.info(
        "User %s assigned to tenant %s as %s (%d projects moved)",
        user_id, tenant.id, role, len(project_ids),
    )
    return user.to_dict()


def change_user_role(user_id: int, data: dict) -> dict:
    user = _get_user(user_id)
    user.role = _validate_tenant_role(data.get("role"))
    db.session.commit()
    logger.info("User %s tenant role set to %s", user_id, user.role)
    return user.to_dict()


def delete_user(user_id: int) -> None:
    _delete_user(_get_user(user_id))
    logger.info("User %s deleted by super admin", user_id)


# ═════════════════════════════════════════════════════════════════════════
# Stats
# ═════════════════════════════════════════════════════════════════════════


def get_stats() -> dict:
    def count(query):
        return db.session.scalar(query) or 0

    recent = db.session.execute(
        select(Tenant).where(Tenant.status == "active").order_by(Tenant.created_at.desc()).limit(5)
    ).scalars().all()
    return {
        "total_tenants": count(
            select(func.count()).select_from(Tenant).where(Tenant.status == "active")
        ),
        "total_users": count(select(func.count()).select_from(User)),
        "tenant_users": count(
            select(func.count()).select_from(User).where(User.tenant_id.is_not(None))
        ),
        "independent_users": count(
            select(func.count()).select_from(User).where(User.tenant_id.is_(None))
        ),
        "total_projects": count(select(func.count()).select_from(Project)),
        "recent_tenants": [
            {"id": t.id, "name": t.name, "created_at": t.to_dict()["created_at"]} for t in recent
        ],
    }
