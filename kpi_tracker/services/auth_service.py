"""
User authentication — registration, login, account deletion and invitation
redemption.

Rules:
  - Login failures use one message whatever the cause, so responses never
    reveal whether an email is registered.
  - Invitation lookups and redemption failures use one message for unknown,
    expired and already-used tokens.
  - Redemption marks the invitation used with a conditional UPDATE in the same
    transaction that creates the user; either both persist or neither does.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError

from kpi_tracker.core.exceptions import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from kpi_tracker.models import db
from kpi_tracker.models.auth import Tenant, TenantInvitation, User
from kpi_tracker.models.project import Project, ProjectMember
from kpi_tracker.services.jwt_service import generate_access_token
from kpi_tracker.utils.crypto import hash_password, verify_password
from kpi_tracker.utils.helpers import normalize_email, require_fields

logger = logging.getLogger(__name__)

LOGIN_FAILED = "Invalid email or password"
INVITATION_INVALID = "Invalid or expired invitation"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite returns naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def validate_password(password, confirm=None) -> str:
    min_length = current_app.config.get("PASSWORD_MIN_LENGTH", 6)
    if not isinstance(password, str) or len(password) < min_length:
        raise ValidationError(
            f"Password must be at least {min_length} characters",
            details={"password": "too_short"},
        )
    if confirm is not None and confirm != password:
        raise ValidationError("Passwords do not match", details={"confirm_password": "mismatch"})
    return password


def find_user_by_email(email: str, tenant_id: int | None) -> User | None:
    query = select(User).where(func.lower(User.email) == normalize_email(email))
    if tenant_id is None:
        query = query.where(User.tenant_id.is_(None))
    else:
        query = query.where(User.tenant_id == tenant_id)
    return db.session.execute(query).scalar_one_or_none()


def session_payload(user: User) -> dict:
    """Token plus the user and tenant the client needs after sign-in."""
    tenant = db.session.get(Tenant, user.tenant_id) if user.tenant_id else None
    return {
        "token": generate_access_token(user.id, user.tenant_id, user.role),
        "user": user.to_dict(),
        "tenant": tenant.to_dict() if tenant else None,
    }


# ── Registration / login ─────────────────────────────────────────────────


def register(data: dict) -> dict:
    """Create an independent (tenant-less) user and sign them in."""
    require_fields(data, "email", "password", "name")
    email = normalize_email(data["email"])
    validate_password(data["password"], data.get("confirm_password"))

    if find_user_by_email(email, None) is not None:
        raise ConflictError("User", "email", email)

    user = User(
        tenant_id=None,
        email=email,
        password_hash=hash_password(data["password"]),
        name=str(data["name"]).strip(),
        role="member",
    )
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError("User", "email", email) from exc

    logger.info("Independent user registered: id=%s", user.id)
    return session_payload(user)


def login(data: dict) -> dict:
    """Authenticate by email and password (tenant users also pass ``tenant_slug``)."""
    email = normalize_email(data.get("email"))
    password = data.get("password") or ""
    slug = (data.get("tenant_slug") or "").strip()

    tenant = None
    if slug:
        tenant = db.session.execute(
            select(Tenant).where(Tenant.slug == slug)
        ).scalar_one_or_none()
        if tenant is None:
            raise AuthenticationError(LOGIN_FAILED)

    user = find_user_by_email(email, tenant.id if tenant else None) if email else None
    if user is None or not verify_password(password, user.password_hash):
        logger.info("Failed login attempt (tenant=%s)", slug or None)
        raise AuthenticationError(LOGIN_FAILED)

    if tenant is not None and not tenant.is_active:
        raise AuthenticationError(LOGIN_FAILED)

    return session_payload(user)


def get_me(user_id: int) -> dict:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    tenant = db.session.get(Tenant, user.tenant_id) if user.tenant_id else None
    return {"user": user.to_dict(), "tenant": tenant.to_dict() if tenant else None}


def delete_account(user_id: int, password: str) -> None:
    """Self-service account deletion; blocked while the user owns projects."""
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    if not verify_password(password or "", user.password_hash):
        raise ValidationError("Password is incorrect", details={"password": "invalid"})

    owned = db.session.scalar(
        select(func.count()).select_from(Project).where(Project.owner_id == user_id)
    )
    if owned:
        raise ConflictError(
            "User",
            message="Transfer or delete your projects before deleting your account",
        )

    db.session.execute(delete(ProjectMember).where(ProjectMember.user_id == user_id))
    db.session.delete(user)
    db.session.commit()
    logger.info("User %s deleted their account", user_id)


# ── Invitations ──────────────────────────────────────────────────────────


def _valid_invitation(token: str) -> TenantInvitation:
    invitation = None
    if token:
        invitation = db.session.execute(
            select(TenantInvitation).where(TenantInvitation.token == token)
        ).scalar_one_or_none()
    if (
        invitation is None
        or invitation.used_at is not None
        or _as_utc(invitation.expires_at) <= _utcnow()
    ):
        raise NotFoundError("TenantInvitation", message=INVITATION_INVALID)
    tenant = db.session.get(Tenant, invitation.tenant_id)
    if tenant is None or not tenant.is_active:
        raise NotFoundError("TenantInvitation", message=INVITATION_INVALID)
    return invitation


def get_invitation(token: str) -> dict:
    invitation = _valid_invitation(token)
    return {
        "email": invitation.email,
        "role": invitation.role,
        "tenant_name": invitation.tenant.name,
        "expires_at": invitation.expires_at.isoformat(),
    }


def register_by_invitation(data: dict) -> dict:
    """Redeem an invitation: create the tenant user and sign them in."""
    require_fields(data, "token", "password", "name")
    validate_password(data["password"], data.get("confirm_password"))

    invitation = _valid_invitation(str(data["token"]))
    if find_user_by_email(invitation.email, invitation.tenant_id) is not None:
        raise ConflictError("User", "email", invitation.email)

    claimed = db.session.execute(
        update(TenantInvitation)
        .where(TenantInvitation.id == invitation.id, TenantInvitation.used_at.is_(None))
        .values(used_at=_utcnow())
    )
    if claimed.rowcount != 1:
        db.session.rollback()
        raise NotFoundError("TenantInvitation", message=INVITATION_INVALID)

    user = User(
        tenant_id=invitation.tenant_id,
        email=normalize_email(invitation.email),
        password_hash=hash_password(data["password"]),
        name=str(data["name"]).strip(),
        role=invitation.role,
    )
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError("User", "email", invitation.email) from exc

    logger.info("Invitation %s redeemed by user %s (tenant=%s)", invitation.id, user.id, user.tenant_id)
    return session_payload(user)
