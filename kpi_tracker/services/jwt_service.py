"""
JWT Service — session token generation and verification.

Two token families, never interchangeable:

User token (JWT_SECRET_KEY, 7 days by default):
{
    "sub": "<user_id>",
    "tenant_id": <tenant_id | null>,
    "tenant_role": "tenant_admin" | "member",
    "type": "access",
    "iat", "exp", "jti"
}

Super-admin token (SUPER_ADMIN_SECRET_KEY, 24 hours by default):
{
    "sub": "<super_admin_id>",
    "is_super_admin": true,
    "type": "super_admin",
    "iat", "exp", "jti"
}

Algorithm: HS256. Decoders check the type claim and the super-admin flag in
addition to the signature.
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app


# ─── Defaults ────────────────────────────────────────────────
DEFAULT_ACCESS_EXPIRES = 7 * 24 * 3600      # 7 days
DEFAULT_SUPER_ADMIN_EXPIRES = 24 * 3600     # 24 hours
ALGORITHM = "HS256"

ACCESS_TYPE = "access"
SUPER_ADMIN_TYPE = "super_admin"


def _get_secret():
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def _get_super_admin_secret():
    return current_app.config["SUPER_ADMIN_SECRET_KEY"]


# ═══════════════════════════════════════════════════════════════
# Token Generation
# ═══════════════════════════════════════════════════════════════
def generate_access_token(user_id: int, tenant_id: int | None, tenant_role: str) -> str:
    """Generate a session token for a tenant or independent user."""
    now = datetime.now(timezone.utc)
    expires = current_app.config.get("JWT_ACCESS_EXPIRES", DEFAULT_ACCESS_EXPIRES)
    payload = {
        "sub": str(user_id),
        "tenant_id": tenant_id,
        "tenant_role": tenant_role,
        "type": ACCESS_TYPE,
        "iat": now,
        "exp": now + timedelta(seconds=expires),
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, _get_secret(), algorithm=ALGORITHM)


def generate_super_admin_token(admin_id: int) -> str:
    """Generate a session token for a platform super-admin."""
    now = datetime.now(timezone.utc)
    expires = current_app.config.get("SUPER_ADMIN_TOKEN_EXPIRES", DEFAULT_SUPER_ADMIN_EXPIRES)
    payload = {
        "sub": str(admin_id),
        "is_super_admin": True,
        "type": SUPER_ADMIN_TYPE,
        "iat": now,
        "exp": now + timedelta(seconds=expires),
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, _get_super_admin_secret(), algorithm=ALGORITHM)


# ═══════════════════════════════════════════════════════════════
# Token Verification
# ═══════════════════════════════════════════════════════════════
def decode_access_token(token: str) -> dict:
    """
    Decode and verify a user session token.

    Raises jwt.InvalidTokenError (or a subclass such as ExpiredSignatureError)
    when the signature, expiry, type or super-admin flag is wrong.
    """
    payload = jwt.decode(
        token, _get_secret(), algorithms=[ALGORITHM], options={"require": ["exp", "sub"]}
    )
    if payload.get("type") != ACCESS_TYPE:
        raise jwt.InvalidTokenError(f"Expected {ACCESS_TYPE} token, got {payload.get('type')}")
    if payload.get("is_super_admin"):
        raise jwt.InvalidTokenError("Super-admin token presented as a user token")
    return payload


def decode_super_admin_token(token: str) -> dict:
    """Decode and verify a super-admin token; the flag must be present and true."""
    payload = jwt.decode(
        token, _get_super_admin_secret(), algorithms=[ALGORITHM],
        options={"require": ["exp", "sub"]},
    )
    if payload.get("type") != SUPER_ADMIN_TYPE or payload.get("is_super_admin") is not True:
        raise jwt.InvalidTokenError("Not a super-admin token")
    return payload
