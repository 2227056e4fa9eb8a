"""
core/security.py
----------------
Password hashing and JWT token utilities.

Design decisions:
  - Two token kinds share one signing key, told apart by the 'typ' claim:
      user  → sub (user id) + school, for tenant-bound API calls
      admin → role only, for the cross-tenant admin surface
  - The school claim is checked against the tenant being accessed on every
    request; a valid signature alone is not enough.
  - bcrypt hashes are only used by the legacy school-id/password login.
"""

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from phrofs.core.config import settings
from phrofs.core.exceptions import Unauthorized

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=10)

USER_TOKEN = "user"
ADMIN_TOKEN = "admin"


class AdminRole(str, Enum):
    viewer = "viewer"
    moderator = "moderator"
    admin = "admin"

    @property
    def rank(self) -> int:
        return _ROLE_RANK[self]

    def allows(self, required: "AdminRole") -> bool:
        return self.rank >= required.rank


_ROLE_RANK = {AdminRole.viewer: 1, AdminRole.moderator: 2, AdminRole.admin: 3}


@dataclass(frozen=True)
class TokenIdentity:
    user_id: int
    school: str


@dataclass(frozen=True)
class AdminPrincipal:
    role: AdminRole
    via: str  # "token" | "password"


# ── Password Utilities ────────────────────────────────────────────────────────

def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the plain-text password."""
    return pwd_context.hash(plain)


def verify_password(plain: str, hashed: Optional[str]) -> bool:
    """Constant-time comparison of plain password against stored hash."""
    if not hashed:
        return False
    return pwd_context.verify(plain, hashed)


def role_for_password(password: str) -> Optional[AdminRole]:
    """Map a legacy shared admin password to its role, or None."""
    for role, expected in settings.role_passwords().items():
        if secrets.compare_digest(password.encode(), expected.encode()):
            return AdminRole(role)
    return None


# ── JWT Utilities ─────────────────────────────────────────────────────────────

def _encode(claims: Dict[str, Any], expires_delta: timedelta) -> str:
    now = datetime.now(timezone.utc)
    payload = {**claims, "iat": now, "exp": now + expires_delta}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_access_token(
    user_id: int,
    school: str,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Mint a user token bound to one school.

    Args:
        user_id: Tenant-local user id (stored in 'sub' claim).
        school: Tenant key the user id belongs to.
        expires_delta: Optional custom expiry; defaults to settings value.
    """
    return _encode(
        {"sub": str(user_id), "school": school, "typ": USER_TOKEN},
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def create_admin_token(role: AdminRole, expires_delta: Optional[timedelta] = None) -> str:
    return _encode(
        {"sub": "admin", "role": role.value, "typ": ADMIN_TOKEN},
        expires_delta or timedelta(minutes=settings.ADMIN_TOKEN_EXPIRE_MINUTES),
    )


def decode_access_token(token: str) -> Dict[str, Any]:
    """
    Decode and validate a JWT.

    Raises:
        JWTError: If the token is invalid, expired, or tampered with.
    """
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])


def verify_user_token(token: str) -> TokenIdentity:
    """Return the identity carried by a user token or raise Unauthorized."""
    try:
        payload = decode_access_token(token)
    except JWTError as exc:
        raise Unauthorized() from exc
    if payload.get("typ") != USER_TOKEN:
        raise Unauthorized()
    try:
        user_id = int(payload["sub"])
        school = str(payload["school"])
    except (KeyError, TypeError, ValueError) as exc:
        raise Unauthorized() from exc
    return TokenIdentity(user_id=user_id, school=school)


def verify_admin_token(token: str) -> AdminPrincipal:
    try:
        payload = decode_access_token(token)
    except JWTError as exc:
        raise Unauthorized() from exc
    if payload.get("typ") != ADMIN_TOKEN:
        raise Unauthorized()
    try:
        role = AdminRole(payload.get("role"))
    except ValueError as exc:
        raise Unauthorized() from exc
    return AdminPrincipal(role=role, via="token")
