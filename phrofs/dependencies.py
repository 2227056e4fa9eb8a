"""
dependencies.py
---------------
FastAPI dependency injection functions for authentication and authorisation.

User identity flow:
  1. OAuth2PasswordBearer extracts the Bearer token, if any.
  2. With a token: verify_user_token validates signature, expiry and kind.
     Without one: the session user recorded at the end of an OAuth sign-in
     is used instead. Both paths produce the same TokenIdentity.
  3. The identity's school must equal the school resolved for the request;
     a token minted for another school is rejected even when its signature
     is valid.
  4. get_current_user loads the User row from that school's store.

Admin flow:
  Two adapters produce one AdminPrincipal: the legacy X-Admin-Password
  header (password → role) and an admin bearer token (token → role).
  require_role() is the single role check used by every admin route.
"""

from typing import Annotated, Optional

from fastapi import Depends, Header, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from phrofs.core.exceptions import Forbidden, Unauthorized
from phrofs.core.logging import get_logger
from phrofs.core.security import (
    AdminPrincipal,
    AdminRole,
    TokenIdentity,
    role_for_password,
    verify_admin_token,
    verify_user_token,
)
from phrofs.db.registry import TenantResolution
from phrofs.db.session import get_db, get_tenant
from phrofs.models.user import User
from phrofs.services.oauth_service import SESSION_USER_KEY
from phrofs.services.user_service import UserService

logger = get_logger(__name__)

# tokenUrl must match the login endpoint path
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


def _session_identity(request: Request) -> Optional[TokenIdentity]:
    if "session" not in request.scope:
        return None
    data = request.session.get(SESSION_USER_KEY)
    if not isinstance(data, dict):
        return None
    try:
        return TokenIdentity(user_id=int(data["id"]), school=str(data["school"]))
    except (KeyError, TypeError, ValueError):
        return None


async def get_optional_identity(
    request: Request,
    tenant: Annotated[TenantResolution, Depends(get_tenant)],
    token: Annotated[Optional[str], Depends(oauth2_scheme)],
) -> Optional[TokenIdentity]:
    """
    Resolve the caller if they presented any identity, else None.
    A presented but invalid or foreign-school identity is still rejected.
    """
    identity = verify_user_token(token) if token else _session_identity(request)
    if identity is None:
        return None
    if identity.school != tenant.tenant:
        logger.warning(
            "Identity used against another school",
            identity_school=identity.school,
            requested_school=tenant.tenant,
        )
        raise Unauthorized("Credentials are not valid for this school")
    return identity


async def get_current_identity(
    identity: Annotated[Optional[TokenIdentity], Depends(get_optional_identity)],
) -> TokenIdentity:
    if identity is None:
        raise Unauthorized("Authentication required")
    return identity


async def get_current_user(
    identity: Annotated[TokenIdentity, Depends(get_current_identity)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """
    Load the authenticated User from the request's school store.
    Raises 401 if the user no longer exists there.
    """
    user = await UserService.get_user(db, identity.user_id)
    if user is None:
        logger.warning("User from valid identity not found", user_id=identity.user_id)
        raise Unauthorized()
    return user


async def get_optional_user(
    identity: Annotated[Optional[TokenIdentity], Depends(get_optional_identity)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Optional[User]:
    if identity is None:
        return None
    user = await UserService.get_user(db, identity.user_id)
    if user is None:
        raise Unauthorized()
    return user


# ── Admin ─────────────────────────────────────────────────────────────────────

async def get_admin_principal(
    token: Annotated[Optional[str], Depends(oauth2_scheme)],
    x_admin_password: Annotated[Optional[str], Header()] = None,
) -> AdminPrincipal:
    if x_admin_password:
        role = role_for_password(x_admin_password)
        if role is None:
            logger.warning("Rejected admin password")
            raise Unauthorized("Invalid admin password")
        return AdminPrincipal(role=role, via="password")
    if token:
        return verify_admin_token(token)
    raise Unauthorized("Admin credentials required")


def require_role(required: AdminRole):
    """Build a dependency that admits principals at or above `required`."""

    async def dependency(
        principal: Annotated[AdminPrincipal, Depends(get_admin_principal)],
    ) -> AdminPrincipal:
        if not principal.role.allows(required):
            raise Forbidden(f"{required.value} role required")
        return principal

    return dependency
