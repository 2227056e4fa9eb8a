"""
api/routes/auth.py
------------------
Authentication and profile endpoints.

POST /auth/login               — Legacy school-id/password login → token.
POST /auth/signup              — Removed (410); accounts come from OAuth.
GET  /auth/{provider}          — Start an OAuth handshake (redirect).
GET  /auth/{provider}/callback — Finish it: resolve the user, issue a token
                                 and hand it back via redirect.
POST /auth/logout              — Forget the session user.
GET  /me                       — The authenticated user's profile.
POST /me                       — Partial profile update.
"""

from datetime import timedelta
from typing import Annotated, Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from phrofs.core.config import settings
from phrofs.core.exceptions import Gone, Unauthorized, UpstreamIdentityFailure
from phrofs.core.logging import get_logger
from phrofs.core.security import create_access_token
from phrofs.db.registry import TenantResolution, TenantStoreRegistry, get_registry
from phrofs.db.session import get_db, get_tenant
from phrofs.dependencies import get_current_user
from phrofs.models.user import User
from phrofs.schemas.user import (
    LoginRequest,
    MeResponse,
    ProfileUpdate,
    TokenResponse,
    UserRead,
)
from phrofs.services.oauth_service import (
    HANDSHAKE_KEY,
    SESSION_USER_KEY,
    IdentityProvider,
    OAuthStage,
    fail_handshake,
    get_providers,
    lookup_provider,
    receive_callback,
    remember_session_user,
    start_handshake,
)
from phrofs.services.user_service import UserService

logger = get_logger(__name__)

router = APIRouter(tags=["Authentication"])


@router.post(
    "/auth/login",
    response_model=TokenResponse,
    summary="Login with school id / email and password",
)
async def login(
    body: LoginRequest,
    tenant: Annotated[TenantResolution, Depends(get_tenant)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> TokenResponse:
    user = await UserService.authenticate(db, body.school_id_or_email, body.password)
    if user is None:
        raise Unauthorized("Invalid credentials")

    expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    token = create_access_token(user.id, tenant.tenant, expires_delta=expires)
    return TokenResponse(
        token=token,
        expires_in=int(expires.total_seconds()),
        school=tenant.tenant,
        user=UserRead.model_validate(user),
    )


@router.post(
    "/auth/signup",
    status_code=status.HTTP_410_GONE,
    summary="Removed: password signup",
)
async def signup() -> None:
    raise Gone("Password signup has been removed; sign in with Google instead")


@router.post("/auth/logout", summary="Forget the signed-in session user")
async def logout(request: Request) -> dict:
    request.session.pop(SESSION_USER_KEY, None)
    request.session.pop(HANDSHAKE_KEY, None)
    return {"ok": True}


@router.get(
    "/auth/{provider}",
    summary="Start sign-in with an external identity provider",
    response_class=RedirectResponse,
    status_code=status.HTTP_302_FOUND,
)
async def oauth_start(
    provider: str,
    request: Request,
    tenant: Annotated[TenantResolution, Depends(get_tenant)],
    providers: Annotated[dict[str, IdentityProvider], Depends(get_providers)],
) -> RedirectResponse:
    idp = lookup_provider(providers, provider)
    url = start_handshake(request.session, idp, tenant.tenant)
    return RedirectResponse(url, status_code=status.HTTP_302_FOUND)


@router.get(
    "/auth/{provider}/callback",
    summary="Identity provider callback",
    response_class=RedirectResponse,
    status_code=status.HTTP_303_SEE_OTHER,
)
async def oauth_callback(
    provider: str,
    request: Request,
    registry: Annotated[TenantStoreRegistry, Depends(get_registry)],
    providers: Annotated[dict[str, IdentityProvider], Depends(get_providers)],
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
) -> RedirectResponse:
    """
    The school comes from the handshake stored in the session, not from the
    callback URL, so a callback cannot be redirected into another school.
    """
    idp = lookup_provider(providers, provider)
    handshake = receive_callback(request.session, idp, state, error)
    school = handshake["school"]

    if not code:
        fail_handshake(idp.name, "missing authorization code")
        raise UpstreamIdentityFailure("Provider returned no authorization code")
    try:
        profile = await idp.fetch_identity(code)
    except UpstreamIdentityFailure:
        fail_handshake(idp.name, "identity fetch failed")
        raise

    async with registry.session(school) as db:
        user, created = await UserService.find_or_create_oauth_user(db, idp.name, profile)
    logger.info(
        "OAuth user resolved",
        provider=idp.name,
        school=school,
        user_id=user.id,
        created=created,
        stage=OAuthStage.user_resolved.value,
    )

    token = create_access_token(user.id, school)
    remember_session_user(request.session, user.id, school)
    logger.info("OAuth token issued", school=school, user_id=user.id, stage=OAuthStage.token_issued.value)

    target = f"{settings.OAUTH_SUCCESS_REDIRECT}?{urlencode({'token': token, 'school': school})}"
    return RedirectResponse(target, status_code=status.HTTP_303_SEE_OTHER)


@router.get("/me", response_model=MeResponse, summary="Get the current user")
async def get_me(
    current_user: Annotated[User, Depends(get_current_user)],
    tenant: Annotated[TenantResolution, Depends(get_tenant)],
) -> MeResponse:
    return MeResponse(user=UserRead.model_validate(current_user), school=tenant.tenant)


@router.post("/me", response_model=MeResponse, summary="Update the current user's profile")
async def update_me(
    body: ProfileUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    tenant: Annotated[TenantResolution, Depends(get_tenant)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> MeResponse:
    """Fields left out of the body keep their stored values."""
    user = await UserService.update_profile(db, current_user, body)
    return MeResponse(user=UserRead.model_validate(user), school=tenant.tenant)
