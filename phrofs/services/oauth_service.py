"""
services/oauth_service.py
-------------------------
Session-backed OAuth handshake.

The server-side session (signed cookie) only exists to tie a provider
callback back to the request that started it. Stages:

    started → provider_redirected → callback_received
            → user_resolved → token_issued
            ↘ failed (terminal; the client has to start over)

The handshake entry is removed from the session as soon as the callback
arrives, whatever the outcome, so a callback can never be replayed.
Providers are opaque identity sources behind the IdentityProvider interface;
Google is the only one shipped.
"""

import secrets
import time
from enum import Enum
from typing import Any, MutableMapping, Optional
from urllib.parse import urlencode

import httpx

from phrofs.core.config import settings
from phrofs.core.exceptions import NotFound, Unauthorized, UpstreamIdentityFailure
from phrofs.core.logging import get_logger
from phrofs.schemas.user import AssertedProfile

logger = get_logger(__name__)

HANDSHAKE_KEY = "oauth"
SESSION_USER_KEY = "user"


class OAuthStage(str, Enum):
    started = "started"
    provider_redirected = "provider_redirected"
    callback_received = "callback_received"
    user_resolved = "user_resolved"
    token_issued = "token_issued"
    failed = "failed"


class IdentityProvider:
    """Interface for an external identity provider."""

    name: str = ""

    def authorization_url(self, state: str) -> str:
        raise NotImplementedError

    async def fetch_identity(self, code: str) -> AssertedProfile:
        raise NotImplementedError


class GoogleIdentityProvider(IdentityProvider):
    name = "google"

    AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        timeout: float = 10.0,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout = timeout

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": "openid email profile",
            "state": state,
            "prompt": "select_account",
        }
        return f"{self.AUTHORIZE_URL}?{urlencode(params)}"

    async def fetch_identity(self, code: str) -> AssertedProfile:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                token_resp = await client.post(
                    self.TOKEN_URL,
                    data={
                        "code": code,
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "redirect_uri": self.redirect_uri,
                        "grant_type": "authorization_code",
                    },
                )
                token_resp.raise_for_status()
                access_token = token_resp.json().get("access_token")
                if not access_token:
                    raise UpstreamIdentityFailure("Provider did not return an access token")

                info_resp = await client.get(
                    self.USERINFO_URL,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
                info_resp.raise_for_status()
                info = info_resp.json()
        except httpx.HTTPError as exc:
            logger.warning("Identity provider request failed", provider=self.name, error=str(exc))
            raise UpstreamIdentityFailure() from exc

        if not info.get("sub"):
            raise UpstreamIdentityFailure("Provider did not return a subject id")
        return AssertedProfile(
            provider_id=str(info["sub"]),
            email=info.get("email"),
            display_name=info.get("name"),
            photo_path=info.get("picture"),
        )


def build_providers() -> dict[str, IdentityProvider]:
    providers: dict[str, IdentityProvider] = {}
    if settings.GOOGLE_CLIENT_ID and settings.GOOGLE_CLIENT_SECRET:
        providers["google"] = GoogleIdentityProvider(
            client_id=settings.GOOGLE_CLIENT_ID,
            client_secret=settings.GOOGLE_CLIENT_SECRET,
            redirect_uri=settings.GOOGLE_REDIRECT_URI,
        )
    return providers


_providers: dict[str, IdentityProvider] = build_providers()


def get_providers() -> dict[str, IdentityProvider]:
    """FastAPI dependency returning the configured providers by name."""
    return _providers


def lookup_provider(providers: dict[str, IdentityProvider], name: str) -> IdentityProvider:
    provider = providers.get(name)
    if provider is None:
        raise NotFound(f"Unknown sign-in provider '{name}'")
    return provider


# ── Handshake ─────────────────────────────────────────────────────────────────

def start_handshake(
    session: MutableMapping[str, Any],
    provider: IdentityProvider,
    school: str,
) -> str:
    """Record a new handshake in the session and return the provider URL."""
    state = secrets.token_urlsafe(24)
    session[HANDSHAKE_KEY] = {
        "provider": provider.name,
        "state": state,
        "school": school,
        "stage": OAuthStage.started.value,
        "started_at": int(time.time()),
    }
    url = provider.authorization_url(state)
    session[HANDSHAKE_KEY]["stage"] = OAuthStage.provider_redirected.value
    logger.info("OAuth handshake started", provider=provider.name, school=school)
    return url


def receive_callback(
    session: MutableMapping[str, Any],
    provider: IdentityProvider,
    state: Optional[str],
    error: Optional[str] = None,
) -> dict[str, Any]:
    """
    Validate a provider callback against the session's handshake.

    The handshake is consumed here. Any problem moves it to the failed stage
    and raises; the caller must restart from the beginning.
    """
    handshake = session.pop(HANDSHAKE_KEY, None)
    if not handshake or handshake.get("provider") != provider.name:
        fail_handshake(provider.name, "no handshake in progress")
        raise Unauthorized("No sign-in in progress; please start again")

    age = int(time.time()) - int(handshake.get("started_at", 0))
    if age > settings.SESSION_MAX_AGE_SECONDS:
        fail_handshake(provider.name, "handshake expired")
        raise Unauthorized("Sign-in took too long; please start again")

    if error:
        fail_handshake(provider.name, f"provider error: {error}")
        raise UpstreamIdentityFailure(f"Sign-in was not completed: {error}")

    if not state or not secrets.compare_digest(str(state), str(handshake.get("state", ""))):
        fail_handshake(provider.name, "state mismatch")
        raise Unauthorized("Sign-in state mismatch; please start again")

    handshake["stage"] = OAuthStage.callback_received.value
    return handshake


def fail_handshake(provider: str, reason: str) -> None:
    logger.warning(
        "OAuth handshake failed",
        provider=provider,
        stage=OAuthStage.failed.value,
        reason=reason,
    )


def remember_session_user(session: MutableMapping[str, Any], user_id: int, school: str) -> None:
    session[SESSION_USER_KEY] = {"id": user_id, "school": school}
