"""
Pytest configuration and fixtures for the PHROFS backend tests.

Every test gets its own set of school stores under tmp_path. The app's
registry and identity-provider dependencies are overridden, so no test
touches ./databases or talks to a real provider.
"""

import os
from urllib.parse import parse_qs, urlencode, urlparse

import pytest

# Settings are read at import time, so the environment has to be ready first
os.environ["SECRET_KEY"] = "test-secret-key-not-for-production"
os.environ["ADMIN_PASSWORD"] = "admin-pw"
os.environ["MODERATOR_PASSWORD"] = "moderator-pw"
os.environ["VIEWER_PASSWORD"] = "viewer-pw"
os.environ["APP_ENV"] = "test"

from fastapi.testclient import TestClient  # noqa: E402

from init_stores import seed_store  # noqa: E402
from main import app  # noqa: E402
from phrofs.core.config import settings  # noqa: E402
from phrofs.core.exceptions import UpstreamIdentityFailure  # noqa: E402
from phrofs.db.registry import TenantStoreRegistry, get_registry  # noqa: E402
from phrofs.schemas.user import AssertedProfile  # noqa: E402
from phrofs.services.oauth_service import IdentityProvider, get_providers  # noqa: E402

SCHOOLS = ["dlsu", "ateneo", "up", "benilde"]


class FakeIdentityProvider(IdentityProvider):
    """In-memory identity provider: an authorization code maps to a profile."""

    name = "fake"

    def __init__(self):
        self.profiles: dict[str, AssertedProfile] = {}

    def authorization_url(self, state: str) -> str:
        return f"https://idp.test/authorize?{urlencode({'state': state})}"

    async def fetch_identity(self, code: str) -> AssertedProfile:
        if code not in self.profiles:
            raise UpstreamIdentityFailure("Unknown authorization code")
        return self.profiles[code]


def make_registry(base_dir) -> TenantStoreRegistry:
    return TenantStoreRegistry(base_dir=base_dir, schools=SCHOOLS, default_school="dlsu")


@pytest.fixture
async def registry(tmp_path):
    """A registry for direct service-level tests."""
    stores = make_registry(tmp_path / "databases")
    yield stores
    await stores.dispose()


@pytest.fixture
def identity_provider():
    return FakeIdentityProvider()


@pytest.fixture
def stores(tmp_path):
    """The registry the app under test uses."""
    return make_registry(tmp_path / "app-databases")


@pytest.fixture
def client(stores, identity_provider, tmp_path, monkeypatch):
    """Test client wired to per-test stores, uploads and identity provider."""
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path / "uploads"))
    app.dependency_overrides[get_registry] = lambda: stores
    app.dependency_overrides[get_providers] = lambda: {identity_provider.name: identity_provider}
    with TestClient(app) as test_client:
        yield test_client
        test_client.portal.call(stores.dispose)
    app.dependency_overrides.clear()


@pytest.fixture
def run(client):
    """Run a coroutine function on the app's event loop: run(fn, *args)."""

    def _run(fn, *args):
        return client.portal.call(fn, *args)

    return _run


@pytest.fixture
def seeded(stores, run):
    """Seed the sample subjects and professors into a school's store."""

    async def _seed(school):
        async with stores.session(school) as db:
            await seed_store(db, school)

    def _seeded(school: str = "dlsu"):
        run(_seed, school)

    _seeded()
    return _seeded


@pytest.fixture
def start_sign_in(client, identity_provider):
    """Begin an OAuth handshake and return the state the provider would echo."""

    def _start(school: str = "dlsu") -> str:
        response = client.get(
            f"/auth/{identity_provider.name}",
            params={"school": school},
            follow_redirects=False,
        )
        assert response.status_code == 302
        return parse_qs(urlparse(response.headers["location"]).query)["state"][0]

    return _start


@pytest.fixture
def sign_in(client, identity_provider, start_sign_in):
    """
    Complete a full OAuth sign-in and return the issued token.
    Cookies are cleared afterwards so later requests rely on the token only.
    """

    def _sign_in(
        school: str = "dlsu",
        code: str = "alice",
        profile: AssertedProfile | None = None,
    ) -> str:
        if profile is not None:
            identity_provider.profiles[code] = profile
        identity_provider.profiles.setdefault(
            code,
            AssertedProfile(
                provider_id=f"sub-{code}",
                email=f"{code}@example.edu",
                display_name=code.title(),
            ),
        )
        state = start_sign_in(school)
        response = client.get(
            f"/auth/{identity_provider.name}/callback",
            params={"code": code, "state": state},
            follow_redirects=False,
        )
        assert response.status_code == 303, response.text
        query = parse_qs(urlparse(response.headers["location"]).query)
        assert query["school"] == [school]
        client.cookies.clear()
        return query["token"][0]

    return _sign_in
