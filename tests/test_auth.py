"""
Tests for sign-in, the OAuth handshake and profile endpoints.
"""

import pytest
from sqlalchemy import func, select

from phrofs.core.config import settings
from phrofs.core.security import AdminRole, create_admin_token, hash_password
from phrofs.models.user import User
from phrofs.schemas.user import AssertedProfile
from phrofs.services.user_service import UserService
from tests.helpers import bearer


@pytest.fixture
def legacy_user(stores, run):
    """A school-id/password account as created by the old signup flow."""

    async def _create():
        async with stores.session("dlsu") as db:
            db.add(
                User(
                    school_id_or_email="11812345",
                    password_hash=hash_password("correct-horse"),
                    display_name="Legacy Student",
                )
            )
            await db.commit()

    run(_create)


class TestLegacyLogin:

    def test_login_returns_school_bound_token(self, client, legacy_user):
        response = client.post(
            "/auth/login", json={"school_id_or_email": "11812345", "password": "correct-horse"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["school"] == "dlsu"
        assert body["user"]["display_name"] == "Legacy Student"
        assert "password_hash" not in body["user"]

        me = client.get("/me", headers=bearer(body["token"]))
        assert me.json()["user"]["school_id_or_email"] == "11812345"

    def test_wrong_password(self, client, legacy_user):
        response = client.post(
            "/auth/login", json={"school_id_or_email": "11812345", "password": "wrong"}
        )
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid credentials"}

    def test_account_is_per_school(self, client, legacy_user):
        response = client.post(
            "/auth/login",
            params={"school": "ateneo"},
            json={"school_id_or_email": "11812345", "password": "correct-horse"},
        )
        assert response.status_code == 401

    def test_signup_is_gone(self, client):
        response = client.post("/auth/signup", json={"school_id_or_email": "x", "password": "y"})
        assert response.status_code == 410
        assert "error" in response.json()


class TestOAuthHandshake:
    """started → provider_redirected → callback_received → user_resolved → token_issued"""

    def _callback(self, client, **params):
        return client.get("/auth/fake/callback", params=params, follow_redirects=False)

    def test_start_redirects_to_provider(self, client):
        response = client.get("/auth/fake", params={"school": "up"}, follow_redirects=False)

        assert response.status_code == 302
        assert response.headers["location"].startswith("https://idp.test/authorize?state=")

    def test_session_cookie_is_short_lived(self, client):
        response = client.get("/auth/fake", follow_redirects=False)

        assert f"Max-Age={settings.SESSION_MAX_AGE_SECONDS}" in response.headers["set-cookie"]

    def test_unknown_provider(self, client):
        response = client.get("/auth/myspace", follow_redirects=False)
        assert response.status_code == 404

    def test_success_redirect_carries_token(self, client, identity_provider, start_sign_in):
        identity_provider.profiles["code-1"] = AssertedProfile(provider_id="g-1", display_name="Ana")
        state = start_sign_in("benilde")

        response = self._callback(client, code="code-1", state=state)

        assert response.status_code == 303
        location = response.headers["location"]
        assert location.startswith(settings.OAUTH_SUCCESS_REDIRECT + "?")
        assert "token=" in location
        assert "school=benilde" in location

    def test_session_user_is_remembered(self, client, identity_provider, start_sign_in):
        identity_provider.profiles["code-1"] = AssertedProfile(provider_id="g-1", display_name="Ana")
        state = start_sign_in("benilde")
        self._callback(client, code="code-1", state=state)

        me = client.get("/me", params={"school": "benilde"})
        assert me.status_code == 200
        assert me.json()["user"]["display_name"] == "Ana"

        client.post("/auth/logout")
        assert client.get("/me", params={"school": "benilde"}).status_code == 401

    def test_state_mismatch(self, client, identity_provider, start_sign_in):
        identity_provider.profiles["code-1"] = AssertedProfile(provider_id="g-1")
        start_sign_in()

        response = self._callback(client, code="code-1", state="forged")

        assert response.status_code == 401
        assert "error" in response.json()

    def test_callback_without_handshake(self, client):
        response = self._callback(client, code="code-1", state="anything")
        assert response.status_code == 401

    def test_provider_error(self, client, start_sign_in):
        state = start_sign_in()

        response = self._callback(client, state=state, error="access_denied")

        assert response.status_code == 502
        assert "access_denied" in response.json()["error"]

    def test_identity_fetch_failure(self, client, start_sign_in):
        state = start_sign_in()

        response = self._callback(client, code="unknown-code", state=state)

        assert response.status_code == 502

    def test_callback_cannot_be_replayed(self, client, identity_provider, start_sign_in):
        identity_provider.profiles["code-1"] = AssertedProfile(provider_id="g-1")
        state = start_sign_in()

        first = self._callback(client, code="code-1", state=state)
        second = self._callback(client, code="code-1", state=state)

        assert first.status_code == 303
        assert second.status_code == 401

    def test_failed_handshake_must_restart(self, client, identity_provider, start_sign_in):
        identity_provider.profiles["code-1"] = AssertedProfile(provider_id="g-1")
        state = start_sign_in()
        self._callback(client, code="code-1", state="forged")

        response = self._callback(client, code="code-1", state=state)

        assert response.status_code == 401

    def test_expired_handshake(self, client, identity_provider, start_sign_in, monkeypatch):
        identity_provider.profiles["code-1"] = AssertedProfile(provider_id="g-1")
        state = start_sign_in()
        monkeypatch.setattr(settings, "SESSION_MAX_AGE_SECONDS", -1)

        response = self._callback(client, code="code-1", state=state)

        assert response.status_code == 401

    def test_callback_school_comes_from_handshake(self, client, identity_provider, start_sign_in):
        identity_provider.profiles["code-1"] = AssertedProfile(provider_id="g-1")
        state = start_sign_in("ateneo")

        response = self._callback(client, code="code-1", state=state, school="dlsu")

        assert "school=ateneo" in response.headers["location"]


class TestOAuthUserResolution:
    """Repeated sign-ins resolve to one user and only fill in empty fields"""

    def _me(self, client, token, school="dlsu"):
        return client.get("/me", params={"school": school}, headers=bearer(token)).json()["user"]

    def test_same_identity_same_user(self, client, sign_in):
        first = self._me(client, sign_in(code="alice"))
        second = self._me(client, sign_in(code="alice"))

        assert first["id"] == second["id"]

    def test_distinct_identities_distinct_users(self, client, sign_in):
        alice = self._me(client, sign_in(code="alice"))
        bob = self._me(client, sign_in(code="bob"))

        assert alice["id"] != bob["id"]

    def test_same_identity_in_two_schools(self, client, sign_in):
        dlsu = self._me(client, sign_in(school="dlsu", code="alice"))
        up = self._me(client, sign_in(school="up", code="alice"), school="up")

        # Separate stores, separate rows
        assert dlsu["provider"] == up["provider"] == "fake"

    def test_photo_backfill_never_reverts(self, client, sign_in):
        bare = AssertedProfile(provider_id="g-7", display_name="Carla")
        with_photo = AssertedProfile(
            provider_id="g-7", display_name="Carla", photo_path="https://img.test/carla.png"
        )

        assert self._me(client, sign_in(code="c1", profile=bare))["photo_path"] is None
        assert self._me(client, sign_in(code="c2", profile=with_photo))["photo_path"] == "https://img.test/carla.png"
        assert self._me(client, sign_in(code="c3", profile=bare))["photo_path"] == "https://img.test/carla.png"

    def test_existing_values_are_not_overwritten(self, client, sign_in):
        token = sign_in(code="d1", profile=AssertedProfile(provider_id="g-8", display_name="Dan"))
        client.post("/me", json={"display_name": "Daniel R."}, headers=bearer(token))

        token = sign_in(code="d2", profile=AssertedProfile(provider_id="g-8", display_name="Dan"))

        assert self._me(client, token)["display_name"] == "Daniel R."


class TestProfile:

    def test_me_requires_identity(self, client):
        response = client.get("/me")
        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    def test_garbage_token(self, client):
        assert client.get("/me", headers=bearer("not-a-jwt")).status_code == 401

    def test_admin_token_is_not_a_user_token(self, client):
        token = create_admin_token(AdminRole.admin)
        assert client.get("/me", headers=bearer(token)).status_code == 401

    def test_update_is_coalescing(self, client, sign_in):
        token = sign_in(code="erin")

        client.post("/me", json={"college": "CCS", "batch_id": "121"}, headers=bearer(token))
        response = client.post("/me", json={"bio": "Hello", "college": None}, headers=bearer(token))

        user = response.json()["user"]
        assert user["college"] == "CCS"
        assert user["batch_id"] == "121"
        assert user["bio"] == "Hello"
        assert user["display_name"] == "Erin"

    def test_empty_display_name_rejected(self, client, sign_in):
        token = sign_in(code="erin")
        response = client.post("/me", json={"display_name": ""}, headers=bearer(token))
        assert response.status_code == 400


class TestFindOrCreateOAuthUser:

    async def test_one_row_per_identity(self, registry):
        first = AssertedProfile(provider_id="g-42", display_name="Ana", photo_path="/p/ana.png")
        second = AssertedProfile(provider_id="g-42", display_name="Ana Cruz")

        async with registry.session("dlsu") as db:
            user_a, created_a = await UserService.find_or_create_oauth_user(db, "google", first)
        async with registry.session("dlsu") as db:
            user_b, created_b = await UserService.find_or_create_oauth_user(db, "google", second)
            rows = await db.scalar(select(func.count()).select_from(User))

        assert (created_a, created_b) == (True, False)
        assert user_a.id == user_b.id
        assert rows == 1
        assert user_b.display_name == "Ana"
        assert user_b.photo_path == "/p/ana.png"

    async def test_provider_is_part_of_the_identity(self, registry):
        profile = AssertedProfile(provider_id="same-id")

        async with registry.session("dlsu") as db:
            google, _ = await UserService.find_or_create_oauth_user(db, "google", profile)
            other, created = await UserService.find_or_create_oauth_user(db, "github", profile)

        assert created is True
        assert google.id != other.id
