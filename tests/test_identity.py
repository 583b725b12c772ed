"""
Tests for the identity provider clients and credential strategies.

The provider is faked at the HTTP layer with httpx.MockTransport, so these
exercise the real request building and error mapping.
"""
import json
from dataclasses import replace

import httpx
import pytest
from fastapi.testclient import TestClient

from labelprint.api.dependencies import get_admin_provider, get_identity_provider
from labelprint.main import create_app
from labelprint.models.domain import UserProfile
from labelprint.models.enums import Role
from labelprint.services.audit import AuditRecorder
from labelprint.services.errors import ConstraintViolation, ProviderError, Unauthenticated
from labelprint.services.executor import PrivilegedExecutor
from labelprint.services.identity import AdminIdentityProvider, IdentityProvider
from labelprint.services.store import RecordStore

AUTH_URL = "https://auth.example.test"


def _user(user_id="u-1", email="u1@example.com"):
    return {"id": user_id, "email": email, "updated_at": "2026-01-01T00:00:00Z"}


def _session_body(user_id="u-1"):
    return {
        "access_token": f"access-{user_id}",
        "refresh_token": f"refresh-{user_id}",
        "expires_in": 3600,
        "user": _user(user_id),
    }


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler):
        self.requests = []

        def recording(request):
            self.requests.append(request)
            return handler(request)
        super().__init__(recording)


class TestIdentityProvider:
    def test_verify_token_sends_key_and_bearer(self):
        transport = RecordingTransport(lambda request: httpx.Response(200, json=_user()))
        provider = IdentityProvider(AUTH_URL, "anon-key", transport=transport)

        identity = provider.verify_token("tok")

        assert identity.id == "u-1"
        request = transport.requests[0]
        assert request.url == "https://auth.example.test/auth/v1/user"
        assert request.headers["apikey"] == "anon-key"
        assert request.headers["Authorization"] == "Bearer tok"

    def test_rejected_token_is_unauthenticated(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(401, json={"msg": "invalid JWT"}))
        provider = IdentityProvider(AUTH_URL, "anon-key", transport=transport)

        with pytest.raises(Unauthenticated):
            provider.verify_token("expired")

    def test_unreachable_provider_is_unauthenticated_on_verify(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)
        provider = IdentityProvider(AUTH_URL, "anon-key", transport=httpx.MockTransport(refuse))

        with pytest.raises(Unauthenticated):
            provider.verify_token("tok")

    def test_sign_in_uses_password_grant(self):
        transport = RecordingTransport(lambda request: httpx.Response(200, json=_session_body()))
        provider = IdentityProvider(AUTH_URL, "anon-key", transport=transport)

        session = provider.sign_in_with_password("u1@example.com", "secret123")

        assert session.access_token == "access-u-1"
        assert session.expires_in == 3600
        request = transport.requests[0]
        assert request.url.params["grant_type"] == "password"
        assert json.loads(request.content) == {"email": "u1@example.com", "password": "secret123"}

    def test_sign_in_failure_keeps_provider_message(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(400, json={"error": "invalid_grant", "error_description": "Invalid login credentials"})
        )
        provider = IdentityProvider(AUTH_URL, "anon-key", transport=transport)

        with pytest.raises(Unauthenticated) as exc_info:
            provider.sign_in_with_password("u1@example.com", "wrong")

        assert exc_info.value.message == "Invalid login credentials"

    def test_get_session_refreshes_rejected_access_token(self):
        def handler(request):
            if request.url.path.endswith("/user"):
                return httpx.Response(401, json={"msg": "expired"})
            return httpx.Response(200, json=_session_body())
        provider = IdentityProvider(AUTH_URL, "anon-key", transport=httpx.MockTransport(handler))

        session = provider.get_session("stale", "refresh-u-1")

        assert session.refreshed is True
        assert session.access_token == "access-u-1"

    def test_get_session_without_usable_tokens_is_none(self):
        provider = IdentityProvider(
            AUTH_URL, "anon-key",
            transport=httpx.MockTransport(lambda request: httpx.Response(401, json={}))
        )

        assert provider.get_session("stale", "also-stale") is None
        assert provider.get_session(None, None) is None


class TestAdminIdentityProvider:
    def test_set_password_uses_service_key(self):
        transport = RecordingTransport(lambda request: httpx.Response(200, json=_user()))
        admin = AdminIdentityProvider(AUTH_URL, "service-key", transport=transport)

        admin.set_password("u-1", "newpassword")

        request = transport.requests[0]
        assert request.method == "PUT"
        assert request.url.path == "/auth/v1/admin/users/u-1"
        assert request.headers["Authorization"] == "Bearer service-key"
        assert json.loads(request.content) == {"password": "newpassword"}

    def test_provider_failure_carries_message_and_status(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(422, json={"msg": "Password is too weak"}))
        admin = AdminIdentityProvider(AUTH_URL, "service-key", transport=transport)

        with pytest.raises(ProviderError) as exc_info:
            admin.set_password("u-1", "password")

        assert exc_info.value.message == "Password is too weak"
        assert exc_info.value.upstream_status == 422

    def test_duplicate_email_is_constraint_violation(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(
            422, json={"code": "email_exists", "msg": "A user with this email address has already been registered"}
        ))
        admin = AdminIdentityProvider(AUTH_URL, "service-key", transport=transport)

        with pytest.raises(ConstraintViolation):
            admin.create_identity("taken@example.com", "password123")

    def test_create_identity_confirms_email(self):
        transport = RecordingTransport(lambda request: httpx.Response(200, json=_user("new-id", "n@example.com")))
        admin = AdminIdentityProvider(AUTH_URL, "service-key", transport=transport)

        identity = admin.create_identity("n@example.com", "password123")

        assert identity.id == "new-id"
        assert json.loads(transport.requests[0].content)["email_confirm"] is True

    def test_unreachable_provider_is_provider_error(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)
        admin = AdminIdentityProvider(AUTH_URL, "service-key", transport=httpx.MockTransport(refuse))

        with pytest.raises(ProviderError):
            admin.delete_identity("u-1")


class TestCookieTransport:
    @pytest.fixture
    def cookie_app(self, settings, provider):
        application = create_app(replace(settings, auth_transport="cookie"))
        application.dependency_overrides[get_identity_provider] = lambda: provider
        application.dependency_overrides[get_admin_provider] = lambda: provider
        provider.add_identity("alice")
        provider.add_identity("bob")
        session = application.state.session_factory()
        session.add(UserProfile(id="alice", email="alice@example.com", name="Alice", role=Role.USER))
        session.add(UserProfile(id="bob", email="bob@example.com", name="Bob", role=Role.USER))
        session.commit()
        session.close()
        return application

    def test_access_cookie_authenticates(self, cookie_app):
        client = TestClient(cookie_app, cookies={"sb-access-token": "token-alice"})

        response = client.get("/api/users/me")

        assert response.status_code == 200
        assert "set-cookie" not in response.headers

    def test_refreshed_session_is_written_back(self, cookie_app, provider):
        provider.refresh_tokens["refresh-old"] = "alice"
        client = TestClient(cookie_app, cookies={"sb-refresh-token": "refresh-old"})

        response = client.get("/api/users/me")

        assert response.status_code == 200
        cookies = response.headers.get_list("set-cookie")
        assert any(c.startswith("sb-access-token=token-alice") for c in cookies)
        assert any(c.startswith("sb-refresh-token=refresh-new") for c in cookies)

    def test_no_cookies_is_401(self, cookie_app):
        response = TestClient(cookie_app).get("/api/users/me")

        assert response.status_code == 401

    def test_bearer_header_is_ignored_in_cookie_mode(self, cookie_app):
        response = TestClient(cookie_app).get("/api/users/me", headers={"Authorization": "Bearer token-alice"})

        assert response.status_code == 401

    def test_login_sets_session_cookies(self, cookie_app):
        response = TestClient(cookie_app).post(
            "/api/auth/login",
            json={"email": "alice@example.com", "password": "password123"}
        )

        assert response.status_code == 200
        cookies = response.headers.get_list("set-cookie")
        assert any(c.startswith("sb-access-token=token-alice") for c in cookies)
        assert any("HttpOnly" in c for c in cookies)

    def test_logout_clears_session_cookies(self, cookie_app):
        response = TestClient(cookie_app).post("/api/auth/logout")

        cookies = response.headers.get_list("set-cookie")
        assert any(c.startswith('sb-access-token=""') for c in cookies)

    def test_own_password_change_with_cookie(self, cookie_app, provider):
        client = TestClient(cookie_app, cookies={"sb-access-token": "token-alice"})

        response = client.put("/api/users/alice/password", json={"newPassword": "newpassword"})

        assert response.status_code == 200
        assert provider.set_password_calls == [("alice", "newpassword")]

    def test_cookie_user_cannot_change_another_password(self, cookie_app, provider):
        client = TestClient(cookie_app, cookies={"sb-access-token": "token-alice"})

        response = client.put("/api/users/bob/password", json={"newPassword": "newpassword"})

        assert response.status_code == 403
        assert provider.set_password_calls == []

    def test_cookie_user_cannot_delete_accounts(self, cookie_app, provider):
        client = TestClient(cookie_app, cookies={"sb-access-token": "token-alice"})

        response = client.delete("/api/users/bob")

        assert response.status_code == 403
        assert provider.delete_calls == []

    def test_privileged_endpoints_without_cookies_are_401(self, cookie_app, provider):
        client = TestClient(cookie_app)

        password = client.put("/api/users/alice/password", json={"newPassword": "newpassword"})
        deletion = client.delete("/api/users/bob")

        assert (password.status_code, deletion.status_code) == (401, 401)
        assert provider.set_password_calls == []
        assert provider.delete_calls == []


class TestAccountDeletionRetry:
    """Deleting an account whose identity is already gone at the provider."""

    @pytest.fixture
    def executor_for(self, app, db_session):
        def _build(handler):
            admin = AdminIdentityProvider(AUTH_URL, "service-key", transport=httpx.MockTransport(handler))
            audit = AuditRecorder(app.state.session_factory)
            return PrivilegedExecutor(admin, RecordStore(db_session), audit, actor_id="mod")
        return _build

    def test_missing_identity_still_removes_profile(self, executor_for, db_session, make_user):
        make_user("bob")
        executor = executor_for(lambda request: httpx.Response(404, json={"msg": "User not found"}))

        executor.delete_account("bob")

        db_session.expire_all()
        assert db_session.get(UserProfile, "bob") is None

    def test_other_provider_failures_keep_the_profile(self, executor_for, db_session, make_user):
        make_user("bob")
        executor = executor_for(lambda request: httpx.Response(500, json={"msg": "Database error deleting user"}))

        with pytest.raises(ProviderError) as exc_info:
            executor.delete_account("bob")

        assert exc_info.value.upstream_status == 500
        db_session.expire_all()
        assert db_session.get(UserProfile, "bob") is not None

    def test_retry_over_http_succeeds(self, app, client, make_user, bearer, db_session):
        make_user("mod", role=Role.MODERATOR)
        make_user("bob")
        app.dependency_overrides[get_admin_provider] = lambda: AdminIdentityProvider(
            AUTH_URL, "service-key",
            transport=httpx.MockTransport(lambda request: httpx.Response(404, json={"msg": "User not found"}))
        )

        response = client.delete("/api/users/bob", headers=bearer("mod"))

        assert response.status_code == 200
        db_session.expire_all()
        assert db_session.get(UserProfile, "bob") is None
