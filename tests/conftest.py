"""Pytest configuration and shared fixtures."""
from datetime import datetime
from typing import Dict, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient

from labelprint.api.dependencies import get_admin_provider, get_identity_provider
from labelprint.config import Settings
from labelprint.main import create_app
from labelprint.models.domain import Product, UserProfile
from labelprint.models.enums import Role
from labelprint.services.errors import ConstraintViolation, ProviderError, Unauthenticated
from labelprint.services.identity import Identity, Session


class FakeIdentityProvider:
    """
    In-memory stand-in for both provider clients.

    Tokens are "token-<user id>". Every mutation is recorded so tests can
    assert how often the privileged side was reached.
    """

    def __init__(self):
        self.identities: Dict[str, Identity] = {}
        self.passwords: Dict[str, str] = {}
        self.revoked_tokens = set()
        self.refresh_tokens: Dict[str, str] = {}
        self.set_password_calls: List[Tuple[str, str]] = []
        self.delete_calls: List[str] = []
        self.create_calls: List[str] = []
        self.fail_with: Optional[Exception] = None

    def add_identity(self, identity_id: str, email: Optional[str] = None, password: str = "password123") -> Identity:
        identity = Identity(id=identity_id, email=email or f"{identity_id}@example.com")
        self.identities[identity_id] = identity
        self.passwords[identity.email] = password
        return identity

    # caller-scoped
    def verify_token(self, token: str) -> Identity:
        if not token or not token.startswith("token-") or token in self.revoked_tokens:
            raise Unauthenticated("Unauthorized: Invalid token")
        identity = self.identities.get(token[len("token-"):])
        if identity is None:
            raise Unauthenticated("Unauthorized: Invalid token")
        return identity

    def get_session(self, access_token, refresh_token):
        if access_token:
            try:
                return Session(access_token, refresh_token, self.verify_token(access_token))
            except Unauthenticated:
                pass
        if refresh_token in self.refresh_tokens:
            identity = self.identities[self.refresh_tokens[refresh_token]]
            return Session(f"token-{identity.id}", "refresh-new", identity, expires_in=3600, refreshed=True)
        return None

    def sign_in_with_password(self, email: str, password: str) -> Session:
        if self.passwords.get(email) != password:
            raise Unauthenticated("Invalid login credentials")
        identity = next(i for i in self.identities.values() if i.email == email)
        return Session(f"token-{identity.id}", f"refresh-{identity.id}", identity, expires_in=3600)

    # elevated
    def set_password(self, identity_id: str, new_password: str):
        if self.fail_with:
            raise self.fail_with
        self.set_password_calls.append((identity_id, new_password))
        return {"id": identity_id, "email": f"{identity_id}@example.com", "updated_at": "2026-01-01T00:00:00Z"}

    def delete_identity(self, identity_id: str) -> None:
        if self.fail_with:
            raise self.fail_with
        self.delete_calls.append(identity_id)
        self.identities.pop(identity_id, None)

    def create_identity(self, email: str, password: str) -> Identity:
        if self.fail_with:
            raise self.fail_with
        if any(i.email == email for i in self.identities.values()):
            raise ConstraintViolation("A user with this email address has already been registered")
        self.create_calls.append(email)
        return self.add_identity(f"new-{len(self.create_calls)}", email, password)


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        auth_url="https://auth.example.test",
        anon_key="anon-key",
        service_role_key="service-role-key",
        log_json=False,
    )


@pytest.fixture
def provider():
    return FakeIdentityProvider()


@pytest.fixture
def app(settings, provider):
    application = create_app(settings)
    application.dependency_overrides[get_identity_provider] = lambda: provider
    application.dependency_overrides[get_admin_provider] = lambda: provider
    return application


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def db_session(app):
    """A session on the app's own in-memory database."""
    session = app.state.session_factory()
    yield session
    session.close()


@pytest.fixture
def make_user(db_session, provider):
    """Create an identity plus profile and return the profile."""
    def _make(user_id: str, role: Role = Role.USER, name: Optional[str] = None, **fields) -> UserProfile:
        identity = provider.add_identity(user_id)
        profile = UserProfile(
            id=user_id,
            email=identity.email,
            name=name or user_id.capitalize(),
            role=role,
            created_at=fields.pop("created_at", datetime.utcnow()),
            **fields
        )
        db_session.add(profile)
        db_session.commit()
        db_session.refresh(profile)
        return profile
    return _make


@pytest.fixture
def sample_product(db_session):
    product = Product(id="FG-1001", name="Jasmine Rice 5kg", exp="18 months")
    db_session.add(product)
    db_session.commit()
    db_session.refresh(product)
    return product


@pytest.fixture
def bearer():
    """Authorization header for a user created with make_user."""
    def _headers(user_id: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer token-{user_id}"}
    return _headers


@pytest.fixture
def provider_error():
    return ProviderError("upstream exploded", upstream_status=500)
