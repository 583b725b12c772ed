"""
Identity provider client and caller identity resolution.

The provider is a hosted GoTrue-compatible auth API at ``<auth_url>/auth/v1``.
Two clients talk to it:

- IdentityProvider uses the public anonymous key. It verifies tokens,
  refreshes sessions and signs users in.
- AdminIdentityProvider uses the elevated service key. It changes passwords,
  creates and deletes identities. Only the privileged executor holds one.

Neither keeps state between calls: every call opens its own httpx.Client and
closes it again, so concurrent requests never share cookies or sessions.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
from fastapi import Request

from labelprint.services.errors import (
    ConfigurationError,
    ConstraintViolation,
    ProviderError,
    Unauthenticated,
)

log = logging.getLogger(__name__)

# Error codes the provider uses for an email that is already registered
DUPLICATE_EMAIL_CODES = ("email_exists", "user_already_exists")


@dataclass(frozen=True)
class Identity:
    """A verified caller. Read-only; the core never mutates it."""
    id: str
    email: Optional[str] = None

    @classmethod
    def from_user(cls, user: Dict[str, Any]) -> "Identity":
        return cls(id=user["id"], email=user.get("email"))


@dataclass(frozen=True)
class Session:
    access_token: str
    refresh_token: Optional[str]
    identity: Identity
    expires_in: Optional[int] = None
    refreshed: bool = False


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        for key in ("msg", "message", "error_description", "error"):
            if body.get(key):
                return str(body[key])
    return response.reason_phrase


def _error_code(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        return body.get("error_code") or body.get("code")
    return None


class IdentityProvider:
    """Caller-scoped provider client (anonymous key)."""

    def __init__(
        self,
        auth_url: str,
        api_key: str,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None
    ):
        self.base_url = f"{auth_url.rstrip('/')}/auth/v1"
        self._api_key = api_key
        self.timeout = timeout
        self._transport = transport

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.base_url!r})"

    def _client(self, bearer: Optional[str] = None) -> httpx.Client:
        headers = {"apikey": self._api_key}
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        return httpx.Client(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=self._transport,
        )

    def verify_token(self, token: str) -> Identity:
        """Introspect an access token. Any failure is Unauthenticated."""
        if not token:
            raise Unauthenticated("Unauthorized: Missing or invalid token")
        try:
            with self._client(bearer=token) as client:
                response = client.get("/user")
        except httpx.HTTPError as e:
            log.warning("Token introspection failed: %s", e)
            raise Unauthenticated("Unauthorized: Invalid token") from e

        if response.status_code != 200:
            log.debug("Token rejected by provider: %s %s", response.status_code, _error_message(response))
            raise Unauthenticated("Unauthorized: Invalid token")
        return Identity.from_user(response.json())

    def refresh_session(self, refresh_token: str) -> Session:
        try:
            with self._client() as client:
                response = client.post(
                    "/token",
                    params={"grant_type": "refresh_token"},
                    json={"refresh_token": refresh_token},
                )
        except httpx.HTTPError as e:
            log.warning("Session refresh failed: %s", e)
            raise Unauthenticated("Unauthorized: Session expired") from e

        if response.status_code != 200:
            raise Unauthenticated("Unauthorized: Session expired")
        return self._session(response.json(), refreshed=True)

    def get_session(self, access_token: Optional[str], refresh_token: Optional[str]) -> Optional[Session]:
        """
        Rebuild a browser session from its cookies.

        The access token is verified first; if it is missing or rejected and a
        refresh token exists, the session is refreshed. Returns None when
        neither works.
        """
        if access_token:
            try:
                identity = self.verify_token(access_token)
                return Session(access_token=access_token, refresh_token=refresh_token, identity=identity)
            except Unauthenticated:
                log.debug("Access cookie rejected, trying refresh")

        if refresh_token:
            try:
                return self.refresh_session(refresh_token)
            except Unauthenticated:
                return None
        return None

    def sign_in_with_password(self, email: str, password: str) -> Session:
        try:
            with self._client() as client:
                response = client.post(
                    "/token",
                    params={"grant_type": "password"},
                    json={"email": email, "password": password},
                )
        except httpx.HTTPError as e:
            log.error("Sign-in request failed: %s", e)
            raise ProviderError("Identity provider unavailable") from e

        if response.status_code != 200:
            raise Unauthenticated(_error_message(response))
        return self._session(response.json())

    @staticmethod
    def _session(body: Dict[str, Any], refreshed: bool = False) -> Session:
        return Session(
            access_token=body["access_token"],
            refresh_token=body.get("refresh_token"),
            identity=Identity.from_user(body["user"]),
            expires_in=body.get("expires_in"),
            refreshed=refreshed,
        )


class AdminIdentityProvider(IdentityProvider):
    """
    Provider client holding the elevated service key.

    Bypasses per-user restrictions at the provider, so it must only ever be
    used by the privileged executor after the policy has allowed the action.
    """

    def _admin_client(self) -> httpx.Client:
        return self._client(bearer=self._api_key)

    def _check(self, response: httpx.Response, operation: str) -> None:
        if response.status_code < 400:
            return
        message = _error_message(response)
        code = _error_code(response)
        log.error("%s failed at provider: %s %s", operation, response.status_code, message)
        if code in DUPLICATE_EMAIL_CODES or "already been registered" in message or "already registered" in message:
            raise ConstraintViolation(message)
        raise ProviderError(message, upstream_status=response.status_code)

    def _request(self, method: str, path: str, operation: str, **kwargs) -> httpx.Response:
        try:
            with self._admin_client() as client:
                response = client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            log.error("%s request failed: %s", operation, e)
            raise ProviderError(f"Identity provider unavailable: {e}") from e
        self._check(response, operation)
        return response

    def set_password(self, identity_id: str, new_password: str) -> Dict[str, Any]:
        response = self._request(
            "PUT", f"/admin/users/{identity_id}", "set_password",
            json={"password": new_password},
        )
        return response.json()

    def delete_identity(self, identity_id: str) -> None:
        self._request("DELETE", f"/admin/users/{identity_id}", "delete_identity")

    def create_identity(self, email: str, password: str) -> Identity:
        response = self._request(
            "POST", "/admin/users", "create_identity",
            json={"email": email, "password": password, "email_confirm": True},
        )
        return Identity.from_user(response.json())


class BearerTokenStrategy:
    """Resolve the caller from an ``Authorization: Bearer <token>`` header."""

    def __init__(self, provider: IdentityProvider):
        self.provider = provider

    def resolve(self, request: Request) -> Identity:
        header = request.headers.get("Authorization")
        if not header:
            raise Unauthenticated("Unauthorized: Missing or invalid token")

        parts = header.split()
        if len(parts) != 2 or parts[0].lower() != "bearer":
            log.debug("Authorization header rejected, not 'Bearer <token>'")
            raise Unauthenticated("Unauthorized: Missing or invalid token")
        return self.provider.verify_token(parts[1])


class SessionCookieStrategy:
    """Resolve the caller from browser session cookies, refreshing if needed."""

    def __init__(self, provider: IdentityProvider, access_cookie: str, refresh_cookie: str):
        self.provider = provider
        self.access_cookie = access_cookie
        self.refresh_cookie = refresh_cookie

    def resolve(self, request: Request) -> Identity:
        session = self.provider.get_session(
            request.cookies.get(self.access_cookie),
            request.cookies.get(self.refresh_cookie),
        )
        if session is None:
            raise Unauthenticated("Unauthorized: No active session")
        if session.refreshed:
            # Written back as cookies by the middleware in labelprint.main
            request.state.refreshed_session = session
        return session.identity


class IdentityResolver:
    """
    Verifies the caller with whichever strategy the deployment uses.

    A resolver without a strategy means the provider is not configured.
    """

    def __init__(self, strategy):
        self.strategy = strategy

    def resolve(self, request: Request) -> Identity:
        if self.strategy is None:
            log.error("Identity provider URL or anonymous key is not configured")
            raise ConfigurationError("Server configuration error")
        return self.strategy.resolve(request)
