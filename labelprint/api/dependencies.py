"""
FastAPI dependencies that assemble the per-request collaborators.

Nothing here is a module-level singleton: settings and the session factory
live on app.state, and provider clients are built for each request. Tests
replace get_identity_provider / get_admin_provider through
app.dependency_overrides.
"""
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from labelprint.config import Settings
from labelprint.database import get_db
from labelprint.services.access import AccessGate, RoleLookup
from labelprint.services.audit import AuditRecorder
from labelprint.services.errors import ConfigurationError
from labelprint.services.executor import PrivilegedExecutor
from labelprint.services.identity import (
    AdminIdentityProvider,
    BearerTokenStrategy,
    IdentityProvider,
    IdentityResolver,
    SessionCookieStrategy,
)
from labelprint.services.orders import OrderService
from labelprint.services.recovery import ProfileRecovery
from labelprint.services.store import RecordStore


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_identity_provider(settings: Settings = Depends(get_settings)) -> Optional[IdentityProvider]:
    """
    None when the provider is not configured.

    Dependencies never raise, so request validation (400) always reports
    before configuration (500) or authentication (401) problems.
    """
    if not settings.auth_url or not settings.anon_key:
        return None
    return IdentityProvider(settings.auth_url, settings.anon_key, timeout=settings.auth_timeout)


def require_provider(provider: Optional[IdentityProvider]) -> IdentityProvider:
    if provider is None:
        raise ConfigurationError("Server configuration error")
    return provider


def get_admin_provider(settings: Settings = Depends(get_settings)) -> Optional[AdminIdentityProvider]:
    """None when the elevated key is not configured."""
    if not settings.elevated_configured:
        return None
    return AdminIdentityProvider(settings.auth_url, settings.service_role_key, timeout=settings.auth_timeout)


def get_audit(request: Request) -> AuditRecorder:
    return AuditRecorder(request.app.state.session_factory)


def get_resolver(
    settings: Settings = Depends(get_settings),
    provider: Optional[IdentityProvider] = Depends(get_identity_provider)
) -> IdentityResolver:
    if provider is None:
        return IdentityResolver(None)
    if settings.auth_transport == "cookie":
        return IdentityResolver(SessionCookieStrategy(
            provider,
            settings.auth_cookie_name,
            settings.auth_refresh_cookie_name,
        ))
    return IdentityResolver(BearerTokenStrategy(provider))


def get_gate(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    resolver: IdentityResolver = Depends(get_resolver),
    admin: Optional[AdminIdentityProvider] = Depends(get_admin_provider),
    audit: AuditRecorder = Depends(get_audit)
) -> AccessGate:
    store = RecordStore(db)
    recovery = None
    if settings.profile_recovery:
        recovery = ProfileRecovery(store, settings.profile_recovery_moderator_hint)

    executor_factory = None
    if admin is not None:
        def executor_factory(actor_id: str) -> PrivilegedExecutor:
            return PrivilegedExecutor(admin, store, audit, actor_id)

    return AccessGate(
        resolver=resolver,
        roles=RoleLookup(store),
        recovery=recovery,
        executor_factory=executor_factory,
    )


def get_order_service(
    db: Session = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit)
) -> OrderService:
    return OrderService(db, audit)
