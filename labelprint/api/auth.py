"""Sign-in and sign-out."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session

from labelprint.api.dependencies import get_audit, get_identity_provider, get_settings, require_provider
from labelprint.api.schemas import LoginRequest, LoginResponse, MessageResponse
from labelprint.config import Settings
from labelprint.database import get_db
from labelprint.models.audit import AuditAction
from labelprint.models.domain import UserProfile
from labelprint.services.audit import AuditRecorder
from labelprint.services.errors import Unauthenticated, ValidationError
from labelprint.services.identity import IdentityProvider, Session as AuthSession
from labelprint.services.recovery import ProfileRecovery
from labelprint.services.store import RecordStore

log = logging.getLogger(__name__)

router = APIRouter()

# Provider messages rewritten into something a user can act on
LOGIN_ERRORS = {
    "Invalid login credentials": "Invalid email or password",
    "Email not confirmed": "Please confirm your email before signing in",
}


def set_session_cookies(response: Response, session: AuthSession, settings: Settings) -> None:
    response.set_cookie(
        settings.auth_cookie_name,
        session.access_token,
        max_age=session.expires_in,
        httponly=True,
        samesite="lax",
    )
    if session.refresh_token:
        response.set_cookie(
            settings.auth_refresh_cookie_name,
            session.refresh_token,
            httponly=True,
            samesite="lax",
        )


def clear_session_cookies(response: Response, settings: Settings) -> None:
    response.delete_cookie(settings.auth_cookie_name)
    response.delete_cookie(settings.auth_refresh_cookie_name)


def _client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


@router.post("/auth/login", response_model=LoginResponse)
def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    provider: Optional[IdentityProvider] = Depends(get_identity_provider),
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
    audit: AuditRecorder = Depends(get_audit)
):
    """
    Sign in with email and password.

    The LOGIN audit event is best effort: if it cannot be written the
    sign-in still succeeds.
    """
    email = payload.email.strip()
    # Email-only login; anything without "@" and "." is a username attempt
    if "@" not in email or "." not in email:
        raise ValidationError("Please enter a valid email address")

    provider = require_provider(provider)
    try:
        session = provider.sign_in_with_password(email, payload.password)
    except Unauthenticated as e:
        raise Unauthenticated(LOGIN_ERRORS.get(e.message, e.message)) from e

    store = RecordStore(db)
    profile = store.find_one(UserProfile, id=session.identity.id)
    if profile is None and settings.profile_recovery:
        profile = ProfileRecovery(store, settings.profile_recovery_moderator_hint).recover(session.identity)

    audit.record(session.identity.id, AuditAction.LOGIN, {"email": email}, ip_address=_client_ip(request))
    log.info("User %s signed in", session.identity.id)

    if settings.auth_transport == "cookie":
        set_session_cookies(response, session, settings)

    return {
        "access_token": session.access_token,
        "refresh_token": session.refresh_token,
        "expires_in": session.expires_in,
        "user": profile,
    }


@router.post("/auth/logout", response_model=MessageResponse)
def logout(response: Response, settings: Settings = Depends(get_settings)):
    clear_session_cookies(response, settings)
    return {"message": "Signed out"}
