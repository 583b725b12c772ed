"""
Recovery for identities that have no profile row yet.

This happens when an account is created directly at the identity provider
instead of through POST /users. Recovery is off unless PROFILE_RECOVERY is set.
"""
import logging
from typing import Optional

from labelprint.models.domain import UserProfile
from labelprint.models.enums import Role
from labelprint.services.errors import ConstraintViolation
from labelprint.services.executor import is_duplicate_name
from labelprint.services.identity import Identity
from labelprint.services.store import RecordStore

log = logging.getLogger(__name__)


def default_name(identity: Identity) -> str:
    if identity.email and "@" in identity.email:
        local = identity.email.split("@")[0]
        if local:
            return local
    return "User"


def default_role(identity: Identity, moderator_hint: Optional[str]) -> Role:
    """
    Role for a recovered profile.

    Always USER unless an operator has explicitly configured a hint; then an
    email local part containing the hint (case-insensitive) gets MODERATOR.
    """
    if moderator_hint and moderator_hint.lower() in default_name(identity).lower():
        return Role.MODERATOR
    return Role.USER


class ProfileRecovery:
    def __init__(self, store: RecordStore, moderator_hint: Optional[str] = None):
        self.store = store
        self.moderator_hint = moderator_hint

    def recover(self, identity: Identity) -> UserProfile:
        name = default_name(identity)
        if is_duplicate_name(self.store.db, name):
            name = f"{name}-{identity.id[:6]}"

        role = default_role(identity, self.moderator_hint)
        log.warning("Recovering missing profile for %s as %s", identity.id, role.value)
        try:
            return self.store.insert(UserProfile(
                id=identity.id,
                email=identity.email,
                name=name,
                role=role,
            ))
        except ConstraintViolation:
            # A concurrent request recovered the same identity first
            existing = self.store.get(UserProfile, identity.id)
            if existing is None:
                raise
            return existing
