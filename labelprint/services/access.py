"""
Access gate: the one path from an inbound request to a permitted action.

Steps run strictly in order and each can end the request early:

    identity (401) -> role lookup (403) -> policy (403) -> privileged executor

Nothing is started speculatively. The role always comes from the stored
profile; whatever the request body claims is never consulted.
"""
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from fastapi import Request

from labelprint.models.domain import UserProfile
from labelprint.models.enums import Action, Decision, Role
from labelprint.services.errors import (
    ConfigurationError,
    Forbidden,
    MissingProfile,
    ProviderError,
    RoleUnresolvable,
)
from labelprint.services.executor import PrivilegedExecutor
from labelprint.services.identity import Identity, IdentityResolver
from labelprint.services.policy import authorize
from labelprint.services.recovery import ProfileRecovery
from labelprint.services.store import RecordStore, StoreError

log = logging.getLogger(__name__)

DENIAL_MESSAGES = {
    Action.SET_PASSWORD: "Forbidden: Insufficient privileges to change another user's password",
    Action.UPDATE_PROFILE: "Forbidden: Insufficient privileges to edit another user's profile",
    Action.EDIT_PROFILE: "Forbidden: Insufficient privileges to change this profile",
    Action.VIEW_STATISTICS: "Forbidden: Your role cannot view statistics",
}


@dataclass(frozen=True)
class Caller:
    identity: Identity
    profile: UserProfile

    @property
    def id(self) -> str:
        return self.identity.id

    @property
    def role(self) -> Role:
        return Role(self.profile.role)

    @property
    def display_name(self) -> str:
        """Name as stamped on orders, with the employee id when there is one."""
        if self.profile.employee_id:
            return f"{self.profile.name} ({self.profile.employee_id})"
        return self.profile.name


class RoleLookup:
    """Reads the caller's profile (and so their role) from the record store."""

    def __init__(self, store: RecordStore):
        self.store = store

    def profile_for(self, identity_id: str) -> UserProfile:
        try:
            profile = self.store.find_one(UserProfile, id=identity_id)
        except StoreError as e:
            log.error("Error fetching caller role for %s: %s", identity_id, e)
            raise RoleUnresolvable("Unauthorized: Cannot verify user role") from e
        if profile is None:
            raise MissingProfile(identity_id)
        return profile


class AccessGate:
    """
    Sequences identity resolution, role lookup and the policy for one request.

    ``executor_factory`` is None when the elevated key is not configured; any
    privileged action then fails with a configuration error before the caller
    is even authenticated.
    """

    def __init__(
        self,
        resolver: IdentityResolver,
        roles: RoleLookup,
        recovery: Optional[ProfileRecovery] = None,
        executor_factory: Optional[Callable[[str], PrivilegedExecutor]] = None
    ):
        self.resolver = resolver
        self.roles = roles
        self.recovery = recovery
        self.executor_factory = executor_factory

    def authenticate(self, request: Request) -> Caller:
        """Resolve the caller and their stored profile."""
        identity = self.resolver.resolve(request)
        try:
            profile = self.roles.profile_for(identity.id)
        except MissingProfile:
            if self.recovery is None:
                log.warning("No profile for %s and recovery is disabled", identity.id)
                raise
            try:
                profile = self.recovery.recover(identity)
            except ProviderError as e:
                raise RoleUnresolvable("Unauthorized: Cannot verify user role") from e
        return Caller(identity=identity, profile=profile)

    def require(self, request: Request, action: Action, target_id: Optional[str] = None) -> Caller:
        """Authenticate and check the policy; raise Forbidden on DENY."""
        caller = self.authenticate(request)
        decision = authorize(caller.id, caller.role, target_id, action)
        if decision is not Decision.ALLOW:
            log.info("Denied %s on %s for %s (%s)", action.value, target_id, caller.id, caller.role.value)
            raise Forbidden(DENIAL_MESSAGES.get(action, "Forbidden: Insufficient privileges"))
        return caller

    def privileged(self, request: Request, action: Action, target_id: Optional[str] = None) -> PrivilegedExecutor:
        """The only way to obtain a PrivilegedExecutor."""
        if self.executor_factory is None:
            log.error("Missing service role key or auth URL")
            raise ConfigurationError("Server configuration error")
        caller = self.require(request, action, target_id)
        return self.executor_factory(caller.id)
