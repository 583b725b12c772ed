"""
Privileged executor: account mutations performed with the elevated key.

An executor is only handed out by AccessGate.privileged(), after the caller
has been authenticated, their role looked up and the policy has allowed the
action. Nothing in here re-checks permissions.
"""
import logging
from typing import Any, Dict, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from labelprint.models.audit import AuditAction
from labelprint.models.domain import UserProfile
from labelprint.models.enums import Role
from labelprint.services.audit import AuditRecorder
from labelprint.services.errors import ConstraintViolation, NotFound, ProviderError, ValidationError
from labelprint.services.identity import AdminIdentityProvider
from labelprint.services.store import RecordStore

log = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8

PROFILE_FIELDS = ("name", "role", "employee_id", "job_title", "department")
SELF_MANAGED_FIELDS = ("name", "employee_id", "job_title", "department")


def is_duplicate_name(db: Session, name: str, exclude_id: Optional[str] = None) -> bool:
    """Profile names are unique case-insensitively."""
    query = db.query(UserProfile.id).filter(func.lower(UserProfile.name) == name.lower())
    if exclude_id is not None:
        query = query.filter(UserProfile.id != exclude_id)
    return query.first() is not None


class PrivilegedExecutor:
    def __init__(
        self,
        admin: AdminIdentityProvider,
        store: RecordStore,
        audit: AuditRecorder,
        actor_id: str
    ):
        self.admin = admin
        self.store = store
        self.audit = audit
        self.actor_id = actor_id

    def set_password(self, target_id: str, new_password: str) -> Dict[str, Any]:
        if len(new_password) < MIN_PASSWORD_LENGTH:
            raise ValidationError("Password must be at least 8 characters long")

        user = self.admin.set_password(target_id, new_password)
        log.info("Password changed for %s by %s", target_id, self.actor_id)
        self.audit.record(self.actor_id, AuditAction.CHANGE_PASSWORD, {"target_id": target_id})
        return {
            "id": user.get("id", target_id),
            "email": user.get("email"),
            "updated_at": user.get("updated_at"),
        }

    def delete_account(self, target_id: str) -> None:
        """
        Remove the identity, then the profile.

        Either half may already be gone from an earlier partial attempt: a
        404 from the provider or a missing profile row counts as success.
        """
        profile = self.store.get(UserProfile, target_id)
        name = profile.name if profile is not None else None

        try:
            self.admin.delete_identity(target_id)
        except ProviderError as e:
            if e.upstream_status != 404:
                raise
            log.info("Identity %s already removed at provider", target_id)
        if not self.store.delete(UserProfile, target_id):
            log.info("Profile %s already removed", target_id)

        log.info("Account %s deleted by %s", target_id, self.actor_id)
        self.audit.record(self.actor_id, AuditAction.DELETE_USER, {"target_id": target_id, "name": name})

    def update_profile(self, target_id: str, fields: Dict[str, Any]) -> UserProfile:
        changes = {k: v for k, v in fields.items() if k in PROFILE_FIELDS}
        if not changes:
            raise ValidationError("No profile fields to update")

        if self.store.get(UserProfile, target_id) is None:
            raise NotFound("User not found")

        if "name" in changes:
            if not changes["name"] or not changes["name"].strip():
                raise ValidationError("Name is required")
            changes["name"] = changes["name"].strip()
            if is_duplicate_name(self.store.db, changes["name"], exclude_id=target_id):
                raise ConstraintViolation("Name already in use")

        profile = self.store.update(UserProfile, target_id, changes)
        details = {"target_id": target_id, "fields": sorted(changes)}
        if "role" in changes:
            details["role"] = Role(changes["role"]).value
        self.audit.record(self.actor_id, AuditAction.UPDATE_USER, details)
        return profile

    def create_account(
        self,
        email: str,
        password: str,
        name: str,
        role: Role = Role.USER,
        employee_id: Optional[str] = None,
        job_title: Optional[str] = None,
        department: Optional[str] = None
    ) -> UserProfile:
        """
        Register the identity at the provider and insert its profile.

        If the profile insert fails, the new identity is removed again so no
        account is left without a profile.
        """
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError("Password must be at least 8 characters long")
        name = name.strip()
        if is_duplicate_name(self.store.db, name):
            raise ConstraintViolation("Name already in use")

        try:
            identity = self.admin.create_identity(email, password)
        except ConstraintViolation as e:
            raise ConstraintViolation("This email is already registered or awaiting confirmation") from e

        try:
            profile = self.store.insert(UserProfile(
                id=identity.id,
                email=email,
                name=name,
                role=role,
                employee_id=employee_id or None,
                job_title=job_title or None,
                department=department or None,
            ))
        except (ConstraintViolation, ProviderError):
            log.error("Profile insert failed for new identity %s, removing identity", identity.id)
            try:
                self.admin.delete_identity(identity.id)
            except ProviderError:
                log.exception("Could not remove orphaned identity %s", identity.id)
            raise

        self.audit.record(self.actor_id, AuditAction.CREATE_USER, {
            "target_id": identity.id,
            "email": email,
            "name": name,
            "role": Role(role).value,
        })
        return profile
