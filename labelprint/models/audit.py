"""
Audit log model.

Append-only trail of who did what. Rows are written by the AuditRecorder and
read by the audit log endpoint; nothing in the service updates or deletes them.
"""
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Integer, String

from labelprint.database import Base


class AuditEvent(Base):
    """
    Immutable audit event.

    Invariants:
    - Once written, never edited or deleted
    - action may hold tags this version does not know; they are kept as-is
    """
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)  # actor
    action = Column(String, nullable=False, index=True)  # e.g., "LOGIN"
    details = Column(JSON, nullable=False, default=dict)
    ip_address = Column(String, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)


# Action tag constants for consistency
class AuditAction:
    """Enumeration of audit action tags."""
    LOGIN = "LOGIN"

    # Catalog
    CREATE_PRODUCT = "CREATE_PRODUCT"
    UPDATE_PRODUCT = "UPDATE_PRODUCT"
    DELETE_PRODUCT = "DELETE_PRODUCT"

    # Orders
    CREATE_ORDER = "CREATE_ORDER"
    UPDATE_ORDER = "UPDATE_ORDER"
    VERIFY_ORDER = "VERIFY_ORDER"
    UNVERIFY_ORDER = "UNVERIFY_ORDER"
    DELETE_ORDER = "DELETE_ORDER"

    # Accounts
    CREATE_USER = "CREATE_USER"
    UPDATE_USER = "UPDATE_USER"
    DELETE_USER = "DELETE_USER"
    CHANGE_PASSWORD = "CHANGE_PASSWORD"


ACTION_LABELS = {
    AuditAction.LOGIN: "Signed in",
    AuditAction.CREATE_PRODUCT: "Added product",
    AuditAction.UPDATE_PRODUCT: "Edited product",
    AuditAction.DELETE_PRODUCT: "Deleted product",
    AuditAction.CREATE_ORDER: "Ordered label print",
    AuditAction.UPDATE_ORDER: "Edited order",
    AuditAction.VERIFY_ORDER: "Verified order",
    AuditAction.UNVERIFY_ORDER: "Revoked order verification",
    AuditAction.DELETE_ORDER: "Deleted order",
    AuditAction.CREATE_USER: "Added user",
    AuditAction.UPDATE_USER: "Edited user",
    AuditAction.DELETE_USER: "Deleted user",
    AuditAction.CHANGE_PASSWORD: "Changed password",
}


def describe_action(action: str) -> str:
    """Human label for an action tag; unknown tags are shown as they are."""
    return ACTION_LABELS.get(action, action)
