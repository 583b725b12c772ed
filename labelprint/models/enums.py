"""Enums for labelprint - these define the valid values for roles and policy actions."""
from enum import Enum


class Role(str, Enum):
    """Authorization roles, highest privilege first. No other roles are allowed."""
    MODERATOR = "moderator"
    ASSISTANT_MODERATOR = "assistant_moderator"
    OPERATOR = "operator"
    USER = "user"


MODERATOR_TIER = frozenset({Role.MODERATOR, Role.ASSISTANT_MODERATOR})


class Action(str, Enum):
    """Actions that must pass the authorization policy before they run."""
    # Account administration
    SET_PASSWORD = "set_password"
    DELETE_ACCOUNT = "delete_account"
    CREATE_ACCOUNT = "create_account"
    UPDATE_PROFILE = "update_profile"  # self-managed fields only
    EDIT_PROFILE = "edit_profile"  # any field, including role
    LIST_USERS = "list_users"

    # Order moderation
    EDIT_ORDER = "edit_order"
    VERIFY_ORDER = "verify_order"
    DELETE_ORDER = "delete_order"

    # Reporting
    VIEW_STATISTICS = "view_statistics"
    VIEW_AUDIT_LOG = "view_audit_log"


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"
