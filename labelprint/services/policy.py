"""
Authorization policy: who may do what.

This is the single decision point for every privileged action, whatever the
transport. It does no I/O, so the same inputs always give the same decision.
"""
from typing import Optional

from labelprint.models.enums import MODERATOR_TIER, Action, Decision, Role

# Actions a caller may always perform on their own account
SELF_SERVICE_ACTIONS = frozenset({Action.SET_PASSWORD, Action.UPDATE_PROFILE})

# Roles granted each action regardless of target
ROLE_GRANTS = {
    Action.SET_PASSWORD: MODERATOR_TIER,
    Action.DELETE_ACCOUNT: MODERATOR_TIER,
    Action.CREATE_ACCOUNT: MODERATOR_TIER,
    Action.UPDATE_PROFILE: MODERATOR_TIER,
    Action.EDIT_PROFILE: MODERATOR_TIER,
    Action.LIST_USERS: MODERATOR_TIER,
    Action.EDIT_ORDER: MODERATOR_TIER,
    Action.VERIFY_ORDER: MODERATOR_TIER,
    Action.DELETE_ORDER: MODERATOR_TIER,
    Action.VIEW_AUDIT_LOG: frozenset({Role.MODERATOR}),
    Action.VIEW_STATISTICS: MODERATOR_TIER | {Role.OPERATOR},
}


def authorize(
    caller_id: str,
    caller_role: Role,
    target_id: Optional[str],
    action: Action
) -> Decision:
    """
    Decide whether ``caller_id`` holding ``caller_role`` may perform
    ``action`` on ``target_id``.

    Rules, first match wins:
    1. Self-service action on the caller's own account -> ALLOW
    2. Caller role is granted the action -> ALLOW
    3. Otherwise -> DENY

    ``caller_role`` must come from the record store, never from the request.
    """
    if action in SELF_SERVICE_ACTIONS and target_id is not None and caller_id == target_id:
        return Decision.ALLOW

    if caller_role in ROLE_GRANTS.get(action, frozenset()):
        return Decision.ALLOW

    return Decision.DENY
