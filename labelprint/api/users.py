"""
User administration routes.

Every handler goes through the access gate; privileged mutations can only
reach the executor returned by AccessGate.privileged().
"""
from typing import List

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from labelprint.api.dependencies import get_gate
from labelprint.api.schemas import (
    ErrorResponse,
    MessageResponse,
    PasswordChange,
    PasswordChangeResponse,
    UserCreate,
    UserResponse,
    UserUpdate,
)
from labelprint.database import get_db
from labelprint.models.domain import UserProfile
from labelprint.models.enums import Action
from labelprint.services.access import AccessGate
from labelprint.services.errors import ValidationError

router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Missing or invalid input"},
    401: {"model": ErrorResponse, "description": "Missing or rejected credential"},
    403: {"model": ErrorResponse, "description": "Role does not permit this action"},
    500: {"model": ErrorResponse, "description": "Identity provider or configuration error"},
}


def _require_id(user_id: str) -> str:
    if not user_id or not user_id.strip():
        raise ValidationError("User ID is required")
    return user_id.strip()


@router.get("/users/me", response_model=UserResponse)
def read_own_profile(request: Request, gate: AccessGate = Depends(get_gate)):
    """The caller's own profile (recovered first if recovery is enabled)."""
    return gate.authenticate(request).profile


@router.get("/users", response_model=List[UserResponse], responses=ERROR_RESPONSES)
def list_users(request: Request, gate: AccessGate = Depends(get_gate), db: Session = Depends(get_db)):
    """List all user profiles, newest first. Moderator tier only."""
    gate.require(request, Action.LIST_USERS)
    return db.query(UserProfile).order_by(UserProfile.created_at.desc()).all()


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED, responses=ERROR_RESPONSES)
def create_user(payload: UserCreate, request: Request, gate: AccessGate = Depends(get_gate)):
    """Create an identity at the provider together with its profile."""
    email = payload.email.strip()
    if "@" not in email or "." not in email:
        raise ValidationError("Please enter a valid email address")
    if not payload.name.strip():
        raise ValidationError("Name is required")

    executor = gate.privileged(request, Action.CREATE_ACCOUNT)
    return executor.create_account(
        email=email,
        password=payload.password,
        name=payload.name,
        role=payload.role,
        employee_id=payload.employee_id,
        job_title=payload.job_title,
        department=payload.department,
    )


@router.patch("/users/{user_id}", response_model=UserResponse, responses=ERROR_RESPONSES)
def update_user(user_id: str, payload: UserUpdate, request: Request, gate: AccessGate = Depends(get_gate)):
    """
    Update a profile.

    Owners may change their self-managed fields. Any change that mentions
    ``role``, or that targets someone else, needs moderator tier.
    """
    user_id = _require_id(user_id)
    fields = payload.model_dump(exclude_unset=True)
    if not fields:
        raise ValidationError("No profile fields to update")

    action = Action.EDIT_PROFILE if "role" in fields else Action.UPDATE_PROFILE
    executor = gate.privileged(request, action, target_id=user_id)

    # name and role are required columns; an explicit null leaves them unchanged
    for required in ("name", "role"):
        if required in fields and fields[required] is None:
            del fields[required]
    return executor.update_profile(user_id, fields)


@router.put("/users/{user_id}/password", response_model=PasswordChangeResponse, responses=ERROR_RESPONSES)
def change_password(user_id: str, payload: PasswordChange, request: Request, gate: AccessGate = Depends(get_gate)):
    """
    Set a new password.

    Allowed for the account owner, or for moderator tier on any account.
    """
    user_id = _require_id(user_id)
    executor = gate.privileged(request, Action.SET_PASSWORD, target_id=user_id)
    user = executor.set_password(user_id, payload.new_password)
    return {"message": "Password updated successfully", "user": user}


@router.delete("/users/{user_id}", response_model=MessageResponse, responses=ERROR_RESPONSES)
def delete_user(user_id: str, request: Request, gate: AccessGate = Depends(get_gate)):
    """Delete the identity and its profile. Moderator tier only."""
    user_id = _require_id(user_id)
    executor = gate.privileged(request, Action.DELETE_ACCOUNT, target_id=user_id)
    executor.delete_account(user_id)
    return {"message": "User deleted successfully"}
