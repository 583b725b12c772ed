"""Pydantic schemas for request/response validation."""
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from labelprint.models.enums import Role


# Auth schemas
class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


# User schemas
class UserCreate(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=8)
    name: str = Field(..., min_length=1, max_length=100)
    role: Role = Role.USER
    employee_id: Optional[str] = None
    job_title: Optional[str] = None
    department: Optional[str] = None


class UserUpdate(BaseModel):
    """
    Partial profile update.

    Sending ``role`` at all makes the request a privileged edit, whoever the
    target is.
    """
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    role: Optional[Role] = None
    employee_id: Optional[str] = None
    job_title: Optional[str] = None
    department: Optional[str] = None


class PasswordChange(BaseModel):
    new_password: str = Field(..., alias="newPassword", min_length=8)

    class Config:
        populate_by_name = True


class UserResponse(BaseModel):
    id: str
    email: Optional[str]
    name: str
    role: Role
    employee_id: Optional[str]
    job_title: Optional[str]
    department: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class LoginResponse(BaseModel):
    access_token: str
    refresh_token: Optional[str]
    expires_in: Optional[int]
    user: Optional[UserResponse]  # None until the profile exists


class PasswordChangeResponse(BaseModel):
    message: str
    user: Dict[str, Any]


class MessageResponse(BaseModel):
    message: str


# Product schemas
class ProductCreate(BaseModel):
    id: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=200)
    exp: str = Field(..., min_length=1, max_length=50)


class ProductUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    exp: str = Field(..., min_length=1, max_length=50)


class ProductResponse(BaseModel):
    id: str
    name: str
    exp: str
    created_at: datetime

    class Config:
        from_attributes = True


# Order schemas
class OrderCreate(BaseModel):
    lot_number: str
    product_id: str
    production_date: date
    quantity: int
    notes: Optional[str] = Field(None, max_length=500)
    order_type: Optional[str] = None


class OrderUpdate(BaseModel):
    lot_number: Optional[str] = None
    quantity: Optional[int] = None
    notes: Optional[str] = Field(None, max_length=500)


class OrderResponse(BaseModel):
    id: int
    order_date: date
    order_time: str
    order_datetime: datetime
    order_type: str
    lot_number: str
    product_id: str
    product_name: str
    product_exp: str
    production_date: date
    expiry_date: Optional[date]
    quantity: int
    notes: Optional[str]
    created_by: str
    created_by_department: str
    is_verified: bool
    verified_by: Optional[str]
    verified_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


# Reporting schemas
class DepartmentCount(BaseModel):
    department: str
    count: int


class StatisticsResponse(BaseModel):
    year: int
    month: int
    total: int
    departments: List[DepartmentCount]


class AuditLogEntry(BaseModel):
    id: int
    user_id: str
    user_name: Optional[str]
    user_email: Optional[str]
    action: str
    action_label: str
    details: Dict[str, Any]
    ip_address: Optional[str]
    created_at: datetime


# Error response
class ErrorResponse(BaseModel):
    """Body of every error response."""
    error: str
    detail: Any
