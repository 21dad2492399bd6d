# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for the admin endpoints."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


# -- Requests --------------------------------------------------------------


class CreateUserRequest(BaseModel):
    username: str = Field(min_length=3, max_length=50)
    email: str
    password: str
    role: str = "member"  # "admin" or "member"


class ResetPasswordRequest(BaseModel):
    new_password: str


class ChangeRoleRequest(BaseModel):
    role: str  # "admin" or "member"


# -- Responses -------------------------------------------------------------


class UserRow(BaseModel):
    id: int
    username: str
    email: str
    role: str
    is_active: bool
    approval_status: str
    email_verified: bool
    two_factor_enabled: bool
    failed_login_attempts: int
    account_locked_until: Optional[datetime] = None
    last_login: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class UserListResponse(BaseModel):
    users: List[UserRow]


# -- Audit log responses ---------------------------------------------------


class AuditLogRow(BaseModel):
    id: int
    actor_email: Optional[str] = None       # resolved from actor_id join
    target_email: Optional[str] = None      # resolved from target_user_id join
    action: str
    detail: Optional[str] = None
    request_ip: Optional[str] = None
    created_at: datetime


class AuditLogListResponse(BaseModel):
    logs: List[AuditLogRow]
