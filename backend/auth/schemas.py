# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for the auth and 2FA endpoints."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


# -- Requests --------------------------------------------------------------


class LoginRequest(BaseModel):
    email: str
    password: str


class TwoFactorLoginRequest(BaseModel):
    pending_token: str
    token: str


class RegisterRequest(BaseModel):
    username: str = Field(min_length=3, max_length=50)
    email: str = Field(min_length=3, max_length=255)
    password: str


class ChangePasswordRequest(BaseModel):
    old_password: str
    new_password: str


class PasswordCheckRequest(BaseModel):
    password: str
    username: Optional[str] = None
    email: Optional[str] = None


class TwoFactorTokenRequest(BaseModel):
    token: str


class TwoFactorSetupVerifyRequest(BaseModel):
    setup_token: str
    token: str


class TwoFactorPasswordRequest(BaseModel):
    password: str
    token: str


# -- Responses -------------------------------------------------------------


class LoginResponse(BaseModel):
    access_token: Optional[str] = None
    token_type: str = "bearer"
    force_password_change: bool = False
    # Set instead of access_token when a second factor is required
    requires_two_factor: bool = False
    pending_token: Optional[str] = None


class UserInfoResponse(BaseModel):
    id: int
    username: str
    email: str
    role: str
    is_active: bool
    approval_status: str
    email_verified: bool
    force_password_change: bool
    two_factor_enabled: bool
    last_login: Optional[datetime] = None

    model_config = {"from_attributes": True}


class PasswordRequirementsResponse(BaseModel):
    rules: dict
    message: str


class PasswordCheckResponse(BaseModel):
    is_valid: bool
    errors: List[str]
    strength: int
    strength_label: str


class SessionInfoResponse(BaseModel):
    session_id: str
    issued_at: datetime
    session_age_minutes: int
    session_timeout_hours: int
    idle_timeout_minutes: int
    expires_at: datetime
    last_activity: Optional[datetime] = None
    idle_expires_at: Optional[datetime] = None
    should_refresh: bool


class TwoFactorStatusResponse(BaseModel):
    enabled: bool
    enforced: bool
    site_wide_enabled: bool
    backup_codes_remaining: int
    last_used: Optional[datetime] = None


class TwoFactorSetupResponse(BaseModel):
    secret: str
    qr_payload: str
    backup_codes: List[str]
    setup_token: str


class TwoFactorVerifyResponse(BaseModel):
    method: str
    remaining_backup_codes: int


class BackupCodesResponse(BaseModel):
    backup_codes: List[str]
