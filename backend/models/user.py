# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""User ORM model – club member account plus its login-security state."""

from sqlalchemy import Column, Integer, String, Boolean, Enum, DateTime, Text, JSON
from sqlalchemy.sql import func

from database import Base

ROLES = ("admin", "member")
APPROVAL_STATUSES = ("pending", "approved", "rejected")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    # passlib embeds the salt in the hash string
    password_hash = Column(String(255), nullable=False)
    role = Column(Enum(*ROLES, name="user_role"), nullable=False, default="member")
    is_active = Column(Boolean, nullable=False, default=True)
    approval_status = Column(
        Enum(*APPROVAL_STATUSES, name="user_approval_status"),
        nullable=False,
        default="approved",
    )
    email_verified = Column(Boolean, nullable=False, default=False)
    force_password_change = Column(Boolean, nullable=False, default=False)
    last_login = Column(DateTime(timezone=True), nullable=True)

    # -- Login lockout ----------------------------------------------------
    failed_login_attempts = Column(Integer, nullable=False, default=0)
    account_locked_until = Column(DateTime(timezone=True), nullable=True)
    last_failed_login = Column(DateTime(timezone=True), nullable=True)

    # -- Two-factor authentication -----------------------------------------
    two_factor_enabled = Column(Boolean, nullable=False, default=False)
    # AES-256-GCM "<iv>:<ciphertext>" – never the raw base32 secret
    two_factor_secret = Column(Text, nullable=True)
    # List of pbkdf2 hashes; a code's hash is removed once it is used
    two_factor_backup_codes = Column(JSON, nullable=True)
    two_factor_last_used = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
