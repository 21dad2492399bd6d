# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Authentication flows: login (one or two steps), registration, password change.

Login order is fixed::

    snapshot → user lookup → lock check → password → account state
             → 2FA (if enforced) → reset counters, audit, session token

The lock check comes before the password comparison, so a locked account is
refused even with the right password and the failure counter is left alone.
Unknown e-mail and wrong password produce the same ``InvalidCredentials``.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import lockout, two_factor
from auth.passwords import effective_password_rules, validate_password
from auth.policy import SecuritySettingsSnapshot, resolve_security_settings
from auth.sessions import issue_session_token
from core.errors import (
    AccountDisabled,
    AccountLocked,
    AccountNotApproved,
    DomainError,
    EmailNotVerified,
    InvalidCredentials,
    PasswordPolicyViolation,
    RegistrationClosed,
    TwoFactorInvalid,
    UserExists,
)
from core.logger import logger
from core.result import Failure, Result, Success
from core.security import hash_password, verify_password
from core.timeutil import utcnow
from models.audit_log import AuditLog
from models.user import User
from system_settings.store import SettingStore


@dataclass(frozen=True)
class Authenticated:
    access_token: str
    user: User
    force_password_change: bool = False


@dataclass(frozen=True)
class TwoFactorRequired:
    pending_token: str
    user_id: int


LoginOutcome = Union[Authenticated, TwoFactorRequired]


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def find_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    return (
        await db.execute(
            select(User)
            .where(User.email == normalize_email(email))
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()


def _check_account_state(user: User, snapshot: SecuritySettingsSnapshot) -> Optional[DomainError]:
    if not user.is_active:
        return AccountDisabled()
    if user.approval_status != "approved":
        if user.approval_status == "rejected":
            return AccountNotApproved(
                approval_status=user.approval_status,
                message="Your registration has been rejected",
            )
        return AccountNotApproved(approval_status=user.approval_status)
    if snapshot.require_email_verification and not user.email_verified:
        return EmailNotVerified()
    return None


async def _complete_login(
    db: AsyncSession,
    user: User,
    request_ip: Optional[str],
    now: datetime,
    method: str = "password",
) -> Authenticated:
    await lockout.reset_failed_attempts(db, user, commit=False)
    user.last_login = now
    db.add(AuditLog(
        actor_id=user.id,
        target_user_id=user.id,
        action="user_login",
        detail=f"method={method}",
        request_ip=request_ip,
    ))
    await db.commit()
    logger.info("User %s logged in (%s)", user.id, method)
    return Authenticated(
        access_token=issue_session_token(user, now=now),
        user=user,
        force_password_change=bool(user.force_password_change),
    )


async def login(
    db: AsyncSession,
    email: str,
    password: str,
    request_ip: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Result[LoginOutcome, DomainError]:
    now = now or utcnow()
    snapshot = await resolve_security_settings(db)

    user = await find_user_by_email(db, email)
    if user is None:
        logger.info("Failed login for unknown account from %s", request_ip)
        return Failure(InvalidCredentials())

    if lockout.is_locked(user, now):
        return Failure(AccountLocked(remaining_minutes=lockout.remaining_lock_minutes(user, now)))

    if not verify_password(password, user.password_hash):
        state = await lockout.record_failed_attempt(db, user, snapshot, now)
        if state is lockout.LockState.LOCKED:
            db.add(AuditLog(
                actor_id=None,
                target_user_id=user.id,
                action="account_locked",
                detail=f"{user.failed_login_attempts} failed login attempts",
                request_ip=request_ip,
            ))
            await db.commit()
        return Failure(InvalidCredentials())

    problem = _check_account_state(user, snapshot)
    if problem is not None:
        return Failure(problem)

    if two_factor.is_two_factor_enforced(user, snapshot):
        return Success(TwoFactorRequired(
            pending_token=two_factor.issue_pending_token(user, now),
            user_id=user.id,
        ))

    return Success(await _complete_login(db, user, request_ip, now))


async def complete_two_factor_login(
    db: AsyncSession,
    pending_token: str,
    code: str,
    request_ip: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Result[Authenticated, DomainError]:
    """Second login step: exchange the pending reference plus a TOTP/backup code for a session."""
    now = now or utcnow()
    user_id = two_factor.read_pending_token(pending_token, now)
    if user_id is None:
        return Failure(TwoFactorInvalid())

    user = await db.get(User, user_id, populate_existing=True)
    if user is None:
        return Failure(TwoFactorInvalid())
    if lockout.is_locked(user, now):
        return Failure(AccountLocked(remaining_minutes=lockout.remaining_lock_minutes(user, now)))
    if not user.is_active:
        return Failure(AccountDisabled())

    result = await two_factor.verify(db, user, code, now)
    if isinstance(result, Failure):
        logger.info("Failed two-factor step for user %s", user.id)
        return Failure(TwoFactorInvalid())

    return Success(await _complete_login(db, user, request_ip, now, method=result.value.method))


# ---------------------------------------------------------------------------
# Registration and password change
# ---------------------------------------------------------------------------


async def register(
    db: AsyncSession,
    username: str,
    email: str,
    password: str,
    request_ip: Optional[str] = None,
) -> Result[User, DomainError]:
    store = SettingStore(db)
    if await store.get("allow_registration", True) is not True:
        return Failure(RegistrationClosed())

    email = normalize_email(email)
    username = username.strip()
    snapshot = await resolve_security_settings(db)

    check = validate_password(password, effective_password_rules(snapshot), username=username, email=email)
    if not check.is_valid:
        return Failure(PasswordPolicyViolation(errors=check.errors, strength=check.strength))

    taken = (
        await db.execute(
            select(User.id).where(or_(User.email == email, func.lower(User.username) == username.lower()))
        )
    ).first()
    if taken is not None:
        return Failure(UserExists())

    needs_approval = await store.get("registration_approval_required", False) is True
    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        role="member",
        is_active=True,
        approval_status="pending" if needs_approval else "approved",
        email_verified=not snapshot.require_email_verification,
    )
    db.add(user)
    await db.flush()
    db.add(AuditLog(
        actor_id=user.id,
        target_user_id=user.id,
        action="user_registered",
        detail=f"approval_status={user.approval_status}",
        request_ip=request_ip,
    ))
    await db.commit()
    logger.info("New member %s registered (approval %s)", user.id, user.approval_status)
    return Success(user)


async def change_password(
    db: AsyncSession,
    user: User,
    old_password: str,
    new_password: str,
    request_ip: Optional[str] = None,
) -> Result[User, DomainError]:
    if not verify_password(old_password, user.password_hash):
        return Failure(InvalidCredentials(message="Old password is incorrect"))

    snapshot = await resolve_security_settings(db)
    check = validate_password(
        new_password, effective_password_rules(snapshot), username=user.username, email=user.email
    )
    if not check.is_valid:
        return Failure(PasswordPolicyViolation(errors=check.errors, strength=check.strength))

    user.password_hash = hash_password(new_password)
    user.force_password_change = False
    db.add(AuditLog(
        actor_id=user.id,
        target_user_id=user.id,
        action="password_changed",
        request_ip=request_ip,
    ))
    await db.commit()
    return Success(user)
