# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Admin endpoints – member lifecycle management and the audit trail.

Every endpoint in this router is guarded by ``require_admin``.  A request
that carries a valid session but belongs to a ``member`` will receive 403
before any business logic runs.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from admin.schemas import (
    AuditLogListResponse,
    AuditLogRow,
    ChangeRoleRequest,
    CreateUserRequest,
    ResetPasswordRequest,
    UserListResponse,
    UserRow,
)
from auth.lockout import unlock_account
from auth.passwords import effective_password_rules, validate_password
from auth.policy import resolve_security_settings
from core.errors import PasswordPolicyViolation
from core.security import get_client_ip, hash_password, require_admin
from database import get_db
from models.audit_log import AuditLog
from models.user import ROLES, User

router = APIRouter(prefix="/admin", tags=["admin"])


async def _get_target(db: AsyncSession, user_id: int) -> User:
    target = await db.get(User, user_id)
    if not target:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return target


async def _commit_audit(
    db: AsyncSession,
    admin: User,
    target: User,
    action: str,
    request: Request,
    detail: Optional[str] = None,
) -> None:
    db.add(AuditLog(
        actor_id=admin.id,
        target_user_id=target.id,
        action=action,
        detail=detail,
        request_ip=get_client_ip(request),
    ))
    await db.commit()
    await db.refresh(target)


async def _check_password(db: AsyncSession, password: str, target_username: str, target_email: str) -> None:
    rules = effective_password_rules(await resolve_security_settings(db))
    check = validate_password(password, rules, username=target_username, email=target_email)
    if not check.is_valid:
        raise PasswordPolicyViolation(errors=check.errors, strength=check.strength).to_http_exception()


def _check_role(role: str) -> None:
    if role not in ROLES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid role. Must be 'admin' or 'member'",
        )


# ---------------------------------------------------------------------------
# POST /admin/users  – create a new member
# ---------------------------------------------------------------------------


@router.post("/users", response_model=UserRow, status_code=status.HTTP_201_CREATED)
async def create_user(
    body: CreateUserRequest,
    request: Request,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Create an approved, verified account.  ``force_password_change`` is set
    so the member must choose their own password on first login.
    """
    _check_role(body.role)
    email = body.email.strip().lower()

    taken = (
        await db.execute(
            select(User.id).where(or_(User.email == email, func.lower(User.username) == body.username.lower()))
        )
    ).first()
    if taken:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email or username already exists")

    await _check_password(db, body.password, body.username, email)

    user = User(
        username=body.username,
        email=email,
        password_hash=hash_password(body.password),
        role=body.role,
        is_active=True,
        approval_status="approved",
        email_verified=True,
        force_password_change=True,  # must change on first login
    )
    db.add(user)
    await db.flush()  # get user.id before commit
    await _commit_audit(db, admin, user, "create_user", request, detail=f"role={body.role}")
    return user


# ---------------------------------------------------------------------------
# GET /admin/users  – list members
# ---------------------------------------------------------------------------


@router.get("/users", response_model=UserListResponse)
async def list_users(
    approval_status: Optional[str] = Query(None, description="pending, approved or rejected"),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Return user rows (no password or 2FA secrets – handled by the schema)."""
    query = select(User).order_by(User.id)
    if approval_status:
        query = query.where(User.approval_status == approval_status)
    users = (await db.execute(query)).scalars().all()
    return UserListResponse(users=users)


# ---------------------------------------------------------------------------
# PUT /admin/users/{id}/approve  |  /reject
# ---------------------------------------------------------------------------


@router.put("/users/{user_id}/approve", response_model=UserRow)
async def approve_user(
    user_id: int,
    request: Request,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    target = await _get_target(db, user_id)
    target.approval_status = "approved"
    await _commit_audit(db, admin, target, "approve_user", request)
    return target


@router.put("/users/{user_id}/reject", response_model=UserRow)
async def reject_user(
    user_id: int,
    request: Request,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if user_id == admin.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot reject yourself")
    target = await _get_target(db, user_id)
    target.approval_status = "rejected"
    await _commit_audit(db, admin, target, "reject_user", request)
    return target


# ---------------------------------------------------------------------------
# PUT /admin/users/{id}/verify-email  – mark the address as verified
# ---------------------------------------------------------------------------


@router.put("/users/{user_id}/verify-email", response_model=UserRow)
async def verify_email(
    user_id: int,
    request: Request,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Manual verification for clubs that require verified addresses."""
    target = await _get_target(db, user_id)
    target.email_verified = True
    await _commit_audit(db, admin, target, "verify_email", request)
    return target


# ---------------------------------------------------------------------------
# PUT /admin/users/{id}/unlock  – clear a login lockout
# ---------------------------------------------------------------------------


@router.put("/users/{user_id}/unlock")
async def unlock_user(
    user_id: int,
    request: Request,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    target = await _get_target(db, user_id)
    await unlock_account(db, target)
    await _commit_audit(db, admin, target, "unlock_account", request)
    return {"detail": "Account unlocked"}


# ---------------------------------------------------------------------------
# PUT /admin/users/{id}/reset-password  – admin resets another user's password
# ---------------------------------------------------------------------------


@router.put("/users/{user_id}/reset-password")
async def reset_password(
    user_id: int,
    body: ResetPasswordRequest,
    request: Request,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Overwrite a user's password.  ``force_password_change`` is set back to
    True so the user must pick a new password on their next login.
    """
    target = await _get_target(db, user_id)
    await _check_password(db, body.new_password, target.username, target.email)

    target.password_hash = hash_password(body.new_password)
    target.force_password_change = True
    await _commit_audit(db, admin, target, "reset_password", request)
    return {"detail": "Password reset successfully"}


# ---------------------------------------------------------------------------
# PUT /admin/users/{id}/disable  |  /enable
# ---------------------------------------------------------------------------


@router.put("/users/{user_id}/disable")
async def disable_user(
    user_id: int,
    request: Request,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Set ``is_active = False``.  The user can no longer log in, and any
    existing session will be rejected by ``get_current_user``.

    Guard: an admin cannot disable their own account.
    """
    if user_id == admin.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot disable yourself")

    target = await _get_target(db, user_id)
    target.is_active = False
    await _commit_audit(db, admin, target, "disable_user", request)
    return {"detail": "User disabled"}


@router.put("/users/{user_id}/enable")
async def enable_user(
    user_id: int,
    request: Request,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Set ``is_active = True`` so the user can log in again."""
    target = await _get_target(db, user_id)
    target.is_active = True
    await _commit_audit(db, admin, target, "enable_user", request)
    return {"detail": "User enabled"}


# ---------------------------------------------------------------------------
# PUT /admin/users/{id}/change-role  – promote or demote a user
# ---------------------------------------------------------------------------


@router.put("/users/{user_id}/change-role")
async def change_role(
    user_id: int,
    body: ChangeRoleRequest,
    request: Request,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Change the role of an existing user.  Guards:
    * Role value must be 'admin' or 'member'.
    * An admin cannot change their own role (prevents accidental self-lockout).
    """
    _check_role(body.role)
    if user_id == admin.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot change your own role")

    target = await _get_target(db, user_id)
    target.role = body.role
    await _commit_audit(db, admin, target, "change_role", request, detail=f"new_role={body.role}")
    return {"detail": "Role updated"}


# ---------------------------------------------------------------------------
# GET /admin/audit-logs  – audit trail with optional filters
# ---------------------------------------------------------------------------


@router.get("/audit-logs", response_model=AuditLogListResponse)
async def list_audit_logs(
    emails: Optional[List[str]] = Query(None, description="Filter by exact email(s) – repeated param"),
    action: Optional[str] = Query(None),
    since: Optional[datetime] = Query(None, description="ISO-8601 start of time window"),
    until: Optional[datetime] = Query(None, description="ISO-8601 end of time window"),
    limit: int = Query(200, ge=1, le=1000),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Return audit log rows newest-first.  Supports optional filters:

    * ``emails`` – one or more exact email addresses; match rows where
                   *either* the actor or the target is one of them.
    * ``action`` – exact action name, e.g. ``account_locked``.
    * ``since`` / ``until`` – ISO-8601 bounds on ``created_at``.
    * ``limit`` – max rows returned (default 200, cap 1000).
    """
    Actor  = aliased(User)
    Target = aliased(User)

    query = (
        select(AuditLog, Actor.email, Target.email)
        .outerjoin(Actor,  AuditLog.actor_id       == Actor.id)
        .outerjoin(Target, AuditLog.target_user_id == Target.id)
    )
    if emails:
        query = query.where(or_(Actor.email.in_(emails), Target.email.in_(emails)))
    if action:
        query = query.where(AuditLog.action == action)
    if since:
        query = query.where(AuditLog.created_at >= since)
    if until:
        query = query.where(AuditLog.created_at <= until)

    rows = (await db.execute(query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit))).all()
    return AuditLogListResponse(logs=[
        AuditLogRow(
            id=log.id,
            actor_email=actor_email,
            target_email=target_email,
            action=log.action,
            detail=log.detail,
            request_ip=log.request_ip,
            created_at=log.created_at,
        )
        for log, actor_email, target_email in rows
    ])
