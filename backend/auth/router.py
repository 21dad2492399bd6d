# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Auth endpoints – registration, login, password policy, session info.

Security notes
--------------
* Login returns the *same* error whether the email doesn't exist or the
  password is wrong.  This prevents user-enumeration attacks.
* A locked account is refused before its password is even compared.
* change-password verifies the old password before accepting the new one,
  so a stolen (but not yet expired) token alone cannot reset the password.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from auth import service
from auth.passwords import effective_password_rules, requirements_message, strength_label, validate_password
from auth.policy import resolve_security_settings
from auth.schemas import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    PasswordCheckRequest,
    PasswordCheckResponse,
    PasswordRequirementsResponse,
    RegisterRequest,
    SessionInfoResponse,
    TwoFactorLoginRequest,
    UserInfoResponse,
)
from auth.sessions import session_info
from core.errors import InvalidCredentials
from core.result import Failure
from core.security import get_client_ip, get_current_user
from database import get_db
from models.user import User

router = APIRouter(prefix="/auth", tags=["auth"])


def _login_response(outcome) -> LoginResponse:
    if isinstance(outcome, service.TwoFactorRequired):
        return LoginResponse(requires_two_factor=True, pending_token=outcome.pending_token)
    return LoginResponse(
        access_token=outcome.access_token,
        force_password_change=outcome.force_password_change,
    )


# ---------------------------------------------------------------------------
# POST /auth/register
# ---------------------------------------------------------------------------


@router.post("/register", response_model=UserInfoResponse, status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest, request: Request, db: AsyncSession = Depends(get_db)):
    """Self-registration, subject to ``allow_registration`` and the password policy."""
    result = await service.register(
        db, body.username, body.email, body.password, request_ip=get_client_ip(request)
    )
    if isinstance(result, Failure):
        raise result.error.to_http_exception()
    return result.value


# ---------------------------------------------------------------------------
# POST /auth/login
# ---------------------------------------------------------------------------


@router.post("/login", response_model=LoginResponse)
async def login(body: LoginRequest, request: Request, db: AsyncSession = Depends(get_db)):
    """
    Authenticate with email and password.  Returns either a session token or,
    when two-factor authentication applies, a short-lived pending token for
    ``POST /auth/login/2fa``.
    """
    result = await service.login(db, body.email, body.password, request_ip=get_client_ip(request))
    if isinstance(result, Failure):
        raise result.error.to_http_exception()
    return _login_response(result.value)


# ---------------------------------------------------------------------------
# POST /auth/login/2fa
# ---------------------------------------------------------------------------


@router.post("/login/2fa", response_model=LoginResponse)
async def login_two_factor(body: TwoFactorLoginRequest, request: Request, db: AsyncSession = Depends(get_db)):
    result = await service.complete_two_factor_login(
        db, body.pending_token, body.token, request_ip=get_client_ip(request)
    )
    if isinstance(result, Failure):
        raise result.error.to_http_exception()
    return _login_response(result.value)


# ---------------------------------------------------------------------------
# GET /auth/password-requirements
# ---------------------------------------------------------------------------


@router.get("/password-requirements", response_model=PasswordRequirementsResponse)
async def password_requirements(db: AsyncSession = Depends(get_db)):
    rules = effective_password_rules(await resolve_security_settings(db))
    return PasswordRequirementsResponse(rules=rules.to_dict(), message=requirements_message(rules))


# ---------------------------------------------------------------------------
# POST /auth/password-requirements/check
# ---------------------------------------------------------------------------


@router.post("/password-requirements/check", response_model=PasswordCheckResponse)
async def check_password(body: PasswordCheckRequest, db: AsyncSession = Depends(get_db)):
    """Live feedback for a password form; nothing is stored."""
    rules = effective_password_rules(await resolve_security_settings(db))
    check = validate_password(body.password, rules, username=body.username, email=body.email)
    return PasswordCheckResponse(
        is_valid=check.is_valid,
        errors=list(check.errors),
        strength=check.strength,
        strength_label=strength_label(check.strength),
    )


# ---------------------------------------------------------------------------
# PUT /auth/change-password
# ---------------------------------------------------------------------------


@router.put("/change-password")
async def change_password(
    body: ChangePasswordRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Change the authenticated user's login password.
    Also clears the force_password_change flag.
    """
    result = await service.change_password(
        db, current_user, body.old_password, body.new_password, request_ip=get_client_ip(request)
    )
    if isinstance(result, Failure):
        if isinstance(result.error, InvalidCredentials):
            # The session is fine; only the old password was wrong
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result.error.detail())
        raise result.error.to_http_exception()
    return {"detail": "Password changed successfully"}


# ---------------------------------------------------------------------------
# GET /auth/me
# ---------------------------------------------------------------------------


@router.get("/me", response_model=UserInfoResponse)
async def me(current_user: User = Depends(get_current_user)):
    """Return the authenticated user's public profile (no secrets)."""
    return current_user


# ---------------------------------------------------------------------------
# GET /auth/session-info
# ---------------------------------------------------------------------------


@router.get("/session-info", response_model=SessionInfoResponse)
async def get_session_info(
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    snapshot = await resolve_security_settings(db)
    return session_info(request.state.session, snapshot)


# ---------------------------------------------------------------------------
# POST /auth/logout
# ---------------------------------------------------------------------------


@router.post("/logout")
async def logout(current_user: User = Depends(get_current_user)):
    """Tokens are not stored server-side; the client discards its token."""
    return {"detail": "Logged out"}
