# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Two-factor endpoints for the logged-in member.

Setup is two calls: ``POST /auth/2fa/setup`` hands out the secret, QR
payload and backup codes together with a signed ``setup_token``; nothing is
stored until ``POST /auth/2fa/setup/verify`` proves the authenticator app
produces valid codes.
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from auth import two_factor
from auth.policy import resolve_security_settings
from auth.schemas import (
    BackupCodesResponse,
    TwoFactorPasswordRequest,
    TwoFactorSetupResponse,
    TwoFactorSetupVerifyRequest,
    TwoFactorStatusResponse,
    TwoFactorTokenRequest,
    TwoFactorVerifyResponse,
)
from core.errors import TwoFactorAlreadyEnabled
from core.result import Failure
from core.security import get_client_ip, get_current_user
from database import get_db
from models.audit_log import AuditLog
from models.user import User

router = APIRouter(prefix="/auth/2fa", tags=["two-factor"])


async def _audit(db: AsyncSession, user: User, action: str, request: Request) -> None:
    db.add(AuditLog(actor_id=user.id, target_user_id=user.id, action=action, request_ip=get_client_ip(request)))
    await db.commit()


# GET /auth/2fa/status
@router.get("/status", response_model=TwoFactorStatusResponse)
async def status_(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return two_factor.two_factor_status(current_user, await resolve_security_settings(db))


# POST /auth/2fa/setup
@router.post("/setup", response_model=TwoFactorSetupResponse)
async def setup(current_user: User = Depends(get_current_user)):
    if current_user.two_factor_enabled:
        raise TwoFactorAlreadyEnabled().to_http_exception()
    data = two_factor.generate_setup(current_user)
    return TwoFactorSetupResponse(
        secret=data.secret,
        qr_payload=data.qr_payload,
        backup_codes=data.backup_codes,
        setup_token=data.setup_token,
    )


# POST /auth/2fa/setup/verify
@router.post("/setup/verify")
async def setup_verify(
    body: TwoFactorSetupVerifyRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await two_factor.confirm_setup(db, current_user, body.setup_token, body.token)
    if isinstance(result, Failure):
        raise result.error.to_http_exception()
    await _audit(db, current_user, "two_factor_enabled", request)
    return {"detail": "Two-factor authentication enabled"}


# POST /auth/2fa/verify
@router.post("/verify", response_model=TwoFactorVerifyResponse)
async def verify(
    body: TwoFactorTokenRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await two_factor.verify(db, current_user, body.token)
    if isinstance(result, Failure):
        raise result.error.to_http_exception()
    return TwoFactorVerifyResponse(
        method=result.value.method,
        remaining_backup_codes=result.value.remaining_backup_codes,
    )


# POST /auth/2fa/disable
@router.post("/disable")
async def disable(
    body: TwoFactorPasswordRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await two_factor.disable(db, current_user, body.password, body.token)
    if isinstance(result, Failure):
        raise result.error.to_http_exception()
    await _audit(db, current_user, "two_factor_disabled", request)
    return {"detail": "Two-factor authentication disabled"}


# POST /auth/2fa/backup-codes
@router.post("/backup-codes", response_model=BackupCodesResponse)
async def backup_codes(
    body: TwoFactorPasswordRequest,
    request: Request,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await two_factor.regenerate_backup_codes(db, current_user, body.password, body.token)
    if isinstance(result, Failure):
        raise result.error.to_http_exception()
    await _audit(db, current_user, "backup_codes_regenerated", request)
    return BackupCodesResponse(backup_codes=result.value)
