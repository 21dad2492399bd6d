# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Two-factor authentication (TOTP + single-use backup codes).

Responsibilities
----------------
1. Setup: generate a secret and backup codes, hand them to the member, and
   persist them only once the member proves the authenticator works.
2. Verification: TOTP first, then backup codes (consumed on use).
3. Disable / regenerate, each gated by password *and* a valid code.
4. The short-lived "2FA pending" reference used between the two login steps.

Every verification failure comes back as the same ``TwoFactorInvalid``,
whether the input was malformed, a wrong TOTP or an unknown backup code.
"""

import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

import jwt
import pyotp
from passlib.hash import pbkdf2_sha256
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.errors import (
    DomainError,
    InvalidCredentials,
    TwoFactorAlreadyEnabled,
    TwoFactorInvalid,
    TwoFactorNotEnabled,
)
from core.logger import logger
from core.result import Failure, Result, Success
from core.security import (
    decode_token,
    decrypt_secret,
    encode_token,
    encrypt_secret,
    hash_backup_code,
    verify_password,
)
from core.timeutil import utcnow
from models.user import User

SETUP_TOKEN_TYPE = "2fa_setup"
PENDING_TOKEN_TYPE = "2fa_pending"

_TOTP_RE = re.compile(r"^\d{6}$")
_BACKUP_RE = re.compile(r"^[A-F0-9]{8}$")

# Accept codes one 30-second step either side of the server clock
TOTP_VALID_WINDOW = 1


@dataclass(frozen=True)
class TwoFactorSetup:
    secret: str
    qr_payload: str
    backup_codes: List[str]
    setup_token: str


@dataclass(frozen=True)
class TwoFactorVerification:
    method: str                       # "totp" or "backup_code"
    remaining_backup_codes: int


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def generate_backup_codes(count: Optional[int] = None) -> List[str]:
    return [secrets.token_hex(4).upper() for _ in range(count or settings.backup_code_count)]


def format_backup_code(code: str) -> str:
    return f"{code[:4]}-{code[4:]}"


def _normalize(token) -> str:
    if not isinstance(token, str):
        return ""
    return token.replace(" ", "").strip()


def _verify_totp(secret: str, token: str, now: datetime) -> bool:
    return pyotp.TOTP(secret).verify(token, for_time=now, valid_window=TOTP_VALID_WINDOW)


def _match_backup_code(hashes: List[str], code: str) -> Optional[int]:
    for index, stored in enumerate(hashes):
        try:
            if pbkdf2_sha256.verify(code, stored):
                return index
        except ValueError:
            continue
    return None


def is_two_factor_enforced(user: User, snapshot) -> bool:
    """2FA is demanded at login only when the member enabled it *and* the site flag is on."""
    return bool(user.two_factor_enabled) and bool(snapshot.enable_two_factor_auth)


def two_factor_status(user: User, snapshot) -> dict:
    return {
        "enabled": bool(user.two_factor_enabled),
        "enforced": is_two_factor_enforced(user, snapshot),
        "site_wide_enabled": bool(snapshot.enable_two_factor_auth),
        "backup_codes_remaining": len(user.two_factor_backup_codes or []),
        "last_used": user.two_factor_last_used,
    }


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def generate_setup(user: User, now: Optional[datetime] = None) -> TwoFactorSetup:
    """Create a secret and backup codes.  Nothing is written to the database."""
    now = now or utcnow()
    secret = pyotp.random_base32()
    codes = generate_backup_codes()
    setup_token = encode_token({
        "typ": SETUP_TOKEN_TYPE,
        "user_id": user.id,
        "secret": encrypt_secret(secret),
        "codes": [hash_backup_code(code) for code in codes],
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=settings.two_factor_setup_minutes)).timestamp()),
    })
    qr_payload = pyotp.TOTP(secret).provisioning_uri(name=user.email, issuer_name=settings.two_factor_issuer)
    return TwoFactorSetup(
        secret=secret,
        qr_payload=qr_payload,
        backup_codes=[format_backup_code(code) for code in codes],
        setup_token=setup_token,
    )


def _read_setup_token(setup_token: str, user: User, now: datetime) -> Optional[dict]:
    try:
        payload = decode_token(setup_token, verify_exp=False)
    except jwt.InvalidTokenError:
        return None
    if payload.get("typ") != SETUP_TOKEN_TYPE or payload.get("user_id") != user.id:
        return None
    if not isinstance(payload.get("exp"), (int, float)) or now.timestamp() >= payload["exp"]:
        return None
    if not isinstance(payload.get("secret"), str) or not isinstance(payload.get("codes"), list):
        return None
    return payload


async def confirm_setup(
    db: AsyncSession,
    user: User,
    setup_token: str,
    token: str,
    now: Optional[datetime] = None,
) -> Result[User, DomainError]:
    """Check the first TOTP against the pending secret, then enable 2FA in one commit."""
    now = now or utcnow()
    if user.two_factor_enabled:
        return Failure(TwoFactorAlreadyEnabled())

    payload = _read_setup_token(setup_token, user, now)
    token = _normalize(token)
    if payload is None or not _TOTP_RE.match(token):
        return Failure(TwoFactorInvalid())
    try:
        secret = decrypt_secret(payload["secret"])
    except ValueError:
        return Failure(TwoFactorInvalid())
    if not _verify_totp(secret, token, now):
        return Failure(TwoFactorInvalid())

    user.two_factor_secret = payload["secret"]
    user.two_factor_backup_codes = list(payload["codes"])
    user.two_factor_enabled = True
    user.two_factor_last_used = now
    await db.commit()
    logger.info("Two-factor authentication enabled for user %s", user.id)
    return Success(user)


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------


async def verify(
    db: AsyncSession,
    user: User,
    token: str,
    now: Optional[datetime] = None,
) -> Result[TwoFactorVerification, DomainError]:
    now = now or utcnow()
    if not user.two_factor_enabled or not user.two_factor_secret:
        return Failure(TwoFactorNotEnabled())

    token = _normalize(token)
    hashes = list(user.two_factor_backup_codes or [])

    if _TOTP_RE.match(token):
        try:
            secret = decrypt_secret(user.two_factor_secret)
        except ValueError:
            logger.error("Stored 2FA secret for user %s cannot be decrypted", user.id)
            return Failure(TwoFactorInvalid())
        if _verify_totp(secret, token, now):
            user.two_factor_last_used = now
            await db.commit()
            return Success(TwoFactorVerification(method="totp", remaining_backup_codes=len(hashes)))
        return Failure(TwoFactorInvalid())

    code = token.replace("-", "").upper()
    if _BACKUP_RE.match(code):
        index = _match_backup_code(hashes, code)
        if index is not None:
            del hashes[index]
            # Reassign so the JSON column is seen as changed
            user.two_factor_backup_codes = hashes
            user.two_factor_last_used = now
            await db.commit()
            logger.warning("User %s used a backup code (%d left)", user.id, len(hashes))
            return Success(TwoFactorVerification(method="backup_code", remaining_backup_codes=len(hashes)))

    return Failure(TwoFactorInvalid())


async def disable(
    db: AsyncSession,
    user: User,
    password: str,
    token: str,
    now: Optional[datetime] = None,
) -> Result[User, DomainError]:
    if not user.two_factor_enabled:
        return Failure(TwoFactorNotEnabled())
    if not verify_password(password, user.password_hash):
        return Failure(InvalidCredentials(message="Invalid password"))
    result = await verify(db, user, token, now)
    if isinstance(result, Failure):
        return result

    user.two_factor_enabled = False
    user.two_factor_secret = None
    user.two_factor_backup_codes = None
    user.two_factor_last_used = None
    await db.commit()
    logger.info("Two-factor authentication disabled for user %s", user.id)
    return Success(user)


async def regenerate_backup_codes(
    db: AsyncSession,
    user: User,
    password: str,
    token: str,
    now: Optional[datetime] = None,
) -> Result[List[str], DomainError]:
    if not user.two_factor_enabled:
        return Failure(TwoFactorNotEnabled())
    if not verify_password(password, user.password_hash):
        return Failure(InvalidCredentials(message="Invalid password"))
    result = await verify(db, user, token, now)
    if isinstance(result, Failure):
        return result

    codes = generate_backup_codes()
    user.two_factor_backup_codes = [hash_backup_code(code) for code in codes]
    await db.commit()
    logger.info("Backup codes regenerated for user %s", user.id)
    return Success([format_backup_code(code) for code in codes])


# ---------------------------------------------------------------------------
# Login "2FA pending" reference
# ---------------------------------------------------------------------------


def issue_pending_token(user: User, now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    return encode_token({
        "typ": PENDING_TOKEN_TYPE,
        "user_id": user.id,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=settings.two_factor_pending_minutes)).timestamp()),
    })


def read_pending_token(token: str, now: Optional[datetime] = None) -> Optional[int]:
    """Return the user id the reference was issued for, or ``None`` if it is invalid or stale."""
    now = now or utcnow()
    try:
        payload = decode_token(token, verify_exp=False)
    except jwt.InvalidTokenError:
        return None
    if payload.get("typ") != PENDING_TOKEN_TYPE:
        return None
    exp = payload.get("exp")
    if not isinstance(exp, (int, float)) or now.timestamp() >= exp:
        return None
    user_id = payload.get("user_id")
    return user_id if isinstance(user_id, int) else None
