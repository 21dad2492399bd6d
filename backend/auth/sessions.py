# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Session lifecycle – issue, validate and refresh session tokens.

A session token is a signed JWT with::

    sub            user e-mail
    user_id, role
    iat            issue time (epoch seconds)
    exp            hard ceiling from process config
    sid            random session id, kept across refreshes
    typ            always "session"
    last_activity  optional; present when idle tracking is on

The absolute and idle timeouts are *not* baked into the token.  They come
from the security snapshot at validation time, so an administrator who
shortens ``session_timeout_hours`` affects every live session immediately.
"""

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from core.config import settings
from core.errors import DomainError, InvalidToken, SessionExpired, SessionExpiryReason
from core.result import Failure, Result, Success
from core.security import decode_token, encode_token
from core.timeutil import utcnow

TOKEN_TYPE = "session"

# Paths reachable without a session (prefix match)
EXEMPT_PATHS = (
    "/auth/login",
    "/auth/register",
    "/auth/password-requirements",
    "/settings/public",
    "/settings/features",
    "/health",
    "/docs",
    "/openapi.json",
)

# Warn the client when this share of the absolute timeout has elapsed
REFRESH_WARNING_RATIO = 0.8


@dataclass(frozen=True)
class SessionClaims:
    email: str
    user_id: int
    role: str
    issued_at: datetime
    expires_at: datetime
    session_id: str
    last_activity: Optional[datetime] = None


def _ts(dt: datetime) -> int:
    return int(dt.timestamp())


def _dt(ts) -> datetime:
    return datetime.fromtimestamp(int(ts), tz=timezone.utc)


def _encode(claims: SessionClaims) -> str:
    payload = {
        "sub": claims.email,
        "user_id": claims.user_id,
        "role": claims.role,
        "iat": _ts(claims.issued_at),
        "exp": _ts(claims.expires_at),
        "sid": claims.session_id,
        "typ": TOKEN_TYPE,
    }
    if claims.last_activity is not None:
        payload["last_activity"] = _ts(claims.last_activity)
    return encode_token(payload)


def issue_session_token(user, now: Optional[datetime] = None, track_idle: bool = True) -> str:
    now = now or utcnow()
    claims = SessionClaims(
        email=user.email,
        user_id=user.id,
        role=user.role,
        issued_at=now,
        expires_at=now + timedelta(minutes=settings.access_token_expire_minutes),
        session_id=secrets.token_urlsafe(16),
        last_activity=now if track_idle else None,
    )
    return _encode(claims)


def refresh_session_token(claims: SessionClaims, now: Optional[datetime] = None) -> str:
    """Same session (iat, sid, exp), new ``last_activity``."""
    now = now or utcnow()
    return _encode(
        SessionClaims(
            email=claims.email,
            user_id=claims.user_id,
            role=claims.role,
            issued_at=claims.issued_at,
            expires_at=claims.expires_at,
            session_id=claims.session_id,
            last_activity=now,
        )
    )


def _parse_claims(token: str) -> Optional[SessionClaims]:
    try:
        payload = decode_token(token, verify_exp=False)
    except jwt.InvalidTokenError:
        return None
    if payload.get("typ") != TOKEN_TYPE:
        return None
    try:
        last_activity = payload.get("last_activity")
        return SessionClaims(
            email=payload["sub"],
            user_id=int(payload["user_id"]),
            role=payload["role"],
            issued_at=_dt(payload["iat"]),
            expires_at=_dt(payload["exp"]),
            session_id=payload["sid"],
            last_activity=_dt(last_activity) if last_activity is not None else None,
        )
    except (KeyError, TypeError, ValueError, OverflowError, OSError):
        return None


def validate_session_token(
    token: str,
    snapshot,
    now: Optional[datetime] = None,
) -> Result[SessionClaims, DomainError]:
    """
    Check signature, type, absolute age and idle time, in that order.

    Returns ``Success(SessionClaims)`` or ``Failure`` holding ``InvalidToken``
    or ``SessionExpired`` with the reason.
    """
    now = now or utcnow()
    claims = _parse_claims(token)
    if claims is None:
        return Failure(InvalidToken())

    session_limit = timedelta(hours=snapshot.session_timeout_hours)
    if now >= claims.expires_at or now - claims.issued_at > session_limit:
        return Failure(SessionExpired(reason=SessionExpiryReason.ABSOLUTE))

    if claims.last_activity is not None:
        if now - claims.last_activity > timedelta(minutes=snapshot.idle_timeout_minutes):
            return Failure(
                SessionExpired(
                    reason=SessionExpiryReason.IDLE,
                    message="Your session has expired due to inactivity. Please log in again.",
                )
            )

    return Success(claims)


def is_exempt(path: str) -> bool:
    return any(path == prefix or path.startswith(prefix + "/") for prefix in EXEMPT_PATHS)


def session_info(claims: SessionClaims, snapshot, now: Optional[datetime] = None) -> dict:
    now = now or utcnow()
    age = now - claims.issued_at
    session_limit = timedelta(hours=snapshot.session_timeout_hours)
    expires_at = min(claims.issued_at + session_limit, claims.expires_at)
    info = {
        "session_id": claims.session_id,
        "issued_at": claims.issued_at,
        "session_age_minutes": int(age.total_seconds() // 60),
        "session_timeout_hours": snapshot.session_timeout_hours,
        "idle_timeout_minutes": snapshot.idle_timeout_minutes,
        "expires_at": expires_at,
        "last_activity": claims.last_activity,
        "should_refresh": age >= session_limit * REFRESH_WARNING_RATIO,
    }
    if claims.last_activity is not None:
        info["idle_expires_at"] = claims.last_activity + timedelta(minutes=snapshot.idle_timeout_minutes)
    return info
