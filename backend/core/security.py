# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Central security module.  All cryptographic primitives and auth guards live
here.  No other module should touch raw crypto directly.

Responsibilities
----------------
1. Password / backup-code hashing            (passlib pbkdf2_sha256)
2. TOTP-secret encryption at rest            (AES-256-GCM)
3. JWT signing / decoding primitives         (PyJWT / HS256)
4. FastAPI dependency guards                 (get_current_user, require_admin)

Session *policy* (absolute / idle timeouts) is not decided here; see
``auth.sessions``.  This module only knows how to sign and verify.
"""

import base64
import secrets

import jwt as _jwt        # PyJWT
from passlib.hash import pbkdf2_sha256 as _pbkdf2  # pure Python, no binary deps
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select

from core.config import settings
from database import get_db

JWT_ALGORITHM = "HS256"

# ---------------------------------------------------------------------------
# 1.  pbkdf2_sha256 – hashing  (pure Python, no glibc constraint)
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """
    Hash a plaintext password with PBKDF2-SHA256.

    The salt is embedded inside the returned hash string (passlib
    convention), so a single column is enough.
    """
    return _pbkdf2.using(rounds=settings.password_hash_rounds).hash(plain)


def verify_password(plain: str, stored_hash: str) -> bool:
    """
    Constant-time verification of a plaintext password against a hash
    produced by :func:`hash_password`.  A malformed stored hash counts as a
    mismatch.
    """
    try:
        return _pbkdf2.verify(plain, stored_hash)
    except ValueError:
        return False


def hash_backup_code(code: str) -> str:
    """Backup codes are short and single-use; a lighter work factor suffices."""
    return _pbkdf2.using(rounds=settings.backup_code_hash_rounds).hash(code)


# ---------------------------------------------------------------------------
# 2.  AES-256-GCM – TOTP secrets at rest
# ---------------------------------------------------------------------------


def _get_master_key() -> bytes:
    """
    Decode the base64-encoded MASTER_ENCRYPTION_KEY from the environment.
    Called at use-time (not import-time) so the key is never cached at module
    load.  Must be exactly 32 bytes after decoding.
    """
    key = base64.b64decode(settings.master_encryption_key)
    if len(key) != 32:
        raise RuntimeError("MASTER_ENCRYPTION_KEY must decode to exactly 32 bytes")
    return key


def encrypt_secret(plaintext: str) -> str:
    """
    Encrypt *plaintext* with AES-256-GCM under a fresh 96-bit nonce.

    Returns ``"<iv_b64>:<ciphertext_and_tag_b64>"`` so the pair fits one column.
    """
    iv = secrets.token_bytes(12)          # 96-bit nonce per NIST SP 800-38D
    ct_and_tag = AESGCM(_get_master_key()).encrypt(iv, plaintext.encode("utf-8"), None)
    return "{}:{}".format(
        base64.b64encode(iv).decode("ascii"),
        base64.b64encode(ct_and_tag).decode("ascii"),
    )


def decrypt_secret(blob: str) -> str:
    """
    Decrypt a value produced by :func:`encrypt_secret`.

    Raises ``ValueError`` if the blob is malformed or the GCM authentication
    tag does not match (tampered data or wrong key).
    """
    try:
        iv_b64, ct_b64 = blob.split(":", 1)
        plaintext = AESGCM(_get_master_key()).decrypt(
            base64.b64decode(iv_b64), base64.b64decode(ct_b64), None
        )
    except Exception as exc:
        raise ValueError("Decryption failed – data may be tampered") from exc
    return plaintext.decode("utf-8")


# ---------------------------------------------------------------------------
# 3.  JWT primitives
# ---------------------------------------------------------------------------


def encode_token(claims: dict) -> str:
    """Sign *claims* with HS256.  Callers supply every time-based claim."""
    return _jwt.encode(claims, settings.secret_key, algorithm=JWT_ALGORITHM)


def decode_token(token: str, *, verify_exp: bool = True) -> dict:
    """
    Verify the signature and return the claims.

    Raises ``jwt.InvalidTokenError`` (or a subclass such as
    ``ExpiredSignatureError``) on any failure.  Session tokens pass
    ``verify_exp=False`` because their expiry is evaluated against the
    request clock by ``auth.sessions``.
    """
    return _jwt.decode(
        token,
        settings.secret_key,
        algorithms=[JWT_ALGORITHM],
        options={"verify_exp": verify_exp, "verify_iat": False},
    )


# ---------------------------------------------------------------------------
# 4.  FastAPI dependency guards
# ---------------------------------------------------------------------------

# The tokenUrl here is only used by the auto-generated OpenAPI docs;
# the actual login endpoint is POST /auth/login.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


async def get_current_user(
    request: Request,
    token: str = Depends(oauth2_scheme),
    db=Depends(get_db),
):
    """
    Dependency: pick up the session claims validated by the session
    middleware, load the User row, verify the account is active.  Returns the
    User ORM instance.

    Raises 401 if no valid session accompanies the request or the user is
    gone/disabled.
    """
    claims = getattr(request.state, "session", None)
    if claims is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    # Lazy import to avoid circular dependency at module load time
    from models.user import User  # noqa: E402

    user = (await db.execute(select(User).where(User.id == claims.user_id))).scalar_one_or_none()
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )
    return user


async def require_admin(current_user=Depends(get_current_user)):
    """
    Dependency: wraps :func:`get_current_user` and additionally asserts
    ``role == 'admin'``.  Raises 403 otherwise.
    """
    if current_user.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user


# -- IP Address extraction ----------------------------------------------------


def get_client_ip(request: Request) -> str:
    """
    Extract the client IP address from the request.
    Checks X-Forwarded-For header first (for proxies), then falls back to client host.
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # X-Forwarded-For can contain multiple IPs, take the first (original client)
        return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return "unknown"
