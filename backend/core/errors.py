# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Expected-failure taxonomy.

Every error here is a *value*, returned inside ``core.result.Failure`` by the
settings and authentication components.  Routers turn them into HTTP
responses with :meth:`DomainError.to_http_exception`, so clients always get a
structured body::

    {"code": "ACCOUNT_LOCKED", "message": "...", "remaining_minutes": 12}

Credential and 2FA failures keep their messages deliberately vague.
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import ClassVar, Tuple

from fastapi import HTTPException, status


@dataclass(frozen=True, kw_only=True)
class DomainError:
    code: ClassVar[str] = "ERROR"
    status_code: ClassVar[int] = status.HTTP_400_BAD_REQUEST

    message: str = "Request failed"

    def detail(self) -> dict:
        return {"code": self.code, **asdict(self)}

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.detail())


# -- Settings ---------------------------------------------------------------


@dataclass(frozen=True, kw_only=True)
class SettingError(DomainError):
    key: str


@dataclass(frozen=True, kw_only=True)
class SettingValidationError(SettingError):
    code: ClassVar[str] = "VALIDATION_ERROR"
    status_code: ClassVar[int] = status.HTTP_422_UNPROCESSABLE_ENTITY


@dataclass(frozen=True, kw_only=True)
class ReadonlyViolation(SettingError):
    code: ClassVar[str] = "READONLY_SETTING"
    status_code: ClassVar[int] = status.HTTP_403_FORBIDDEN

    message: str = "Setting is read-only"


@dataclass(frozen=True, kw_only=True)
class SerializationError(SettingError):
    code: ClassVar[str] = "SERIALIZATION_ERROR"
    status_code: ClassVar[int] = status.HTTP_422_UNPROCESSABLE_ENTITY

    data_type: str


@dataclass(frozen=True, kw_only=True)
class SettingNotFound(SettingError):
    code: ClassVar[str] = "SETTING_NOT_FOUND"
    status_code: ClassVar[int] = status.HTTP_404_NOT_FOUND

    message: str = "Setting not found"


@dataclass(frozen=True, kw_only=True)
class SettingExists(SettingError):
    code: ClassVar[str] = "SETTING_EXISTS"
    status_code: ClassVar[int] = status.HTTP_409_CONFLICT

    message: str = "Setting already exists"


# -- Authentication ---------------------------------------------------------


@dataclass(frozen=True, kw_only=True)
class InvalidCredentials(DomainError):
    # Same answer for "no such account" and "wrong password"
    code: ClassVar[str] = "INVALID_CREDENTIALS"
    status_code: ClassVar[int] = status.HTTP_401_UNAUTHORIZED

    message: str = "Invalid email or password"


@dataclass(frozen=True, kw_only=True)
class AccountLocked(DomainError):
    code: ClassVar[str] = "ACCOUNT_LOCKED"
    status_code: ClassVar[int] = status.HTTP_423_LOCKED

    remaining_minutes: int
    message: str = ""

    def __post_init__(self):
        if not self.message:
            object.__setattr__(
                self,
                "message",
                "Account is temporarily locked due to too many failed login "
                f"attempts. Try again in {self.remaining_minutes} minute(s).",
            )


@dataclass(frozen=True, kw_only=True)
class AccountDisabled(DomainError):
    code: ClassVar[str] = "ACCOUNT_DISABLED"
    status_code: ClassVar[int] = status.HTTP_401_UNAUTHORIZED

    message: str = "Account disabled"


@dataclass(frozen=True, kw_only=True)
class AccountNotApproved(DomainError):
    code: ClassVar[str] = "ACCOUNT_NOT_APPROVED"
    status_code: ClassVar[int] = status.HTTP_403_FORBIDDEN

    approval_status: str
    message: str = "Account is awaiting administrator approval"


@dataclass(frozen=True, kw_only=True)
class EmailNotVerified(DomainError):
    code: ClassVar[str] = "EMAIL_NOT_VERIFIED"
    status_code: ClassVar[int] = status.HTTP_403_FORBIDDEN

    message: str = "Please verify your email address before logging in"


@dataclass(frozen=True, kw_only=True)
class RegistrationClosed(DomainError):
    code: ClassVar[str] = "REGISTRATION_CLOSED"
    status_code: ClassVar[int] = status.HTTP_403_FORBIDDEN

    message: str = "Registration is currently closed"


@dataclass(frozen=True, kw_only=True)
class UserExists(DomainError):
    code: ClassVar[str] = "USER_EXISTS"
    status_code: ClassVar[int] = status.HTTP_409_CONFLICT

    message: str = "Email or username is already registered"


@dataclass(frozen=True, kw_only=True)
class PasswordPolicyViolation(DomainError):
    code: ClassVar[str] = "PASSWORD_POLICY"

    errors: Tuple[str, ...]
    strength: int
    message: str = "Password does not meet the requirements"


# -- Sessions ---------------------------------------------------------------


class SessionExpiryReason(str, Enum):
    ABSOLUTE = "ABSOLUTE"
    IDLE = "IDLE"


@dataclass(frozen=True, kw_only=True)
class SessionExpired(DomainError):
    status_code: ClassVar[int] = status.HTTP_401_UNAUTHORIZED

    reason: SessionExpiryReason
    message: str = "Your session has expired. Please log in again."

    @property
    def code(self) -> str:
        if self.reason is SessionExpiryReason.IDLE:
            return "IDLE_TIMEOUT"
        return "SESSION_TIMEOUT"


@dataclass(frozen=True, kw_only=True)
class InvalidToken(DomainError):
    code: ClassVar[str] = "INVALID_TOKEN"
    status_code: ClassVar[int] = status.HTTP_401_UNAUTHORIZED

    message: str = "Invalid authentication token. Please log in again."


# -- Two-factor -------------------------------------------------------------


@dataclass(frozen=True, kw_only=True)
class TwoFactorInvalid(DomainError):
    # One shape for bad TOTP, bad backup code and malformed input alike
    code: ClassVar[str] = "TWO_FACTOR_INVALID"
    status_code: ClassVar[int] = status.HTTP_401_UNAUTHORIZED

    message: str = "Invalid two-factor authentication token"


@dataclass(frozen=True, kw_only=True)
class TwoFactorNotEnabled(DomainError):
    code: ClassVar[str] = "TWO_FACTOR_NOT_ENABLED"

    message: str = "Two-factor authentication is not enabled for this account"


@dataclass(frozen=True, kw_only=True)
class TwoFactorAlreadyEnabled(DomainError):
    code: ClassVar[str] = "TWO_FACTOR_ALREADY_ENABLED"

    message: str = "Two-factor authentication is already enabled for this account"
