# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Security settings resolver.

Every authentication-sensitive request reads the security-relevant system
settings through :func:`resolve_security_settings` and makes its decisions
against the returned snapshot.  Nothing else in the code base looks these
keys up directly, and nothing caches the snapshot.

Resolution never fails: a missing key, an unparseable value or even an
unreachable settings table degrades to the hard-coded defaults below.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.logger import logger
from system_settings.codec import DataType, parse_value
from system_settings.store import SettingStore


@dataclass(frozen=True)
class SecurityDefault:
    key: str
    data_type: DataType
    default: Any
    description: str


# The one place these defaults are declared.  The default-settings seed
# and every consumer of the snapshot read them from here.
SECURITY_DEFAULTS: Dict[str, SecurityDefault] = {
    "login_attempt_limit": SecurityDefault(
        "login_attempt_limit", DataType.NUMBER, 5,
        "Failed login attempts before the account is locked",
    ),
    "account_lockout_duration_minutes": SecurityDefault(
        "account_lockout_duration", DataType.NUMBER, 30,
        "Minutes an account stays locked after too many failed logins",
    ),
    "session_timeout_hours": SecurityDefault(
        "session_timeout_hours", DataType.NUMBER, 24,
        "Hours before a session expires regardless of activity",
    ),
    "idle_timeout_minutes": SecurityDefault(
        "idle_timeout_minutes", DataType.NUMBER, 120,
        "Minutes of inactivity before a session expires",
    ),
    "require_email_verification": SecurityDefault(
        "require_email_verification", DataType.BOOLEAN, False,
        "Members must verify their email address before logging in",
    ),
    "enable_two_factor_auth": SecurityDefault(
        "enable_two_factor_auth", DataType.BOOLEAN, False,
        "Enforce two-factor authentication for members who have enabled it",
    ),
    "password_complexity_rules": SecurityDefault(
        "password_complexity_rules", DataType.JSON, None,
        "Password complexity rules (JSON object)",
    ),
    "min_password_length": SecurityDefault(
        "min_password_length", DataType.NUMBER, 8,
        "Minimum password length when the complexity rules do not set one",
    ),
    "password_complexity_required": SecurityDefault(
        "password_complexity_required", DataType.BOOLEAN, True,
        "Require upper/lower case letters, numbers and special characters",
    ),
}

_NUMERIC_FIELDS = (
    "login_attempt_limit",
    "account_lockout_duration_minutes",
    "session_timeout_hours",
    "idle_timeout_minutes",
    "min_password_length",
)


@dataclass(frozen=True)
class SecuritySettingsSnapshot:
    login_attempt_limit: int = SECURITY_DEFAULTS["login_attempt_limit"].default
    account_lockout_duration_minutes: int = SECURITY_DEFAULTS["account_lockout_duration_minutes"].default
    session_timeout_hours: int = SECURITY_DEFAULTS["session_timeout_hours"].default
    idle_timeout_minutes: int = SECURITY_DEFAULTS["idle_timeout_minutes"].default
    require_email_verification: bool = SECURITY_DEFAULTS["require_email_verification"].default
    enable_two_factor_auth: bool = SECURITY_DEFAULTS["enable_two_factor_auth"].default
    password_complexity_rules: Optional[dict] = field(default=None)
    min_password_length: int = SECURITY_DEFAULTS["min_password_length"].default
    password_complexity_required: bool = SECURITY_DEFAULTS["password_complexity_required"].default


def _positive_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("boolean is not a count")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int) or value <= 0:
        raise ValueError(f"{value!r} is not a positive integer")
    return value


def _resolve_field(name: str, entry: SecurityDefault, row) -> Any:
    if row is None:
        return entry.default

    # Parse by the declared type of the field, not whatever the row claims,
    # so a mistyped row cannot smuggle a string into a numeric limit.
    try:
        value = parse_value(row.value, entry.data_type)
        if name in _NUMERIC_FIELDS:
            return _positive_int(value)
        if entry.data_type is DataType.BOOLEAN:
            if value is None:
                raise ValueError("empty boolean")
            return value
        if name == "password_complexity_rules":
            return value if isinstance(value, dict) else None
        return value
    except ValueError as exc:
        logger.warning(
            "Security setting %s is invalid (%s); using default %r",
            entry.key, exc, entry.default,
        )
        return None if name == "password_complexity_rules" else entry.default


async def resolve_security_settings(db: AsyncSession) -> SecuritySettingsSnapshot:
    """Batch-read the security keys and return a fully populated snapshot."""
    try:
        rows = await SettingStore(db).get_many(entry.key for entry in SECURITY_DEFAULTS.values())
    except SQLAlchemyError as exc:
        logger.error("Could not read security settings, using defaults: %s", exc)
        return SecuritySettingsSnapshot()

    values = {
        name: _resolve_field(name, entry, rows.get(entry.key))
        for name, entry in SECURITY_DEFAULTS.items()
    }
    return SecuritySettingsSnapshot(**values)
