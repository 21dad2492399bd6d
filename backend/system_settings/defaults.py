# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Default system settings and the idempotent initialisation routine.

``initialize_defaults`` only fills gaps: a key that already exists is left
untouched, whatever an administrator has set it to.  Running it on every
deploy is safe.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from auth.passwords import DEFAULT_PASSWORD_RULES
from auth.policy import SECURITY_DEFAULTS
from core.logger import logger
from core.result import Failure
from system_settings.codec import DataType
from system_settings.store import SettingStore


@dataclass(frozen=True)
class SettingDefinition:
    key: str
    default_value: Any
    data_type: DataType
    category: str
    description: str
    is_public: bool = False
    is_readonly: bool = False
    validation_rules: Optional[dict] = None


@dataclass
class InitializationReport:
    created: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


CATEGORIES = ("general", "security", "api", "features", "appearance", "system")

_HEX_COLOR = {"pattern": "^#[0-9A-Fa-f]{6}$", "pattern_message": "Value must be a hex colour such as #8B4513"}


def _security(name: str, validation_rules: Optional[dict] = None, default: Any = None) -> SettingDefinition:
    entry = SECURITY_DEFAULTS[name]
    return SettingDefinition(
        key=entry.key,
        default_value=entry.default if default is None else default,
        data_type=entry.data_type,
        category="security",
        description=entry.description,
        validation_rules=validation_rules,
    )


DEFAULT_SETTINGS: List[SettingDefinition] = [
    # -- General -------------------------------------------------------------
    SettingDefinition("site_name", "Whisky Club", DataType.STRING, "general",
                      "Name of the club shown across the site", is_public=True,
                      validation_rules={"min_length": 1, "max_length": 100}),
    SettingDefinition("club_motto", "Sláinte!", DataType.STRING, "general",
                      "Short motto shown on the home page", is_public=True,
                      validation_rules={"max_length": 200}),
    SettingDefinition("allow_registration", True, DataType.BOOLEAN, "general",
                      "Allow new members to register", is_public=True),
    SettingDefinition("registration_approval_required", False, DataType.BOOLEAN, "general",
                      "New registrations must be approved by an administrator", is_public=True),
    SettingDefinition("allow_guest_browsing", True, DataType.BOOLEAN, "general",
                      "Visitors may browse the catalog without logging in", is_public=True),
    SettingDefinition("max_rating_scale", 10, DataType.NUMBER, "general",
                      "Highest score on the rating scale", is_public=True,
                      validation_rules={"enum": [5, 10, 100]}),
    SettingDefinition("default_currency", "SEK", DataType.STRING, "general",
                      "Currency used for prices", is_public=True,
                      validation_rules={"enum": ["SEK", "EUR", "USD", "GBP"]}),
    SettingDefinition("maintenance_mode", False, DataType.BOOLEAN, "general",
                      "Show the maintenance page to non-admin members", is_public=True),
    SettingDefinition("maintenance_message", "We are improving the club. Back soon!",
                      DataType.STRING, "general", "Message shown during maintenance", is_public=True),

    # -- Security ------------------------------------------------------------
    _security("login_attempt_limit", {"min": 1, "max": 100}),
    _security("account_lockout_duration_minutes", {"min": 1, "max": 10080}),
    _security("session_timeout_hours", {"min": 1, "max": 720}),
    _security("idle_timeout_minutes", {"min": 1, "max": 10080}),
    _security("require_email_verification"),
    _security("enable_two_factor_auth"),
    _security("min_password_length", {"min": 4, "max": 128}),
    _security("password_complexity_required"),
    _security("password_complexity_rules", default=DEFAULT_PASSWORD_RULES.to_dict()),

    # -- API -----------------------------------------------------------------
    SettingDefinition("api_rate_limit", 100, DataType.NUMBER, "api",
                      "Requests allowed per client per minute",
                      validation_rules={"min": 1, "max": 100000}),

    # -- Features ------------------------------------------------------------
    SettingDefinition("enable_whisky_reviews", True, DataType.BOOLEAN, "features",
                      "Members can write reviews", is_public=True),
    SettingDefinition("enable_whisky_wishlist", True, DataType.BOOLEAN, "features",
                      "Members can keep a wishlist", is_public=True),
    SettingDefinition("enable_whisky_comparison", True, DataType.BOOLEAN, "features",
                      "Members can compare whiskies side by side", is_public=True),
    SettingDefinition("leaderboard_enabled", True, DataType.BOOLEAN, "features",
                      "Show the member leaderboard", is_public=True),
    SettingDefinition("enable_user_follows", False, DataType.BOOLEAN, "features",
                      "Members can follow each other", is_public=True),
    SettingDefinition("enable_user_messaging", False, DataType.BOOLEAN, "features",
                      "Members can message each other", is_public=True),
    SettingDefinition("enable_whisky_tags", True, DataType.BOOLEAN, "features",
                      "Members can tag whiskies", is_public=True),
    SettingDefinition("enable_social_sharing", True, DataType.BOOLEAN, "features",
                      "Show social sharing buttons", is_public=True),
    SettingDefinition("enable_webhook_notifications", False, DataType.BOOLEAN, "features",
                      "Send event notifications to configured webhooks"),

    # -- Appearance ----------------------------------------------------------
    SettingDefinition("primary_color", "#8B4513", DataType.STRING, "appearance",
                      "Primary theme colour", is_public=True, validation_rules=_HEX_COLOR),
    SettingDefinition("secondary_color", "#D2691E", DataType.STRING, "appearance",
                      "Secondary theme colour", is_public=True, validation_rules=_HEX_COLOR),
    SettingDefinition("site_logo_url", "", DataType.STRING, "appearance",
                      "URL of the club logo", is_public=True),
    SettingDefinition("footer_text", "", DataType.STRING, "appearance",
                      "Text shown in the page footer", is_public=True),

    # -- System --------------------------------------------------------------
    SettingDefinition("app_version", "1.0.0", DataType.STRING, "system",
                      "Application version", is_public=True, is_readonly=True),
    SettingDefinition("database_schema_version", "0001", DataType.STRING, "system",
                      "Applied database schema revision", is_readonly=True),
    SettingDefinition("supported_languages", ["en", "sv"], DataType.ARRAY, "system",
                      "Interface languages", is_public=True),
]


async def initialize_defaults(db: AsyncSession) -> InitializationReport:
    """Insert every missing default; return which keys were created and which already existed."""
    store = SettingStore(db)
    existing = await store.get_many(d.key for d in DEFAULT_SETTINGS)
    report = InitializationReport()

    for definition in DEFAULT_SETTINGS:
        if definition.key in existing:
            report.skipped.append(definition.key)
            continue
        result = await store.set(
            definition.key,
            definition.default_value,
            data_type=definition.data_type.value,
            category=definition.category,
            description=definition.description,
            is_public=definition.is_public,
            is_readonly=definition.is_readonly,
            validation_rules=definition.validation_rules,
        )
        if isinstance(result, Failure):
            # A default that fails its own rules is a programming error
            raise RuntimeError(f"Default for {definition.key} is invalid: {result.error.message}")
        report.created.append(definition.key)

    logger.info(
        "Default settings initialised: %d created, %d already present",
        len(report.created), len(report.skipped),
    )
    return report
