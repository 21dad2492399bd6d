# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
On/off switches for the optional club features.

Each feature is gated by one boolean setting.  The features themselves live
elsewhere; this module only answers "is it on?" and provides a FastAPI
dependency that hides a disabled feature's endpoints behind a 404.
"""

from typing import Dict

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from system_settings.store import SettingStore, typed_value

# feature name → (setting key, value when the setting is missing)
FEATURE_SETTINGS: Dict[str, tuple] = {
    "reviews": ("enable_whisky_reviews", True),
    "wishlist": ("enable_whisky_wishlist", True),
    "comparison": ("enable_whisky_comparison", True),
    "leaderboard": ("leaderboard_enabled", True),
    "following": ("enable_user_follows", False),
    "messaging": ("enable_user_messaging", False),
    "tags": ("enable_whisky_tags", True),
    "social_sharing": ("enable_social_sharing", True),
    "webhooks": ("enable_webhook_notifications", False),
}


def _as_flag(value, default: bool) -> bool:
    return value if isinstance(value, bool) else default


async def feature_flags(store: SettingStore) -> Dict[str, bool]:
    rows = await store.get_many(key for key, _ in FEATURE_SETTINGS.values())
    flags = {}
    for feature, (key, default) in FEATURE_SETTINGS.items():
        row = rows.get(key)
        flags[feature] = default if row is None else _as_flag(typed_value(row), default)
    return flags


async def is_feature_enabled(store: SettingStore, feature: str) -> bool:
    if feature not in FEATURE_SETTINGS:
        raise KeyError(f"Unknown feature: {feature}")
    key, default = FEATURE_SETTINGS[feature]
    return _as_flag(await store.get(key, default), default)


def require_feature(feature: str):
    """Dependency factory: ``Depends(require_feature("wishlist"))``.

    For the feature routers (reviews, wishlist, messaging ...) mounted by the
    wider club application; nothing in this service is feature-gated itself.
    """
    if feature not in FEATURE_SETTINGS:
        raise KeyError(f"Unknown feature: {feature}")

    async def _guard(db: AsyncSession = Depends(get_db)) -> None:
        if not await is_feature_enabled(SettingStore(db), feature):
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="This feature is currently disabled",
            )

    return _guard
