"""Integration tests for SettingStore against a real (SQLite) session."""

import pytest

from core.errors import (
    ReadonlyViolation,
    SerializationError,
    SettingExists,
    SettingNotFound,
    SettingValidationError,
)
from core.result import Failure, Success
from models.system_setting import SystemSetting

pytestmark = pytest.mark.integration


@pytest.mark.parametrize(
    "data_type, value",
    [
        ("string", "Sláinte!"),
        ("number", 42),
        ("number", 2.5),
        ("boolean", True),
        ("boolean", False),
        ("json", {"min_length": 12, "tags": ["peated"]}),
        ("array", ["en", "sv"]),
    ],
)
async def test_values_come_back_with_their_type(store, data_type, value):
    result = await store.set("some_key", value, data_type=data_type)
    assert isinstance(result, Success)
    assert await store.get("some_key") == value


async def test_missing_key_returns_default(store):
    assert await store.get("nope") is None
    assert await store.get("nope", 7) == 7


async def test_update_keeps_type_and_options(store):
    await store.set("motto", "Sláinte!", category="general", is_public=True)
    result = await store.set("motto", "Skål!", category="security", is_public=False)

    assert isinstance(result, Success)
    row = result.value
    assert row.category == "general"
    assert row.is_public is True
    assert await store.get("motto") == "Skål!"


async def test_rejected_value_is_not_persisted(store):
    await store.set("api_rate_limit", 100, data_type="number", validation_rules={"min": 1})

    result = await store.set("api_rate_limit", 0)

    assert result == Failure(SettingValidationError(key="api_rate_limit", message="Value must be at least 1"))
    assert await store.get("api_rate_limit") == 100


async def test_wrong_type_is_rejected(store):
    await store.set("max_rating_scale", 10, data_type="number")
    result = await store.set("max_rating_scale", "ten")
    assert isinstance(result.error, SettingValidationError)
    assert result.error.message == "Value must be a number"


async def test_unserialisable_json_is_reported(store):
    result = await store.set("blob", {"when": object()}, data_type="json")
    assert isinstance(result.error, SerializationError)
    assert result.error.message.startswith("Invalid value for setting blob:")
    assert await store.get_row("blob") is None


async def test_readonly_setting_cannot_change(store):
    await store.set("app_version", "1.0.0", is_readonly=True)

    assert await store.set("app_version", "2.0.0") == Failure(ReadonlyViolation(key="app_version"))
    assert await store.update("app_version", "2.0.0") == Failure(ReadonlyViolation(key="app_version"))
    assert await store.get("app_version") == "1.0.0"


async def test_readonly_setting_cannot_be_deleted(store):
    await store.set("app_version", "1.0.0", is_readonly=True)

    result = await store.delete("app_version")

    assert result == Failure(ReadonlyViolation(key="app_version"))
    assert await store.get_row("app_version") is not None


async def test_delete(store):
    await store.set("footer_text", "Est. 2024")
    assert await store.delete("footer_text") == Success("footer_text")
    assert await store.get_row("footer_text") is None
    assert await store.delete("footer_text") == Failure(SettingNotFound(key="footer_text"))


async def test_create_and_update_enforce_existence(store):
    assert isinstance(await store.create("club_motto", "Sláinte!"), Success)
    assert await store.create("club_motto", "Again") == Failure(SettingExists(key="club_motto"))
    assert await store.update("missing", 1) == Failure(SettingNotFound(key="missing"))


async def test_list_by_category_respects_visibility(store):
    await store.set("site_name", "Whisky Club", category="general", is_public=True)
    await store.set("allow_registration", True, data_type="boolean", category="general", is_public=True)
    await store.set("internal_note", "hush", category="general", is_public=False)
    await store.set("api_rate_limit", 100, data_type="number", category="api", is_public=False)

    public = await store.list_by_category("general")
    assert public == {"allow_registration": True, "site_name": "Whisky Club"}

    everything = await store.list_by_category("general", include_private=True)
    assert set(everything) == {"allow_registration", "internal_note", "site_name"}


async def test_list_public(store):
    await store.set("site_name", "Whisky Club", category="general", is_public=True)
    await store.set("primary_color", "#8B4513", category="appearance", is_public=True)
    await store.set("api_rate_limit", 100, data_type="number", category="api")

    assert await store.list_public() == {"primary_color": "#8B4513", "site_name": "Whisky Club"}
    assert await store.list_public("all") == await store.list_public()
    assert await store.list_public("appearance") == {"primary_color": "#8B4513"}


async def test_unparseable_stored_value_comes_back_raw(db, store):
    db.add(SystemSetting(key="broken", value="{not json", data_type="json", category="general"))
    await db.commit()

    assert await store.get("broken") == "{not json"

