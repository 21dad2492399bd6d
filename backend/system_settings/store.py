# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
SettingStore – typed key/value persistence over the ``system_settings`` table.

Contract
--------
* Reads never raise for bad data: an unparseable stored value comes back as
  its raw string (and is logged).
* Writes go through the validator and the codec before anything is flushed;
  rejected values are never persisted.
* Readonly settings cannot be changed or deleted through the store once they
  exist.
* Every mutation commits before returning, so the next read on any session
  sees it.  There is deliberately no cache.
"""

from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import (
    ReadonlyViolation,
    SerializationError,
    SettingError,
    SettingExists,
    SettingNotFound,
    SettingValidationError,
)
from core.logger import logger
from core.result import Failure, Result, Success
from models.system_setting import SystemSetting
from system_settings.codec import DataType, deserialize, serialize
from system_settings.validator import validate


def _query():
    # Overwrite identity-map copies with the stored row on every read
    return select(SystemSetting).execution_options(populate_existing=True)


def typed_value(setting: SystemSetting) -> Any:
    return deserialize(setting.value, setting.data_type, key=setting.key)


class SettingStore:
    """All reads and writes of system settings go through one of these."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # -- Reads ---------------------------------------------------------------

    async def get_row(self, key: str) -> Optional[SystemSetting]:
        return (
            await self.db.execute(_query().where(SystemSetting.key == key))
        ).scalar_one_or_none()

    async def get(self, key: str, default: Any = None) -> Any:
        setting = await self.get_row(key)
        if setting is None:
            return default
        return typed_value(setting)

    async def get_many(self, keys: Iterable[str]) -> Dict[str, SystemSetting]:
        """One round-trip for a fixed set of keys; absent keys are simply missing."""
        rows = (
            await self.db.execute(_query().where(SystemSetting.key.in_(list(keys))))
        ).scalars()
        return {row.key: row for row in rows}

    async def list_by_category(self, category: str, include_private: bool = False) -> Dict[str, Any]:
        query = _query().where(SystemSetting.category == category)
        if not include_private:
            query = query.where(SystemSetting.is_public.is_(True))
        rows = (await self.db.execute(query.order_by(SystemSetting.key))).scalars()
        return {row.key: typed_value(row) for row in rows}

    async def list_public(self, category: Optional[str] = None) -> Dict[str, Any]:
        query = _query().where(SystemSetting.is_public.is_(True))
        if category and category != "all":
            query = query.where(SystemSetting.category == category)
        rows = (
            await self.db.execute(query.order_by(SystemSetting.category, SystemSetting.key))
        ).scalars()
        return {row.key: typed_value(row) for row in rows}

    async def list_all(self) -> List[SystemSetting]:
        return list(
            (
                await self.db.execute(
                    _query().order_by(SystemSetting.category, SystemSetting.key)
                )
            ).scalars()
        )

    # -- Writes --------------------------------------------------------------

    async def set(
        self,
        key: str,
        value: Any,
        *,
        data_type: str = DataType.STRING.value,
        category: str = "general",
        description: Optional[str] = None,
        is_public: bool = False,
        is_readonly: bool = False,
        validation_rules: Optional[dict] = None,
    ) -> Result[SystemSetting, SettingError]:
        """
        Upsert *key*.  The options only take effect when the row is created;
        an existing row keeps its own type, category, visibility and rules.
        """
        setting = await self.get_row(key)
        if setting is None:
            setting = _new_setting(
                key, data_type, category, description, is_public, is_readonly, validation_rules
            )
            result = self._assign(setting, value)
            if isinstance(result, Failure):
                return result
            self.db.add(setting)
            try:
                await self.db.commit()
            except IntegrityError:
                # Lost a create race on the unique key – write onto the winner
                await self.db.rollback()
                logger.info("Setting %s was created concurrently; updating it instead", key)
                setting = await self.get_row(key)
                if setting is None:
                    raise
                return await self._update_existing(setting, value)
            await self.db.refresh(setting)
            logger.info("Setting %s created (category=%s)", key, setting.category)
            return Success(setting)

        return await self._update_existing(setting, value)

    async def create(
        self,
        key: str,
        value: Any,
        *,
        data_type: str = DataType.STRING.value,
        category: str = "general",
        description: Optional[str] = None,
        is_public: bool = False,
        is_readonly: bool = False,
        validation_rules: Optional[dict] = None,
    ) -> Result[SystemSetting, SettingError]:
        """Admin create: the key must not exist yet."""
        if await self.get_row(key) is not None:
            return Failure(SettingExists(key=key))
        return await self.set(
            key,
            value,
            data_type=data_type,
            category=category,
            description=description,
            is_public=is_public,
            is_readonly=is_readonly,
            validation_rules=validation_rules,
        )

    async def update(self, key: str, value: Any) -> Result[SystemSetting, SettingError]:
        """Admin update: the key must exist."""
        setting = await self.get_row(key)
        if setting is None:
            return Failure(SettingNotFound(key=key))
        return await self._update_existing(setting, value)

    async def delete(self, key: str) -> Result[str, SettingError]:
        setting = await self.get_row(key)
        if setting is None:
            return Failure(SettingNotFound(key=key))
        if setting.is_readonly:
            return Failure(ReadonlyViolation(key=key))
        await self.db.delete(setting)
        await self.db.commit()
        logger.info("Setting %s deleted", key)
        return Success(key)

    # -- Internals -----------------------------------------------------------

    async def _update_existing(self, setting: SystemSetting, value: Any) -> Result[SystemSetting, SettingError]:
        if setting.is_readonly:
            return Failure(ReadonlyViolation(key=setting.key))
        result = self._assign(setting, value)
        if isinstance(result, Failure):
            # Leave the row exactly as it was in the database
            await self.db.refresh(setting)
            return result
        await self.db.commit()
        await self.db.refresh(setting)
        logger.info("Setting %s updated", setting.key)
        return Success(setting)

    @staticmethod
    def _assign(setting: SystemSetting, value: Any) -> Result[SystemSetting, SettingError]:
        """Validate then serialise *value* onto *setting* (in memory only)."""
        check = validate(value, setting.validation_rules, setting.data_type)
        if not check.valid:
            return Failure(SettingValidationError(key=setting.key, message=check.message))
        try:
            setting.value = serialize(value, setting.data_type)
        except ValueError as exc:
            return Failure(
                SerializationError(
                    key=setting.key,
                    data_type=str(setting.data_type),
                    message=f"Invalid value for setting {setting.key}: {exc}",
                )
            )
        return Success(setting)


def _new_setting(key, data_type, category, description, is_public, is_readonly, validation_rules):
    return SystemSetting(
        key=key,
        data_type=DataType(data_type).value,
        category=category,
        description=description,
        is_public=is_public,
        is_readonly=is_readonly,
        validation_rules=validation_rules,
    )
