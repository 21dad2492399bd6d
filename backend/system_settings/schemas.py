# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for the settings endpoints."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from system_settings.codec import DataType


# -- Requests --------------------------------------------------------------


class CreateSettingRequest(BaseModel):
    key: str = Field(min_length=1, max_length=100, pattern=r"^[a-z][a-z0-9_]*$")
    value: Any
    data_type: DataType = DataType.STRING
    category: str = "general"
    description: Optional[str] = None
    is_public: bool = False
    is_readonly: bool = False
    validation_rules: Optional[dict] = None


class UpdateSettingRequest(BaseModel):
    value: Any


# -- Responses -------------------------------------------------------------


class SettingRow(BaseModel):
    key: str
    value: Any
    data_type: str
    category: str
    description: Optional[str] = None
    is_public: bool
    is_readonly: bool
    validation_rules: Optional[dict] = None
    updated_at: Optional[datetime] = None


class SettingListResponse(BaseModel):
    settings: List[SettingRow]


class CategorySettingsResponse(BaseModel):
    category: str
    settings: Dict[str, Any]


class InitializeResponse(BaseModel):
    created: List[str]
    skipped: List[str]
