# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Settings endpoints.

* ``/settings/*``        – public: the settings flagged ``is_public`` and the
                           feature switches.  No login needed.
* ``/admin/settings/*``  – admin console: list, create, update, delete,
                           initialise defaults, export to Excel.

Every change goes through ``SettingStore`` so that validation rules and the
readonly flag are enforced in one place, and is written to the audit log.
"""

import io
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from sqlalchemy.ext.asyncio import AsyncSession

from core.result import Failure
from core.security import get_client_ip, require_admin
from database import get_db
from models.audit_log import AuditLog
from models.system_setting import SystemSetting
from models.user import User
from system_settings.defaults import CATEGORIES, initialize_defaults
from system_settings.features import feature_flags
from system_settings.schemas import (
    CategorySettingsResponse,
    CreateSettingRequest,
    InitializeResponse,
    SettingListResponse,
    SettingRow,
    UpdateSettingRequest,
)
from system_settings.store import SettingStore, typed_value

public_router = APIRouter(prefix="/settings", tags=["settings"])
router = APIRouter(prefix="/admin/settings", tags=["admin-settings"])


def _row(setting: SystemSetting) -> SettingRow:
    return SettingRow(
        key=setting.key,
        value=typed_value(setting),
        data_type=setting.data_type,
        category=setting.category,
        description=setting.description,
        is_public=setting.is_public,
        is_readonly=setting.is_readonly,
        validation_rules=setting.validation_rules,
        updated_at=setting.updated_at,
    )


async def _audit(db: AsyncSession, admin: User, action: str, detail: str, request: Request) -> None:
    db.add(AuditLog(actor_id=admin.id, action=action, detail=detail, request_ip=get_client_ip(request)))
    await db.commit()


# ---------------------------------------------------------------------------
# GET /settings/public
# ---------------------------------------------------------------------------


@public_router.get("/public")
async def public_settings(
    category: Optional[str] = Query(None, description="Restrict to one category; 'all' for every one"),
    db: AsyncSession = Depends(get_db),
):
    return await SettingStore(db).list_public(category)


# ---------------------------------------------------------------------------
# GET /settings/features
# ---------------------------------------------------------------------------


@public_router.get("/features")
async def features(db: AsyncSession = Depends(get_db)):
    return await feature_flags(SettingStore(db))


# ---------------------------------------------------------------------------
# GET /admin/settings
# ---------------------------------------------------------------------------


@router.get("", response_model=SettingListResponse)
async def list_settings(admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return SettingListResponse(settings=[_row(s) for s in await SettingStore(db).list_all()])


# ---------------------------------------------------------------------------
# POST /admin/settings
# ---------------------------------------------------------------------------


@router.post("", response_model=SettingRow, status_code=status.HTTP_201_CREATED)
async def create_setting(
    body: CreateSettingRequest,
    request: Request,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await SettingStore(db).create(
        body.key,
        body.value,
        data_type=body.data_type.value,
        category=body.category,
        description=body.description,
        is_public=body.is_public,
        is_readonly=body.is_readonly,
        validation_rules=body.validation_rules,
    )
    if isinstance(result, Failure):
        raise result.error.to_http_exception()
    await _audit(db, admin, "setting_created", f"key={body.key}", request)
    return _row(result.value)


# ---------------------------------------------------------------------------
# POST /admin/settings/initialize
# ---------------------------------------------------------------------------


@router.post("/initialize", response_model=InitializeResponse)
async def initialize(request: Request, admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    """Create any missing default settings.  Existing values are never touched."""
    report = await initialize_defaults(db)
    await _audit(db, admin, "settings_initialized", f"created={len(report.created)}", request)
    return InitializeResponse(created=report.created, skipped=report.skipped)


# ---------------------------------------------------------------------------
# GET /admin/settings/export  – download every setting as Excel
# ---------------------------------------------------------------------------

_HEADER_FONT  = Font(name="Calibri", size=11, bold=True, color="FFFFFF")
_HEADER_FILL  = PatternFill(start_color="8B4513", end_color="8B4513", fill_type="solid")
_HEADER_ALIGN = Alignment(horizontal="center", vertical="center")
_THIN_BORDER  = Border(
    left=Side(style="thin", color="CCCCCC"),
    right=Side(style="thin", color="CCCCCC"),
    top=Side(style="thin", color="CCCCCC"),
    bottom=Side(style="thin", color="CCCCCC"),
)

_EXPORT_HEADERS = ["Key", "Value", "Type", "Category", "Public", "Read-only", "Description"]
_EXPORT_WIDTHS = [32, 40, 10, 14, 8, 10, 60]


@router.get("/export")
async def export_settings(admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    wb = Workbook()
    ws = wb.active
    ws.title = "System Settings"

    ws.append(_EXPORT_HEADERS)
    for cell in ws[1]:
        cell.font = _HEADER_FONT
        cell.fill = _HEADER_FILL
        cell.alignment = _HEADER_ALIGN
        cell.border = _THIN_BORDER

    for setting in await SettingStore(db).list_all():
        ws.append([
            setting.key,
            setting.value or "",
            setting.data_type,
            setting.category,
            "yes" if setting.is_public else "no",
            "yes" if setting.is_readonly else "no",
            setting.description or "",
        ])
        for cell in ws[ws.max_row]:
            cell.border = _THIN_BORDER

    for col_idx, width in enumerate(_EXPORT_WIDTHS, start=1):
        ws.column_dimensions[chr(64 + col_idx)].width = width

    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    wb.close()

    return StreamingResponse(
        buf,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": 'attachment; filename="system-settings.xlsx"'},
    )


# ---------------------------------------------------------------------------
# GET /admin/settings/categories/{category}
# ---------------------------------------------------------------------------


@router.get("/categories/{category}", response_model=CategorySettingsResponse)
async def settings_by_category(
    category: str,
    include_private: bool = Query(True),
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if category not in CATEGORIES:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown category")
    values = await SettingStore(db).list_by_category(category, include_private=include_private)
    return CategorySettingsResponse(category=category, settings=values)


# ---------------------------------------------------------------------------
# GET / PUT / DELETE /admin/settings/{key}
# ---------------------------------------------------------------------------


@router.get("/{key}", response_model=SettingRow)
async def get_setting(key: str, admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    setting = await SettingStore(db).get_row(key)
    if setting is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Setting not found")
    return _row(setting)


@router.put("/{key}", response_model=SettingRow)
async def update_setting(
    key: str,
    body: UpdateSettingRequest,
    request: Request,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await SettingStore(db).update(key, body.value)
    if isinstance(result, Failure):
        raise result.error.to_http_exception()
    # Values of private settings may be secrets (webhook URLs, API keys)
    await _audit(db, admin, "setting_updated", f"key={key}", request)
    return _row(result.value)


@router.delete("/{key}")
async def delete_setting(
    key: str,
    request: Request,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await SettingStore(db).delete(key)
    if isinstance(result, Failure):
        raise result.error.to_http_exception()
    await _audit(db, admin, "setting_deleted", f"key={key}", request)
    return {"detail": "Setting deleted"}
