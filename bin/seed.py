# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Bootstrap script – seeds the default system settings and the first admin.

Run after every migration (it is idempotent):
    python bin/seed.py

Default settings are only inserted when missing, so values an administrator
has changed are kept.  The admin account is read from FIRST_ADMIN_EMAIL,
FIRST_ADMIN_USERNAME and FIRST_ADMIN_PASSWORD in etc/app.conf; it starts
with ``force_password_change = True``, so the operator must set a permanent
password on first login.
"""

import asyncio
import os
import sys

# ---------------------------------------------------------------------------
# Path setup so backend modules are importable
# ---------------------------------------------------------------------------
# bin/seed.py  →  ../  →  project root
_PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
_BACKEND_DIR  = os.path.join(_PROJECT_ROOT, "backend")
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)
if _PROJECT_ROOT not in sys.path:
    sys.path.insert(0, _PROJECT_ROOT)

from sqlalchemy import or_, select                        # noqa: E402

from core.config import settings                          # noqa: E402
from core.security import hash_password                   # noqa: E402
from database import SessionLocal, engine                 # noqa: E402
from models.user import User                              # noqa: E402
from system_settings.defaults import initialize_defaults  # noqa: E402


async def seed_admin(db) -> None:
    if not settings.first_admin_email or not settings.first_admin_password:
        print("[seed] FIRST_ADMIN_EMAIL or FIRST_ADMIN_PASSWORD not set in etc/app.conf – no admin created.")
        return

    email = settings.first_admin_email.strip().lower()
    existing = (
        await db.execute(
            select(User).where(or_(User.email == email, User.username == settings.first_admin_username))
        )
    ).scalar_one_or_none()
    if existing:
        print(f"[seed] Admin '{email}' already exists – skipping.")
        return

    db.add(User(
        username=settings.first_admin_username,
        email=email,
        password_hash=hash_password(settings.first_admin_password),
        role="admin",
        is_active=True,
        approval_status="approved",
        email_verified=True,
        force_password_change=True,
    ))
    await db.commit()
    print(f"[seed] Admin '{email}' created successfully.")


async def seed() -> None:
    try:
        async with SessionLocal() as db:
            report = await initialize_defaults(db)
            print(f"[seed] Settings: {len(report.created)} created, {len(report.skipped)} already present.")
            await seed_admin(db)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed())
