# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Account lockout state machine.

    UNLOCKED --(failed attempts >= limit)--> LOCKED
    LOCKED   --(now >= account_locked_until)--> UNLOCKED   (implicit)
    LOCKED   --(successful login / admin unlock)--> UNLOCKED

The lock predicate is evaluated against the caller's clock every time; an
expired lock needs no write to stop applying.  The failure counter is
incremented in SQL so that concurrent failed attempts cannot overwrite each
other's increments.
"""

import math
from datetime import datetime, timedelta
from enum import Enum

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.logger import logger
from core.timeutil import ensure_utc
from models.user import User


class LockState(str, Enum):
    UNLOCKED = "UNLOCKED"
    LOCKED = "LOCKED"


def is_locked(user: User, now: datetime) -> bool:
    locked_until = ensure_utc(user.account_locked_until)
    return locked_until is not None and locked_until > now


def lock_state(user: User, now: datetime) -> LockState:
    return LockState.LOCKED if is_locked(user, now) else LockState.UNLOCKED


def remaining_lock_minutes(user: User, now: datetime) -> int:
    """Whole minutes until the lock lifts, rounded up; 0 when not locked."""
    if not is_locked(user, now):
        return 0
    seconds = (ensure_utc(user.account_locked_until) - now).total_seconds()
    return math.ceil(seconds / 60)


async def record_failed_attempt(db: AsyncSession, user: User, snapshot, now: datetime) -> LockState:
    """Count one failed password check and lock the account once the limit is reached."""
    await db.execute(
        update(User)
        .where(User.id == user.id)
        .values(
            failed_login_attempts=User.failed_login_attempts + 1,
            last_failed_login=now,
        )
        .execution_options(synchronize_session=False)
    )
    attempts = (
        await db.execute(select(User.failed_login_attempts).where(User.id == user.id))
    ).scalar_one()

    state = LockState.UNLOCKED
    if attempts >= snapshot.login_attempt_limit:
        locked_until = now + timedelta(minutes=snapshot.account_lockout_duration_minutes)
        await db.execute(
            update(User)
            .where(User.id == user.id)
            .values(account_locked_until=locked_until)
            .execution_options(synchronize_session=False)
        )
        state = LockState.LOCKED
        logger.warning(
            "Account %s locked after %d failed login attempts (until %s)",
            user.id, attempts, locked_until.isoformat(),
        )
    else:
        logger.info("Failed login attempt %d/%d for user %s", attempts, snapshot.login_attempt_limit, user.id)

    await db.commit()
    await db.refresh(user)
    return state


async def reset_failed_attempts(db: AsyncSession, user: User, commit: bool = True) -> None:
    """Clear the counter, the lock and the last failure time."""
    user.failed_login_attempts = 0
    user.account_locked_until = None
    user.last_failed_login = None
    if commit:
        await db.commit()


async def unlock_account(db: AsyncSession, user: User) -> bool:
    """Admin unlock.  Returns whether there was anything to clear."""
    had_state = bool(user.failed_login_attempts) or user.account_locked_until is not None
    await reset_failed_attempts(db, user)
    logger.info("Account %s unlocked by an administrator", user.id)
    return had_state
