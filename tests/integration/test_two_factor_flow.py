"""Integration tests for enabling, using and disabling two-factor authentication."""

from datetime import datetime, timedelta, timezone

import pyotp
import pytest

from auth import two_factor
from core.errors import (
    InvalidCredentials,
    TwoFactorAlreadyEnabled,
    TwoFactorInvalid,
    TwoFactorNotEnabled,
)
from core.result import Failure, Success
from core.security import decrypt_secret

pytestmark = pytest.mark.integration

NOW = datetime(2026, 3, 1, 18, 0, tzinfo=timezone.utc)
PASSWORD = "Dram-Tasting-42"


async def _enable(db, user):
    setup = two_factor.generate_setup(user, now=NOW)
    code = pyotp.TOTP(setup.secret).at(NOW)
    result = await two_factor.confirm_setup(db, user, setup.setup_token, code, now=NOW)
    assert isinstance(result, Success)
    return setup


async def test_setup_is_only_stored_after_confirmation(db, make_user):
    user = await make_user()
    setup = two_factor.generate_setup(user, now=NOW)

    await db.refresh(user)
    assert user.two_factor_enabled is False
    assert user.two_factor_secret is None

    wrong = await two_factor.confirm_setup(db, user, setup.setup_token, "000000", now=NOW)
    assert wrong == Failure(TwoFactorInvalid())

    code = pyotp.TOTP(setup.secret).at(NOW)
    assert isinstance(await two_factor.confirm_setup(db, user, setup.setup_token, code, now=NOW), Success)

    await db.refresh(user)
    assert user.two_factor_enabled is True
    assert decrypt_secret(user.two_factor_secret) == setup.secret
    assert len(user.two_factor_backup_codes) == 8


async def test_setup_reference_expires_and_is_bound_to_the_user(db, make_user):
    user = await make_user()
    other = await make_user(email="other@example.com", username="other")
    setup = two_factor.generate_setup(user, now=NOW)

    late = NOW + timedelta(minutes=11)
    code = pyotp.TOTP(setup.secret).at(late)
    assert await two_factor.confirm_setup(db, user, setup.setup_token, code, now=late) == Failure(TwoFactorInvalid())

    code = pyotp.TOTP(setup.secret).at(NOW)
    assert await two_factor.confirm_setup(db, other, setup.setup_token, code, now=NOW) == Failure(TwoFactorInvalid())


async def test_cannot_enable_twice(db, make_user):
    user = await make_user()
    await _enable(db, user)
    setup = two_factor.generate_setup(user, now=NOW)
    code = pyotp.TOTP(setup.secret).at(NOW)
    result = await two_factor.confirm_setup(db, user, setup.setup_token, code, now=NOW)
    assert result == Failure(TwoFactorAlreadyEnabled())


async def test_totp_verification(db, make_user):
    user = await make_user()
    setup = await _enable(db, user)

    later = NOW + timedelta(minutes=3)
    result = await two_factor.verify(db, user, pyotp.TOTP(setup.secret).at(later), now=later)

    assert isinstance(result, Success)
    assert result.value.method == "totp"
    assert result.value.remaining_backup_codes == 8


async def test_backup_code_is_single_use(db, make_user):
    user = await make_user()
    setup = await _enable(db, user)
    code = setup.backup_codes[0]

    first = await two_factor.verify(db, user, code.lower(), now=NOW)
    assert first.value.method == "backup_code"
    assert first.value.remaining_backup_codes == 7

    await db.refresh(user)
    assert len(user.two_factor_backup_codes) == 7
    assert await two_factor.verify(db, user, code, now=NOW) == Failure(TwoFactorInvalid())


@pytest.mark.parametrize("token", ["", "12345", "1234567", "ZZZZ-ZZZZ", "00000000", None])
async def test_every_bad_input_fails_the_same_way(db, make_user, token):
    user = await make_user()
    await _enable(db, user)
    assert await two_factor.verify(db, user, token, now=NOW) == Failure(TwoFactorInvalid())


async def test_verify_needs_two_factor_enabled(db, make_user):
    user = await make_user()
    assert await two_factor.verify(db, user, "123456", now=NOW) == Failure(TwoFactorNotEnabled())


async def test_disable_needs_password_and_code(db, make_user):
    user = await make_user()
    setup = await _enable(db, user)
    code = pyotp.TOTP(setup.secret).at(NOW)

    assert await two_factor.disable(db, user, "Wrong-Password-1", code, now=NOW) == Failure(
        InvalidCredentials(message="Invalid password")
    )
    assert await two_factor.disable(db, user, PASSWORD, "abc", now=NOW) == Failure(TwoFactorInvalid())

    assert isinstance(await two_factor.disable(db, user, PASSWORD, code, now=NOW), Success)
    await db.refresh(user)
    assert user.two_factor_enabled is False
    assert user.two_factor_secret is None
    assert user.two_factor_backup_codes is None


async def test_regenerate_backup_codes(db, make_user):
    user = await make_user()
    setup = await _enable(db, user)
    code = pyotp.TOTP(setup.secret).at(NOW)

    result = await two_factor.regenerate_backup_codes(db, user, PASSWORD, code, now=NOW)

    assert isinstance(result, Success)
    assert len(result.value) == 8
    assert set(result.value).isdisjoint(setup.backup_codes)
    # Old codes no longer work, new ones do
    assert await two_factor.verify(db, user, setup.backup_codes[0], now=NOW) == Failure(TwoFactorInvalid())
    assert isinstance(await two_factor.verify(db, user, result.value[0], now=NOW), Success)
