# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Password complexity engine.

Responsibilities
----------------
1. The built-in default rule set and the common-password denylist
2. Turning the ``password_complexity_rules`` setting into ``PasswordRules``
3. Validating a candidate password, reporting *every* violated rule at once
4. Strength scoring (0-5) and the human-readable requirements text
"""

import json
import re
from dataclasses import dataclass, fields, replace
from typing import List, Optional, Tuple

DEFAULT_SPECIAL_CHARS = "@$!%*?&#+-_.,~"

COMMON_PASSWORDS = frozenset({
    "password", "password123", "123456", "12345678", "qwerty", "abc123",
    "password1", "admin", "letmein", "welcome", "monkey", "1234567890",
    "football", "iloveyou", "1234567", "princess", "login", "welcome123",
    "solo", "qwerty123", "passw0rd", "hello", "charlie", "aa123456",
    "donald", "password!", "qwerty1", "123456789", "welcome1",
})

# Identifiers shorter than this are not checked for inside the password
_MIN_IDENTIFIER_LENGTH = 3

STRENGTH_LABELS = ("Very weak", "Very weak", "Weak", "Fair", "Good", "Strong")


@dataclass(frozen=True)
class PasswordRules:
    min_length: int = 8
    max_length: int = 128
    require_uppercase: bool = True
    require_lowercase: bool = True
    require_numbers: bool = True
    require_special_chars: bool = True
    allowed_special_chars: str = DEFAULT_SPECIAL_CHARS
    prevent_common_passwords: bool = True
    prevent_username_in_password: bool = True

    @classmethod
    def from_raw(cls, raw) -> "PasswordRules":
        """
        Build rules from the stored setting value.  ``None``, malformed JSON
        or a non-object fall back to the defaults; individual fields of the
        wrong type keep their default too.
        """
        if isinstance(raw, cls):
            return raw
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except ValueError:
                return DEFAULT_PASSWORD_RULES
        if not isinstance(raw, dict):
            return DEFAULT_PASSWORD_RULES

        overrides = {}
        for f in fields(cls):
            if f.name not in raw:
                continue
            value = raw[f.name]
            if f.type in (int, "int"):
                if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                    continue
                value = int(value)
            elif f.type in (bool, "bool"):
                if not isinstance(value, bool):
                    continue
            elif not isinstance(value, str) or not value:
                continue
            overrides[f.name] = value
        return replace(DEFAULT_PASSWORD_RULES, **overrides)

    def to_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


DEFAULT_PASSWORD_RULES = PasswordRules()


@dataclass(frozen=True)
class PasswordCheck:
    is_valid: bool
    errors: Tuple[str, ...]
    strength: int


def effective_password_rules(snapshot) -> PasswordRules:
    """Combine the rules object with ``min_password_length`` and ``password_complexity_required``."""
    raw = snapshot.password_complexity_rules
    rules = PasswordRules.from_raw(raw)
    if isinstance(raw, dict) and "min_length" in raw:
        # min_password_length is a floor the rules object cannot lower
        rules = replace(rules, min_length=max(rules.min_length, snapshot.min_password_length))
    else:
        rules = replace(rules, min_length=snapshot.min_password_length)
    if not snapshot.password_complexity_required:
        rules = replace(
            rules,
            require_uppercase=False,
            require_lowercase=False,
            require_numbers=False,
            require_special_chars=False,
        )
    return rules


def password_strength(password: str) -> int:
    score = 0
    if len(password) >= 8:
        score += 1
    if len(password) >= 12:
        score += 1
    if re.search(r"[a-z]", password):
        score += 1
    if re.search(r"[A-Z]", password):
        score += 1
    if re.search(r"\d", password):
        score += 1
    if re.search(r"[^A-Za-z\d]", password):
        score += 1
    if len(password) >= 16 and score >= 4:
        score += 1
    return min(score, 5)


def strength_label(score: int) -> str:
    return STRENGTH_LABELS[max(0, min(score, 5))]


def _special_class(chars: str) -> str:
    return "[" + "".join(re.escape(c) for c in chars) + "]"


def validate_password(
    password: str,
    rules=None,
    username: Optional[str] = None,
    email: Optional[str] = None,
) -> PasswordCheck:
    """
    Run every applicable rule and collect all violations.

    *rules* may be a ``PasswordRules``, the raw setting value (dict or JSON
    text) or ``None`` for the defaults.
    """
    if not password or not isinstance(password, str):
        return PasswordCheck(is_valid=False, errors=("Password is required",), strength=0)

    rules = PasswordRules.from_raw(rules)
    errors: List[str] = []

    if len(password) < rules.min_length:
        errors.append(f"Password must be at least {rules.min_length} characters long")
    if len(password) > rules.max_length:
        errors.append(f"Password must be no more than {rules.max_length} characters long")

    if rules.require_uppercase and not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if rules.require_lowercase and not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if rules.require_numbers and not re.search(r"\d", password):
        errors.append("Password must contain at least one number")
    if rules.require_special_chars and not re.search(_special_class(rules.allowed_special_chars), password):
        errors.append(
            f"Password must contain at least one special character ({rules.allowed_special_chars})"
        )

    lowered = password.lower()
    if rules.prevent_common_passwords and lowered in COMMON_PASSWORDS:
        errors.append("Password is too common and easily guessable")

    if rules.prevent_username_in_password:
        if username and len(username) >= _MIN_IDENTIFIER_LENGTH and username.lower() in lowered:
            errors.append("Password cannot contain your username")
        if email:
            local_part = email.split("@", 1)[0]
            if len(local_part) >= _MIN_IDENTIFIER_LENGTH and local_part.lower() in lowered:
                errors.append("Password cannot contain your email address")

    return PasswordCheck(
        is_valid=not errors,
        errors=tuple(errors),
        strength=password_strength(password),
    )


def requirements_message(rules=None) -> str:
    rules = PasswordRules.from_raw(rules)
    requirements = [f"{rules.min_length}-{rules.max_length} characters long"]
    if rules.require_lowercase:
        requirements.append("at least one lowercase letter")
    if rules.require_uppercase:
        requirements.append("at least one uppercase letter")
    if rules.require_numbers:
        requirements.append("at least one number")
    if rules.require_special_chars:
        requirements.append(f"at least one special character ({rules.allowed_special_chars})")
    return "Password must contain: " + ", ".join(requirements)
