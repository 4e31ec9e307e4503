"""Helpers for the 10-digit numeric identities used as call addresses."""

from __future__ import annotations

import re
import secrets

UID_PATTERN = re.compile(r"^[0-9]{10}$")

_UID_MIN = 1_000_000_000
_UID_MAX = 9_999_999_999


def is_valid_uid(value: object) -> bool:
    return isinstance(value, str) and UID_PATTERN.fullmatch(value) is not None


def generate_uid() -> str:
    """Return a random 10-digit identity that never starts with zero."""

    return str(_UID_MIN + secrets.randbelow(_UID_MAX - _UID_MIN + 1))
