"""Shared value objects.

Immutable, validated domain primitives. All validation occurs at
construction and raises ValueError; domain services translate that into a
field-level ValidationError.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_COUNTRY_PATTERN = re.compile(r"^[A-Z]{2}$")
_ROLE_CODE_PATTERN = re.compile(r"^[A-Z_]+$")


@dataclass(frozen=True, slots=True)
class Email:
    """Validated, lowercased email address.

    Raises:
        ValueError: If empty, longer than 255 characters, or malformed.
    """

    value: str

    def __post_init__(self) -> None:
        normalized = self.value.strip().lower()
        if not normalized:
            msg = "Email cannot be empty"
            raise ValueError(msg)
        if len(normalized) > 255:
            msg = f"Email too long: {len(normalized)} chars (max 255)"
            raise ValueError(msg)
        if not _EMAIL_PATTERN.match(normalized):
            msg = f"Invalid email format: '{self.value}'"
            raise ValueError(msg)
        object.__setattr__(self, "value", normalized)


@dataclass(frozen=True, slots=True)
class CountryCode:
    """ISO 3166-1 alpha-2 country code, uppercased.

    Raises:
        ValueError: If the value is not exactly two letters.
    """

    value: str

    def __post_init__(self) -> None:
        normalized = self.value.strip().upper()
        if not _COUNTRY_PATTERN.match(normalized):
            msg = f"Country must be a 2-letter ISO code, got '{self.value}'"
            raise ValueError(msg)
        object.__setattr__(self, "value", normalized)


@dataclass(frozen=True, slots=True)
class RoleCodeFormat:
    """Role code made of uppercase letters and underscores (e.g. ``AGENCY_ADMIN``).

    Raises:
        ValueError: If the code is empty or contains other characters.
    """

    value: str

    def __post_init__(self) -> None:
        if not _ROLE_CODE_PATTERN.match(self.value):
            msg = f"Role code must match ^[A-Z_]+$, got '{self.value}'"
            raise ValueError(msg)
