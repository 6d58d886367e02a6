"""Shipment and tracking number generation.

Shipment numbers, ``SHP-{YYYYMMDD}-{PFX}-{NNNNNN}``:
    ``PFX`` is the first three hex characters of the agency id, uppercased,
    so a number can be traced to its agency without a lookup. ``NNNNNN`` is a
    per-agency, per-day sequence. The generator counts existing numbers with
    the same prefix, proposes ``count + 1`` and checks global uniqueness. Two
    concurrent writers can propose the same value, so the check is retried a
    bounded number of times before falling back to a random suffix.

Tracking numbers, ``TRK-{YYYYMMDD}-{XXXXXXXX}-{C}``:
    ``XXXXXXXX`` is drawn from an alphabet without the look-alike characters
    I, O, 0 and 1. ``C`` is a mod-32 Luhn check character over the date and
    random part. Tracking numbers are not sequential and the generator never
    checks uniqueness; the parcel store's unique constraint does, and the
    caller regenerates on conflict.
"""

from __future__ import annotations

import logging
import re
import secrets
from typing import TYPE_CHECKING

from vectura.foundation.application.settings import get_generator_settings
from vectura.foundation.domain.entities import utc_now

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime
    from uuid import UUID

    from vectura.domain.shipping.ports import ShipmentRepositoryPort

logger = logging.getLogger(__name__)

SHIPMENT_NUMBER_PREFIX = "SHP"
SHIPMENT_NUMBER_PATTERN = re.compile(r"^SHP-\d{8}-[A-Z0-9]{3}-\d{6}$")

TRACKING_NUMBER_PREFIX = "TRK"
TRACKING_CHARSET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
TRACKING_RANDOM_LENGTH = 8
TRACKING_NUMBER_PATTERN = re.compile(r"^TRK-\d{8}-[A-Z0-9]{8}-[A-Z0-9]$")

_DATE_FORMAT = "%Y%m%d"


def agency_prefix(agency_id: UUID) -> str:
    """First three hex characters of the agency id, uppercased."""
    return agency_id.hex[:3].upper()


class ShipmentNumberGenerator:
    """Allocates per-agency, per-day sequential shipment numbers."""

    def __init__(
        self,
        shipments: ShipmentRepositoryPort,
        max_attempts: int | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._shipments = shipments
        self._max_attempts = max_attempts or get_generator_settings().shipment_number_max_attempts
        self._clock = clock

    def generate_unique_number(self, agency_id: UUID) -> str:
        prefix = (
            f"{SHIPMENT_NUMBER_PREFIX}-{self._clock().strftime(_DATE_FORMAT)}"
            f"-{agency_prefix(agency_id)}"
        )
        for attempt in range(self._max_attempts):
            count = self._shipments.count_by_prefix(agency_id, prefix)
            number = f"{prefix}-{count + 1:06d}"
            if not self._shipments.exists_by_shipment_number(number):
                return number
            logger.debug(
                "shipment_number_collision",
                extra={"shipment_number": number, "attempt": attempt + 1},
            )
        number = f"{prefix}-{secrets.randbelow(1_000_000):06d}"
        logger.warning(
            "shipment_number_random_fallback",
            extra={
                "agency_id": str(agency_id),
                "shipment_number": number,
                "max_attempts": self._max_attempts,
            },
        )
        return number

    @staticmethod
    def is_valid_format(number: str | None) -> bool:
        return number is not None and SHIPMENT_NUMBER_PATTERN.match(number) is not None


class TrackingNumberGenerator:
    """Builds random, check-digited tracking numbers."""

    def __init__(self, clock: Callable[[], datetime] = utc_now) -> None:
        self._clock = clock

    def generate(self) -> str:
        date_part = self._clock().strftime(_DATE_FORMAT)
        random_part = "".join(
            secrets.choice(TRACKING_CHARSET) for _ in range(TRACKING_RANDOM_LENGTH)
        )
        checksum = self.calculate_checksum(date_part + random_part)
        return f"{TRACKING_NUMBER_PREFIX}-{date_part}-{random_part}-{checksum}"

    @staticmethod
    def calculate_checksum(payload: str) -> str:
        """Luhn mod-32 check character.

        Digits count as their numeric value and letters as their index in
        ``TRACKING_CHARSET``. Every second value from the right is doubled,
        and reduced by 32 when the result exceeds 32.
        """
        base = len(TRACKING_CHARSET)
        total = 0
        double = False
        for char in reversed(payload):
            if char.isdigit():
                value = int(char)
            else:
                value = max(TRACKING_CHARSET.find(char), 0)
            if double:
                value *= 2
                if value > base:
                    value -= base
            total += value
            double = not double
        return TRACKING_CHARSET[(base - total % base) % base]

    @staticmethod
    def is_valid_format(tracking_number: str | None) -> bool:
        return (
            tracking_number is not None
            and TRACKING_NUMBER_PATTERN.match(tracking_number) is not None
        )

    @classmethod
    def is_valid(cls, tracking_number: str | None) -> bool:
        """Format and checksum both hold."""
        if tracking_number is None or not cls.is_valid_format(tracking_number):
            return False
        _, date_part, random_part, checksum = tracking_number.split("-")
        return cls.calculate_checksum(date_part + random_part) == checksum
