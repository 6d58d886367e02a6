"""Agency code generation.

Format: ``AGY-{YYYY}-{NNNNN}``, a per-year sequence. The next value is
proposed from a count of existing codes with the same year prefix and then
checked for uniqueness. Concurrent creators can race for the same value, so
the check is retried a bounded number of times before falling back to a
random suffix.
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

    from vectura.domain.agency.ports import AgencyRepositoryPort

logger = logging.getLogger(__name__)

AGENCY_CODE_PREFIX = "AGY"
AGENCY_CODE_PATTERN = re.compile(r"^AGY-\d{4}-\d{5}$")


class AgencyCodeGenerator:
    """Allocates human-readable agency codes."""

    def __init__(
        self,
        agencies: AgencyRepositoryPort,
        max_attempts: int | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._agencies = agencies
        self._max_attempts = max_attempts or get_generator_settings().agency_code_max_attempts
        self._clock = clock

    def generate_unique_code(self) -> str:
        year = self._clock().year
        prefix = f"{AGENCY_CODE_PREFIX}-{year}"
        for attempt in range(self._max_attempts):
            count = self._agencies.count_by_code_prefix(prefix)
            code = f"{prefix}-{count + 1:05d}"
            if not self._agencies.exists_by_code(code):
                return code
            logger.debug(
                "agency_code_collision",
                extra={"code": code, "attempt": attempt + 1},
            )
        code = f"{prefix}-{secrets.randbelow(100_000):05d}"
        logger.warning(
            "agency_code_random_fallback",
            extra={"code": code, "max_attempts": self._max_attempts},
        )
        return code

    @staticmethod
    def is_valid_format(code: str | None) -> bool:
        return code is not None and AGENCY_CODE_PATTERN.match(code) is not None
