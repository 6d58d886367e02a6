"""Identifier generation settings.

Loads bounds for the identifier generators from environment variables with
the ``VECTURA_GENERATOR_`` prefix.

Usage:
    from vectura.foundation.application.settings import get_generator_settings

    settings = get_generator_settings()
    settings.shipment_number_max_attempts  # 10
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class GeneratorSettings(BaseSettings):
    """Retry bounds for identifier generation.

    Environment Variables:
        VECTURA_GENERATOR_SHIPMENT_NUMBER_MAX_ATTEMPTS: Sequential attempts
            before falling back to a random suffix (default 10).
        VECTURA_GENERATOR_TRACKING_NUMBER_MAX_ATTEMPTS: Times a caller
            regenerates a tracking number after a uniqueness conflict (default 5).
        VECTURA_GENERATOR_AGENCY_CODE_MAX_ATTEMPTS: Sequential attempts for
            agency codes (default 10).
    """

    model_config = SettingsConfigDict(
        env_prefix="VECTURA_GENERATOR_",
        case_sensitive=False,
        extra="ignore",
    )

    shipment_number_max_attempts: int = Field(default=10, ge=1, le=100)
    tracking_number_max_attempts: int = Field(default=5, ge=1, le=100)
    agency_code_max_attempts: int = Field(default=10, ge=1, le=100)


@lru_cache(maxsize=1)
def get_generator_settings() -> GeneratorSettings:
    """Get cached generator settings.

    Clear cache with ``get_generator_settings.cache_clear()`` for testing.
    """
    return GeneratorSettings()
