"""Role codes the access policies reason about.

Role codes travel in the token's ``roles`` claim as plain strings and are
stored on ``Role`` entities; this enum names the ones with built-in meaning.
Unknown codes are carried through untouched and simply grant nothing.
"""

from __future__ import annotations

from enum import StrEnum


class RoleCode(StrEnum):
    """Role codes with built-in policy meaning."""

    AGENCY_ADMIN = "AGENCY_ADMIN"
    LOCATION_MANAGER = "LOCATION_MANAGER"
    SHIPMENT_MANAGER = "SHIPMENT_MANAGER"
    PARCEL_MANAGER = "PARCEL_MANAGER"
    SORTING_OPERATOR = "SORTING_OPERATOR"
    DELIVERY_DRIVER = "DELIVERY_DRIVER"
