"""Vectura Domain Agency: tenant roots and their physical locations."""

from vectura.domain.agency.agency import Agency, AgencyLocation, LocationType, SubscriptionTier
from vectura.domain.agency.agency_app import AgencyApplication
from vectura.domain.agency.policies import AgencyAccessPolicy, LocationAccessPolicy
from vectura.domain.agency.services import AgencyDomainService, LocationDomainService

__all__ = [
    "Agency",
    "AgencyAccessPolicy",
    "AgencyApplication",
    "AgencyDomainService",
    "AgencyLocation",
    "LocationAccessPolicy",
    "LocationDomainService",
    "LocationType",
    "SubscriptionTier",
]
