"""Vectura Domain Shipping: shipments, parcels and their lifecycles."""

from vectura.domain.shipping.generators import ShipmentNumberGenerator, TrackingNumberGenerator
from vectura.domain.shipping.parcel import Parcel, ParcelStatus
from vectura.domain.shipping.policies import ParcelAccessPolicy, ShipmentAccessPolicy
from vectura.domain.shipping.services import ParcelDomainService, ShipmentDomainService
from vectura.domain.shipping.shipment import Shipment, ShipmentStatus
from vectura.domain.shipping.shipping_app import ShippingApplication

__all__ = [
    "Parcel",
    "ParcelAccessPolicy",
    "ParcelDomainService",
    "ParcelStatus",
    "Shipment",
    "ShipmentAccessPolicy",
    "ShipmentDomainService",
    "ShipmentNumberGenerator",
    "ShipmentStatus",
    "ShippingApplication",
    "TrackingNumberGenerator",
]
