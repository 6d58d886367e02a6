"""Shared fixtures: principals, in-memory stores and wired application services."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from uuid import UUID, uuid4

import pytest

from vectura.domain.agency.agency_app import AgencyApplication
from vectura.domain.identity.user_app import UserApplication
from vectura.domain.shipping.shipping_app import ShippingApplication
from vectura.foundation.application.context import TenantContext
from vectura.foundation.application.settings import get_generator_settings
from vectura.foundation.application.unit_of_work import UnitOfWork
from vectura.foundation.domain.role_codes import RoleCode
from vectura.foundation.domain.security_context import ActorType, SecurityContext
from vectura.infra.persistence.memory import (
    InMemoryAgencyRepository,
    InMemoryDatabase,
    InMemoryEventSink,
    InMemoryLocationRepository,
    InMemoryParcelRepository,
    InMemoryRoleRepository,
    InMemoryShipmentRepository,
    InMemoryUserRepository,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from vectura.domain.agency.agency import Agency, AgencyLocation

# ---------------------------------------------------------------------------
# Principals
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _fresh_generator_settings() -> Iterator[None]:
    get_generator_settings.cache_clear()
    yield
    get_generator_settings.cache_clear()


@pytest.fixture()
def admin() -> SecurityContext:
    return SecurityContext(user_id=uuid4(), actor_type=ActorType.PLATFORM_ADMIN)


@pytest.fixture()
def make_employee() -> Callable[..., SecurityContext]:
    """Factory: ``make_employee(agency_id, *roles)``."""

    def _make(agency_id: UUID, *roles: str) -> SecurityContext:
        return SecurityContext(
            user_id=uuid4(),
            actor_type=ActorType.AGENCY_EMPLOYEE,
            agency_id=agency_id,
            roles=frozenset(roles),
        )

    return _make


@pytest.fixture()
def customer() -> SecurityContext:
    return SecurityContext(user_id=uuid4(), actor_type=ActorType.CUSTOMER)


# ---------------------------------------------------------------------------
# Stores and services
# ---------------------------------------------------------------------------


@pytest.fixture()
def database() -> InMemoryDatabase:
    return InMemoryDatabase()


@pytest.fixture()
def event_sink() -> InMemoryEventSink:
    return InMemoryEventSink()


@pytest.fixture()
def agencies(database: InMemoryDatabase) -> InMemoryAgencyRepository:
    return InMemoryAgencyRepository(database)


@pytest.fixture()
def locations(database: InMemoryDatabase) -> InMemoryLocationRepository:
    return InMemoryLocationRepository(database)


@pytest.fixture()
def shipments(database: InMemoryDatabase) -> InMemoryShipmentRepository:
    return InMemoryShipmentRepository(database)


@pytest.fixture()
def parcels(database: InMemoryDatabase) -> InMemoryParcelRepository:
    return InMemoryParcelRepository(database)


@pytest.fixture()
def users(database: InMemoryDatabase) -> InMemoryUserRepository:
    return InMemoryUserRepository(database)


@pytest.fixture()
def roles(database: InMemoryDatabase) -> InMemoryRoleRepository:
    return InMemoryRoleRepository(database)


@pytest.fixture()
def agency_app(
    agencies: InMemoryAgencyRepository, locations: InMemoryLocationRepository
) -> AgencyApplication:
    return AgencyApplication(agencies, locations)


@pytest.fixture()
def shipping_app(
    shipments: InMemoryShipmentRepository,
    parcels: InMemoryParcelRepository,
    agencies: InMemoryAgencyRepository,
    locations: InMemoryLocationRepository,
) -> ShippingApplication:
    return ShippingApplication(shipments, parcels, agencies, locations)


@pytest.fixture()
def user_app(
    users: InMemoryUserRepository,
    roles: InMemoryRoleRepository,
    agencies: InMemoryAgencyRepository,
) -> UserApplication:
    return UserApplication(users, roles, agencies)


@pytest.fixture()
def run(
    database: InMemoryDatabase, event_sink: InMemoryEventSink
) -> Callable[[SecurityContext, Callable[[UnitOfWork], Any]], Any]:
    """Run ``operation(uow)`` in a fresh unit of work for ``principal`` and commit."""

    def _run(principal: SecurityContext, operation: Callable[[UnitOfWork], Any]) -> Any:
        tenant = TenantContext.for_principal(principal)
        with UnitOfWork(tenant, event_sink, transaction=database) as uow:
            return operation(uow)

    return _run


# ---------------------------------------------------------------------------
# Seeded tenants
# ---------------------------------------------------------------------------


def _create_agency(
    run: Callable[..., Any], app: AgencyApplication, admin: SecurityContext, name: str
) -> Agency:
    slug = name.lower().replace(" ", "-")
    return run(
        admin,
        lambda uow: app.create_agency(
            uow,
            name=name,
            email=f"ops@{slug}.example",
            country="fr",
            city="Lyon",
            address_line1="1 Rue Centrale",
            postal_code="69001",
        ),
    )


@pytest.fixture()
def agency_a(
    run: Callable[..., Any], agency_app: AgencyApplication, admin: SecurityContext
) -> Agency:
    return _create_agency(run, agency_app, admin, "Alpha Freight")


@pytest.fixture()
def agency_b(
    run: Callable[..., Any], agency_app: AgencyApplication, admin: SecurityContext
) -> Agency:
    return _create_agency(run, agency_app, admin, "Bravo Logistics")


@pytest.fixture()
def headquarters_a(
    agency_a: Agency, locations: InMemoryLocationRepository
) -> AgencyLocation:
    (hq,) = locations.list_by_agency(agency_a.id)
    return hq


@pytest.fixture()
def shipment_manager_a(
    agency_a: Agency, make_employee: Callable[..., SecurityContext]
) -> SecurityContext:
    return make_employee(agency_a.id, RoleCode.SHIPMENT_MANAGER)


@pytest.fixture()
def agency_admin_a(
    agency_a: Agency, make_employee: Callable[..., SecurityContext]
) -> SecurityContext:
    return make_employee(agency_a.id, RoleCode.AGENCY_ADMIN)


@pytest.fixture()
def shipment_payload() -> dict[str, Any]:
    return {
        "sender_name": "Claire Martin",
        "sender_country": "fr",
        "sender_city": "Lyon",
        "receiver_name": "Jonas Weber",
        "receiver_country": "DE",
        "receiver_city": "Berlin",
    }
