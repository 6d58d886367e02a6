"""Vectura Foundation Domain -- pure Python domain primitives.

Security context, entity base class, domain events, the exception taxonomy
and port interfaces shared by every bounded context.
"""

from vectura.foundation.domain.entities import Entity, utc_now
from vectura.foundation.domain.events import BaseEvent
from vectura.foundation.domain.exceptions import (
    AuthenticationError,
    AuthenticationMalformedError,
    BusinessRuleViolationError,
    ConflictError,
    DomainError,
    InvalidStateTransitionError,
    NotFoundError,
    ResourceLimitExceededError,
    SecurityViolationError,
    TenantViolationError,
    ValidationError,
)
from vectura.foundation.domain.ports import EventSinkPort, RepositoryPort, TransactionPort
from vectura.foundation.domain.role_codes import RoleCode
from vectura.foundation.domain.security_context import ActorType, SecurityContext
from vectura.foundation.domain.value_objects import CountryCode, Email, RoleCodeFormat

__all__ = [
    "ActorType",
    "AuthenticationError",
    "AuthenticationMalformedError",
    "BaseEvent",
    "BusinessRuleViolationError",
    "ConflictError",
    "CountryCode",
    "DomainError",
    "Email",
    "Entity",
    "EventSinkPort",
    "InvalidStateTransitionError",
    "NotFoundError",
    "RepositoryPort",
    "ResourceLimitExceededError",
    "RoleCode",
    "RoleCodeFormat",
    "SecurityContext",
    "SecurityViolationError",
    "TenantViolationError",
    "TransactionPort",
    "ValidationError",
    "utc_now",
]
