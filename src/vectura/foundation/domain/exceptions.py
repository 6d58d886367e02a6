"""Domain exception hierarchy for type-safe error handling.

Every error raised by the core derives from ``DomainError`` and carries a
machine-readable ``error_code`` plus structured ``context`` so the boundary
can map it to a status code and log it without string parsing.

Taxonomy::

    DomainError
    +-- NotFoundError
    +-- AuthenticationError
    |   +-- AuthenticationMalformedError
    +-- SecurityViolationError
    |   +-- TenantViolationError
    +-- BusinessRuleViolationError
        +-- ValidationError
        +-- ConflictError
        |   +-- InvalidStateTransitionError
        +-- ResourceLimitExceededError

Anything outside this tree is treated as unexpected by the boundary.

Example:
    >>> from vectura.foundation.domain.exceptions import NotFoundError
    >>> from uuid import UUID
    >>> raise NotFoundError("Shipment", UUID("550e8400-e29b-41d4-a716-446655440000"))
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from uuid import UUID

__all__ = [
    "AuthenticationError",
    "AuthenticationMalformedError",
    "BusinessRuleViolationError",
    "ConflictError",
    "DomainError",
    "InvalidStateTransitionError",
    "NotFoundError",
    "ResourceLimitExceededError",
    "SecurityViolationError",
    "TenantViolationError",
    "ValidationError",
]


class DomainError(Exception):
    """Base class for all domain errors.

    Attributes:
        error_code: Machine-readable error code for client handling.
        message: Human-readable error description.
        context: Structured debugging information (entity IDs, field names).

    Example:
        >>> raise DomainError("Operation failed", context={"shipment_id": "123"})
        DomainError: Operation failed (shipment_id=123)
    """

    error_code: str = "DOMAIN_ERROR"

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        """Initialize domain error with message and optional context.

        Args:
            message: Human-readable error description.
            context: Structured debugging information. Keys should be snake_case.
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """String representation including context for logging."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} ({context_str})"
        return self.message

    def __repr__(self) -> str:
        """Detailed representation for debugging."""
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class NotFoundError(DomainError):
    """Raised when a requested entity does not exist (or is tombstoned).

    Maps to HTTP 404 Not Found.

    Example:
        >>> raise NotFoundError("Parcel", "TRK-20260118-ABCDEFGH-K")
        NotFoundError: Parcel not found: TRK-20260118-ABCDEFGH-K
    """

    error_code: str = "RESOURCE_NOT_FOUND"

    def __init__(
        self,
        resource_type: str,
        resource_id: UUID | str,
        **extra_context: Any,
    ) -> None:
        """Initialize not found error.

        Args:
            resource_type: Type of resource (e.g., "Agency", "Shipment").
            resource_id: Identifier of missing resource. UUID is converted to string.
            **extra_context: Additional debugging context (e.g., agency_id).
        """
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type} not found: {resource_id}"
        context = {
            "resource_type": resource_type,
            "resource_id": str(resource_id),
            **extra_context,
        }
        super().__init__(message, context)


class AuthenticationError(DomainError):
    """Raised when no trusted identity can be established for the request.

    Maps to HTTP 401 Unauthorized. All 401 responses MUST include a
    WWW-Authenticate header per RFC 6750.

    Attributes:
        error_code: Machine-readable error code (e.g., "MISSING_CLAIMS").
        auth_error: RFC 6750 error code for WWW-Authenticate header.
    """

    error_code: str = "AUTHENTICATION_ERROR"

    def __init__(
        self,
        message: str,
        auth_error: str = "invalid_token",
        error_code: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize authentication error.

        Args:
            message: Human-readable error description.
            auth_error: RFC 6750 error code for WWW-Authenticate header.
            error_code: Overrides the class-level error code when given.
            context: Structured debugging information.
        """
        self.auth_error = auth_error
        if error_code is not None:
            self.error_code = error_code
        super().__init__(message, context)


class AuthenticationMalformedError(AuthenticationError):
    """Raised when verified claims cannot be turned into a security context.

    The token itself was accepted by the verifier, but a claim is missing,
    has the wrong shape, or violates the actor-type/agency pairing. Always
    fatal to the request and never retried.

    Example:
        >>> raise AuthenticationMalformedError("Invalid subject claim", claim="sub")
    """

    error_code: str = "AUTHENTICATION_MALFORMED"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message, auth_error="invalid_token", context=context)


class SecurityViolationError(DomainError):
    """Raised when an access policy denies an operation.

    Maps to HTTP 403 Forbidden. Used for valid principals whose actor type,
    tenant or roles do not permit the requested action.

    Example:
        >>> raise SecurityViolationError(
        ...     "Access denied to shipment", operation="modify", shipment_id="..."
        ... )
    """

    error_code: str = "SECURITY_VIOLATION"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message, context)


class TenantViolationError(SecurityViolationError):
    """Raised when a resource's agency does not match the request's agency.

    Handled exactly like SecurityViolationError at the boundary; the separate
    type and error code let audit trails distinguish cross-tenant attempts.

    Example:
        >>> raise TenantViolationError("Tenant mismatch: expected A but got B")
    """

    error_code: str = "TENANT_VIOLATION"


class BusinessRuleViolationError(DomainError):
    """Raised when an operation breaks a domain rule.

    Maps to HTTP 422. Covers invalid lifecycle transitions, invariant
    breaches (wrong actor/agency pairing), duplicate or inactive role
    assignment, and similar client-correctable conditions.

    Example:
        >>> raise BusinessRuleViolationError("Agency is already suspended", agency_id="...")
    """

    error_code: str = "BUSINESS_RULE_VIOLATION"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message, context)


class ValidationError(BusinessRuleViolationError):
    """Raised when a field value fails a domain validation rule.

    Maps to HTTP 422 Unprocessable Entity.

    Attributes:
        field: Field path that failed validation.
        reason: Human-readable validation failure reason.

    Example:
        >>> raise ValidationError("receiver_country", "Must be a 2-letter ISO code")
        ValidationError: Validation failed for 'receiver_country': Must be a 2-letter ISO code
    """

    error_code: str = "VALIDATION_ERROR"

    def __init__(
        self,
        field: str,
        reason: str,
        **extra_context: Any,
    ) -> None:
        self.field = field
        self.reason = reason
        message = f"Validation failed for '{field}': {reason}"
        super().__init__(message, field=field, reason=reason, **extra_context)


class ConflictError(BusinessRuleViolationError):
    """Raised when an operation conflicts with existing state.

    Maps to HTTP 409 Conflict. Use for unique-key collisions (shipment
    numbers, tracking numbers, agency email, location code) and state
    transition conflicts.

    Example:
        >>> raise ConflictError("Location code already exists", code="HQ")
        ConflictError: Conflict: Location code already exists (code=HQ)
    """

    error_code: str = "CONFLICT"

    def __init__(
        self,
        reason: str,
        **context: Any,
    ) -> None:
        self.reason = reason
        message = f"Conflict: {reason}"
        super().__init__(message, **context)


class InvalidStateTransitionError(ConflictError):
    """Raised when a lifecycle state machine transition is not allowed.

    Maps to HTTP 409 Conflict.

    Example:
        >>> raise InvalidStateTransitionError(
        ...     "Invalid status transition: DELIVERED -> IN_TRANSIT",
        ...     current_state="DELIVERED",
        ...     target_state="IN_TRANSIT",
        ... )
    """

    error_code: str = "INVALID_STATE_TRANSITION"

    def __init__(self, message: str, **context: Any) -> None:
        self.reason = message
        BusinessRuleViolationError.__init__(self, message, **context)


class ResourceLimitExceededError(BusinessRuleViolationError):
    """Raised when an agency exceeds a subscription limit.

    Maps to HTTP 429 Too Many Requests.

    Attributes:
        resource: Resource type key (e.g., "shipments_per_month").
        limit: Maximum allowed count.
        current: Current usage count at time of check.

    Example:
        >>> raise ResourceLimitExceededError("users", limit=10, current=10)
        ResourceLimitExceededError: Agency has reached limit of 10 users
    """

    error_code: str = "RESOURCE_LIMIT_EXCEEDED"

    def __init__(
        self,
        resource: str,
        limit: int,
        current: int,
        **extra_context: Any,
    ) -> None:
        self.resource = resource
        self.limit = limit
        self.current = current
        message = f"Agency has reached limit of {limit} {resource}"
        super().__init__(
            message,
            resource=resource,
            limit=limit,
            current=current,
            **extra_context,
        )
