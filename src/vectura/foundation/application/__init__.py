"""Vectura Foundation Application -- per-request scope and shared services.

Security context resolution, the explicit tenant context, the unit of work
that orders event publication after commit, and generator settings.
"""

from vectura.foundation.application.access_policy import TenantScopedPolicy
from vectura.foundation.application.context import TenantContext
from vectura.foundation.application.security import resolve_security_context
from vectura.foundation.application.settings import GeneratorSettings, get_generator_settings
from vectura.foundation.application.unit_of_work import UnitOfWork, UnitOfWorkClosedError

__all__ = [
    "GeneratorSettings",
    "TenantContext",
    "TenantScopedPolicy",
    "UnitOfWork",
    "UnitOfWorkClosedError",
    "get_generator_settings",
    "resolve_security_context",
]
