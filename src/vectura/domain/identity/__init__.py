"""Vectura Domain Identity: users, roles and role assignment."""

from vectura.domain.identity.policies import RoleAccessPolicy, UserAccessPolicy
from vectura.domain.identity.services import RoleDomainService, UserDomainService
from vectura.domain.identity.user import Role, RoleScope, User
from vectura.domain.identity.user_app import UserApplication

__all__ = [
    "Role",
    "RoleAccessPolicy",
    "RoleDomainService",
    "RoleScope",
    "User",
    "UserAccessPolicy",
    "UserApplication",
    "UserDomainService",
]
