"""
camp_portal.auth.policy

Role policy engine.

Responsibilities:
- Answer "may this principal pass this requirement" as a pure function.
- Support two independent requirement forms:
  - `AllowRoles`: exact allow-list membership (not monotonic).
  - `MinimumRole`: at-least check against the role hierarchy.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from camp_portal.auth.models import Principal, Role


@dataclass(frozen=True, slots=True)
class AllowRoles:
    roles: frozenset[Role]

    @classmethod
    def of(cls, *roles: Role) -> AllowRoles:
        return cls(roles=frozenset(Role(r) for r in roles))

    def describe(self) -> str:
        return ", ".join(sorted(r.value for r in self.roles))


@dataclass(frozen=True, slots=True)
class MinimumRole:
    role: Role

    def describe(self) -> str:
        return f"{self.role.value} or above"


Requirement = AllowRoles | MinimumRole


def is_role_allowed(principal: Principal | None, roles: Iterable[Role]) -> bool:
    if principal is None:
        return False
    return principal.role in frozenset(roles)


def has_minimum_role(principal: Principal | None, minimum: Role) -> bool:
    if principal is None:
        return False
    return principal.role.rank >= Role(minimum).rank


def authorize(principal: Principal | None, requirement: Requirement) -> bool:
    if isinstance(requirement, AllowRoles):
        return is_role_allowed(principal, requirement.roles)
    if isinstance(requirement, MinimumRole):
        return has_minimum_role(principal, requirement.role)
    raise TypeError(f"Unsupported requirement: {requirement!r}")


# Allow-lists used by the portal's route families.
ADMIN_ROLES = AllowRoles.of(Role.admin, Role.superadmin)
SUPERADMIN_ONLY = AllowRoles.of(Role.superadmin)


# --- Module Notes -----------------------------------------------------------
# Routes choose the form explicitly; the two are never collapsed because an
# allow-list such as {staff, superadmin} has no minimum-role equivalent.
