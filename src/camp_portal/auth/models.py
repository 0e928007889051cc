"""
camp_portal.auth.models

Auth domain models.

Responsibilities:
- Define the role enumeration and its strict privilege order.
- Define the authenticated identity type (`Principal`) injected into endpoints.
"""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


class Role(enum.StrEnum):
    # Declaration order is the privilege order (lowest first).
    parent = "parent"
    staff = "staff"
    admin = "admin"
    superadmin = "superadmin"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    @classmethod
    def parse(cls, value: object) -> Role:
        """
        Coerce a stored/claimed role into the enumeration.
        Absent or unknown values fall back to the lowest tier.
        """
        if isinstance(value, Role):
            return value
        try:
            return cls(str(value))
        except ValueError:
            return cls.parent


_RANKS: dict[Role, int] = {role: idx for idx, role in enumerate(Role)}


class AuthScheme(enum.StrEnum):
    # Each route family uses exactly one scheme.
    local = "local"
    external = "external"


@dataclass(frozen=True, slots=True)
class Principal:
    """
    Authenticated caller identity.
    """

    subject: str
    role: Role
    email: str | None = None
    scheme: AuthScheme = AuthScheme.local
    claims: Mapping[str, Any] = field(default_factory=dict)
    token_version: int | None = None


# --- Module Notes -----------------------------------------------------------
# Keep `Principal` independent of the verifier that produced it; the policy engine
# and handlers must not branch on `scheme`.
