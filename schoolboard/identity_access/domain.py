"""
Identity domain constants and the request principal.

Why:
- Centralize allowed roles to avoid drift between the policy engine, the route
  map and the web layer.
- Derive exactly one immutable `Principal` per request from verified claims so
  downstream code never re-reads the token.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Mapping


class Role(str, Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"
    PARENT = "parent"


@dataclass(frozen=True)
class Principal:
    """Authenticated actor for the lifetime of one request.

    `role` stays a plain string so an unexpected claim value survives up to the
    policy engine, which fails closed on anything that is not a `Role`.
    """

    id: str
    role: str

    @property
    def known_role(self) -> Role | None:
        try:
            return Role(self.role)
        except ValueError:
            return None


def _role_from_claims(claims: Mapping[str, object], role_claim: str) -> str | None:
    raw = claims.get(role_claim)
    if isinstance(raw, str) and raw.strip():
        return raw.strip().lower()
    # Keycloak style: realm_access.roles -> pick the highest known role (enum order)
    realm = claims.get("realm_access")
    roles = realm.get("roles") if isinstance(realm, dict) else None
    if isinstance(roles, list):
        lowered = [r.lower() for r in roles if isinstance(r, str)]
        for candidate in Role:
            if candidate.value in lowered:
                return candidate.value
    return None


def principal_from_claims(claims: Mapping[str, object], *, role_claim: str = "role") -> Principal | None:
    """Build a principal from verified claims, or None when unusable.

    Requires a non-empty `sub` and a role claim. Unknown role strings are kept
    as-is; authorization decides what they may see (nothing).
    """
    sub = claims.get("sub")
    if not isinstance(sub, str) or not sub.strip():
        return None
    role = _role_from_claims(claims, role_claim)
    if role is None:
        return None
    return Principal(id=sub.strip(), role=role)


__all__ = ["Principal", "Role", "principal_from_claims"]
