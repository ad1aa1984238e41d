"""
Access policy engine: who may do what, and which rows they may see.

Why:
    Keep every authorization rule of the dashboard in one synchronous,
    side-effect-free component. Web routes, dashboard widgets and tools call
    into it with an explicit `Principal`; nothing here performs I/O or reads
    ambient state.

Rules:
    - Mutations (create/update/delete): admin only; teachers may also mutate
      results.
    - Listing: per-kind role table `LIST_ACCESS` (also the source of the route
      access map).
    - Visibility: admin sees everything; other roles see rows without an owning
      class plus rows whose owning class is related to them. Unknown roles see
      nothing.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional

from schoolboard.identity_access.domain import Principal, Role
from schoolboard.school.schema import EntityKind

from .errors import Forbidden
from .ownership import CLASS_RELATIONS, OWNERSHIP, OwnershipDescriptor
from .predicates import ALWAYS, NEVER, Predicate, all_of, any_of, is_null, related


class Operation(str, Enum):
    LIST = "list"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


MUTATIONS = frozenset({Operation.CREATE, Operation.UPDATE, Operation.DELETE})

_ALL_ROLES: FrozenSet[Role] = frozenset(Role)
_STAFF: FrozenSet[Role] = frozenset({Role.ADMIN, Role.TEACHER})

# Which roles may list each kind.
LIST_ACCESS: Dict[EntityKind, FrozenSet[Role]] = {
    EntityKind.TEACHER: _STAFF,
    EntityKind.STUDENT: _STAFF,
    EntityKind.PARENT: _STAFF,
    EntityKind.SUBJECT: frozenset({Role.ADMIN}),
    EntityKind.CLASS: _STAFF,
    EntityKind.LESSON: _STAFF,
    EntityKind.EXAM: _ALL_ROLES,
    EntityKind.ASSIGNMENT: _ALL_ROLES,
    EntityKind.RESULT: _ALL_ROLES,
    EntityKind.ATTENDANCE: _ALL_ROLES,
    EntityKind.EVENT: _ALL_ROLES,
    EntityKind.ANNOUNCEMENT: _ALL_ROLES,
}

# Which roles may create/update/delete each kind.
MUTATE_ACCESS: Dict[EntityKind, FrozenSet[Role]] = {
    kind: frozenset({Role.ADMIN, Role.TEACHER}) if kind is EntityKind.RESULT else frozenset({Role.ADMIN})
    for kind in EntityKind
}


@dataclass(frozen=True)
class AccessRequest:
    entity_kind: EntityKind
    operation: Operation
    target_owner_id: Optional[str] = None


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str = ""


class AccessPolicyEngine:
    """Stateless policy evaluation over `Principal` values."""

    def authorize(self, principal: Principal, request: AccessRequest) -> Decision:
        role = principal.known_role
        if role is None:
            return Decision(False, "unknown_role")
        table = MUTATE_ACCESS if request.operation in MUTATIONS else LIST_ACCESS
        allowed_roles = table.get(request.entity_kind, frozenset())
        if role in allowed_roles:
            return Decision(True, "role_permitted")
        return Decision(False, f"{request.operation.value}_not_permitted_for_{role.value}")

    def require(self, principal: Principal, request: AccessRequest) -> None:
        """Raise `Forbidden` unless `authorize` allows the request."""
        decision = self.authorize(principal, request)
        if not decision.allowed:
            raise Forbidden(decision.reason)

    def build_visibility_predicate(self, principal: Principal, entity_kind: EntityKind) -> Predicate:
        role = principal.known_role
        if role is None:
            return NEVER
        if role is Role.ADMIN:
            return ALWAYS
        descriptor = OWNERSHIP.get(entity_kind)
        if descriptor is None:
            return NEVER
        return _ownership_predicate(descriptor, role, principal.id)

    def compose(self, visibility: Predicate, *filters: Predicate) -> Predicate:
        """AND the caller's filters onto the visibility predicate."""
        return all_of(visibility, *filters)

    def scoped(self, principal: Principal, entity_kind: EntityKind, *filters: Predicate) -> Predicate:
        return self.compose(self.build_visibility_predicate(principal, entity_kind), *filters)


def _ownership_predicate(descriptor: OwnershipDescriptor, role: Role, principal_id: str) -> Predicate:
    override = descriptor.role_relations.get(role)
    if override is not None:
        return override(principal_id)
    class_relation = CLASS_RELATIONS.get(role)
    if class_relation is None:
        return NEVER
    owned = related(descriptor.class_path, class_relation(principal_id))
    if descriptor.unowned_column:
        return any_of(is_null(descriptor.unowned_column), owned)
    return owned


__all__ = [
    "AccessPolicyEngine",
    "AccessRequest",
    "Decision",
    "LIST_ACCESS",
    "MUTATE_ACCESS",
    "Operation",
]
