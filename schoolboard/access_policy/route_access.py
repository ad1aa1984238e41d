"""
Route-to-role map and role menu.

Why:
    The web middleware rejects a role at the URL prefix before any handler
    runs. The map is derived from the engine's `LIST_ACCESS` table, so a role
    denied at the route layer is also denied at the data layer and the two
    cannot drift apart.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional

from schoolboard.identity_access.domain import Role
from schoolboard.school.schema import EntityKind

from .engine import LIST_ACCESS

LIST_PREFIX = "/api/list"
DASHBOARD_PREFIX = "/api/dashboard"


def list_path(kind: EntityKind) -> str:
    return f"{LIST_PREFIX}/{kind.value}"


def _build_route_access() -> Dict[str, FrozenSet[Role]]:
    routes: Dict[str, FrozenSet[Role]] = {
        f"{DASHBOARD_PREFIX}/{role.value}": frozenset({role}) for role in Role
    }
    for kind, roles in LIST_ACCESS.items():
        routes[list_path(kind)] = roles
    return routes


ROUTE_ACCESS: Dict[str, FrozenSet[Role]] = _build_route_access()


def _matches(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


def roles_for_path(path: str) -> Optional[FrozenSet[Role]]:
    """Return the roles allowed under the longest matching prefix, or None if unrestricted."""
    best: Optional[str] = None
    for prefix in ROUTE_ACCESS:
        if _matches(path, prefix) and (best is None or len(prefix) > len(best)):
            best = prefix
    return ROUTE_ACCESS[best] if best is not None else None


def role_may_enter(path: str, role: str) -> bool:
    allowed = roles_for_path(path)
    if allowed is None:
        return True
    try:
        return Role(role) in allowed
    except ValueError:
        return False


@dataclass(frozen=True)
class MenuItem:
    label: str
    href: str
    visible: FrozenSet[Role]


_MENU_LABELS = [
    (EntityKind.TEACHER, "Teachers"),
    (EntityKind.STUDENT, "Students"),
    (EntityKind.PARENT, "Parents"),
    (EntityKind.SUBJECT, "Subjects"),
    (EntityKind.CLASS, "Classes"),
    (EntityKind.LESSON, "Lessons"),
    (EntityKind.EXAM, "Exams"),
    (EntityKind.ASSIGNMENT, "Assignments"),
    (EntityKind.RESULT, "Results"),
    (EntityKind.ATTENDANCE, "Attendance"),
    (EntityKind.EVENT, "Events"),
    (EntityKind.ANNOUNCEMENT, "Announcements"),
]

MENU: List[MenuItem] = [MenuItem("Home", "/", frozenset(Role))] + [
    MenuItem(label, list_path(kind), LIST_ACCESS[kind]) for kind, label in _MENU_LABELS
]


def menu_for_role(role: str) -> List[dict]:
    try:
        r = Role(role)
    except ValueError:
        return []
    return [{"label": m.label, "href": m.href} for m in MENU if r in m.visible]
