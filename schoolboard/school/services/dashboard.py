"""
Dashboard widgets: latest announcements, events of a day, schedules and counts.

Why:
    Role home pages aggregate small slices of data. Each widget reuses the
    visibility predicate of the kind it reads, so a widget never shows more
    than the matching list page would.

Permissions:
    Role gating of the home pages happens in the route access map; the
    counts widget is additionally restricted to admins here.

Notes:
    Calendar days are interpreted in UTC.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List

from schoolboard.access_policy.engine import AccessPolicyEngine
from schoolboard.access_policy.errors import Forbidden
from schoolboard.access_policy.predicates import ALWAYS, Predicate, eq, gte, lt, one_of
from schoolboard.identity_access.domain import Principal, Role
from schoolboard.school.ports import Pagination, SchoolRepoProtocol
from schoolboard.school.schema import EntityKind

LATEST_ANNOUNCEMENTS = 3
SCHEDULE_LIMIT = 200
PEOPLE_KINDS = (EntityKind.TEACHER, EntityKind.STUDENT, EntityKind.PARENT)


def day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


@dataclass
class DashboardService:
    engine: AccessPolicyEngine
    repo: SchoolRepoProtocol

    def _rows(self, kind: EntityKind, predicate: Predicate, *, limit: int, **order: Any) -> List[Dict[str, Any]]:
        rows, _ = self.repo.list(kind, predicate, Pagination(1, limit), **order)
        return rows

    def latest_announcements(self, principal: Principal) -> List[Dict[str, Any]]:
        visible = self.engine.build_visibility_predicate(principal, EntityKind.ANNOUNCEMENT)
        return self._rows(
            EntityKind.ANNOUNCEMENT, visible, limit=LATEST_ANNOUNCEMENTS, order_by="date", descending=True
        )

    def events_on(self, principal: Principal, day: date) -> List[Dict[str, Any]]:
        start, end = day_bounds(day)
        predicate = self.engine.scoped(principal, EntityKind.EVENT, gte("start_time", start), lt("start_time", end))
        return self._rows(EntityKind.EVENT, predicate, limit=SCHEDULE_LIMIT, order_by="start_time")

    def schedule(self, principal: Principal, *, teacher_id: str | None = None, class_ids: List[int] | None = None) -> List[Dict[str, Any]]:
        """Visible lessons of one teacher or of a set of classes, by start time."""
        if teacher_id is not None:
            narrow = eq("teacher_id", teacher_id)
        elif class_ids is not None:
            narrow = one_of("class_id", class_ids)
        else:
            narrow = ALWAYS
        predicate = self.engine.scoped(principal, EntityKind.LESSON, narrow)
        return self._rows(EntityKind.LESSON, predicate, limit=SCHEDULE_LIMIT, order_by="start_time")

    # --- role home pages -----------------------------------------------------
    def admin_home(self, principal: Principal) -> Dict[str, Any]:
        if principal.known_role is not Role.ADMIN:
            raise Forbidden("admin_only")
        counts = {kind.value: self.repo.count(kind, self.engine.scoped(principal, kind)) for kind in PEOPLE_KINDS}
        by_sex = {
            sex: self.repo.count(EntityKind.STUDENT, self.engine.scoped(principal, EntityKind.STUDENT, eq("sex", sex)))
            for sex in ("MALE", "FEMALE")
        }
        return {
            "counts": counts,
            "students_by_sex": by_sex,
            "announcements": self.latest_announcements(principal),
        }

    def teacher_home(self, principal: Principal) -> Dict[str, Any]:
        return {
            "schedule": self.schedule(principal, teacher_id=principal.id),
            "announcements": self.latest_announcements(principal),
        }

    def student_home(self, principal: Principal) -> Dict[str, Any]:
        classes = self._rows(
            EntityKind.CLASS,
            self.engine.build_visibility_predicate(principal, EntityKind.CLASS),
            limit=SCHEDULE_LIMIT,
        )
        return {
            "classes": classes,
            "schedule": self.schedule(principal, class_ids=[c["id"] for c in classes]),
            "announcements": self.latest_announcements(principal),
        }

    def parent_home(self, principal: Principal) -> Dict[str, Any]:
        children = self._rows(
            EntityKind.STUDENT,
            self.engine.scoped(principal, EntityKind.STUDENT, eq("parent_id", principal.id)),
            limit=SCHEDULE_LIMIT,
        )
        schedules = [
            {
                "student": {"id": child["id"], "name": child["name"], "surname": child["surname"]},
                "schedule": self.schedule(principal, class_ids=[child["class_id"]]),
            }
            for child in children
        ]
        return {"children": schedules, "announcements": self.latest_announcements(principal)}


__all__ = ["DashboardService", "day_bounds"]
