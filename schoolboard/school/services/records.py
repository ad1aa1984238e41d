"""
List and record use cases.

Why:
    Every list page and every record form runs the same sequence: check the
    role may perform the operation, build the visibility predicate, narrow it
    with query filters, then hit the repository. Keeping that sequence here
    means routes cannot forget a step.

Permissions:
    - List/read: roles in `LIST_ACCESS`; rows limited by visibility.
    - Create/update/delete: roles in `MUTATE_ACCESS`. Update/delete also
      require the target row to be visible, otherwise it is reported as
      missing. Teachers may only record results for exams and assignments of
      lessons they teach.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping

from schoolboard.access_policy.engine import AccessPolicyEngine, AccessRequest, Operation
from schoolboard.access_policy.errors import Forbidden, NotFound, ValidationFailed
from schoolboard.access_policy.filters import build_query_filters
from schoolboard.access_policy.predicates import Predicate, eq, related
from schoolboard.identity_access.domain import Principal, Role
from schoolboard.school.forms import validate_form
from schoolboard.school.ports import Pagination, SchoolRepoProtocol
from schoolboard.school.schema import EntityKind, parse_id

logger = logging.getLogger("schoolboard.school.records")


def _parse_id(kind: EntityKind, raw: object):
    try:
        return parse_id(kind, raw)
    except ValueError:
        raise ValidationFailed("invalid_id") from None


@dataclass
class RecordsService:
    engine: AccessPolicyEngine
    repo: SchoolRepoProtocol
    page_size: int = 10

    # --- reads ---------------------------------------------------------------
    def list_records(self, principal: Principal, kind: EntityKind, params: Mapping[str, str]) -> Dict[str, Any]:
        """Return one page of visible rows plus the total visible count.

        The count honors the same predicate as the page, so pagination never
        leaks the size of the unfiltered table.
        """
        self.engine.require(principal, AccessRequest(kind, Operation.LIST))
        predicate = self.engine.scoped(principal, kind, build_query_filters(kind, params))
        pagination = Pagination.from_query(params.get("page"), self.page_size)
        rows, total = self.repo.list(kind, predicate, pagination)
        return {"items": rows, "count": total, "page": pagination.page, "page_size": pagination.page_size}

    def get_record(self, principal: Principal, kind: EntityKind, raw_id: object) -> Dict[str, Any]:
        self.engine.require(principal, AccessRequest(kind, Operation.LIST))
        row = self.repo.get(kind, _parse_id(kind, raw_id), self.engine.build_visibility_predicate(principal, kind))
        if row is None:
            raise NotFound()
        return self._with_aggregates(principal, kind, row)

    def _with_aggregates(self, principal: Principal, kind: EntityKind, row: Dict[str, Any]) -> Dict[str, Any]:
        """Attach the related counts shown on teacher and student profiles.

        Counts run through the caller's visibility for the counted kind, so a
        profile never reveals rows the matching list page would hide.
        """
        if kind is EntityKind.TEACHER:
            row["counts"] = {
                "subjects": self._visible_count(principal, EntityKind.SUBJECT, related("teachers", eq("id", row["id"]))),
                "lessons": self._visible_count(principal, EntityKind.LESSON, eq("teacher_id", row["id"])),
                "classes": self._visible_count(principal, EntityKind.CLASS, eq("supervisor_id", row["id"])),
            }
        elif kind is EntityKind.STUDENT:
            visible_class = self.engine.build_visibility_predicate(principal, EntityKind.CLASS)
            klass = self.repo.get(EntityKind.CLASS, row["class_id"], visible_class)
            if klass is not None:
                klass["lesson_count"] = self._visible_count(principal, EntityKind.LESSON, eq("class_id", klass["id"]))
            row["class"] = klass
        return row

    def _visible_count(self, principal: Principal, kind: EntityKind, narrow: Predicate) -> int:
        return self.repo.count(kind, self.engine.scoped(principal, kind, narrow))

    # --- writes --------------------------------------------------------------
    def create_record(self, principal: Principal, kind: EntityKind, payload: object) -> Dict[str, Any]:
        self.engine.require(principal, AccessRequest(kind, Operation.CREATE))
        data = validate_form(kind, payload)
        self._ensure_within_scope(principal, kind, data)
        try:
            row = self.repo.create(kind, data)
        except ValueError as exc:
            raise ValidationFailed(str(exc)) from None
        logger.info("record created kind=%s id=%s by=%s", kind.value, row.get("id"), principal.id)
        return row

    def update_record(self, principal: Principal, kind: EntityKind, raw_id: object, payload: object) -> Dict[str, Any]:
        self.engine.require(principal, AccessRequest(kind, Operation.UPDATE))
        row_id = _parse_id(kind, raw_id)
        data = validate_form(kind, payload, for_update=True)
        self._require_visible(principal, kind, row_id)
        self._ensure_within_scope(principal, kind, data)
        try:
            row = self.repo.update(kind, row_id, data)
        except ValueError as exc:
            raise ValidationFailed(str(exc)) from None
        if row is None:
            raise NotFound()
        logger.info("record updated kind=%s id=%s by=%s", kind.value, row_id, principal.id)
        return row

    def delete_record(self, principal: Principal, kind: EntityKind, raw_id: object) -> None:
        self.engine.require(principal, AccessRequest(kind, Operation.DELETE))
        row_id = _parse_id(kind, raw_id)
        self._require_visible(principal, kind, row_id)
        try:
            deleted = self.repo.delete(kind, row_id)
        except ValueError as exc:
            raise ValidationFailed(str(exc)) from None
        if not deleted:
            raise NotFound()
        logger.info("record deleted kind=%s id=%s by=%s", kind.value, row_id, principal.id)

    # --- helpers -------------------------------------------------------------
    def _require_visible(self, principal: Principal, kind: EntityKind, row_id: Any) -> None:
        visibility = self.engine.build_visibility_predicate(principal, kind)
        if self.repo.get(kind, row_id, visibility) is None:
            raise NotFound()

    def _ensure_within_scope(self, principal: Principal, kind: EntityKind, data: Mapping[str, Any]) -> None:
        """Teachers grade only their own lessons' exams and assignments."""
        if kind is not EntityKind.RESULT or principal.known_role is not Role.TEACHER:
            return
        taught = related("lesson", eq("teacher_id", principal.id))
        if data.get("exam_id") is not None:
            source_kind, source_id = EntityKind.EXAM, data["exam_id"]
        else:
            source_kind, source_id = EntityKind.ASSIGNMENT, data.get("assignment_id")
        if self.repo.get(source_kind, source_id, taught) is None:
            raise Forbidden("result_outside_own_lessons")


__all__ = ["RecordsService"]
