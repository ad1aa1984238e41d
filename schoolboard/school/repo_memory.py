"""
In-memory school repository for tests and local offline work.

Behavior mirrors the Postgres adapter closely enough for API tests:
- predicates are evaluated with `access_policy.predicates.evaluate`,
- foreign keys must point at existing rows,
- deleting a referenced row is refused (like ON DELETE NO ACTION),
- integer ids are assigned sequentially; person ids come from the caller
  (identity provider subject).
"""

from __future__ import annotations

import threading
from copy import deepcopy
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple

from schoolboard.access_policy.predicates import ALWAYS, Predicate, evaluate

from .ports import Pagination
from .schema import SCHEMA, EntityKind, schema_for

LINK_KEYS = {EntityKind.TEACHER: "subject_ids", EntityKind.SUBJECT: "teacher_ids"}


class InMemorySchoolRepo:
    def __init__(self) -> None:
        self.rows: Dict[EntityKind, Dict[Any, Dict[str, Any]]] = {k: {} for k in EntityKind}
        # teacher_subjects as (teacher_id, subject_id)
        self.teacher_subjects: Set[Tuple[str, int]] = set()
        self._next_id: Dict[EntityKind, int] = {k: 1 for k in EntityKind}
        self._lock = threading.RLock()

    # --- relation resolver -------------------------------------------------
    def follow(self, kind: EntityKind, row: Mapping[str, Any], relation: str) -> List[Mapping[str, Any]]:
        rel = schema_for(kind).relation(relation)
        targets = self.rows[rel.target]
        if rel.through is not None:
            me = row.get("id")
            if kind is EntityKind.TEACHER:
                ids = [s for (t, s) in self.teacher_subjects if t == me]
            else:
                ids = [t for (t, s) in self.teacher_subjects if s == me]
            return [targets[i] for i in ids if i in targets]
        value = row.get(rel.local_column)
        if value is None:
            return []
        if not rel.many:
            hit = targets.get(value)
            return [hit] if hit is not None else []
        return [t for t in targets.values() if t.get(rel.remote_column) == value]

    # --- reads ---------------------------------------------------------------
    def _matching(self, kind: EntityKind, predicate: Predicate) -> List[Dict[str, Any]]:
        return [r for r in self.rows[kind].values() if evaluate(predicate, kind, r, self)]

    def list(
        self,
        kind: EntityKind,
        predicate: Predicate,
        pagination: Pagination,
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> Tuple[List[Dict[str, Any]], int]:
        column = order_by or schema_for(kind).default_order
        if not schema_for(kind).has_column(column):
            raise ValueError(f"unknown_column:{kind.value}.{column}")
        with self._lock:
            matches = self._matching(kind, predicate)
            # None sorts last regardless of direction; ties break on id
            present = [r for r in matches if r.get(column) is not None]
            missing = [r for r in matches if r.get(column) is None]
            present.sort(key=lambda r: (r[column], str(r["id"])), reverse=descending)
            ordered = present + sorted(missing, key=lambda r: str(r["id"]))
            window = ordered[pagination.offset: pagination.offset + pagination.limit]
            return [self._out(kind, r) for r in window], len(matches)

    def count(self, kind: EntityKind, predicate: Predicate) -> int:
        with self._lock:
            return len(self._matching(kind, predicate))

    def get(self, kind: EntityKind, row_id: Any, predicate: Optional[Predicate] = None) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self.rows[kind].get(row_id)
            if row is None or not evaluate(predicate or ALWAYS, kind, row, self):
                return None
            return self._out(kind, row)

    def _out(self, kind: EntityKind, row: Mapping[str, Any]) -> Dict[str, Any]:
        out = deepcopy(dict(row))
        if kind is EntityKind.TEACHER:
            out["subject_ids"] = sorted(s for (t, s) in self.teacher_subjects if t == row["id"])
        elif kind is EntityKind.SUBJECT:
            out["teacher_ids"] = sorted(t for (t, s) in self.teacher_subjects if s == row["id"])
        return out

    # --- writes --------------------------------------------------------------
    def create(self, kind: EntityKind, data: Dict[str, Any]) -> Dict[str, Any]:
        schema = schema_for(kind)
        payload = dict(data)
        links = payload.pop(LINK_KEYS.get(kind, ""), None)
        with self._lock:
            if schema.text_id:
                row_id = payload.get("id")
                if not row_id:
                    raise ValueError("missing_id")
                if row_id in self.rows[kind]:
                    raise ValueError("duplicate_id")
            else:
                row_id = self._next_id[kind]
                self._next_id[kind] += 1
            row = {c: None for c in schema.columns}
            row.update({k: v for k, v in payload.items() if schema.has_column(k)})
            row["id"] = row_id
            self._check_foreign_keys(kind, row)
            if links is not None:
                self._check_link_targets(kind, links)
            self.rows[kind][row_id] = row
            if links is not None:
                self._set_links(kind, row_id, links)
            return self._out(kind, row)

    def update(self, kind: EntityKind, row_id: Any, data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        schema = schema_for(kind)
        payload = dict(data)
        links = payload.pop(LINK_KEYS.get(kind, ""), None)
        with self._lock:
            current = self.rows[kind].get(row_id)
            if current is None:
                return None
            candidate = dict(current)
            candidate.update({k: v for k, v in payload.items() if schema.has_column(k) and k != "id"})
            self._check_foreign_keys(kind, candidate)
            if links is not None:
                self._check_link_targets(kind, links)
                self._set_links(kind, row_id, links)
            self.rows[kind][row_id] = candidate
            return self._out(kind, candidate)

    def delete(self, kind: EntityKind, row_id: Any) -> bool:
        with self._lock:
            if row_id not in self.rows[kind]:
                return False
            if self._is_referenced(kind, row_id):
                raise ValueError("row_referenced")
            del self.rows[kind][row_id]
            if kind is EntityKind.TEACHER:
                self.teacher_subjects = {p for p in self.teacher_subjects if p[0] != row_id}
            elif kind is EntityKind.SUBJECT:
                self.teacher_subjects = {p for p in self.teacher_subjects if p[1] != row_id}
            return True

    # --- integrity helpers ---------------------------------------------------
    def _check_foreign_keys(self, kind: EntityKind, row: Mapping[str, Any]) -> None:
        for rel in schema_for(kind).relations.values():
            if rel.many or rel.through is not None:
                continue
            value = row.get(rel.local_column)
            if value is not None and value not in self.rows[rel.target]:
                raise ValueError(f"foreign_key_violation:{rel.local_column}")

    def _check_link_targets(self, kind: EntityKind, ids: Iterable[Any]) -> None:
        target = EntityKind.SUBJECT if kind is EntityKind.TEACHER else EntityKind.TEACHER
        for i in ids:
            if i not in self.rows[target]:
                raise ValueError(f"foreign_key_violation:{LINK_KEYS[kind]}")

    def _set_links(self, kind: EntityKind, row_id: Any, ids: Iterable[Any]) -> None:
        if kind is EntityKind.TEACHER:
            kept = {p for p in self.teacher_subjects if p[0] != row_id}
            self.teacher_subjects = kept | {(row_id, s) for s in ids}
        else:
            kept = {p for p in self.teacher_subjects if p[1] != row_id}
            self.teacher_subjects = kept | {(t, row_id) for t in ids}

    def _is_referenced(self, kind: EntityKind, row_id: Any) -> bool:
        for other in SCHEMA.values():
            for rel in other.relations.values():
                if rel.many or rel.through is not None or rel.target is not kind:
                    continue
                if any(r.get(rel.local_column) == row_id for r in self.rows[other.kind].values()):
                    return True
        return False
