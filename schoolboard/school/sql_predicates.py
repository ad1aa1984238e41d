"""
Translate row predicates into parameterized PostgreSQL.

Security:
    Table and column names are looked up in `school.schema`; unknown names
    raise instead of being interpolated. Values are always bound as `%s`
    parameters for psycopg.

Relations become correlated `EXISTS` subqueries, so to-one and to-many edges
share one rendering and nested paths (e.g. `lesson.class.students`) compose.
"""

from __future__ import annotations

from itertools import count
from typing import Any, Iterator, List, Tuple

from schoolboard.access_policy.predicates import And, Always, Field, Never, Or, Predicate, Related

from .schema import EntityKind, schema_for


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class _Translator:
    def __init__(self) -> None:
        self.params: List[Any] = []
        self._aliases: Iterator[int] = count(1)

    def render(self, predicate: Predicate, kind: EntityKind, alias: str) -> str:
        if isinstance(predicate, Always):
            return "TRUE"
        if isinstance(predicate, Never):
            return "FALSE"
        if isinstance(predicate, And):
            return "(" + " AND ".join(self.render(p, kind, alias) for p in predicate.items) + ")"
        if isinstance(predicate, Or):
            return "(" + " OR ".join(self.render(p, kind, alias) for p in predicate.items) + ")"
        if isinstance(predicate, Field):
            return self._field(predicate, kind, alias)
        if isinstance(predicate, Related):
            return self._related(predicate, kind, alias)
        raise TypeError(f"not a predicate: {predicate!r}")

    def _field(self, field: Field, kind: EntityKind, alias: str) -> str:
        if not schema_for(kind).has_column(field.name):
            raise ValueError(f"unknown_column:{kind.value}.{field.name}")
        column = f"{alias}.{field.name}"
        if field.op == "is_null":
            return f"{column} IS NULL" if field.value else f"{column} IS NOT NULL"
        if field.op == "eq":
            self.params.append(field.value)
            return f"{column} = %s"
        if field.op == "in":
            values = list(field.value)
            if not values:
                return "FALSE"
            self.params.append(values)
            return f"{column} = ANY(%s)"
        if field.op in ("gte", "lt"):
            self.params.append(field.value)
            return f"{column} {'>=' if field.op == 'gte' else '<'} %s"
        # icontains
        self.params.append(f"%{_escape_like(str(field.value))}%")
        return f"{column} ILIKE %s"

    def _related(self, rel_pred: Related, kind: EntityKind, alias: str) -> str:
        rel = schema_for(kind).relation(rel_pred.relation)
        target = schema_for(rel.target)
        inner = f"t{next(self._aliases)}"
        if rel.through is not None:
            link = f"j{inner[1:]}"
            join = (
                f"FROM {rel.through.table} {link} "
                f"JOIN {target.table} {inner} ON {inner}.id = {link}.{rel.through.remote_key} "
                f"WHERE {link}.{rel.through.local_key} = {alias}.id"
            )
        else:
            join = (
                f"FROM {target.table} {inner} "
                f"WHERE {inner}.{rel.remote_column} = {alias}.{rel.local_column}"
            )
        condition = self.render(rel_pred.predicate, rel.target, inner)
        if condition == "TRUE":
            return f"EXISTS (SELECT 1 {join})"
        return f"EXISTS (SELECT 1 {join} AND {condition})"


def to_sql(predicate: Predicate, kind: EntityKind, alias: str = "t0") -> Tuple[str, List[Any]]:
    """Return `(where_sql, params)` for rows of `kind` aliased as `alias`."""
    translator = _Translator()
    sql = translator.render(predicate, kind, alias)
    return sql, translator.params
