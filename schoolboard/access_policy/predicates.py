"""
Store-agnostic row predicates.

Why:
    Visibility rules and query filters are expressed as plain immutable data.
    The same predicate is evaluated in memory (tests, offline repo) or
    translated to SQL (`school.sql_predicates`), so callers never re-derive a
    role condition per call site.

Shapes:
    - `ALWAYS` / `NEVER`: universal and empty predicates.
    - `Field(name, op, value)`: column test on the current row.
    - `Related(relation, predicate)`: some related row (to-one or to-many)
      satisfies `predicate`.
    - `And(items)` / `Or(items)`: logical composition.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Protocol, Tuple, Union

from schoolboard.school.schema import EntityKind, schema_for


@dataclass(frozen=True)
class Always:
    pass


@dataclass(frozen=True)
class Never:
    pass


ALWAYS = Always()
NEVER = Never()

FIELD_OPS = frozenset({"eq", "is_null", "icontains", "in", "gte", "lt"})


@dataclass(frozen=True)
class Field:
    name: str
    op: str
    value: Any = None

    def __post_init__(self) -> None:
        if self.op not in FIELD_OPS:
            raise ValueError(f"unknown_op:{self.op}")


@dataclass(frozen=True)
class Related:
    relation: str
    predicate: "Predicate"


@dataclass(frozen=True)
class And:
    items: Tuple["Predicate", ...]


@dataclass(frozen=True)
class Or:
    items: Tuple["Predicate", ...]


Predicate = Union[Always, Never, Field, Related, And, Or]


def eq(name: str, value: Any) -> Field:
    return Field(name, "eq", value)


def is_null(name: str) -> Field:
    return Field(name, "is_null", True)


def icontains(name: str, value: str) -> Field:
    return Field(name, "icontains", value)


def one_of(name: str, values: Iterable[Any]) -> Field:
    return Field(name, "in", tuple(values))


def gte(name: str, value: Any) -> Field:
    return Field(name, "gte", value)


def lt(name: str, value: Any) -> Field:
    return Field(name, "lt", value)


def related(path: str, predicate: Predicate) -> Predicate:
    """Nest `predicate` under a dotted relation path, e.g. "lesson.class"."""
    for name in reversed([p for p in path.split(".") if p]):
        predicate = Related(name, predicate)
    return predicate


def all_of(*items: Predicate) -> Predicate:
    """AND-compose predicates, folding constants and flattening nested ANDs."""
    flat: List[Predicate] = []
    for item in items:
        if isinstance(item, Never):
            return NEVER
        if isinstance(item, Always):
            continue
        if isinstance(item, And):
            flat.extend(item.items)
        else:
            flat.append(item)
    if not flat:
        return ALWAYS
    if len(flat) == 1:
        return flat[0]
    return And(tuple(flat))


def any_of(*items: Predicate) -> Predicate:
    """OR-compose predicates, folding constants and flattening nested ORs."""
    flat: List[Predicate] = []
    for item in items:
        if isinstance(item, Always):
            return ALWAYS
        if isinstance(item, Never):
            continue
        if isinstance(item, Or):
            flat.extend(item.items)
        else:
            flat.append(item)
    if not flat:
        return NEVER
    if len(flat) == 1:
        return flat[0]
    return Or(tuple(flat))


class RelationResolver(Protocol):
    def follow(self, kind: EntityKind, row: Mapping[str, Any], relation: str) -> List[Mapping[str, Any]]:
        ...


def evaluate(predicate: Predicate, kind: EntityKind, row: Mapping[str, Any], resolver: RelationResolver) -> bool:
    """Evaluate `predicate` against one row of `kind`."""
    if isinstance(predicate, Always):
        return True
    if isinstance(predicate, Never):
        return False
    if isinstance(predicate, And):
        return all(evaluate(p, kind, row, resolver) for p in predicate.items)
    if isinstance(predicate, Or):
        return any(evaluate(p, kind, row, resolver) for p in predicate.items)
    if isinstance(predicate, Related):
        rel = schema_for(kind).relation(predicate.relation)
        targets = resolver.follow(kind, row, predicate.relation)
        return any(evaluate(predicate.predicate, rel.target, t, resolver) for t in targets)
    if isinstance(predicate, Field):
        if not schema_for(kind).has_column(predicate.name):
            raise ValueError(f"unknown_column:{kind.value}.{predicate.name}")
        return _match_field(predicate, row.get(predicate.name))
    raise TypeError(f"not a predicate: {predicate!r}")


def _match_field(field: Field, actual: Any) -> bool:
    if field.op == "is_null":
        return (actual is None) is bool(field.value)
    if actual is None:
        return False
    if field.op == "eq":
        return actual == field.value
    if field.op == "in":
        return actual in field.value
    if field.op == "gte":
        return actual >= field.value
    if field.op == "lt":
        return actual < field.value
    # icontains
    if not isinstance(actual, str) or not isinstance(field.value, str):
        return False
    return field.value.casefold() in actual.casefold()
