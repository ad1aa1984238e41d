"""
Query-string filters for list endpoints.

Why:
    List pages accept a free-text `search` plus exact foreign-key filters
    (`classId`, `teacherId`, ...). Each kind declares what those keys mean.
    The result is a narrowing predicate that the engine ANDs onto visibility,
    so a filter can never widen what a principal sees.

Unknown keys are ignored. A malformed id raises `ValidationFailed`.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Mapping, Tuple

from schoolboard.school.schema import EntityKind, parse_id

from .errors import ValidationFailed
from .predicates import ALWAYS, Predicate, all_of, any_of, eq, icontains, related

K = EntityKind
MAX_SEARCH_LENGTH = 100
RESERVED_PARAMS = frozenset({"page"})


def _name_search(q: str) -> Predicate:
    return any_of(icontains("name", q), icontains("surname", q))


SEARCH: Dict[EntityKind, Callable[[str], Predicate]] = {
    K.TEACHER: _name_search,
    K.STUDENT: _name_search,
    K.PARENT: _name_search,
    K.SUBJECT: lambda q: icontains("name", q),
    K.CLASS: lambda q: icontains("name", q),
    K.LESSON: lambda q: any_of(
        related("subject", icontains("name", q)),
        related("teacher", icontains("name", q)),
    ),
    K.EXAM: lambda q: any_of(icontains("title", q), related("lesson.subject", icontains("name", q))),
    K.ASSIGNMENT: lambda q: any_of(icontains("title", q), related("lesson.subject", icontains("name", q))),
    K.RESULT: lambda q: any_of(
        related("exam", icontains("title", q)),
        related("assignment", icontains("title", q)),
        related("student", icontains("name", q)),
    ),
    K.ATTENDANCE: lambda q: related("student", _name_search(q)),
    K.EVENT: lambda q: icontains("title", q),
    K.ANNOUNCEMENT: lambda q: icontains("title", q),
}

IdFilter = Callable[[object], Predicate]

# key -> (kind the id belongs to, per-kind predicate builder)
EXACT: Dict[str, Tuple[EntityKind, Dict[EntityKind, IdFilter]]] = {
    "classId": (
        K.CLASS,
        {
            K.TEACHER: lambda v: related("lessons", eq("class_id", v)),
            K.STUDENT: lambda v: eq("class_id", v),
            K.LESSON: lambda v: eq("class_id", v),
            K.EXAM: lambda v: related("lesson", eq("class_id", v)),
            K.ASSIGNMENT: lambda v: related("lesson", eq("class_id", v)),
            K.ATTENDANCE: lambda v: related("lesson", eq("class_id", v)),
            K.EVENT: lambda v: eq("class_id", v),
            K.ANNOUNCEMENT: lambda v: eq("class_id", v),
        },
    ),
    "teacherId": (
        K.TEACHER,
        {
            K.STUDENT: lambda v: related("class.lessons", eq("teacher_id", v)),
            K.CLASS: lambda v: related("lessons", eq("teacher_id", v)),
            K.LESSON: lambda v: eq("teacher_id", v),
            K.EXAM: lambda v: related("lesson", eq("teacher_id", v)),
            K.ASSIGNMENT: lambda v: related("lesson", eq("teacher_id", v)),
        },
    ),
    "studentId": (
        K.STUDENT,
        {
            K.PARENT: lambda v: related("students", eq("id", v)),
            K.RESULT: lambda v: eq("student_id", v),
            K.ATTENDANCE: lambda v: eq("student_id", v),
        },
    ),
    "parentId": (K.PARENT, {K.STUDENT: lambda v: eq("parent_id", v)}),
    "lessonId": (
        K.LESSON,
        {
            K.EXAM: lambda v: eq("lesson_id", v),
            K.ASSIGNMENT: lambda v: eq("lesson_id", v),
            K.ATTENDANCE: lambda v: eq("lesson_id", v),
        },
    ),
    "supervisorId": (K.TEACHER, {K.CLASS: lambda v: eq("supervisor_id", v)}),
}


def build_query_filters(kind: EntityKind, params: Mapping[str, str]) -> Predicate:
    """Translate query parameters into one narrowing predicate for `kind`."""
    parts: List[Predicate] = []
    errors: List[dict] = []
    for key, raw in params.items():
        if key in RESERVED_PARAMS or raw is None:
            continue
        if key == "search":
            q = str(raw).strip()
            if not q:
                continue
            if len(q) > MAX_SEARCH_LENGTH:
                errors.append({"field": "search", "message": "search_too_long"})
                continue
            builder = SEARCH.get(kind)
            if builder is not None:
                parts.append(builder(q))
            continue
        rule = EXACT.get(key)
        if rule is None:
            continue
        id_kind, per_kind = rule
        builder = per_kind.get(kind)
        if builder is None:
            continue
        try:
            value = parse_id(id_kind, raw)
        except ValueError:
            errors.append({"field": key, "message": "invalid_id"})
            continue
        parts.append(builder(value))
    if errors:
        raise ValidationFailed("invalid_query", details=errors)
    return all_of(*parts) if parts else ALWAYS
