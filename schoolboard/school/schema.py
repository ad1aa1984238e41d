"""
Static relational schema of the school dashboard.

Why:
    Predicates reference columns and relations by name. Both the in-memory
    evaluator and the SQL translator resolve those names here, so a predicate
    means the same thing regardless of the backing store. Identifiers used in
    generated SQL come only from this module, never from request input.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple


class EntityKind(str, Enum):
    TEACHER = "teacher"
    STUDENT = "student"
    PARENT = "parent"
    SUBJECT = "subject"
    CLASS = "class"
    LESSON = "lesson"
    EXAM = "exam"
    ASSIGNMENT = "assignment"
    RESULT = "result"
    ATTENDANCE = "attendance"
    EVENT = "event"
    ANNOUNCEMENT = "announcement"


@dataclass(frozen=True)
class JoinTable:
    table: str
    local_key: str  # column referencing this entity's id
    remote_key: str  # column referencing the target entity's id


@dataclass(frozen=True)
class Relation:
    """Edge from one entity kind to another.

    Direct relations match `target.remote_column == row.local_column`.
    Relations with `through` go via a join table on both ids.
    """

    name: str
    target: EntityKind
    local_column: str
    remote_column: str
    many: bool
    through: Optional[JoinTable] = None


@dataclass(frozen=True)
class EntitySchema:
    kind: EntityKind
    table: str
    columns: Tuple[str, ...]
    text_id: bool
    relations: Dict[str, Relation]
    default_order: str = "id"

    def relation(self, name: str) -> Relation:
        try:
            return self.relations[name]
        except KeyError:
            raise ValueError(f"unknown_relation:{self.kind.value}.{name}") from None

    def has_column(self, name: str) -> bool:
        return name in self.columns


_PERSON_COLUMNS = ("id", "username", "name", "surname", "email", "phone", "address")
_TEACHER_SUBJECTS = JoinTable(table="teacher_subjects", local_key="teacher_id", remote_key="subject_id")
_SUBJECT_TEACHERS = JoinTable(table="teacher_subjects", local_key="subject_id", remote_key="teacher_id")

K = EntityKind


def _one(name: str, target: EntityKind, fk: str) -> Relation:
    return Relation(name=name, target=target, local_column=fk, remote_column="id", many=False)


def _many(name: str, target: EntityKind, fk: str) -> Relation:
    return Relation(name=name, target=target, local_column="id", remote_column=fk, many=True)


SCHEMA: Dict[EntityKind, EntitySchema] = {
    K.TEACHER: EntitySchema(
        kind=K.TEACHER,
        table="teachers",
        columns=_PERSON_COLUMNS + ("blood_type", "sex", "birthday"),
        text_id=True,
        relations={
            "lessons": _many("lessons", K.LESSON, "teacher_id"),
            "classes": _many("classes", K.CLASS, "supervisor_id"),
            "subjects": Relation("subjects", K.SUBJECT, "id", "id", True, _TEACHER_SUBJECTS),
        },
        default_order="surname",
    ),
    K.STUDENT: EntitySchema(
        kind=K.STUDENT,
        table="students",
        columns=_PERSON_COLUMNS + ("blood_type", "sex", "birthday", "parent_id", "class_id"),
        text_id=True,
        relations={
            "parent": _one("parent", K.PARENT, "parent_id"),
            "class": _one("class", K.CLASS, "class_id"),
            "results": _many("results", K.RESULT, "student_id"),
            "attendances": _many("attendances", K.ATTENDANCE, "student_id"),
        },
        default_order="surname",
    ),
    K.PARENT: EntitySchema(
        kind=K.PARENT,
        table="parents",
        columns=_PERSON_COLUMNS,
        text_id=True,
        relations={"students": _many("students", K.STUDENT, "parent_id")},
        default_order="surname",
    ),
    K.SUBJECT: EntitySchema(
        kind=K.SUBJECT,
        table="subjects",
        columns=("id", "name"),
        text_id=False,
        relations={
            "lessons": _many("lessons", K.LESSON, "subject_id"),
            "teachers": Relation("teachers", K.TEACHER, "id", "id", True, _SUBJECT_TEACHERS),
        },
        default_order="name",
    ),
    K.CLASS: EntitySchema(
        kind=K.CLASS,
        table="classes",
        columns=("id", "name", "capacity", "supervisor_id"),
        text_id=False,
        relations={
            "supervisor": _one("supervisor", K.TEACHER, "supervisor_id"),
            "lessons": _many("lessons", K.LESSON, "class_id"),
            "students": _many("students", K.STUDENT, "class_id"),
            "events": _many("events", K.EVENT, "class_id"),
            "announcements": _many("announcements", K.ANNOUNCEMENT, "class_id"),
        },
        default_order="name",
    ),
    K.LESSON: EntitySchema(
        kind=K.LESSON,
        table="lessons",
        columns=("id", "name", "day", "start_time", "end_time", "subject_id", "class_id", "teacher_id"),
        text_id=False,
        relations={
            "subject": _one("subject", K.SUBJECT, "subject_id"),
            "class": _one("class", K.CLASS, "class_id"),
            "teacher": _one("teacher", K.TEACHER, "teacher_id"),
            "exams": _many("exams", K.EXAM, "lesson_id"),
            "assignments": _many("assignments", K.ASSIGNMENT, "lesson_id"),
            "attendances": _many("attendances", K.ATTENDANCE, "lesson_id"),
        },
    ),
    K.EXAM: EntitySchema(
        kind=K.EXAM,
        table="exams",
        columns=("id", "title", "start_time", "end_time", "lesson_id"),
        text_id=False,
        relations={
            "lesson": _one("lesson", K.LESSON, "lesson_id"),
            "results": _many("results", K.RESULT, "exam_id"),
        },
        default_order="start_time",
    ),
    K.ASSIGNMENT: EntitySchema(
        kind=K.ASSIGNMENT,
        table="assignments",
        columns=("id", "title", "start_date", "due_date", "lesson_id"),
        text_id=False,
        relations={
            "lesson": _one("lesson", K.LESSON, "lesson_id"),
            "results": _many("results", K.RESULT, "assignment_id"),
        },
        default_order="due_date",
    ),
    K.RESULT: EntitySchema(
        kind=K.RESULT,
        table="results",
        columns=("id", "score", "exam_id", "assignment_id", "student_id"),
        text_id=False,
        relations={
            "exam": _one("exam", K.EXAM, "exam_id"),
            "assignment": _one("assignment", K.ASSIGNMENT, "assignment_id"),
            "student": _one("student", K.STUDENT, "student_id"),
        },
    ),
    K.ATTENDANCE: EntitySchema(
        kind=K.ATTENDANCE,
        table="attendances",
        columns=("id", "date", "present", "student_id", "lesson_id"),
        text_id=False,
        relations={
            "student": _one("student", K.STUDENT, "student_id"),
            "lesson": _one("lesson", K.LESSON, "lesson_id"),
        },
        default_order="date",
    ),
    K.EVENT: EntitySchema(
        kind=K.EVENT,
        table="events",
        columns=("id", "title", "description", "start_time", "end_time", "class_id"),
        text_id=False,
        relations={"class": _one("class", K.CLASS, "class_id")},
        default_order="start_time",
    ),
    K.ANNOUNCEMENT: EntitySchema(
        kind=K.ANNOUNCEMENT,
        table="announcements",
        columns=("id", "title", "description", "date", "class_id"),
        text_id=False,
        relations={"class": _one("class", K.CLASS, "class_id")},
        default_order="date",
    ),
}


# Serial ids are PostgreSQL `integer`.
MAX_ID = 2**31 - 1


def schema_for(kind: EntityKind) -> EntitySchema:
    return SCHEMA[kind]


def parse_kind(value: str) -> EntityKind | None:
    try:
        return EntityKind(value)
    except ValueError:
        return None


def parse_id(kind: EntityKind, raw: object) -> str | int:
    """Coerce a path/query id to the kind's id type.

    Raises ValueError("invalid_id") for empty, non-numeric or out-of-range integer ids.
    """
    if raw is None:
        raise ValueError("invalid_id")
    text = str(raw).strip()
    if not text:
        raise ValueError("invalid_id")
    if SCHEMA[kind].text_id:
        return text
    try:
        value = int(text)
    except ValueError as exc:
        raise ValueError("invalid_id") from exc
    if not 1 <= value <= MAX_ID:
        raise ValueError("invalid_id")
    return value
