"""
Ownership descriptors: how each entity kind reaches its owning class.

Why:
    Every non-admin visibility rule has the same shape: "the row has no owning
    class" OR "the owning class is related to the principal". Only the path to
    the class differs per entity kind, and only the class relation differs per
    role. Both are declared here once; `engine.build_visibility_predicate`
    combines them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, Mapping, Optional

from schoolboard.identity_access.domain import Role
from schoolboard.school.schema import EntityKind

from .predicates import Predicate, any_of, eq, related

RoleRelation = Callable[[str], Predicate]


# Predicates evaluated against a class row.
CLASS_RELATIONS: Dict[Role, RoleRelation] = {
    Role.TEACHER: lambda pid: related("lessons", eq("teacher_id", pid)),
    Role.STUDENT: lambda pid: related("students", eq("id", pid)),
    Role.PARENT: lambda pid: related("students", eq("parent_id", pid)),
}


@dataclass(frozen=True)
class OwnershipDescriptor:
    """Path from an entity row to its owning class.

    class_path:
        Dotted relation path, e.g. "lesson.class". Empty when the row is the
        class itself.
    unowned_column:
        Nullable foreign key whose NULL means "no owning class"; such rows are
        visible to every authenticated role.
    role_relations:
        Per-role replacement of the class-based rule for kinds whose rows
        belong to a person rather than to a class.
    """

    class_path: str
    unowned_column: Optional[str] = None
    role_relations: Mapping[Role, RoleRelation] = field(default_factory=dict)


def _teaches_result(pid: str) -> Predicate:
    return any_of(
        related("exam.lesson", eq("teacher_id", pid)),
        related("assignment.lesson", eq("teacher_id", pid)),
    )


OWNERSHIP: Dict[EntityKind, OwnershipDescriptor] = {
    EntityKind.CLASS: OwnershipDescriptor(class_path=""),
    EntityKind.ANNOUNCEMENT: OwnershipDescriptor(class_path="class", unowned_column="class_id"),
    EntityKind.EVENT: OwnershipDescriptor(class_path="class", unowned_column="class_id"),
    EntityKind.LESSON: OwnershipDescriptor(class_path="class"),
    EntityKind.EXAM: OwnershipDescriptor(class_path="lesson.class"),
    EntityKind.ASSIGNMENT: OwnershipDescriptor(class_path="lesson.class"),
    EntityKind.ATTENDANCE: OwnershipDescriptor(class_path="lesson.class"),
    EntityKind.STUDENT: OwnershipDescriptor(class_path="class"),
    EntityKind.TEACHER: OwnershipDescriptor(class_path="lessons.class"),
    EntityKind.PARENT: OwnershipDescriptor(class_path="students.class"),
    EntityKind.SUBJECT: OwnershipDescriptor(class_path="lessons.class"),
    EntityKind.RESULT: OwnershipDescriptor(
        class_path="student.class",
        role_relations={
            Role.TEACHER: _teaches_result,
            Role.STUDENT: lambda pid: eq("student_id", pid),
            Role.PARENT: lambda pid: related("student", eq("parent_id", pid)),
        },
    ),
}
