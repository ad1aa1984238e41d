"""
A small seeded school shared by repository, policy and API tests.

    classes   1A (id 1, supervised by t-1), 2B (id 2, supervised by t-2)
    lessons   1 Math in 1A by t-1, 2 Art in 2B by t-2
    students  s-1 (1A, parent p-1), s-2 (2B, parent p-2), s-3 (1A, parent p-2)
    announcements A1 -> 1A, A2 -> 2B, A3 -> no class, A4 -> 2B (oldest)
"""
from __future__ import annotations

from datetime import date, datetime, timezone

from schoolboard.school.schema import EntityKind as K


def utc(year: int, month: int, day: int, hour: int = 9) -> datetime:
    return datetime(year, month, day, hour, tzinfo=timezone.utc)


def _person(pid: str, name: str, surname: str, **extra) -> dict:
    return {
        "id": pid,
        "username": pid.replace("-", ""),
        "name": name,
        "surname": surname,
        "address": "Main Street 1",
        **extra,
    }


def seed_school(repo):
    teacher = {"blood_type": "A+", "birthday": date(1980, 1, 1)}
    repo.create(K.TEACHER, _person("t-1", "Tina", "Turner", sex="FEMALE", **teacher))
    repo.create(K.TEACHER, _person("t-2", "Theo", "Tanner", sex="MALE", **teacher))
    repo.create(K.PARENT, _person("p-1", "Paula", "Park"))
    repo.create(K.PARENT, _person("p-2", "Peter", "Pike"))
    repo.create(K.SUBJECT, {"name": "Math", "teacher_ids": ["t-1"]})
    repo.create(K.SUBJECT, {"name": "Art", "teacher_ids": ["t-2"]})
    repo.create(K.CLASS, {"name": "1A", "capacity": 20, "supervisor_id": "t-1"})
    repo.create(K.CLASS, {"name": "2B", "capacity": 20, "supervisor_id": "t-2"})
    pupil = {"blood_type": "0+", "birthday": date(2015, 5, 5)}
    repo.create(K.STUDENT, _person("s-1", "Sam", "Smith", sex="MALE", parent_id="p-1", class_id=1, **pupil))
    repo.create(K.STUDENT, _person("s-2", "Sara", "Stone", sex="FEMALE", parent_id="p-2", class_id=2, **pupil))
    repo.create(K.STUDENT, _person("s-3", "Sven", "Stone", sex="MALE", parent_id="p-2", class_id=1, **pupil))
    repo.create(
        K.LESSON,
        {"name": "Math 1A", "day": "MONDAY", "start_time": utc(2025, 3, 10, 8), "end_time": utc(2025, 3, 10, 9),
         "subject_id": 1, "class_id": 1, "teacher_id": "t-1"},
    )
    repo.create(
        K.LESSON,
        {"name": "Art 2B", "day": "TUESDAY", "start_time": utc(2025, 3, 11, 8), "end_time": utc(2025, 3, 11, 9),
         "subject_id": 2, "class_id": 2, "teacher_id": "t-2"},
    )
    repo.create(K.EXAM, {"title": "Algebra quiz", "start_time": utc(2025, 3, 12), "end_time": utc(2025, 3, 12, 10), "lesson_id": 1})
    repo.create(K.EXAM, {"title": "Colour test", "start_time": utc(2025, 3, 13), "end_time": utc(2025, 3, 13, 10), "lesson_id": 2})
    repo.create(K.ASSIGNMENT, {"title": "Fractions", "start_date": utc(2025, 3, 1), "due_date": utc(2025, 3, 8), "lesson_id": 1})
    repo.create(K.RESULT, {"score": 90, "exam_id": 1, "student_id": "s-1"})
    repo.create(K.RESULT, {"score": 70, "exam_id": 2, "student_id": "s-2"})
    repo.create(K.RESULT, {"score": 80, "assignment_id": 1, "student_id": "s-3"})
    repo.create(K.ATTENDANCE, {"date": utc(2025, 3, 10), "present": True, "student_id": "s-1", "lesson_id": 1})
    repo.create(K.ATTENDANCE, {"date": utc(2025, 3, 11), "present": False, "student_id": "s-2", "lesson_id": 2})
    repo.create(K.EVENT, {"title": "Sports day", "description": "Field games", "start_time": utc(2025, 3, 10, 9), "end_time": utc(2025, 3, 10, 12), "class_id": 1})
    repo.create(K.EVENT, {"title": "Assembly", "description": "Whole school", "start_time": utc(2025, 3, 10, 13), "end_time": utc(2025, 3, 10, 14), "class_id": None})
    repo.create(K.EVENT, {"title": "Museum trip", "description": "Art museum", "start_time": utc(2025, 3, 11, 9), "end_time": utc(2025, 3, 11, 15), "class_id": 2})
    repo.create(K.ANNOUNCEMENT, {"title": "A1", "description": "1A news", "date": utc(2025, 3, 1), "class_id": 1})
    repo.create(K.ANNOUNCEMENT, {"title": "A2", "description": "2B news", "date": utc(2025, 3, 2), "class_id": 2})
    repo.create(K.ANNOUNCEMENT, {"title": "A3", "description": "School news", "date": utc(2025, 3, 3), "class_id": None})
    repo.create(K.ANNOUNCEMENT, {"title": "A4", "description": "Old 2B news", "date": utc(2025, 2, 1), "class_id": 2})
    return repo
