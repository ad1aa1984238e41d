"""
Form validation for create/update payloads.

Why:
    Mutations arrive as JSON bodies from dashboard forms. Validating them with
    pydantic models per entity kind keeps the routes thin and returns a
    field-level error list the client can show next to inputs.

Notes:
    - People (teacher, student, parent) are keyed by the identity-provider
      subject; create requires `id`, update takes it from the path.
    - Updates replace the whole record (PUT semantics), so they use the same
      models as create.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Annotated, Any, ClassVar, Dict, List, Literal, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.functional_validators import field_validator, model_validator

from schoolboard.access_policy.errors import ValidationFailed

from .schema import MAX_ID, EntityKind, schema_for

EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")

Sex = Literal["MALE", "FEMALE"]
Day = Literal["MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY"]
RowId = Annotated[int, Field(ge=1, le=MAX_ID)]


class _Form(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    @field_validator("*")
    @classmethod
    def _timestamps_in_utc(cls, value: Any) -> Any:
        # Stored timestamps are UTC; a value without offset is read as UTC.
        if isinstance(value, datetime):
            if value.tzinfo is None:
                return value.replace(tzinfo=timezone.utc)
            return value.astimezone(timezone.utc)
        return value


class _PersonForm(_Form):
    id: Optional[str] = Field(default=None, min_length=1, max_length=128)
    username: str = Field(min_length=3, max_length=20)
    name: str = Field(min_length=1, max_length=100)
    surname: str = Field(min_length=1, max_length=100)
    email: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=32)
    address: str = Field(min_length=1, max_length=255)

    @field_validator("email")
    @classmethod
    def _email_format(cls, value: Optional[str]) -> Optional[str]:
        if value is None or value == "":
            return None
        normalized = value.lower()
        if not EMAIL_PATTERN.match(normalized):
            raise ValueError("invalid email address")
        return normalized

    @field_validator("phone")
    @classmethod
    def _empty_phone(cls, value: Optional[str]) -> Optional[str]:
        return value or None


class TeacherForm(_PersonForm):
    blood_type: str = Field(min_length=1, max_length=3)
    sex: Sex
    birthday: date
    subject_ids: List[RowId] = Field(default_factory=list)


class StudentForm(_PersonForm):
    blood_type: str = Field(min_length=1, max_length=3)
    sex: Sex
    birthday: date
    parent_id: Optional[str] = None
    class_id: int = Field(ge=1, le=MAX_ID)


class ParentForm(_PersonForm):
    pass


class SubjectForm(_Form):
    name: str = Field(min_length=1, max_length=100)
    teacher_ids: List[str] = Field(default_factory=list)


class ClassForm(_Form):
    name: str = Field(min_length=1, max_length=50)
    capacity: int = Field(ge=1, le=500)
    supervisor_id: Optional[str] = None


class _TimeSpan(_Form):
    """Mixin check that a span ends after it starts."""

    span_fields: ClassVar[Tuple[str, str]] = ("start_time", "end_time")

    @model_validator(mode="after")
    def _ends_after_start(self):
        start_name, end_name = self.span_fields
        start, end = getattr(self, start_name), getattr(self, end_name)
        if start is not None and end is not None and end <= start:
            raise ValueError(f"{end_name} must be after {start_name}")
        return self


class LessonForm(_TimeSpan):
    name: str = Field(min_length=1, max_length=100)
    day: Day
    start_time: datetime
    end_time: datetime
    subject_id: int = Field(ge=1, le=MAX_ID)
    class_id: int = Field(ge=1, le=MAX_ID)
    teacher_id: str = Field(min_length=1)


class ExamForm(_TimeSpan):
    title: str = Field(min_length=1, max_length=200)
    start_time: datetime
    end_time: datetime
    lesson_id: int = Field(ge=1, le=MAX_ID)


class AssignmentForm(_TimeSpan):
    span_fields: ClassVar[Tuple[str, str]] = ("start_date", "due_date")

    title: str = Field(min_length=1, max_length=200)
    start_date: datetime
    due_date: datetime
    lesson_id: int = Field(ge=1, le=MAX_ID)


class ResultForm(_Form):
    score: int = Field(ge=0, le=100)
    exam_id: Optional[int] = Field(default=None, ge=1, le=MAX_ID)
    assignment_id: Optional[int] = Field(default=None, ge=1, le=MAX_ID)
    student_id: str = Field(min_length=1)

    @model_validator(mode="after")
    def _exactly_one_source(self):
        if (self.exam_id is None) == (self.assignment_id is None):
            raise ValueError("exactly one of exam_id or assignment_id is required")
        return self


class AttendanceForm(_Form):
    date: datetime
    present: bool
    student_id: str = Field(min_length=1)
    lesson_id: int = Field(ge=1, le=MAX_ID)


class EventForm(_TimeSpan):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=2000)
    start_time: datetime
    end_time: datetime
    class_id: Optional[int] = Field(default=None, ge=1, le=MAX_ID)


class AnnouncementForm(_Form):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=2000)
    date: datetime
    class_id: Optional[int] = Field(default=None, ge=1, le=MAX_ID)


FORMS: Dict[EntityKind, Type[_Form]] = {
    EntityKind.TEACHER: TeacherForm,
    EntityKind.STUDENT: StudentForm,
    EntityKind.PARENT: ParentForm,
    EntityKind.SUBJECT: SubjectForm,
    EntityKind.CLASS: ClassForm,
    EntityKind.LESSON: LessonForm,
    EntityKind.EXAM: ExamForm,
    EntityKind.ASSIGNMENT: AssignmentForm,
    EntityKind.RESULT: ResultForm,
    EntityKind.ATTENDANCE: AttendanceForm,
    EntityKind.EVENT: EventForm,
    EntityKind.ANNOUNCEMENT: AnnouncementForm,
}


def _details(exc: ValidationError) -> List[dict[str, Any]]:
    out = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "__root__")
        out.append({"field": loc or None, "message": err.get("msg", "invalid")})
    return out


def validate_form(kind: EntityKind, payload: object, *, for_update: bool = False) -> Dict[str, Any]:
    """Validate a JSON body for `kind` and return data ready for the repository.

    Raises
    ------
    ValidationFailed:
        With per-field `details` when the payload does not match the form.
    """
    if not isinstance(payload, dict):
        raise ValidationFailed("invalid_body", details=[{"field": None, "message": "expected a JSON object"}])
    try:
        form = FORMS[kind].model_validate(payload)
    except ValidationError as exc:
        raise ValidationFailed("invalid_body", details=_details(exc)) from None
    data = form.model_dump()
    if for_update or not schema_for(kind).text_id:
        data.pop("id", None)
    elif not data.get("id"):
        raise ValidationFailed("invalid_body", details=[{"field": "id", "message": "id is required"}])
    return data
