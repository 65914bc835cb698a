from __future__ import annotations

from pydantic import AliasChoices, BaseModel, Field, model_validator

DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def day_name(day: int) -> str:
    if 0 <= day < len(DAY_NAMES):
        return DAY_NAMES[day]
    return f"Day {day}"


class LessonSnapshot(BaseModel):
    """Normalized lesson fields.

    Accepts both the column names (``class_id``) and the camelCase names
    (``classId``) that realtime payloads and older clients send.
    """

    id: str = Field(min_length=1, max_length=36)
    timetable_id: str | None = Field(
        default=None, validation_alias=AliasChoices("timetable_id", "timetableId")
    )
    day: int = Field(ge=0, le=6)
    time_slot_id: str = Field(validation_alias=AliasChoices("time_slot_id", "timeSlotId"))
    class_id: str = Field(validation_alias=AliasChoices("class_id", "classId"))
    subject_id: str = Field(validation_alias=AliasChoices("subject_id", "subjectId"))
    teacher_id: str = Field(validation_alias=AliasChoices("teacher_id", "teacherId"))
    room_id: str | None = Field(
        default=None, validation_alias=AliasChoices("room_id", "roomId", "classroom_id", "classroomId")
    )
    batch_id: str | None = Field(default=None, validation_alias=AliasChoices("batch_id", "batchId"))
    is_continuation: bool = Field(
        default=False, validation_alias=AliasChoices("is_continuation", "isContinuation")
    )
    parent_lesson_id: str | None = Field(
        default=None, validation_alias=AliasChoices("parent_lesson_id", "parentLessonId")
    )

    model_config = {"from_attributes": True, "populate_by_name": True}

    @model_validator(mode="after")
    def validate_continuation_link(self) -> "LessonSnapshot":
        if self.is_continuation != (self.parent_lesson_id is not None):
            raise ValueError("parent_lesson_id must be set exactly when is_continuation is true")
        return self


class LessonOut(LessonSnapshot):
    badge: str = ""


class TimetableCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    timing_id: str | None = None


class TimetableSummary(BaseModel):
    id: str
    name: str
    timing_id: str | None = None

    model_config = {"from_attributes": True}


class TimetableOut(TimetableSummary):
    lessons: list[LessonOut] = Field(default_factory=list)


class PlacementRequest(BaseModel):
    day: int = Field(ge=0, le=6)
    time_slot_id: str = Field(min_length=1, max_length=36)
    class_id: str = Field(min_length=1, max_length=36)
    subject_id: str = Field(min_length=1, max_length=36)
    teacher_id: str = Field(min_length=1, max_length=36)
    room_id: str | None = Field(default=None, min_length=1, max_length=36)
    batch_id: str | None = Field(default=None, min_length=1, max_length=36)


class LessonUpdate(BaseModel):
    day: int | None = Field(default=None, ge=0, le=6)
    time_slot_id: str | None = Field(default=None, min_length=1, max_length=36)
    subject_id: str | None = Field(default=None, min_length=1, max_length=36)
    teacher_id: str | None = Field(default=None, min_length=1, max_length=36)
    room_id: str | None = Field(default=None, min_length=1, max_length=36)
    batch_id: str | None = Field(default=None, min_length=1, max_length=36)


class PlacementDecision(BaseModel):
    allowed: bool
    reason: str | None = None
    next_slot_id: str | None = None

    model_config = {"frozen": True}


class LessonGroupOut(BaseModel):
    lessons: list[LessonOut]


class DeleteLessonGroupResponse(BaseModel):
    deleted_ids: list[str]


class GenerateTimetableRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    timing_id: str = Field(min_length=1, max_length=36)
    random_seed: int | None = Field(default=None, ge=0, le=2_000_000_000)
    # Overrides every subject's periods_per_week when set.
    periods_per_subject: int | None = Field(default=None, ge=1, le=40)


class GenerateTimetableResponse(BaseModel):
    success: bool
    message: str
    periods_required: int
    periods_scheduled: int
    warnings: list[str] = Field(default_factory=list)
    timetable: TimetableOut
