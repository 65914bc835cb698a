from enum import Enum

from pydantic import AliasChoices, BaseModel, Field, model_validator

from app.schemas.timetable import LessonSnapshot


class ChangeKind(str, Enum):
    insert = "lesson.insert"
    update = "lesson.update"
    delete = "lesson.delete"


class DeletedLesson(BaseModel):
    id: str


class ChangeEvent(BaseModel):
    """A lesson change pushed on the change feed.

    Insert and update events carry the full normalized lesson; delete events
    only need the lesson id.
    """

    event: ChangeKind
    timetable_id: str = Field(validation_alias=AliasChoices("timetable_id", "timetableId"))
    lesson: LessonSnapshot | None = None
    deleted: DeletedLesson | None = None

    model_config = {"populate_by_name": True}

    @model_validator(mode="after")
    def validate_payload(self) -> "ChangeEvent":
        if self.event == ChangeKind.delete:
            if self.deleted is None:
                if self.lesson is None:
                    raise ValueError("Delete events need the deleted lesson id")
                self.deleted = DeletedLesson(id=self.lesson.id)
        elif self.lesson is None:
            raise ValueError("Insert and update events need the lesson payload")
        return self

    @property
    def lesson_id(self) -> str:
        if self.lesson is not None:
            return self.lesson.id
        return self.deleted.id
