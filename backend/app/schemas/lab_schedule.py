from pydantic import BaseModel, Field


class LabScheduleRow(BaseModel):
    subject_id: str
    class_id: str
    batch_id: str
    day: int = Field(ge=0, le=6)
    time_slot_id: str
    teacher_id: str
    room_id: str

    model_config = {"from_attributes": True, "frozen": True}


class LabScheduleOut(LabScheduleRow):
    id: str
    sequence: int


class RegenerateLabScheduleRequest(BaseModel):
    timing_id: str | None = Field(default=None, max_length=36)


class RegenerateLabScheduleResponse(BaseModel):
    success: bool
    message: str
    count: int
    warnings: list[str] = Field(default_factory=list)
    collisions: int = 0
    schedules: list[LabScheduleRow] = Field(default_factory=list)
