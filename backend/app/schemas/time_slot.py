import re

from pydantic import BaseModel, Field, field_validator, model_validator

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def parse_time_to_minutes(value: str) -> int:
    if not TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM 24-hour format")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


class TimingCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)


class TimingOut(TimingCreate):
    id: str

    model_config = {"from_attributes": True}


class TimeSlotBase(BaseModel):
    start_time: str
    end_time: str
    slot_order: int = Field(ge=0, le=100)
    is_break: bool = False
    timing_id: str | None = None

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time_format(cls, value: str) -> str:
        if not TIME_PATTERN.match(value):
            raise ValueError("Time must be in HH:MM 24-hour format")
        return value

    @model_validator(mode="after")
    def validate_order(self) -> "TimeSlotBase":
        if parse_time_to_minutes(self.end_time) <= parse_time_to_minutes(self.start_time):
            raise ValueError("end_time must be after start_time")
        return self


class TimeSlotCreate(TimeSlotBase):
    pass


class TimeSlotOut(TimeSlotBase):
    id: str

    model_config = {"from_attributes": True}
