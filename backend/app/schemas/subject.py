from pydantic import BaseModel, Field


class SubjectBase(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    code: str = Field(min_length=1, max_length=50)
    is_lab: bool = False
    lab_duration_slots: int = Field(default=1, ge=1, le=2)
    periods_per_week: int = Field(default=1, ge=1, le=40)


class SubjectCreate(SubjectBase):
    pass


class SubjectOut(SubjectBase):
    id: str

    model_config = {"from_attributes": True}
