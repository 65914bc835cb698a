from pydantic import BaseModel, Field


class SchoolClassCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    year: int = Field(default=1, ge=1, le=10)


class SchoolClassOut(SchoolClassCreate):
    id: str

    model_config = {"from_attributes": True}


class BatchCreate(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    strength: int = Field(default=0, ge=0, le=1000)


class BatchOut(BatchCreate):
    id: str
    class_id: str

    model_config = {"from_attributes": True}


class ClassSubjectAssignmentCreate(BaseModel):
    subject_id: str = Field(min_length=1, max_length=36)


class ClassSubjectAssignmentOut(BaseModel):
    id: str
    class_id: str
    subject_id: str

    model_config = {"from_attributes": True}


class ClassRoomAssignmentSet(BaseModel):
    room_id: str = Field(min_length=1, max_length=36)


class ClassRoomAssignmentOut(BaseModel):
    id: str
    class_id: str
    room_id: str

    model_config = {"from_attributes": True}
