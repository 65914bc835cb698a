from pydantic import BaseModel, EmailStr, Field


class TeacherCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: EmailStr | None = None


class TeacherOut(TeacherCreate):
    id: str

    model_config = {"from_attributes": True}


class TeacherSubjectAssignmentCreate(BaseModel):
    subject_id: str = Field(min_length=1, max_length=36)


class TeacherSubjectAssignmentOut(BaseModel):
    id: str
    teacher_id: str
    subject_id: str

    model_config = {"from_attributes": True}
