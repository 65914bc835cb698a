from pydantic import BaseModel, Field

from app.models.room import RoomType


class RoomBase(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    capacity: int = Field(ge=1, le=1000)
    type: RoomType


class RoomCreate(RoomBase):
    pass


class RoomUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    capacity: int | None = Field(default=None, ge=1, le=1000)
    type: RoomType | None = None


class RoomOut(RoomBase):
    id: str

    model_config = {"from_attributes": True}
