from pydantic import BaseModel
from typing import Literal, List

class ConflictDetail(BaseModel):
    id: str
    conflict_type: Literal[
        "room_conflict",
        "teacher_conflict",
        "class_conflict",
    ]
    description: str
    severity: Literal["hard", "soft"]
    day: int
    time_slot_id: str
    affected_lessons: List[str]  # Lesson (or lab schedule row) IDs involved

class ResolutionAction(BaseModel):
    action_type: Literal["move_slot", "change_room", "change_teacher"]
    description: str
    target_lesson_id: str
    parameters: dict  # e.g. {"room_id": "r1"}

class ConflictReport(BaseModel):
    conflicts: List[ConflictDetail]
    suggested_resolutions: List[ResolutionAction]
