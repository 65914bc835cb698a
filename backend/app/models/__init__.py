from app.models.lab_schedule import LabSchedule  # noqa: F401
from app.models.room import Room, RoomType  # noqa: F401
from app.models.school_class import Batch, ClassRoomAssignment, ClassSubjectAssignment, SchoolClass  # noqa: F401
from app.models.subject import Subject  # noqa: F401
from app.models.teacher import Teacher, TeacherSubjectAssignment  # noqa: F401
from app.models.time_slot import TimeSlot, Timing  # noqa: F401
from app.models.timetable import Lesson, Timetable  # noqa: F401
