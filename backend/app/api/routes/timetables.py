from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status

from app.api.deps import get_placement_service, get_repository
from app.models.room import Room
from app.models.school_class import SchoolClass
from app.models.teacher import Teacher
from app.models.time_slot import Timing
from app.models.timetable import Lesson, Timetable
from app.schemas.conflict import ConflictReport
from app.schemas.timetable import (
    DeleteLessonGroupResponse,
    GenerateTimetableRequest,
    GenerateTimetableResponse,
    LessonGroupOut,
    LessonOut,
    LessonUpdate,
    PlacementDecision,
    PlacementRequest,
    TimetableCreate,
    TimetableOut,
    TimetableSummary,
)
from app.services.change_feed import change_feed_hub
from app.services.conflict_service import ConflictService
from app.services.lesson_groups import lesson_badge
from app.services.placement import PlacementService
from app.services.repository import TimetableRepository, store_errors
from app.services.timetable_generator import GreedyTimetableGenerator, generate_timetable

router = APIRouter()


def _group_out(lessons: list[Lesson], repository: TimetableRepository) -> LessonGroupOut:
    subjects = repository.list_subjects()
    return LessonGroupOut(
        lessons=[
            LessonOut.model_validate(lesson).model_copy(update={"badge": lesson_badge(lesson, subjects)})
            for lesson in lessons
        ]
    )


@router.get("/", response_model=list[TimetableSummary])
def list_timetables(repository: TimetableRepository = Depends(get_repository)) -> list[TimetableSummary]:
    return repository.list_timetables()


@router.post("/", response_model=TimetableSummary, status_code=status.HTTP_201_CREATED)
def create_timetable(
    payload: TimetableCreate,
    repository: TimetableRepository = Depends(get_repository),
) -> TimetableSummary:
    if payload.timing_id is not None:
        repository.require(Timing, payload.timing_id, "Timing")
    timetable = Timetable(**payload.model_dump())
    db = repository.db
    with store_errors(db, "creating timetable"):
        db.add(timetable)
        db.commit()
    db.refresh(timetable)
    return timetable


@router.post("/generate", response_model=GenerateTimetableResponse, status_code=status.HTTP_201_CREATED)
def generate(
    payload: GenerateTimetableRequest,
    repository: TimetableRepository = Depends(get_repository),
) -> GenerateTimetableResponse:
    repository.require(Timing, payload.timing_id, "Timing")
    run = generate_timetable(
        repository,
        name=payload.name,
        timing_id=payload.timing_id,
        strategy=GreedyTimetableGenerator(
            seed=payload.random_seed,
            periods_per_subject=payload.periods_per_subject,
        ),
    )
    result = run.result
    return GenerateTimetableResponse(
        success=True,
        message=f"Generated {len(result.lessons)} lesson(s) with {run.strategy}",
        periods_required=result.periods_required,
        periods_scheduled=result.periods_scheduled,
        warnings=result.warnings,
        timetable=repository.fetch_timetable_view(run.timetable_id),
    )


@router.get("/{timetable_id}", response_model=TimetableOut)
def get_timetable(timetable_id: str, repository: TimetableRepository = Depends(get_repository)) -> TimetableOut:
    return repository.fetch_timetable_view(timetable_id)


@router.post("/{timetable_id}/placements/check", response_model=PlacementDecision)
def check_placement(
    timetable_id: str,
    payload: PlacementRequest,
    service: PlacementService = Depends(get_placement_service),
) -> PlacementDecision:
    return service.check(timetable_id, payload)


@router.post("/{timetable_id}/lessons", response_model=LessonGroupOut, status_code=status.HTTP_201_CREATED)
def place_lesson(
    timetable_id: str,
    payload: PlacementRequest,
    service: PlacementService = Depends(get_placement_service),
) -> LessonGroupOut:
    lessons = service.place(timetable_id, payload)
    return _group_out(lessons, service.repository)


@router.put("/{timetable_id}/lessons/{lesson_id}", response_model=LessonGroupOut)
def move_lesson(
    timetable_id: str,
    lesson_id: str,
    payload: LessonUpdate,
    service: PlacementService = Depends(get_placement_service),
) -> LessonGroupOut:
    lessons = service.move(timetable_id, lesson_id, payload)
    return _group_out(lessons, service.repository)


@router.delete("/{timetable_id}/lessons/{lesson_id}", response_model=DeleteLessonGroupResponse)
def delete_lesson(
    timetable_id: str,
    lesson_id: str,
    service: PlacementService = Depends(get_placement_service),
) -> DeleteLessonGroupResponse:
    return DeleteLessonGroupResponse(deleted_ids=service.delete(timetable_id, lesson_id))


@router.get("/{timetable_id}/conflicts", response_model=ConflictReport)
def detect_conflicts(
    timetable_id: str,
    repository: TimetableRepository = Depends(get_repository),
) -> ConflictReport:
    repository.fetch_timetable(timetable_id)
    db = repository.db
    room_map = {room.id: {"id": room.id, "name": room.name} for room in db.query(Room).all()}
    teacher_map = {teacher.id: {"id": teacher.id, "name": teacher.name} for teacher in db.query(Teacher).all()}
    class_map = {item.id: {"id": item.id, "name": item.name} for item in db.query(SchoolClass).all()}

    service = ConflictService(repository.list_lessons(timetable_id), room_map, teacher_map, class_map)
    return service.report_with_resolutions()


@router.websocket("/{timetable_id}/changes/ws")
async def timetable_changes_websocket(websocket: WebSocket, timetable_id: str) -> None:
    await change_feed_hub.connect(timetable_id, websocket)
    try:
        await websocket.send_json({"event": "connected", "timetable_id": timetable_id})
        while True:
            message = await websocket.receive_text()
            if message.strip().lower() == "ping":
                await websocket.send_json({"event": "pong"})
    except WebSocketDisconnect:
        pass
    finally:
        await change_feed_hub.disconnect(timetable_id, websocket)
