from fastapi import APIRouter, Depends, Query

from app.api.deps import get_repository
from app.schemas.lab_schedule import LabScheduleOut, RegenerateLabScheduleRequest, RegenerateLabScheduleResponse
from app.services.lab_scheduler import regenerate_lab_schedule
from app.services.repository import TimetableRepository

router = APIRouter()


@router.get("/", response_model=list[LabScheduleOut])
def list_lab_schedules(
    class_id: str | None = Query(default=None, max_length=36),
    batch_id: str | None = Query(default=None, max_length=36),
    repository: TimetableRepository = Depends(get_repository),
) -> list[LabScheduleOut]:
    return repository.list_lab_schedules(class_id=class_id, batch_id=batch_id)


@router.post("/regenerate", response_model=RegenerateLabScheduleResponse)
def regenerate(
    payload: RegenerateLabScheduleRequest | None = None,
    repository: TimetableRepository = Depends(get_repository),
) -> RegenerateLabScheduleResponse:
    run = regenerate_lab_schedule(repository, timing_id=payload.timing_id if payload else None)
    count = len(run.schedules)
    return RegenerateLabScheduleResponse(
        success=True,
        message=f"Assigned {count} lab session(s) with {run.strategy}",
        count=count,
        warnings=run.warnings,
        collisions=len(run.collisions.conflicts),
        schedules=run.schedules,
    )
