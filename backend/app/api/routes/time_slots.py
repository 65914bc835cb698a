from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.models.time_slot import TimeSlot, Timing
from app.schemas.time_slot import TimeSlotCreate, TimeSlotOut, TimingCreate, TimingOut
from app.services.repository import store_errors

router = APIRouter()


@router.get("/timings", response_model=list[TimingOut])
def list_timings(db: Session = Depends(get_db)) -> list[TimingOut]:
    return list(db.execute(select(Timing).order_by(Timing.name)).scalars())


@router.post("/timings", response_model=TimingOut, status_code=status.HTTP_201_CREATED)
def create_timing(payload: TimingCreate, db: Session = Depends(get_db)) -> TimingOut:
    existing = db.execute(select(Timing).where(Timing.name == payload.name)).scalar_one_or_none()
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Timing name already exists")
    timing = Timing(**payload.model_dump())
    db.add(timing)
    db.commit()
    db.refresh(timing)
    return timing


@router.get("/time-slots", response_model=list[TimeSlotOut])
def list_time_slots(
    timing_id: str | None = Query(default=None, max_length=36),
    db: Session = Depends(get_db),
) -> list[TimeSlotOut]:
    query = select(TimeSlot).order_by(TimeSlot.slot_order, TimeSlot.start_time)
    if timing_id is not None:
        query = query.where(TimeSlot.timing_id == timing_id)
    return list(db.execute(query).scalars())


@router.post("/time-slots", response_model=TimeSlotOut, status_code=status.HTTP_201_CREATED)
def create_time_slot(payload: TimeSlotCreate, db: Session = Depends(get_db)) -> TimeSlotOut:
    if payload.timing_id is not None and db.get(Timing, payload.timing_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Timing not found")
    slot = TimeSlot(**payload.model_dump())
    db.add(slot)
    db.commit()
    db.refresh(slot)
    return slot


@router.delete("/time-slots/{slot_id}")
def delete_time_slot(slot_id: str, db: Session = Depends(get_db)) -> dict:
    slot = db.get(TimeSlot, slot_id)
    if slot is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Time slot not found")
    with store_errors(db, "deleting time slot"):
        db.delete(slot)
        db.commit()
    return {"success": True}
