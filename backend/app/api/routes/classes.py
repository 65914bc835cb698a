from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.models.room import Room
from app.models.school_class import Batch, ClassRoomAssignment, ClassSubjectAssignment, SchoolClass
from app.models.subject import Subject
from app.schemas.school_class import (
    BatchCreate,
    BatchOut,
    ClassRoomAssignmentOut,
    ClassRoomAssignmentSet,
    ClassSubjectAssignmentCreate,
    ClassSubjectAssignmentOut,
    SchoolClassCreate,
    SchoolClassOut,
)
from app.services.repository import store_errors

router = APIRouter()


def _get_class_or_404(db: Session, class_id: str) -> SchoolClass:
    school_class = db.get(SchoolClass, class_id)
    if school_class is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Class not found")
    return school_class


@router.get("/", response_model=list[SchoolClassOut])
def list_classes(db: Session = Depends(get_db)) -> list[SchoolClassOut]:
    return list(db.execute(select(SchoolClass).order_by(SchoolClass.name)).scalars())


@router.post("/", response_model=SchoolClassOut, status_code=status.HTTP_201_CREATED)
def create_class(payload: SchoolClassCreate, db: Session = Depends(get_db)) -> SchoolClassOut:
    existing = db.execute(select(SchoolClass).where(SchoolClass.name == payload.name)).scalar_one_or_none()
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Class name already exists")
    school_class = SchoolClass(**payload.model_dump())
    db.add(school_class)
    db.commit()
    db.refresh(school_class)
    return school_class


@router.delete("/{class_id}")
def delete_class(class_id: str, db: Session = Depends(get_db)) -> dict:
    school_class = _get_class_or_404(db, class_id)
    with store_errors(db, "deleting class"):
        db.delete(school_class)
        db.commit()
    return {"success": True}


@router.get("/{class_id}/batches", response_model=list[BatchOut])
def list_batches(class_id: str, db: Session = Depends(get_db)) -> list[BatchOut]:
    _get_class_or_404(db, class_id)
    return list(db.execute(select(Batch).where(Batch.class_id == class_id).order_by(Batch.name)).scalars())


@router.post("/{class_id}/batches", response_model=BatchOut, status_code=status.HTTP_201_CREATED)
def create_batch(class_id: str, payload: BatchCreate, db: Session = Depends(get_db)) -> BatchOut:
    _get_class_or_404(db, class_id)
    existing = db.execute(
        select(Batch).where(Batch.class_id == class_id, Batch.name == payload.name)
    ).scalar_one_or_none()
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Batch name already exists for this class")
    batch = Batch(class_id=class_id, **payload.model_dump())
    db.add(batch)
    db.commit()
    db.refresh(batch)
    return batch


@router.delete("/{class_id}/batches/{batch_id}")
def delete_batch(class_id: str, batch_id: str, db: Session = Depends(get_db)) -> dict:
    batch = db.get(Batch, batch_id)
    if batch is None or batch.class_id != class_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Batch not found")
    with store_errors(db, "deleting batch"):
        db.delete(batch)
        db.commit()
    return {"success": True}


@router.get("/{class_id}/subjects", response_model=list[ClassSubjectAssignmentOut])
def list_class_subjects(class_id: str, db: Session = Depends(get_db)) -> list[ClassSubjectAssignmentOut]:
    _get_class_or_404(db, class_id)
    query = (
        select(ClassSubjectAssignment)
        .where(ClassSubjectAssignment.class_id == class_id)
        .order_by(ClassSubjectAssignment.created_at, ClassSubjectAssignment.id)
    )
    return list(db.execute(query).scalars())


@router.post("/{class_id}/subjects", response_model=ClassSubjectAssignmentOut, status_code=status.HTTP_201_CREATED)
def assign_subject(
    class_id: str,
    payload: ClassSubjectAssignmentCreate,
    db: Session = Depends(get_db),
) -> ClassSubjectAssignmentOut:
    _get_class_or_404(db, class_id)
    if db.get(Subject, payload.subject_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subject not found")
    existing = db.execute(
        select(ClassSubjectAssignment).where(
            ClassSubjectAssignment.class_id == class_id,
            ClassSubjectAssignment.subject_id == payload.subject_id,
        )
    ).scalar_one_or_none()
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Subject already assigned to this class")
    assignment = ClassSubjectAssignment(class_id=class_id, subject_id=payload.subject_id)
    db.add(assignment)
    db.commit()
    db.refresh(assignment)
    return assignment


@router.delete("/{class_id}/subjects/{subject_id}")
def unassign_subject(class_id: str, subject_id: str, db: Session = Depends(get_db)) -> dict:
    assignment = db.execute(
        select(ClassSubjectAssignment).where(
            ClassSubjectAssignment.class_id == class_id,
            ClassSubjectAssignment.subject_id == subject_id,
        )
    ).scalar_one_or_none()
    if assignment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subject is not assigned to this class")
    db.delete(assignment)
    db.commit()
    return {"success": True}


@router.get("/{class_id}/room", response_model=ClassRoomAssignmentOut)
def get_home_room(class_id: str, db: Session = Depends(get_db)) -> ClassRoomAssignmentOut:
    _get_class_or_404(db, class_id)
    assignment = db.execute(
        select(ClassRoomAssignment).where(ClassRoomAssignment.class_id == class_id)
    ).scalar_one_or_none()
    if assignment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Class has no home room")
    return assignment


@router.put("/{class_id}/room", response_model=ClassRoomAssignmentOut)
def set_home_room(class_id: str, payload: ClassRoomAssignmentSet, db: Session = Depends(get_db)) -> ClassRoomAssignmentOut:
    _get_class_or_404(db, class_id)
    if db.get(Room, payload.room_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")
    assignment = db.execute(
        select(ClassRoomAssignment).where(ClassRoomAssignment.class_id == class_id)
    ).scalar_one_or_none()
    if assignment is None:
        assignment = ClassRoomAssignment(class_id=class_id, room_id=payload.room_id)
        db.add(assignment)
    else:
        assignment.room_id = payload.room_id
    with store_errors(db, "setting home room"):
        db.commit()
    db.refresh(assignment)
    return assignment


@router.delete("/{class_id}/room")
def clear_home_room(class_id: str, db: Session = Depends(get_db)) -> dict:
    assignment = db.execute(
        select(ClassRoomAssignment).where(ClassRoomAssignment.class_id == class_id)
    ).scalar_one_or_none()
    if assignment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Class has no home room")
    db.delete(assignment)
    db.commit()
    return {"success": True}
