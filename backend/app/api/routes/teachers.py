from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.models.subject import Subject
from app.models.teacher import Teacher, TeacherSubjectAssignment
from app.schemas.teacher import TeacherCreate, TeacherOut, TeacherSubjectAssignmentCreate, TeacherSubjectAssignmentOut
from app.services.repository import store_errors

router = APIRouter()


def _get_teacher_or_404(db: Session, teacher_id: str) -> Teacher:
    teacher = db.get(Teacher, teacher_id)
    if teacher is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Teacher not found")
    return teacher


@router.get("/", response_model=list[TeacherOut])
def list_teachers(db: Session = Depends(get_db)) -> list[TeacherOut]:
    return list(db.execute(select(Teacher).order_by(Teacher.name)).scalars())


@router.post("/", response_model=TeacherOut, status_code=status.HTTP_201_CREATED)
def create_teacher(payload: TeacherCreate, db: Session = Depends(get_db)) -> TeacherOut:
    if payload.email is not None:
        existing = db.execute(select(Teacher).where(Teacher.email == payload.email)).scalar_one_or_none()
        if existing:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Teacher email already exists")
    teacher = Teacher(**payload.model_dump())
    db.add(teacher)
    db.commit()
    db.refresh(teacher)
    return teacher


@router.delete("/{teacher_id}")
def delete_teacher(teacher_id: str, db: Session = Depends(get_db)) -> dict:
    teacher = _get_teacher_or_404(db, teacher_id)
    with store_errors(db, "deleting teacher"):
        db.delete(teacher)
        db.commit()
    return {"success": True}


@router.get("/{teacher_id}/subjects", response_model=list[TeacherSubjectAssignmentOut])
def list_teacher_subjects(teacher_id: str, db: Session = Depends(get_db)) -> list[TeacherSubjectAssignmentOut]:
    _get_teacher_or_404(db, teacher_id)
    query = (
        select(TeacherSubjectAssignment)
        .where(TeacherSubjectAssignment.teacher_id == teacher_id)
        .order_by(TeacherSubjectAssignment.created_at, TeacherSubjectAssignment.id)
    )
    return list(db.execute(query).scalars())


@router.post(
    "/{teacher_id}/subjects",
    response_model=TeacherSubjectAssignmentOut,
    status_code=status.HTTP_201_CREATED,
)
def qualify_teacher(
    teacher_id: str,
    payload: TeacherSubjectAssignmentCreate,
    db: Session = Depends(get_db),
) -> TeacherSubjectAssignmentOut:
    _get_teacher_or_404(db, teacher_id)
    if db.get(Subject, payload.subject_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Subject not found")
    existing = db.execute(
        select(TeacherSubjectAssignment).where(
            TeacherSubjectAssignment.teacher_id == teacher_id,
            TeacherSubjectAssignment.subject_id == payload.subject_id,
        )
    ).scalar_one_or_none()
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Teacher already teaches this subject")
    assignment = TeacherSubjectAssignment(teacher_id=teacher_id, subject_id=payload.subject_id)
    db.add(assignment)
    db.commit()
    db.refresh(assignment)
    return assignment


@router.delete("/{teacher_id}/subjects/{subject_id}")
def unqualify_teacher(teacher_id: str, subject_id: str, db: Session = Depends(get_db)) -> dict:
    assignment = db.execute(
        select(TeacherSubjectAssignment).where(
            TeacherSubjectAssignment.teacher_id == teacher_id,
            TeacherSubjectAssignment.subject_id == subject_id,
        )
    ).scalar_one_or_none()
    if assignment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Teacher does not teach this subject")
    db.delete(assignment)
    db.commit()
    return {"success": True}
