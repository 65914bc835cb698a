from collections.abc import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.db.session import SessionLocal
from app.services.change_feed import publish_lesson_change
from app.services.placement import PlacementService
from app.services.repository import TimetableRepository


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_repository(db: Session = Depends(get_db)) -> TimetableRepository:
    return TimetableRepository(db, insert_chunk_size=get_settings().lab_schedule_insert_chunk_size)


def get_placement_service(repository: TimetableRepository = Depends(get_repository)) -> PlacementService:
    return PlacementService(repository, publish=publish_lesson_change)
