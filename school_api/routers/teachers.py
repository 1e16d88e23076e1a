from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import datetime

from .. import schemas, models
from ..deps import get_db, get_repository, get_current_user
from ..exceptions import ConflictError, NotFoundError, ValidationError
from ..logger import get_logger
from ..repository import SchedulingRepository
from ..scheduling import as_stored, evaluate_teacher_availability, validate_window

router = APIRouter(prefix="/teachers", tags=["teachers"])

logger = get_logger("teachers")


def _get_teacher_or_404(db: Session, teacher_id: int) -> models.Teacher:
    teacher = db.query(models.Teacher).filter(models.Teacher.id == teacher_id).first()
    if not teacher:
        raise NotFoundError("Teacher not found")
    return teacher


def _ensure_unique_email(db: Session, email: str, teacher_id: Optional[int] = None) -> None:
    query = db.query(models.Teacher).filter(models.Teacher.email == email)
    if teacher_id is not None:
        query = query.filter(models.Teacher.id != teacher_id)
    if query.first():
        raise ConflictError("Email already exists")


@router.get("/", response_model=List[schemas.TeacherOut])
def list_teachers(db: Session = Depends(get_db)):
    teachers = db.query(models.Teacher).order_by(models.Teacher.id.desc()).all()
    logger.info("Retrieved %d teachers", len(teachers))
    return teachers


@router.get("/available", response_model=List[schemas.AvailableTeacherOut])
def list_available_teachers(
    start_time: Optional[datetime] = None,
    end_time: Optional[datetime] = None,
    repo: SchedulingRepository = Depends(get_repository),
):
    """
    List active teachers.

    With a time window, every active teacher is annotated with
    ``available`` and the bookings of their active activities that overlap
    the window.
    """
    if start_time is not None and end_time is not None:
        validate_window(as_stored(start_time), as_stored(end_time))

    teachers = (
        repo.db.query(models.Teacher)
        .filter(models.Teacher.status == "active")
        .order_by(models.Teacher.first_name, models.Teacher.last_name)
        .all()
    )
    results = []
    for teacher in teachers:
        result = evaluate_teacher_availability(repo, teacher, start_time, end_time)
        entry = schemas.TeacherOut.model_validate(teacher).model_dump()
        entry.update(available=result.available, bookings=result.conflicts)
        results.append(entry)

    logger.info(
        "Found %d available teachers out of %d",
        sum(1 for entry in results if entry["available"]),
        len(teachers),
    )
    return results


@router.get("/{teacher_id}", response_model=schemas.TeacherOut)
def get_teacher(teacher_id: int, db: Session = Depends(get_db)):
    return _get_teacher_or_404(db, teacher_id)


@router.get(
    "/{teacher_id}/availability",
    response_model=schemas.TeacherAvailabilityResponse,
    response_model_exclude_none=True,
)
def get_teacher_availability(
    teacher_id: int,
    start_time: Optional[datetime] = None,
    end_time: Optional[datetime] = None,
    repo: SchedulingRepository = Depends(get_repository),
):
    """
    Check whether a teacher is free in a time window.

    A teacher is busy when any booking attached to one of their active
    activities overlaps the window. Inactive teachers are never available.
    """
    teacher = repo.get_teacher_by_id(teacher_id)
    if not teacher:
        raise NotFoundError("Teacher not found")

    if teacher.status != "active":
        return {
            "teacher_id": teacher.id,
            "available": False,
            "reason": "Teacher is not active",
            "conflicts": [],
        }

    result = evaluate_teacher_availability(repo, teacher, start_time, end_time)
    if not result.window_checked:
        return {"teacher_id": teacher.id, "available": result.available, "status": teacher.status}

    logger.info(
        "Checked availability for teacher %s: %s",
        teacher_id, "available" if result.available else "busy",
    )
    return {
        "teacher_id": teacher.id,
        "available": result.available,
        "conflicts": [
            {
                "booking_id": booking.id,
                "activity_name": booking.activity.name if booking.activity else None,
                "start_time": booking.start_time,
                "end_time": booking.end_time,
                "room_id": booking.room_id,
            }
            for booking in result.conflicts
        ],
    }


@router.get("/{teacher_id}/schedule", response_model=schemas.TeacherScheduleResponse)
def get_teacher_schedule(teacher_id: int, db: Session = Depends(get_db)):
    _get_teacher_or_404(db, teacher_id)
    activities = (
        db.query(models.Activity)
        .filter(models.Activity.teacher_id == teacher_id)
        .order_by(models.Activity.start_date.asc())
        .all()
    )
    return {"teacher_id": teacher_id, "schedule": activities}


@router.get("/{teacher_id}/activities", response_model=List[schemas.ActivityOut])
def get_teacher_activities(teacher_id: int, db: Session = Depends(get_db)):
    _get_teacher_or_404(db, teacher_id)
    activities = (
        db.query(models.Activity)
        .filter(models.Activity.teacher_id == teacher_id)
        .order_by(models.Activity.id.desc())
        .all()
    )
    logger.info("Retrieved %d activities for teacher %s", len(activities), teacher_id)
    return activities


@router.post("/", response_model=schemas.TeacherOut, status_code=status.HTTP_201_CREATED)
def create_teacher(
    teacher_in: schemas.TeacherCreate,
    db: Session = Depends(get_db),
    _: models.User = Depends(get_current_user),
):
    _ensure_unique_email(db, teacher_in.email)
    teacher = models.Teacher(**teacher_in.model_dump())
    db.add(teacher)
    db.commit()
    db.refresh(teacher)
    logger.info("Created teacher %s", teacher.id)
    return teacher


@router.put("/{teacher_id}", response_model=schemas.TeacherOut)
@router.patch("/{teacher_id}", response_model=schemas.TeacherOut, include_in_schema=False)
def update_teacher(
    teacher_id: int,
    teacher_update: schemas.TeacherUpdate,
    db: Session = Depends(get_db),
    _: models.User = Depends(get_current_user),
):
    teacher = _get_teacher_or_404(db, teacher_id)
    data = models.settable_fields(models.Teacher, teacher_update.model_dump(exclude_unset=True))
    if not data:
        raise ValidationError("No fields to update")
    if data.get("email"):
        _ensure_unique_email(db, data["email"], teacher_id)
    for field, value in data.items():
        setattr(teacher, field, value)
    db.commit()
    db.refresh(teacher)
    logger.info("Updated teacher %s", teacher_id)
    return teacher


@router.delete("/{teacher_id}")
def delete_teacher(
    teacher_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(get_current_user),
):
    """Remove a teacher; their activities stay, unassigned."""
    teacher = _get_teacher_or_404(db, teacher_id)
    db.delete(teacher)
    db.commit()
    logger.info("Deleted teacher %s", teacher_id)
    return {"message": "Teacher deleted successfully"}
