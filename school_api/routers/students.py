from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional

from .. import schemas, models
from ..deps import get_db, get_current_user
from ..exceptions import ConflictError, NotFoundError, ValidationError
from ..logger import get_logger

router = APIRouter(prefix="/students", tags=["students"])

logger = get_logger("students")


def _get_student_or_404(db: Session, student_id: int) -> models.Student:
    student = db.query(models.Student).filter(models.Student.id == student_id).first()
    if not student:
        raise NotFoundError("Student not found")
    return student


def _ensure_unique_email(db: Session, email: str, student_id: Optional[int] = None) -> None:
    query = db.query(models.Student).filter(models.Student.email == email)
    if student_id is not None:
        query = query.filter(models.Student.id != student_id)
    if query.first():
        raise ConflictError("Email already exists")


@router.get("/", response_model=List[schemas.StudentOut])
def list_students(db: Session = Depends(get_db)):
    students = db.query(models.Student).order_by(models.Student.id.desc()).all()
    logger.info("Retrieved %d students", len(students))
    return students


@router.get("/{student_id}", response_model=schemas.StudentOut)
def get_student(student_id: int, db: Session = Depends(get_db)):
    return _get_student_or_404(db, student_id)


@router.get("/{student_id}/activities", response_model=List[schemas.StudentActivityOut])
def get_student_activities(student_id: int, db: Session = Depends(get_db)):
    """Activities the student is enrolled in, latest enrollment first."""
    _get_student_or_404(db, student_id)
    rows = (
        db.query(models.Activity, models.ActivityEnrollment)
        .join(models.ActivityEnrollment, models.ActivityEnrollment.activity_id == models.Activity.id)
        .filter(models.ActivityEnrollment.student_id == student_id)
        .order_by(models.ActivityEnrollment.enrollment_date.desc())
        .all()
    )
    activities = []
    for activity, enrollment in rows:
        entry = schemas.ActivityOut.model_validate(activity).model_dump()
        entry.update(enrollment_date=enrollment.enrollment_date, enrollment_status=enrollment.status)
        activities.append(entry)
    logger.info("Retrieved %d activities for student %s", len(activities), student_id)
    return activities


@router.post("/", response_model=schemas.StudentOut, status_code=status.HTTP_201_CREATED)
def create_student(
    student_in: schemas.StudentCreate,
    db: Session = Depends(get_db),
    _: models.User = Depends(get_current_user),
):
    _ensure_unique_email(db, student_in.email)
    student = models.Student(**student_in.model_dump())
    db.add(student)
    db.commit()
    db.refresh(student)
    logger.info("Created student %s", student.id)
    return student


@router.put("/{student_id}", response_model=schemas.StudentOut)
@router.patch("/{student_id}", response_model=schemas.StudentOut, include_in_schema=False)
def update_student(
    student_id: int,
    student_update: schemas.StudentUpdate,
    db: Session = Depends(get_db),
    _: models.User = Depends(get_current_user),
):
    student = _get_student_or_404(db, student_id)
    data = models.settable_fields(models.Student, student_update.model_dump(exclude_unset=True))
    if not data:
        raise ValidationError("No fields to update")
    if data.get("email"):
        _ensure_unique_email(db, data["email"], student_id)
    for field, value in data.items():
        setattr(student, field, value)
    db.commit()
    db.refresh(student)
    logger.info("Updated student %s", student_id)
    return student


@router.delete("/{student_id}")
def delete_student(
    student_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(get_current_user),
):
    student = _get_student_or_404(db, student_id)
    db.delete(student)
    db.commit()
    logger.info("Deleted student %s", student_id)
    return {"message": "Student deleted successfully"}
