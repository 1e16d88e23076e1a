from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List

from .. import schemas, models
from ..deps import get_db, get_current_user
from ..exceptions import ConflictError, NotFoundError, ValidationError
from ..logger import get_logger

router = APIRouter(prefix="/activities", tags=["activities"])

logger = get_logger("activities")


def _get_activity_or_404(db: Session, activity_id: int) -> models.Activity:
    activity = db.query(models.Activity).filter(models.Activity.id == activity_id).first()
    if not activity:
        raise NotFoundError("Activity not found")
    return activity


@router.get("/", response_model=List[schemas.ActivityOut])
def list_activities(db: Session = Depends(get_db)):
    activities = db.query(models.Activity).order_by(models.Activity.id.desc()).all()
    logger.info("Retrieved %d activities", len(activities))
    return activities


@router.get("/{activity_id}", response_model=schemas.ActivityOut)
def get_activity(activity_id: int, db: Session = Depends(get_db)):
    return _get_activity_or_404(db, activity_id)


@router.post("/", response_model=schemas.ActivityOut, status_code=status.HTTP_201_CREATED)
def create_activity(
    activity_in: schemas.ActivityCreate,
    db: Session = Depends(get_db),
    _: models.User = Depends(get_current_user),
):
    activity = models.Activity(**activity_in.model_dump())
    db.add(activity)
    db.commit()
    db.refresh(activity)
    logger.info("Created activity %s (%s)", activity.id, activity.name)
    return activity


@router.put("/{activity_id}", response_model=schemas.ActivityOut)
@router.patch("/{activity_id}", response_model=schemas.ActivityOut, include_in_schema=False)
def update_activity(
    activity_id: int,
    activity_update: schemas.ActivityUpdate,
    db: Session = Depends(get_db),
    _: models.User = Depends(get_current_user),
):
    """
    Update an activity.

    Reassigning ``teacher_id`` or deactivating the activity changes which
    bookings count against the teacher's availability from the next check on.
    """
    activity = _get_activity_or_404(db, activity_id)
    data = models.settable_fields(models.Activity, activity_update.model_dump(exclude_unset=True))
    if not data:
        raise ValidationError("No fields to update")
    for field, value in data.items():
        setattr(activity, field, value)
    db.commit()
    db.refresh(activity)
    logger.info("Updated activity %s", activity_id)
    return activity


@router.delete("/{activity_id}")
def delete_activity(
    activity_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(get_current_user),
):
    activity = _get_activity_or_404(db, activity_id)
    db.delete(activity)
    db.commit()
    logger.info("Deleted activity %s", activity_id)
    return {"message": "Activity deleted successfully"}


@router.post(
    "/{activity_id}/enroll",
    response_model=schemas.EnrollmentOut,
    status_code=status.HTTP_201_CREATED,
)
def enroll_student(
    activity_id: int,
    enroll_in: schemas.EnrollRequest,
    db: Session = Depends(get_db),
    _: models.User = Depends(get_current_user),
):
    """
    Enroll a student in an activity.

    Raises
    ------
    NotFoundError
        - 404 if the activity or the student does not exist.
    ValidationError
        - 400 if the activity is at full capacity.
    ConflictError
        - 409 if the student is already enrolled.
    """
    activity = _get_activity_or_404(db, activity_id)
    student = db.query(models.Student).filter(models.Student.id == enroll_in.student_id).first()
    if not student:
        raise NotFoundError("Student not found")

    existing = (
        db.query(models.ActivityEnrollment)
        .filter(
            models.ActivityEnrollment.activity_id == activity_id,
            models.ActivityEnrollment.student_id == enroll_in.student_id,
        )
        .first()
    )
    if existing:
        raise ConflictError("Student is already enrolled in this activity")

    enrolled = (
        db.query(models.ActivityEnrollment)
        .filter(
            models.ActivityEnrollment.activity_id == activity_id,
            models.ActivityEnrollment.status == "enrolled",
        )
        .count()
    )
    if enrolled >= activity.capacity:
        raise ValidationError("Activity is at full capacity")

    enrollment = models.ActivityEnrollment(student_id=enroll_in.student_id, activity_id=activity_id)
    db.add(enrollment)
    db.commit()
    db.refresh(enrollment)
    logger.info("Enrolled student %s in activity %s", enroll_in.student_id, activity_id)
    return {"message": "Student enrolled successfully", "enrollment_id": enrollment.id}


@router.delete("/{activity_id}/enroll/{student_id}")
def unenroll_student(
    activity_id: int,
    student_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(get_current_user),
):
    enrollment = (
        db.query(models.ActivityEnrollment)
        .filter(
            models.ActivityEnrollment.activity_id == activity_id,
            models.ActivityEnrollment.student_id == student_id,
        )
        .first()
    )
    if not enrollment:
        raise NotFoundError("Enrollment not found")
    db.delete(enrollment)
    db.commit()
    logger.info("Unenrolled student %s from activity %s", student_id, activity_id)
    return {"message": "Student unenrolled successfully"}


@router.get("/{activity_id}/participants", response_model=List[schemas.ParticipantOut])
def get_participants(activity_id: int, db: Session = Depends(get_db)):
    _get_activity_or_404(db, activity_id)
    rows = (
        db.query(models.Student, models.ActivityEnrollment)
        .join(models.ActivityEnrollment, models.ActivityEnrollment.student_id == models.Student.id)
        .filter(models.ActivityEnrollment.activity_id == activity_id)
        .order_by(models.ActivityEnrollment.enrollment_date.desc())
        .all()
    )
    participants = []
    for student, enrollment in rows:
        entry = schemas.StudentOut.model_validate(student).model_dump()
        entry.update(enrollment_date=enrollment.enrollment_date, enrollment_status=enrollment.status)
        participants.append(entry)
    logger.info("Retrieved %d participants for activity %s", len(participants), activity_id)
    return participants
