from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import datetime

from pybreaker import CircuitBreaker

from .. import schemas, models
from ..deps import get_db, get_repository, get_current_user, get_booking_breaker
from ..exceptions import NotFoundError
from ..logger import get_logger
from ..repository import RoomScope, SchedulingRepository
from ..scheduling import BookingPatch, as_stored, create_booking, find_overlaps, update_booking, validate_window

router = APIRouter(prefix="/bookings", tags=["bookings"])

logger = get_logger("bookings")


@router.get("/", response_model=List[schemas.BookingOut])
def list_bookings(db: Session = Depends(get_db)):
    """List all bookings, most recent start first."""
    bookings = db.query(models.Booking).order_by(models.Booking.start_time.desc()).all()
    logger.info("Retrieved %d bookings", len(bookings))
    return bookings


@router.get("/conflicts", response_model=schemas.ConflictProbeResponse)
def check_conflicts(
    room_id: int,
    start_time: datetime,
    end_time: datetime,
    exclude_id: Optional[int] = None,
    repo: SchedulingRepository = Depends(get_repository),
):
    """
    Probe a room for bookings overlapping a time window.

    This does not create a booking. ``exclude_id`` leaves one booking out of
    the check, which is what an edit form needs when re-checking itself.
    """
    validate_window(as_stored(start_time), as_stored(end_time))
    conflicts = find_overlaps(repo, RoomScope(room_id), start_time, end_time, exclude_booking_id=exclude_id)
    logger.info("Found %d conflicts for room %s", len(conflicts), room_id)
    return {
        "has_conflicts": len(conflicts) > 0,
        "count": len(conflicts),
        "conflicts": conflicts,
    }


@router.get("/room/{room_id}", response_model=List[schemas.BookingOut])
def list_room_bookings(room_id: int, db: Session = Depends(get_db)):
    room = db.query(models.Room).filter(models.Room.id == room_id).first()
    if not room:
        raise NotFoundError("Room not found")
    bookings = (
        db.query(models.Booking)
        .filter(models.Booking.room_id == room_id)
        .order_by(models.Booking.start_time.desc())
        .all()
    )
    logger.info("Retrieved %d bookings for room %s", len(bookings), room_id)
    return bookings


@router.get("/{booking_id}", response_model=schemas.BookingOut)
def get_booking(booking_id: int, repo: SchedulingRepository = Depends(get_repository)):
    booking = repo.get_booking_by_id(booking_id)
    if not booking:
        raise NotFoundError("Booking not found")
    return booking


@router.post("/", response_model=schemas.BookingOut, status_code=status.HTTP_201_CREATED)
def create_booking_endpoint(
    booking_in: schemas.BookingCreate,
    repo: SchedulingRepository = Depends(get_repository),
    breaker: CircuitBreaker = Depends(get_booking_breaker),
    current_user: models.User = Depends(get_current_user),
):
    """
    Create a booking for a room.

    Rejected with 409 (and the colliding bookings) when the room already
    has a non-cancelled booking overlapping the window. Back-to-back
    bookings are allowed. ``created_by`` defaults to the caller.
    """
    return create_booking(repo, booking_in, created_by=current_user.id, breaker=breaker)


@router.put("/{booking_id}", response_model=schemas.BookingOut)
@router.patch("/{booking_id}", response_model=schemas.BookingOut, include_in_schema=False)
def update_booking_endpoint(
    booking_id: int,
    booking_update: schemas.BookingUpdate,
    repo: SchedulingRepository = Depends(get_repository),
    breaker: CircuitBreaker = Depends(get_booking_breaker),
    _: models.User = Depends(get_current_user),
):
    """
    Partially update a booking.

    Only the fields sent are changed. Moving the booking (room, start or
    end) re-runs the conflict check against every other booking in the
    target room; status/title/description edits do not.
    """
    return update_booking(repo, booking_id, BookingPatch.from_update(booking_update), breaker=breaker)


@router.delete("/{booking_id}")
def delete_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(get_current_user),
):
    """
    Permanently remove a booking.

    To free a slot but keep the record, update its status to ``cancelled``.
    """
    booking = db.query(models.Booking).filter(models.Booking.id == booking_id).first()
    if not booking:
        raise NotFoundError("Booking not found")
    db.delete(booking)
    db.commit()
    logger.info("Deleted booking %s", booking_id)
    return {"message": "Booking deleted successfully"}
