from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import datetime

from .. import schemas, models
from ..deps import get_db, get_repository, get_current_user
from ..exceptions import ConflictError, NotFoundError, ValidationError
from ..logger import get_logger
from ..repository import SchedulingRepository
from ..scheduling import as_stored, evaluate_room_availability, validate_window

router = APIRouter(prefix="/rooms", tags=["rooms"])

logger = get_logger("rooms")


def _get_room_or_404(db: Session, room_id: int) -> models.Room:
    room = db.query(models.Room).filter(models.Room.id == room_id).first()
    if not room:
        raise NotFoundError("Room not found")
    return room


@router.get("/", response_model=List[schemas.RoomOut])
def list_rooms(db: Session = Depends(get_db)):
    rooms = db.query(models.Room).order_by(models.Room.id.desc()).all()
    logger.info("Retrieved %d rooms", len(rooms))
    return rooms


@router.get("/available", response_model=List[schemas.RoomOut])
def list_available_rooms(
    start_time: Optional[datetime] = None,
    end_time: Optional[datetime] = None,
    capacity: Optional[int] = None,
    room_type: Optional[str] = None,
    repo: SchedulingRepository = Depends(get_repository),
):
    """
    List rooms that can be booked.

    Parameters
    ----------
    start_time, end_time : datetime, optional
        When both are given, rooms with a non-cancelled booking overlapping
        the window are left out.
    capacity : int, optional
        Minimum room capacity.
    room_type : str, optional
        Exact room type to match.
    """
    if start_time is not None and end_time is not None:
        validate_window(as_stored(start_time), as_stored(end_time))

    query = repo.db.query(models.Room).filter(models.Room.status == "available")
    if capacity is not None:
        query = query.filter(models.Room.capacity >= capacity)
    if room_type is not None:
        query = query.filter(models.Room.room_type == room_type)
    rooms = query.all()

    if start_time is not None and end_time is not None:
        rooms = [
            room for room in rooms
            if evaluate_room_availability(repo, room, start_time, end_time).available
        ]

    logger.info("Retrieved %d available rooms", len(rooms))
    return rooms


@router.get("/{room_id}", response_model=schemas.RoomOut)
def get_room(room_id: int, db: Session = Depends(get_db)):
    return _get_room_or_404(db, room_id)


@router.get(
    "/{room_id}/availability",
    response_model=schemas.RoomAvailabilityResponse,
    response_model_exclude_none=True,
)
def get_room_availability(
    room_id: int,
    start_time: Optional[datetime] = None,
    end_time: Optional[datetime] = None,
    repo: SchedulingRepository = Depends(get_repository),
):
    """
    Check whether a room can be used.

    Without a time window this is the room status alone. With one, the
    room must also have no overlapping non-cancelled booking; the
    overlapping bookings are returned under ``bookings``.
    """
    room = repo.get_room_by_id(room_id)
    if not room:
        raise NotFoundError("Room not found")

    result = evaluate_room_availability(repo, room, start_time, end_time)
    logger.info("Checked availability for room %s: %s", room_id, result.available)
    response = {
        "room_id": room.id,
        "name": room.name,
        "status": room.status,
        "available": result.available,
    }
    if result.window_checked:
        response.update(conflicts=len(result.conflicts), bookings=result.conflicts)
    return response


@router.post("/", response_model=schemas.RoomOut, status_code=status.HTTP_201_CREATED)
def create_room(
    room_in: schemas.RoomCreate,
    db: Session = Depends(get_db),
    _: models.User = Depends(get_current_user),
):
    """
    Create a new room.

    Raises
    ------
    ConflictError
        - 409 if a room with the same name already exists.
    """
    existing = db.query(models.Room).filter(models.Room.name == room_in.name).first()
    if existing:
        raise ConflictError("Room name already exists")
    room = models.Room(**room_in.model_dump())
    db.add(room)
    db.commit()
    db.refresh(room)
    logger.info("Created room %s (%s)", room.id, room.name)
    return room


@router.put("/{room_id}", response_model=schemas.RoomOut)
@router.patch("/{room_id}", response_model=schemas.RoomOut, include_in_schema=False)
def update_room(
    room_id: int,
    room_update: schemas.RoomUpdate,
    db: Session = Depends(get_db),
    _: models.User = Depends(get_current_user),
):
    """
    Update details of an existing room.

    Setting ``status`` to ``maintenance`` or ``unavailable`` makes the room
    unavailable without touching its bookings.
    """
    room = _get_room_or_404(db, room_id)
    data = models.settable_fields(models.Room, room_update.model_dump(exclude_unset=True))
    if not data:
        raise ValidationError("No fields to update")
    for field, value in data.items():
        setattr(room, field, value)
    db.commit()
    db.refresh(room)
    logger.info("Updated room %s", room_id)
    return room


@router.delete("/{room_id}")
def delete_room(
    room_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(get_current_user),
):
    """Permanently remove a room together with its bookings."""
    room = _get_room_or_404(db, room_id)
    db.delete(room)
    db.commit()
    logger.info("Deleted room %s", room_id)
    return {"message": "Room deleted successfully"}
