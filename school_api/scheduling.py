"""
Booking conflict detection shared by the bookings, rooms and teachers routers.

Three layers:

* ``find_overlaps`` - the interval overlap checker, scoped to a room or to
  a set of activity ids.
* ``evaluate_room_availability`` / ``evaluate_teacher_availability`` -
  resource status combined with the overlap checker.
* ``create_booking`` / ``update_booking`` - the mutation guard. Validation,
  room lock, conflict check and write run in one transaction on the
  repository's session.

Intervals are half-open: ``[10:00, 11:00)`` and ``[11:00, 12:00)`` do not
conflict.
"""
from dataclasses import dataclass, field, fields
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from pybreaker import CircuitBreaker, CircuitBreakerError
from sqlalchemy.exc import IntegrityError

from . import models, schemas
from .exceptions import ConflictError, NotFoundError, ServiceUnavailableError, ValidationError
from .logger import get_logger
from .repository import ActivityScope, BookingScope, RoomScope, SchedulingRepository

logger = get_logger("scheduling")

SCHEDULE_FIELDS = ("room_id", "start_time", "end_time")
NULLABLE_BOOKING_FIELDS = ("activity_id", "description")


def intervals_overlap(start1: datetime, end1: datetime, start2: datetime, end2: datetime) -> bool:
    """
    Check if two time intervals overlap.

    Returns True if the interval [start1, end1) overlaps with [start2, end2).
    """
    return start1 < end2 and start2 < end1


def as_stored(value: Optional[datetime]) -> Optional[datetime]:
    """Drop any UTC offset; wall-clock values are compared as stored."""
    if value is not None and value.tzinfo is not None:
        return value.replace(tzinfo=None)
    return value


def validate_window(start: datetime, end: datetime) -> None:
    if start >= end:
        raise ValidationError("End time must be after start time")


# ----- Interval Overlap Checker -----
def find_overlaps(
    repo: SchedulingRepository,
    scope: BookingScope,
    window_start: datetime,
    window_end: datetime,
    exclude_booking_id: Optional[int] = None,
) -> List[models.Booking]:
    """
    Return the non-cancelled bookings in ``scope`` overlapping the window.

    An ``ActivityScope`` with no ids cannot hold any booking, so the store is
    not queried at all. Result order is unspecified.
    """
    if isinstance(scope, ActivityScope) and not scope.activity_ids:
        return []
    return repo.query_bookings_overlapping(
        scope, as_stored(window_start), as_stored(window_end), exclude_id=exclude_booking_id
    )


# ----- Availability Evaluator -----
@dataclass
class Availability:
    available: bool
    conflicts: List[models.Booking] = field(default_factory=list)
    # False when only the resource status was evaluated
    window_checked: bool = False


def _window_given(start: Optional[datetime], end: Optional[datetime]) -> bool:
    if start is None or end is None:
        return False
    validate_window(as_stored(start), as_stored(end))
    return True


def evaluate_room_availability(
    repo: SchedulingRepository,
    room: models.Room,
    window_start: Optional[datetime] = None,
    window_end: Optional[datetime] = None,
) -> Availability:
    status_ok = room.status == "available"
    if not _window_given(window_start, window_end):
        return Availability(available=status_ok)

    conflicts = find_overlaps(repo, RoomScope(room.id), window_start, window_end)
    return Availability(available=status_ok and not conflicts, conflicts=conflicts, window_checked=True)


def evaluate_teacher_availability(
    repo: SchedulingRepository,
    teacher: models.Teacher,
    window_start: Optional[datetime] = None,
    window_end: Optional[datetime] = None,
) -> Availability:
    status_ok = teacher.status == "active"
    if not _window_given(window_start, window_end):
        return Availability(available=status_ok)

    # activity assignment may change between calls, so the scope is rebuilt every time
    scope = ActivityScope(repo.get_active_activity_ids_for_teacher(teacher.id))
    conflicts = find_overlaps(repo, scope, window_start, window_end)
    return Availability(available=status_ok and not conflicts, conflicts=conflicts, window_checked=True)


# ----- Booking Mutation Guard -----
class _Unset:
    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


@dataclass(frozen=True)
class BookingPatch:
    """
    Partial update of a booking. A field is either UNSET (left alone) or
    carries the new value.
    """

    room_id: Any = UNSET
    activity_id: Any = UNSET
    title: Any = UNSET
    description: Any = UNSET
    start_time: Any = UNSET
    end_time: Any = UNSET
    status: Any = UNSET

    @classmethod
    def from_update(cls, update: schemas.BookingUpdate) -> "BookingPatch":
        values = {}
        for name, value in update.model_dump(exclude_unset=True).items():
            # explicit null only clears columns that may be null
            if value is None and name not in NULLABLE_BOOKING_FIELDS:
                continue
            values[name] = value
        return cls(**values)

    def present(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not UNSET}

    @property
    def touches_schedule(self) -> bool:
        return any(getattr(self, name) is not UNSET for name in SCHEDULE_FIELDS)


def _persist(breaker: Optional[CircuitBreaker], write: Callable[[], models.Booking]) -> models.Booking:
    if breaker is None:
        return write()
    try:
        return breaker.call(write)
    except CircuitBreakerError:
        raise ServiceUnavailableError(
            "Booking service temporarily unavailable (circuit open). Please try again later."
        )


def _guarded(repo: SchedulingRepository, breaker: Optional[CircuitBreaker], write: Callable[[], models.Booking]):
    try:
        booking = _persist(breaker, write)
    except IntegrityError as exc:
        repo.db.rollback()
        logger.warning("Booking write rejected by storage constraint: %s", exc.orig)
        raise ConflictError("Booking violates a storage constraint")
    except Exception:
        repo.db.rollback()
        raise
    repo.db.refresh(booking)
    return booking


def _check_room_window(
    repo: SchedulingRepository,
    room_id: int,
    start: datetime,
    end: datetime,
    exclude_booking_id: Optional[int] = None,
) -> None:
    # the room row lock (BEGIN IMMEDIATE on SQLite) serialises concurrent guarded writes
    if repo.lock_room(room_id) is None:
        raise NotFoundError("Room not found")

    conflicts = find_overlaps(repo, RoomScope(room_id), start, end, exclude_booking_id)
    if conflicts:
        logger.warning(
            "Room %s already booked between %s and %s (%d conflicts)",
            room_id, start, end, len(conflicts),
        )
        snapshot = [schemas.BookingOut.model_validate(b) for b in conflicts]
        raise ConflictError("Room is already booked for this time slot", conflicts=snapshot)


def create_booking(
    repo: SchedulingRepository,
    data: schemas.BookingCreate,
    created_by: Optional[int] = None,
    breaker: Optional[CircuitBreaker] = None,
) -> models.Booking:
    """
    Create a booking if the room exists and the window is free.

    Raises ValidationError, NotFoundError or ConflictError; the session is
    rolled back on any failure.
    """
    if not data.room_id or not (data.title or "").strip() or not data.start_time or not data.end_time:
        raise ValidationError("Room ID, title, start time, and end time are required")

    start, end = as_stored(data.start_time), as_stored(data.end_time)
    validate_window(start, end)

    record = data.model_dump()
    record.update(
        start_time=start,
        end_time=end,
        status=data.status or "pending",
        created_by=data.created_by if data.created_by is not None else created_by,
    )

    def write() -> models.Booking:
        _check_room_window(repo, data.room_id, start, end)
        booking = repo.insert_booking(record)
        repo.db.commit()
        return booking

    booking = _guarded(repo, breaker, write)
    logger.info("Created booking %s (%s) in room %s", booking.id, booking.title, booking.room_id)
    return booking


def update_booking(
    repo: SchedulingRepository,
    booking_id: int,
    patch: BookingPatch,
    breaker: Optional[CircuitBreaker] = None,
) -> models.Booking:
    """
    Apply ``patch`` to an existing booking.

    Scheduling is only re-validated when the patch moves the booking (room,
    start or end); the booking never conflicts with itself.
    """
    booking = repo.get_booking_by_id(booking_id)
    if booking is None:
        raise NotFoundError("Booking not found")

    changes = patch.present()
    if not changes:
        raise ValidationError("No fields to update")
    for name in ("start_time", "end_time"):
        if name in changes:
            changes[name] = as_stored(changes[name])

    if patch.touches_schedule:
        room_id = changes.get("room_id", booking.room_id)
        start = changes.get("start_time", booking.start_time)
        end = changes.get("end_time", booking.end_time)
        validate_window(start, end)
    else:
        room_id = None

    def write() -> models.Booking:
        if room_id is not None:
            _check_room_window(repo, room_id, start, end, exclude_booking_id=booking.id)
        repo.update_booking_record(booking, changes)
        repo.db.commit()
        return booking

    updated = _guarded(repo, breaker, write)
    logger.info("Updated booking %s", updated.id)
    return updated

