from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Union

from sqlalchemy.orm import Session

from . import models


@dataclass(frozen=True)
class RoomScope:
    """Bookings held directly by one room."""

    room_id: int


@dataclass(frozen=True)
class ActivityScope:
    """Bookings attached to any of a set of activities (a teacher's workload)."""

    activity_ids: Sequence[int]


BookingScope = Union[RoomScope, ActivityScope]


class SchedulingRepository:
    """
    Data-access collaborator of the scheduling core.

    Thin wrapper over a SQLAlchemy session; every call reads current
    committed state, nothing is cached between calls.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_room_by_id(self, room_id: int) -> Optional[models.Room]:
        return self.db.query(models.Room).filter(models.Room.id == room_id).first()

    def lock_room(self, room_id: int) -> Optional[models.Room]:
        # FOR UPDATE on server databases; file-backed SQLite already holds the
        # write lock from BEGIN IMMEDIATE (see database._begin_immediate)
        return (
            self.db.query(models.Room)
            .filter(models.Room.id == room_id)
            .with_for_update()
            .first()
        )

    def get_teacher_by_id(self, teacher_id: int) -> Optional[models.Teacher]:
        return self.db.query(models.Teacher).filter(models.Teacher.id == teacher_id).first()

    def get_booking_by_id(self, booking_id: int) -> Optional[models.Booking]:
        return self.db.query(models.Booking).filter(models.Booking.id == booking_id).first()

    def get_active_activity_ids_for_teacher(self, teacher_id: int) -> List[int]:
        rows = (
            self.db.query(models.Activity.id)
            .filter(models.Activity.teacher_id == teacher_id, models.Activity.status == "active")
            .all()
        )
        return [row.id for row in rows]

    def query_bookings_overlapping(
        self,
        scope: BookingScope,
        window_start: datetime,
        window_end: datetime,
        exclude_id: Optional[int] = None,
    ) -> List[models.Booking]:
        """
        Non-cancelled bookings in ``scope`` whose ``[start, end)`` interval
        intersects ``[window_start, window_end)``.
        """
        query = self.db.query(models.Booking).filter(
            models.Booking.status != "cancelled",
            models.Booking.start_time < window_end,
            models.Booking.end_time > window_start,
        )
        if isinstance(scope, RoomScope):
            query = query.filter(models.Booking.room_id == scope.room_id)
        else:
            query = query.filter(models.Booking.activity_id.in_(list(scope.activity_ids)))
        if exclude_id is not None:
            query = query.filter(models.Booking.id != exclude_id)
        return query.all()

    def insert_booking(self, record: Dict[str, Any]) -> models.Booking:
        booking = models.Booking(**record)
        self.db.add(booking)
        self.db.flush()
        return booking

    def update_booking_record(self, booking: models.Booking, fields: Dict[str, Any]) -> models.Booking:
        for field, value in fields.items():
            setattr(booking, field, value)
        self.db.flush()
        return booking
