from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    DateTime,
    Date,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship
from .database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String, nullable=False, default="student")  # admin, teacher, student
    # id of the teacher/student row this account belongs to
    related_id = Column(Integer, nullable=True)
    status = Column(String, nullable=False, default="active")
    created_at = Column(DateTime, server_default=func.now())


class Student(Base):
    __tablename__ = "students"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    phone = Column(String, nullable=True)
    address = Column(Text, nullable=True)
    enrollment_date = Column(Date, nullable=True)
    status = Column(String, nullable=False, default="active")
    created_at = Column(DateTime, server_default=func.now())

    enrollments = relationship("ActivityEnrollment", back_populates="student", cascade="all, delete-orphan")


class Teacher(Base):
    __tablename__ = "teachers"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    phone = Column(String, nullable=True)
    specialization = Column(String, nullable=True)
    hire_date = Column(Date, nullable=True)
    status = Column(String, nullable=False, default="active")  # active, inactive
    created_at = Column(DateTime, server_default=func.now())

    activities = relationship("Activity", back_populates="teacher")


class Room(Base):
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, index=True, nullable=False)
    capacity = Column(Integer, nullable=False)
    room_type = Column(String, nullable=False, default="classroom")
    location = Column(String, nullable=True)
    equipment = Column(String, nullable=True)
    status = Column(String, nullable=False, default="available")  # available, maintenance, unavailable
    created_at = Column(DateTime, server_default=func.now())

    bookings = relationship("Booking", back_populates="room", cascade="all, delete-orphan")


class Activity(Base):
    __tablename__ = "activities"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    teacher_id = Column(Integer, ForeignKey("teachers.id", ondelete="SET NULL"), nullable=True, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id", ondelete="SET NULL"), nullable=True)
    capacity = Column(Integer, nullable=False)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    schedule = Column(String, nullable=True)
    status = Column(String, nullable=False, default="active")
    created_at = Column(DateTime, server_default=func.now())

    teacher = relationship("Teacher", back_populates="activities")
    bookings = relationship("Booking", back_populates="activity")
    enrollments = relationship("ActivityEnrollment", back_populates="activity", cascade="all, delete-orphan")


class ActivityEnrollment(Base):
    __tablename__ = "activity_enrollments"
    __table_args__ = (
        UniqueConstraint("student_id", "activity_id", name="uq_enrollment_student_activity"),
    )

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False)
    activity_id = Column(Integer, ForeignKey("activities.id", ondelete="CASCADE"), nullable=False)
    enrollment_date = Column(DateTime, server_default=func.now())
    status = Column(String, nullable=False, default="enrolled")

    student = relationship("Student", back_populates="enrollments")
    activity = relationship("Activity", back_populates="enrollments")


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    activity_id = Column(Integer, ForeignKey("activities.id", ondelete="SET NULL"), nullable=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    status = Column(String, nullable=False, default="pending")  # pending, confirmed, cancelled, completed
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    room = relationship("Room", back_populates="bookings")
    activity = relationship("Activity", back_populates="bookings")


def settable_fields(model, values):
    """Drop explicit nulls aimed at NOT NULL columns of ``model``; they leave the column unchanged."""
    columns = model.__table__.columns
    return {
        name: value for name, value in values.items()
        if value is not None or name not in columns or columns[name].nullable
    }
