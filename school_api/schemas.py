from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Optional, List, Literal
from datetime import date, datetime

BookingStatus = Literal["pending", "confirmed", "cancelled", "completed"]
RoomStatus = Literal["available", "maintenance", "unavailable"]
TeacherStatus = Literal["active", "inactive"]
Role = Literal["admin", "teacher", "student"]


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# ----- Users / Auth -----
class UserCreate(BaseModel):
    username: str = Field(min_length=1)
    email: EmailStr
    password: str = Field(min_length=6)
    role: Role
    related_id: Optional[int] = None


class UserOut(ORMModel):
    id: int
    username: str
    email: str
    role: str
    related_id: Optional[int] = None
    status: str


class LoginRequest(BaseModel):
    # username or email
    username: str
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserOut


class VerifyRequest(BaseModel):
    token: str


class VerifyResponse(BaseModel):
    valid: bool
    user: UserOut


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str


class TokenData(BaseModel):
    username: Optional[str] = None
    role: Optional[str] = None


class Message(BaseModel):
    message: str


# ----- Students -----
class StudentBase(BaseModel):
    first_name: str
    last_name: str
    email: EmailStr
    phone: Optional[str] = None
    address: Optional[str] = None
    enrollment_date: Optional[date] = None
    status: str = "active"


class StudentCreate(StudentBase):
    pass


class StudentUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    status: Optional[str] = None


class StudentOut(StudentBase, ORMModel):
    id: int
    email: str


# ----- Teachers -----
class TeacherBase(BaseModel):
    first_name: str
    last_name: str
    email: EmailStr
    phone: Optional[str] = None
    specialization: Optional[str] = None
    hire_date: Optional[date] = None
    status: TeacherStatus = "active"


class TeacherCreate(TeacherBase):
    pass


class TeacherUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    specialization: Optional[str] = None
    status: Optional[TeacherStatus] = None


class TeacherOut(TeacherBase, ORMModel):
    id: int
    email: str


# ----- Rooms -----
class RoomBase(BaseModel):
    name: str
    capacity: int = Field(gt=0)
    room_type: str = "classroom"
    location: Optional[str] = None
    equipment: Optional[str] = None
    status: RoomStatus = "available"


class RoomCreate(RoomBase):
    pass


class RoomUpdate(BaseModel):
    name: Optional[str] = None
    capacity: Optional[int] = Field(default=None, gt=0)
    room_type: Optional[str] = None
    location: Optional[str] = None
    equipment: Optional[str] = None
    status: Optional[RoomStatus] = None


class RoomOut(RoomBase, ORMModel):
    id: int


# ----- Activities -----
class ActivityBase(BaseModel):
    name: str
    description: Optional[str] = None
    teacher_id: Optional[int] = None
    room_id: Optional[int] = None
    capacity: int = Field(gt=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    schedule: Optional[str] = None
    status: str = "active"


class ActivityCreate(ActivityBase):
    pass


class ActivityUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    teacher_id: Optional[int] = None
    room_id: Optional[int] = None
    capacity: Optional[int] = Field(default=None, gt=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    schedule: Optional[str] = None
    status: Optional[str] = None


class ActivityOut(ActivityBase, ORMModel):
    id: int


class EnrollRequest(BaseModel):
    student_id: int


class EnrollmentOut(BaseModel):
    message: str
    enrollment_id: int


class ParticipantOut(StudentOut):
    enrollment_date: Optional[datetime] = None
    enrollment_status: str


class StudentActivityOut(ActivityOut):
    enrollment_date: Optional[datetime] = None
    enrollment_status: str


# ----- Bookings -----
class BookingBase(BaseModel):
    room_id: int
    activity_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime


class BookingCreate(BookingBase):
    status: BookingStatus = "pending"
    created_by: Optional[int] = None


class BookingUpdate(BaseModel):
    room_id: Optional[int] = None
    activity_id: Optional[int] = None
    title: Optional[str] = None
    description: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    status: Optional[BookingStatus] = None


class BookingOut(BookingBase, ORMModel):
    id: int
    status: str
    created_by: Optional[int] = None


class ConflictProbeResponse(BaseModel):
    has_conflicts: bool
    count: int
    conflicts: List[BookingOut]


# ----- Availability responses -----
class RoomAvailabilityResponse(BaseModel):
    room_id: int
    name: str
    status: str
    available: bool
    # only present when a time window was given
    conflicts: Optional[int] = None
    bookings: Optional[List[BookingOut]] = None


class TeacherConflict(BaseModel):
    booking_id: int
    activity_name: Optional[str] = None
    start_time: datetime
    end_time: datetime
    room_id: int


class TeacherAvailabilityResponse(BaseModel):
    teacher_id: int
    available: bool
    status: Optional[str] = None
    reason: Optional[str] = None
    conflicts: Optional[List[TeacherConflict]] = None


class AvailableTeacherOut(TeacherOut):
    available: bool
    bookings: List[BookingOut] = []


class ScheduleEntry(ORMModel):
    id: int
    name: str
    schedule: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: str


class TeacherScheduleResponse(BaseModel):
    teacher_id: int
    schedule: List[ScheduleEntry]
