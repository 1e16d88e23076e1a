"""
Pytest configuration and shared fixtures for testing the School API.
"""
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from school_api.config import Settings
from school_api.database import Database
from school_api.main import create_app
from school_api.deps import get_db, get_password_hash
from school_api.repository import SchedulingRepository
from school_api import models


TEST_SETTINGS = Settings(
    database_url="sqlite://",
    jwt_secret="test-secret",
    rate_limit_enabled=False,
    log_level="WARNING",
)


@pytest.fixture(scope="function")
def database():
    """
    Fresh in-memory database for each test.
    """
    db = Database(TEST_SETTINGS.database_url).open()
    db.create_all()
    try:
        yield db
    finally:
        db.drop_all()
        db.close()


@pytest.fixture(scope="function")
def db_session(database):
    """
    Create a fresh database session for each test.
    """
    session = database.session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def repo(db_session):
    return SchedulingRepository(db_session)


@pytest.fixture
def app(database):
    return create_app(TEST_SETTINGS, database=database)


@pytest.fixture(scope="function")
def client(app, db_session):
    """
    Create a test client sharing the test session.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _make_user(db_session, username, password, role, related_id=None):
    user = models.User(
        username=username,
        email=f"{username}@school.example.com",
        hashed_password=get_password_hash(password),
        role=role,
        related_id=related_id,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def admin_user(db_session):
    return _make_user(db_session, "admin", "adminpass123", "admin")


@pytest.fixture
def staff_user(db_session):
    """
    A non-admin account (teacher role).
    """
    return _make_user(db_session, "staff", "staffpass123", "teacher")


def _login(client, username, password):
    response = client.post("/api/auth/login", json={"username": username, "password": password})
    return response.json()["access_token"]


@pytest.fixture
def admin_token(client, admin_user):
    return _login(client, "admin", "adminpass123")


@pytest.fixture
def staff_token(client, staff_user):
    return _login(client, "staff", "staffpass123")


@pytest.fixture
def sample_room(db_session):
    room = models.Room(name="Room 101", capacity=30, room_type="classroom", status="available")
    db_session.add(room)
    db_session.commit()
    db_session.refresh(room)
    return room


@pytest.fixture
def other_room(db_session):
    room = models.Room(name="Lab 2", capacity=20, room_type="lab", status="available")
    db_session.add(room)
    db_session.commit()
    db_session.refresh(room)
    return room


@pytest.fixture
def sample_booking(db_session, sample_room):
    """
    Confirmed booking 2024-01-01 10:00-11:00 in ``sample_room``.
    """
    booking = models.Booking(
        room_id=sample_room.id,
        title="Math Class",
        start_time=datetime(2024, 1, 1, 10, 0),
        end_time=datetime(2024, 1, 1, 11, 0),
        status="confirmed",
    )
    db_session.add(booking)
    db_session.commit()
    db_session.refresh(booking)
    return booking


@pytest.fixture
def sample_teacher(db_session):
    teacher = models.Teacher(
        first_name="Ada",
        last_name="Lovelace",
        email="ada@school.example.com",
        status="active",
    )
    db_session.add(teacher)
    db_session.commit()
    db_session.refresh(teacher)
    return teacher


@pytest.fixture
def teacher_activity(db_session, sample_teacher, sample_room):
    activity = models.Activity(
        name="Robotics Club",
        teacher_id=sample_teacher.id,
        room_id=sample_room.id,
        capacity=2,
        status="active",
    )
    db_session.add(activity)
    db_session.commit()
    db_session.refresh(activity)
    return activity


@pytest.fixture
def teacher_booking(db_session, teacher_activity, other_room):
    """
    Booking 2024-01-02 09:00-10:00 for the teacher's active activity.
    """
    booking = models.Booking(
        room_id=other_room.id,
        activity_id=teacher_activity.id,
        title="Robotics session",
        start_time=datetime(2024, 1, 2, 9, 0),
        end_time=datetime(2024, 1, 2, 10, 0),
        status="confirmed",
    )
    db_session.add(booking)
    db_session.commit()
    db_session.refresh(booking)
    return booking


@pytest.fixture
def sample_student(db_session):
    student = models.Student(first_name="Grace", last_name="Hopper", email="grace@school.example.com")
    db_session.add(student)
    db_session.commit()
    db_session.refresh(student)
    return student


def get_auth_header(token: str) -> dict:
    """
    Helper function to create authorization header.
    """
    return {"Authorization": f"Bearer {token}"}
