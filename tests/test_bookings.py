"""
Unit tests for booking management endpoints.
"""
import pytest
from datetime import datetime

from school_api import models


def get_auth_header(token: str) -> dict:
    """Helper function to create authorization header."""
    return {"Authorization": f"Bearer {token}"}


def booking_body(room_id, start, end, **extra):
    body = {"room_id": room_id, "title": "Physics", "start_time": start, "end_time": end}
    body.update(extra)
    return body


class TestBookingCreation:
    """Tests for booking creation endpoint."""

    def test_create_booking_success(self, client, staff_user, staff_token, sample_room):
        """Test successful booking creation."""
        response = client.post(
            "/api/bookings/",
            headers=get_auth_header(staff_token),
            json=booking_body(sample_room.id, "2024-01-01T08:00:00", "2024-01-01T09:00:00"),
        )
        assert response.status_code == 201
        data = response.json()
        assert data["room_id"] == sample_room.id
        assert data["status"] == "pending"
        assert data["created_by"] == staff_user.id
        assert "id" in data

    def test_create_booking_requires_auth(self, client, sample_room):
        """Test creating a booking without a token fails."""
        response = client.post(
            "/api/bookings/",
            json=booking_body(sample_room.id, "2024-01-01T08:00:00", "2024-01-01T09:00:00"),
        )
        assert response.status_code == 401

    def test_overlapping_booking_is_rejected(self, client, staff_token, sample_room, sample_booking):
        """Room 1 booked 10:00-11:00; 10:30-11:30 must be a 409 listing the existing booking."""
        response = client.post(
            "/api/bookings/",
            headers=get_auth_header(staff_token),
            json=booking_body(sample_room.id, "2024-01-01T10:30:00", "2024-01-01T11:30:00"),
        )
        assert response.status_code == 409
        data = response.json()
        assert data["detail"] == "Room is already booked for this time slot"
        assert [c["id"] for c in data["conflicts"]] == [sample_booking.id]

    def test_adjacent_booking_succeeds(self, client, staff_token, sample_room, sample_booking):
        """Starting exactly when the existing booking ends is not a conflict."""
        response = client.post(
            "/api/bookings/",
            headers=get_auth_header(staff_token),
            json=booking_body(sample_room.id, "2024-01-01T11:00:00", "2024-01-01T12:00:00"),
        )
        assert response.status_code == 201

    def test_end_before_start(self, client, staff_token, sample_room):
        """Test a booking ending before it starts is rejected."""
        response = client.post(
            "/api/bookings/",
            headers=get_auth_header(staff_token),
            json=booking_body(sample_room.id, "2024-01-01T12:00:00", "2024-01-01T11:00:00"),
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "End time must be after start time"

    def test_missing_required_field(self, client, staff_token, sample_room):
        """Test a booking without a title is rejected."""
        response = client.post(
            "/api/bookings/",
            headers=get_auth_header(staff_token),
            json={"room_id": sample_room.id, "start_time": "2024-01-01T08:00:00"},
        )
        assert response.status_code == 400

    def test_nonexistent_room(self, client, staff_token):
        """Test a non-existent room returns 404."""
        response = client.post(
            "/api/bookings/",
            headers=get_auth_header(staff_token),
            json=booking_body(99999, "2024-01-01T08:00:00", "2024-01-01T09:00:00"),
        )
        assert response.status_code == 404
        assert response.json()["detail"] == "Room not found"

    def test_invalid_status(self, client, staff_token, sample_room):
        """Test an unknown booking status is rejected."""
        response = client.post(
            "/api/bookings/",
            headers=get_auth_header(staff_token),
            json=booking_body(sample_room.id, "2024-01-01T08:00:00", "2024-01-01T09:00:00", status="archived"),
        )
        assert response.status_code == 400

    def test_cancelled_booking_frees_slot(self, client, staff_token, sample_room, sample_booking):
        """Test cancelling a booking frees its slot."""
        cancel = client.put(
            f"/api/bookings/{sample_booking.id}",
            headers=get_auth_header(staff_token),
            json={"status": "cancelled"},
        )
        assert cancel.status_code == 200
        response = client.post(
            "/api/bookings/",
            headers=get_auth_header(staff_token),
            json=booking_body(sample_room.id, "2024-01-01T10:00:00", "2024-01-01T11:00:00"),
        )
        assert response.status_code == 201


class TestBookingUpdate:
    """Tests for updating bookings."""

    def test_update_overlapping_itself(self, client, staff_token, db_session, other_room):
        """Booking [9:00,10:00) moved to [9:30,10:30) in the same empty room must succeed."""
        booking = models.Booking(
            room_id=other_room.id,
            title="Chemistry",
            start_time=datetime(2024, 1, 1, 9, 0),
            end_time=datetime(2024, 1, 1, 10, 0),
            status="confirmed",
        )
        db_session.add(booking)
        db_session.commit()

        response = client.put(
            f"/api/bookings/{booking.id}",
            headers=get_auth_header(staff_token),
            json={"start_time": "2024-01-01T09:30:00", "end_time": "2024-01-01T10:30:00"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["start_time"] == "2024-01-01T09:30:00"
        assert data["end_time"] == "2024-01-01T10:30:00"
        assert data["room_id"] == other_room.id

    def test_update_into_conflict(self, client, staff_token, db_session, sample_room, sample_booking):
        """Test moving a booking onto another one fails."""
        other = models.Booking(
            room_id=sample_room.id,
            title="Biology",
            start_time=datetime(2024, 1, 1, 12, 0),
            end_time=datetime(2024, 1, 1, 13, 0),
        )
        db_session.add(other)
        db_session.commit()

        response = client.patch(
            f"/api/bookings/{other.id}",
            headers=get_auth_header(staff_token),
            json={"start_time": "2024-01-01T10:59:00"},
        )
        assert response.status_code == 409
        assert response.json()["conflicts"][0]["id"] == sample_booking.id

    def test_update_title_only(self, client, staff_token, sample_booking):
        """Test updating only the title skips the conflict check."""
        response = client.put(
            f"/api/bookings/{sample_booking.id}",
            headers=get_auth_header(staff_token),
            json={"title": "Geometry"},
        )
        assert response.status_code == 200
        assert response.json()["title"] == "Geometry"

    def test_update_no_fields(self, client, staff_token, sample_booking):
        """Test an empty update is rejected."""
        response = client.put(
            f"/api/bookings/{sample_booking.id}",
            headers=get_auth_header(staff_token),
            json={},
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "No fields to update"

    def test_update_nonexistent(self, client, staff_token):
        """Test updating a non-existent booking returns 404."""
        response = client.put(
            "/api/bookings/99999",
            headers=get_auth_header(staff_token),
            json={"title": "Nothing"},
        )
        assert response.status_code == 404


class TestBookingQueries:
    """Tests for listing, probing and deleting bookings."""

    def test_list_bookings(self, client, sample_booking):
        """Test listing all bookings."""
        response = client.get("/api/bookings/")
        assert response.status_code == 200
        assert [b["id"] for b in response.json()] == [sample_booking.id]

    def test_get_booking(self, client, sample_booking):
        """Test getting a booking by id."""
        response = client.get(f"/api/bookings/{sample_booking.id}")
        assert response.status_code == 200
        assert response.json()["title"] == "Math Class"

    def test_room_bookings(self, client, sample_room, sample_booking):
        """Test listing bookings of one room."""
        response = client.get(f"/api/bookings/room/{sample_room.id}")
        assert response.status_code == 200
        assert len(response.json()) == 1

    def test_room_bookings_missing_room(self, client):
        """Test listing bookings of a non-existent room returns 404."""
        assert client.get("/api/bookings/room/99999").status_code == 404

    @pytest.mark.parametrize(
        "start,end,expected",
        [
            ("2024-01-01T10:30:00", "2024-01-01T11:30:00", 1),
            ("2024-01-01T11:00:00", "2024-01-01T12:00:00", 0),
            ("2024-01-01T09:00:00", "2024-01-01T10:00:00", 0),
        ],
    )
    def test_conflict_probe(self, client, sample_room, sample_booking, start, end, expected):
        """Test the conflict check reports overlapping bookings."""
        response = client.get(
            "/api/bookings/conflicts",
            params={"room_id": sample_room.id, "start_time": start, "end_time": end},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["count"] == expected
        assert data["has_conflicts"] is (expected > 0)

    def test_conflict_probe_excludes_id(self, client, sample_room, sample_booking):
        """Test the conflict check can leave one booking out."""
        response = client.get(
            "/api/bookings/conflicts",
            params={
                "room_id": sample_room.id,
                "start_time": "2024-01-01T10:00:00",
                "end_time": "2024-01-01T11:00:00",
                "exclude_id": sample_booking.id,
            },
        )
        assert response.json() == {"has_conflicts": False, "count": 0, "conflicts": []}

    def test_conflict_probe_requires_window(self, client, sample_room):
        """Test the conflict check needs a full window."""
        response = client.get("/api/bookings/conflicts", params={"room_id": sample_room.id})
        assert response.status_code == 400

    def test_delete_booking(self, client, staff_token, sample_booking):
        """Test deleting a booking."""
        response = client.delete(
            f"/api/bookings/{sample_booking.id}",
            headers=get_auth_header(staff_token),
        )
        assert response.status_code == 200
        assert client.get(f"/api/bookings/{sample_booking.id}").status_code == 404

    def test_versioned_prefix(self, client, sample_booking):
        """Test routes are also served under /api/v1."""
        assert client.get(f"/api/v1/bookings/{sample_booking.id}").status_code == 200
