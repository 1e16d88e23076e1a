"""
Unit tests for main application endpoints and wiring.
"""
import pytest
from fastapi.testclient import TestClient

from school_api.config import Settings
from school_api.database import Database
from school_api.main import create_app


class TestHealthCheck:
    """Tests for health check endpoint."""

    def test_health_check(self, client):
        """Test health check endpoint returns healthy status."""
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "school-api"}


class TestApplicationSetup:
    """Tests for application configuration."""

    def test_app_title(self, client):
        """Test application title in OpenAPI schema."""
        response = client.get("/openapi.json")
        assert response.status_code == 200
        assert "School Scheduling Backend" in response.json()["info"]["title"]

    def test_docs_endpoint_exists(self, client):
        """Test documentation endpoint is accessible."""
        assert client.get("/docs").status_code == 200

    def test_error_body_shape(self, client):
        """Test error responses carry error, detail and path."""
        response = client.get("/api/rooms/99999")
        assert response.json() == {"error": "Not found", "detail": "Room not found", "path": "/api/rooms/99999"}


class TestLifecycle:
    """Tests for the database handle lifecycle."""

    def test_owned_database_is_closed_on_shutdown(self):
        """Test the app closes a database it opened itself."""
        app = create_app(Settings(database_url="sqlite://", rate_limit_enabled=False))
        with TestClient(app) as client:
            assert app.state.database.is_open
            assert client.get("/api/rooms/").json() == []
        assert not app.state.database.is_open

    def test_injected_database_stays_open(self, database):
        """Test the app leaves an injected database open."""
        app = create_app(Settings(database_url="sqlite://", rate_limit_enabled=False), database=database)
        with TestClient(app):
            pass
        assert database.is_open

    def test_session_requires_open_database(self):
        """Test a session cannot be made before open()."""
        with pytest.raises(RuntimeError):
            Database("sqlite://").session()

    def test_production_requires_secret(self):
        """Test production refuses the default JWT secret."""
        with pytest.raises(RuntimeError):
            create_app(Settings(database_url="sqlite://", environment="production"))


class TestRateLimit:
    """Tests for the slowapi limiter."""

    def test_limit_exceeded(self, database):
        """Test requests over the limit get 429."""
        app = create_app(Settings(database_url="sqlite://", rate_limit="2/minute"), database=database)
        with TestClient(app) as client:
            codes = [client.get("/health").status_code for _ in range(3)]
        assert codes == [200, 200, 429]
