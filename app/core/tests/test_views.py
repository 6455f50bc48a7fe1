"""
Tests for the health check endpoint.
"""

from unittest.mock import MagicMock, patch

from django.db import DatabaseError, connection


HEALTH_URL = "/health/"


class TestHealthCheck:
    def test_healthy(self, db, client):
        response = client.get(HEALTH_URL)

        assert response.status_code == 200
        assert response.json() == {
            "status": "healthy",
            "database": "connected",
            "vendor": connection.vendor,
        }

    def test_database_unreachable_returns_503(self, db, client):
        broken = MagicMock(vendor="postgresql")
        broken.cursor.side_effect = DatabaseError("down")

        with patch("core.views.connection", broken):
            response = client.get(HEALTH_URL)

        assert response.status_code == 503
        assert response.json() == {
            "status": "unhealthy",
            "database": "disconnected",
            "vendor": "postgresql",
        }
