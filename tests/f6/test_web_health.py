"""Tests for health endpoint (F6)."""


class TestHealth:
    """Tests for GET /health."""

    def test_health_ok(self, client):
        """Health check reports ok with version and timestamp."""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["version"] == "0.1.0"
        assert data["timestamp"].endswith("+00:00")
