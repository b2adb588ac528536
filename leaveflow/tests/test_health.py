"""
Tests for health and version endpoints
"""
from fastapi import status


def test_health_endpoint(client):
    """Test health endpoint returns correct response"""
    response = client.get("/api/v1/health")

    assert response.status_code == 200
    data = response.json()

    assert data["status"] == "ok"
    assert data["service"] == "leaveflow-backend"


def test_version_endpoint_accessible_without_employee_header(client):
    """Version metadata needs no X-Employee-Id"""
    response = client.get("/api/v1/version")

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["service"] == "leaveflow-backend"
    assert "version" in data
    assert data["env"] in ["local", "staging", "prod"]


def test_unknown_route_is_404(client):
    response = client.get("/api/v1/does-not-exist")

    assert response.status_code == status.HTTP_404_NOT_FOUND
