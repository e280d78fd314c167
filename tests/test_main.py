from __future__ import annotations

from fastapi.testclient import TestClient

from bim360_issue_editor.main import app

client = TestClient(app)


def test_health():
    """Test the /health endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_version():
    """Test the /version endpoint."""
    response = client.get("/version")
    assert response.status_code == 200
    # The version comes from the installed distribution metadata
    assert isinstance(response.json()["version"], str)
