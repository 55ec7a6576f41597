"""Test fixtures for the web layer."""

import pytest
from fastapi.testclient import TestClient

from app.main import app


@pytest.fixture
def client(tmp_output_dir, monkeypatch):
    """Create a TestClient with output directed to temp directory."""
    import app.dependencies as deps

    monkeypatch.setattr(deps, "OUTPUT_DIR", tmp_output_dir)
    return TestClient(app)


@pytest.fixture
def created_project(client):
    """Create a moderate project and return its id."""
    response = client.post(
        "/api/projects",
        json={
            "description": "A dashboard for freelancers to issue invoices and track payments",
            "complexity": "moderate",
        },
    )
    assert response.status_code == 201
    return response.json()["project"]["id"]


@pytest.fixture
def delivered_project(created_project, full_spec):
    """A project in 'deliver' with a stored, validated specification."""
    from execution.discovery_session import skip_to_spec
    from execution.spec_stream import complete_spec_generation

    skip_to_spec(created_project)
    complete_spec_generation(created_project, full_spec)
    return created_project
