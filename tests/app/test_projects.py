"""Tests for project management routes."""

import pytest


class TestCreateProject:
    def test_create_returns_state(self, client):
        response = client.post(
            "/api/projects",
            json={"description": "A recipe blog", "complexity": "simple", "name": "Recipes"},
        )
        assert response.status_code == 201
        state = response.json()
        assert state["project"]["name"] == "Recipes"
        assert state["project"]["complexity"] == "simple"
        assert state["current_phase"] == "discover"

    def test_complexity_is_classified_when_omitted(self, client):
        response = client.post(
            "/api/projects",
            json={"description": "A multi-agent orchestration platform with LLM tool use"},
        )
        assert response.status_code == 201
        project = response.json()["project"]
        assert project["complexity"] == "complex"
        assert project["is_agentic"] is True

    @pytest.mark.parametrize("body", [
        {"description": ""},
        {"description": "A blog", "complexity": "huge"},
        {},
    ])
    def test_invalid_body(self, client, body):
        assert client.post("/api/projects", json=body).status_code == 422

    def test_blank_description(self, client):
        response = client.post("/api/projects", json={"description": "   "})
        assert response.status_code == 400
        assert "must not be empty" in response.json()["detail"]


class TestListProjects:
    def test_empty(self, client):
        response = client.get("/api/projects")
        assert response.status_code == 200
        assert response.json() == {"projects": []}

    def test_lists_created_project(self, client, created_project):
        projects = client.get("/api/projects").json()["projects"]
        assert [p["id"] for p in projects] == [created_project]
        assert projects[0]["phase_label"] == "Discover"
        assert projects[0]["has_spec"] is False
        assert projects[0]["grade"] is None

    def test_skips_corrupt_state(self, client, created_project, tmp_output_dir):
        broken = tmp_output_dir / "broken"
        broken.mkdir()
        (broken / "project_state.json").write_text("{not json", encoding="utf-8")
        projects = client.get("/api/projects").json()["projects"]
        assert [p["id"] for p in projects] == [created_project]

    def test_delivered_project_shows_grade(self, client, delivered_project):
        summary = client.get("/api/projects").json()["projects"][0]
        assert summary["has_spec"] is True
        assert summary["grade"] == "A"
        assert summary["current_phase"] == "deliver"


class TestGetProject:
    def test_get(self, client, created_project):
        response = client.get(f"/api/projects/{created_project}")
        assert response.status_code == 200
        data = response.json()
        assert data["summary"]["id"] == created_project
        assert data["state"]["project"]["id"] == created_project

    def test_missing(self, client):
        response = client.get("/api/projects/nonexistent")
        assert response.status_code == 404

    def test_invalid_id(self, client):
        assert client.get("/api/projects/bad.id").status_code == 400


class TestDeleteProject:
    def test_delete(self, client, created_project):
        response = client.delete(f"/api/projects/{created_project}")
        assert response.status_code == 200
        assert response.json() == {"deleted": True, "id": created_project}
        assert client.get(f"/api/projects/{created_project}").status_code == 404

    def test_delete_cancels_inflight(self, client, created_project):
        from execution.inflight import SUGGESTION, begin_request

        ticket = begin_request(created_project, SUGGESTION)
        client.delete(f"/api/projects/{created_project}")
        assert ticket.cancelled

    def test_delete_missing(self, client):
        assert client.delete("/api/projects/nonexistent").status_code == 404


class TestClassify:
    def test_classify(self, client):
        response = client.post("/api/classify", json={"description": "A simple todo app"})
        assert response.status_code == 200
        data = response.json()
        assert data["complexity"] == "simple"
        assert data["label"] == "Simple"
        assert data["min_per_phase"] == 1
        assert data["max_per_phase"] == 2
