"""Tests for validation routes."""


class TestStatelessValidate:
    def test_full_document(self, client, full_spec):
        response = client.post("/api/validate", json={"markdown": full_spec})
        assert response.status_code == 200
        data = response.json()
        assert data["overall_score"] == 100
        assert data["grade"] == "A"
        assert [t["number"] for t in data["tollgates"]] == [4, 5]
        assert data["llm_clarity"] is None

    def test_required_sections_override(self, client):
        response = client.post("/api/validate", json={
            "markdown": "## 1. Product Overview\n\nVersion: 1.0\n",
            "required_sections": [1],
        })
        checks = {c["id"]: c["passed"] for c in response.json()["tollgates"][0]["checks"]}
        assert checks["section_1"] is True
        assert "section_2" not in checks

    def test_unknown_section(self, client):
        response = client.post("/api/validate", json={"markdown": "text", "required_sections": [42]})
        assert response.status_code == 400

    def test_empty_document(self, client):
        assert client.post("/api/validate", json={"markdown": ""}).status_code == 422


class TestProjectValidation:
    def test_stored_report(self, client, delivered_project):
        response = client.get(f"/api/projects/{delivered_project}/validation")
        assert response.status_code == 200
        assert response.json()["grade"] == "A"
        assert response.json()["complexity"] == "moderate"

    def test_not_validated_yet(self, client, created_project):
        response = client.get(f"/api/projects/{created_project}/validation")
        assert response.status_code == 404

    def test_rerun(self, client, delivered_project):
        before = client.get(f"/api/projects/{delivered_project}/validation").json()
        response = client.post(f"/api/projects/{delivered_project}/validation/run")
        assert response.status_code == 200
        assert response.json()["overall_score"] == before["overall_score"]

    def test_rerun_without_spec(self, client, created_project):
        response = client.post(f"/api/projects/{created_project}/validation/run")
        assert response.status_code == 409

    def test_markdown_report(self, client, delivered_project):
        response = client.get(f"/api/projects/{delivered_project}/validation/report")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/markdown")
        assert response.text.startswith("# Specification Validation Report")

    def test_rerun_discards_report_when_document_changes(self, client, delivered_project, monkeypatch):
        from execution.state_manager import load_state, save_state

        def scorer(excerpt, label):
            state = load_state(delivered_project)
            state["spec"]["markdown_content"] += "\n## 15. Appendix\n"
            save_state(state, delivered_project)
            raise RuntimeError("scorer offline")

        monkeypatch.setattr("app.routers.validation.get_default_scorer", lambda: scorer)
        before = load_state(delivered_project)["validation"]
        response = client.post(f"/api/projects/{delivered_project}/validation/run")
        assert response.status_code == 409
        assert "changed during validation" in response.json()["detail"]
        assert load_state(delivered_project)["validation"] == before
