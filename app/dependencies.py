"""Shared dependencies for the FastAPI web layer."""

from fastapi import HTTPException

from config.settings import OUTPUT_DIR, PHASE_LABELS
from execution.schema_validator import is_valid_project_state
from execution.state_manager import load_state


def get_project_state(project_id: str) -> dict:
    """Load project state or raise 404."""
    try:
        return load_state(project_id)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail=f"Project '{project_id}' not found")


def check_phase(state: dict, *allowed_phases: str) -> None:
    """Verify the project is in one of the expected phases, or raise 409."""
    if state["current_phase"] not in allowed_phases:
        expected = "' or '".join(allowed_phases)
        raise HTTPException(
            status_code=409,
            detail=f"Project is in phase '{state['current_phase']}', not '{expected}'"
        )


def project_summary(state: dict) -> dict:
    """Return the list-view fields of a project."""
    project = state["project"]
    validation = state.get("validation") or {}
    return {
        "id": project["id"],
        "name": project["name"],
        "complexity": project["complexity"],
        "is_agentic": project["is_agentic"],
        "current_phase": state["current_phase"],
        "phase_label": PHASE_LABELS.get(state["current_phase"], state["current_phase"]),
        "has_spec": bool(state.get("spec")),
        "overall_score": validation.get("overall_score"),
        "grade": validation.get("grade"),
        "created_at": project["created_at"],
        "updated_at": project["updated_at"],
    }


def list_projects() -> list[dict]:
    """Scan OUTPUT_DIR for projects with valid state files, newest first."""
    projects = []
    if not OUTPUT_DIR.exists():
        return projects
    for project_dir in sorted(OUTPUT_DIR.iterdir()):
        if not project_dir.is_dir():
            continue
        state_file = project_dir / "project_state.json"
        if not state_file.exists():
            continue
        try:
            state = load_state(project_dir.name)
        except (OSError, ValueError):
            continue
        if is_valid_project_state(state):
            projects.append(project_summary(state))
    projects.sort(key=lambda p: p["updated_at"], reverse=True)
    return projects
