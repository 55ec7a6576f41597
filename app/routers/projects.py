"""Project management routes: create, list, inspect, delete, classify."""

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse

from app.dependencies import get_project_state, list_projects, project_summary
from app.models.project import ClassifyRequest, CreateProjectRequest
from execution.adaptive_depth import get_depth_config
from execution.complexity import quick_classify
from execution.inflight import clear_requests
from execution.spec_stream import clear_stream_events
from execution.state_manager import delete_project, initialize_state

router = APIRouter(prefix="/api", tags=["projects"])


@router.post("/projects", status_code=201)
async def create_project(body: CreateProjectRequest):
    """Create a project; complexity is classified when not given."""
    state = initialize_state(
        body.description,
        complexity=body.complexity,
        name=body.name,
        is_agentic=body.is_agentic,
    )
    return JSONResponse(status_code=201, content=state)


@router.get("/projects")
async def list_projects_route():
    """List all stored projects, most recently updated first."""
    return JSONResponse(content={"projects": list_projects()})


@router.get("/projects/{project_id}")
async def get_project(project_id: str):
    """Return the full project state plus its list-view summary."""
    state = get_project_state(project_id)
    return JSONResponse(content={"summary": project_summary(state), "state": state})


@router.delete("/projects/{project_id}")
async def delete_project_route(project_id: str):
    """Delete a project, cancelling anything in flight for it."""
    clear_requests(project_id)
    clear_stream_events(project_id)
    try:
        deleted = delete_project(project_id)
    except OSError as e:
        raise HTTPException(status_code=409, detail=str(e))
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Project '{project_id}' not found")
    return JSONResponse(content={"deleted": True, "id": project_id})


@router.post("/classify")
async def classify(body: ClassifyRequest):
    """Classify a description without creating a project."""
    result = quick_classify(body.description)
    config = get_depth_config(result["complexity"])
    return JSONResponse(content={
        **result,
        "label": config["label"],
        "questions": config["questions"],
        "min_per_phase": config["min_per_phase"],
        "max_per_phase": config["max_per_phase"],
    })
