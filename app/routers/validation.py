"""Validation routes: stateless scoring and per-project reports.

Scoring may call the LLM clarity scorer, so it runs in a worker thread
and never blocks the event loop.
"""

import asyncio
from functools import partial

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse, PlainTextResponse

from app.dependencies import get_project_state
from app.models.spec import ValidateRequest
from execution.clarity_scorer import get_default_scorer
from execution.spec_validator import generate_validation_report, validate_spec
from execution.state_manager import get_project_lock, load_state, record_validation, save_state

router = APIRouter(prefix="/api", tags=["validation"])


@router.post("/validate")
async def validate(body: ValidateRequest):
    """Score a document without storing anything."""
    loop = asyncio.get_event_loop()
    report = await loop.run_in_executor(None, partial(
        validate_spec,
        body.markdown,
        complexity=body.complexity,
        required_sections=body.required_sections,
        clarity_scorer=get_default_scorer(),
    ))
    return JSONResponse(content=report.to_dict())


def _require_validation(state: dict) -> dict:
    if not state.get("validation"):
        raise HTTPException(status_code=404, detail="Project has not been validated yet")
    return state["validation"]


def revalidate_project(project_id: str) -> dict:
    """Re-score the stored document and store the new report.

    The document is scored outside the project lock; the report is only
    written if the document is unchanged by then.
    """
    state = load_state(project_id)
    if not state.get("spec"):
        raise HTTPException(status_code=409, detail="Project has no specification to validate")
    markdown = state["spec"]["markdown_content"]
    report = validate_spec(
        markdown,
        complexity=state["project"]["complexity"],
        clarity_scorer=get_default_scorer(),
    ).to_dict()

    with get_project_lock(project_id):
        state = load_state(project_id)
        if not state.get("spec") or state["spec"]["markdown_content"] != markdown:
            raise HTTPException(
                status_code=409, detail="Specification changed during validation; run it again",
            )
        record_validation(state, report)
        save_state(state, project_id)
    return report


@router.get("/projects/{project_id}/validation")
async def get_validation(project_id: str):
    """Return the latest stored validation report."""
    state = get_project_state(project_id)
    return JSONResponse(content=_require_validation(state))


@router.post("/projects/{project_id}/validation/run")
async def run_validation(project_id: str):
    """Re-score the stored document and replace the stored report."""
    get_project_state(project_id)
    loop = asyncio.get_event_loop()
    report = await loop.run_in_executor(None, revalidate_project, project_id)
    return JSONResponse(content=report)


@router.get("/projects/{project_id}/validation/report")
async def validation_report(project_id: str):
    """Render the latest stored report as markdown."""
    state = get_project_state(project_id)
    return PlainTextResponse(
        generate_validation_report(_require_validation(state)),
        media_type="text/markdown",
    )
