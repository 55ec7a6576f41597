"""Discovery interview routes: suggestion, response, and phase control."""

import asyncio

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from app.dependencies import get_project_state
from app.models.discovery import RespondRequest
from execution.adaptive_depth import get_depth_config
from execution.discovery_machine import DiscoveryState
from execution.discovery_session import (
    cancel_suggestion,
    clear_error,
    complete_phase,
    load_discovery,
    request_suggestion,
    skip_to_spec,
    submit_response,
)

router = APIRouter(prefix="/api/projects/{project_id}/discovery", tags=["discovery"])


def _payload(project_id: str, discovery: DiscoveryState, **extra) -> dict:
    state = get_project_state(project_id)
    config = get_depth_config(state["project"]["complexity"])
    return {
        "discovery": discovery.to_dict(),
        "current_phase": state["current_phase"],
        "tollgates": state["discovery"].get("tollgates", {}),
        "min_per_phase": config["min_per_phase"],
        "max_per_phase": config["max_per_phase"],
        **extra,
    }


async def _run_locked(project_id: str, operation) -> JSONResponse:
    """Run a session step that takes the project lock in a worker thread."""
    get_project_state(project_id)
    loop = asyncio.get_event_loop()
    discovery = await loop.run_in_executor(None, operation, project_id)
    return JSONResponse(content=_payload(project_id, discovery))


@router.get("")
async def get_discovery(project_id: str):
    """Return the restored discovery session."""
    get_project_state(project_id)
    return JSONResponse(content=_payload(project_id, load_discovery(project_id)))


@router.post("/suggest")
async def suggest(project_id: str):
    """Ask for the next question and proposed answer.

    The provider call blocks on the LLM, so it runs in a worker thread and
    a concurrent cancel request can still be served.
    """
    get_project_state(project_id)
    loop = asyncio.get_event_loop()
    discovery = await loop.run_in_executor(None, request_suggestion, project_id)
    return JSONResponse(content=_payload(project_id, discovery))


@router.post("/respond")
async def respond(project_id: str, body: RespondRequest):
    """Accept, edit, or override the proposed answer."""
    get_project_state(project_id)
    loop = asyncio.get_event_loop()
    result = await loop.run_in_executor(
        None, submit_response, project_id, body.answer, body.action,
    )
    return JSONResponse(content=_payload(
        project_id,
        result["discovery"],
        verdict=result["verdict"],
        advanced_to=result["advanced_to"],
    ))


@router.post("/complete-phase")
async def complete_phase_route(project_id: str):
    """Close the current phase once its question floor is met."""
    return await _run_locked(project_id, complete_phase)


@router.post("/skip")
async def skip(project_id: str):
    """Leave discovery and go straight to specification."""
    return await _run_locked(project_id, skip_to_spec)


@router.post("/clear-error")
async def clear_error_route(project_id: str):
    return await _run_locked(project_id, clear_error)


@router.post("/cancel")
async def cancel(project_id: str):
    """Cancel the in-flight suggestion request."""
    return await _run_locked(project_id, cancel_suggestion)
