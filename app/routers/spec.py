"""Specification routes: streamed generation, section regeneration, reading."""

import asyncio
import json

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse, StreamingResponse

from app.dependencies import check_phase, get_project_state
from execution.clarity_scorer import get_default_scorer
from execution.inflight import DOCUMENT, cancel_request
from execution.section_parser import (
    SectionNotFoundError,
    count_words,
    get_section,
    get_section_context,
    get_spec_stats,
    parse_sections,
)
from execution.spec_generator import generate_spec_stream, regenerate_section_stream
from execution.spec_stream import (
    TERMINAL_EVENTS,
    begin_stream,
    get_latest_request_id,
    get_stream_events,
    is_stream_running,
    run_section_regeneration_sync,
    run_spec_generation_sync,
)

router = APIRouter(prefix="/api/projects/{project_id}/spec", tags=["spec"])

POLL_INTERVAL = 0.25  # seconds
MAX_IDLE_SECONDS = 600


def _require_spec(state: dict) -> dict:
    spec = state.get("spec")
    if not spec:
        raise HTTPException(status_code=404, detail="Project has no specification yet")
    return spec


def _started(project_id: str, request_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=202,
        content={
            "status": "started",
            "request_id": request_id,
            "events_url": f"/api/projects/{project_id}/spec/events?request_id={request_id}",
        },
    )


@router.post("/generate", status_code=202)
async def generate(project_id: str):
    """Start streaming a full specification in a background thread.

    A generation or regeneration already running for the project is
    cancelled and its output discarded.
    """
    state = get_project_state(project_id)
    check_phase(state, "specify", "deliver")

    ticket = begin_stream(project_id)
    loop = asyncio.get_event_loop()
    loop.run_in_executor(
        None,
        run_spec_generation_sync,
        project_id,
        ticket,
        generate_spec_stream,
        get_default_scorer(),
    )
    return _started(project_id, ticket.request_id)


@router.post("/sections/{section_number}/regenerate", status_code=202)
async def regenerate_section(project_id: str, section_number: int):
    """Start streaming a replacement for one numbered section."""
    state = get_project_state(project_id)
    check_phase(state, "deliver")
    spec = _require_spec(state)
    if get_section(spec["markdown_content"], section_number) is None:
        raise SectionNotFoundError(f"Section {section_number} not found")

    ticket = begin_stream(project_id)
    loop = asyncio.get_event_loop()
    loop.run_in_executor(
        None,
        run_section_regeneration_sync,
        project_id,
        section_number,
        ticket,
        regenerate_section_stream,
        get_default_scorer(),
    )
    return _started(project_id, ticket.request_id)


@router.get("/events")
async def spec_events(project_id: str, request_id: str | None = None):
    """SSE endpoint streaming one document request's events.

    Defaults to the project's most recent request.
    """
    request_id = request_id or get_latest_request_id(project_id)
    if request_id is None:
        raise HTTPException(status_code=404, detail="No document stream for this project")

    async def event_stream():
        last_count = 0
        idle_cycles = 0
        max_idle = int(MAX_IDLE_SECONDS / POLL_INTERVAL)

        while idle_cycles < max_idle:
            events = get_stream_events(request_id)

            if len(events) > last_count:
                for event in events[last_count:]:
                    yield f"data: {json.dumps(event.to_dict())}\n\n"
                last_count = len(events)
                idle_cycles = 0

                if events[-1].event_type in TERMINAL_EVENTS:
                    break
            else:
                idle_cycles += 1

            await asyncio.sleep(POLL_INTERVAL)

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.post("/cancel")
async def cancel(project_id: str):
    """Cancel the running document request, if any."""
    get_project_state(project_id)
    cancelled = cancel_request(project_id, DOCUMENT)
    return JSONResponse(content={"cancelled": cancelled})


@router.get("")
async def get_spec(project_id: str):
    """Return the stored specification and its structural statistics."""
    state = get_project_state(project_id)
    spec = _require_spec(state)
    return JSONResponse(content={
        **spec,
        "stats": get_spec_stats(spec["markdown_content"]),
        "generating": is_stream_running(project_id),
    })


@router.get("/sections")
async def list_sections(project_id: str):
    """List the document's numbered sections without their bodies."""
    spec = _require_spec(get_project_state(project_id))
    sections = [
        {
            "number": s.number,
            "title": s.title,
            "word_count": count_words(s.content),
            "subsections": [
                {"number": sub.number, "title": sub.title} for sub in s.subsections
            ],
        }
        for s in parse_sections(spec["markdown_content"])
    ]
    return JSONResponse(content={"sections": sections})


@router.get("/sections/{section_number}")
async def get_section_route(project_id: str, section_number: int):
    """Return one section with excerpts of its neighbours."""
    spec = _require_spec(get_project_state(project_id))
    return JSONResponse(content=get_section_context(spec["markdown_content"], section_number))
