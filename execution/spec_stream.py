"""Streamed specification generation and section regeneration.

Runs a document stream in a worker thread, buffering chunks append-only
and publishing progress events to an in-memory store that the web layer
relays over SSE. The buffer is parsed only after the stream's explicit end.
On completion the document (or the patched section) is scored first and
then saved with its validation report under the project lock.

A newer document request for the same project cancels the older one; the
older worker stops consuming and nothing it produced is saved.
"""

import logging
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Callable, Iterable

from execution.inflight import (
    DOCUMENT,
    RequestCancelledError,
    RequestTicket,
    begin_request,
    finish_request,
    is_current,
)
from execution.section_parser import (
    SectionNotFoundError,
    SpecSection,
    get_section,
    parse_sections,
    replace_section,
)
from execution.spec_generator import generate_spec_stream, regenerate_section_stream
from execution.spec_validator import validate_spec
from execution.state_manager import (
    advance_phase,
    get_project_lock,
    get_project_snapshot,
    load_state,
    record_section_revision,
    record_spec,
    record_validation,
    save_state,
)

logger = logging.getLogger(__name__)

SPEC_VERSION = "1.0"
GENERATION_PHASES = ("specify", "deliver")
TERMINAL_EVENTS = ("complete", "cancelled", "error")


class StreamIncompleteError(ValueError):
    """Raised when a document is parsed before its stream has ended."""


@dataclass
class StreamEvent:
    """A progress event from a document stream."""

    event_type: str       # "started", "delta", "complete", "cancelled", "error"
    message: str
    request_id: str
    kind: str             # "generate" or "regenerate"
    text: str = ""
    section_number: int | None = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    data: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


class DocumentBuffer:
    """Append-only accumulator for a streamed markdown document."""

    def __init__(self):
        self._chunks: list[str] = []
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def text(self) -> str:
        return "".join(self._chunks)

    def append(self, chunk: str) -> None:
        if self._finished:
            raise ValueError("Cannot append to a stream that has ended")
        self._chunks.append(chunk)

    def finish(self) -> None:
        """Mark the explicit end of the stream."""
        self._finished = True

    def sections(self) -> list[SpecSection]:
        """Parse the buffered document into numbered sections.

        Raises:
            StreamIncompleteError: If the stream has not ended yet.
        """
        if not self._finished:
            raise StreamIncompleteError(
                "The document stream has not ended; partial markdown cannot be parsed"
            )
        return parse_sections(self.text)


# ---------------------------------------------------------------------------
# Progress store
# ---------------------------------------------------------------------------

_stream_events: dict[str, list[StreamEvent]] = {}
_project_streams: dict[str, list[str]] = {}
_stream_lock = threading.Lock()


def begin_stream(project_id: str) -> RequestTicket:
    """Start a document request, cancelling the project's previous one.

    The new request becomes the project's latest stream. Every earlier
    request of the project whose log has reached a terminal event is
    forgotten; a superseded request that is still running keeps its log
    until it ends and the next stream starts.

    Returns:
        The new RequestTicket.
    """
    ticket = begin_request(project_id, DOCUMENT)
    with _stream_lock:
        kept = []
        for request_id in _project_streams.get(ticket.project_id, []):
            events = _stream_events.get(request_id, [])
            if events and events[-1].event_type in TERMINAL_EVENTS:
                _stream_events.pop(request_id, None)
            else:
                kept.append(request_id)
        kept.append(ticket.request_id)
        _project_streams[ticket.project_id] = kept
        _stream_events[ticket.request_id] = []
    return ticket


def get_stream_events(request_id: str) -> list[StreamEvent]:
    """Return a snapshot of one request's events."""
    with _stream_lock:
        return list(_stream_events.get(request_id, []))


def get_latest_request_id(project_id: str) -> str | None:
    """Return the id of the project's most recent document request."""
    with _stream_lock:
        requests = _project_streams.get(project_id)
        return requests[-1] if requests else None


def _append_event(event: StreamEvent) -> None:
    # Events for a forgotten request are dropped
    with _stream_lock:
        events = _stream_events.get(event.request_id)
        if events is not None:
            events.append(event)


def clear_stream_events(project_id: str | None = None) -> None:
    """Forget stored events for one project, or for all projects."""
    with _stream_lock:
        if project_id is None:
            _stream_events.clear()
            _project_streams.clear()
            return
        for request_id in _project_streams.pop(project_id, []):
            _stream_events.pop(request_id, None)


def is_stream_running(project_id: str) -> bool:
    """Return True if the project's latest stream has not reached a terminal event."""
    request_id = get_latest_request_id(project_id)
    if request_id is None:
        return False
    events = get_stream_events(request_id)
    return bool(events) and events[-1].event_type not in TERMINAL_EVENTS


# ---------------------------------------------------------------------------
# Stream consumption
# ---------------------------------------------------------------------------


def consume_stream(
    chunks: Iterable[str],
    ticket: RequestTicket,
    on_chunk: Callable[[str], None] | None = None,
) -> DocumentBuffer | None:
    """Drain a chunk stream into a buffer, stopping early on cancellation.

    Args:
        chunks: The text chunk iterator; exhausting it is the end signal.
        ticket: The request's ticket, checked before every chunk.
        on_chunk: Optional callback per accepted chunk.

    Returns:
        The finished DocumentBuffer, or None if the request was cancelled.
    """
    buffer = DocumentBuffer()
    iterator = iter(chunks)
    try:
        for chunk in iterator:
            if ticket.cancelled:
                return None
            buffer.append(chunk)
            if on_chunk is not None:
                on_chunk(chunk)
    finally:
        close = getattr(iterator, "close", None)
        if close is not None:
            close()
    if ticket.cancelled:
        return None
    buffer.finish()
    return buffer


def _check_current(ticket: RequestTicket | None) -> None:
    if ticket is not None and not is_current(ticket):
        raise RequestCancelledError("Document request was superseded")


def _score(
    markdown: str,
    complexity: str,
    clarity_scorer: Callable[[str, str], dict] | None,
) -> dict:
    return validate_spec(
        markdown, complexity=complexity, clarity_scorer=clarity_scorer,
    ).to_dict()


def complete_spec_generation(
    project_id: str,
    markdown: str,
    clarity_scorer: Callable[[str, str], dict] | None = None,
    ticket: RequestTicket | None = None,
) -> dict:
    """Save a generated document, move the project to 'deliver', and validate it.

    The document is scored before the project lock is taken, so a slow
    clarity scorer never holds up other writers.

    Args:
        project_id: The project's identifier.
        markdown: The complete document text.
        clarity_scorer: Optional clarity scorer for the validation report.
        ticket: When given, the save is skipped if the request was
            superseded.

    Returns:
        The validation report dict.

    Raises:
        RequestCancelledError: If the ticket was superseded.
    """
    _check_current(ticket)
    complexity = load_state(project_id)["project"]["complexity"]
    report = _score(markdown, complexity, clarity_scorer)

    with get_project_lock(project_id):
        _check_current(ticket)
        state = load_state(project_id)
        record_spec(state, markdown, version=SPEC_VERSION)
        if state["current_phase"] == "specify":
            advance_phase(state, "deliver")
        record_validation(state, report)
        save_state(state, project_id)
    return report


def _patch_section(state: dict, section_number: int, fragment: str) -> str:
    if not state.get("spec"):
        raise ValueError("Project has no specification to revise")
    patch = replace_section(state["spec"]["markdown_content"], section_number, fragment)
    if not patch.found:
        raise SectionNotFoundError(f"Section {section_number} not found")
    return patch.markdown


def complete_section_regeneration(
    project_id: str,
    section_number: int,
    fragment: str,
    clarity_scorer: Callable[[str, str], dict] | None = None,
    ticket: RequestTicket | None = None,
) -> dict:
    """Splice a regenerated section into the saved document and re-validate.

    The patched document is scored outside the project lock. If the saved
    document changed while scoring, nothing is written.

    Args:
        project_id: The project's identifier.
        section_number: The section being replaced.
        fragment: The regenerated markdown for that section.
        clarity_scorer: Optional clarity scorer for the validation report.
        ticket: When given, the save is skipped if the request was
            superseded.

    Returns:
        The validation report dict.

    Raises:
        RequestCancelledError: If the ticket was superseded or the saved
            document changed underneath the regeneration.
        ValueError: If the project has no specification.
        SectionNotFoundError: If the section is not in the saved document.
    """
    _check_current(ticket)
    state = load_state(project_id)
    patched = _patch_section(state, section_number, fragment)
    report = _score(patched, state["project"]["complexity"], clarity_scorer)

    with get_project_lock(project_id):
        _check_current(ticket)
        state = load_state(project_id)
        if _patch_section(state, section_number, fragment) != patched:
            raise RequestCancelledError("Specification changed during regeneration")
        record_section_revision(state, section_number, patched)
        record_validation(state, report)
        save_state(state, project_id)
    return report


def _summary_data(report: dict) -> dict:
    return {
        "overall_score": report["overall_score"],
        "grade": report["grade"],
        "passed": report["passed"],
        "word_count": report["word_count"],
    }


def run_spec_generation_sync(
    project_id: str,
    ticket: RequestTicket,
    stream_factory: Callable[[dict, str], Iterable[str]] = generate_spec_stream,
    clarity_scorer: Callable[[str, str], dict] | None = None,
) -> None:
    """Generate the full document, storing progress events as it streams.

    Designed to be called from a background thread.
    """
    kind = "generate"
    _append_event(StreamEvent("started", "Generating specification", ticket.request_id, kind))
    try:
        state = load_state(project_id)
        if state["current_phase"] not in GENERATION_PHASES:
            raise ValueError(
                f"Cannot generate a specification in phase '{state['current_phase']}'"
            )
        chunks = stream_factory(get_project_snapshot(state), state["project"]["complexity"])
        buffer = consume_stream(
            chunks, ticket,
            on_chunk=lambda c: _append_event(
                StreamEvent("delta", "", ticket.request_id, kind, text=c)
            ),
        )
        if buffer is None:
            raise RequestCancelledError("Document request was cancelled")

        sections = buffer.sections()
        report = complete_spec_generation(
            project_id, buffer.text, clarity_scorer, ticket=ticket,
        )
        logger.info(
            "Specification generated for %s: %d sections, score %d",
            project_id, len(sections), report["overall_score"],
        )
        _append_event(StreamEvent(
            "complete", "Specification generated", ticket.request_id, kind,
            data={"section_count": len(sections), **_summary_data(report)},
        ))
    except RequestCancelledError:
        logger.info("Specification generation cancelled for %s", project_id)
        _append_event(StreamEvent("cancelled", "Generation cancelled", ticket.request_id, kind))
    except Exception as e:
        logger.exception("Specification generation failed for %s: %s", project_id, e)
        _append_event(StreamEvent(
            "error", f"Generation failed: {e}", ticket.request_id, kind,
        ))
    finally:
        finish_request(ticket)


def run_section_regeneration_sync(
    project_id: str,
    section_number: int,
    ticket: RequestTicket,
    stream_factory: Callable[..., Iterable[str]] = regenerate_section_stream,
    clarity_scorer: Callable[[str, str], dict] | None = None,
) -> None:
    """Regenerate one section, storing progress events as it streams.

    Designed to be called from a background thread.
    """
    kind = "regenerate"
    _append_event(StreamEvent(
        "started", f"Regenerating section {section_number}", ticket.request_id, kind,
        section_number=section_number,
    ))
    try:
        state = load_state(project_id)
        spec = state.get("spec")
        if not spec:
            raise ValueError("Project has no specification to revise")
        section = get_section(spec["markdown_content"], section_number)
        if section is None:
            raise SectionNotFoundError(f"Section {section_number} not found")

        chunks = stream_factory(
            section_number,
            section.title,
            get_project_snapshot(state),
            spec["markdown_content"],
            state["project"]["complexity"],
        )
        buffer = consume_stream(
            chunks, ticket,
            on_chunk=lambda c: _append_event(StreamEvent(
                "delta", "", ticket.request_id, kind, text=c, section_number=section_number,
            )),
        )
        if buffer is None:
            raise RequestCancelledError("Document request was cancelled")

        report = complete_section_regeneration(
            project_id, section_number, buffer.text, clarity_scorer, ticket=ticket,
        )
        _append_event(StreamEvent(
            "complete", f"Section {section_number} regenerated", ticket.request_id, kind,
            section_number=section_number, data=_summary_data(report),
        ))
    except RequestCancelledError:
        logger.info("Section %d regeneration cancelled for %s", section_number, project_id)
        _append_event(StreamEvent(
            "cancelled", "Regeneration cancelled", ticket.request_id, kind,
            section_number=section_number,
        ))
    except Exception as e:
        logger.exception(
            "Section %d regeneration failed for %s: %s", section_number, project_id, e,
        )
        _append_event(StreamEvent(
            "error", f"Regeneration failed: {e}", ticket.request_id, kind,
            section_number=section_number,
        ))
    finally:
        finish_request(ticket)
