"""In-flight request registry: at most one request per (project, kind).

Starting a request cancels the previous request of the same kind for the
same project. Workers check their ticket before applying results and drop
anything that arrives after they were superseded.
"""

import logging
import threading
import uuid
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

SUGGESTION = "suggestion"
DOCUMENT = "document"
REQUEST_KINDS = (SUGGESTION, DOCUMENT)


class RequestCancelledError(Exception):
    """Raised when a request was cancelled or superseded before it finished."""


@dataclass
class RequestTicket:
    """Handle for one in-flight request."""

    project_id: str
    kind: str
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    _cancel_event: threading.Event = field(default_factory=threading.Event, repr=False)

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        self._cancel_event.set()


_inflight: dict[tuple[str, str], RequestTicket] = {}
_inflight_lock = threading.Lock()


def _check_kind(kind: str) -> None:
    if kind not in REQUEST_KINDS:
        raise ValueError(f"Invalid request kind: {kind}. Must be one of {list(REQUEST_KINDS)}")


def begin_request(project_id: str, kind: str) -> RequestTicket:
    """Register a new request, cancelling the previous one of the same kind.

    Args:
        project_id: The project's identifier.
        kind: 'suggestion' or 'document'.

    Returns:
        The new RequestTicket.
    """
    _check_kind(kind)
    ticket = RequestTicket(project_id=project_id, kind=kind)
    with _inflight_lock:
        previous = _inflight.get((project_id, kind))
        if previous is not None:
            previous.cancel()
            logger.info(
                "Cancelled %s request %s for %s", kind, previous.request_id, project_id,
            )
        _inflight[(project_id, kind)] = ticket
    return ticket


def is_current(ticket: RequestTicket) -> bool:
    """Return True if the ticket is still the live request for its slot."""
    with _inflight_lock:
        return (
            not ticket.cancelled
            and _inflight.get((ticket.project_id, ticket.kind)) is ticket
        )


def finish_request(ticket: RequestTicket) -> None:
    """Release the slot if the ticket still holds it."""
    with _inflight_lock:
        if _inflight.get((ticket.project_id, ticket.kind)) is ticket:
            del _inflight[(ticket.project_id, ticket.kind)]


def cancel_request(project_id: str, kind: str) -> bool:
    """Cancel the in-flight request of one kind.

    Returns:
        True if a request was cancelled, False if none was in flight.
    """
    _check_kind(kind)
    with _inflight_lock:
        ticket = _inflight.pop((project_id, kind), None)
    if ticket is None:
        return False
    ticket.cancel()
    return True


def get_active_request(project_id: str, kind: str) -> RequestTicket | None:
    """Return the in-flight ticket of one kind, if any."""
    with _inflight_lock:
        return _inflight.get((project_id, kind))


def clear_requests(project_id: str | None = None) -> None:
    """Cancel and forget in-flight requests for one project, or all of them."""
    with _inflight_lock:
        keys = [k for k in _inflight if project_id is None or k[0] == project_id]
        tickets = [_inflight.pop(k) for k in keys]
    for ticket in tickets:
        ticket.cancel()
