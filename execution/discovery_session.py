"""Discovery orchestrator: drives the state machine against storage and the LLM.

Each operation loads the project, applies reducer actions, and saves, all
under the project's write lock. The suggestion provider is called outside
the lock; its answer is applied only if the request was not superseded
in the meantime.
"""

import logging
from typing import Callable

from config.settings import PHASE_ORDER
from execution.adaptive_depth import CONTINUE, get_depth_config, should_phase_complete
from execution.discovery_machine import (
    AISuggest,
    AISuggestion,
    AdvancePhase,
    CancelThinking,
    ClearError,
    DiscoveryContractError,
    DiscoveryState,
    PhaseComplete,
    ReportError,
    SkipToSpec,
    StartThinking,
    UserRespond,
    derive_qa_entries,
    reduce,
    summarize_phase,
)
from execution.inflight import (
    SUGGESTION,
    RequestCancelledError,
    begin_request,
    cancel_request,
    finish_request,
    is_current,
)
from execution.state_manager import (
    get_discovery_state,
    get_project_lock,
    load_state,
    mark_discovery_tollgate,
    record_discovery,
    save_state,
)
from execution.suggestion_provider import generate_suggestion

logger = logging.getLogger(__name__)


def _commit(state: dict, project_id: str, discovery: DiscoveryState) -> DiscoveryState:
    record_discovery(state, discovery)
    save_state(state, project_id)
    return discovery


def _close_phase(state: dict, discovery: DiscoveryState) -> tuple[DiscoveryState, str]:
    """Summarize the current phase, mark its tollgate, and move on."""
    phase = discovery.current_phase
    summary = summarize_phase(discovery.messages, phase)
    discovery = reduce(discovery, PhaseComplete(summary=summary))
    mark_discovery_tollgate(state, phase)
    next_phase = PHASE_ORDER[PHASE_ORDER.index(phase) + 1]
    discovery = reduce(discovery, AdvancePhase(next_phase=next_phase))
    logger.info("Discovery phase '%s' complete, advanced to '%s'", phase, next_phase)
    return discovery, next_phase


def load_discovery(project_id: str) -> DiscoveryState:
    """Return the current discovery state of a project.

    Raises:
        FileNotFoundError: If the project does not exist.
    """
    return get_discovery_state(load_state(project_id))


def request_suggestion(
    project_id: str,
    provider: Callable[..., dict] = generate_suggestion,
) -> DiscoveryState:
    """Request the next question and proposed answer for a project.

    A suggestion request already in flight for the project is cancelled
    first. A provider failure moves the machine to 'error' and is re-raised.

    Args:
        project_id: The project's identifier.
        provider: Callable with the suggestion-provider signature.

    Returns:
        The discovery state with the new pending suggestion.

    Raises:
        FileNotFoundError: If the project does not exist.
        DiscoveryContractError: If a suggestion cannot be requested now.
        RequestCancelledError: If a newer request superseded this one.
        SuggestionProviderError: If the provider failed.
    """
    lock = get_project_lock(project_id)
    with lock:
        state = load_state(project_id)
        discovery = get_discovery_state(state)
        if discovery.status == "ai_thinking":
            discovery = reduce(discovery, CancelThinking())
        discovery = reduce(discovery, StartThinking())
        ticket = begin_request(project_id, SUGGESTION)
        _commit(state, project_id, discovery)
        project = state["project"]
        inputs = {
            "description": project["initial_description"],
            "phase": discovery.current_phase,
            "answered_qa": derive_qa_entries(discovery.messages),
            "complexity": project["complexity"],
            "is_agentic": project["is_agentic"],
            "understanding": dict(discovery.understanding),
        }

    try:
        result = provider(**inputs)
    except Exception as e:
        with lock:
            if not is_current(ticket):
                raise RequestCancelledError("Suggestion request was superseded") from e
            state = load_state(project_id)
            discovery = reduce(get_discovery_state(state), ReportError(message=str(e)))
            _commit(state, project_id, discovery)
            finish_request(ticket)
        logger.warning("Suggestion request failed for %s: %s", project_id, e)
        raise

    with lock:
        if not is_current(ticket):
            logger.info("Discarding superseded suggestion for %s", project_id)
            raise RequestCancelledError("Suggestion request was superseded")
        state = load_state(project_id)
        discovery = reduce(get_discovery_state(state), AISuggest(
            question=result["question"],
            why=result["why"],
            field=result["field"],
            suggestion=AISuggestion(
                proposed_answer=result["proposed_answer"],
                confidence=result["confidence"],
                reasoning=result["reasoning"],
                best_practice_note=result.get("best_practice_note"),
            ),
            phase_complete=bool(result["phase_complete"]),
            options=tuple(result["options"]) if result.get("options") else None,
        ))
        _commit(state, project_id, discovery)
        finish_request(ticket)
    return discovery


def submit_response(project_id: str, answer: str, action: str = "accept") -> dict:
    """Record the user's answer and apply the depth policy.

    Args:
        project_id: The project's identifier.
        answer: The accepted, edited, or overriding answer text.
        action: 'accept', 'edit', or 'override'.

    Returns:
        Dict with 'discovery' (DiscoveryState), 'verdict', and
        'advanced_to' (the new phase, or None).

    Raises:
        FileNotFoundError: If the project does not exist.
        DiscoveryContractError: If there is no pending suggestion.
    """
    with get_project_lock(project_id):
        state = load_state(project_id)
        discovery = get_discovery_state(state)
        hint = discovery.phase_complete_hint
        discovery = reduce(discovery, UserRespond(answer=answer, action=action))
        verdict = should_phase_complete(
            state["project"]["complexity"],
            discovery.questions_asked_in_phase,
            hint,
        )
        advanced_to = None
        if verdict != CONTINUE:
            discovery, advanced_to = _close_phase(state, discovery)
        _commit(state, project_id, discovery)
    return {"discovery": discovery, "verdict": verdict, "advanced_to": advanced_to}


def complete_phase(project_id: str) -> DiscoveryState:
    """Close the current discovery phase at the user's request.

    Allowed only once the phase has reached its question floor.

    Raises:
        DiscoveryContractError: If the floor has not been reached.
    """
    with get_project_lock(project_id):
        state = load_state(project_id)
        discovery = get_discovery_state(state)
        floor = get_depth_config(state["project"]["complexity"])["min_per_phase"]
        if discovery.questions_asked_in_phase < floor:
            raise DiscoveryContractError(
                f"Answer at least {floor} question(s) before completing this phase "
                f"({discovery.questions_asked_in_phase} so far)"
            )
        if discovery.status == "ai_thinking":
            cancel_request(project_id, SUGGESTION)
            discovery = reduce(discovery, CancelThinking())
        discovery, _ = _close_phase(state, discovery)
        return _commit(state, project_id, discovery)


def skip_to_spec(project_id: str) -> DiscoveryState:
    """Leave discovery and jump to the 'specify' phase."""
    with get_project_lock(project_id):
        state = load_state(project_id)
        discovery = get_discovery_state(state)
        if discovery.status == "ai_thinking":
            cancel_request(project_id, SUGGESTION)
            discovery = reduce(discovery, CancelThinking())
        discovery = reduce(discovery, SkipToSpec())
        logger.info("Project %s skipped to specification", project_id)
        return _commit(state, project_id, discovery)


def cancel_suggestion(project_id: str) -> DiscoveryState:
    """Cancel an in-flight suggestion request and return to idle."""
    with get_project_lock(project_id):
        cancel_request(project_id, SUGGESTION)
        state = load_state(project_id)
        discovery = reduce(get_discovery_state(state), CancelThinking())
        return _commit(state, project_id, discovery)


def clear_error(project_id: str) -> DiscoveryState:
    """Dismiss a failed suggestion request."""
    with get_project_lock(project_id):
        state = load_state(project_id)
        discovery = reduce(get_discovery_state(state), ClearError())
        return _commit(state, project_id, discovery)
