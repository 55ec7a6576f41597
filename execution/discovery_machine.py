"""Discovery conversation state machine.

Turns a linear sequence of AI questions/suggestions and user responses into
phase-gated progress. The machine is a pure reducer: ``reduce(state, action)``
returns a new immutable ``DiscoveryState`` and never performs I/O. Ids and
timestamps travel on the actions so replaying the same actions yields the
same state.

Persistence, network calls, and the depth policy are driven by the
orchestrator in ``execution.discovery_session``.
"""

import dataclasses
import uuid
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timezone

from config.settings import DISCOVERY_PHASES, PHASE_LABELS, PHASE_ORDER

ROLES = ("ai", "user", "system")
MESSAGE_TYPES = ("question", "suggestion", "user_response", "phase_summary", "thinking")
USER_ACTIONS = ("accept", "edit", "override")
CONFIDENCE_LEVELS = ("high", "medium", "low")
STATUSES = ("idle", "ai_thinking", "saving", "error")

SKIP_FIELD = "skip_to_spec"
SUMMARY_ANSWER_CHARS = 100


class DiscoveryContractError(ValueError):
    """Raised when an action is not valid for the current discovery state."""


def _now() -> str:
    """Return current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Transcript records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AISuggestion:
    """An AI-proposed answer awaiting accept / edit / override."""

    proposed_answer: str
    confidence: str
    reasoning: str
    best_practice_note: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "AISuggestion":
        return cls(
            proposed_answer=data["proposed_answer"],
            confidence=data.get("confidence", "medium"),
            reasoning=data.get("reasoning", ""),
            best_practice_note=data.get("best_practice_note"),
        )


@dataclass(frozen=True)
class ChatMessage:
    """One immutable entry in the append-only discovery transcript."""

    id: str
    role: str
    type: str
    content: str
    phase: str
    timestamp: str
    field: str | None = None
    why: str | None = None
    options: tuple[str, ...] | None = None
    suggestion: AISuggestion | None = None
    phase_complete: bool | None = None
    user_action: str | None = None

    def to_dict(self) -> dict:
        data = asdict(self)
        if self.options is not None:
            data["options"] = list(self.options)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ChatMessage":
        suggestion = data.get("suggestion")
        options = data.get("options")
        return cls(
            id=data["id"],
            role=data["role"],
            type=data["type"],
            content=data["content"],
            phase=data["phase"],
            timestamp=data["timestamp"],
            field=data.get("field"),
            why=data.get("why"),
            options=tuple(options) if options is not None else None,
            suggestion=AISuggestion.from_dict(suggestion) if suggestion else None,
            phase_complete=data.get("phase_complete"),
            user_action=data.get("user_action"),
        )


@dataclass(frozen=True)
class DiscoveryState:
    """Working state of the discovery interview.

    Counters and the pending suggestion are derivable from ``messages``
    plus ``current_phase``; see ``rebuild_state``.
    """

    messages: tuple[ChatMessage, ...] = ()
    current_phase: str = "discover"
    questions_asked_in_phase: int = 0
    total_questions_asked: int = 0
    understanding: dict = dataclasses.field(default_factory=dict)
    status: str = "idle"
    error: str | None = None
    current_question: str | None = None
    current_field: str | None = None
    current_why: str | None = None
    phase_complete_hint: bool = False

    @property
    def has_pending_suggestion(self) -> bool:
        return self.current_question is not None

    @property
    def is_frozen(self) -> bool:
        return self.current_phase == PHASE_ORDER[-1]

    def to_dict(self) -> dict:
        return {
            "messages": [m.to_dict() for m in self.messages],
            "current_phase": self.current_phase,
            "questions_asked_in_phase": self.questions_asked_in_phase,
            "total_questions_asked": self.total_questions_asked,
            "understanding": dict(self.understanding),
            "status": self.status,
            "error": self.error,
            "current_question": self.current_question,
            "current_field": self.current_field,
            "current_why": self.current_why,
            "phase_complete_hint": self.phase_complete_hint,
        }


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StartThinking:
    """A suggestion request is about to be sent."""


@dataclass(frozen=True)
class AISuggest:
    """The provider answered with the next question and a proposed answer."""

    question: str
    why: str
    field: str
    suggestion: AISuggestion
    phase_complete: bool = False
    options: tuple[str, ...] | None = None
    question_id: str = dataclasses.field(default_factory=_new_id)
    suggestion_id: str = dataclasses.field(default_factory=_new_id)
    timestamp: str = dataclasses.field(default_factory=_now)


@dataclass(frozen=True)
class UserRespond:
    """The user resolved the pending suggestion."""

    answer: str
    action: str = "accept"
    message_id: str = dataclasses.field(default_factory=_new_id)
    timestamp: str = dataclasses.field(default_factory=_now)


@dataclass(frozen=True)
class PhaseComplete:
    """Close the current discovery phase with a summary of its answers."""

    summary: str
    message_id: str = dataclasses.field(default_factory=_new_id)
    timestamp: str = dataclasses.field(default_factory=_now)


@dataclass(frozen=True)
class AdvancePhase:
    """Move to the next phase in PHASE_ORDER."""

    next_phase: str


@dataclass(frozen=True)
class SkipToSpec:
    """Leave discovery early and jump straight to 'specify'."""

    message_id: str = dataclasses.field(default_factory=_new_id)
    timestamp: str = dataclasses.field(default_factory=_now)


@dataclass(frozen=True)
class RestoreSession:
    """Replace the whole state when a project is reopened."""

    messages: tuple[ChatMessage, ...]
    current_phase: str
    questions_asked_in_phase: int
    total_questions_asked: int
    understanding: dict
    status: str = "idle"
    error: str | None = None


@dataclass(frozen=True)
class ReportError:
    """The last suggestion request failed."""

    message: str


@dataclass(frozen=True)
class ClearError:
    """Dismiss the error and return to idle."""


@dataclass(frozen=True)
class CancelThinking:
    """Abandon the in-flight suggestion request."""


# ---------------------------------------------------------------------------
# Transcript queries
# ---------------------------------------------------------------------------


def messages_in_phase(messages, phase: str) -> list[ChatMessage]:
    """Return the messages recorded during one phase, in order."""
    return [m for m in messages if m.phase == phase]


def count_responses(messages, phase: str | None = None) -> int:
    """Count user_response messages, optionally limited to one phase."""
    return sum(
        1 for m in messages
        if m.type == "user_response" and (phase is None or m.phase == phase)
    )


def find_pending_question(messages, phase: str) -> tuple[ChatMessage | None, ChatMessage | None]:
    """Return the unanswered (question, suggestion) pair of a phase, if any.

    Args:
        messages: The transcript.
        phase: The phase to inspect.

    Returns:
        Tuple of (question message, suggestion message); both None when
        every question in the phase has been answered.
    """
    question = None
    suggestion = None
    for message in messages_in_phase(messages, phase):
        if message.type == "question":
            question, suggestion = message, None
        elif message.type == "suggestion" and question is not None:
            suggestion = message
        elif message.type == "user_response":
            question, suggestion = None, None
        elif message.type == "phase_summary":
            question, suggestion = None, None
    return question, suggestion


def check_transcript(messages) -> None:
    """Verify that no phase has more than one unanswered question.

    Raises:
        DiscoveryContractError: If a phase has more answers than questions
            or more than one outstanding question.
    """
    for phase in PHASE_ORDER:
        phase_messages = messages_in_phase(messages, phase)
        outstanding = (
            sum(1 for m in phase_messages if m.type == "question")
            - sum(1 for m in phase_messages if m.type == "user_response")
        )
        if outstanding not in (0, 1):
            raise DiscoveryContractError(
                f"Transcript for phase '{phase}' has {outstanding} unanswered "
                f"questions (must be 0 or 1)"
            )


def summarize_phase(messages, phase: str) -> str:
    """Collapse a phase's answers into a one-line summary.

    Args:
        messages: The transcript.
        phase: The phase to summarize.

    Returns:
        'field: answer' pairs joined by '; ', answers truncated to 100 chars.
    """
    parts = [
        f"{m.field or 'answer'}: {m.content[:SUMMARY_ANSWER_CHARS]}"
        for m in messages_in_phase(messages, phase)
        if m.type == "user_response"
    ]
    if not parts:
        return f"{PHASE_LABELS[phase]} closed without answers."
    return "; ".join(parts)


def derive_qa_entries(messages) -> list[dict]:
    """Pair every answer with the question it resolved.

    Args:
        messages: The transcript.

    Returns:
        List of dicts with id, phase, field, question, answer, user_action,
        and timestamp, in transcript order.
    """
    entries = []
    last_question: dict[str, ChatMessage] = {}
    for message in messages:
        if message.type == "question":
            last_question[message.phase] = message
        elif message.type == "user_response":
            question = last_question.get(message.phase)
            entries.append({
                "id": message.id,
                "phase": message.phase,
                "field": message.field,
                "question": question.content if question else "",
                "answer": message.content,
                "user_action": message.user_action,
                "timestamp": message.timestamp,
            })
    return entries


def migrate_answers_to_messages(answers: list[dict]) -> list[ChatMessage]:
    """Convert a legacy list of Q&A records into a discovery transcript.

    Args:
        answers: Dicts with 'phase', 'question', 'answer', and optional
            'field' / 'timestamp'.

    Returns:
        Question and user_response messages, two per answer.
    """
    messages = []
    for answer in answers:
        timestamp = answer.get("timestamp") or _now()
        field_name = answer.get("field") or "answer"
        messages.append(ChatMessage(
            id=_new_id(), role="ai", type="question",
            content=answer["question"], phase=answer["phase"],
            timestamp=timestamp, field=field_name,
        ))
        messages.append(ChatMessage(
            id=_new_id(), role="user", type="user_response",
            content=answer["answer"], phase=answer["phase"],
            timestamp=timestamp, field=field_name, user_action="accept",
        ))
    return messages


# ---------------------------------------------------------------------------
# Reducer
# ---------------------------------------------------------------------------


def initial_state() -> DiscoveryState:
    """Return an empty discovery state at the first phase."""
    return DiscoveryState()


def _require_discovery_phase(state: DiscoveryState, action_name: str) -> None:
    if state.current_phase not in DISCOVERY_PHASES:
        raise DiscoveryContractError(
            f"{action_name} is only valid during discovery, "
            f"not in phase '{state.current_phase}'"
        )


def _start_thinking(state: DiscoveryState) -> DiscoveryState:
    _require_discovery_phase(state, "START_THINKING")
    if state.status not in ("idle", "error"):
        raise DiscoveryContractError(
            f"Cannot request a suggestion while status is '{state.status}'"
        )
    if state.has_pending_suggestion:
        raise DiscoveryContractError(
            "The pending suggestion must be answered before another is requested"
        )
    return replace(state, status="ai_thinking", error=None)


def _ai_suggest(state: DiscoveryState, action: AISuggest) -> DiscoveryState:
    _require_discovery_phase(state, "AI_SUGGEST")
    if state.status != "ai_thinking":
        raise DiscoveryContractError(
            f"Received a suggestion while status is '{state.status}'"
        )
    if action.suggestion.confidence not in CONFIDENCE_LEVELS:
        raise DiscoveryContractError(
            f"Invalid confidence: {action.suggestion.confidence}. "
            f"Must be one of {list(CONFIDENCE_LEVELS)}"
        )
    question = ChatMessage(
        id=action.question_id,
        role="ai",
        type="question",
        content=action.question,
        phase=state.current_phase,
        timestamp=action.timestamp,
        field=action.field,
        why=action.why,
        options=action.options,
    )
    suggestion = ChatMessage(
        id=action.suggestion_id,
        role="ai",
        type="suggestion",
        content=action.suggestion.proposed_answer,
        phase=state.current_phase,
        timestamp=action.timestamp,
        field=action.field,
        suggestion=action.suggestion,
        phase_complete=action.phase_complete,
    )
    return replace(
        state,
        messages=state.messages + (question, suggestion),
        status="idle",
        error=None,
        current_question=action.question,
        current_field=action.field,
        current_why=action.why,
        phase_complete_hint=action.phase_complete,
    )


def _user_respond(state: DiscoveryState, action: UserRespond) -> DiscoveryState:
    if not state.has_pending_suggestion:
        raise DiscoveryContractError(
            "No pending suggestion to respond to; it was already answered"
        )
    if action.action not in USER_ACTIONS:
        raise DiscoveryContractError(
            f"Invalid user action: {action.action}. Must be one of {list(USER_ACTIONS)}"
        )
    if not action.answer.strip():
        raise DiscoveryContractError("Answer must not be empty")
    response = ChatMessage(
        id=action.message_id,
        role="user",
        type="user_response",
        content=action.answer,
        phase=state.current_phase,
        timestamp=action.timestamp,
        field=state.current_field,
        user_action=action.action,
    )
    understanding = dict(state.understanding)
    if state.current_field:
        understanding[state.current_field] = action.answer
    return replace(
        state,
        messages=state.messages + (response,),
        questions_asked_in_phase=state.questions_asked_in_phase + 1,
        total_questions_asked=state.total_questions_asked + 1,
        understanding=understanding,
        status="idle",
        current_question=None,
        current_field=None,
        current_why=None,
        phase_complete_hint=False,
    )


def _phase_complete(state: DiscoveryState, action: PhaseComplete) -> DiscoveryState:
    _require_discovery_phase(state, "PHASE_COMPLETE")
    if state.status == "ai_thinking":
        raise DiscoveryContractError(
            "Cancel the in-flight suggestion before completing the phase"
        )
    summary = ChatMessage(
        id=action.message_id,
        role="system",
        type="phase_summary",
        content=action.summary,
        phase=state.current_phase,
        timestamp=action.timestamp,
    )
    return replace(state, messages=state.messages + (summary,), status="saving")


def _advance_phase(state: DiscoveryState, action: AdvancePhase) -> DiscoveryState:
    if action.next_phase not in PHASE_ORDER:
        raise DiscoveryContractError(f"Invalid phase: {action.next_phase}")
    if state.status == "ai_thinking":
        raise DiscoveryContractError(
            "Cancel the in-flight suggestion before advancing the phase"
        )
    current_index = PHASE_ORDER.index(state.current_phase)
    if PHASE_ORDER.index(action.next_phase) != current_index + 1:
        raise DiscoveryContractError(
            f"Invalid transition from '{state.current_phase}' to "
            f"'{action.next_phase}'. Next valid phase is "
            f"'{PHASE_ORDER[current_index + 1]}'"
        )
    return replace(
        state,
        current_phase=action.next_phase,
        questions_asked_in_phase=0,
        status="idle",
        error=None,
        current_question=None,
        current_field=None,
        current_why=None,
        phase_complete_hint=False,
    )


def _skip_to_spec(state: DiscoveryState, action: SkipToSpec) -> DiscoveryState:
    _require_discovery_phase(state, "SKIP_TO_SPEC")
    if state.status == "ai_thinking":
        raise DiscoveryContractError(
            "Cancel the in-flight suggestion before skipping to the spec"
        )
    notice = ChatMessage(
        id=action.message_id,
        role="system",
        type="phase_summary",
        content=(
            f"Skipped to specification from {PHASE_LABELS[state.current_phase]} "
            f"after {state.questions_asked_in_phase} answered question(s) in this "
            f"phase and {state.total_questions_asked} in total."
        ),
        phase=state.current_phase,
        timestamp=action.timestamp,
        field=SKIP_FIELD,
    )
    return replace(
        state,
        messages=state.messages + (notice,),
        current_phase="specify",
        questions_asked_in_phase=0,
        status="idle",
        error=None,
        current_question=None,
        current_field=None,
        current_why=None,
        phase_complete_hint=False,
    )


def _restore(action: RestoreSession) -> DiscoveryState:
    if action.current_phase not in PHASE_ORDER:
        raise DiscoveryContractError(f"Invalid phase: {action.current_phase}")
    if action.status not in STATUSES:
        raise DiscoveryContractError(f"Invalid status: {action.status}")
    if action.questions_asked_in_phase < 0 or action.total_questions_asked < 0:
        raise DiscoveryContractError("Question counters must not be negative")
    messages = tuple(action.messages)
    check_transcript(messages)

    question, suggestion = find_pending_question(messages, action.current_phase)
    if question is not None and action.current_phase not in DISCOVERY_PHASES:
        question, suggestion = None, None
    status = action.status
    if question is not None and status == "ai_thinking":
        status = "idle"
    return DiscoveryState(
        messages=messages,
        current_phase=action.current_phase,
        questions_asked_in_phase=action.questions_asked_in_phase,
        total_questions_asked=action.total_questions_asked,
        understanding=dict(action.understanding),
        status=status,
        error=action.error if status == "error" else None,
        current_question=question.content if question else None,
        current_field=question.field if question else None,
        current_why=question.why if question else None,
        phase_complete_hint=bool(suggestion and suggestion.phase_complete),
    )


def reduce(state: DiscoveryState, action) -> DiscoveryState:
    """Apply one action to the discovery state.

    Args:
        state: The current state.
        action: One of the action dataclasses defined in this module.

    Returns:
        The new state. The input state is never modified.

    Raises:
        DiscoveryContractError: If the action is not valid in this state,
            including any action other than RestoreSession once the
            project has reached 'deliver'.
    """
    if isinstance(action, RestoreSession):
        return _restore(action)
    if state.is_frozen:
        raise DiscoveryContractError(
            f"Discovery is read-only once the project reaches "
            f"'{PHASE_ORDER[-1]}' ({type(action).__name__} rejected)"
        )
    if isinstance(action, StartThinking):
        return _start_thinking(state)
    if isinstance(action, AISuggest):
        return _ai_suggest(state, action)
    if isinstance(action, UserRespond):
        return _user_respond(state, action)
    if isinstance(action, PhaseComplete):
        return _phase_complete(state, action)
    if isinstance(action, AdvancePhase):
        return _advance_phase(state, action)
    if isinstance(action, SkipToSpec):
        return _skip_to_spec(state, action)
    if isinstance(action, ReportError):
        return replace(state, status="error", error=action.message)
    if isinstance(action, ClearError):
        if state.status != "error":
            raise DiscoveryContractError("There is no error to clear")
        return replace(state, status="idle", error=None)
    if isinstance(action, CancelThinking):
        if state.status != "ai_thinking":
            return state
        return replace(state, status="idle")
    raise DiscoveryContractError(f"Unknown action: {action!r}")


def rebuild_state(
    messages,
    current_phase: str,
    understanding: dict | None = None,
    status: str = "idle",
    error: str | None = None,
) -> DiscoveryState:
    """Reconstruct the working state from a transcript and the last phase.

    Counters are recounted from the transcript and the pending suggestion
    (if any) is recovered, so the result behaves exactly like the state
    that produced the transcript.

    Args:
        messages: ChatMessage objects or their dict form.
        current_phase: The last known phase.
        understanding: Stored understanding map; derived from the answers
            when omitted.
        status: The last known status.
        error: The last known error message.

    Returns:
        The restored DiscoveryState.
    """
    restored = tuple(
        m if isinstance(m, ChatMessage) else ChatMessage.from_dict(m)
        for m in messages
    )
    if understanding is None:
        understanding = {
            m.field: m.content
            for m in restored
            if m.type == "user_response" and m.field
        }
    return reduce(initial_state(), RestoreSession(
        messages=restored,
        current_phase=current_phase,
        questions_asked_in_phase=count_responses(restored, current_phase),
        total_questions_asked=count_responses(restored),
        understanding=understanding,
        status=status,
        error=error,
    ))
