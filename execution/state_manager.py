"""Project state persistence for the discovery and specification workflow.

Manages the project state JSON file: initialize, load, save, delete, phase
transitions, and recording of the discovery transcript, the generated
specification, and its validation report. Each project is stored under
OUTPUT_DIR/<project_id>/project_state.json and written atomically.

Also owns the per-project write lock that gives every project a single
writer for load -> change -> save sequences.
"""

import json
import os
import re
import shutil
import tempfile
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path

from config.settings import DISCOVERY_PHASES, OUTPUT_DIR, PHASE_ORDER
from execution.adaptive_depth import resolve_complexity
from execution.complexity import quick_classify
from execution.discovery_machine import (
    DiscoveryState,
    derive_qa_entries,
    migrate_answers_to_messages,
    rebuild_state,
)
from execution.section_parser import get_spec_stats

PROJECT_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
NAME_MAX_CHARS = 60

_project_locks: dict[str, threading.RLock] = {}
_project_locks_guard = threading.Lock()


def _now() -> str:
    """Return current UTC time as ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def _check_project_id(project_id: str) -> None:
    if not PROJECT_ID_PATTERN.match(project_id or ""):
        raise ValueError(f"Invalid project id: {project_id}")


def _state_path(project_id: str) -> Path:
    """Return the path to a project's state file."""
    _check_project_id(project_id)
    return OUTPUT_DIR / project_id / "project_state.json"


def _derive_name(description: str) -> str:
    """Use the first line of the description, shortened, as a project name."""
    first_line = description.strip().splitlines()[0] if description.strip() else ""
    if len(first_line) <= NAME_MAX_CHARS:
        return first_line or "Untitled project"
    return first_line[:NAME_MAX_CHARS].rsplit(" ", 1)[0] + "..."


def get_project_lock(project_id: str) -> threading.RLock:
    """Return the lock that serializes writes to one project."""
    with _project_locks_guard:
        if project_id not in _project_locks:
            _project_locks[project_id] = threading.RLock()
        return _project_locks[project_id]


def initialize_state(
    description: str,
    complexity: str | None = None,
    name: str | None = None,
    is_agentic: bool | None = None,
) -> dict:
    """Create and save a new project.

    Complexity is fixed here for the life of the project. When it is not
    given it is classified from the description.

    Args:
        description: The user's free-text project description.
        complexity: Optional tier: 'simple', 'moderate', or 'complex'.
        name: Optional project name; derived from the description if omitted.
        is_agentic: Optional override of the agentic classification.

    Returns:
        The initialized state dictionary.

    Raises:
        ValueError: If the description is empty or the complexity is invalid.
    """
    if not description or not description.strip():
        raise ValueError("Project description must not be empty")

    classification = quick_classify(description)
    complexity = resolve_complexity(complexity or classification["complexity"])
    now = _now()
    project_id = uuid.uuid4().hex[:12]

    state = {
        "project": {
            "id": project_id,
            "name": (name or "").strip() or _derive_name(description),
            "initial_description": description.strip(),
            "complexity": complexity,
            "is_agentic": classification["is_agentic"] if is_agentic is None else is_agentic,
            "classification": classification,
            "created_at": now,
            "updated_at": now,
        },
        "current_phase": PHASE_ORDER[0],
        "discovery": {
            "messages": [],
            "understanding": {},
            "status": "idle",
            "error": None,
            "tollgates": {phase: False for phase in DISCOVERY_PHASES},
        },
        "spec": None,
        "validation": None,
    }

    save_state(state, project_id)
    return state


def delete_project(project_id: str) -> bool:
    """Delete a project's directory and state file.

    Args:
        project_id: The project's identifier.

    Returns:
        True if the project was deleted, False if it didn't exist.

    Raises:
        ValueError: If the id contains path characters.
        OSError: If deletion fails due to locked files or permissions.
    """
    path = _state_path(project_id)
    if not path.exists():
        return False

    try:
        shutil.rmtree(path.parent)
    except PermissionError as e:
        raise OSError(
            f"Cannot delete project '{project_id}': files are locked. "
            f"Stop any active generation and try again."
        ) from e

    with _project_locks_guard:
        _project_locks.pop(project_id, None)
    return True


def load_state(project_id: str) -> dict:
    """Load project state from the JSON file.

    Args:
        project_id: The project's identifier.

    Returns:
        The state dictionary.

    Raises:
        FileNotFoundError: If the state file does not exist.
        json.JSONDecodeError: If the state file contains invalid JSON.
        ValueError: If the id contains path characters.
    """
    path = _state_path(project_id)
    with open(path, "r", encoding="utf-8") as f:
        state = json.load(f)
    _ensure_discovery(state)
    return state


def save_state(state: dict, project_id: str) -> None:
    """Write state to JSON file with atomic write (write to temp, then rename).

    Args:
        state: The state dictionary to save.
        project_id: The project's identifier.
    """
    state["project"]["updated_at"] = _now()

    path = _state_path(project_id)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_path = tempfile.mkstemp(
        dir=str(path.parent), suffix=".tmp", prefix="state_"
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(state, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, str(path))
    except Exception:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def _ensure_discovery(state: dict) -> dict:
    """Ensure the discovery block exists (older states stored bare Q&A lists)."""
    if "discovery" not in state:
        answers = state.pop("answers", [])
        state["discovery"] = {
            "messages": [m.to_dict() for m in migrate_answers_to_messages(answers)],
            "understanding": {},
            "status": "idle",
            "error": None,
            "tollgates": {phase: False for phase in DISCOVERY_PHASES},
        }
    return state["discovery"]


def advance_phase(state: dict, to_phase: str) -> dict:
    """Move to the next phase with validation.

    Phase transitions must follow the defined order. You cannot skip phases
    or go backward; leaving discovery early goes through the discovery
    machine's skip action instead.

    Args:
        state: The project state dictionary.
        to_phase: The phase to transition to.

    Returns:
        The updated state dictionary.

    Raises:
        ValueError: If the transition is invalid.
    """
    current = state["current_phase"]

    if to_phase not in PHASE_ORDER:
        raise ValueError(f"Invalid phase: {to_phase}")

    current_index = PHASE_ORDER.index(current)
    target_index = PHASE_ORDER.index(to_phase)

    if target_index != current_index + 1:
        raise ValueError(
            f"Invalid transition from '{current}' to '{to_phase}'. "
            f"Next valid phase is '{PHASE_ORDER[current_index + 1]}'"
            if current_index + 1 < len(PHASE_ORDER)
            else f"Cannot advance from '{current}': already at final phase."
        )

    state["current_phase"] = to_phase
    return state


def get_discovery_state(state: dict) -> DiscoveryState:
    """Rebuild the discovery machine state from the stored transcript.

    Args:
        state: The project state dictionary.

    Returns:
        The DiscoveryState at the project's current phase.
    """
    discovery = _ensure_discovery(state)
    return rebuild_state(
        discovery["messages"],
        state["current_phase"],
        understanding=discovery.get("understanding"),
        status=discovery.get("status", "idle"),
        error=discovery.get("error"),
    )


def record_discovery(state: dict, discovery_state: DiscoveryState) -> dict:
    """Store the discovery machine state and mirror its phase onto the project.

    Args:
        state: The project state dictionary.
        discovery_state: The machine state to persist.

    Returns:
        The updated state dictionary.
    """
    discovery = _ensure_discovery(state)
    discovery["messages"] = [m.to_dict() for m in discovery_state.messages]
    discovery["understanding"] = dict(discovery_state.understanding)
    discovery["status"] = discovery_state.status
    discovery["error"] = discovery_state.error
    state["current_phase"] = discovery_state.current_phase
    return state


def mark_discovery_tollgate(state: dict, phase: str) -> dict:
    """Record that a discovery phase was completed.

    Raises:
        ValueError: If the phase is not a discovery phase.
    """
    if phase not in DISCOVERY_PHASES:
        raise ValueError(f"Not a discovery phase: {phase}")
    discovery = _ensure_discovery(state)
    discovery.setdefault("tollgates", {})[phase] = True
    return state


def get_project_snapshot(state: dict) -> dict:
    """Return the project facts the document generators need.

    Args:
        state: The project state dictionary.

    Returns:
        Dict with name, description, complexity, is_agentic, answers
        (question/answer pairs), phase_summaries, and understanding.
    """
    discovery = get_discovery_state(state)
    return {
        "name": state["project"]["name"],
        "description": state["project"]["initial_description"],
        "complexity": state["project"]["complexity"],
        "is_agentic": state["project"]["is_agentic"],
        "answers": derive_qa_entries(discovery.messages),
        "phase_summaries": [
            m.content for m in discovery.messages if m.type == "phase_summary"
        ],
        "understanding": dict(discovery.understanding),
    }


def record_spec(state: dict, markdown: str, version: str = "1.0") -> dict:
    """Store a freshly generated specification document.

    Args:
        state: The project state dictionary.
        markdown: The complete document text.
        version: The document version label.

    Returns:
        The updated state dictionary.
    """
    stats = get_spec_stats(markdown)
    state["spec"] = {
        "version": version,
        "markdown_content": markdown,
        "section_count": stats["section_count"],
        "word_count": stats["word_count"],
        "generated_at": _now(),
        "revisions": [],
    }
    return state


def record_section_revision(state: dict, section_number: int, markdown: str) -> dict:
    """Store a document after one section was regenerated.

    Args:
        state: The project state dictionary.
        section_number: The section that was replaced.
        markdown: The complete patched document text.

    Returns:
        The updated state dictionary.

    Raises:
        ValueError: If the project has no specification yet.
    """
    spec = state.get("spec")
    if not spec:
        raise ValueError("Project has no specification to revise")
    stats = get_spec_stats(markdown)
    spec["markdown_content"] = markdown
    spec["section_count"] = stats["section_count"]
    spec["word_count"] = stats["word_count"]
    spec.setdefault("revisions", []).append({
        "section_number": section_number,
        "revised_at": _now(),
    })
    return state


def record_validation(state: dict, report: dict) -> dict:
    """Store the latest validation report (replaces any previous one).

    Args:
        state: The project state dictionary.
        report: A ValidationReport in dict form.

    Returns:
        The updated state dictionary.
    """
    state["validation"] = report
    return state
