"""Discovery suggestion provider: the next question plus a proposed answer.

Given the project description, the current phase, the answers so far, and
the accumulated understanding, asks the LLM for the next discovery question
together with a suggested answer the user can accept, edit, or override.

Failures are never retried or papered over with a fallback question: they
surface as ``SuggestionProviderError`` so the orchestrator can put the
discovery machine into its error state.
"""

import json
import logging

from config.settings import PHASE_LABELS
from execution.adaptive_depth import get_depth_config
from execution.llm_client import LLMClientError, LLMUnavailableError, chat
from execution.schema_validator import get_suggestion_errors

logger = logging.getLogger(__name__)

PHASE_GOALS = {
    "discover": (
        "Clarify the problem space: who has the problem, how they cope today, "
        "what success looks like, and why it matters now."
    ),
    "define": (
        "Scope features and requirements: core capabilities, user roles, "
        "data the product owns, integrations, and explicit exclusions."
    ),
    "architect": (
        "Design the system: architecture style, data storage, APIs, "
        "security model, performance targets, and deployment."
    ),
}

SUGGESTION_SYSTEM_PROMPT = """You are a senior product architect running a structured discovery interview.
Ask exactly ONE focused question at a time and propose a concrete, specific answer
the user can accept as-is. Never repeat a question that has already been answered.

Respond with a single JSON object with these keys:
  "question": the next question (string)
  "why": one sentence on why this matters for the specification (string)
  "options": 2-4 short alternative answers, or null
  "field": a short snake_case key naming what this question captures (string)
  "phase_complete": true when this phase has enough information (boolean)
  "proposed_answer": your recommended answer (string)
  "confidence": "high", "medium", or "low"
  "reasoning": why you recommend this answer (string)
  "best_practice_note": an industry best practice worth knowing, or null"""

SUGGESTION_USER_PROMPT = """Project description:
{description}

Complexity: {complexity_label} ({questions_min}-{questions_max} questions across all discovery phases)
Agentic / AI-driven system: {is_agentic}

Current phase: {phase_label}
Phase goal: {phase_goal}
Questions answered in this phase so far: {answered_in_phase}

Answers so far:
{answered}

Current understanding:
{understanding}

Ask the next question for the {phase_label} phase."""


class SuggestionProviderError(Exception):
    """Raised when a discovery suggestion could not be produced."""


def _format_answers(answered_qa: list[dict]) -> str:
    if not answered_qa:
        return "- None yet"
    return "\n".join(
        f"- [{qa['phase']}] {qa['question']} -> {qa['answer']}" for qa in answered_qa
    )


def build_suggestion_prompt(
    description: str,
    phase: str,
    answered_qa: list[dict],
    complexity: str,
    is_agentic: bool,
    understanding: dict,
) -> str:
    """Build the user prompt for the next discovery suggestion.

    Raises:
        ValueError: If the phase is not a discovery phase or the
            complexity is unknown.
    """
    if phase not in PHASE_GOALS:
        raise ValueError(f"No discovery questions are asked in phase '{phase}'")
    config = get_depth_config(complexity)
    return SUGGESTION_USER_PROMPT.format(
        description=description or "Not specified",
        complexity_label=config["label"],
        questions_min=config["questions"]["min"],
        questions_max=config["questions"]["max"],
        is_agentic="yes" if is_agentic else "no",
        phase_label=PHASE_LABELS[phase],
        phase_goal=PHASE_GOALS[phase],
        answered_in_phase=sum(1 for qa in answered_qa if qa["phase"] == phase),
        answered=_format_answers(answered_qa),
        understanding=json.dumps(understanding, indent=2, ensure_ascii=False) if understanding else "{}",
    )


def parse_suggestion_response(raw_json: str) -> dict:
    """Parse and validate the LLM's JSON suggestion.

    Args:
        raw_json: Raw JSON string from the LLM.

    Returns:
        Dict with question, why, options, field, phase_complete,
        proposed_answer, confidence, reasoning, best_practice_note.

    Raises:
        SuggestionProviderError: If the payload is not valid JSON or does
            not match the suggestion schema.
    """
    try:
        data = json.loads(raw_json)
    except (json.JSONDecodeError, TypeError) as e:
        raise SuggestionProviderError(f"Suggestion is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise SuggestionProviderError("Suggestion must be a JSON object")

    data.setdefault("options", None)
    data.setdefault("best_practice_note", None)
    errors = get_suggestion_errors(data)
    if errors:
        raise SuggestionProviderError(f"Invalid suggestion: {'; '.join(errors)}")

    return {
        "question": data["question"].strip(),
        "why": data["why"].strip(),
        "options": data["options"],
        "field": data["field"].strip(),
        "phase_complete": data["phase_complete"],
        "proposed_answer": data["proposed_answer"],
        "confidence": data["confidence"],
        "reasoning": data["reasoning"],
        "best_practice_note": data["best_practice_note"],
    }


def generate_suggestion(
    description: str,
    phase: str,
    answered_qa: list[dict],
    complexity: str,
    is_agentic: bool,
    understanding: dict,
) -> dict:
    """Ask the LLM for the next discovery question and a proposed answer.

    Args:
        description: The project's initial description.
        phase: The current discovery phase.
        answered_qa: Prior answers as dicts with 'phase', 'question', 'answer'.
        complexity: The project's complexity tier.
        is_agentic: Whether the project is an agentic / AI system.
        understanding: The field -> answer map collected so far.

    Returns:
        The parsed suggestion dict (see ``parse_suggestion_response``).

    Raises:
        SuggestionProviderError: If the LLM is unavailable, fails, or
            returns an invalid payload.
    """
    prompt = build_suggestion_prompt(
        description, phase, answered_qa, complexity, is_agentic, understanding,
    )
    try:
        response = chat(
            system_prompt=SUGGESTION_SYSTEM_PROMPT,
            messages=[{"role": "user", "content": prompt}],
            response_format={"type": "json_object"},
        )
    except (LLMUnavailableError, LLMClientError) as e:
        logger.warning("Discovery suggestion request failed: %s", e)
        raise SuggestionProviderError(str(e)) from e
    return parse_suggestion_response(response.content)
