"""Adaptive depth configuration for the discovery interview.

Defines complexity tiers (Simple, Moderate, Complex), their question
budgets, the specification section map, and the per-tier validation
expectations. Also holds the phase-completion policy that decides when a
discovery phase has asked enough questions.

Configuration only; the orchestrator applies the verdicts.
"""

import math

from config.settings import COMPLEXITY_LEVELS, DEFAULT_COMPLEXITY, DISCOVERY_PHASES

# ---------------------------------------------------------------------------
# Complexity Tier Definitions
# ---------------------------------------------------------------------------

COMPLEXITY_CONFIG = {
    "simple": {
        "label": "Simple",
        "description": "CRUD apps, landing pages, basic tools",
        "questions": {"min": 3, "max": 5},
        "spec_pages": {"min": 2, "max": 4},
        "sections": [1, 2, 3, 4, 5, 6, 7, 8, 9, 11, 14],
        "min_words": 300,
        "comprehensive_words": 1000,
    },
    "moderate": {
        "label": "Moderate",
        "description": "Multi-feature apps, dashboards, integrations",
        "questions": {"min": 8, "max": 12},
        "spec_pages": {"min": 6, "max": 12},
        "sections": [1, 2, 3, 4, 5, 6, 7, 8, 9, 11, 12, 13, 14],
        "min_words": 500,
        "comprehensive_words": 2000,
    },
    "complex": {
        "label": "Complex",
        "description": "Agentic systems, multi-agent, MCP, real-time",
        "questions": {"min": 15, "max": 20},
        "spec_pages": {"min": 12, "max": 25},
        "sections": [1, 2, 3, 4, 5, 6, 7, 8, 9, 10, 11, 12, 13, 14],
        "min_words": 800,
        "comprehensive_words": 2500,
    },
}

# Word floors used when a document is validated without a complexity tier
DEFAULT_MIN_WORDS = 500
DEFAULT_COMPREHENSIVE_WORDS = 2000

# ---------------------------------------------------------------------------
# Section Map
# ---------------------------------------------------------------------------

SPEC_SECTIONS = {
    1: "Product Overview",
    2: "Users & Personas",
    3: "Feature Specification",
    4: "Information Architecture",
    5: "Data Model",
    6: "API Specification",
    7: "Key User Flows",
    8: "Technical Architecture",
    9: "UI Architecture",
    10: "Agentic Architecture",
    11: "State Management",
    12: "Security Architecture",
    13: "Non-Functional Requirements",
    14: "Implementation Roadmap",
}

# Sections every finished specification is expected to contain
MANDATORY_SECTIONS = [1, 2, 3, 4, 5, 6, 7, 8, 13]

# ---------------------------------------------------------------------------
# Phase completion verdicts
# ---------------------------------------------------------------------------

CONTINUE = "continue"
COMPLETE = "complete"
FORCE_COMPLETE = "force_complete"


def resolve_complexity(complexity: str | None) -> str:
    """Resolve a complexity tier key, defaulting when none is given.

    Args:
        complexity: One of 'simple', 'moderate', 'complex', or None.

    Returns:
        The canonical complexity key.

    Raises:
        ValueError: If complexity is not a known tier.
    """
    if complexity is None:
        return DEFAULT_COMPLEXITY
    resolved = complexity.strip().lower()
    if resolved not in COMPLEXITY_CONFIG:
        raise ValueError(
            f"Invalid complexity: {complexity}. Must be one of {COMPLEXITY_LEVELS}"
        )
    return resolved


def get_depth_config(complexity: str) -> dict:
    """Return the full configuration dict for a complexity tier.

    The per-phase floor and ceiling are derived by dividing the tier's
    total question budget evenly across the discovery phases, rounding up.

    Args:
        complexity: One of 'simple', 'moderate', 'complex'.

    Returns:
        Dict with label, description, questions, spec_pages, sections,
        word floors, and the derived 'min_per_phase' / 'max_per_phase'.

    Raises:
        ValueError: If complexity is not valid.
    """
    resolved = resolve_complexity(complexity)
    config = dict(COMPLEXITY_CONFIG[resolved])
    phase_count = len(DISCOVERY_PHASES)
    config["min_per_phase"] = math.ceil(config["questions"]["min"] / phase_count)
    config["max_per_phase"] = math.ceil(config["questions"]["max"] / phase_count)
    return config


def should_phase_complete(
    complexity: str,
    questions_asked_in_phase: int,
    llm_says_complete: bool,
) -> str:
    """Decide whether the current discovery phase should keep asking.

    Rules, in order:
    1. Below the per-phase floor the phase always continues; the model's
       completeness hint is ignored.
    2. At or above the per-phase ceiling the phase is force-completed.
    3. Otherwise the model's hint decides.

    Args:
        complexity: One of 'simple', 'moderate', 'complex'.
        questions_asked_in_phase: Answered questions so far in this phase.
        llm_says_complete: The advisory phase_complete hint from the model.

    Returns:
        'continue', 'complete', or 'force_complete'.

    Raises:
        ValueError: If complexity is not valid or the count is negative.
    """
    if questions_asked_in_phase < 0:
        raise ValueError(
            f"questions_asked_in_phase must be >= 0, got {questions_asked_in_phase}"
        )
    config = get_depth_config(complexity)
    if questions_asked_in_phase < config["min_per_phase"]:
        return CONTINUE
    if questions_asked_in_phase >= config["max_per_phase"]:
        return FORCE_COMPLETE
    return COMPLETE if llm_says_complete else CONTINUE


def get_spec_sections(complexity: str) -> list[dict]:
    """Return the numbered sections a spec of this tier should contain.

    Args:
        complexity: One of 'simple', 'moderate', 'complex'.

    Returns:
        List of dicts with 'number' and 'title', in document order.
    """
    config = get_depth_config(complexity)
    return [
        {"number": number, "title": SPEC_SECTIONS[number]}
        for number in config["sections"]
    ]


def get_required_sections(complexity: str | None = None) -> list[int]:
    """Return the section numbers validation treats as mandatory.

    Without a tier the full mandatory set applies. With a tier, sections
    the tier never generates are not required.

    Args:
        complexity: Optional complexity tier.

    Returns:
        Sorted list of section numbers.
    """
    if complexity is None:
        return list(MANDATORY_SECTIONS)
    generated = set(get_depth_config(complexity)["sections"])
    return [number for number in MANDATORY_SECTIONS if number in generated]


def get_word_floors(complexity: str | None = None) -> tuple[int, int]:
    """Return the (minimum, comprehensive) word-count floors for validation.

    Args:
        complexity: Optional complexity tier.

    Returns:
        Tuple of (min_words, comprehensive_words).
    """
    if complexity is None:
        return DEFAULT_MIN_WORDS, DEFAULT_COMPREHENSIVE_WORDS
    config = get_depth_config(complexity)
    return config["min_words"], config["comprehensive_words"]
