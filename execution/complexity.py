"""Heuristic complexity classification for a project description.

Gives an instant tier suggestion at project creation from keyword
signals. Deterministic: the same description always yields the same result.
"""

import re

AGENTIC_KEYWORDS = [
    "agent", "agents", "llm", "ai", "mcp", "autonomous", "multi-agent",
    "claude", "tool use", "tool_use", "agentic", "orchestrat",
    "crew", "langchain", "autogen", "a2a", "react loop",
    "plan and execute", "reflection", "context window",
]

COMPLEX_SIGNALS = [
    "multi-agent", "orchestrat", "real-time", "realtime", "pipeline",
    "workflow engine", "distributed", "microservice", "event-driven",
    "machine learning", "autonomous", "state machine", "complex",
]

MODERATE_SIGNALS = [
    "dashboard", "admin", "integration", "third-party", "auth",
    "roles", "permissions", "notification", "search", "filter",
    "analytics", "report", "import", "export", "webhook",
    "payment", "subscription", "team", "collaboration",
]

SIMPLE_SIGNALS = [
    "todo", "crud", "landing", "portfolio", "blog", "calculator",
    "converter", "timer", "counter", "form", "survey", "quiz",
    "single page", "simple", "basic", "just a",
]

# Stems that are meant to match as word prefixes ("orchestrat" -> "orchestration")
_PREFIX_SIGNALS = {"orchestrat", "auth"}


def _signal_pattern(signal: str) -> re.Pattern:
    """Compile a word-boundary pattern for a keyword or stem."""
    escaped = re.escape(signal)
    if signal in _PREFIX_SIGNALS:
        return re.compile(rf"\b{escaped}", re.IGNORECASE)
    return re.compile(rf"\b{escaped}\b", re.IGNORECASE)


def _count_signals(text: str, signals: list[str]) -> int:
    return sum(1 for signal in signals if _signal_pattern(signal).search(text))


def is_agentic(description: str) -> bool:
    """Return True if the description mentions agentic or LLM concepts."""
    return _count_signals(description, AGENTIC_KEYWORDS) > 0


def quick_classify(description: str) -> dict:
    """Classify a project description into a complexity tier.

    Agentic projects are always complex. Otherwise the tier with the
    strongest keyword signal wins, falling back to moderate.

    Args:
        description: The user's free-text project description.

    Returns:
        Dict with 'complexity', 'is_agentic', and 'confidence' (0.0-1.0).
    """
    word_count = len(description.split())
    agentic = is_agentic(description)

    if agentic:
        return {"complexity": "complex", "is_agentic": True, "confidence": 0.8}

    complex_score = _count_signals(description, COMPLEX_SIGNALS)
    moderate_score = _count_signals(description, MODERATE_SIGNALS)
    simple_score = _count_signals(description, SIMPLE_SIGNALS)

    if complex_score >= 2 or (complex_score >= 1 and word_count > 50):
        return {"complexity": "complex", "is_agentic": False, "confidence": 0.7}

    if simple_score >= 2 or (simple_score >= 1 and word_count < 20):
        return {"complexity": "simple", "is_agentic": False, "confidence": 0.7}

    if moderate_score >= 2:
        return {"complexity": "moderate", "is_agentic": False, "confidence": 0.7}

    confidence = 0.4 if word_count < 10 else 0.5
    return {"complexity": "moderate", "is_agentic": False, "confidence": confidence}
