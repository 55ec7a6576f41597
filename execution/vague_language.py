"""Vague-language and placeholder detection for specification documents.

Detects weasel words, unresolved placeholder markers, and explicit
assumption flags. All detection is regex-based and deterministic.
"""

import re

# Terms too non-specific for a buildable specification
WEASEL_WORDS = [
    "various",
    "etc",
    "and so on",
    "and more",
    "deal with",
    "take care of",
    "several",
    "appropriate",
    "relevant",
    "necessary",
    "basically",
    "essentially",
    "properly",
    "correctly",
    "things",
    "stuff",
    "aspects",
    "factors",
]

# Unresolved-content markers; matched as whole words in any case
PLACEHOLDER_PATTERNS = [
    r"\bTODO\b",
    r"\bTBD\b",
    r"\bPLACEHOLDER\b",
    r"\bFIXME\b",
    r"\bXXX\b",
]

ASSUMPTION_PATTERN = r"\[ASSUMPTION\]"


def count_weasel_words(text: str) -> dict:
    """Count weasel-word occurrences.

    Args:
        text: The text to scan.

    Returns:
        Dict with 'total' occurrences, 'unique' terms found (in list
        order), and 'occurrences' mapping each found term to its count.
    """
    occurrences = {}
    for word in WEASEL_WORDS:
        matches = re.findall(rf"\b{re.escape(word)}\b", text, re.IGNORECASE)
        if matches:
            occurrences[word] = len(matches)
    return {
        "total": sum(occurrences.values()),
        "unique": list(occurrences),
        "occurrences": occurrences,
    }


def weasel_density(text: str, word_count: int) -> float:
    """Return weasel-word occurrences per 1000 words (0.0 for empty text)."""
    if word_count <= 0:
        return 0.0
    return count_weasel_words(text)["total"] / word_count * 1000


def find_placeholders(text: str) -> list[dict]:
    """Find unresolved placeholder markers.

    Args:
        text: The text to scan.

    Returns:
        List of dicts with 'term', 'position', and 'line' (1-based),
        ordered by position.
    """
    findings = []
    for pattern in PLACEHOLDER_PATTERNS:
        for match in re.finditer(pattern, text, re.IGNORECASE):
            findings.append({
                "term": match.group(),
                "position": match.start(),
                "line": text.count("\n", 0, match.start()) + 1,
            })
    return sorted(findings, key=lambda f: f["position"])


def count_assumptions(text: str) -> int:
    """Count explicit [ASSUMPTION] markers."""
    return len(re.findall(ASSUMPTION_PATTERN, text, re.IGNORECASE))
