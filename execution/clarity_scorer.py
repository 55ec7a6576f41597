"""Optional LLM clarity review of a specification excerpt.

Scores a sampled excerpt on specificity, buildability, completeness, and
consistency (0-10 each). The validator treats this scorer as optional:
any exception raised here is logged there and the report is produced
without a clarity section.
"""

import json

from execution.llm_client import chat, is_available
from execution.schema_validator import get_clarity_errors

CLARITY_SYSTEM_PROMPT = """You review software specifications for engineers who must build from them.
Score the excerpt from 0 to 10 on specificity, buildability, completeness, and consistency.

Respond with a single JSON object:
  "scores": {"specificity": n, "buildability": n, "completeness": n, "consistency": n}
  "overall": n
  "issues": up to 5 concrete problems, each naming the exact phrase at fault
  "suggestions": up to 5 concrete rewrites or additions"""

CLARITY_USER_PROMPT = """Review this excerpt from the "{label}" part of a specification:

{excerpt}"""


class ClarityScoreError(Exception):
    """Raised when a clarity score could not be produced."""


def parse_clarity_response(raw_json: str) -> dict:
    """Parse and validate a clarity score payload.

    Raises:
        ClarityScoreError: If the payload is not valid JSON or does not
            match the clarity schema.
    """
    try:
        data = json.loads(raw_json)
    except (json.JSONDecodeError, TypeError) as e:
        raise ClarityScoreError(f"Clarity score is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ClarityScoreError("Clarity score must be a JSON object")
    errors = get_clarity_errors(data)
    if errors:
        raise ClarityScoreError(f"Invalid clarity score: {'; '.join(errors)}")
    return data


def score_clarity(excerpt: str, label: str) -> dict:
    """Score a specification excerpt with the LLM.

    Args:
        excerpt: Up to a few thousand characters of the document.
        label: Which part of the document the excerpt comes from.

    Returns:
        Dict with 'scores', 'overall', 'issues', and 'suggestions'.

    Raises:
        LLMUnavailableError: If no API key is configured.
        LLMClientError: If the API call fails.
        ClarityScoreError: If the response is malformed.
    """
    response = chat(
        system_prompt=CLARITY_SYSTEM_PROMPT,
        messages=[{
            "role": "user",
            "content": CLARITY_USER_PROMPT.format(label=label, excerpt=excerpt),
        }],
        temperature=0.2,
        response_format={"type": "json_object"},
    )
    return parse_clarity_response(response.content)


def get_default_scorer():
    """Return the LLM clarity scorer when the LLM is configured, else None."""
    return score_clarity if is_available() else None
