"""JSON Schema checks for stored projects and LLM payloads.

Three schemas live under config/schemas: the persisted project state, the
discovery suggestion returned by the provider, and the clarity score.
Each schema file is compiled into a validator once and reused.
"""

import json
from functools import lru_cache
from pathlib import Path

from jsonschema import Draft202012Validator, ValidationError

from config.settings import CLARITY_SCHEMA, PROJECT_STATE_SCHEMA, SUGGESTION_SCHEMA


def load_schema(schema_path: str | Path) -> dict:
    """Load a JSON Schema file.

    Raises:
        FileNotFoundError: If the schema file does not exist.
    """
    with open(Path(schema_path), "r", encoding="utf-8") as f:
        return json.load(f)


@lru_cache(maxsize=None)
def _validator(schema_path: str) -> Draft202012Validator:
    return Draft202012Validator(load_schema(schema_path))


def _format_error(error: ValidationError) -> str:
    location = ".".join(str(p) for p in error.absolute_path) or "root"
    return f"{location}: {error.message}"


def validate_against_schema(data: dict, schema_path: str | Path) -> bool:
    """Validate data against a JSON Schema.

    Args:
        data: The data to validate.
        schema_path: Path to the JSON Schema file.

    Returns:
        True if validation passes.

    Raises:
        ValidationError: If validation fails (first error only).
    """
    _validator(str(schema_path)).validate(data)
    return True


def get_validation_errors(data: dict, schema_path: str | Path) -> list[str]:
    """Return every validation error as 'dotted.path: message', ordered by path."""
    errors = sorted(
        _validator(str(schema_path)).iter_errors(data),
        key=lambda e: [str(p) for p in e.absolute_path],
    )
    return [_format_error(error) for error in errors]


def get_state_validation_errors(state: dict) -> list[str]:
    """Return all validation errors for a project state."""
    return get_validation_errors(state, PROJECT_STATE_SCHEMA)


def is_valid_project_state(state: dict) -> bool:
    """Return True if a stored project state matches the state schema."""
    return _validator(str(PROJECT_STATE_SCHEMA)).is_valid(state)


def get_suggestion_errors(payload: dict) -> list[str]:
    """Return validation errors for a discovery suggestion payload."""
    return get_validation_errors(payload, SUGGESTION_SCHEMA)


def get_clarity_errors(payload: dict) -> list[str]:
    """Return validation errors for a clarity score payload."""
    return get_validation_errors(payload, CLARITY_SCHEMA)
