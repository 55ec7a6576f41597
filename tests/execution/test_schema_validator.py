"""Unit tests for execution/schema_validator.py."""

import pytest
from jsonschema import ValidationError

from config.settings import PROJECT_STATE_SCHEMA
from execution.schema_validator import (
    get_clarity_errors,
    get_state_validation_errors,
    get_suggestion_errors,
    is_valid_project_state,
    load_schema,
    validate_against_schema,
)
from execution.state_manager import initialize_state


@pytest.fixture
def sample_state(tmp_output_dir):
    return initialize_state("A blog for recipes", complexity="simple")


class TestLoadSchema:
    def test_load_valid_schema(self):
        schema = load_schema(PROJECT_STATE_SCHEMA)
        assert schema["type"] == "object"

    def test_load_missing_schema(self):
        with pytest.raises(FileNotFoundError):
            load_schema("nonexistent_schema.json")


class TestProjectState:
    def test_new_state_is_valid(self, sample_state):
        assert validate_against_schema(sample_state, PROJECT_STATE_SCHEMA) is True
        assert is_valid_project_state(sample_state) is True

    def test_state_with_spec_is_valid(self, sample_state, full_spec):
        from execution.state_manager import record_spec

        record_spec(sample_state, full_spec)
        assert get_state_validation_errors(sample_state) == []

    def test_missing_project(self, sample_state):
        del sample_state["project"]
        with pytest.raises(ValidationError):
            validate_against_schema(sample_state, PROJECT_STATE_SCHEMA)

    def test_invalid_phase(self, sample_state):
        sample_state["current_phase"] = "launch"
        errors = get_state_validation_errors(sample_state)
        assert len(errors) == 1
        assert errors[0].startswith("current_phase:")

    def test_invalid_complexity(self, sample_state):
        sample_state["project"]["complexity"] = "huge"
        assert is_valid_project_state(sample_state) is False

    def test_invalid_message_role(self, sample_state):
        sample_state["discovery"]["messages"] = [{
            "id": "m1", "role": "robot", "type": "question", "content": "Q?",
            "phase": "discover", "timestamp": "2026-01-01T00:00:00+00:00",
        }]
        errors = get_state_validation_errors(sample_state)
        assert errors and errors[0].startswith("discovery.messages.0.role")

    def test_multiple_errors(self):
        assert len(get_state_validation_errors({})) >= 5


class TestPayloadSchemas:
    def test_valid_suggestion(self, suggestion_payload):
        assert get_suggestion_errors(suggestion_payload) == []

    def test_suggestion_bad_confidence(self, suggestion_payload):
        suggestion_payload["confidence"] = "sure"
        assert get_suggestion_errors(suggestion_payload)

    def test_clarity_requires_scores(self):
        errors = get_clarity_errors({"overall": 5, "issues": [], "suggestions": []})
        assert errors == ["root: 'scores' is a required property"]
