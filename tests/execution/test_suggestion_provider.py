"""Tests for execution/suggestion_provider.py."""

import json
from unittest.mock import patch

import pytest

from execution.llm_client import LLMClientError, LLMResponse, LLMUnavailableError
from execution.suggestion_provider import (
    SuggestionProviderError,
    build_suggestion_prompt,
    generate_suggestion,
    parse_suggestion_response,
)


def _response(payload):
    content = payload if isinstance(payload, str) else json.dumps(payload)
    return LLMResponse(content=content, model="test", usage={}, stop_reason="stop")


def _inputs(**overrides):
    inputs = {
        "description": "An invoicing tool for freelancers",
        "phase": "define",
        "answered_qa": [
            {"phase": "discover", "question": "Who uses it?", "answer": "Freelancers"},
            {"phase": "define", "question": "Core feature?", "answer": "Invoices"},
        ],
        "complexity": "moderate",
        "is_agentic": False,
        "understanding": {"target_users": "Freelancers"},
    }
    inputs.update(overrides)
    return inputs


class TestBuildPrompt:
    def test_includes_context(self):
        prompt = build_suggestion_prompt(**_inputs())
        assert "An invoicing tool for freelancers" in prompt
        assert "Moderate (8-12 questions" in prompt
        assert "Current phase: Define" in prompt
        assert "Questions answered in this phase so far: 1" in prompt
        assert "- [discover] Who uses it? -> Freelancers" in prompt
        assert '"target_users": "Freelancers"' in prompt

    def test_no_answers_yet(self):
        prompt = build_suggestion_prompt(**_inputs(answered_qa=[], understanding={}))
        assert "- None yet" in prompt

    def test_rejects_non_discovery_phase(self):
        with pytest.raises(ValueError, match="specify"):
            build_suggestion_prompt(**_inputs(phase="specify"))


class TestParseResponse:
    def test_valid_payload(self, suggestion_payload):
        result = parse_suggestion_response(json.dumps(suggestion_payload))
        assert result == suggestion_payload

    def test_optional_fields_default_to_none(self, suggestion_payload):
        del suggestion_payload["options"]
        del suggestion_payload["best_practice_note"]
        result = parse_suggestion_response(json.dumps(suggestion_payload))
        assert result["options"] is None
        assert result["best_practice_note"] is None

    def test_strips_question_and_field(self, suggestion_payload):
        suggestion_payload["question"] = "  Who?  "
        suggestion_payload["field"] = " users "
        result = parse_suggestion_response(json.dumps(suggestion_payload))
        assert result["question"] == "Who?"
        assert result["field"] == "users"

    def test_invalid_json(self):
        with pytest.raises(SuggestionProviderError, match="not valid JSON"):
            parse_suggestion_response("not json{")

    def test_not_an_object(self):
        with pytest.raises(SuggestionProviderError, match="JSON object"):
            parse_suggestion_response("[1, 2]")

    @pytest.mark.parametrize("field,value", [
        ("confidence", "certain"),
        ("phase_complete", "yes"),
        ("question", ""),
    ])
    def test_schema_violations(self, suggestion_payload, field, value):
        suggestion_payload[field] = value
        with pytest.raises(SuggestionProviderError, match="Invalid suggestion"):
            parse_suggestion_response(json.dumps(suggestion_payload))

    def test_missing_required_field(self, suggestion_payload):
        del suggestion_payload["proposed_answer"]
        with pytest.raises(SuggestionProviderError, match="proposed_answer"):
            parse_suggestion_response(json.dumps(suggestion_payload))


class TestGenerateSuggestion:
    def test_calls_llm_in_json_mode(self, suggestion_payload):
        with patch(
            "execution.suggestion_provider.chat", return_value=_response(suggestion_payload),
        ) as mock_chat:
            result = generate_suggestion(**_inputs())

        assert result["field"] == "target_users"
        kwargs = mock_chat.call_args[1]
        assert kwargs["response_format"] == {"type": "json_object"}
        assert "Current phase: Define" in kwargs["messages"][0]["content"]

    @pytest.mark.parametrize("error", [
        LLMUnavailableError("OPENAI_API_KEY is not configured"),
        LLMClientError("OpenAI API error: rate limit"),
    ])
    def test_llm_failures_become_provider_errors(self, error):
        with patch("execution.suggestion_provider.chat", side_effect=error):
            with pytest.raises(SuggestionProviderError):
                generate_suggestion(**_inputs())

    def test_invalid_payload_is_not_replaced(self):
        with patch("execution.suggestion_provider.chat", return_value=_response("{}")):
            with pytest.raises(SuggestionProviderError):
                generate_suggestion(**_inputs())
