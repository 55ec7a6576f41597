"""Tests for execution/spec_generator.py."""

from unittest.mock import patch

import pytest

from execution.section_parser import SectionNotFoundError
from execution.spec_generator import (
    format_project_snapshot,
    format_terminology,
    generate_spec_stream,
    regenerate_section_stream,
)


@pytest.fixture
def snapshot():
    return {
        "name": "Invoice Desk",
        "description": "Invoices for freelancers",
        "complexity": "simple",
        "is_agentic": False,
        "answers": [
            {"phase": "discover", "question": "Who uses it?", "answer": "Freelancers"},
        ],
        "phase_summaries": ["Discover: users are freelancers."],
        "understanding": {"target_users": "Freelancers"},
    }


class TestFormatSnapshot:
    def test_includes_answers_and_summaries(self, snapshot):
        text = format_project_snapshot(snapshot)
        assert "Project: Invoice Desk" in text
        assert "Agentic system: no" in text
        assert "- [discover] Who uses it? -> Freelancers" in text
        assert "Phase summaries:" in text

    def test_skipped_discovery(self, snapshot):
        snapshot["answers"] = []
        snapshot["phase_summaries"] = []
        text = format_project_snapshot(snapshot)
        assert "- None (discovery was skipped)" in text
        assert "Phase summaries:" not in text


class TestFormatTerminology:
    def test_lists_terms_from_description_and_answers(self, snapshot):
        snapshot["answers"].append(
            {"phase": "define", "question": "Payments?", "answer": "They pay out through the Stripe API"},
        )
        assert format_terminology(snapshot) == "freelancers, Stripe API, API"

    def test_no_terms(self, snapshot):
        snapshot["description"] = "An app"
        snapshot["answers"] = []
        assert format_terminology(snapshot) == "(none)"


class TestGenerateSpecStream:
    def test_streams_llm_chunks(self, snapshot):
        with patch(
            "execution.spec_generator.stream_chat", return_value=iter(["## 1. ", "Product"]),
        ) as mock_stream:
            chunks = list(generate_spec_stream(snapshot, "simple"))

        assert chunks == ["## 1. ", "Product"]
        prompt = mock_stream.call_args[1]["messages"][0]["content"]
        assert "## 1. Product Overview" in prompt
        assert "## 14. Implementation Roadmap" in prompt
        assert "## 10. Agentic Architecture" not in prompt
        assert "Target length: 2-4 pages." in prompt
        assert "Domain terms to reuse verbatim: freelancers" in prompt


class TestRegenerateSectionStream:
    def test_prompt_has_neighbours(self, snapshot, full_spec):
        with patch(
            "execution.spec_generator.stream_chat", return_value=iter(["## 3. Feature"]),
        ) as mock_stream:
            chunks = list(regenerate_section_stream(
                3, "Feature Specification", snapshot, full_spec, "simple",
            ))

        assert chunks == ["## 3. Feature"]
        prompt = mock_stream.call_args[1]["messages"][0]["content"]
        assert 'Rewrite section 3 ("Feature Specification")' in prompt
        assert "## 2. Users & Personas" in prompt
        assert "## 4. Information Architecture" in prompt
        assert "Complexity tier: simple" in prompt
        assert "Domain terms to reuse verbatim: freelancers" in prompt

    def test_first_section_has_no_previous(self, snapshot, full_spec):
        with patch("execution.spec_generator.stream_chat", return_value=iter([])) as mock_stream:
            list(regenerate_section_stream(1, "Product Overview", snapshot, full_spec, "simple"))
        prompt = mock_stream.call_args[1]["messages"][0]["content"]
        assert "Previous section:\n(none)" in prompt

    def test_unknown_section(self, snapshot, full_spec):
        with pytest.raises(SectionNotFoundError):
            list(regenerate_section_stream(15, "Extra", snapshot, full_spec, "simple"))
