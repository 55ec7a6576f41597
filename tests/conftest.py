"""Shared test fixtures for the Spec Forge test suite."""

import pytest

from execution.adaptive_depth import SPEC_SECTIONS

FILLER_SENTENCE = (
    "The ledger service writes each invoice row to the primary database and "
    "records the author, the amount in cents, and the creation timestamp."
)

SECTION_DETAILS = {
    1: (
        "Version: 1.0\n\n"
        "Invoice Desk lets freelancers issue invoices and track payment status.\n\n"
        "Success metrics: 95% of invoices are reconciled within 24 hours."
    ),
    3: (
        "### 3.1 Invoice creation\n\n"
        "Acceptance criteria: GIVEN a signed-in user WHEN they submit an invoice "
        "THEN the ledger stores it with status draft."
    ),
    5: (
        "| Field | Type | Notes |\n"
        "|-------|------|-------|\n"
        "| id | uuid | primary key |\n"
        "| amount_cents | integer | must be positive |\n"
        "| status | enum | draft, sent, paid |"
    ),
    6: (
        "### 6.1 Endpoints\n\n"
        "GET /api/invoices returns the invoice list. POST /api/invoices creates one "
        "and returns 201. Error responses use 400 for invalid input and 404 for "
        "unknown invoices.\n\n"
        "```ts\ninterface InvoiceRequest {\n  amount_cents: number;\n}\n```\n\n"
        "```ts\ninterface InvoiceResponse {\n  id: string;\n  status: string;\n}\n```"
    ),
    7: (
        "1. The user opens the invoice list.\n"
        "2. The user selects an invoice and marks it as sent.\n\n"
        "Edge case: an empty state shows a prompt to create the first invoice."
    ),
    8: "Stack: Python 3.12, FastAPI 0.110, and PostgreSQL 16 on a single host.",
    12: "Authentication uses OAuth with short-lived JWT access tokens.",
    13: "The p95 latency stays under 200ms for 500 concurrent users.",
    14: (
        "Phase 1 ships invoicing; phase 2 adds reminders.\n\n"
        "Risk assessment: each risk lists probability, impact, and mitigation."
    ),
}


def build_spec_document(
    sections: list[int] | None = None,
    filler_sentences: int = 10,
    extra: dict[int, str] | None = None,
) -> str:
    """Build a specification document that passes every structural check.

    Args:
        sections: Section numbers to include, in order (default 1-14).
        filler_sentences: Filler sentences appended to every section.
        extra: Section number -> additional text to append.
    """
    numbers = sections if sections is not None else list(SPEC_SECTIONS)
    parts = ["# Invoice Desk Specification\n"]
    for number in numbers:
        body = [SECTION_DETAILS.get(number, f"This section covers {SPEC_SECTIONS[number].lower()}.")]
        body.append(" ".join([FILLER_SENTENCE] * filler_sentences))
        if extra and number in extra:
            body.append(extra[number])
        parts.append(f"## {number}. {SPEC_SECTIONS[number]}\n\n" + "\n\n".join(body) + "\n")
    return "\n".join(parts)


@pytest.fixture(autouse=True)
def set_test_environment(monkeypatch):
    """Ensure all tests run with ENVIRONMENT=test and no live LLM."""
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setattr("execution.llm_client.OPENAI_API_KEY", "")


@pytest.fixture(autouse=True)
def reset_inflight():
    """Forget in-flight requests and stream events between tests."""
    from execution.inflight import clear_requests
    from execution.spec_stream import clear_stream_events

    yield
    clear_requests()
    clear_stream_events()


@pytest.fixture
def tmp_output_dir(monkeypatch, tmp_path):
    """Redirect OUTPUT_DIR to a temporary directory for test isolation."""
    import config.settings as settings

    monkeypatch.setattr(settings, "OUTPUT_DIR", tmp_path)
    # Also patch it in modules that import OUTPUT_DIR at module level
    import execution.state_manager as sm

    monkeypatch.setattr(sm, "OUTPUT_DIR", tmp_path)
    return tmp_path


@pytest.fixture
def spec_builder():
    """Return the document builder for tests that need variations."""
    return build_spec_document


@pytest.fixture
def full_spec():
    """A 14-section document of roughly 2,900 words that scores 100."""
    return build_spec_document()


@pytest.fixture
def suggestion_payload():
    """A valid suggestion as returned by the suggestion provider."""
    return {
        "question": "Who are the primary users?",
        "why": "Users drive every later decision.",
        "options": ["Freelancers", "Agencies"],
        "field": "target_users",
        "phase_complete": False,
        "proposed_answer": "Freelance designers billing 5-20 clients a month",
        "confidence": "high",
        "reasoning": "The description mentions freelancers.",
        "best_practice_note": None,
    }


@pytest.fixture
def make_provider(suggestion_payload):
    """Build a fake suggestion provider that numbers its fields."""

    def _factory(phase_complete: bool = False):
        calls = []

        def provider(**kwargs):
            calls.append(kwargs)
            payload = dict(suggestion_payload)
            payload["field"] = f"field_{len(calls)}"
            payload["question"] = f"Question {len(calls)}?"
            payload["phase_complete"] = phase_complete
            return payload

        provider.calls = calls
        return provider

    return _factory
