"""Specification document generation and single-section regeneration.

Both collaborators stream markdown from the LLM as text chunks. The
generators return normally only when the model's stream ends; callers
must not parse the text before then.
"""

from typing import Iterator

from config.settings import LLM_SPEC_MAX_TOKENS
from execution.adaptive_depth import get_depth_config, get_spec_sections
from execution.llm_client import stream_chat
from execution.section_parser import get_section_context
from execution.terminology import extract_terminology

SPEC_SYSTEM_PROMPT = """You are a principal engineer writing a build-ready software specification.
Write GitHub-flavoured markdown. Every top-level section starts with a heading of the
exact form "## N. Title" using the numbers and titles you are given, in order.
Use "### N.M Title" for subsections. Be specific: typed fields, tables, HTTP methods
with paths, status codes, numbered user flows, acceptance criteria, measurable targets,
and versioned technology choices. Mark inferred facts with [ASSUMPTION].
Never leave placeholder text."""

SPEC_USER_PROMPT = """Write the complete specification (Version: 1.0) for this project.

{project}

Domain terms to reuse verbatim: {terminology}

Target length: {pages_min}-{pages_max} pages.
Sections, in this order:
{sections}"""

SECTION_SYSTEM_PROMPT = """You are a principal engineer revising one section of a software specification.
Return ONLY the markdown for the requested section, starting with its "## N. Title"
heading. Keep terminology consistent with the rest of the document and do not
repeat content that belongs to other sections. Never leave placeholder text."""

SECTION_USER_PROMPT = """Rewrite section {number} ("{title}") of the specification for this project.

{project}

Domain terms to reuse verbatim: {terminology}

Previous section:
{previous}

Current text of section {number}:
{current}

Next section:
{following}"""


def format_project_snapshot(snapshot: dict) -> str:
    """Render a project snapshot as prompt text.

    Args:
        snapshot: Dict with 'name', 'description', 'complexity',
            'is_agentic', 'answers', and 'phase_summaries'.

    Returns:
        Plain-text project brief.
    """
    lines = [
        f"Project: {snapshot.get('name') or 'Untitled'}",
        f"Description: {snapshot.get('description') or 'Not specified'}",
        f"Complexity: {snapshot.get('complexity')}",
        f"Agentic system: {'yes' if snapshot.get('is_agentic') else 'no'}",
        "",
        "Discovery answers:",
    ]
    answers = snapshot.get("answers") or []
    if answers:
        for qa in answers:
            lines.append(f"- [{qa['phase']}] {qa['question']} -> {qa['answer']}")
    else:
        lines.append("- None (discovery was skipped)")
    summaries = snapshot.get("phase_summaries") or []
    if summaries:
        lines.append("")
        lines.append("Phase summaries:")
        for summary in summaries:
            lines.append(f"- {summary}")
    return "\n".join(lines)


def format_terminology(snapshot: dict) -> str:
    """Return the user's domain terms as a comma-separated list, or '(none)'."""
    terms = extract_terminology(snapshot.get("description") or "", snapshot.get("answers"))
    return ", ".join(terms) if terms else "(none)"


def _neighbour(summary: dict | None) -> str:
    if summary is None:
        return "(none)"
    return f"## {summary['number']}. {summary['title']}\n{summary['excerpt']}"


def generate_spec_stream(snapshot: dict, complexity: str) -> Iterator[str]:
    """Stream a full specification document.

    Args:
        snapshot: The project snapshot (see ``format_project_snapshot``).
        complexity: The project's complexity tier.

    Yields:
        Markdown text chunks.

    Raises:
        LLMUnavailableError: If no API key is configured.
        LLMClientError: If the stream fails.
    """
    config = get_depth_config(complexity)
    sections = "\n".join(
        f"## {s['number']}. {s['title']}" for s in get_spec_sections(complexity)
    )
    prompt = SPEC_USER_PROMPT.format(
        project=format_project_snapshot(snapshot),
        terminology=format_terminology(snapshot),
        pages_min=config["spec_pages"]["min"],
        pages_max=config["spec_pages"]["max"],
        sections=sections,
    )
    yield from stream_chat(
        system_prompt=SPEC_SYSTEM_PROMPT,
        messages=[{"role": "user", "content": prompt}],
        max_tokens=LLM_SPEC_MAX_TOKENS,
        temperature=0.4,
    )


def regenerate_section_stream(
    section_number: int,
    section_title: str,
    snapshot: dict,
    current_document: str,
    complexity: str,
) -> Iterator[str]:
    """Stream a replacement for one numbered section.

    Args:
        section_number: The section number N.
        section_title: The section's current title.
        snapshot: The project snapshot.
        current_document: The full current document text.
        complexity: The project's complexity tier.

    Yields:
        Markdown text chunks for that section only.

    Raises:
        SectionNotFoundError: If the section is not in the document.
        LLMUnavailableError: If no API key is configured.
        LLMClientError: If the stream fails.
    """
    context = get_section_context(current_document, section_number)
    prompt = SECTION_USER_PROMPT.format(
        number=section_number,
        title=section_title,
        project=format_project_snapshot(snapshot) + f"\nComplexity tier: {complexity}",
        terminology=format_terminology(snapshot),
        previous=_neighbour(context["previous"]),
        current=context["section"]["content"],
        following=_neighbour(context["next"]),
    )
    yield from stream_chat(
        system_prompt=SECTION_SYSTEM_PROMPT,
        messages=[{"role": "user", "content": prompt}],
        max_tokens=LLM_SPEC_MAX_TOKENS // 4,
        temperature=0.4,
    )
