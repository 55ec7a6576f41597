"""Numbered-section parsing and single-section patching for spec documents.

A specification is a markdown document whose top-level sections start with
``## N. Title`` headings. Each section runs from its heading to the next
numbered H2 (or the end of the document). Parsed sections are views over
the exact string they were computed from; recompute after every edit.
"""

import re
from dataclasses import asdict, dataclass, field

SECTION_HEADING = re.compile(r"^## (\d+)\.[ \t]+(.+?)[ \t]*$", re.MULTILINE)

CONTEXT_EXCERPT_CHARS = 500


class SectionNotFoundError(ValueError):
    """Raised when a numbered section does not exist in a document."""


@dataclass
class SpecSubsection:
    """A ``### N.M Title`` block inside a numbered section."""

    number: str
    title: str
    full_heading: str
    content: str
    start_index: int
    end_index: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SpecSection:
    """A numbered section of a markdown document, with absolute offsets."""

    number: int
    title: str
    full_heading: str
    content: str
    start_index: int
    end_index: int
    subsections: list[SpecSubsection] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SectionPatch:
    """Result of replacing one section. Unchanged text when not found."""

    markdown: str
    section_number: int
    found: bool


def count_words(text: str) -> int:
    """Count whitespace-separated words."""
    return len(text.split())


def parse_subsections(
    markdown: str, section_number: int, start: int, end: int
) -> list[SpecSubsection]:
    """Parse ``### N.M`` subsections within one section's byte range.

    Args:
        markdown: The full document text.
        section_number: The parent section number N.
        start: Start offset of the parent section (inclusive).
        end: End offset of the parent section (exclusive).

    Returns:
        Subsections in document order, offsets absolute to ``markdown``.
    """
    pattern = re.compile(
        rf"^### ({section_number}\.\d+)[ \t]+(.+?)[ \t]*$", re.MULTILINE
    )
    matches = list(pattern.finditer(markdown, start, end))
    subsections = []
    for i, match in enumerate(matches):
        sub_end = matches[i + 1].start() if i + 1 < len(matches) else end
        subsections.append(SpecSubsection(
            number=match.group(1),
            title=match.group(2).strip(),
            full_heading=match.group(0).rstrip(),
            content=markdown[match.start():sub_end].rstrip(),
            start_index=match.start(),
            end_index=sub_end,
        ))
    return subsections


def parse_sections(markdown: str) -> list[SpecSection]:
    """Split a markdown document into its numbered sections.

    Text before the first numbered heading belongs to no section.

    Args:
        markdown: The full document text.

    Returns:
        Sections in document order. Each section's ``[start_index,
        end_index)`` range is contiguous with the next one.
    """
    matches = list(SECTION_HEADING.finditer(markdown))
    sections = []
    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(markdown)
        number = int(match.group(1))
        sections.append(SpecSection(
            number=number,
            title=match.group(2).strip(),
            full_heading=match.group(0).rstrip(),
            content=markdown[match.start():end].rstrip(),
            start_index=match.start(),
            end_index=end,
            subsections=parse_subsections(markdown, number, match.start(), end),
        ))
    return sections


def get_section(markdown: str, section_number: int) -> SpecSection | None:
    """Return the first section with the given number, or None."""
    for section in parse_sections(markdown):
        if section.number == section_number:
            return section
    return None


def normalize_section_content(
    new_content: str, section_number: int, full_heading: str
) -> str:
    """Normalize a regenerated fragment before it is spliced in.

    Surrounding whitespace is stripped and the fragment is terminated by
    one blank line. A fragment that does not open with this section's
    heading gets the original heading, so the section stays addressable.
    Anything from a further numbered section heading onward is dropped, so
    the splice never adds sections to the document.

    Args:
        new_content: The replacement markdown fragment.
        section_number: The section being replaced.
        full_heading: The original heading line of that section.

    Returns:
        The fragment as it will appear in the document.
    """
    fragment = new_content.strip()
    first_line, _, rest = fragment.partition("\n")
    match = SECTION_HEADING.match(first_line)
    if match is None:
        fragment = f"{full_heading}\n\n{fragment}" if fragment else full_heading
    elif int(match.group(1)) != section_number:
        fragment = f"{full_heading}\n{rest}"
    body_start = fragment.find("\n")
    if body_start != -1:
        extra = SECTION_HEADING.search(fragment, body_start + 1)
        if extra is not None:
            fragment = fragment[:extra.start()]
    return fragment.rstrip() + "\n\n"


def replace_section(
    markdown: str, section_number: int, new_content: str
) -> SectionPatch:
    """Replace exactly one numbered section, leaving every other byte alone.

    Text before the section's start and after its end is returned
    character for character. When several sections share a number the
    first one is replaced.

    Args:
        markdown: The full document text.
        section_number: The section number N of ``## N. Title``.
        new_content: The replacement markdown for that section.

    Returns:
        SectionPatch with the patched text and ``found=True``, or the
        original text unchanged and ``found=False``.
    """
    section = get_section(markdown, section_number)
    if section is None:
        return SectionPatch(markdown=markdown, section_number=section_number, found=False)

    replacement = normalize_section_content(
        new_content, section_number, section.full_heading
    )
    patched = (
        markdown[:section.start_index]
        + replacement
        + markdown[section.end_index:]
    )
    return SectionPatch(markdown=patched, section_number=section_number, found=True)


def _summary(section: SpecSection | None) -> dict | None:
    if section is None:
        return None
    return {
        "number": section.number,
        "title": section.title,
        "excerpt": section.content[:CONTEXT_EXCERPT_CHARS],
    }


def get_section_context(markdown: str, section_number: int) -> dict:
    """Return a section together with its neighbours, for regeneration prompts.

    Args:
        markdown: The full document text.
        section_number: The section to regenerate.

    Returns:
        Dict with 'section' (the full section dict) and 'previous' / 'next'
        summaries (number, title, excerpt) or None at the document edges.

    Raises:
        SectionNotFoundError: If the section does not exist.
    """
    sections = parse_sections(markdown)
    for i, section in enumerate(sections):
        if section.number == section_number:
            previous = sections[i - 1] if i > 0 else None
            following = sections[i + 1] if i + 1 < len(sections) else None
            return {
                "section": section.to_dict(),
                "previous": _summary(previous),
                "next": _summary(following),
            }
    raise SectionNotFoundError(f"Section {section_number} not found")


def get_spec_stats(markdown: str) -> dict:
    """Return structural statistics for a document.

    Args:
        markdown: The full document text.

    Returns:
        Dict with word_count, section_count, subsection_count,
        code_block_count, and table_row_count.
    """
    sections = parse_sections(markdown)
    return {
        "word_count": count_words(markdown),
        "section_count": len(sections),
        "subsection_count": sum(len(s.subsections) for s in sections),
        "code_block_count": markdown.count("```") // 2,
        "table_row_count": len(re.findall(r"\|.*\|.*\|", markdown)),
    }
