"""Tests for execution/section_parser.py: section boundaries and byte-exact patching."""

import pytest

from execution.section_parser import (
    SectionNotFoundError,
    count_words,
    get_section,
    get_section_context,
    get_spec_stats,
    normalize_section_content,
    parse_sections,
    parse_subsections,
    replace_section,
)

DOC = (
    "# Title\n"
    "Preamble text.\n\n"
    "## 1. Overview\n"
    "Intro paragraph.\n\n"
    "### 1.1 Goals\n"
    "Ship it.\n\n"
    "### 1.2 Non-goals\n"
    "Mobile.\n\n"
    "## 2. Users\n"
    "Freelancers.\n\n"
    "## 3. Features\n"
    "Invoices.\n"
)


class TestParseSections:
    def test_finds_numbered_sections_in_order(self):
        sections = parse_sections(DOC)
        assert [(s.number, s.title) for s in sections] == [
            (1, "Overview"), (2, "Users"), (3, "Features"),
        ]

    def test_preamble_belongs_to_no_section(self):
        first = parse_sections(DOC)[0]
        assert DOC[:first.start_index] == "# Title\nPreamble text.\n\n"

    def test_ranges_are_contiguous(self):
        sections = parse_sections(DOC)
        for current, following in zip(sections, sections[1:]):
            assert current.end_index == following.start_index
        assert sections[-1].end_index == len(DOC)

    def test_content_runs_to_next_heading(self):
        section = parse_sections(DOC)[1]
        assert section.content == "## 2. Users\nFreelancers."
        assert section.full_heading == "## 2. Users"

    def test_unnumbered_h2_is_not_a_boundary(self):
        doc = "## 1. One\nText\n## Appendix\nMore\n## 2. Two\nEnd\n"
        sections = parse_sections(doc)
        assert len(sections) == 2
        assert "## Appendix" in sections[0].content

    def test_h3_numbered_heading_is_not_a_section(self):
        doc = "## 1. One\n### 1.1 Sub\n## 2. Two\n"
        assert [s.number for s in parse_sections(doc)] == [1, 2]

    def test_empty_document(self):
        assert parse_sections("") == []

    def test_to_dict(self):
        data = parse_sections(DOC)[0].to_dict()
        assert data["number"] == 1
        assert data["subsections"][0]["number"] == "1.1"


class TestParseSubsections:
    def test_subsections_within_parent_range(self):
        section = parse_sections(DOC)[0]
        subs = section.subsections
        assert [(s.number, s.title) for s in subs] == [("1.1", "Goals"), ("1.2", "Non-goals")]
        assert subs[-1].end_index == section.end_index
        assert subs[0].content == "### 1.1 Goals\nShip it."

    def test_other_sections_subsections_are_ignored(self):
        doc = "## 1. One\n### 2.1 Stray\n## 2. Two\n"
        section = parse_sections(doc)[0]
        assert parse_subsections(doc, 1, section.start_index, section.end_index) == []


class TestGetSection:
    def test_returns_section(self):
        assert get_section(DOC, 3).title == "Features"

    def test_missing_returns_none(self):
        assert get_section(DOC, 9) is None


class TestNormalizeSectionContent:
    def test_strips_and_terminates_with_blank_line(self):
        assert normalize_section_content("\n\n## 2. Users\nBody\n\n\n", 2, "## 2. Users") == (
            "## 2. Users\nBody\n\n"
        )

    def test_prepends_missing_heading(self):
        assert normalize_section_content("Body only", 2, "## 2. Users") == "## 2. Users\n\nBody only\n\n"

    def test_replaces_wrong_section_number(self):
        result = normalize_section_content("## 7. Users\nBody", 2, "## 2. Users")
        assert result == "## 2. Users\nBody\n\n"

    def test_keeps_a_new_title_for_the_same_number(self):
        result = normalize_section_content("## 2. User Personas\nBody", 2, "## 2. Users")
        assert result.startswith("## 2. User Personas\n")


    def test_drops_trailing_numbered_sections(self):
        result = normalize_section_content(
            "## 2. Users\nBody\n\n### 2.1 Roles\nOwner\n\n## 3. Features\nLeaked", 2, "## 2. Users",
        )
        assert result == "## 2. Users\nBody\n\n### 2.1 Roles\nOwner\n\n"

    def test_drops_numbered_section_after_bare_body(self):
        result = normalize_section_content("Body\n## 4. Data\nLeaked", 2, "## 2. Users")
        assert result == "## 2. Users\n\nBody\n\n"


class TestReplaceSection:
    def test_bytes_outside_the_section_are_unchanged(self):
        target = get_section(DOC, 2)
        patch = replace_section(DOC, 2, "## 2. Users\nAgencies and freelancers.")
        assert patch.found is True
        assert patch.markdown.startswith(DOC[:target.start_index])
        assert patch.markdown.endswith(DOC[target.end_index:])

    def test_round_trip_recovers_normalized_content(self):
        new_content = "## 2. Users\n\nAgencies.\n\n### 2.1 Roles\nOwner, viewer."
        before = {s.number: s.content for s in parse_sections(DOC)}
        patch = replace_section(DOC, 2, new_content)
        after = {s.number: s.content for s in parse_sections(patch.markdown)}

        expected = normalize_section_content(new_content, 2, "## 2. Users").rstrip()
        assert after[2] == expected
        assert after[1] == before[1]
        assert after[3] == before[3]

    def test_fragment_with_extra_section_keeps_section_list(self):
        before = parse_sections(DOC)
        patch = replace_section(DOC, 2, "## 2. Users\nAgencies.\n\n## 3. Features\nLeaked")
        after = parse_sections(patch.markdown)
        assert [s.number for s in after] == [s.number for s in before]
        assert after[1].content == "## 2. Users\nAgencies."
        assert after[2].content == before[2].content

    def test_last_section(self):
        patch = replace_section(DOC, 3, "## 3. Features\nInvoices and reminders.")
        assert patch.markdown.endswith("## 3. Features\nInvoices and reminders.\n\n")
        assert get_section(patch.markdown, 2).content == "## 2. Users\nFreelancers."

    def test_not_found_returns_input_unchanged(self):
        patch = replace_section(DOC, 9, "## 9. New\nBody")
        assert patch.found is False
        assert patch.markdown == DOC

    def test_duplicate_numbers_replace_first_only(self):
        doc = "## 1. A\nfirst\n\n## 1. A\nsecond\n"
        patch = replace_section(doc, 1, "## 1. A\nreplaced")
        assert patch.markdown == "## 1. A\nreplaced\n\n## 1. A\nsecond\n"

    def test_fragment_without_heading_stays_addressable(self):
        patch = replace_section(DOC, 2, "Just the body.")
        section = get_section(patch.markdown, 2)
        assert section.title == "Users"
        assert "Just the body." in section.content

    def test_section_count_is_preserved(self, full_spec):
        patch = replace_section(full_spec, 7, "## 7. Key User Flows\n1. Open the app.")
        assert len(parse_sections(patch.markdown)) == len(parse_sections(full_spec))


class TestGetSectionContext:
    def test_middle_section_has_both_neighbours(self):
        context = get_section_context(DOC, 2)
        assert context["section"]["title"] == "Users"
        assert context["previous"]["number"] == 1
        assert context["next"]["title"] == "Features"

    def test_edges_have_no_neighbour(self):
        assert get_section_context(DOC, 1)["previous"] is None
        assert get_section_context(DOC, 3)["next"] is None

    def test_excerpt_is_limited(self):
        doc = "## 1. A\n" + "word " * 400 + "\n## 2. B\nbody\n"
        assert len(get_section_context(doc, 2)["previous"]["excerpt"]) == 500

    def test_missing_section_raises(self):
        with pytest.raises(SectionNotFoundError):
            get_section_context(DOC, 4)


class TestStats:
    def test_count_words(self):
        assert count_words("one  two\nthree") == 3
        assert count_words("") == 0

    def test_spec_stats(self):
        stats = get_spec_stats(DOC)
        assert stats["section_count"] == 3
        assert stats["subsection_count"] == 2
        assert stats["code_block_count"] == 0
        assert stats["word_count"] == count_words(DOC)

    def test_full_spec_stats(self, full_spec):
        stats = get_spec_stats(full_spec)
        assert stats["section_count"] == 14
        assert stats["code_block_count"] == 2
        assert stats["table_row_count"] >= 3
