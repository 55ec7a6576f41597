"""Tests for execution/adaptive_depth.py: tiers, per-phase budgets, and the completion policy."""

import pytest

from execution.adaptive_depth import (
    COMPLEXITY_CONFIG,
    COMPLETE,
    CONTINUE,
    FORCE_COMPLETE,
    MANDATORY_SECTIONS,
    SPEC_SECTIONS,
    get_depth_config,
    get_required_sections,
    get_spec_sections,
    get_word_floors,
    resolve_complexity,
    should_phase_complete,
)


class TestComplexityConfig:
    def test_three_tiers_defined(self):
        assert set(COMPLEXITY_CONFIG) == {"simple", "moderate", "complex"}

    @pytest.mark.parametrize("tier,low,high", [
        ("simple", 3, 5),
        ("moderate", 8, 12),
        ("complex", 15, 20),
    ])
    def test_question_budgets(self, tier, low, high):
        assert COMPLEXITY_CONFIG[tier]["questions"] == {"min": low, "max": high}

    def test_fourteen_sections(self):
        assert sorted(SPEC_SECTIONS) == list(range(1, 15))

    def test_complex_tier_generates_every_section(self):
        assert COMPLEXITY_CONFIG["complex"]["sections"] == list(range(1, 15))


class TestResolveComplexity:
    def test_none_defaults_to_moderate(self):
        assert resolve_complexity(None) == "moderate"

    def test_normalizes_case_and_whitespace(self):
        assert resolve_complexity("  Complex ") == "complex"

    def test_unknown_tier_raises(self):
        with pytest.raises(ValueError, match="Invalid complexity"):
            resolve_complexity("enterprise")


class TestPerPhaseBudget:
    @pytest.mark.parametrize("tier,floor,ceiling", [
        ("simple", 1, 2),
        ("moderate", 3, 4),
        ("complex", 5, 7),
    ])
    def test_budget_is_divided_across_three_phases_rounding_up(self, tier, floor, ceiling):
        config = get_depth_config(tier)
        assert config["min_per_phase"] == floor
        assert config["max_per_phase"] == ceiling

    def test_config_is_a_copy(self):
        config = get_depth_config("simple")
        config["label"] = "changed"
        assert COMPLEXITY_CONFIG["simple"]["label"] == "Simple"


class TestShouldPhaseComplete:
    def test_below_floor_ignores_hint(self):
        assert should_phase_complete("moderate", 2, True) == CONTINUE

    def test_below_floor_continues(self):
        assert should_phase_complete("moderate", 0, False) == CONTINUE

    def test_at_floor_follows_hint(self):
        assert should_phase_complete("moderate", 3, True) == COMPLETE
        assert should_phase_complete("moderate", 3, False) == CONTINUE

    def test_at_ceiling_forces_completion(self):
        assert should_phase_complete("moderate", 4, False) == FORCE_COMPLETE

    def test_above_ceiling_forces_completion(self):
        assert should_phase_complete("simple", 9, False) == FORCE_COMPLETE

    @pytest.mark.parametrize("tier", ["simple", "moderate", "complex"])
    def test_never_continues_at_ceiling(self, tier):
        ceiling = get_depth_config(tier)["max_per_phase"]
        for hint in (True, False):
            assert should_phase_complete(tier, ceiling, hint) == FORCE_COMPLETE

    @pytest.mark.parametrize("tier", ["simple", "moderate", "complex"])
    def test_never_completes_below_floor(self, tier):
        floor = get_depth_config(tier)["min_per_phase"]
        for count in range(floor):
            assert should_phase_complete(tier, count, True) == CONTINUE

    def test_negative_count_raises(self):
        with pytest.raises(ValueError, match=">= 0"):
            should_phase_complete("simple", -1, False)

    def test_invalid_tier_raises(self):
        with pytest.raises(ValueError):
            should_phase_complete("huge", 1, False)


class TestSectionSets:
    def test_spec_sections_carry_titles(self):
        sections = get_spec_sections("simple")
        assert sections[0] == {"number": 1, "title": "Product Overview"}
        assert 10 not in [s["number"] for s in sections]

    def test_required_sections_without_tier(self):
        assert get_required_sections() == MANDATORY_SECTIONS

    def test_simple_tier_does_not_require_ungenerated_sections(self):
        assert get_required_sections("simple") == [1, 2, 3, 4, 5, 6, 7, 8]

    def test_moderate_tier_requires_full_mandatory_set(self):
        assert get_required_sections("moderate") == MANDATORY_SECTIONS


class TestWordFloors:
    def test_default_floors(self):
        assert get_word_floors() == (500, 2000)

    @pytest.mark.parametrize("tier,floors", [
        ("simple", (300, 1000)),
        ("moderate", (500, 2000)),
        ("complex", (800, 2500)),
    ])
    def test_tier_floors(self, tier, floors):
        assert get_word_floors(tier) == floors
