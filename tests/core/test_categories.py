"""Tests for section categories and trim precedence."""

import pytest

from prompt_budget.core.categories import (
    CATEGORY_PRECEDENCE,
    FALLBACK_CATEGORY,
    Category,
    classify,
    key_prefix,
    precedence_rank,
)


class TestClassify:
    """Tests for classify."""

    @pytest.mark.parametrize(
        "key,expected",
        [
            ("input.player_message", Category.INPUT),
            ("state.inventory", Category.STATE),
            ("npcs.roster", Category.NPCS),
            ("npc.innkeeper.bio", Category.NPCS),
            ("scenario.active_scene", Category.SCENARIO),
            ("world.tone", Category.WORLD),
            ("module.lore", Category.MODULE),
            ("modules.lore", Category.MODULE),
            ("ruleset.principles", Category.RULESET),
            ("core.system", Category.CORE),
        ],
    )
    def test_known_prefixes(self, key, expected):
        """Test that every known prefix maps to its category."""
        assert classify(key) is expected

    @pytest.mark.parametrize("key", ["misc.notes", "World.tone", "", ".world", "worldly.x"])
    def test_unknown_prefix_falls_back(self, key):
        """Test that anything unrecognized lands in the lowest category."""
        assert classify(key) is FALLBACK_CATEGORY
        assert FALLBACK_CATEGORY is Category.INPUT

    def test_key_without_dot_uses_whole_key(self):
        """Test that a bare category name classifies."""
        assert classify("core") is Category.CORE
        assert key_prefix("core") == "core"

    def test_only_first_segment_matters(self):
        """Test that nested segments do not change the category."""
        assert classify("world.core.ruleset") is Category.WORLD


class TestPrecedence:
    """Tests for trim precedence."""

    def test_order(self):
        """Test least-important-first ordering of all eight categories."""
        assert [c.value for c in CATEGORY_PRECEDENCE] == [
            "input",
            "state",
            "npcs",
            "scenario",
            "world",
            "module",
            "ruleset",
            "core",
        ]

    def test_ranks_are_positions(self):
        """Test that precedence_rank matches the tuple order."""
        assert [precedence_rank(c) for c in CATEGORY_PRECEDENCE] == list(range(8))

    def test_core_is_last(self):
        """Test that core outranks every other category."""
        assert precedence_rank(Category.CORE) == max(precedence_rank(c) for c in Category)

    def test_enum_is_string_valued(self):
        """Test that categories serialize as plain strings."""
        assert Category.NPCS == "npcs"
        assert set(Category) == set(CATEGORY_PRECEDENCE)
