"""Section categories and trim precedence.

Every section key maps to exactly one of eight categories through the
prefix before its first dot. Categories are trimmed least-important first:

    input -> state -> npcs -> scenario -> world -> module -> ruleset -> core

Unknown prefixes fall back to ``input`` so every key is classifiable.
"""

from __future__ import annotations

from enum import Enum


class Category(str, Enum):
    """The eight fixed section categories, declared in trim order."""

    INPUT = "input"
    STATE = "state"
    NPCS = "npcs"
    SCENARIO = "scenario"
    WORLD = "world"
    MODULE = "module"
    RULESET = "ruleset"
    CORE = "core"


# Least-important first
CATEGORY_PRECEDENCE: tuple[Category, ...] = (
    Category.INPUT,
    Category.STATE,
    Category.NPCS,
    Category.SCENARIO,
    Category.WORLD,
    Category.MODULE,
    Category.RULESET,
    Category.CORE,
)

_RANKS: dict[Category, int] = {
    category: rank for rank, category in enumerate(CATEGORY_PRECEDENCE)
}

# Assemblers use both spellings for NPC and module keys
_PREFIXES: dict[str, Category] = {
    "input": Category.INPUT,
    "state": Category.STATE,
    "npc": Category.NPCS,
    "npcs": Category.NPCS,
    "scenario": Category.SCENARIO,
    "world": Category.WORLD,
    "module": Category.MODULE,
    "modules": Category.MODULE,
    "ruleset": Category.RULESET,
    "core": Category.CORE,
}

FALLBACK_CATEGORY = CATEGORY_PRECEDENCE[0]


def key_prefix(key: str) -> str:
    """Return the segment of ``key`` before its first dot."""
    return key.split(".", 1)[0]


def classify(key: str) -> Category:
    """Map a section key to its category.

    Args:
        key: Dotted section key, e.g. "world.tone" or "npc.bio"

    Returns:
        Category for the key's first segment. Unrecognized prefixes map to
        the lowest-precedence category.
    """
    category = _PREFIXES.get(key_prefix(key))
    if category is None:
        return FALLBACK_CATEGORY
    return category


def precedence_rank(category: Category) -> int:
    """Sort rank for a category: 0 is trimmed first, 7 last."""
    return _RANKS[category]


__all__ = [
    "CATEGORY_PRECEDENCE",
    "FALLBACK_CATEGORY",
    "Category",
    "classify",
    "key_prefix",
    "precedence_rank",
]
