"""Section model for budgeted prompt assembly.

A Section is one labeled, independently trimmable piece of prompt text.
Its constraint is an explicit two-variant type instead of an optional slot:

    Unconstrained                      freely droppable, lowest priority
    Constrained(must_keep, min_chars,  caller-declared guardrails
                priority, name)

Both variants expose ``must_keep``, ``floor_chars`` and ``sort_priority`` so
trimming code reads the same attributes regardless of variant.

Usage:
    from prompt_budget.core.sections import Constrained, Section

    rules = Section(
        key="ruleset.principles",
        text=principles_text,
        constraint=Constrained(must_keep=True, min_chars=120, priority=90),
    )
    tone = Section(key="world.tone", text=tone_text)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Union

from prompt_budget.core.categories import Category, classify


@dataclass(frozen=True)
class Unconstrained:
    """Constraint variant for sections with no slot.

    Droppable at will; sorts as priority 0 within its category.
    """

    @property
    def must_keep(self) -> bool:
        return False

    @property
    def min_chars(self) -> Optional[int]:
        return None

    @property
    def priority(self) -> Optional[int]:
        return None

    @property
    def floor_chars(self) -> int:
        return 0

    @property
    def sort_priority(self) -> int:
        return 0


@dataclass(frozen=True)
class Constrained:
    """Constraint variant carrying caller-declared slot data.

    Attributes:
        must_keep: Section may only be shrunk during normal trimming,
            never dropped
        min_chars: Character floor honored during normal trimming
        priority: Higher is more important; lower priorities trim first
            within a category. None sorts as 0.
        name: Cosmetic slot name
    """

    must_keep: bool = False
    min_chars: Optional[int] = None
    priority: Optional[int] = None
    name: Optional[str] = None

    def __post_init__(self) -> None:
        if self.min_chars is not None and self.min_chars < 0:
            raise ValueError(f"min_chars must be non-negative, got {self.min_chars}")

    @property
    def floor_chars(self) -> int:
        """Declared character floor (0 when no min_chars)."""
        return self.min_chars or 0

    @property
    def sort_priority(self) -> int:
        """Ascending sort key; an absent priority counts as 0."""
        return self.priority if self.priority is not None else 0


Constraint = Union[Unconstrained, Constrained]

UNCONSTRAINED = Unconstrained()


@dataclass
class Section:
    """One unit of prompt content.

    Attributes:
        key: Stable dotted identifier; its first segment selects the category
        text: Current content (replaced, never edited in place, by trimming)
        label: Human-readable name, defaults to the key
        constraint: Unconstrained or Constrained slot data
    """

    key: str
    text: str
    label: str = ""
    constraint: Constraint = field(default=UNCONSTRAINED)

    def __post_init__(self) -> None:
        if not self.label:
            self.label = self.key

    @property
    def category(self) -> Category:
        return classify(self.key)

    @property
    def slot(self) -> Optional[Constrained]:
        """Slot data when constrained, else None."""
        if isinstance(self.constraint, Constrained):
            return self.constraint
        return None

    @property
    def must_keep(self) -> bool:
        return self.constraint.must_keep

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Section":
        """Build a Section from ``{key, label, text, slot}``.

        ``slot`` may be absent or null; inside it every field is optional.
        Unknown keys are ignored.
        """
        slot = data.get("slot")
        constraint: Constraint = UNCONSTRAINED
        if slot is not None and not isinstance(slot, Mapping):
            raise TypeError(f"slot must be a mapping or null, got {type(slot).__name__}")
        if slot is not None:
            min_chars = slot.get("min_chars")
            priority = slot.get("priority")
            constraint = Constrained(
                must_keep=bool(slot.get("must_keep", False)),
                min_chars=int(min_chars) if min_chars is not None else None,
                priority=int(priority) if priority is not None else None,
                name=slot.get("name"),
            )
        return cls(
            key=str(data.get("key", "")),
            text=str(data.get("text", "")),
            label=str(data.get("label") or ""),
            constraint=constraint,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        slot = self.slot
        return {
            "key": self.key,
            "label": self.label,
            "text": self.text,
            "slot": (
                {
                    "must_keep": slot.must_keep,
                    "min_chars": slot.min_chars,
                    "priority": slot.priority,
                    "name": slot.name,
                }
                if slot is not None
                else None
            ),
        }


def make_section(
    key: str,
    text: str,
    *,
    must_keep: Optional[bool] = None,
    min_chars: Optional[int] = None,
    priority: Optional[int] = None,
    label: str = "",
) -> Section:
    """Shorthand for building a Section from keyword slot fields.

    Any slot field given produces a Constrained section; none at all
    produces an Unconstrained one.
    """
    if must_keep is None and min_chars is None and priority is None:
        return Section(key=key, text=text, label=label)
    return Section(
        key=key,
        text=text,
        label=label,
        constraint=Constrained(
            must_keep=bool(must_keep),
            min_chars=min_chars,
            priority=priority,
            name=key.rsplit(".", 1)[-1],
        ),
    )


__all__ = [
    "UNCONSTRAINED",
    "Constrained",
    "Constraint",
    "Section",
    "Unconstrained",
    "make_section",
]
