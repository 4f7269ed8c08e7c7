"""Budget allocation engine for sectioned prompts.

Reduces an ordered list of sections until its estimated token total fits a
budget, touching the least important content first.

Modes (entered in order, each only when the previous one is exhausted):
    UNCHANGED: Total already fits; sections returned as given
    NORMAL:    Walk candidates by category precedence, then ascending
               priority, then input order. Droppable sections are removed;
               must-keep sections are shrunk toward their floor.
    FALLBACK:  Same walk over surviving must-keep sections, ignoring
               min_chars floors down to a hard minimum of a few characters
               plus the trim marker.

Guardrail:
    When the declared min_chars of must-keep sections add up to more than
    ``guardrail_ratio`` of the budget (converted with the estimator's
    chars-per-token ratio), a warning is emitted and the floors used for
    this run are scaled down proportionally. Any must-keep section that ends
    below its declared min_chars is reported with ``fallback_trim_applied``.

Infeasible budgets never raise: the best-effort result comes back with
``total_tokens_after > max_tokens`` and ``budget_exceeded_after_fallback``.

Usage:
    from prompt_budget.core.engine import BudgetEngine, apply_budget

    report = apply_budget(sections, max_tokens=6000)

    engine = BudgetEngine(estimator=TiktokenEstimator(), trim_droppable=True)
    report = engine.apply(sections, max_tokens=6000)
"""

from __future__ import annotations

import dataclasses
import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Union

from prompt_budget.core.categories import precedence_rank
from prompt_budget.core.errors import BudgetInputError
from prompt_budget.core.report import (
    BUDGET_EXCEEDED_AFTER_FALLBACK,
    FALLBACK_TRIM_APPLIED,
    BudgetReport,
    TrimAction,
    TrimMode,
    TrimRecord,
)
from prompt_budget.core.sections import Section
from prompt_budget.core.tokens import TokenEstimator, chars_per_token_of, estimate_tokens
from prompt_budget.core.trimmer import TRIM_MARKER, leading_heading_length, trim_with_meta

logger = logging.getLogger(__name__)

# Sum of must-keep min_chars may use at most this share of the budget
DEFAULT_GUARDRAIL_RATIO = 0.75

# Content characters every surviving must-keep section keeps, marker excluded
DEFAULT_FALLBACK_KEEP_CHARS = 16

# Re-trim attempts per section when estimates land above the target
MAX_SHRINK_STEPS = 8

_MODE_ORDER = {TrimMode.UNCHANGED: 0, TrimMode.NORMAL: 1, TrimMode.FALLBACK: 2}

SectionInput = Union[Section, Mapping[str, Any]]


@dataclass
class _Slot:
    """Working state for one input section during a run."""

    index: int
    section: Section
    original_text: str
    original_tokens: int
    tokens: int
    declared_floor: int
    floor: int = 0
    hard_floor: int = 0
    dropped: bool = False

    @property
    def rank(self) -> tuple[int, int, int]:
        return (
            precedence_rank(self.section.category),
            self.section.constraint.sort_priority,
            self.index,
        )


class BudgetEngine:
    """Deterministic token budget enforcement over prompt sections.

    The engine holds configuration only; every call to ``apply`` works on
    its own copies, so one engine may serve concurrent callers.

    Example:
        engine = BudgetEngine(guardrail_ratio=0.75)
        report = engine.apply(sections, max_tokens=200)
        if report.over_budget:
            print("Budget infeasible:", report.warnings)
    """

    def __init__(
        self,
        estimator: Optional[TokenEstimator] = None,
        *,
        guardrail_ratio: float = DEFAULT_GUARDRAIL_RATIO,
        chars_per_token: Optional[float] = None,
        trim_droppable: bool = False,
        soft_slot_tokens: Optional[int] = None,
        fallback_keep_chars: int = DEFAULT_FALLBACK_KEEP_CHARS,
        marker: str = TRIM_MARKER,
    ):
        """Initialize the engine.

        Args:
            estimator: Token estimator (default: ~4 chars/token heuristic)
            guardrail_ratio: Share of the budget the summed min_chars of
                must-keep sections may claim before floors are scaled down
            chars_per_token: Ratio for converting min_chars to tokens.
                Defaults to the estimator's ``chars_per_token`` or 4.
            trim_droppable: Cut a droppable section just enough instead of
                dropping it when a partial cut reaches the budget
            soft_slot_tokens: Warn (non-blocking) about sections larger
                than this many tokens when trimming is needed
            fallback_keep_chars: Content characters a must-keep section
                keeps even in fallback mode
            marker: Suffix appended to shortened text
        """
        if not 0.0 < guardrail_ratio <= 1.0:
            raise ValueError(f"guardrail_ratio must be in (0.0, 1.0], got {guardrail_ratio}")
        if fallback_keep_chars < 0:
            raise ValueError(
                f"fallback_keep_chars must be non-negative, got {fallback_keep_chars}"
            )
        if soft_slot_tokens is not None and soft_slot_tokens <= 0:
            raise ValueError(f"soft_slot_tokens must be positive, got {soft_slot_tokens}")
        if chars_per_token is not None and chars_per_token <= 0:
            raise ValueError(f"chars_per_token must be positive, got {chars_per_token}")

        self.estimator: TokenEstimator = estimator or estimate_tokens
        self.guardrail_ratio = guardrail_ratio
        self.chars_per_token = chars_per_token or chars_per_token_of(self.estimator)
        self.trim_droppable = trim_droppable
        self.soft_slot_tokens = soft_slot_tokens
        self.fallback_keep_chars = fallback_keep_chars
        self.marker = marker

    @classmethod
    def from_settings(
        cls,
        settings: Any,
        estimator: Optional[TokenEstimator] = None,
    ) -> "BudgetEngine":
        """Build an engine from a BudgetSettings instance.

        The estimator named in the settings is built unless one is given.
        """
        if estimator is None:
            estimator = settings.build_estimator()
        return cls(
            estimator,
            guardrail_ratio=settings.guardrail_ratio,
            chars_per_token=settings.chars_per_token,
            trim_droppable=settings.trim_droppable,
            soft_slot_tokens=settings.soft_slot_tokens,
            fallback_keep_chars=settings.fallback_keep_chars,
        )

    def apply(
        self,
        linear_sections: Optional[Iterable[SectionInput]],
        max_tokens: int,
    ) -> BudgetReport:
        """Fit sections into ``max_tokens``.

        Args:
            linear_sections: Sections in prompt order. Mappings in the
                ``Section.from_dict`` shape are accepted.
            max_tokens: Token budget. Zero or negative trims as hard as
                possible.

        Returns:
            BudgetReport with surviving sections in input order

        Raises:
            BudgetInputError: If the list is None, an entry is not a
                section, a key is empty, or max_tokens is not an integer
        """
        sections = _validate_sections(linear_sections)
        if isinstance(max_tokens, bool) or not isinstance(max_tokens, int):
            raise BudgetInputError(
                f"max_tokens must be an integer, got {type(max_tokens).__name__}"
            )
        return _BudgetRun(self, sections, max_tokens).execute()


def _validate_sections(linear_sections: Optional[Iterable[SectionInput]]) -> list[Section]:
    if linear_sections is None:
        raise BudgetInputError("linear_sections must not be None")

    sections: list[Section] = []
    for index, item in enumerate(linear_sections):
        if isinstance(item, Mapping):
            item = Section.from_dict(item)
        if not isinstance(item, Section):
            raise BudgetInputError(
                f"Section at index {index} is {type(item).__name__}, expected Section",
                index=index,
            )
        if not item.key:
            raise BudgetInputError(f"Section at index {index} has an empty key", index=index)
        sections.append(dataclasses.replace(item))
    return sections


class _BudgetRun:
    """State for a single ``BudgetEngine.apply`` call."""

    def __init__(self, engine: BudgetEngine, sections: list[Section], max_tokens: int):
        self.engine = engine
        self.max_tokens = max_tokens
        self.warnings: list[str] = []
        self.mode = TrimMode.UNCHANGED
        self._records: dict[int, TrimRecord] = {}
        self._record_order: list[int] = []

        self.slots: list[_Slot] = []
        for index, section in enumerate(sections):
            tokens = engine.estimator(section.text)
            declared = section.constraint.floor_chars if section.must_keep else 0
            self.slots.append(
                _Slot(
                    index=index,
                    section=section,
                    original_text=section.text,
                    original_tokens=tokens,
                    tokens=tokens,
                    declared_floor=declared,
                )
            )
        self.total_before = sum(slot.tokens for slot in self.slots)
        self.current = self.total_before

    # -------------------------------------------------------------------------
    # Orchestration
    # -------------------------------------------------------------------------

    def execute(self) -> BudgetReport:
        if self.current <= self.max_tokens or self.current == 0:
            logger.debug(
                f"Budget fits: {self.current}/{self.max_tokens} tokens "
                f"across {len(self.slots)} sections"
            )
            return self._report()

        logger.debug(
            f"Over budget by {self.current - self.max_tokens} tokens "
            f"({self.current}/{self.max_tokens}), trimming {len(self.slots)} sections"
        )
        self._check_soft_slots()
        self._assign_floors(self._guardrail_floors())

        order = sorted(self.slots, key=lambda slot: slot.rank)

        self.mode = TrimMode.NORMAL
        self._normal_pass(order)

        if not self._within_budget():
            self._fallback_pass(order)
        else:
            self._flag_declared_floor_breaches()

        if not self._within_budget():
            self.warnings.append(BUDGET_EXCEEDED_AFTER_FALLBACK)
            logger.warning(
                f"Budget unsatisfiable: {self.current}/{self.max_tokens} tokens "
                "remain after fallback"
            )

        report = self._report()
        logger.info(
            f"Budget applied: {report.total_tokens_before} -> {report.total_tokens_after} "
            f"tokens (max {self.max_tokens}, mode {self.mode.value}, "
            f"{len(report.trims)} trims)",
            extra={
                "tokens_before": report.total_tokens_before,
                "tokens_after": report.total_tokens_after,
                "max_tokens": self.max_tokens,
                "mode": self.mode.value,
            },
        )
        return report

    def _normal_pass(self, order: list[_Slot]) -> None:
        for slot in order:
            if self._within_budget():
                return
            if slot.section.must_keep:
                self._shrink(slot, slot.floor, TrimMode.NORMAL)
            elif self.engine.trim_droppable and self.current - self.max_tokens < slot.tokens:
                self._shrink(slot, slot.hard_floor, TrimMode.NORMAL)
                if not self._within_budget():
                    self._drop(slot, TrimMode.NORMAL)
            else:
                self._drop(slot, TrimMode.NORMAL)

    def _fallback_pass(self, order: list[_Slot]) -> None:
        self.mode = TrimMode.FALLBACK
        self.warnings.append(FALLBACK_TRIM_APPLIED)
        logger.warning(
            f"Normal trimming exhausted at {self.current}/{self.max_tokens} tokens, "
            "trimming must-keep sections below min_chars"
        )
        for slot in order:
            if self._within_budget():
                break
            if slot.dropped:
                continue
            self._shrink(slot, slot.hard_floor, TrimMode.FALLBACK)
        for slot in self._breached_slots():
            self._records[slot.index].mode = TrimMode.FALLBACK

    def _breached_slots(self) -> list[_Slot]:
        """Must-keep sections left shorter than their declared min_chars."""
        return [
            slot
            for slot in self.slots
            if not slot.dropped
            and slot.section.must_keep
            and len(slot.section.text) < min(slot.declared_floor, len(slot.original_text))
        ]

    def _flag_declared_floor_breaches(self) -> None:
        """Report must-keep sections the guardrail pushed below min_chars."""
        breached = self._breached_slots()
        if not breached:
            return
        self.mode = TrimMode.FALLBACK
        self.warnings.append(FALLBACK_TRIM_APPLIED)
        for slot in breached:
            self._records[slot.index].mode = TrimMode.FALLBACK
        logger.warning(
            "Guardrail-reduced floors left sections below min_chars: "
            f"{', '.join(slot.section.key for slot in breached)}"
        )

    # -------------------------------------------------------------------------
    # Floors
    # -------------------------------------------------------------------------

    def _guardrail_floors(self) -> list[int]:
        declared = [slot.declared_floor for slot in self.slots]
        total_min_chars = sum(declared)
        if total_min_chars == 0:
            return declared

        ratio = self.engine.guardrail_ratio
        cpt = self.engine.chars_per_token
        if total_min_chars / cpt <= self.max_tokens * ratio:
            return declared

        allowed_chars = max(0, math.floor(self.max_tokens * ratio * cpt))
        self.warnings.append(
            f"min_chars sum ({total_min_chars}) exceeds guardrail ({allowed_chars}), "
            "reducing proportionally"
        )
        logger.warning(
            f"min_chars sum {total_min_chars} exceeds {ratio:.0%} of {self.max_tokens} "
            f"tokens, scaling floors to {allowed_chars} chars"
        )
        scale = allowed_chars / total_min_chars
        return [math.floor(floor * scale) for floor in declared]

    def _assign_floors(self, floors: list[int]) -> None:
        marker_len = len(self.engine.marker)
        keep = self.engine.fallback_keep_chars + marker_len
        for slot, floor in zip(self.slots, floors):
            length = len(slot.original_text)
            # A leading heading line survives every cut
            heading = leading_heading_length(slot.original_text)
            slot.hard_floor = min(length, max(keep, heading + marker_len))
            if slot.section.must_keep:
                slot.floor = min(length, max(floor, slot.hard_floor))
            else:
                slot.floor = 0

    def _check_soft_slots(self) -> None:
        limit = self.engine.soft_slot_tokens
        if limit is None:
            return
        for slot in self.slots:
            if slot.tokens > limit:
                self.warnings.append(
                    f'Slot "{slot.section.key}" exceeds soft budget '
                    f"({slot.tokens} > {limit} tokens). Consider shortening this slot."
                )

    # -------------------------------------------------------------------------
    # Trim steps
    # -------------------------------------------------------------------------

    def _within_budget(self) -> bool:
        return self.current <= self.max_tokens

    def _drop(self, slot: _Slot, mode: TrimMode) -> None:
        removed = slot.tokens
        self.current -= removed
        slot.tokens = 0
        slot.dropped = True
        self._record(slot, TrimAction.DROPPED, mode)
        logger.debug(f"Dropped {slot.section.key} ({removed} tokens), now {self.current}")

    def _shrink(self, slot: _Slot, floor: int, mode: TrimMode) -> None:
        """Shrink a section toward ``floor`` until the budget fits.

        Always trims from the original text so markers never stack.
        """
        overshoot = 0
        for _ in range(MAX_SHRINK_STEPS):
            if self._within_budget():
                return
            text = slot.section.text
            if len(text) <= floor or slot.tokens == 0:
                return

            excess = self.current - self.max_tokens
            chars_per_token = len(text) / slot.tokens
            target = len(text) - math.ceil(excess * chars_per_token) - overshoot
            target = max(target, floor)

            outcome = trim_with_meta(
                slot.original_text, target, floor=floor, marker=self.engine.marker
            )
            if not outcome.trimmed:
                return
            new_tokens = self.engine.estimator(outcome.text)
            if new_tokens >= slot.tokens:
                if target <= floor:
                    return
                overshoot += max(1, len(text) - target)
                continue

            removed = slot.tokens - new_tokens
            self.current -= removed
            slot.tokens = new_tokens
            slot.section.text = outcome.text
            self._record(slot, TrimAction.TRIMMED, mode)
            logger.debug(
                f"Trimmed {slot.section.key} to {len(outcome.text)} chars "
                f"(-{removed} tokens, {mode.value}), now {self.current}"
            )

    def _record(self, slot: _Slot, action: TrimAction, mode: TrimMode) -> None:
        resulting = 0 if slot.dropped else len(slot.section.text)
        record = self._records.get(slot.index)
        if record is None:
            record = TrimRecord(
                key=slot.section.key,
                category=slot.section.category,
                action=action,
                mode=mode,
                removed_tokens=0,
                removed_chars=0,
                resulting_length=resulting,
            )
            self._records[slot.index] = record
            self._record_order.append(slot.index)
        if action == TrimAction.DROPPED:
            record.action = TrimAction.DROPPED
        if _MODE_ORDER[mode] > _MODE_ORDER[record.mode]:
            record.mode = mode
        record.removed_tokens = slot.original_tokens - slot.tokens
        record.removed_chars = len(slot.original_text) - resulting
        record.resulting_length = resulting

    def _report(self) -> BudgetReport:
        survivors = [slot for slot in self.slots if not slot.dropped]
        return BudgetReport(
            sections=[slot.section for slot in survivors],
            trims=[self._records[index] for index in self._record_order],
            warnings=list(self.warnings),
            total_tokens_before=self.total_before,
            total_tokens_after=sum(slot.tokens for slot in survivors),
            max_tokens=self.max_tokens,
            mode=self.mode,
        )


def apply_budget(
    linear_sections: Optional[Iterable[SectionInput]],
    max_tokens: int,
    *,
    estimator: Optional[TokenEstimator] = None,
    **options: Any,
) -> BudgetReport:
    """Fit sections into a token budget with a one-off engine.

    Args:
        linear_sections: Sections in prompt order
        max_tokens: Token budget
        estimator: Token estimator (default: ~4 chars/token heuristic)
        **options: Other BudgetEngine keyword options

    Returns:
        BudgetReport for the run
    """
    return BudgetEngine(estimator, **options).apply(linear_sections, max_tokens)


__all__ = [
    "DEFAULT_FALLBACK_KEEP_CHARS",
    "DEFAULT_GUARDRAIL_RATIO",
    "MAX_SHRINK_STEPS",
    "BudgetEngine",
    "apply_budget",
]
