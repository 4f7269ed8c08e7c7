"""Budget report types and downstream aggregation helpers.

A BudgetReport is created fresh for every engine run and describes what was
trimmed or dropped, in application order, plus warning codes and token
totals. The helpers at the bottom are the summations telemetry consumers
perform over reports (removed tokens per category, per session); they are
plain functions over finished reports and never touch the engine.

Usage:
    from prompt_budget.core.report import summarize_report, tokens_by_category

    report = apply_budget(sections, max_tokens=6000)
    by_scope = tokens_by_category(report)     # {"npcs": 420, "input": 80}
    print(summarize_report(report))
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable

from prompt_budget.core.categories import CATEGORY_PRECEDENCE, Category
from prompt_budget.core.sections import Section

# Warning codes
FALLBACK_TRIM_APPLIED = "fallback_trim_applied"
BUDGET_EXCEEDED_AFTER_FALLBACK = "budget_exceeded_after_fallback"


class TrimMode(str, Enum):
    """Engine modes, each strictly more aggressive than the previous.

    UNCHANGED: Total already within budget; nothing touched
    NORMAL: Category/priority ordered drop-or-shrink respecting floors
    FALLBACK: Same ordering, must-keep floors ignored down to a hard minimum
    """

    UNCHANGED = "unchanged"
    NORMAL = "normal"
    FALLBACK = "fallback"


class TrimAction(str, Enum):
    """What happened to a section."""

    DROPPED = "dropped"
    TRIMMED = "trimmed"


@dataclass
class TrimRecord:
    """One touched section.

    Attributes:
        key: Section key
        category: Section category at trim time
        action: DROPPED or TRIMMED
        mode: Most aggressive mode that touched the section
        removed_tokens: Tokens removed from this section in total
        removed_chars: Characters removed from this section in total
        resulting_length: Character length left (0 when dropped)
    """

    key: str
    category: Category
    action: TrimAction
    mode: TrimMode
    removed_tokens: int
    removed_chars: int
    resulting_length: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "key": self.key,
            "category": self.category.value,
            "action": self.action.value,
            "mode": self.mode.value,
            "removed_tokens": self.removed_tokens,
            "removed_chars": self.removed_chars,
            "resulting_length": self.resulting_length,
        }


@dataclass
class BudgetReport:
    """Output of one allocation run.

    Attributes:
        sections: Surviving sections, in input order
        trims: One record per modified or dropped section, in the order
            trims were first applied
        warnings: Warning codes and guardrail messages
        total_tokens_before: Estimated tokens of the input
        total_tokens_after: Estimated tokens of ``sections``
        max_tokens: Budget the run was asked to meet
        mode: Most aggressive mode the run entered
    """

    sections: list[Section] = field(default_factory=list)
    trims: list[TrimRecord] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    total_tokens_before: int = 0
    total_tokens_after: int = 0
    max_tokens: int = 0
    mode: TrimMode = TrimMode.UNCHANGED

    @property
    def over_budget(self) -> bool:
        return self.total_tokens_after > self.max_tokens

    @property
    def fallback_applied(self) -> bool:
        return FALLBACK_TRIM_APPLIED in self.warnings

    @property
    def removed_tokens(self) -> int:
        return self.total_tokens_before - self.total_tokens_after

    @property
    def dropped_keys(self) -> list[str]:
        return [t.key for t in self.trims if t.action == TrimAction.DROPPED]

    @property
    def utilization(self) -> float:
        """Fraction of the budget used after trimming (may exceed 1.0).

        Returns 1.0 for a non-positive budget with any content left.
        """
        if self.max_tokens <= 0:
            return 1.0 if self.total_tokens_after > 0 else 0.0
        return self.total_tokens_after / self.max_tokens

    def to_dict(self, *, include_text: bool = True) -> dict[str, Any]:
        """Convert to dictionary for serialization.

        Args:
            include_text: Include section text (large) in the output
        """
        sections = []
        for section in self.sections:
            data = section.to_dict()
            if not include_text:
                data.pop("text")
                data["length"] = len(section.text)
            sections.append(data)
        return {
            "sections": sections,
            "trims": [t.to_dict() for t in self.trims],
            "warnings": list(self.warnings),
            "total_tokens_before": self.total_tokens_before,
            "total_tokens_after": self.total_tokens_after,
            "max_tokens": self.max_tokens,
            "mode": self.mode.value,
            "over_budget": self.over_budget,
            "utilization": round(self.utilization, 4),
        }


# =============================================================================
# Downstream aggregation
# =============================================================================


def tokens_by_category(report: BudgetReport) -> dict[str, int]:
    """Sum removed tokens per category, in precedence order.

    Categories with nothing removed are omitted.
    """
    totals: dict[Category, int] = defaultdict(int)
    for trim in report.trims:
        totals[trim.category] += trim.removed_tokens
    return {c.value: totals[c] for c in CATEGORY_PRECEDENCE if totals.get(c)}


def aggregate_by_session(
    reports: Iterable[tuple[str, BudgetReport]],
) -> dict[str, dict[str, Any]]:
    """Aggregate removed tokens per session.

    Args:
        reports: ``(session_id, report)`` pairs

    Returns:
        Mapping of session id to ``{runs, removed_tokens, fallback_runs,
        by_category}``
    """
    sessions: dict[str, dict[str, Any]] = {}
    for session_id, report in reports:
        entry = sessions.setdefault(
            session_id,
            {"runs": 0, "removed_tokens": 0, "fallback_runs": 0, "by_category": {}},
        )
        entry["runs"] += 1
        entry["removed_tokens"] += report.removed_tokens
        if report.fallback_applied:
            entry["fallback_runs"] += 1
        for category, tokens in tokens_by_category(report).items():
            entry["by_category"][category] = entry["by_category"].get(category, 0) + tokens
    return sessions


def core_preserved(report: BudgetReport) -> bool:
    """True when no core or ruleset section was dropped."""
    protected = {Category.CORE, Category.RULESET}
    return not any(
        t.action == TrimAction.DROPPED and t.category in protected for t in report.trims
    )


def summarize_report(report: BudgetReport) -> str:
    """Render a short multi-line summary for debugging output."""
    lines = [
        f"Budget: {report.total_tokens_after}/{report.max_tokens} tokens "
        f"({report.utilization * 100:.1f}%)",
        f"Over budget: {'Yes' if report.over_budget else 'No'}",
        f"Mode: {report.mode.value}",
    ]
    if report.removed_tokens:
        lines.append(
            f"Removed: {report.removed_tokens} tokens "
            f"({report.total_tokens_before} -> {report.total_tokens_after})"
        )
    dropped = report.dropped_keys
    if dropped:
        lines.append(f"Dropped: {', '.join(dropped)}")
    trimmed = [t for t in report.trims if t.action == TrimAction.TRIMMED]
    for trim in trimmed:
        lines.append(
            f"Trimmed {trim.key}: -{trim.removed_chars} chars "
            f"-> {trim.resulting_length} ({trim.mode.value})"
        )
    if report.warnings:
        lines.append(f"Warnings: {'; '.join(report.warnings)}")
    return "\n".join(lines)


__all__ = [
    "BUDGET_EXCEEDED_AFTER_FALLBACK",
    "FALLBACK_TRIM_APPLIED",
    "BudgetReport",
    "TrimAction",
    "TrimMode",
    "TrimRecord",
    "aggregate_by_session",
    "core_preserved",
    "summarize_report",
    "tokens_by_category",
]
