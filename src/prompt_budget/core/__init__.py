"""Core budgeting operations for prompt-budget."""

from prompt_budget.core.categories import (
    CATEGORY_PRECEDENCE,
    Category,
    classify,
    precedence_rank,
)

from prompt_budget.core.engine import BudgetEngine, apply_budget

from prompt_budget.core.errors import BudgetError, BudgetInputError, ConfigError

from prompt_budget.core.report import (
    BUDGET_EXCEEDED_AFTER_FALLBACK,
    FALLBACK_TRIM_APPLIED,
    BudgetReport,
    TrimAction,
    TrimMode,
    TrimRecord,
    aggregate_by_session,
    core_preserved,
    summarize_report,
    tokens_by_category,
)

from prompt_budget.core.sections import (
    UNCONSTRAINED,
    Constrained,
    Constraint,
    Section,
    Unconstrained,
    make_section,
)

from prompt_budget.core.tokens import (
    HeuristicEstimator,
    TiktokenEstimator,
    TokenEstimator,
    build_estimator,
    estimate_tokens,
    estimate_tokens_total,
)

from prompt_budget.core.trimmer import TRIM_MARKER, trim_text, trim_with_meta

__all__ = [
    "CATEGORY_PRECEDENCE",
    "Category",
    "classify",
    "precedence_rank",
    "BudgetEngine",
    "apply_budget",
    "BudgetError",
    "BudgetInputError",
    "ConfigError",
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
    "UNCONSTRAINED",
    "Constrained",
    "Constraint",
    "Section",
    "Unconstrained",
    "make_section",
    "HeuristicEstimator",
    "TiktokenEstimator",
    "TokenEstimator",
    "build_estimator",
    "estimate_tokens",
    "estimate_tokens_total",
    "TRIM_MARKER",
    "trim_text",
    "trim_with_meta",
]
