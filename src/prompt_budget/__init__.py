"""prompt-budget - deterministic token budgeting for sectioned LLM prompts."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("prompt-budget")
except PackageNotFoundError:
    # Package not installed (development mode without editable install)
    __version__ = "0.3.0"

from prompt_budget.core.engine import BudgetEngine, apply_budget
from prompt_budget.core.report import BudgetReport, TrimRecord
from prompt_budget.core.sections import Constrained, Section, Unconstrained, make_section

__all__ = [
    "__version__",
    "BudgetEngine",
    "BudgetReport",
    "Constrained",
    "Section",
    "TrimRecord",
    "Unconstrained",
    "apply_budget",
    "make_section",
]
