"""prompt-budget CLI for inspecting budget runs offline.

All commands emit a single JSON envelope for reliable parsing.
"""

from prompt_budget.cli.main import cli
from prompt_budget.cli.output import emit, emit_error, emit_success

__all__ = ["cli", "emit", "emit_error", "emit_success"]
