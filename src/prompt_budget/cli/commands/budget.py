"""Budget commands for the prompt-budget CLI.

Provides commands for applying a budget to a sections file and rendering
a human-readable summary of the run.

Sections files hold either a JSON list of sections or an object with a
``sections`` list and an optional ``max_tokens``:

    {
        "max_tokens": 200,
        "sections": [
            {"key": "core.system", "text": "...", "slot": {"must_keep": true}},
            {"key": "npc.bio", "text": "..."}
        ]
    }
"""

import json
import time
from typing import Any, Optional, TextIO

import click

from prompt_budget.cli.logging import cli_command, get_cli_logger
from prompt_budget.cli.output import emit_budget_error, emit_error, emit_success
from prompt_budget.config import BudgetSettings
from prompt_budget.core.engine import BudgetEngine
from prompt_budget.core.errors import BudgetInputError
from prompt_budget.core.report import (
    BudgetReport,
    core_preserved,
    summarize_report,
    tokens_by_category,
)
from prompt_budget.core.responses import ErrorCode, ErrorType
from prompt_budget.core.tokens import TokenEstimator

logger = get_cli_logger()


def _read_sections(handle: TextIO) -> tuple[list[Any], Optional[int]]:
    """Parse a sections file into ``(sections, max_tokens)``."""
    try:
        payload = json.load(handle)
    except json.JSONDecodeError as e:
        emit_error(
            f"Sections file is not valid JSON: {e}",
            ErrorCode.INVALID_FORMAT,
            remediation="Provide a JSON list of sections or an object with a 'sections' list.",
        )

    file_max_tokens = None
    if isinstance(payload, dict):
        file_max_tokens = payload.get("max_tokens")
        payload = payload.get("sections")
    if not isinstance(payload, list):
        emit_error(
            "Sections file must contain a list of sections",
            ErrorCode.INVALID_FORMAT,
            remediation="Provide a JSON list of sections or an object with a 'sections' list.",
        )
    if file_max_tokens is not None and (
        isinstance(file_max_tokens, bool) or not isinstance(file_max_tokens, int)
    ):
        emit_error(
            f"max_tokens in sections file must be an integer, got {file_max_tokens!r}",
            ErrorCode.INVALID_FORMAT,
        )
    return payload, file_max_tokens


def resolve_estimator(settings: BudgetSettings, name: Optional[str]) -> TokenEstimator:
    try:
        return settings.build_estimator(name)
    except ValueError as e:
        emit_error(str(e), ErrorCode.VALIDATION_ERROR)
    except ImportError:
        emit_error(
            "The tiktoken estimator requires the tiktoken package",
            ErrorCode.UNAVAILABLE,
            ErrorType.UNAVAILABLE,
            remediation="Install the extra: pip install 'prompt-budget[tiktoken]'",
        )


def _run_budget(
    ctx: click.Context,
    sections_file: TextIO,
    max_tokens: Optional[int],
    estimator_name: Optional[str] = None,
    trim_droppable: Optional[bool] = None,
) -> tuple[BudgetReport, float]:
    settings: BudgetSettings = ctx.obj["settings"]
    sections, file_max_tokens = _read_sections(sections_file)

    if max_tokens is not None:
        budget, source = max_tokens, "--max-tokens"
    elif file_max_tokens is not None:
        budget, source = file_max_tokens, "sections file"
    else:
        budget, source = settings.max_tokens, "settings"
    logger.debug(f"Applying {budget}-token budget from {source} to {len(sections)} sections")

    engine = BudgetEngine.from_settings(settings, resolve_estimator(settings, estimator_name))
    if trim_droppable is not None:
        engine.trim_droppable = trim_droppable

    start = time.perf_counter()
    try:
        report = engine.apply(sections, budget)
    except BudgetInputError as e:
        emit_budget_error(e, ErrorCode.VALIDATION_ERROR)
    except (TypeError, ValueError) as e:
        emit_error(
            f"Invalid section data: {e}",
            ErrorCode.VALIDATION_ERROR,
            remediation="Check slot fields: min_chars and priority must be integers.",
        )
    return report, (time.perf_counter() - start) * 1000


@click.command("apply")
@click.argument("sections_file", type=click.File("r"))
@click.option("--max-tokens", type=int, help="Token budget (overrides file and config)")
@click.option("--estimator", "estimator_name", help="Token estimator: heuristic or tiktoken")
@click.option(
    "--trim-droppable/--drop-droppable",
    default=None,
    help="Cut droppable sections just enough instead of dropping them",
)
@click.option("--no-text", is_flag=True, help="Omit section text from the output")
@click.pass_context
@cli_command("apply")
def apply_cmd(
    ctx: click.Context,
    sections_file: TextIO,
    max_tokens: Optional[int],
    estimator_name: Optional[str],
    trim_droppable: Optional[bool],
    no_text: bool,
) -> None:
    """Fit the sections in SECTIONS_FILE into a token budget.

    SECTIONS_FILE is a JSON file path, or - for stdin.
    """
    report, duration_ms = _run_budget(
        ctx, sections_file, max_tokens, estimator_name, trim_droppable
    )

    data = report.to_dict(include_text=not no_text)
    data["removed_by_category"] = tokens_by_category(report)
    data["core_preserved"] = core_preserved(report)
    emit_success(
        data,
        warnings=report.warnings,
        telemetry={"duration_ms": round(duration_ms, 2)},
    )


@click.command("summary")
@click.argument("sections_file", type=click.File("r"))
@click.option("--max-tokens", type=int, help="Token budget (overrides file and config)")
@click.pass_context
@cli_command("summary")
def summary_cmd(ctx: click.Context, sections_file: TextIO, max_tokens: Optional[int]) -> None:
    """Apply a budget and return a human-readable summary of the run.

    SECTIONS_FILE is a JSON file path, or - for stdin.
    """
    report, _ = _run_budget(ctx, sections_file, max_tokens)
    emit_success(
        {
            "summary": summarize_report(report),
            "mode": report.mode.value,
            "over_budget": report.over_budget,
            "total_tokens_before": report.total_tokens_before,
            "total_tokens_after": report.total_tokens_after,
        },
        warnings=report.warnings,
    )
