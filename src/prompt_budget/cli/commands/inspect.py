"""Inspection commands: token estimates and key classification."""

from typing import Optional, TextIO

import click

from prompt_budget.cli.commands.budget import resolve_estimator
from prompt_budget.cli.logging import cli_command
from prompt_budget.cli.output import emit_error, emit_success
from prompt_budget.core.categories import classify, precedence_rank
from prompt_budget.core.responses import ErrorCode


@click.command("estimate")
@click.argument("text", required=False)
@click.option(
    "--file",
    "text_file",
    type=click.File("r"),
    help="Read the text from a file (- for stdin)",
)
@click.option("--estimator", "estimator_name", help="Token estimator: heuristic or tiktoken")
@click.pass_context
@cli_command("estimate")
def estimate_cmd(
    ctx: click.Context,
    text: Optional[str],
    text_file: Optional[TextIO],
    estimator_name: Optional[str],
) -> None:
    """Estimate the token count of TEXT or of a file."""
    if text is None and text_file is None:
        emit_error(
            "No text given",
            ErrorCode.MISSING_REQUIRED,
            remediation="Pass TEXT as an argument or use --file PATH.",
        )
    if text is not None and text_file is not None:
        emit_error(
            "Pass either TEXT or --file, not both",
            ErrorCode.VALIDATION_ERROR,
        )
    if text is None:
        text = text_file.read()

    settings = ctx.obj["settings"]
    estimator = resolve_estimator(settings, estimator_name)
    emit_success(
        {
            "tokens": estimator(text),
            "chars": len(text),
            "estimator": estimator_name or settings.estimator,
        }
    )


@click.command("classify")
@click.argument("keys", nargs=-1, required=True)
@cli_command("classify")
def classify_cmd(keys: tuple[str, ...]) -> None:
    """Show the category and trim rank of each section KEY.

    Rank 0 is trimmed first.
    """
    emit_success(
        {
            "classifications": [
                {
                    "key": key,
                    "category": classify(key).value,
                    "rank": precedence_rank(classify(key)),
                }
                for key in keys
            ]
        }
    )
