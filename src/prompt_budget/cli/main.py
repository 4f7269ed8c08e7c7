"""prompt-budget CLI entry point.

JSON-only output; see prompt_budget.cli.output.
"""

from typing import Optional

import click

from prompt_budget.cli.commands import register_all_commands
from prompt_budget.cli.output import emit_budget_error
from prompt_budget.config import load_settings
from prompt_budget.core.errors import ConfigError
from prompt_budget.core.responses import ErrorCode, ErrorType


@click.group()
@click.option(
    "--config",
    "config_file",
    envvar="PROMPT_BUDGET_CONFIG_FILE",
    type=click.Path(dir_okay=False),
    help="Path to a prompt-budget TOML config file",
)
@click.option("--session-id", help="Session ID attached to log lines")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Override the configured log level",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config_file: Optional[str],
    session_id: Optional[str],
    log_level: Optional[str],
) -> None:
    """prompt-budget - fit sectioned LLM prompts into a token budget.

    All commands output JSON for reliable parsing.
    """
    ctx.ensure_object(dict)
    try:
        settings = load_settings(config_file)
    except ConfigError as e:
        emit_budget_error(
            e,
            ErrorCode.CONFIG_ERROR,
            ErrorType.CONFIGURATION,
            details={"config_file": config_file},
        )
    if log_level:
        settings.log_level = log_level.upper()
    settings.setup_logging()

    ctx.obj["settings"] = settings
    ctx.obj["session_id"] = session_id


register_all_commands(cli)


if __name__ == "__main__":
    cli()
