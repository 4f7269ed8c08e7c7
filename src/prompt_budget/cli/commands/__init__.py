"""CLI command registration."""

import click

from prompt_budget.cli.commands.budget import apply_cmd, summary_cmd
from prompt_budget.cli.commands.inspect import classify_cmd, estimate_cmd

__all__ = ["register_all_commands"]


def register_all_commands(group: click.Group) -> None:
    """Attach every command to the root group."""
    group.add_command(apply_cmd)
    group.add_command(summary_cmd)
    group.add_command(estimate_cmd)
    group.add_command(classify_cmd)
