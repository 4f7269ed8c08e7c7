"""CLI module entry point.

Enables running the CLI via: python -m prompt_budget.cli
"""

from prompt_budget.cli.main import cli

if __name__ == "__main__":
    cli()
