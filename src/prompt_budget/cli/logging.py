"""Run-scoped logging hooks for CLI commands.

Every command runs inside a budget run context so that engine log lines
and the response envelope share one run ID.
"""

import logging
import time
from functools import wraps
from typing import Any, Callable, Optional, TypeVar

import click

from prompt_budget.core.context import budget_run_context

__all__ = ["cli_command", "get_cli_logger"]

T = TypeVar("T")

_cli_logger = logging.getLogger("prompt_budget.cli")


def get_cli_logger() -> logging.Logger:
    """Logger for CLI modules."""
    return _cli_logger


def cli_command(command_name: Optional[str] = None) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator that wraps a CLI command in a run context.

    Logs command start and completion with duration at debug level. The
    session ID comes from the group's ``--session-id`` option when given.

    Example:
        >>> @cli_command("apply")
        ... def apply_cmd(ctx, sections_file):
        ...     ...
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        name = command_name or func.__name__

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            click_ctx = click.get_current_context(silent=True)
            obj = click_ctx.obj if click_ctx is not None and isinstance(click_ctx.obj, dict) else {}
            with budget_run_context(session_id=obj.get("session_id")):
                start = time.perf_counter()
                success = True
                _cli_logger.debug(f"CLI command started: {name}")
                try:
                    return func(*args, **kwargs)
                except SystemExit as e:
                    success = not e.code
                    raise
                except Exception:
                    success = False
                    raise
                finally:
                    duration_ms = (time.perf_counter() - start) * 1000
                    _cli_logger.debug(
                        f"CLI command completed: {name} "
                        f"(success={success}, duration_ms={duration_ms:.2f})"
                    )

        return wrapper

    return decorator
