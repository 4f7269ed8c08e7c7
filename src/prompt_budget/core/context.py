"""Run context for correlating budget log lines.

Each engine invocation made by a caller (or by the CLI) can be wrapped in a
run context so that every log record it emits carries the same run ID and,
when known, the narrative session it belongs to. Context lives in
contextvars, so it is isolated per thread and per asyncio task.

Usage:
    from prompt_budget.core.context import budget_run_context, get_run_id

    with budget_run_context(session_id="campaign-42") as ctx:
        report = engine.apply(sections, max_tokens=6000)
        logger.info(f"Run {ctx.run_id} removed {report.removed_tokens} tokens")
"""

from __future__ import annotations

import secrets
import time
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Dict, Generator, Optional

__all__ = [
    "run_id_var",
    "session_id_var",
    "start_time_var",
    "RunContext",
    "generate_run_id",
    "budget_run_context",
    "get_run_id",
    "get_session_id",
    "get_start_time",
]

# -----------------------------------------------------------------------------
# Context Variables
# -----------------------------------------------------------------------------

run_id_var: ContextVar[str] = ContextVar("run_id", default="")
"""Identifier of the current budget run."""

session_id_var: ContextVar[str] = ContextVar("session_id", default="")
"""Narrative session the current run belongs to."""

start_time_var: ContextVar[float] = ContextVar("start_time", default=0.0)
"""Run start time as Unix timestamp."""


def generate_run_id(prefix: str = "run") -> str:
    """Generate a unique run ID.

    Format: {prefix}_{12_hex_chars}
    Example: "run_a1b2c3d4e5f6"
    """
    return f"{prefix}_{secrets.token_hex(6)}"


@dataclass
class RunContext:
    """Snapshot of the active run context.

    Attributes:
        run_id: Unique run identifier
        session_id: Session identifier, empty when unknown
        start_time: Run start timestamp
    """

    run_id: str = ""
    session_id: str = ""
    start_time: float = field(default_factory=time.time)

    @property
    def elapsed_ms(self) -> float:
        if self.start_time <= 0:
            return 0.0
        return (time.time() - self.start_time) * 1000

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "run_id": self.run_id,
            "session_id": self.session_id or None,
            "elapsed_ms": round(self.elapsed_ms, 2),
        }


@contextmanager
def budget_run_context(
    *,
    session_id: Optional[str] = None,
    run_id: Optional[str] = None,
) -> Generator[RunContext, None, None]:
    """Set run context variables for the duration of the with block.

    Args:
        session_id: Session identifier (inherits the enclosing one if None)
        run_id: Run ID (auto-generated if None)

    Yields:
        RunContext snapshot
    """
    rid = run_id or generate_run_id()
    sid = session_id if session_id is not None else session_id_var.get()
    start = time.time()

    token_run = run_id_var.set(rid)
    token_session = session_id_var.set(sid)
    token_start = start_time_var.set(start)
    try:
        yield RunContext(run_id=rid, session_id=sid, start_time=start)
    finally:
        run_id_var.reset(token_run)
        session_id_var.reset(token_session)
        start_time_var.reset(token_start)


def get_run_id() -> str:
    """Current run ID, or empty string outside a run."""
    return run_id_var.get()


def get_session_id() -> str:
    """Current session ID, or empty string when unknown."""
    return session_id_var.get()


def get_start_time() -> float:
    """Current run start time, or 0.0 outside a run."""
    return start_time_var.get()
