"""Envelope output for the prompt-budget CLI.

Success envelopes go to stdout. Failure envelopes go to stderr, after any
log lines, and the process exits with status 1.
"""

import sys
from typing import Any, Mapping, NoReturn, Optional, Sequence

import click

from prompt_budget.core.errors import BudgetError
from prompt_budget.core.responses import (
    Envelope,
    ErrorCode,
    ErrorType,
    envelope_from_error,
    error_envelope,
    success_envelope,
)


def emit(envelope: Envelope) -> None:
    """Write an envelope as one JSON line, to stderr when it is a failure."""
    click.echo(envelope.to_json(), err=not envelope.success)


def emit_success(
    data: Mapping[str, Any],
    *,
    warnings: Optional[Sequence[str]] = None,
    telemetry: Optional[Mapping[str, Any]] = None,
) -> None:
    emit(success_envelope(data, warnings=warnings, telemetry=telemetry))


def emit_error(
    message: str,
    code: ErrorCode,
    error_type: ErrorType = ErrorType.VALIDATION,
    *,
    remediation: Optional[str] = None,
    details: Optional[Mapping[str, Any]] = None,
) -> NoReturn:
    """Write a failure envelope and exit 1."""
    emit(error_envelope(message, code, error_type, remediation=remediation, details=details))
    sys.exit(1)


def emit_budget_error(
    exc: BudgetError,
    code: ErrorCode,
    error_type: ErrorType = ErrorType.VALIDATION,
    *,
    details: Optional[Mapping[str, Any]] = None,
) -> NoReturn:
    """Write a failure envelope for a BudgetError and exit 1."""
    emit(envelope_from_error(exc, code, error_type, details=details))
    sys.exit(1)
