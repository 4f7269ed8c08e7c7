"""
JSON envelope for prompt-budget command output.

Each CLI command prints exactly one envelope:

    {
        "success": true,
        "data": {...},                 # command payload, or error fields
        "error": null,                 # message when success is false
        "meta": {
            "version": "response-v2",
            "request_id": "run_a1b2c3d4e5f6",   # active run, when any
            "warnings": [...],                  # engine warnings, when any
            "telemetry": {"duration_ms": 0.42}  # when measured
        }
    }

An over-budget result is still a success: the engine ran and the
infeasibility is reported in ``data`` and ``meta.warnings``. A failed
envelope means the input could not be processed at all; its ``data``
carries ``error_code``, ``error_type`` and, when known, ``remediation``
and ``details``.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional, Sequence

from prompt_budget.core.context import get_run_id
from prompt_budget.core.errors import BudgetError, BudgetInputError

RESPONSE_VERSION = "response-v2"


class ErrorCode(str, Enum):
    """Machine-readable failure codes."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_FORMAT = "INVALID_FORMAT"
    MISSING_REQUIRED = "MISSING_REQUIRED"
    CONFIG_ERROR = "CONFIG_ERROR"
    UNAVAILABLE = "UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorType(str, Enum):
    """Broad failure categories a caller can branch on."""

    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    UNAVAILABLE = "unavailable"
    INTERNAL = "internal"


@dataclass
class Envelope:
    """One command result.

    Attributes:
        success: False only when the input could not be processed
        data: Command payload, or the error fields on failure
        error: Failure message, None on success
        meta: Version, request ID, warnings and telemetry
    """

    success: bool
    data: dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    meta: dict[str, Any] = field(default_factory=lambda: {"version": RESPONSE_VERSION})

    def to_dict(self) -> dict[str, Any]:
        return {"success": self.success, "data": self.data, "error": self.error, "meta": self.meta}

    def to_json(self) -> str:
        """Minified JSON, one line."""
        return json.dumps(self.to_dict(), separators=(",", ":"), default=str)


def _meta(
    request_id: Optional[str],
    warnings: Optional[Sequence[str]] = None,
    telemetry: Optional[Mapping[str, Any]] = None,
) -> dict[str, Any]:
    meta: dict[str, Any] = {"version": RESPONSE_VERSION}
    request_id = request_id or get_run_id()
    if request_id:
        meta["request_id"] = request_id
    if warnings:
        meta["warnings"] = list(warnings)
    if telemetry:
        meta["telemetry"] = dict(telemetry)
    return meta


def _code_value(value: Any) -> str:
    return value.value if isinstance(value, Enum) else str(value)


def success_envelope(
    data: Mapping[str, Any],
    *,
    warnings: Optional[Sequence[str]] = None,
    telemetry: Optional[Mapping[str, Any]] = None,
    request_id: Optional[str] = None,
) -> Envelope:
    """Build a success envelope.

    Args:
        data: Command payload
        warnings: Engine warnings, surfaced in ``meta.warnings``
        telemetry: Timing data, surfaced in ``meta.telemetry``
        request_id: Correlation ID (default: the active run ID)
    """
    return Envelope(
        success=True,
        data=dict(data),
        meta=_meta(request_id, warnings, telemetry),
    )


def error_envelope(
    message: str,
    code: ErrorCode | str = ErrorCode.INTERNAL_ERROR,
    error_type: ErrorType | str = ErrorType.INTERNAL,
    *,
    remediation: Optional[str] = None,
    details: Optional[Mapping[str, Any]] = None,
    request_id: Optional[str] = None,
) -> Envelope:
    """Build a failure envelope.

    Example:
        >>> error_envelope(
        ...     "Section at index 2 has an empty key",
        ...     ErrorCode.VALIDATION_ERROR,
        ...     ErrorType.VALIDATION,
        ...     remediation="Give every section a dotted key",
        ... ).data["error_code"]
        'VALIDATION_ERROR'
    """
    data: dict[str, Any] = {
        "error_code": _code_value(code),
        "error_type": _code_value(error_type),
    }
    if remediation:
        data["remediation"] = remediation
    if details:
        data["details"] = dict(details)
    return Envelope(success=False, data=data, error=message, meta=_meta(request_id))


def envelope_from_error(
    exc: BudgetError,
    code: ErrorCode | str = ErrorCode.VALIDATION_ERROR,
    error_type: ErrorType | str = ErrorType.VALIDATION,
    *,
    details: Optional[Mapping[str, Any]] = None,
) -> Envelope:
    """Failure envelope for a BudgetError, keeping its remediation.

    A BudgetInputError's section index is added to ``details``.
    """
    merged = dict(details or {})
    if isinstance(exc, BudgetInputError) and exc.index is not None:
        merged.setdefault("index", exc.index)
    return error_envelope(
        exc.message,
        code,
        error_type,
        remediation=exc.remediation,
        details=merged,
    )


__all__ = [
    "RESPONSE_VERSION",
    "Envelope",
    "ErrorCode",
    "ErrorType",
    "envelope_from_error",
    "error_envelope",
    "success_envelope",
]
