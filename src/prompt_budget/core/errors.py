"""Exceptions raised for programmer-contract violations.

Budget infeasibility is never an exception: the engine reports it through
warnings and ``total_tokens_after > max_tokens``. These errors cover input
the engine cannot interpret at all.
"""

from __future__ import annotations

from typing import Any, Optional


class BudgetError(Exception):
    """Base class for prompt budget errors."""

    error_type = "budget_error"

    def __init__(self, message: str, *, remediation: Optional[str] = None):
        self.message = message
        self.remediation = remediation
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "error_type": self.error_type,
            "message": self.message,
            "remediation": self.remediation,
        }


class BudgetInputError(BudgetError, ValueError):
    """Raised when the section list or a section violates the call contract.

    Attributes:
        index: Position of the offending section, if any
    """

    error_type = "invalid_input"

    def __init__(
        self,
        message: str,
        *,
        index: Optional[int] = None,
        remediation: Optional[str] = None,
    ):
        self.index = index
        super().__init__(
            message,
            remediation=remediation
            or "Pass a list of Section objects, each with a non-empty dotted key.",
        )

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["index"] = self.index
        return result


class ConfigError(BudgetError):
    """Raised when an explicitly requested config file cannot be loaded."""

    error_type = "config_error"


__all__ = ["BudgetError", "BudgetInputError", "ConfigError"]
