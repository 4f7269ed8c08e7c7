"""
Budget configuration for prompt-budget.

Supports configuration via:
1. Environment variables (highest priority)
2. TOML config file (prompt-budget.toml)
3. Default values (lowest priority)

Environment variables:
- PROMPT_BUDGET_MAX_TOKENS: Default token budget for the CLI
- PROMPT_BUDGET_GUARDRAIL_RATIO: Share of the budget min_chars floors may claim
- PROMPT_BUDGET_TRIM_DROPPABLE: Cut droppable sections instead of dropping (true/false)
- PROMPT_SOFT_BUDGET_PER_SLOT_TOKENS: Warn about sections above this many tokens
- PROMPT_BUDGET_FALLBACK_KEEP_CHARS: Characters a must-keep section always keeps
- PROMPT_BUDGET_ESTIMATOR: Token estimator (heuristic, tiktoken)
- PROMPT_BUDGET_CHARS_PER_TOKEN: Heuristic characters per token
- PROMPT_BUDGET_TIKTOKEN_ENCODING: tiktoken encoding name
- PROMPT_BUDGET_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
- PROMPT_BUDGET_STRUCTURED_LOGGING: JSON log lines (true/false)
- PROMPT_BUDGET_CONFIG_FILE: Path to TOML config file

Example prompt-budget.toml:

    [budget]
    max_tokens = 6000
    guardrail_ratio = 0.75
    soft_slot_tokens = 1500

    [tokenizer]
    estimator = "tiktoken"
    encoding = "cl100k_base"

    [logging]
    level = "DEBUG"
    structured = false
"""

import logging
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional

from prompt_budget.core.engine import DEFAULT_FALLBACK_KEEP_CHARS, DEFAULT_GUARDRAIL_RATIO
from prompt_budget.core.errors import ConfigError
from prompt_budget.core.tokens import (
    CHARS_PER_TOKEN,
    DEFAULT_TIKTOKEN_ENCODING,
    ESTIMATOR_NAMES,
    TokenEstimator,
    build_estimator,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILES = ("prompt-budget.toml", ".prompt-budget.toml")

DEFAULT_MAX_TOKENS = 8000


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"true", "1", "yes", "on"}


def _env_number(name: str, convert: Callable[[str], Any]) -> Optional[Any]:
    """Read a numeric env var, logging and ignoring unparseable values."""
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return None
    try:
        return convert(raw.strip())
    except ValueError:
        logger.warning(f"Ignoring invalid value for {name}: {raw!r}")
        return None


@dataclass
class BudgetSettings:
    """Budget settings with support for env vars and TOML overrides."""

    # Budget
    max_tokens: int = DEFAULT_MAX_TOKENS
    guardrail_ratio: float = DEFAULT_GUARDRAIL_RATIO
    trim_droppable: bool = False
    soft_slot_tokens: Optional[int] = None
    fallback_keep_chars: int = DEFAULT_FALLBACK_KEEP_CHARS

    # Tokenizer
    estimator: str = "heuristic"
    chars_per_token: float = CHARS_PER_TOKEN
    tiktoken_encoding: str = DEFAULT_TIKTOKEN_ENCODING

    # Logging
    log_level: str = "INFO"
    structured_logging: bool = True

    @classmethod
    def from_env(cls, config_file: Optional[str] = None) -> "BudgetSettings":
        """
        Create settings from environment variables and optional TOML file.

        Priority (highest to lowest):
        1. Environment variables
        2. TOML config file
        3. Default values

        Raises:
            ConfigError: If an explicitly named config file is missing or
                not valid TOML
        """
        settings = cls()

        toml_path = config_file or os.environ.get("PROMPT_BUDGET_CONFIG_FILE")
        if toml_path:
            settings._load_toml(Path(toml_path), required=True)
        else:
            for default_path in DEFAULT_CONFIG_FILES:
                if Path(default_path).exists():
                    settings._load_toml(Path(default_path))
                    break

        settings._load_env()
        settings.validate()
        return settings

    def _load_toml(self, path: Path, *, required: bool = False) -> None:
        """Load settings from a TOML file."""
        if not path.exists():
            if required:
                raise ConfigError(
                    f"Config file not found: {path}",
                    remediation="Check the --config path or PROMPT_BUDGET_CONFIG_FILE.",
                )
            logger.warning(f"Config file not found: {path}")
            return

        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            if required:
                raise ConfigError(
                    f"Error loading config file {path}: {e}",
                    remediation="Fix the TOML syntax or point to another file.",
                ) from e
            logger.error(f"Error loading config file {path}: {e}")
            return

        try:
            self._apply_toml(data)
        except (TypeError, ValueError) as e:
            if required:
                raise ConfigError(
                    f"Invalid value in config file {path}: {e}",
                    remediation="Use numbers for numeric settings and booleans for flags.",
                ) from e
            logger.error(f"Invalid value in config file {path}: {e}")
            return
        logger.debug(f"Loaded config file {path}")

    def _apply_toml(self, data: dict[str, Any]) -> None:
        if "budget" in data:
            budget = data["budget"]
            if "max_tokens" in budget:
                self.max_tokens = int(budget["max_tokens"])
            if "guardrail_ratio" in budget:
                self.guardrail_ratio = float(budget["guardrail_ratio"])
            if "trim_droppable" in budget:
                self.trim_droppable = _parse_bool(budget["trim_droppable"])
            if "soft_slot_tokens" in budget:
                self.soft_slot_tokens = int(budget["soft_slot_tokens"])
            if "fallback_keep_chars" in budget:
                self.fallback_keep_chars = int(budget["fallback_keep_chars"])

        if "tokenizer" in data:
            tok = data["tokenizer"]
            if "estimator" in tok:
                self.estimator = str(tok["estimator"]).strip().lower()
            if "chars_per_token" in tok:
                self.chars_per_token = float(tok["chars_per_token"])
            if "encoding" in tok:
                self.tiktoken_encoding = str(tok["encoding"])

        if "logging" in data:
            log = data["logging"]
            if "level" in log:
                self.log_level = str(log["level"]).upper()
            if "structured" in log:
                self.structured_logging = _parse_bool(log["structured"])

    def _load_env(self) -> None:
        """Load settings from environment variables."""
        if (max_tokens := _env_number("PROMPT_BUDGET_MAX_TOKENS", int)) is not None:
            self.max_tokens = max_tokens
        if (ratio := _env_number("PROMPT_BUDGET_GUARDRAIL_RATIO", float)) is not None:
            self.guardrail_ratio = ratio
        if trim := os.environ.get("PROMPT_BUDGET_TRIM_DROPPABLE"):
            self.trim_droppable = _parse_bool(trim)
        if (soft := _env_number("PROMPT_SOFT_BUDGET_PER_SLOT_TOKENS", int)) is not None:
            self.soft_slot_tokens = soft
        if (keep := _env_number("PROMPT_BUDGET_FALLBACK_KEEP_CHARS", int)) is not None:
            self.fallback_keep_chars = keep

        if estimator := os.environ.get("PROMPT_BUDGET_ESTIMATOR"):
            self.estimator = estimator.strip().lower()
        if (cpt := _env_number("PROMPT_BUDGET_CHARS_PER_TOKEN", float)) is not None:
            self.chars_per_token = cpt
        if encoding := os.environ.get("PROMPT_BUDGET_TIKTOKEN_ENCODING"):
            self.tiktoken_encoding = encoding

        if level := os.environ.get("PROMPT_BUDGET_LOG_LEVEL"):
            self.log_level = level.upper()
        if structured := os.environ.get("PROMPT_BUDGET_STRUCTURED_LOGGING"):
            self.structured_logging = _parse_bool(structured)

    def validate(self) -> None:
        """Check value ranges.

        Raises:
            ConfigError: If any setting is out of range
        """
        problems = []
        if not 0.0 < self.guardrail_ratio <= 1.0:
            problems.append(f"guardrail_ratio must be in (0, 1], got {self.guardrail_ratio}")
        if self.chars_per_token <= 0:
            problems.append(f"chars_per_token must be positive, got {self.chars_per_token}")
        if self.fallback_keep_chars < 0:
            problems.append(
                f"fallback_keep_chars must be non-negative, got {self.fallback_keep_chars}"
            )
        if self.soft_slot_tokens is not None and self.soft_slot_tokens <= 0:
            problems.append(f"soft_slot_tokens must be positive, got {self.soft_slot_tokens}")
        if self.estimator not in ESTIMATOR_NAMES:
            problems.append(
                f"estimator must be one of {', '.join(ESTIMATOR_NAMES)}, got {self.estimator!r}"
            )
        if problems:
            raise ConfigError(
                "Invalid configuration: " + "; ".join(problems),
                remediation="Correct the listed settings in the TOML file or environment.",
            )

    def build_estimator(self, name: Optional[str] = None) -> TokenEstimator:
        """Build the configured token estimator, or the one named."""
        return build_estimator(
            name or self.estimator,
            chars_per_token=self.chars_per_token,
            encoding_name=self.tiktoken_encoding,
        )

    def setup_logging(self) -> None:
        """Configure logging based on settings."""
        from prompt_budget.core.logging_config import configure_logging

        configure_logging(
            level=self.log_level,
            style="json" if self.structured_logging else "human",
        )


def load_settings(config_file: Optional[str] = None) -> BudgetSettings:
    """Load settings; see BudgetSettings.from_env."""
    return BudgetSettings.from_env(config_file)


__all__ = ["DEFAULT_CONFIG_FILES", "DEFAULT_MAX_TOKENS", "BudgetSettings", "load_settings"]
