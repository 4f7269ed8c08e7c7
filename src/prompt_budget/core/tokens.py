"""Token estimation for prompt sections.

Provides the estimator contract the budget engine depends on, plus two
implementations: a character heuristic and a real tokenizer backed by
tiktoken. The engine never assumes a specific ratio; it only relies on an
estimator being deterministic and monotonic in text length.

Key Components:
    - estimate_tokens: Default ~4 chars/token heuristic (0 for empty text)
    - estimate_tokens_total: Sum of estimates across texts
    - TokenEstimator: Protocol for any str -> int callable
    - HeuristicEstimator: Configurable character-ratio estimator
    - TiktokenEstimator: Encoding-based estimator (requires tiktoken)
    - build_estimator: Resolve an estimator by name

Usage:
    from prompt_budget.core.tokens import estimate_tokens, build_estimator

    tokens = estimate_tokens("The tavern door creaks open.")  # 7

    estimator = build_estimator("tiktoken", encoding_name="cl100k_base")
    tokens = estimator("The tavern door creaks open.")
"""

from __future__ import annotations

import logging
import math
from typing import Any, Iterable, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

# Characters per token assumed by the heuristic estimator
CHARS_PER_TOKEN = 4

# Encoding used by TiktokenEstimator when none is given
DEFAULT_TIKTOKEN_ENCODING = "cl100k_base"


@runtime_checkable
class TokenEstimator(Protocol):
    """Protocol for token estimators.

    Any callable mapping text to a non-negative token count satisfies it.
    Implementations must be pure: the same text always yields the same
    count, and longer text never yields fewer tokens in practice.
    """

    def __call__(self, text: str) -> int: ...


def estimate_tokens(text: str) -> int:
    """Estimate token count using the ~4 characters per token heuristic.

    Args:
        text: Text to estimate

    Returns:
        ceil(len(text) / 4), or 0 for empty text
    """
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def estimate_tokens_total(
    texts: Iterable[str],
    estimator: TokenEstimator | None = None,
) -> int:
    """Sum token estimates for multiple text segments."""
    count = estimator or estimate_tokens
    return sum(count(text) for text in texts)


class HeuristicEstimator:
    """Character-ratio token estimator.

    Attributes:
        chars_per_token: Characters counted as one token. Also read by the
            budget engine to convert min_chars floors into tokens.

    Example:
        estimator = HeuristicEstimator(chars_per_token=3.5)
        estimator("x" * 7)  # 2
    """

    def __init__(self, chars_per_token: float = CHARS_PER_TOKEN):
        if chars_per_token <= 0:
            raise ValueError(f"chars_per_token must be positive, got {chars_per_token}")
        self.chars_per_token = chars_per_token

    def __call__(self, text: str) -> int:
        if not text:
            return 0
        return math.ceil(len(text) / self.chars_per_token)

    def __repr__(self) -> str:
        return f"HeuristicEstimator(chars_per_token={self.chars_per_token})"


class TiktokenEstimator:
    """Token estimator backed by a tiktoken encoding.

    The encoding is loaded once at construction. The guardrail conversion
    still needs a character ratio, so ``chars_per_token`` is kept as an
    approximation alongside the real tokenizer.

    Raises:
        ImportError: If tiktoken is not installed (install the
            ``prompt-budget[tiktoken]`` extra)
    """

    def __init__(
        self,
        encoding_name: str = DEFAULT_TIKTOKEN_ENCODING,
        *,
        chars_per_token: float = CHARS_PER_TOKEN,
    ):
        import tiktoken

        if chars_per_token <= 0:
            raise ValueError(f"chars_per_token must be positive, got {chars_per_token}")
        self.encoding_name = encoding_name
        self.chars_per_token = chars_per_token
        self._encoding = tiktoken.get_encoding(encoding_name)
        logger.debug(f"Loaded tiktoken encoding {encoding_name}")

    def __call__(self, text: str) -> int:
        if not text:
            return 0
        return len(self._encoding.encode(text, disallowed_special=()))

    def __repr__(self) -> str:
        return f"TiktokenEstimator(encoding_name={self.encoding_name!r})"


ESTIMATOR_NAMES = ("heuristic", "tiktoken")


def build_estimator(name: str = "heuristic", **options: Any) -> TokenEstimator:
    """Resolve an estimator by name.

    Args:
        name: "heuristic" or "tiktoken" (case-insensitive)
        **options: Passed to the estimator constructor
            (chars_per_token, encoding_name)

    Returns:
        Estimator instance

    Raises:
        ValueError: If the name is unknown
    """
    normalized = name.strip().lower()
    if normalized == "heuristic":
        options.pop("encoding_name", None)
        return HeuristicEstimator(**options)
    if normalized == "tiktoken":
        return TiktokenEstimator(**options)
    raise ValueError(
        f"Unknown estimator '{name}'. Valid options: {', '.join(ESTIMATOR_NAMES)}"
    )


def chars_per_token_of(estimator: Any, default: float = CHARS_PER_TOKEN) -> float:
    """Return the character ratio an estimator advertises, or ``default``."""
    ratio = getattr(estimator, "chars_per_token", None)
    if isinstance(ratio, (int, float)) and ratio > 0:
        return float(ratio)
    return float(default)


__all__ = [
    "CHARS_PER_TOKEN",
    "DEFAULT_TIKTOKEN_ENCODING",
    "ESTIMATOR_NAMES",
    "TokenEstimator",
    "HeuristicEstimator",
    "TiktokenEstimator",
    "build_estimator",
    "chars_per_token_of",
    "estimate_tokens",
    "estimate_tokens_total",
]
