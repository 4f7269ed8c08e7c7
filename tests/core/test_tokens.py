"""Tests for token estimation.

Tests cover:
1. Default heuristic (ceil(len / 4), 0 for empty)
2. HeuristicEstimator ratio handling
3. build_estimator name resolution
4. TiktokenEstimator (skipped when tiktoken or its encoding is unavailable)
"""

import pytest

from prompt_budget.core.tokens import (
    CHARS_PER_TOKEN,
    HeuristicEstimator,
    TokenEstimator,
    build_estimator,
    chars_per_token_of,
    estimate_tokens,
    estimate_tokens_total,
)


class TestEstimateTokens:
    """Tests for the default ~4 chars/token heuristic."""

    def test_empty_text_is_zero(self):
        """Test that empty text costs nothing."""
        assert estimate_tokens("") == 0

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("a", 1),
            ("abcd", 1),
            ("abcde", 2),
            ("The tavern door creaks open.", 7),
            ("x" * 1000, 250),
        ],
    )
    def test_rounds_up(self, text, expected):
        """Test that partial tokens round up."""
        assert estimate_tokens(text) == expected

    def test_monotonic_in_length(self):
        """Test that longer text never estimates fewer tokens."""
        counts = [estimate_tokens("y" * n) for n in range(200)]
        assert counts == sorted(counts)

    def test_total_sums_segments(self):
        """Test estimate_tokens_total across several texts."""
        assert estimate_tokens_total(["abcd", "abcde", ""]) == 3

    def test_total_uses_injected_estimator(self):
        """Test that estimate_tokens_total honors a custom estimator."""
        assert estimate_tokens_total(["a", "bb"], estimator=len) == 3

    def test_satisfies_protocol(self):
        """Test that plain callables satisfy TokenEstimator."""
        assert isinstance(estimate_tokens, TokenEstimator)
        assert isinstance(HeuristicEstimator(), TokenEstimator)


class TestHeuristicEstimator:
    """Tests for HeuristicEstimator."""

    def test_default_matches_estimate_tokens(self):
        """Test that the default ratio matches the module heuristic."""
        estimator = HeuristicEstimator()
        for text in ["", "a", "abcdefgh", "x" * 33]:
            assert estimator(text) == estimate_tokens(text)

    def test_fractional_ratio(self):
        """Test a non-integer chars_per_token ratio."""
        assert HeuristicEstimator(chars_per_token=3.5)("x" * 7) == 2
        assert HeuristicEstimator(chars_per_token=3.5)("x" * 8) == 3

    @pytest.mark.parametrize("ratio", [0, -1, -0.5])
    def test_rejects_non_positive_ratio(self, ratio):
        """Test that chars_per_token must be positive."""
        with pytest.raises(ValueError, match="chars_per_token"):
            HeuristicEstimator(chars_per_token=ratio)

    def test_repr(self):
        """Test the repr names the ratio."""
        assert repr(HeuristicEstimator(2)) == "HeuristicEstimator(chars_per_token=2)"


class TestBuildEstimator:
    """Tests for build_estimator."""

    def test_heuristic_by_default(self):
        """Test that the default name builds a heuristic estimator."""
        estimator = build_estimator()
        assert isinstance(estimator, HeuristicEstimator)
        assert estimator.chars_per_token == CHARS_PER_TOKEN

    def test_name_is_case_insensitive(self):
        """Test that names are normalized."""
        assert isinstance(build_estimator("  Heuristic "), HeuristicEstimator)

    def test_heuristic_ignores_encoding_name(self):
        """Test that shared options do not break the heuristic."""
        estimator = build_estimator("heuristic", chars_per_token=2, encoding_name="cl100k_base")
        assert estimator("abcd") == 2

    def test_unknown_name_raises(self):
        """Test that unknown estimator names are rejected."""
        with pytest.raises(ValueError, match="Unknown estimator 'bpe'"):
            build_estimator("bpe")


class TestCharsPerTokenOf:
    """Tests for chars_per_token_of."""

    def test_reads_advertised_ratio(self):
        """Test that an estimator's own ratio is used."""
        assert chars_per_token_of(HeuristicEstimator(3)) == 3.0

    def test_plain_function_uses_default(self):
        """Test the fallback for estimators without a ratio."""
        assert chars_per_token_of(estimate_tokens) == 4.0
        assert chars_per_token_of(len, default=1) == 1.0


class TestTiktokenEstimator:
    """Tests for the tiktoken-backed estimator."""

    @pytest.fixture
    def estimator(self):
        pytest.importorskip("tiktoken")
        from prompt_budget.core.tokens import TiktokenEstimator

        try:
            return TiktokenEstimator()
        except Exception as e:  # encoding download can fail offline
            pytest.skip(f"tiktoken encoding unavailable: {e}")

    def test_counts_tokens(self, estimator):
        """Test real tokenization of ordinary text."""
        assert estimator("") == 0
        assert 0 < estimator("The tavern door creaks open.") < 28

    def test_special_tokens_are_plain_text(self, estimator):
        """Test that special-token strings in prompts do not raise."""
        assert estimator("<|endoftext|>") > 0

    def test_keeps_guardrail_ratio(self, estimator):
        """Test that the approximate char ratio is exposed."""
        assert chars_per_token_of(estimator) == 4.0
