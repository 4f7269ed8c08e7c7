"""
Property-based tests for the trimmer and budget engine using Hypothesis.

Covers fence safety, marker presence, floors, determinism and the no-op
path over arbitrary section lists.
"""

from hypothesis import HealthCheck, given, settings, strategies as st

from prompt_budget.core.engine import apply_budget
from prompt_budget.core.report import FALLBACK_TRIM_APPLIED, TrimAction
from prompt_budget.core.sections import Constrained, Section
from prompt_budget.core.tokens import estimate_tokens
from prompt_budget.core.trimmer import TRIM_MARKER, count_fences, trim_with_meta

KEY_PREFIXES = [
    "input",
    "state",
    "npc",
    "npcs",
    "scenario",
    "world",
    "module",
    "ruleset",
    "core",
    "misc",
]


# Custom strategies


@st.composite
def plain_text(draw, max_size=300):
    """Prose-like text without backticks or the marker's ellipsis."""
    return draw(
        st.text(
            alphabet=st.sampled_from("abcdefgh ijk.,!?\n"),
            max_size=max_size,
        )
    )


@st.composite
def fenced_text(draw):
    """Text with balanced ``` fences between prose chunks."""
    chunks = draw(st.lists(plain_text(max_size=80), min_size=1, max_size=5))
    parts = []
    for index, chunk in enumerate(chunks):
        parts.append(chunk)
        if index < len(chunks) - 1:
            code = draw(plain_text(max_size=60))
            parts.append(f"\n```\n{code}\n```\n")
    return "".join(parts)


@st.composite
def constraint(draw):
    if draw(st.booleans()):
        return Constrained()
    return Constrained(
        must_keep=draw(st.booleans()),
        min_chars=draw(st.none() | st.integers(min_value=0, max_value=400)),
        priority=draw(st.none() | st.integers(min_value=-50, max_value=100)),
    )


@st.composite
def section_list(draw):
    count = draw(st.integers(min_value=0, max_value=8))
    sections = []
    for index in range(count):
        prefix = draw(st.sampled_from(KEY_PREFIXES))
        text = draw(st.one_of(plain_text(), fenced_text()))
        sections.append(
            Section(key=f"{prefix}.s{index}", text=text, constraint=draw(constraint()))
        )
    return sections


# =============================================================================
# Trimmer properties
# =============================================================================


class TestTrimmerProperties:
    """Properties of trim_with_meta."""

    @given(text=fenced_text(), target=st.integers(min_value=0, max_value=400))
    def test_balanced_fences_stay_balanced(self, text, target):
        """Test that trimming never leaves an odd fence count."""
        outcome = trim_with_meta(text, target)
        assert count_fences(outcome.text) % 2 == 0

    @given(
        text=plain_text(),
        target=st.integers(min_value=0, max_value=400),
        floor=st.integers(min_value=0, max_value=400),
    )
    def test_plain_text_length_bounds(self, text, target, floor):
        """Test target and floor bounds on fence-free text."""
        outcome = trim_with_meta(text, target, floor=floor)
        if outcome.trimmed:
            assert len(outcome.text) <= max(target, floor, len(TRIM_MARKER))
            assert len(outcome.text) >= min(floor, len(text))
            assert len(outcome.text) < len(text)
        else:
            assert outcome.text == text

    @given(text=st.one_of(plain_text(), fenced_text()), target=st.integers(0, 400))
    def test_marker_iff_trimmed(self, text, target):
        """Test that the marker appears exactly when content was removed."""
        outcome = trim_with_meta(text, target)
        assert outcome.text.endswith(TRIM_MARKER) == outcome.trimmed
        if outcome.trimmed:
            kept = outcome.text[: -len(TRIM_MARKER)]
            assert text.startswith(kept)


# =============================================================================
# Engine properties
# =============================================================================


class TestEngineProperties:
    """Properties of apply_budget over arbitrary sections."""

    @given(sections=section_list(), slack=st.integers(min_value=0, max_value=50))
    def test_no_op_within_budget(self, sections, slack):
        """Test that fitting input is returned unchanged."""
        total = sum(estimate_tokens(s.text) for s in sections)
        report = apply_budget(sections, total + slack)
        assert [s.text for s in report.sections] == [s.text for s in sections]
        assert report.trims == []
        assert report.warnings == []
        assert report.total_tokens_before == report.total_tokens_after

    @settings(suppress_health_check=[HealthCheck.too_slow])
    @given(sections=section_list(), max_tokens=st.integers(min_value=-10, max_value=400))
    def test_invariants(self, sections, max_tokens):
        """Test floors, fences, markers and token accounting."""
        report = apply_budget(sections, max_tokens)
        originals = {id(s): s for s in sections}
        by_key_index = {f"{s.key}": s for s in sections}

        fallback = FALLBACK_TRIM_APPLIED in report.warnings
        trimmed_keys = {t.key for t in report.trims if t.action is TrimAction.TRIMMED}

        for out in report.sections:
            source = by_key_index[out.key]
            assert id(out) not in originals
            if source.text.count("```") % 2 == 0:
                assert count_fences(out.text) % 2 == 0
            if out.text != source.text:
                assert out.key in trimmed_keys
                assert out.text.endswith(TRIM_MARKER)
            if out.must_keep and not fallback:
                floor = source.constraint.floor_chars
                assert len(out.text) >= min(floor, len(source.text))

        # Must-keep sections are never dropped
        surviving = {s.key for s in report.sections}
        for source in sections:
            if source.must_keep:
                assert source.key in surviving

        assert report.total_tokens_after == sum(estimate_tokens(s.text) for s in report.sections)
        assert report.total_tokens_after <= report.total_tokens_before

    @given(sections=section_list(), max_tokens=st.integers(min_value=0, max_value=400))
    def test_droppable_only_always_fits(self, sections, max_tokens):
        """Test budget satisfaction when nothing is must-keep."""
        droppable = [Section(key=s.key, text=s.text) for s in sections]
        report = apply_budget(droppable, max_tokens)
        assert report.total_tokens_after <= max_tokens
        assert report.warnings == []

    @given(sections=section_list(), max_tokens=st.integers(min_value=-10, max_value=400))
    def test_deterministic(self, sections, max_tokens):
        """Test that repeated runs produce identical reports."""
        first = apply_budget(sections, max_tokens).to_dict()
        second = apply_budget(sections, max_tokens).to_dict()
        assert first == second

    @given(sections=section_list(), max_tokens=st.integers(min_value=-10, max_value=400))
    def test_input_not_mutated(self, sections, max_tokens):
        """Test that caller sections keep their text."""
        before = [s.text for s in sections]
        apply_budget(sections, max_tokens)
        assert [s.text for s in sections] == before
