"""Fence-safe text trimming for prompt sections.

Naive slicing can split a Markdown code block and leave an odd number of
``` markers behind, which corrupts everything the model reads after it.
The trimmer pairs fence markers into spans and only cuts outside them:

1. A cut that lands inside a fenced block moves back to the block start.
2. If that would break the caller's floor, the whole block is kept instead
   (the result may then exceed the target; a block is never split).
3. A newline or sentence end is preferred when it keeps at least 70% of
   the cut.
4. TRIM_MARKER is appended exactly when content was removed.

leading_heading_length() reports a leading Markdown heading line so callers
can keep it as part of a floor.

Usage:
    from prompt_budget.core.trimmer import trim_text

    shorter = trim_text(section_text, 400, floor=120)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

TRIM_MARKER = "… [[trimmed]]"

FENCE = "```"

# Only back off to a line/sentence boundary if it keeps this much of the cut
BOUNDARY_KEEP_RATIO = 0.7

_SENTENCE_ENDS = (".", "?", "!")

# "# Title\n", "## Core Principles\n", ...
_HEADING_LINE = re.compile(r"#+ [^\n]+\n")


@dataclass(frozen=True)
class TrimOutcome:
    """Result of trimming one text.

    Attributes:
        text: Resulting text (marker included when trimmed)
        trimmed: Whether content was removed
        from_chars: Length before trimming
        to_chars: Length after trimming
    """

    text: str
    trimmed: bool
    from_chars: int
    to_chars: int

    @property
    def removed_chars(self) -> int:
        return self.from_chars - self.to_chars


def leading_heading_length(text: str) -> int:
    """Length of a leading Markdown heading line, newline included, else 0."""
    match = _HEADING_LINE.match(text)
    return match.end() if match else 0


def count_fences(text: str) -> int:
    """Count non-overlapping ``` markers in ``text``."""
    return text.count(FENCE)


def find_fence_spans(text: str) -> list[tuple[int, int]]:
    """Pair fence markers left to right into ``(start, end)`` spans.

    ``end`` is the index just past the closing marker. An unclosed fence
    runs to the end of the text.
    """
    positions: list[int] = []
    start = 0
    while True:
        index = text.find(FENCE, start)
        if index == -1:
            break
        positions.append(index)
        start = index + len(FENCE)

    spans: list[tuple[int, int]] = []
    for i in range(0, len(positions), 2):
        if i + 1 < len(positions):
            spans.append((positions[i], positions[i + 1] + len(FENCE)))
        else:
            spans.append((positions[i], len(text)))
    return spans


def _enclosing_span(
    spans: list[tuple[int, int]], position: int
) -> Optional[tuple[int, int]]:
    for start, end in spans:
        if start < position < end:
            return (start, end)
    return None


def _last_boundary(text: str, cut: int) -> Optional[int]:
    """Latest newline or sentence end at or before ``cut``."""
    best = text.rfind("\n", 0, cut)
    for mark in _SENTENCE_ENDS:
        index = text.rfind(mark, 0, cut)
        if index != -1:
            best = max(best, index + 1)
    return best if best > 0 else None


def find_safe_cut(
    text: str,
    limit: int,
    *,
    spans: Optional[list[tuple[int, int]]] = None,
    prefer_boundary: bool = True,
) -> int:
    """Largest cut position ``<= limit`` that is outside every fenced block.

    Args:
        text: Text to cut
        limit: Maximum number of characters to keep
        spans: Precomputed fence spans for ``text``
        prefer_boundary: Back off to a newline/sentence end when cheap

    Returns:
        Index such that ``text[:index]`` contains only complete fences
    """
    limit = max(0, min(limit, len(text)))
    if spans is None:
        spans = find_fence_spans(text)

    cut = limit
    span = _enclosing_span(spans, cut)
    if span is not None:
        cut = span[0]

    if prefer_boundary:
        boundary = _last_boundary(text, cut)
        if (
            boundary is not None
            and boundary >= cut * BOUNDARY_KEEP_RATIO
            and _enclosing_span(spans, boundary) is None
        ):
            cut = boundary
    return cut


def trim_with_meta(
    text: str,
    target_length: int,
    *,
    floor: int = 0,
    marker: str = TRIM_MARKER,
) -> TrimOutcome:
    """Trim ``text`` to at most ``target_length`` characters, marker included.

    Two cases return more than ``target_length`` characters:

    - A fenced block that must stay whole to honor ``floor`` is kept
      entirely.
    - A ``target_length`` shorter than the marker yields the bare marker,
      with no content kept.

    Args:
        text: Text to trim
        target_length: Desired maximum length of the result
        floor: Minimum length the result may have. Raises the effective
            target when above it.
        marker: Suffix appended when content is removed

    Returns:
        TrimOutcome. ``trimmed`` is False (and the text unchanged) when the
        text already fits or no strictly shorter fence-safe result exists.
    """
    original = len(text)
    unchanged = TrimOutcome(text=text, trimmed=False, from_chars=original, to_chars=original)
    if original <= target_length:
        return unchanged

    floor = max(0, min(floor, original))
    target = max(target_length, floor)
    if target >= original:
        return unchanged

    spans = find_fence_spans(text)
    budget = max(0, target - len(marker))
    cut = find_safe_cut(text, budget, spans=spans, prefer_boundary=False)

    if cut + len(marker) < floor:
        # Backing off to the fence start broke the floor: keep the block whole
        span = _enclosing_span(spans, budget)
        cut = span[1] if span is not None else budget
    else:
        boundary = _last_boundary(text, cut)
        if (
            boundary is not None
            and boundary >= cut * BOUNDARY_KEEP_RATIO
            and boundary + len(marker) >= floor
            and _enclosing_span(spans, boundary) is None
        ):
            cut = boundary

    kept = text[:cut]
    stripped = kept.rstrip()
    if len(stripped) + len(marker) >= floor:
        kept = stripped

    result = kept + marker
    if len(result) >= original:
        return unchanged
    return TrimOutcome(text=result, trimmed=True, from_chars=original, to_chars=len(result))


def trim_text(
    text: str,
    target_length: int,
    *,
    floor: int = 0,
    marker: str = TRIM_MARKER,
) -> str:
    """Trim ``text`` fence-safely; see trim_with_meta."""
    return trim_with_meta(text, target_length, floor=floor, marker=marker).text


__all__ = [
    "BOUNDARY_KEEP_RATIO",
    "FENCE",
    "TRIM_MARKER",
    "TrimOutcome",
    "count_fences",
    "find_fence_spans",
    "find_safe_cut",
    "leading_heading_length",
    "trim_text",
    "trim_with_meta",
]
