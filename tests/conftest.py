"""
Root pytest configuration and shared fixtures.
"""

import logging

import pytest

from prompt_budget.core.logging_config import ROOT_LOGGER_NAME
from prompt_budget.core.sections import Section, make_section

PROSE = (
    "The tavern door creaks open and rain follows the stranger inside. "
    "Every conversation stops. The bard lowers her lute; the dice go still. "
)


@pytest.fixture
def prose():
    """Factory for sentence-structured filler text of an exact length."""

    def _make(length: int) -> str:
        repeated = PROSE * (length // len(PROSE) + 1)
        return repeated[:length]

    return _make


@pytest.fixture
def section():
    """Factory for sections: section("world.tone", 400, must_keep=True)."""

    def _make(key: str, length_or_text, **slot) -> Section:
        text = length_or_text if isinstance(length_or_text, str) else "x" * length_or_text
        return make_section(key, text, **slot)

    return _make


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Drop handlers installed by configure_logging() during a test."""
    yield
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
