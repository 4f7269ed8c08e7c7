"""Tests for run context propagation."""

import re
import threading

from prompt_budget.core.context import (
    budget_run_context,
    generate_run_id,
    get_run_id,
    get_session_id,
    get_start_time,
)


class TestGenerateRunId:
    """Tests for generate_run_id."""

    def test_format(self):
        """Test prefix and 12 hex characters."""
        assert re.fullmatch(r"run_[0-9a-f]{12}", generate_run_id())
        assert generate_run_id("cli").startswith("cli_")

    def test_unique(self):
        """Test that IDs do not repeat."""
        assert len({generate_run_id() for _ in range(100)}) == 100


class TestBudgetRunContext:
    """Tests for budget_run_context."""

    def test_sets_and_resets(self):
        """Test that variables exist only inside the block."""
        assert get_run_id() == ""
        with budget_run_context(session_id="campaign-42") as ctx:
            assert get_run_id() == ctx.run_id
            assert get_session_id() == "campaign-42"
            assert get_start_time() > 0
        assert get_run_id() == ""
        assert get_session_id() == ""
        assert get_start_time() == 0.0

    def test_explicit_run_id(self):
        """Test that a given run ID is used."""
        with budget_run_context(run_id="run_fixed") as ctx:
            assert ctx.run_id == "run_fixed"
            assert ctx.to_dict()["session_id"] is None

    def test_nested_inherits_session(self):
        """Test that an inner run keeps the outer session."""
        with budget_run_context(session_id="outer") as outer:
            with budget_run_context() as inner:
                assert inner.session_id == "outer"
                assert inner.run_id != outer.run_id
            assert get_run_id() == outer.run_id

    def test_threads_are_isolated(self):
        """Test that context does not leak into other threads."""
        seen = []
        with budget_run_context(session_id="main"):
            thread = threading.Thread(target=lambda: seen.append(get_session_id()))
            thread.start()
            thread.join()
        assert seen == [""]
