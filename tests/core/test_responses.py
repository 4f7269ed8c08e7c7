"""
Tests for the JSON envelope used by the CLI.
"""

import json

from prompt_budget.core.context import budget_run_context
from prompt_budget.core.errors import BudgetInputError, ConfigError
from prompt_budget.core.responses import (
    RESPONSE_VERSION,
    Envelope,
    ErrorCode,
    ErrorType,
    envelope_from_error,
    error_envelope,
    success_envelope,
)


class TestEnvelope:
    """Tests for the Envelope dataclass."""

    def test_defaults(self):
        """Test that data defaults to empty dict and meta carries the version."""
        envelope = Envelope(success=True)
        assert envelope.data == {}
        assert envelope.error is None
        assert envelope.meta == {"version": RESPONSE_VERSION}

    def test_to_json_is_one_minified_line(self):
        """Test the serialized form."""
        text = Envelope(success=True, data={"tokens": 7}).to_json()
        assert "\n" not in text
        assert ", " not in text
        assert json.loads(text) == {
            "success": True,
            "data": {"tokens": 7},
            "error": None,
            "meta": {"version": RESPONSE_VERSION},
        }


class TestSuccessEnvelope:
    """Tests for success_envelope."""

    def test_payload_copied(self):
        """Test that the payload is copied, not aliased."""
        data = {"tokens": 7}
        envelope = success_envelope(data)
        data["tokens"] = 8
        assert envelope.success is True
        assert envelope.data == {"tokens": 7}

    def test_warnings_and_telemetry_in_meta(self):
        """Test that warnings and telemetry land under meta."""
        envelope = success_envelope(
            {}, warnings=("fallback_trim_applied",), telemetry={"duration_ms": 1.5}
        )
        assert envelope.meta["warnings"] == ["fallback_trim_applied"]
        assert envelope.meta["telemetry"] == {"duration_ms": 1.5}

    def test_empty_warnings_omitted(self):
        """Test that an empty warning list leaves meta minimal."""
        assert "warnings" not in success_envelope({}, warnings=[]).meta

    def test_request_id_from_run(self):
        """Test that the active run ID becomes the request ID."""
        with budget_run_context(run_id="run_fixed"):
            envelope = success_envelope({})
        assert envelope.meta["request_id"] == "run_fixed"

    def test_no_request_id_outside_run(self):
        """Test that meta omits request_id without a run context."""
        assert "request_id" not in success_envelope({}).meta

    def test_explicit_request_id_wins(self):
        """Test that an explicit request ID overrides the run ID."""
        with budget_run_context(run_id="run_fixed"):
            envelope = success_envelope({}, request_id="req_1")
        assert envelope.meta["request_id"] == "req_1"


class TestErrorEnvelope:
    """Tests for error_envelope and envelope_from_error."""

    def test_structured_payload(self):
        """Test that code, type, remediation and details populate data."""
        envelope = error_envelope(
            "Sections file must contain a list of sections",
            ErrorCode.INVALID_FORMAT,
            ErrorType.VALIDATION,
            remediation="Provide a JSON list",
            details={"path": "s.json"},
        )
        assert envelope.success is False
        assert envelope.error == "Sections file must contain a list of sections"
        assert envelope.data == {
            "error_code": "INVALID_FORMAT",
            "error_type": "validation",
            "remediation": "Provide a JSON list",
            "details": {"path": "s.json"},
        }

    def test_defaults_to_internal(self):
        """Test the default code and type."""
        envelope = error_envelope("unexpected")
        assert envelope.data == {"error_code": "INTERNAL_ERROR", "error_type": "internal"}

    def test_plain_string_codes(self):
        """Test that string codes pass through unchanged."""
        envelope = error_envelope("bad", "CUSTOM", "validation")
        assert envelope.data["error_code"] == "CUSTOM"

    def test_from_input_error_adds_index(self):
        """Test that the offending section index lands in details."""
        error = BudgetInputError("Section at index 2 has an empty key", index=2)
        envelope = envelope_from_error(error)
        assert envelope.error == "Section at index 2 has an empty key"
        assert envelope.data["error_code"] == "VALIDATION_ERROR"
        assert envelope.data["details"] == {"index": 2}
        assert envelope.data["remediation"] == error.remediation

    def test_from_config_error(self):
        """Test a configuration failure with caller details."""
        error = ConfigError("Config file not found: x.toml", remediation="Check --config")
        envelope = envelope_from_error(
            error,
            ErrorCode.CONFIG_ERROR,
            ErrorType.CONFIGURATION,
            details={"config_file": "x.toml"},
        )
        assert envelope.data == {
            "error_code": "CONFIG_ERROR",
            "error_type": "configuration",
            "remediation": "Check --config",
            "details": {"config_file": "x.toml"},
        }


class TestErrorEnums:
    """Tests for ErrorCode and ErrorType."""

    def test_codes_equal_their_names(self):
        """Test that every code is a str equal to its name."""
        for code in ErrorCode:
            assert isinstance(code, str)
            assert code.value == code.name

    def test_code_vocabulary(self):
        """Test the codes the CLI emits."""
        assert {c.value for c in ErrorCode} == {
            "VALIDATION_ERROR",
            "INVALID_FORMAT",
            "MISSING_REQUIRED",
            "CONFIG_ERROR",
            "UNAVAILABLE",
            "INTERNAL_ERROR",
        }

    def test_type_values(self):
        """Test the error type vocabulary."""
        assert {t.value for t in ErrorType} == {
            "validation",
            "configuration",
            "unavailable",
            "internal",
        }
