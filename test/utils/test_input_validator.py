"""
Tests for submission validation with objective, measurable criteria.
"""

import pytest

from codequest_backend.utils.input_validator import InputValidator, SuspiciousInputError


class TestInputValidatorLegitimateInput:
    """Test that legitimate learner submissions pass validation"""

    def test_valid_submission(self):
        InputValidator.validate_submission("def first(values):\n    return values[0] if values else None\n")

    def test_empty_submission_is_left_to_the_grader(self):
        InputValidator.validate_submission("")

    def test_tabs_and_carriage_returns_allowed(self):
        InputValidator.validate_field("def f():\r\n\treturn 1\r\n", "code")


class TestInputValidatorLimits:
    def test_code_too_long(self):
        """Code exceeding 5000 chars should be rejected"""
        with pytest.raises(SuspiciousInputError, match="exceeds maximum length"):
            InputValidator.validate_submission("x" * 5001)

    def test_code_at_limit(self):
        InputValidator.validate_field("x" * 5000, "code")

    def test_too_many_lines(self):
        with pytest.raises(SuspiciousInputError, match="lines"):
            InputValidator.validate_submission("\n" * InputValidator.MAX_CODE_LINES)

    def test_unknown_field_uses_default_limit(self):
        with pytest.raises(SuspiciousInputError, match="2000"):
            InputValidator.validate_field("a" * 2001, "other")


class TestInputValidatorControlCharacters:
    def test_null_byte_rejected(self):
        with pytest.raises(SuspiciousInputError, match="null byte"):
            InputValidator.validate_submission("def f():\x00\n    pass")

    def test_excessive_control_characters(self):
        with pytest.raises(SuspiciousInputError, match="control characters"):
            InputValidator.validate_field("def f(): pass" + "\x07" * 10, "code")

    def test_occasional_control_character_allowed(self):
        InputValidator.validate_field("a" * 100 + "\x1b", "code")

    def test_non_string_rejected(self):
        with pytest.raises(SuspiciousInputError, match="must be a string"):
            InputValidator.validate_field(42, "code")  # type: ignore[arg-type]


def test_sanitize_for_logging():
    assert InputValidator.sanitize_for_logging("short") == "short"
    assert InputValidator.sanitize_for_logging("y" * 150) == "y" * 100 + "..."
