import logging

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class SuspiciousInputError(ValueError):
    pass


class InputValidator:
    """
    Validates learner submissions using objective, measurable criteria before they are executed.

    Protection mechanisms:
    - Length limits per field type
    - Control character restrictions
    - Line count limits for source text
    """

    # Maximum lengths for different input types
    MAX_LENGTHS = {
        "code": 5000,
    }

    MAX_CODE_LINES = 300

    # Maximum percentage of non-printable/control characters
    MAX_CONTROL_CHAR_PERCENTAGE = 5

    @classmethod
    def validate_submission(cls, code: str) -> None:
        """
        Validate the fields of a grading submission.

        :raises SuspiciousInputError: If input validation fails
        """
        cls.validate_field(code, "code")

        if code.count("\n") + 1 > cls.MAX_CODE_LINES:
            _LOGGER.warning(f"Line count violation: code exceeds {cls.MAX_CODE_LINES} lines")
            raise SuspiciousInputError(f"code exceeds maximum of {cls.MAX_CODE_LINES} lines")

    @classmethod
    def validate_field(cls, text: str, field_name: str) -> None:
        """
        Validate a single input field.

        :raises SuspiciousInputError: If input validation fails
        """
        if not isinstance(text, str):
            raise SuspiciousInputError(f"{field_name} must be a string")

        max_length = cls.MAX_LENGTHS.get(field_name, 2000)
        if len(text) > max_length:
            _LOGGER.warning(f"Length violation: {field_name} is {len(text)} chars (max {max_length})")
            raise SuspiciousInputError(f"{field_name} exceeds maximum length of {max_length} characters")

        # Empty strings are fine - the grader reports missing functions itself
        if not text:
            return

        if "\x00" in text:
            _LOGGER.warning(f"Null byte found in {field_name}")
            raise SuspiciousInputError(f"{field_name} contains a null byte")

        control_chars = sum(1 for c in text if ord(c) < 32 and c not in "\n\r\t")
        if control_chars > 0:
            control_percentage = (control_chars / len(text)) * 100
            if control_percentage > cls.MAX_CONTROL_CHAR_PERCENTAGE:
                _LOGGER.warning(f"Excessive control characters in {field_name}: {control_percentage:.1f}%")
                raise SuspiciousInputError(f"{field_name} contains too many control characters")

    @classmethod
    def sanitize_for_logging(cls, text: str, max_length: int = 100) -> str:
        """
        Sanitize text for safe logging (via truncation).

        :param text: Text to sanitize
        :param max_length: Maximum length to include in logs
        :returns: Sanitized text safe for logging
        """
        if len(text) > max_length:
            return text[:max_length] + "..."
        return text
