import json
import logging
import typing

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)

_PRIMITIVE_TYPES = (type(None), bool, int, float, str)
_ARRAY_TYPES = (list, tuple)


class UncomparableValueError(TypeError):
    """Raised when a value falls outside the JSON value space that test cases are written in."""


def _check_supported(value: typing.Any) -> None:
    if not isinstance(value, _PRIMITIVE_TYPES + _ARRAY_TYPES + (dict,)):
        raise UncomparableValueError(f"Cannot structurally compare value of type {type(value).__name__}")


def _is_composite(value: typing.Any) -> bool:
    return isinstance(value, _ARRAY_TYPES + (dict,))


def _primitive_equal(expected: typing.Any, actual: typing.Any) -> bool:
    """Exact value equality without coercion: "5" != 5, True != 1, None only equals None."""
    _check_supported(expected)
    _check_supported(actual)
    if expected is None or actual is None:
        return expected is None and actual is None
    if isinstance(expected, bool) or isinstance(actual, bool):
        return isinstance(expected, bool) and isinstance(actual, bool) and expected == actual
    if isinstance(expected, (int, float)) and isinstance(actual, (int, float)):
        # one number type, as in JSON
        return expected == actual
    if isinstance(expected, str) and isinstance(actual, str):
        return expected == actual
    return False


def _json_key(key: typing.Any) -> str:
    """The object key a primitive takes once the record is written as JSON: 1 -> "1", True -> "true"."""
    _check_supported(key)
    if _is_composite(key):
        raise UncomparableValueError("Record keys must be primitive values")
    if isinstance(key, str):
        return key
    return json.dumps(key)


def _record_by_json_key(record: dict) -> dict[str, typing.Any]:
    by_key: dict[str, typing.Any] = {}
    for key, value in record.items():
        json_key = _json_key(key)
        if json_key in by_key:
            raise UncomparableValueError(f"Record keys collide once written as JSON: {json_key!r}")
        by_key[json_key] = value
    return by_key


def _deep_equal(expected: typing.Any, actual: typing.Any) -> bool:
    _check_supported(expected)
    _check_supported(actual)

    if isinstance(expected, _ARRAY_TYPES) and isinstance(actual, _ARRAY_TYPES):
        if len(expected) != len(actual):
            return False
        return all(_deep_equal(e, a) for e, a in zip(expected, actual))

    if isinstance(expected, dict) and isinstance(actual, dict):
        expected_by_key = _record_by_json_key(expected)
        actual_by_key = _record_by_json_key(actual)
        if set(expected_by_key) != set(actual_by_key):
            return False
        return all(_deep_equal(value, actual_by_key[key]) for key, value in expected_by_key.items())

    if _is_composite(expected) or _is_composite(actual):
        return False

    return _primitive_equal(expected, actual)


def structurally_equal(expected: typing.Any, actual: typing.Any) -> bool:
    """
    Compares an expected test case output with the value a learner function returned.

    Arrays (lists and tuples) are compared element by element in order, records (dicts) by key set and
    per-key value, and primitives by exact value without coercion. Record keys are taken in the form they have
    as JSON object keys, so {1: "a"} equals {"1": "a"} and {True: 1} equals {"true": 1}.

    :raises UncomparableValueError: If either side holds a value outside the JSON value space.
    """
    if _is_composite(expected) or _is_composite(actual):
        return _deep_equal(expected, actual)
    return _primitive_equal(expected, actual)


def _string_form(value: typing.Any) -> str:
    try:
        return str(value)
    except Exception:
        return repr(value)


def outputs_match(expected: typing.Any, actual: typing.Any) -> bool:
    """
    Structural equality with a string-form fallback for values that cannot be compared structurally.
    The fallback is an implementation detail and is only logged.
    """
    try:
        return structurally_equal(expected, actual)
    except (UncomparableValueError, RecursionError) as e:
        _LOGGER.debug(f"Falling back to string comparison: {e}")
        return _string_form(expected) == _string_form(actual)
