import pytest

from codequest_backend.grading.comparison import UncomparableValueError, outputs_match, structurally_equal


@pytest.mark.parametrize(
    "expected, actual",
    [
        (1, 1),
        (1, 1.0),
        ("magic", "magic"),
        (None, None),
        (True, True),
        ([1, 2, 3], [1, 2, 3]),
        ([3, 2, 1], (3, 2, 1)),
        ({"a": 1, "b": [1, 2]}, {"b": [1, 2], "a": 1}),
        ({"value": 1, "next": {"value": 2, "next": None}}, {"value": 1, "next": {"value": 2, "next": None}}),
        ([], []),
        ({"1": "a"}, {1: "a"}),
        ({"true": 1, "null": 2}, {True: 1, None: 2}),
        ({"1.5": [1]}, {1.5: (1,)}),
        ({"scores": {"3": "Ann"}}, {"scores": {3: "Ann"}}),
    ],
)
def test_structurally_equal(expected, actual):
    assert structurally_equal(expected, actual)


@pytest.mark.parametrize(
    "expected, actual",
    [
        (5, "5"),
        (1, True),
        (0, False),
        (None, 0),
        (None, []),
        ([1, 2, 3], [3, 2, 1]),
        ([1, 2], [1, 2, 3]),
        ({"a": 1}, {"a": 1, "b": 2}),
        ({"a": 1}, {"a": "1"}),
        ({"1": "a"}, {2: "a"}),
        ({"1": "a"}, {1: "b"}),
        ({"True": 1}, {True: 1}),
        ([1], {"0": 1}),
        ("abc", ["a", "b", "c"]),
    ],
)
def test_structurally_unequal(expected, actual):
    assert not structurally_equal(expected, actual)


def test_unsupported_value_raises():
    with pytest.raises(UncomparableValueError):
        structurally_equal([1, 2], {1, 2})


def test_composite_record_key_raises():
    with pytest.raises(UncomparableValueError):
        structurally_equal({"a": 1}, {(1, 2): 1})


def test_record_keys_colliding_as_json_raise():
    with pytest.raises(UncomparableValueError):
        structurally_equal({"1": "a"}, {1: "a", "1": "a"})


class _Stringly:
    def __str__(self) -> str:
        return "[1, 2]"


def test_outputs_match_falls_back_to_string_form():
    assert outputs_match("[1, 2]", _Stringly())
    assert not outputs_match("[2, 1]", _Stringly())


def test_outputs_match_structural_first():
    # same string form, different structure
    assert not outputs_match(5, "5")
    assert outputs_match([1, [2, 3]], [1, [2, 3]])
