import json

from codequest_backend.grading.sandbox import OpaqueValue
from codequest_backend.models.grading_models import CaseResultModel, GradingVerdictModel


def _result(actual_output) -> CaseResultModel:
    return CaseResultModel(index=0, passed=False, input=[], expectedOutput=None, actualOutput=actual_output)


def test_actual_output_keeps_json_values():
    result = _result({"a": [1, 2.5, None, True, "x"]})

    assert result.model_dump()["actualOutput"] == {"a": [1, 2.5, None, True, "x"]}


def test_opaque_actual_output_is_text():
    assert _result(OpaqueValue("{1, 2}")).model_dump()["actualOutput"] == "{1, 2}"


def test_nested_opaque_actual_output_is_text():
    result = _result([{"items": OpaqueValue("{1, 2}")}, (OpaqueValue("<Node>"), 3)])

    assert result.model_dump()["actualOutput"] == [{"items": "{1, 2}"}, ["<Node>", 3]]


def test_verdict_response_is_json_serializable():
    verdict = GradingVerdictModel(results=[_result([OpaqueValue("{1, 2}")])])

    body = json.dumps(verdict.to_response_dict())

    assert json.loads(body)["results"][0]["actualOutput"] == ["{1, 2}"]
