import typing

import pydantic
from pydantic import Field, field_serializer

from codequest_backend.utils.base_types import ChapterIndex, CodingStageIndex, LessonIndex

# Messages reported in a case's `error` field. Runtime faults carry the exception text instead.
NO_FUNCTION_FOUND = "NoFunctionFound: no top-level function definition was found in the submitted code"
SOURCE_SYNTAX_ERROR = "SourceSyntaxError"
TIMEOUT_EXCEEDED = "TimeoutExceeded"


def _json_safe(value: typing.Any) -> typing.Any:
    """Keeps JSON values and writes anything else (sets, learner objects, ...) as its text, at every depth."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    if isinstance(value, dict):
        return {key: _json_safe(item) for key, item in value.items()}
    return str(value)


class CaseResultModel(pydantic.BaseModel):
    """Outcome of running the learner function against a single test case."""

    index: int
    passed: bool
    input: list[typing.Any]
    expectedOutput: typing.Any = None
    actualOutput: typing.Any = None
    description: str = ""
    error: typing.Optional[str] = None
    printedOutput: typing.Optional[str] = None

    @field_serializer("actualOutput")
    def serialize_actual_output(self, actual_output: typing.Any) -> typing.Any:
        return _json_safe(actual_output)


class GradingVerdictModel(pydantic.BaseModel):
    """Ordered case results of one grading attempt. Never persisted."""

    results: list[CaseResultModel] = Field(default_factory=list)

    @property
    def all_passed(self) -> bool:
        return bool(self.results) and all(result.passed for result in self.results)

    @property
    def passed_count(self) -> int:
        return sum(1 for result in self.results if result.passed)

    def to_response_dict(self) -> dict[str, typing.Any]:
        return {
            "results": [result.model_dump() for result in self.results],
            "allPassed": self.all_passed,
            "passedCount": self.passed_count,
            "totalCount": len(self.results),
        }


class GradeRequestInputModel(pydantic.BaseModel):
    """Request body of POST /grade."""

    chapterIndex: ChapterIndex = Field(..., ge=0)
    lessonIndex: LessonIndex = Field(..., ge=0)
    codingStageIndex: CodingStageIndex = Field(..., ge=0)
    code: str

    class Config:
        extra = "forbid"
