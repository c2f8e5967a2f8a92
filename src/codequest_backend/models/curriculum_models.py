import typing

import pydantic
from pydantic import Field

from codequest_backend.utils.base_types import ChapterIndex, CodingStageIndex, LessonIndex

StageType = typing.Literal["text", "coding"]


class StageTestCaseModel(pydantic.BaseModel):
    """
    One input/output example for a coding stage.
    `input` holds positional arguments for the learner function; values are plain JSON values.
    """

    input: list[typing.Any] = Field(default_factory=list)
    expectedOutput: typing.Any = None
    description: str = ""

    class Config:
        frozen = True


class TextStageModel(pydantic.BaseModel):
    type: typing.Literal["text"] = "text"
    title: str
    content: str = ""

    class Config:
        frozen = True


class CodingStageModel(pydantic.BaseModel):
    type: typing.Literal["coding"] = "coding"
    title: str
    description: str = ""
    starterCode: str = ""
    solution: typing.Optional[str] = None
    hints: list[str] = Field(default_factory=list)
    testCases: list[StageTestCaseModel] = Field(..., min_length=1)

    class Config:
        frozen = True


StageModel = typing.Annotated[
    typing.Union[TextStageModel, CodingStageModel],
    Field(discriminator="type"),
]


class LessonModel(pydantic.BaseModel):
    name: str
    description: str = ""
    icon: str = ""
    stages: list[StageModel] = Field(default_factory=list)

    class Config:
        frozen = True


class ChapterModel(pydantic.BaseModel):
    title: str
    description: str = ""
    imagePath: str = ""
    details: str = ""
    lessons: list[LessonModel] = Field(default_factory=list)

    class Config:
        frozen = True


class CurriculumModel(pydantic.BaseModel):
    """
    Root of the static curriculum content.
    `version` is stamped on every completion record so progress can be traced to the content it was earned on.
    """

    version: str
    chapters: list[ChapterModel] = Field(default_factory=list)

    class Config:
        frozen = True


class SolutionRequestInputModel(pydantic.BaseModel):
    """Query string of GET /solution. Values arrive as strings and are coerced to indices."""

    chapterIndex: ChapterIndex = Field(..., ge=0)
    lessonIndex: LessonIndex = Field(..., ge=0)
    codingStageIndex: CodingStageIndex = Field(..., ge=0)

    class Config:
        extra = "forbid"


class SolutionResponseModel(pydantic.BaseModel):
    chapterIndex: ChapterIndex
    lessonIndex: LessonIndex
    codingStageIndex: CodingStageIndex
    solution: str
