import typing

from pydantic import BaseModel, Field

from codequest_backend.utils.base_types import (
    ChapterIndex,
    CodingStageIndex,
    IsoTimestamp,
    LessonIndex,
    LessonKey,
    StageKey,
    UserId,
)


class StageCompletionModel(BaseModel):
    """A learner's completion of one coding stage, as stored in DynamoDB."""

    userId: UserId
    stageKey: StageKey
    chapterIndex: ChapterIndex = Field(..., ge=0)
    lessonIndex: LessonIndex = Field(..., ge=0)
    codingStageIndex: CodingStageIndex = Field(..., ge=0)
    completed: bool = True
    completedAt: IsoTimestamp
    curriculumVersion: typing.Optional[str] = None


class LessonCompletionModel(BaseModel):
    """A learner's completion of every coding stage of a lesson, as stored in DynamoDB."""

    userId: UserId
    lessonKey: LessonKey
    chapterIndex: ChapterIndex = Field(..., ge=0)
    lessonIndex: LessonIndex = Field(..., ge=0)
    completed: bool = True
    completedAt: IsoTimestamp
    curriculumVersion: typing.Optional[str] = None


class LessonStatusModel(BaseModel):
    chapterIndex: ChapterIndex
    lessonIndex: LessonIndex
    unlocked: bool
    completed: bool
    completedCodingStages: int
    totalCodingStages: int


class UserProgressModel(BaseModel):
    """Response body of GET /progress."""

    userId: UserId
    curriculumVersion: str
    stageCompletions: list[StageCompletionModel] = Field(default_factory=list)
    lessonCompletions: list[LessonCompletionModel] = Field(default_factory=list)
    lessons: list[LessonStatusModel] = Field(default_factory=list)
