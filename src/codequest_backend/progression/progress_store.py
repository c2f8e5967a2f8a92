import dataclasses
import logging
import typing

from botocore.exceptions import ClientError

from codequest_backend.curriculum.curriculum import Curriculum
from codequest_backend.dynamodb.lesson_progress_table import LessonProgressTable
from codequest_backend.dynamodb.stage_progress_table import StageProgressTable
from codequest_backend.grading.stage_run import StageCompletedEvent
from codequest_backend.models.progress_models import (
    LessonCompletionModel,
    LessonStatusModel,
    StageCompletionModel,
)
from codequest_backend.utils.base_types import (
    ChapterIndex,
    CodingStageIndex,
    LessonIndex,
    UserId,
)

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)

StageTuple = tuple[int, int, int]
LessonTuple = tuple[int, int]


class ProgressPersistenceError(Exception):
    """Reading or writing completion records failed. The caller may retry."""


@dataclasses.dataclass(frozen=True)
class ProgressSnapshot:
    """Completion facts of one learner as last confirmed by the store. Gate answers derive only from this."""

    stages: typing.Mapping[StageTuple, StageCompletionModel] = dataclasses.field(default_factory=dict)
    lessons: typing.Mapping[LessonTuple, LessonCompletionModel] = dataclasses.field(default_factory=dict)

    @classmethod
    def from_records(
        cls,
        curriculum: Curriculum,
        stage_records: typing.Iterable[StageCompletionModel],
        lesson_records: typing.Iterable[LessonCompletionModel],
    ) -> "ProgressSnapshot":
        """Builds a snapshot, dropping completed=false items and keys the current curriculum does not have."""
        stages: dict[StageTuple, StageCompletionModel] = {}
        for record in stage_records:
            key = (record.chapterIndex, record.lessonIndex, record.codingStageIndex)
            if not record.completed:
                continue
            if not curriculum.has_coding_stage(*key):
                _LOGGER.warning(f"Ignoring stage completion {key} not present in curriculum {curriculum.version}.")
                continue
            if record.curriculumVersion and record.curriculumVersion != curriculum.version:
                _LOGGER.info(
                    f"Stage completion {key} was earned on curriculum {record.curriculumVersion}, "
                    f"current is {curriculum.version}."
                )
            stages[key] = record

        lessons: dict[LessonTuple, LessonCompletionModel] = {}
        for lesson_record in lesson_records:
            lesson_key = (lesson_record.chapterIndex, lesson_record.lessonIndex)
            if not lesson_record.completed:
                continue
            if not curriculum.has_lesson(*lesson_key):
                _LOGGER.warning(f"Ignoring lesson completion {lesson_key} not present in curriculum.")
                continue
            lessons[lesson_key] = lesson_record
        return cls(stages=stages, lessons=lessons)

    def with_stage(self, record: StageCompletionModel) -> "ProgressSnapshot":
        stages = dict(self.stages)
        stages[(record.chapterIndex, record.lessonIndex, record.codingStageIndex)] = record
        return dataclasses.replace(self, stages=stages)

    def with_lesson(self, record: LessonCompletionModel) -> "ProgressSnapshot":
        lessons = dict(self.lessons)
        lessons[(record.chapterIndex, record.lessonIndex)] = record
        return dataclasses.replace(self, lessons=lessons)

    def has_stage(self, chapter_index: int, lesson_index: int, coding_stage_index: int) -> bool:
        return (chapter_index, lesson_index, coding_stage_index) in self.stages

    def has_lesson(self, chapter_index: int, lesson_index: int) -> bool:
        return (chapter_index, lesson_index) in self.lessons


class ProgressionStore:
    """
    Persists a learner's completions and answers unlock queries (the gate).

    Writes go to DynamoDB first; the in-memory snapshot only changes after the store confirms a write or
    after a successful bulk fetch. A failed call therefore leaves every gate answer as it was.
    """

    def __init__(
        self,
        user_id: UserId,
        curriculum: Curriculum,
        stage_progress_table: StageProgressTable,
        lesson_progress_table: LessonProgressTable,
    ) -> None:
        self.user_id = user_id
        self.curriculum = curriculum
        self.stage_progress_table = stage_progress_table
        self.lesson_progress_table = lesson_progress_table
        self._snapshot = ProgressSnapshot()

    @property
    def snapshot(self) -> ProgressSnapshot:
        return self._snapshot

    def refresh(self) -> ProgressSnapshot:
        """
        Re-fetches all completions of the learner.
        :raises ProgressPersistenceError: If either fetch fails; the previous snapshot is kept.
        """
        try:
            stage_records = self.stage_progress_table.get_all_stage_completions_for_user(self.user_id)
            lesson_records = self.lesson_progress_table.get_all_lesson_completions_for_user(self.user_id)
        except ClientError as e:
            _LOGGER.error(f"Failed to fetch progress for user {self.user_id}: {e.response['Error']['Message']}")
            raise ProgressPersistenceError("Unable to load progress") from e

        self._snapshot = ProgressSnapshot.from_records(self.curriculum, stage_records, lesson_records)
        _LOGGER.info(
            f"Loaded progress for user {self.user_id}: {len(self._snapshot.stages)} stage(s), "
            f"{len(self._snapshot.lessons)} lesson(s)."
        )
        return self._snapshot

    def record_stage_completion(
        self,
        chapter_index: ChapterIndex,
        lesson_index: LessonIndex,
        coding_stage_index: CodingStageIndex,
    ) -> StageCompletionModel:
        """
        Records a completed coding stage; idempotent. When this makes every coding stage of the lesson
        complete, the lesson completion is recorded as well.

        :raises IndexError: If the stage does not exist in the curriculum.
        :raises ProgressPersistenceError: If a write fails. Nothing is marked complete unless its write
            was confirmed.
        """
        self.curriculum.coding_stage(chapter_index, lesson_index, coding_stage_index)

        existing = self._snapshot.stages.get((chapter_index, lesson_index, coding_stage_index))
        if existing is not None:
            _LOGGER.debug(f"Stage {chapter_index}/{lesson_index}/{coding_stage_index} already completed.")
            record = existing
        else:
            try:
                record = self.stage_progress_table.upsert_stage_completion(
                    self.user_id,
                    chapter_index,
                    lesson_index,
                    coding_stage_index,
                    curriculum_version=self.curriculum.version,
                )
            except ClientError as e:
                raise ProgressPersistenceError(
                    f"Unable to record completion of stage {chapter_index}/{lesson_index}/{coding_stage_index}: "
                    f"{e.response['Error']['Message']}"
                ) from e
            self._snapshot = self._snapshot.with_stage(record)

        if self.is_lesson_completed(chapter_index, lesson_index) and not self._snapshot.has_lesson(
            chapter_index, lesson_index
        ):
            self.record_lesson_completion(chapter_index, lesson_index)
        return record

    def record_lesson_completion(self, chapter_index: ChapterIndex, lesson_index: LessonIndex) -> LessonCompletionModel:
        """
        :raises ValueError: If some coding stage of the lesson is not completed yet.
        :raises ProgressPersistenceError: If the write fails.
        """
        if not self.is_lesson_completed(chapter_index, lesson_index):
            raise ValueError(f"Lesson {chapter_index}/{lesson_index} still has incomplete coding stages")
        try:
            record = self.lesson_progress_table.upsert_lesson_completion(
                self.user_id,
                chapter_index,
                lesson_index,
                curriculum_version=self.curriculum.version,
            )
        except ClientError as e:
            raise ProgressPersistenceError(
                f"Unable to record completion of lesson {chapter_index}/{lesson_index}: "
                f"{e.response['Error']['Message']}"
            ) from e
        self._snapshot = self._snapshot.with_lesson(record)
        return record

    def handle_stage_completed(self, event: StageCompletedEvent) -> StageCompletionModel:
        """Completion callback for a StageRun."""
        return self.record_stage_completion(event.chapter_index, event.lesson_index, event.coding_stage_index)

    def is_stage_completed(
        self,
        chapter_index: ChapterIndex,
        lesson_index: LessonIndex,
        coding_stage_index: CodingStageIndex,
    ) -> bool:
        return self._snapshot.has_stage(chapter_index, lesson_index, coding_stage_index)

    def is_stage_unlocked(
        self,
        chapter_index: ChapterIndex,
        lesson_index: LessonIndex,
        coding_stage_index: CodingStageIndex,
    ) -> bool:
        """The first coding stage is always open; every later one opens when its predecessor is completed."""
        if coding_stage_index == 0:
            return True
        return self.is_stage_completed(chapter_index, lesson_index, CodingStageIndex(coding_stage_index - 1))

    def is_lesson_completed(self, chapter_index: ChapterIndex, lesson_index: LessonIndex) -> bool:
        total = self.curriculum.coding_stage_count(chapter_index, lesson_index)
        return all(
            self.is_stage_completed(chapter_index, lesson_index, CodingStageIndex(k)) for k in range(total)
        )

    def is_lesson_unlocked(self, chapter_index: ChapterIndex, lesson_index: LessonIndex) -> bool:
        """
        The first lesson of a chapter is always open; a later one opens when the previous lesson has a
        completion record. A previous lesson without coding stages never gets a record, so it passes its
        own unlock state through.
        """
        if lesson_index == 0:
            return True
        previous = LessonIndex(lesson_index - 1)
        if self._snapshot.has_lesson(chapter_index, previous):
            return True
        if self.curriculum.coding_stage_count(chapter_index, previous) == 0:
            return self.is_lesson_unlocked(chapter_index, previous)
        return False

    def completed_coding_stage_count(self, chapter_index: ChapterIndex, lesson_index: LessonIndex) -> int:
        total = self.curriculum.coding_stage_count(chapter_index, lesson_index)
        return sum(
            1 for k in range(total) if self.is_stage_completed(chapter_index, lesson_index, CodingStageIndex(k))
        )

    def lesson_statuses(self) -> list[LessonStatusModel]:
        statuses = []
        for raw_chapter_index, chapter in enumerate(self.curriculum.chapters):
            for raw_lesson_index in range(len(chapter.lessons)):
                chapter_index, lesson_index = ChapterIndex(raw_chapter_index), LessonIndex(raw_lesson_index)
                statuses.append(
                    LessonStatusModel(
                        chapterIndex=chapter_index,
                        lessonIndex=lesson_index,
                        unlocked=self.is_lesson_unlocked(chapter_index, lesson_index),
                        completed=self.is_lesson_completed(chapter_index, lesson_index),
                        completedCodingStages=self.completed_coding_stage_count(chapter_index, lesson_index),
                        totalCodingStages=self.curriculum.coding_stage_count(chapter_index, lesson_index),
                    )
                )
        return statuses
